"""
Password-keyed sealing of sensitive field values.

A sealed value has the form ``sd1*<salt>*<token>``: a fresh random salt is
stretched with the password through PBKDF2-HMAC-SHA256 into a Fernet key, and
the token is the Fernet (AES-128-CBC + HMAC-SHA256) encryption of the value.
Unsealing with the wrong password, or a tampered value, fails authentication
instead of returning garbage.

Key derivation is CPU bound, so it runs in a worker thread.
"""

import asyncio
import base64
import binascii
import secrets
from typing import TYPE_CHECKING, Any

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from sd_common.errors import SealingError

if TYPE_CHECKING:
    from .base import BaseModel

SEAL_PREFIX = "sd1"
SEPARATOR = "*"
MIN_PASSWORD_LENGTH = 32
KDF_ITERATIONS = 100_000
SALT_BYTES = 16


def _check_password(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise SealingError(
            f"Password must be a string of at least {MIN_PASSWORD_LENGTH} characters"
        )


def _derive_key(password: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))


def seal_sync(value: str, password: str) -> str:
    """Blocking variant of seal()."""
    _check_password(password)
    if not isinstance(value, str):
        raise SealingError(f"Only strings can be sealed, got {type(value).__name__}")

    salt = secrets.token_bytes(SALT_BYTES)
    token = Fernet(_derive_key(password, salt)).encrypt(value.encode("utf-8"))

    return SEPARATOR.join(
        (
            SEAL_PREFIX,
            base64.urlsafe_b64encode(salt).decode("ascii"),
            token.decode("ascii"),
        )
    )


def unseal_sync(sealed: str, password: str) -> str:
    """Blocking variant of unseal()."""
    _check_password(password)
    if not isinstance(sealed, str):
        raise SealingError(f"Sealed value must be a string, got {type(sealed).__name__}")

    parts = sealed.split(SEPARATOR)
    if len(parts) != 3 or parts[0] != SEAL_PREFIX:
        raise SealingError("Malformed sealed value")

    try:
        salt = base64.urlsafe_b64decode(parts[1])
    except (binascii.Error, ValueError) as e:
        raise SealingError("Malformed sealed value") from e

    try:
        plaintext = Fernet(_derive_key(password, salt)).decrypt(parts[2].encode("ascii"))
    except (InvalidToken, ValueError) as e:
        raise SealingError("Unable to unseal value: authentication failed") from e

    return plaintext.decode("utf-8")


async def seal(value: str, password: str) -> str:
    """
    Seal a value with a password.

    Args:
        value: Plaintext to protect
        password: Sealing password (at least 32 characters)

    Returns:
        The sealed string

    Raises:
        SealingError: If the password or value is unusable
    """
    return await asyncio.to_thread(seal_sync, value, password)


async def unseal(sealed: str, password: str) -> str:
    """
    Reverse seal().

    Raises:
        SealingError: If the value is malformed or the password does not match
    """
    return await asyncio.to_thread(unseal_sync, sealed, password)


async def unseal_value(model: "BaseModel", password: str) -> "BaseModel":
    """
    Unseal a record's "value" field in place.

    The plaintext is loaded without marking the field dirty, so a later
    update() does not write it back. Records listed without their value are
    returned untouched.

    Returns:
        The same record
    """
    if model.value is None:
        return model

    model.load_fields(value=await unseal(model.value, password))
    return model


async def unseal_values(result: Any, password: str) -> Any:
    """
    Unseal the records of a list() result.

    Every value is unsealed concurrently; one failure fails the whole call.
    Accepts a list of records or a {"count", "rows"} mapping.
    """
    if isinstance(result, dict):
        return {**result, "rows": await unseal_values(result["rows"], password)}

    return list(await asyncio.gather(*(unseal_value(record, password) for record in result)))
