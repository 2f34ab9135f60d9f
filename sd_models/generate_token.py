"""
Token value generation and hashing.

Only the hash of a token value is used for lookups; the value itself is
stored sealed.
"""

import hashlib
import secrets

TOKEN_BYTES = 32  # 256 bits


def generate_value() -> str:
    """
    Generate a new random token value.

    Returns:
        64-character hex string
    """
    return secrets.token_hex(TOKEN_BYTES)


def hash_value(value: str) -> str:
    """
    Hash a token value using SHA-256.

    Returns:
        Hex-encoded SHA-256 hash of the value
    """
    return hashlib.sha256(value.encode()).hexdigest()
