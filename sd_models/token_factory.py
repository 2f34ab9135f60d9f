"""
Token factory.

Token values are stored sealed; lookups by value go through the SHA-256
hash of the plaintext.
"""

from typing import Any, Mapping

from .base_factory import BaseFactory
from .generate_token import generate_value, hash_value
from .sealing import seal, unseal_value, unseal_values
from .token import Token


class TokenFactory(BaseFactory):
    model_name = "token"
    model_class = Token
    required_collaborators = ("datastore", "password")

    async def create(self, config: Mapping[str, Any]) -> Token:
        """
        Create a token.

        A value is generated when the caller does not supply one.

        Returns:
            The record, holding the plaintext value
        """
        value = config.get("value") or generate_value()
        token = await super().create(
            {
                **config,
                "value": await seal(value, self._password),
                "hash": hash_value(value),
                "last_used": None,
            }
        )
        token.load_fields(value=value)

        return token

    async def get(self, config: Any) -> Token | None:
        token = await super().get(config)
        if token is None:
            return None

        return await unseal_value(token, self._password)

    async def get_by_value(self, value: str) -> Token | None:
        """Find a token by its plaintext value."""
        return await self.get({"hash": hash_value(value)})

    async def list(self, config: Mapping[str, Any] | None = None) -> Any:
        tokens = await super().list(config)
        if (config or {}).get("raw"):
            return tokens

        return await unseal_values(tokens, self._password)
