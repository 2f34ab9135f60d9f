"""
Secret factory.

Secret values are sealed before they are written and unsealed on every read,
so callers only ever see plaintext.
"""

from typing import Any, Mapping

from .base_factory import BaseFactory
from .sealing import seal, unseal_value, unseal_values
from .secret import Secret


class SecretFactory(BaseFactory):
    model_name = "secret"
    model_class = Secret
    required_collaborators = ("datastore", "password")

    async def create(self, config: Mapping[str, Any]) -> Secret:
        """
        Create a secret.

        Returns:
            The record, holding the plaintext value
        """
        self.schema.validate_create(config)
        secret = await super().create(
            {**config, "value": await seal(config["value"], self._password)}
        )
        secret.load_fields(value=config["value"])

        return secret

    async def get(self, config: Any) -> Secret | None:
        secret = await super().get(config)
        if secret is None:
            return None

        return await unseal_value(secret, self._password)

    async def list(self, config: Mapping[str, Any] | None = None) -> Any:
        """
        List secrets with their values unsealed.

        Every value is unsealed concurrently; one failure fails the call.
        """
        secrets = await super().list(config)
        if (config or {}).get("raw"):
            return secrets

        return await unseal_values(secrets, self._password)
