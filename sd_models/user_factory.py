"""User factory."""

from typing import Any, Mapping

from .base_factory import BaseFactory
from .sealing import seal
from .user import User


class UserFactory(BaseFactory):
    model_name = "user"
    model_class = User
    required_collaborators = ("datastore", "scm", "password")

    async def create(self, config: Mapping[str, Any]) -> User:
        """Create a user; the SCM token is stored sealed."""
        self.schema.validate_create(config)

        return await super().create(
            {**config, "token": await seal(config.get("token"), self._password)}
        )
