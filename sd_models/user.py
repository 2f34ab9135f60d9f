"""
User model.
"""

from typing import Any

from .base import BaseModel
from .relations import relation
from .sealing import seal, unseal


class User(BaseModel):
    model_name = "user"

    async def seal_token(self, token: str) -> str:
        """Seal an SCM token with this user's password."""
        return await seal(token, self._password)

    async def unseal_token(self) -> str:
        """Return the plaintext SCM token of this user."""
        return await unseal(self.token, self._password)

    async def update_token(self, token: str) -> "User":
        """Replace the stored SCM token."""
        self.token = await self.seal_token(token)
        return await self.update()

    async def get_permissions(
        self, scm_uri: str, scm_repo: Any = None
    ) -> dict[str, bool]:
        """
        Ask the SCM what this user may do on a repository.

        Returns:
            {"admin": bool, "push": bool, "pull": bool}
        """
        return await self.scm.get_permissions(
            {
                "token": await self.unseal_token(),
                "scm_uri": scm_uri,
                "scm_context": self.scm_context,
                "scm_repo": scm_repo,
            }
        )

    @relation
    async def tokens(self):
        return await self.peer_factory("token").list({"params": {"user_id": self.id}})
