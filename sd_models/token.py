"""
Token model.
"""

import logging
from typing import Any

from .base import BaseModel
from .generate_token import generate_value, hash_value
from .relations import relation
from .sealing import seal

logger = logging.getLogger(__name__)


class Token(BaseModel):
    model_name = "token"

    @relation
    async def user(self):
        if self.user_id is None:
            return None
        return await self.peer_factory("user").get(self.user_id)

    async def prepare_update(self, changes: dict[str, Any]) -> dict[str, Any]:
        if "value" in changes:
            changes = {
                **changes,
                "value": await seal(changes["value"], self._password),
                "hash": hash_value(changes["value"]),
            }
        return changes

    async def refresh(self) -> "Token":
        """
        Replace the token value with a freshly generated one.

        The old value stops working immediately. The new plaintext is
        available on the record after this call.
        """
        value = generate_value()
        self.value = value
        self.hash = hash_value(value)
        await self.update()
        logger.info(f"Refreshed token {self.id}")

        return self

    def to_json(self) -> dict[str, Any]:
        """Serialize the token without its lookup hash."""
        data = super().to_json()
        data.pop("hash", None)
        return data
