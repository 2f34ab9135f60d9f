"""Secret model."""

from typing import Any

from .base import BaseModel
from .relations import relation
from .sealing import seal


class Secret(BaseModel):
    model_name = "secret"

    @relation
    async def pipeline(self):
        return await self.peer_factory("pipeline").get(self.pipeline_id)

    async def prepare_update(self, changes: dict[str, Any]) -> dict[str, Any]:
        # the plaintext stays on the record, only the sealed value is written
        if "value" in changes:
            changes = {**changes, "value": await seal(changes["value"], self._password)}
        return changes
