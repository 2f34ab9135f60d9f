"""Event model."""

from .base import BaseModel
from .relations import relation


class Event(BaseModel):
    model_name = "event"

    @relation
    async def builds(self):
        return await self.peer_factory("build").list({"params": {"event_id": self.id}})
