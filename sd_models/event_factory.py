"""Event factory."""

from typing import Any, Mapping

from .base_factory import BaseFactory
from .event import Event
from .helper import now_iso


class EventFactory(BaseFactory):
    model_name = "event"
    model_class = Event

    async def create(self, config: Mapping[str, Any]) -> Event:
        """Create an event, defaulting its type to "pipeline" and stamping create_time."""
        return await super().create(
            {
                "type": "pipeline",
                **config,
                "create_time": config.get("create_time") or now_iso(),
            }
        )
