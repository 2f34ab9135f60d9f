"""
Unit tests for events.
"""

import pytest

from sd_models import EventFactory


class TestEventFactory:
    """Test suite for EventFactory."""

    @pytest.mark.asyncio
    async def test_create_defaults(self, registry, datastore):
        """Test that new events default to pipeline events with a create_time."""
        event = await registry.get_instance(EventFactory).create(
            {"pipeline_id": 1, "sha": "abc"}
        )

        data = datastore.save.call_args[0][0]["params"]["data"]
        assert data["type"] == "pipeline"
        assert data["create_time"]
        assert event.type == "pipeline"

    @pytest.mark.asyncio
    async def test_create_keeps_type(self, registry, datastore):
        """Test that an explicit type and create_time are kept."""
        event = await registry.get_instance(EventFactory).create(
            {"pipeline_id": 1, "sha": "abc", "type": "pr", "create_time": "2024-01-01"}
        )

        assert event.type == "pr"
        assert event.create_time == "2024-01-01"

    @pytest.mark.asyncio
    async def test_builds_relation(self, registry, datastore, route):
        """Test that an event lists the builds it started."""
        datastore.scan.side_effect = route({"builds": [{"id": 5, "event_id": 3}]})
        event = registry.get_instance(EventFactory).create_class({"id": 3})

        builds = await event.builds

        assert [b.id for b in builds] == [5]
        scan = datastore.scan.call_args[0][0]
        assert scan["params"] == {"event_id": 3}
