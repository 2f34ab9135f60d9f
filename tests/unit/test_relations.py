"""
Unit tests for sd_models.relations.

Tests that relations load lazily and at most once per record.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from sd_models import JobFactory, Pipeline, Relation
from sd_models.relations import relation


class TestRelation:
    """Test suite for Relation class."""

    @pytest.mark.asyncio
    async def test_resolve_runs_loader_once(self):
        """Test that concurrent awaiters share a single load."""
        loader = AsyncMock(return_value="value")
        rel = Relation(loader)

        assert not rel.started
        results = await asyncio.gather(rel, rel.resolve(), rel)

        assert results == ["value", "value", "value"]
        assert rel.resolve() is rel.resolve()
        loader.assert_called_once()

    @pytest.mark.asyncio
    async def test_errors_are_shared(self):
        """Test that a failed load fails every awaiter the same way."""
        rel = Relation(AsyncMock(side_effect=LookupError("gone")))

        with pytest.raises(LookupError):
            await rel
        with pytest.raises(LookupError):
            await rel

    @pytest.mark.asyncio
    async def test_descriptor_memoizes_per_instance(self):
        """Test that the descriptor returns one Relation per instance."""
        calls = []

        class Holder:
            def __init__(self, name):
                self.name = name

            @relation
            async def greeting(self):
                calls.append(self.name)
                return f"hello {self.name}"

        first, second = Holder("a"), Holder("b")

        assert first.greeting is first.greeting
        assert first.greeting is not second.greeting
        assert await first.greeting == "hello a"
        assert await first.greeting == "hello a"
        assert await second.greeting == "hello b"
        assert calls == ["a", "b"]
        assert isinstance(Holder.greeting, relation)


class TestModelRelations:
    """Test suite for relations declared on models."""

    @pytest.mark.asyncio
    async def test_two_reads_one_lookup(self, registry, datastore):
        """Test that reading a relation twice looks it up once."""
        datastore.get.return_value = {"id": 123, "scm_uri": "github.com:1:main"}
        job = registry.get_instance(JobFactory).create_class(
            {"id": "j1", "pipeline_id": 123, "name": "main"}
        )

        first = await job.pipeline
        second = await job.pipeline

        assert isinstance(first, Pipeline)
        assert first is second
        datastore.get.assert_called_once_with({"table": "pipelines", "params": {"id": 123}})

    @pytest.mark.asyncio
    async def test_missing_link_is_none(self, registry, datastore):
        """Test that a simple link to a missing record resolves to None."""
        datastore.get.return_value = None
        job = registry.get_instance(JobFactory).create_class(
            {"id": "j1", "pipeline_id": 999, "name": "main"}
        )

        assert await job.pipeline is None

    def test_relations_are_lazy(self, registry, datastore):
        """Test that creating a record does not load its relations."""
        job = registry.get_instance(JobFactory).create_class(
            {"id": "j1", "pipeline_id": 123, "name": "main"}
        )

        assert not job.pipeline.started
        datastore.get.assert_not_called()
