"""
Unit tests for the Pipeline model and PipelineFactory.
"""

from unittest.mock import ANY

import pytest

from sd_common.errors import RelationNotFoundError
from sd_models import FactoryRegistry, Pipeline, PipelineFactory, User
from sd_models.generate_token import hash_value
from sd_models.sealing import seal_sync

PIPELINE = {
    "id": 123,
    "name": "screwdriver/models",
    "scm_uri": "github.com:12345:main",
    "scm_context": "github:github.com",
    "admins": {"batman": True, "robin": True},
    "workflow": ["main", "publish"],
}


def job_row(name, archived=False):
    return {"id": f"id-{name}", "pipeline_id": 123, "name": name, "archived": archived}


class TestPipelineFactory:
    """Test suite for PipelineFactory class."""

    @pytest.fixture
    def factory(self, registry):
        return registry.get_instance(PipelineFactory)

    @pytest.mark.asyncio
    async def test_create_decorates_url(self, factory, datastore, scm, password):
        """Test that create asks the SCM for repository metadata with the admin's token."""
        datastore.get.return_value = {
            "id": "u1",
            "username": "batman",
            "scm_context": "github:github.com",
            "token": seal_sync("scm-token", password),
        }

        pipeline = await factory.create(
            {
                "scm_uri": "github.com:12345:main",
                "scm_context": "github:github.com",
                "admins": {"batman": True},
            }
        )

        datastore.get.assert_called_once_with(
            {
                "table": "users",
                "params": {"username": "batman", "scm_context": "github:github.com"},
            }
        )
        scm.decorate_url.assert_called_once_with(
            {
                "scm_uri": "github.com:12345:main",
                "scm_context": "github:github.com",
                "token": "scm-token",
            }
        )
        assert isinstance(pipeline, Pipeline)
        assert pipeline.name == "screwdriver/models"
        assert pipeline.scm_repo["branch"] == "main"
        assert pipeline.create_time

    @pytest.mark.asyncio
    async def test_create_unknown_admin(self, factory, datastore):
        """Test that create fails when the first admin is unknown."""
        datastore.get.return_value = None

        with pytest.raises(RelationNotFoundError, match="User batman does not exist"):
            await factory.create(
                {"scm_uri": "a", "scm_context": "b", "admins": {"batman": True}}
            )

        datastore.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_by_access_token(self, factory, datastore, route, password):
        """Test that an access token resolves to its pipeline and is stamped."""
        datastore.get.side_effect = route(
            {
                "tokens": {
                    "id": 9,
                    "name": "ci",
                    "pipeline_id": 123,
                    "value": seal_sync("my-token", password),
                    "hash": hash_value("my-token"),
                },
                "pipelines": PIPELINE,
            }
        )

        pipeline = await factory.get({"access_token": "my-token"})

        assert pipeline.id == 123
        assert datastore.get.call_args_list[0].args[0] == {
            "table": "tokens",
            "params": {"hash": hash_value("my-token")},
        }
        datastore.update.assert_called_once_with(
            {"table": "tokens", "params": {"id": 9, "last_used": ANY}}
        )
        assert datastore.get.call_args_list[1].args[0] == {
            "table": "pipelines",
            "params": {"id": 123},
        }

    @pytest.mark.asyncio
    async def test_get_by_unknown_access_token(self, factory, datastore):
        """Test that an unknown access token is a miss."""
        datastore.get.return_value = None

        assert await factory.get({"access_token": "nope"}) is None
        datastore.update.assert_not_called()

    def test_external_join(self, datastore, scm):
        """Test the external join flag."""
        registry = FactoryRegistry()
        factory = registry.get_instance(
            PipelineFactory, {"datastore": datastore, "scm": scm, "external_join": True}
        )

        assert factory.external_join is True


class TestPipeline:
    """Test suite for Pipeline class."""

    @pytest.fixture
    def pipeline(self, registry):
        return registry.get_instance(PipelineFactory).create_class(PIPELINE)

    @pytest.mark.asyncio
    async def test_get_jobs_order(self, pipeline, datastore):
        """Test that workflow jobs come in workflow order, then PR jobs by number."""
        datastore.scan.return_value = [
            job_row("PR-10:main"),
            job_row("publish"),
            job_row("PR-2:main"),
            job_row("main"),
        ]

        jobs = await pipeline.get_jobs()

        assert [job.name for job in jobs] == ["main", "publish", "PR-2:main", "PR-10:main"]
        assert datastore.scan.call_args.args[0]["params"] == {
            "pipeline_id": 123,
            "archived": False,
        }

    @pytest.mark.asyncio
    async def test_get_jobs_by_type(self, pipeline, datastore):
        """Test narrowing jobs to workflow or PR jobs."""
        datastore.scan.return_value = [job_row("PR-1:main"), job_row("main")]

        assert [job.name for job in await pipeline.get_jobs(type="pipeline")] == ["main"]
        assert [job.name for job in await pipeline.get_jobs(type="pr")] == ["PR-1:main"]

    @pytest.mark.asyncio
    async def test_get_archived_jobs_unsorted(self, pipeline, datastore):
        """Test that archived jobs are returned as listed."""
        rows = [job_row("old", True), job_row("main", True)]
        datastore.scan.return_value = rows

        jobs = await pipeline.get_jobs(params={"archived": True})

        assert [job.name for job in jobs] == ["old", "main"]

    @pytest.mark.asyncio
    async def test_get_events(self, pipeline, datastore):
        """Test that events default to pipeline events, newest first."""
        await pipeline.get_events()

        datastore.scan.assert_called_once_with(
            {
                "table": "events",
                "params": {"pipeline_id": 123, "type": "pipeline"},
                "sort": "descending",
                "paginate": {"page": 1, "count": 50},
            }
        )

    @pytest.mark.asyncio
    async def test_admin_and_token(self, pipeline, datastore, password):
        """Test that the admin is the first listed admin and the token is theirs."""
        datastore.get.return_value = {
            "id": "u1",
            "username": "batman",
            "scm_context": "github:github.com",
            "token": seal_sync("scm-token", password),
        }

        admin = await pipeline.admin

        assert isinstance(admin, User)
        assert await pipeline.get_token() == "scm-token"
        datastore.get.assert_called_once_with(
            {
                "table": "users",
                "params": {"username": "batman", "scm_context": "github:github.com"},
            }
        )

    @pytest.mark.asyncio
    async def test_update_redecorates_on_new_scm_uri(self, pipeline, datastore, scm, password):
        """Test that changing scm_uri refreshes the repository metadata."""
        datastore.get.return_value = {
            "id": "u1",
            "username": "batman",
            "token": seal_sync("scm-token", password),
        }
        pipeline.scm_uri = "github.com:12345:develop"

        await pipeline.update()

        scm.decorate_url.assert_called_once_with(
            {
                "scm_uri": "github.com:12345:develop",
                "scm_context": "github:github.com",
                "token": "scm-token",
            }
        )
        datastore.update.assert_called_once_with(
            {
                "table": "pipelines",
                "params": {
                    "id": 123,
                    "scm_uri": "github.com:12345:develop",
                    "scm_repo": scm.decorate_url.return_value,
                },
            }
        )

    @pytest.mark.asyncio
    async def test_update_without_new_scm_uri(self, pipeline, datastore, scm):
        """Test that other changes do not contact the SCM."""
        pipeline.workflow = ["main"]

        await pipeline.update()

        scm.decorate_url.assert_not_called()
        datastore.update.assert_called_once_with(
            {"table": "pipelines", "params": {"id": 123, "workflow": ["main"]}}
        )

    @pytest.mark.asyncio
    async def test_remove_cascades(self, pipeline, datastore, executor, route, password):
        """Test that removing a pipeline removes what it owns, then itself."""
        removed = []

        async def record_remove(config):
            removed.append((config["table"], config["params"]["id"]))

        datastore.remove.side_effect = record_remove
        datastore.scan.side_effect = route(
            {
                "secrets": [{"id": "s1", "name": "A", "value": seal_sync("a", password)}],
                "tokens": [],
                # raw job listing for triggers, archived jobs, then active jobs
                "jobs": (
                    [job_row("main")],
                    [job_row("old", True)],
                    [],
                    [job_row("main")],
                    [],
                ),
                "triggers": [{"id": "t1", "src": "~sd@123:main", "dest": "X"}],
                "builds": [],
                "events": ([{"id": 5, "pipeline_id": 123, "type": "pipeline"}], [], []),
            }
        )

        await pipeline.remove()

        assert removed == [
            ("secrets", "s1"),
            ("triggers", "t1"),
            ("jobs", "id-old"),
            ("jobs", "id-main"),
            ("events", 5),
            ("pipelines", 123),
        ]
