"""
Unit tests for the Job model and JobFactory.
"""

import pytest

from sd_common.errors import RelationNotFoundError
from sd_models import Job, JobFactory
from sd_models.sealing import seal_sync

DISABLED = {"annotations": {"screwdriver.cd/jobDisabledByDefault": "true"}}


class TestJobFactory:
    """Test suite for JobFactory class."""

    @pytest.fixture
    def factory(self, registry):
        return registry.get_instance(JobFactory)

    @pytest.mark.asyncio
    async def test_create_enabled(self, factory, datastore):
        """Test that new jobs are enabled and not archived."""
        job = await factory.create(
            {"pipeline_id": 123, "name": "main", "permutations": [{"image": "node:18"}]}
        )

        data = datastore.save.call_args.args[0]["params"]["data"]
        assert data["state"] == "ENABLED"
        assert data["archived"] is False
        assert isinstance(job, Job)
        assert job.id == factory.generate_id({"pipeline_id": 123, "name": "main"})

    @pytest.mark.asyncio
    async def test_create_disabled_by_default(self, factory, datastore):
        """Test that the jobDisabledByDefault annotation disables new jobs."""
        job = await factory.create(
            {"pipeline_id": 123, "name": "main", "permutations": [DISABLED]}
        )

        assert job.state == "DISABLED"

    @pytest.mark.asyncio
    async def test_pr_jobs_ignore_disabled_by_default(self, factory):
        """Test that PR jobs are always enabled."""
        job = await factory.create(
            {"pipeline_id": 123, "name": "PR-5:main", "permutations": [DISABLED]}
        )

        assert job.state == "ENABLED"


class TestJob:
    """Test suite for Job class."""

    @pytest.fixture
    def factory(self, registry):
        return registry.get_instance(JobFactory)

    def make_job(self, factory, name="main", **fields):
        return factory.create_class(
            {"id": "j1", "pipeline_id": 123, "name": name, **fields}
        )

    @pytest.mark.parametrize(
        "name,is_pr,pr_num",
        [("main", False, None), ("PR-15:main", True, 15), ("PR-3", True, 3), ("mainPR-1", False, None)],
    )
    def test_pr_detection(self, factory, name, is_pr, pr_num):
        """Test PR job detection from the job name."""
        job = self.make_job(factory, name)

        assert job.is_pr() is is_pr
        assert job.pr_num == pr_num

    @pytest.mark.asyncio
    async def test_secrets_filtered(self, factory, datastore, route, password):
        """Test that a job only sees the secrets its permutation names."""
        datastore.get.return_value = {"id": 123, "scm_uri": "github.com:1:main"}
        datastore.scan.side_effect = route(
            {
                "secrets": [
                    {"id": "s1", "name": "NPM_TOKEN", "value": seal_sync("a", password), "allow_in_pr": False},
                    {"id": "s2", "name": "GIT_KEY", "value": seal_sync("b", password), "allow_in_pr": True},
                    {"id": "s3", "name": "OTHER", "value": seal_sync("c", password), "allow_in_pr": True},
                ]
            }
        )
        permutations = [{"secrets": ["NPM_TOKEN", "GIT_KEY"]}]

        job = self.make_job(factory, permutations=permutations)
        pr_job = self.make_job(factory, "PR-1:main", permutations=permutations)

        assert [(s.name, s.value) for s in await job.secrets] == [("NPM_TOKEN", "a"), ("GIT_KEY", "b")]
        assert [s.name for s in await pr_job.secrets] == ["GIT_KEY"]

    @pytest.mark.asyncio
    async def test_secrets_without_pipeline(self, factory, datastore):
        """Test that secrets of a job whose pipeline is gone is an error."""
        datastore.get.return_value = None
        job = self.make_job(factory, permutations=[{"secrets": ["A"]}])

        with pytest.raises(RelationNotFoundError, match="Pipeline does not exist"):
            await job.secrets

    @pytest.mark.asyncio
    async def test_builds(self, factory, datastore):
        """Test that builds are listed newest first, 25 at a time."""
        job = self.make_job(factory)

        await job.builds

        datastore.scan.assert_called_once_with(
            {
                "table": "builds",
                "params": {"job_id": "j1"},
                "sort": "descending",
                "sort_by": "create_time",
                "paginate": {"page": 1, "count": 25},
            }
        )

    @pytest.mark.asyncio
    async def test_remove_cascades_builds(self, factory, datastore, executor, route):
        """Test that builds are stopped and removed one at a time before the job."""
        events = []
        datastore.scan.side_effect = route(
            {"builds": ([{"id": 1, "job_id": "j1"}, {"id": 2, "job_id": "j1"}], [])}
        )

        async def record_stop(config):
            events.append(("stop", config["build_id"]))

        async def record_remove(config):
            events.append(("remove", config["table"], config["params"]["id"]))

        executor.stop.side_effect = record_stop
        datastore.remove.side_effect = record_remove

        await self.make_job(factory).remove()

        assert events == [
            ("stop", 1),
            ("remove", "builds", 1),
            ("stop", 2),
            ("remove", "builds", 2),
            ("remove", "jobs", "j1"),
        ]

    @pytest.mark.asyncio
    async def test_remove_without_builds(self, factory, datastore, executor):
        """Test that a job without builds is removed directly."""
        datastore.scan.return_value = []

        await self.make_job(factory).remove()

        executor.stop.assert_not_called()
        datastore.remove.assert_called_once_with({"table": "jobs", "params": {"id": "j1"}})

    @pytest.mark.asyncio
    async def test_metrics_per_build(self, factory, datastore):
        """Test metrics without aggregation."""
        datastore.scan.return_value = [
            {
                "id": 1,
                "job_id": "j1",
                "status": "SUCCESS",
                "create_time": "2024-01-01T10:00:00+00:00",
                "start_time": "2024-01-01T10:00:00+00:00",
                "end_time": "2024-01-01T10:01:30+00:00",
            }
        ]

        metrics = await self.make_job(factory).get_metrics(
            start_time="2024-01-01T00:00:00+00:00"
        )

        assert metrics[0]["duration"] == 90
        assert metrics[0]["status"] == "SUCCESS"
        scan = datastore.scan.call_args.args[0]
        assert scan["start_time"] == "2024-01-01T00:00:00+00:00"
        assert "paginate" not in scan

    @pytest.mark.asyncio
    async def test_metrics_aggregated(self, factory, datastore):
        """Test that aggregated metrics group builds by day."""
        datastore.scan.return_value = [
            {"id": 1, "status": "SUCCESS", "create_time": "2024-01-01T10:00:00+00:00",
             "start_time": "2024-01-01T10:00:00+00:00", "end_time": "2024-01-01T10:00:10+00:00"},
            {"id": 2, "status": "FAILURE", "create_time": "2024-01-01T12:00:00+00:00",
             "start_time": "2024-01-01T12:00:00+00:00", "end_time": "2024-01-01T12:00:30+00:00"},
            {"id": 3, "status": "SUCCESS", "create_time": "2024-01-02T10:00:00+00:00"},
        ]

        metrics = await self.make_job(factory).get_metrics(aggregate_interval="day")

        assert metrics == [
            {
                "create_time": "2024-01-01T10:00:00+00:00",
                "duration": 20,
                "statuses": {"SUCCESS": 1, "FAILURE": 1},
            },
            {
                "create_time": "2024-01-02T10:00:00+00:00",
                "duration": None,
                "statuses": {"SUCCESS": 1},
            },
        ]
        # a short page ends the paging
        datastore.scan.assert_called_once()
