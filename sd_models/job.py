"""
Job model.
"""

import logging
import re
from typing import Any

from sd_common.errors import RelationNotFoundError

from .base import BaseModel
from .helper import get_all_records, parse_time
from .relations import relation

logger = logging.getLogger(__name__)

PR_JOB_NAME = re.compile(r"^PR-(\d+)")

PAGINATE_PAGE = 1
PAGINATE_COUNT = 25

# Page size for cascading removes and metric aggregation
BATCH_COUNT = 50


class Job(BaseModel):
    model_name = "job"

    def is_pr(self) -> bool:
        """Return True if the job runs for a pull request."""
        return bool(PR_JOB_NAME.match(self.name or ""))

    @property
    def pr_num(self) -> int | None:
        match = PR_JOB_NAME.match(self.name or "")
        return int(match.group(1)) if match else None

    @relation
    async def pipeline(self):
        return await self.peer_factory("pipeline").get(self.pipeline_id)

    @relation
    async def secrets(self):
        """
        Secrets this job may use.

        Only secrets named by the first permutation are returned, and a PR
        job only sees the ones allowed in PRs.

        Raises:
            RelationNotFoundError: If the pipeline no longer exists
        """
        permutations = self.permutations or [{}]
        names = permutations[0].get("secrets") or []

        pipeline = await self.pipeline
        if pipeline is None:
            raise RelationNotFoundError("Pipeline does not exist")

        secrets = await pipeline.secrets
        return [
            secret
            for secret in secrets
            if secret.name in names and (secret.allow_in_pr or not self.is_pr())
        ]

    @relation
    async def builds(self):
        """Most recent builds, newest first."""
        return await self.get_builds()

    async def get_builds(
        self,
        params: dict[str, Any] | None = None,
        paginate: dict[str, Any] | None = None,
        sort: str = "descending",
    ) -> list[Any]:
        """
        List builds of this job.

        Args:
            params: Extra filters
            paginate: {"page", "count"}; defaults to the first 25
            sort: "ascending" or "descending" by creation time
        """
        return await self.peer_factory("build").list(
            {
                "params": {**(params or {}), "job_id": self.id},
                "paginate": paginate or {"page": PAGINATE_PAGE, "count": PAGINATE_COUNT},
                "sort": sort,
            }
        )

    async def get_metrics(
        self,
        start_time: str | None = None,
        end_time: str | None = None,
        aggregate_interval: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Summarize the builds of this job over a time range.

        Without an aggregate interval one entry per build is returned.
        With one, builds are fetched page by page and one entry per period
        is returned, holding the average duration and the status counts.
        """
        opts: dict[str, Any] = {
            "params": {"job_id": self.id},
            "sort": "ascending",
            "sort_by": "id",
        }
        if start_time:
            opts["start_time"] = start_time
        if end_time:
            opts["end_time"] = end_time

        build_factory = self.peer_factory("build")

        if not aggregate_interval:
            builds = await build_factory.list(opts)
            return [_build_metric(build) for build in builds]

        opts["paginate"] = {"page": PAGINATE_PAGE, "count": BATCH_COUNT}
        groups = await get_all_records(build_factory.list, aggregate_interval, opts)

        return [_aggregate_metric(group) for group in groups]

    async def remove(self) -> None:
        """
        Remove the job and every build it owns.

        Builds are stopped and removed one at a time before the job row.
        """
        build_factory = self.peer_factory("build")
        removed = 0

        while True:
            builds = await build_factory.list(
                {
                    "params": {"job_id": self.id},
                    "paginate": {"page": PAGINATE_PAGE, "count": BATCH_COUNT},
                }
            )
            if not builds:
                break

            for build in builds:
                await build.stop()
                await build.remove()
                removed += 1

        logger.info(f"Removed {removed} builds of job {self.id}")
        await super().remove()


def _duration(build: Any) -> float | None:
    if not build.start_time or not build.end_time:
        return None
    return (parse_time(build.end_time) - parse_time(build.start_time)).total_seconds()


def _build_metric(build: Any) -> dict[str, Any]:
    return {
        "id": build.id,
        "event_id": build.event_id,
        "create_time": build.create_time,
        "sha": build.sha,
        "status": build.status,
        "duration": _duration(build),
    }


def _aggregate_metric(builds: list[Any]) -> dict[str, Any]:
    durations = [d for d in (_duration(build) for build in builds) if d is not None]
    statuses: dict[str, int] = {}
    for build in builds:
        statuses[build.status] = statuses.get(build.status, 0) + 1

    return {
        "create_time": builds[0].create_time,
        "duration": sum(durations) / len(durations) if durations else None,
        "statuses": statuses,
    }
