"""
Build factory.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import UTC, datetime
from typing import Any, Mapping

from sd_common.errors import RelationNotFoundError

from .base_factory import BaseFactory
from .build import Build
from .raw_queries import RawQuery, get_queries

logger = logging.getLogger(__name__)


class BuildFactory(BaseFactory):
    model_name = "build"
    model_class = Build
    required_collaborators = ("datastore", "executor")

    def __init__(self, config: Mapping[str, Any], registry=None):
        super().__init__(config, registry=registry)
        self.executor = config["executor"]
        self.api_uri = config.get("api_uri")

    async def create(self, config: Mapping[str, Any]) -> Build:
        """
        Create a build of an existing job and start it.

        The build number is the creation time in milliseconds. The container
        and environment come from the job's first permutation.

        Args:
            config: Build fields plus "username" and "start"; with
                "start": False the build is left in CREATED

        Raises:
            RelationNotFoundError: If the job does not exist
        """
        job = await self.peer_factory("job").get(config.get("job_id"))
        if job is None:
            raise RelationNotFoundError("Job does not exist")

        start = config.get("start", True) is not False
        number = int(time.time() * 1000)
        permutation = (job.permutations or [{}])[0]

        build = await super().create(
            {
                **config,
                "number": number,
                "create_time": datetime.fromtimestamp(number / 1000, UTC).isoformat(),
                "cause": f"Started by user {config.get('username')}",
                "status": "QUEUED" if start else "CREATED",
                "container": permutation.get("image"),
                "environment": {
                    **(config.get("environment") or {}),
                    **(permutation.get("environment") or {}),
                },
                "meta": config.get("meta") or {},
                "stats": {},
            }
        )

        if not start:
            return build

        return await build.start()

    async def list(self, config: Mapping[str, Any] | None = None) -> Any:
        """List builds, sorted by create_time unless sort_by is given."""
        config = dict(config or {})
        config["sort_by"] = config.get("sort_by") or "create_time"

        return await super().list(config)

    async def get_build_statuses(
        self, job_ids: list[Any], offset: int = 0, num_builds: int = 1
    ) -> list[dict[str, Any]]:
        """
        Fetch the most recent build statuses of several jobs at once.

        Args:
            job_ids: Jobs to look up
            offset: Number of most recent builds to skip per job
            num_builds: Number of builds to return per job

        Returns:
            [{"job_id": id, "builds": [row, ...]}, ...] in job_ids order
        """
        rows = await self.query(
            {
                "queries": get_queries(self.datastore.prefix, RawQuery.BUILD_STATUSES),
                "read_only": True,
                "replacements": {
                    "job_ids": list(job_ids),
                    "offset": offset,
                    "max_rank": num_builds + offset,
                },
                "raw_response": True,
            }
        )

        for row in rows:
            if isinstance(row.get("meta"), str):
                row["meta"] = json.loads(row["meta"])

        return [
            {"job_id": job_id, "builds": [row for row in rows if row["job_id"] == job_id]}
            for job_id in job_ids
        ]

    async def get_latest_builds(self, group_event_id: Any, read_only: bool = True) -> list[Build]:
        """Return the latest build of every job started in an event group."""
        return await self.query(
            {
                "queries": get_queries(self.datastore.prefix, RawQuery.LATEST_BUILDS),
                "read_only": read_only,
                "replacements": {"group_event_id": group_event_id},
            }
        )
