"""
Pipeline model.
"""

import asyncio
import logging
from typing import Any

from .base import BaseModel
from .relations import relation
from .trigger import trigger_source

logger = logging.getLogger(__name__)

PAGINATE_PAGE = 1
PAGINATE_COUNT = 50


class Pipeline(BaseModel):
    model_name = "pipeline"

    @property
    def admin_username(self) -> str | None:
        """First listed admin, whose SCM token the pipeline acts with."""
        return next(iter(self.admins or {}), None)

    @relation
    async def admin(self):
        return await self.peer_factory("user").get(
            {"username": self.admin_username, "scm_context": self.scm_context}
        )

    @relation
    async def jobs(self):
        return await self.peer_factory("job").list(
            {
                "params": {"pipeline_id": self.id},
                "paginate": {"page": PAGINATE_PAGE, "count": PAGINATE_COUNT},
            }
        )

    @relation
    async def secrets(self):
        return await self.peer_factory("secret").list(
            {
                "params": {"pipeline_id": self.id},
                "paginate": {"page": PAGINATE_PAGE, "count": PAGINATE_COUNT},
            }
        )

    @relation
    async def tokens(self):
        return await self.peer_factory("token").list({"params": {"pipeline_id": self.id}})

    async def get_token(self) -> str:
        """Return the admin's unsealed SCM token."""
        admin = await self.admin
        return await admin.unseal_token()

    async def get_jobs(
        self,
        type: str | None = None,
        params: dict[str, Any] | None = None,
        paginate: dict[str, Any] | None = None,
    ) -> list[Any]:
        """
        Fetch the jobs of this pipeline.

        Active jobs are ordered by their position in the workflow, followed
        by PR jobs ordered by PR number. Archived jobs come back unsorted.

        Args:
            type: "pipeline" for workflow jobs only, "pr" for PR jobs only
            params: Extra filters; "archived" defaults to False
            paginate: {"page", "count"}; defaults to the first 50
        """
        list_params = {"pipeline_id": self.id, "archived": False, **(params or {})}
        jobs = await self.peer_factory("job").list(
            {
                "params": list_params,
                "paginate": paginate or {"page": PAGINATE_PAGE, "count": PAGINATE_COUNT},
            }
        )

        if list_params["archived"]:
            return jobs

        workflow = list(self.workflow or [])
        workflow_jobs = sorted(
            (job for job in jobs if job.name in workflow),
            key=lambda job: workflow.index(job.name),
        )
        pr_jobs = sorted((job for job in jobs if job.is_pr()), key=lambda job: job.pr_num)

        if type == "pr":
            return pr_jobs
        if type == "pipeline":
            return workflow_jobs

        return workflow_jobs + pr_jobs

    async def get_events(
        self,
        params: dict[str, Any] | None = None,
        sort: str = "descending",
        paginate: dict[str, Any] | None = None,
    ) -> list[Any]:
        """
        Fetch events of this pipeline, newest first by default.

        Args:
            params: Extra filters; "type" defaults to "pipeline"
        """
        return await self.peer_factory("event").list(
            {
                "params": {"pipeline_id": self.id, "type": "pipeline", **(params or {})},
                "sort": sort,
                "paginate": paginate or {"page": PAGINATE_PAGE, "count": PAGINATE_COUNT},
            }
        )

    async def prepare_update(self, changes: dict[str, Any]) -> dict[str, Any]:
        if "scm_uri" not in changes:
            return changes

        # a new repository needs fresh metadata from the SCM
        scm_repo = await self.scm.decorate_url(
            {
                "scm_uri": self.scm_uri,
                "scm_context": self.scm_context,
                "token": await self.get_token(),
            }
        )
        self.load_fields(scm_repo=scm_repo)

        return {**changes, "scm_repo": scm_repo}

    async def remove(self) -> None:
        """
        Remove the pipeline and everything it owns.

        Secrets and tokens go first, then the triggers sourced from its jobs,
        then archived and active jobs (each with its builds), then events,
        and finally the pipeline row.
        """
        secrets, tokens = await asyncio.gather(
            self.secrets.resolve(), self.tokens.resolve()
        )
        await asyncio.gather(*(record.remove() for record in [*secrets, *tokens]))

        await self._remove_triggers()

        job_factory = self.peer_factory("job")
        for archived in (True, False):
            list_config = {
                "params": {"pipeline_id": self.id, "archived": archived},
                "paginate": {"page": PAGINATE_PAGE, "count": PAGINATE_COUNT},
            }
            while jobs := await job_factory.list(list_config):
                await asyncio.gather(*(job.remove() for job in jobs))

        for event_type in ("pipeline", "pr"):
            while events := await self.get_events(params={"type": event_type}):
                await asyncio.gather(*(event.remove() for event in events))

        logger.info(f"Removed pipeline {self.id} with its jobs, events and secrets")
        await super().remove()

    async def _remove_triggers(self) -> None:
        job_factory = self.peer_factory("job")
        jobs = await job_factory.list({"params": {"pipeline_id": self.id}, "raw": True})
        if not jobs:
            return

        sources = [trigger_source(self.id, job["name"]) for job in jobs]
        triggers = await self.peer_factory("trigger").list({"params": {"src": sources}})
        await asyncio.gather(*(trigger.remove() for trigger in triggers))
