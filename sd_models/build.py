"""
Build model.
"""

import logging

from sd_common.errors import RelationNotFoundError

from .base import BaseModel
from .relations import relation

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("ABORTED", "FAILURE", "SUCCESS")


class Build(BaseModel):
    model_name = "build"

    @property
    def executor(self):
        return self.factory.executor

    def is_done(self) -> bool:
        """Return True if the build reached a terminal status."""
        return self.status in TERMINAL_STATUSES

    @relation
    async def job(self):
        return await self.peer_factory("job").get(self.job_id)

    @relation
    async def pipeline(self):
        """
        Pipeline the build's job belongs to.

        Raises:
            RelationNotFoundError: If the job or its pipeline no longer exists
        """
        job = await self.job
        if job is None:
            raise RelationNotFoundError("Job does not exist")

        pipeline = await job.pipeline
        if pipeline is None:
            raise RelationNotFoundError("Pipeline does not exist")

        return pipeline

    @relation
    async def secrets(self):
        job = await self.job
        if job is None:
            raise RelationNotFoundError("Job does not exist")

        return await job.secrets

    @relation
    async def user(self):
        if not self.username:
            return None
        users = await self.peer_factory("user").list(
            {"params": {"username": self.username}, "paginate": {"count": 1}}
        )
        return users[0] if users else None

    async def start(self) -> "Build":
        """Ask the executor to run this build."""
        pipeline = await self.pipeline
        job = await self.job

        await self.executor.start(
            {
                "build_id": self.id,
                "container": self.container,
                "job_id": job.id,
                "pipeline_id": pipeline.id,
                "api_uri": self.factory.api_uri,
            }
        )
        logger.info(f"Started build {self.id} of job {job.id}")

        return self

    async def stop(self) -> "Build":
        """Ask the executor to stop this build."""
        await self.executor.stop({"build_id": self.id})
        logger.info(f"Stopped build {self.id}")

        return self

    async def update(self) -> "Build":
        """
        Write changes, stopping the build first if it just finished.
        """
        if self.is_dirty("status") and self.is_done():
            await self.stop()

        await super().update()
        return self
