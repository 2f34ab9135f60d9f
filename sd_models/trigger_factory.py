"""
Trigger factory and the trigger graph of a pipeline.
"""

import logging
from typing import Any

from .base_factory import BaseFactory
from .trigger import Trigger, trigger_source

logger = logging.getLogger(__name__)

DEFAULT_JOB_TYPE = "pipeline"


class TriggerFactory(BaseFactory):
    model_name = "trigger"
    model_class = Trigger

    async def get_triggers(
        self, pipeline_id: Any, type: str | None = None
    ) -> list[dict[str, Any]]:
        """
        Compute the downstream triggers of every job in a pipeline.

        The jobs of the requested type are resolved through the pipeline,
        and the edges of all of them are fetched in a single lookup keyed by
        their source references.

        Args:
            pipeline_id: Pipeline to resolve
            type: "pipeline" (default) or "pr"

        Returns:
            [{"job_name": str, "triggers": [dest, ...]}, ...] in job order;
            an empty list if the pipeline does not exist
        """
        pipeline = await self.peer_factory("pipeline").get(pipeline_id)
        if pipeline is None:
            logger.debug(f"Pipeline {pipeline_id} not found, no triggers")
            return []

        jobs = await pipeline.get_jobs(type=type or DEFAULT_JOB_TYPE)
        if not jobs:
            return []

        sources = [trigger_source(pipeline_id, job.name) for job in jobs]
        edges = await self.list({"params": {"src": sources}})

        destinations: dict[str, list[str]] = {source: [] for source in sources}
        for edge in edges:
            # stale edges have no matching job
            if edge.src in destinations:
                destinations[edge.src].append(edge.dest)

        return [
            {"job_name": job.name, "triggers": destinations[source]}
            for job, source in zip(jobs, sources)
        ]
