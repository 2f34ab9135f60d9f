"""
Job factory.
"""

from typing import Any, Mapping

from .base_factory import BaseFactory
from .helper import convert_to_bool, get_annotations
from .job import PR_JOB_NAME, Job

DISABLED_BY_DEFAULT_ANNOTATION = "screwdriver.cd/jobDisabledByDefault"


class JobFactory(BaseFactory):
    model_name = "job"
    model_class = Job

    async def create(self, config: Mapping[str, Any]) -> Job:
        """
        Create a job.

        The job starts DISABLED when its first permutation carries a truthy
        jobDisabledByDefault annotation, unless it is a PR job. New jobs are
        never archived.
        """
        permutations = config.get("permutations") or [{}]
        disabled = convert_to_bool(
            get_annotations(permutations[0], DISABLED_BY_DEFAULT_ANNOTATION)
        )
        is_pr = bool(PR_JOB_NAME.match(config.get("name") or ""))

        return await super().create(
            {
                **config,
                "state": "DISABLED" if disabled and not is_pr else "ENABLED",
                "archived": False,
            }
        )
