"""Trigger edge between a source job reference and a destination."""

from .base import BaseModel

TRIGGER_PREFIX = "~sd@"


def trigger_source(pipeline_id, job_name: str) -> str:
    """
    Build the fully qualified reference of a job.

    Example:
        trigger_source(123, "main") == "~sd@123:main"
    """
    return f"{TRIGGER_PREFIX}{pipeline_id}:{job_name}"


class Trigger(BaseModel):
    model_name = "trigger"
