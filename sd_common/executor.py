"""
Abstract build executor interface.

The executor runs builds somewhere else; the model layer only tells it
when to start and stop.
"""

from abc import ABC, abstractmethod
from typing import Any


class Executor(ABC):
    """Starts and stops build workloads."""

    @abstractmethod
    async def start(self, config: dict[str, Any]) -> None:
        """
        Start a build.

        Args:
            config: {"build_id", "container", "job_id", "pipeline_id", "api_uri"}
        """
        pass

    @abstractmethod
    async def stop(self, config: dict[str, Any]) -> None:
        """
        Stop a build.

        Args:
            config: {"build_id"}
        """
        pass
