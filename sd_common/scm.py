"""
Abstract source-control provider interface.

Only entities with permission semantics (users, pipelines, builds) talk to
the SCM provider.
"""

from abc import ABC, abstractmethod
from typing import Any


class ScmProvider(ABC):
    """Resolves repository permissions and metadata on behalf of a user token."""

    @abstractmethod
    async def get_permissions(self, config: dict[str, Any]) -> dict[str, bool]:
        """
        Look up a user's permissions on a repository.

        Args:
            config: {"token", "scm_uri", "scm_context", "scm_repo"}

        Returns:
            {"admin": bool, "push": bool, "pull": bool}
        """
        pass

    @abstractmethod
    async def decorate_url(self, config: dict[str, Any]) -> dict[str, Any]:
        """
        Resolve repository metadata for an SCM uri.

        Args:
            config: {"scm_uri", "scm_context", "token"}

        Returns:
            Repository metadata, at least {"name": str}
        """
        pass
