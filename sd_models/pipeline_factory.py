"""
Pipeline factory.
"""

import logging
from typing import Any, Mapping

from sd_common.errors import RelationNotFoundError

from .base_factory import BaseFactory
from .helper import now_iso
from .pipeline import Pipeline

logger = logging.getLogger(__name__)


class PipelineFactory(BaseFactory):
    model_name = "pipeline"
    model_class = Pipeline
    required_collaborators = ("datastore", "scm")

    def __init__(self, config: Mapping[str, Any], registry=None):
        super().__init__(config, registry=registry)
        self.external_join = bool(config.get("external_join", False))

    async def create(self, config: Mapping[str, Any]) -> Pipeline:
        """
        Create a pipeline.

        The first admin's SCM token is used to decorate the repository URL;
        the resulting repository metadata names the pipeline.

        Raises:
            RelationNotFoundError: If the first admin is not a known user
        """
        admins = config.get("admins") or {}
        username = next(iter(admins), None)

        user = await self.peer_factory("user").get(
            {"username": username, "scm_context": config.get("scm_context")}
        )
        if user is None:
            raise RelationNotFoundError(f"User {username} does not exist")

        scm_repo = await self.scm.decorate_url(
            {
                "scm_uri": config.get("scm_uri"),
                "scm_context": config.get("scm_context"),
                "token": await user.unseal_token(),
            }
        )

        return await super().create(
            {
                **config,
                "create_time": now_iso(),
                "scm_repo": scm_repo,
                "name": scm_repo.get("name"),
            }
        )

    async def get(self, config: Any) -> Pipeline | None:
        """
        Fetch a pipeline by id, by scm_uri, or by an access token.

        With {"access_token": value} the token is looked up by value, its
        last_used time is stamped, and the pipeline it belongs to is returned.
        """
        if not isinstance(config, Mapping) or not config.get("access_token"):
            return await super().get(config)

        token = await self.peer_factory("token").get_by_value(config["access_token"])
        if token is None:
            return None

        token.last_used = now_iso()
        await token.update()

        return await super().get(token.pipeline_id)
