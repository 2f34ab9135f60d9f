"""
Declarative entity schemas.

Each schema names the table an entity lives in, the natural-key fields that
identify it, every field that is persisted, and how identity is assigned.
Models and factories read these definitions; nothing here touches storage.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping

from .errors import ValidationError


@dataclass(frozen=True)
class ModelSchema:
    """
    Describes one entity type.

    Attributes:
        name: Model name used to look the schema (and its factory) up
        table_name: Table the datastore keeps the records in
        keys: Natural-key fields; unique per record
        all_keys: Every persisted field, including "id"
        required: Fields that must be present on create
        json_fields: Fields holding structured values (dicts/lists)
        bool_fields: Fields holding booleans
        derived_id: If True, the id is a hash of the natural key instead
            of being assigned by the datastore
    """

    name: str
    table_name: str
    keys: tuple[str, ...]
    all_keys: tuple[str, ...]
    required: tuple[str, ...] = ()
    json_fields: tuple[str, ...] = ()
    bool_fields: tuple[str, ...] = ()
    derived_id: bool = False
    indexes: tuple[str, ...] = field(default=())

    def validate_create(self, data: Mapping[str, Any]) -> None:
        """
        Check that every required field is present.

        Raises:
            ValidationError: If one or more required fields are missing
        """
        missing = [key for key in self.required if data.get(key) is None]
        if missing:
            raise ValidationError(
                f"Missing required fields for {self.name}: {', '.join(missing)}"
            )

    def filter_fields(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Return only the declared fields of data (id excluded)."""
        return {
            key: data[key]
            for key in self.all_keys
            if key != "id" and key in data and data[key] is not None
        }


MODELS: dict[str, ModelSchema] = {
    schema.name: schema
    for schema in (
        ModelSchema(
            name="pipeline",
            table_name="pipelines",
            keys=("scm_uri",),
            all_keys=(
                "id",
                "name",
                "scm_uri",
                "scm_context",
                "scm_repo",
                "create_time",
                "admins",
                "workflow",
                "annotations",
                "last_event_id",
                "config_pipeline_id",
                "state",
            ),
            required=("scm_uri", "scm_context", "admins"),
            json_fields=("scm_repo", "admins", "workflow", "annotations"),
            indexes=("scm_uri",),
        ),
        ModelSchema(
            name="job",
            table_name="jobs",
            keys=("pipeline_id", "name"),
            all_keys=(
                "id",
                "pipeline_id",
                "name",
                "permutations",
                "description",
                "state",
                "state_changer",
                "archived",
                "template_id",
            ),
            required=("pipeline_id", "name"),
            json_fields=("permutations",),
            bool_fields=("archived",),
            derived_id=True,
            indexes=("pipeline_id",),
        ),
        ModelSchema(
            name="build",
            table_name="builds",
            keys=("job_id", "number"),
            all_keys=(
                "id",
                "job_id",
                "event_id",
                "parent_build_id",
                "number",
                "container",
                "cause",
                "sha",
                "create_time",
                "start_time",
                "end_time",
                "status",
                "status_message",
                "meta",
                "environment",
                "username",
                "build_cluster_name",
                "stats",
            ),
            required=("job_id", "number", "status", "create_time"),
            json_fields=("meta", "environment", "stats"),
            indexes=("job_id", "event_id"),
        ),
        ModelSchema(
            name="event",
            table_name="events",
            keys=("create_time", "sha"),
            all_keys=(
                "id",
                "pipeline_id",
                "group_event_id",
                "type",
                "sha",
                "cause_message",
                "creator",
                "create_time",
                "meta",
            ),
            required=("pipeline_id", "sha", "create_time"),
            json_fields=("creator", "meta"),
            indexes=("pipeline_id",),
        ),
        ModelSchema(
            name="user",
            table_name="users",
            keys=("username", "scm_context"),
            all_keys=("id", "username", "scm_context", "token", "settings"),
            required=("username", "scm_context", "token"),
            json_fields=("settings",),
            derived_id=True,
        ),
        ModelSchema(
            name="secret",
            table_name="secrets",
            keys=("pipeline_id", "name"),
            all_keys=("id", "pipeline_id", "name", "value", "allow_in_pr"),
            required=("pipeline_id", "name", "value"),
            bool_fields=("allow_in_pr",),
            derived_id=True,
            indexes=("pipeline_id",),
        ),
        ModelSchema(
            name="token",
            table_name="tokens",
            keys=("hash",),
            all_keys=(
                "id",
                "user_id",
                "pipeline_id",
                "name",
                "description",
                "value",
                "hash",
                "last_used",
            ),
            required=("name", "value", "hash"),
            indexes=("user_id", "pipeline_id", "hash"),
        ),
        ModelSchema(
            name="trigger",
            table_name="triggers",
            keys=("src", "dest"),
            all_keys=("id", "src", "dest"),
            required=("src", "dest"),
            derived_id=True,
            indexes=("src",),
        ),
    )
}


def get_schema(name: str) -> ModelSchema:
    """
    Look up a schema by model name.

    Raises:
        KeyError: If no schema is declared for name
    """
    try:
        return MODELS[name]
    except KeyError:
        raise KeyError(f"No schema declared for model {name!r}") from None
