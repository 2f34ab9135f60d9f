"""
Generic CRUD orchestration shared by every entity factory.

A factory translates create/get/list/query requests into datastore request
dicts, derives identities for entities keyed by a natural key, and wraps the
raw records it gets back into models bound to itself.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import TYPE_CHECKING, Any, ClassVar, Mapping

from sd_common.errors import ConfigurationError, UnexpectedResponseError
from sd_common.schema import get_schema

from .base import BaseModel

if TYPE_CHECKING:
    from .registry import FactoryRegistry

logger = logging.getLogger(__name__)

PAGINATE_PAGE = 1
PAGINATE_COUNT = 50

# Scan options forwarded to the datastore untouched
SCAN_OPTIONS = (
    "search",
    "sort",
    "sort_by",
    "exclude",
    "group_by",
    "start_time",
    "end_time",
    "time_key",
    "aggregation_field",
    "raw",
    "get_count",
)


class BaseFactory:
    """
    Base class for entity factories.

    Subclasses set ``model_name`` and ``model_class`` and list the
    collaborators they need in ``required_collaborators``. Defining a subclass
    registers it by model name so records can reach peer factories without
    importing them.
    """

    model_name: ClassVar[str] = ""
    model_class: ClassVar[type[BaseModel] | None] = None
    required_collaborators: ClassVar[tuple[str, ...]] = ("datastore",)

    # Wording used when a collaborator is missing
    COLLABORATOR_LABELS: ClassVar[dict[str, str]] = {
        "datastore": "datastore",
        "scm": "scm plugin",
        "executor": "executor",
        "password": "password",
    }

    _types: ClassVar[dict[str, type["BaseFactory"]]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if cls.model_name:
            BaseFactory._types[cls.model_name] = cls

    @classmethod
    def factory_type(cls, model_name: str) -> type["BaseFactory"]:
        """
        Return the factory class registered for a model name.

        Raises:
            KeyError: If no factory handles that model
        """
        try:
            return cls._types[model_name]
        except KeyError:
            raise KeyError(f"No factory registered for model {model_name!r}") from None

    def __init__(
        self,
        config: Mapping[str, Any],
        registry: "FactoryRegistry | None" = None,
    ):
        """
        Initialize the factory.

        Args:
            config: Collaborators; at least "datastore", optionally "scm",
                "executor" and "password"
            registry: Registry that owns this factory
        """
        self.schema = get_schema(self.model_name)
        self.table = self.schema.table_name
        self.datastore = config["datastore"]
        self.scm = config.get("scm")
        self._password = config.get("password")
        self.registry = registry

    def create_class(self, data: Mapping[str, Any]) -> BaseModel:
        """Wrap a raw record into this factory's model."""
        if self.model_class is None:
            raise NotImplementedError("must be implemented by extender")
        return self.model_class(self, data, password=self._password)

    def peer_factory(self, model_name: str) -> BaseFactory:
        """
        Look up the factory of another entity type through the registry.

        Raises:
            ConfigurationError: If this factory has no registry or the peer
                factory was never configured
        """
        if self.registry is None:
            raise ConfigurationError(
                f"{type(self).__name__} is not attached to a registry"
            )
        return self.registry.factory(model_name)

    def generate_id(self, config: Mapping[str, Any]) -> str:
        """
        Derive a deterministic id from the natural-key fields.

        The same natural key always hashes to the same id, so two callers
        creating the same entity collide on the id instead of duplicating it.

        Returns:
            Hex-encoded SHA-1 of the canonical JSON of the key fields
        """
        key_fields = {key: config.get(key) for key in self.schema.keys}
        canonical = json.dumps(
            key_fields, sort_keys=True, separators=(",", ":"), default=str
        )
        return hashlib.sha1(canonical.encode()).hexdigest()

    def _normalize_id(self, value: Any) -> Any:
        """Turn numeric string ids into ints for datastore-assigned ids."""
        if self.schema.derived_id:
            return value
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
        return value

    async def create(self, config: Mapping[str, Any]) -> BaseModel:
        """
        Persist a new record.

        Args:
            config: Field values; undeclared keys are ignored

        Returns:
            The wrapped record

        Raises:
            ValidationError: If a required field is missing
        """
        data = self.schema.filter_fields(config)
        self.schema.validate_create(data)

        params: dict[str, Any] = {"data": data}
        if self.schema.derived_id:
            params["id"] = self.generate_id(data)

        saved = await self.datastore.save({"table": self.table, "params": params})
        logger.debug(f"Created {self.model_name} {saved['id']}")

        return self.create_class({**data, **saved})

    async def get(self, config: Any) -> BaseModel | None:
        """
        Fetch a record by id or by natural key.

        Args:
            config: An id, a mapping containing "id", or a mapping of the
                natural-key fields

        Returns:
            The wrapped record, or None if nothing matches
        """
        if isinstance(config, Mapping) and config.get("id") is None:
            params = {key: config.get(key) for key in self.schema.keys}
        else:
            raw_id = config["id"] if isinstance(config, Mapping) else config
            params = {"id": self._normalize_id(raw_id)}

        data = await self.datastore.get({"table": self.table, "params": params})

        # datastore miss
        if not data:
            return None

        return self.create_class(data)

    async def list(self, config: Mapping[str, Any] | None = None) -> Any:
        """
        List records with filter, paging and search options.

        Args:
            config: Optional mapping with "params", "paginate" ({"page",
                "count"}), and any of the scan options ("search", "sort",
                "sort_by", "exclude", "group_by", "start_time", "end_time",
                "time_key", "aggregation_field", "raw", "get_count")

        Returns:
            A list of records; the raw datastore rows when "raw" is set; or
            {"count": int, "rows": [records]} when "get_count" is set

        Raises:
            UnexpectedResponseError: If the datastore returns any other shape
        """
        config = config or {}
        scan_config: dict[str, Any] = {
            "table": self.table,
            "params": dict(config.get("params") or {}),
        }

        for option in SCAN_OPTIONS:
            if config.get(option):
                scan_config[option] = config[option]

        paginate = config.get("paginate")
        if paginate is not None:
            scan_config["paginate"] = {
                "page": paginate.get("page") or PAGINATE_PAGE,
                "count": paginate.get("count") or PAGINATE_COUNT,
            }

        data = await self.datastore.scan(scan_config)

        if config.get("raw"):
            return data

        if config.get("get_count") and isinstance(data, Mapping) and "rows" in data:
            return {
                "count": data.get("count"),
                "rows": [self.create_class(item) for item in data["rows"]],
            }

        if not isinstance(data, list):
            raise UnexpectedResponseError(
                "Unexpected response from datastore, "
                f"expected Array, got {type(data).__name__}"
            )

        return [self.create_class(item) for item in data]

    async def query(self, config: Mapping[str, Any] | None = None) -> list[Any]:
        """
        Run dialect-specific raw queries through the datastore.

        Args:
            config: {"queries": [{"db_type", "query"}], "raw_response": bool,
                "replacements": {name: value}, "read_only": bool}

        Returns:
            Wrapped records, or the raw rows when "raw_response" is set
        """
        config = config or {}
        query_config: dict[str, Any] = {
            "table": self.table,
            "queries": config.get("queries"),
            "raw_response": config.get("raw_response", False),
            "replacements": config.get("replacements", {}),
        }
        if "read_only" in config:
            query_config["read_only"] = config["read_only"]

        rows = await self.datastore.query(query_config)

        if query_config["raw_response"]:
            return rows

        return [self.create_class(row) for row in rows]
