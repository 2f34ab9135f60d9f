"""
Record wrapper shared by every entity model.

A model holds the raw record returned by the datastore, exposes the fields
declared by its schema as attributes, tracks which of them changed, and sends
mutations back through the datastore of the factory that created it.
"""

import logging
from typing import TYPE_CHECKING, Any, Mapping

from sd_common.schema import ModelSchema, get_schema

if TYPE_CHECKING:
    from .base_factory import BaseFactory

logger = logging.getLogger(__name__)


class BaseModel:
    """
    Base class for records.

    Subclasses set ``model_name`` to the schema they wrap. Declared fields are
    read and written as plain attributes:

        job.archived = True
        await job.update()

    Only fields that were assigned since the last update are sent to the
    datastore. The "id" field is immutable once set.
    """

    model_name: str = ""

    def __init__(
        self,
        factory: "BaseFactory",
        data: Mapping[str, Any],
        password: str | None = None,
    ):
        """
        Wrap a raw record.

        Args:
            factory: Factory that created this record
            data: Raw record; keys not declared by the schema are dropped
            password: Sealing password for records with sealed fields
        """
        schema = get_schema(self.model_name)
        object.__setattr__(self, "_factory", factory)
        object.__setattr__(self, "_password", password)
        object.__setattr__(self, "_schema", schema)
        object.__setattr__(
            self, "_data", {key: data[key] for key in schema.all_keys if key in data}
        )
        object.__setattr__(self, "_dirty", set())

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails
        schema: ModelSchema = self.__dict__["_schema"]
        if name in schema.all_keys:
            return self.__dict__["_data"].get(name)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        if name not in self._schema.all_keys:
            object.__setattr__(self, name, value)
            return
        if name == "id" and self._data.get("id") is not None:
            raise AttributeError("id cannot be changed once assigned")
        self._data[name] = value
        self._dirty.add(name)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self._data.get('id')!r}>"

    @property
    def factory(self) -> "BaseFactory":
        return self._factory

    @property
    def table(self) -> str:
        return self._schema.table_name

    @property
    def datastore(self):
        return self._factory.datastore

    @property
    def scm(self):
        return self._factory.scm

    def peer_factory(self, model_name: str) -> "BaseFactory":
        """
        Look up the factory of another entity type through the registry.

        Raises:
            ConfigurationError: If this record's factory has no registry or the
                peer factory was never configured
        """
        return self._factory.peer_factory(model_name)

    def is_dirty(self, name: str) -> bool:
        """Return True if the field was assigned since the last update."""
        return name in self._dirty

    def load_fields(self, **fields: Any) -> None:
        """Set declared fields without marking them dirty."""
        for name, value in fields.items():
            if name not in self._schema.all_keys:
                raise AttributeError(f"{name!r} is not a field of {self.model_name}")
            self._data[name] = value

    def to_json(self) -> dict[str, Any]:
        """Convert the record to a plain dict of its declared fields."""
        return dict(self._data)

    async def prepare_update(self, changes: dict[str, Any]) -> dict[str, Any]:
        """Hook for subclasses to transform dirty fields before they are written."""
        return changes

    async def update(self) -> "BaseModel":
        """
        Write dirty fields to the datastore.

        Returns:
            This record
        """
        if not self._dirty:
            return self

        changes = {name: self._data.get(name) for name in self._dirty}
        changes = await self.prepare_update(changes)

        logger.debug(f"Updating {self.table} {self.id}: {sorted(changes)}")
        await self.datastore.update(
            {"table": self.table, "params": {"id": self.id, **changes}}
        )
        self._dirty.clear()

        return self

    async def remove(self) -> None:
        """Delete this record from the datastore."""
        logger.debug(f"Removing {self.table} {self.id}")
        await self.datastore.remove({"table": self.table, "params": {"id": self.id}})
