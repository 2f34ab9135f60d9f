"""
Abstract datastore interface for record persistence.

This module defines the contract that any storage engine must follow,
allowing easy swapping between SQLite, PostgreSQL, MySQL, etc.

Every operation takes a single request dict scoped to a table. Records
travel as plain dicts keyed by field name.
"""

from abc import ABC, abstractmethod
from typing import Any


class Datastore(ABC):
    """
    Abstract base class for table-scoped storage operations.

    Implementations must provide async-safe access to their tables, handle
    their own connection management, and raise PersistenceError when an
    operation fails.
    """

    #: Prefix prepended to table names by raw queries
    prefix: str = ""

    @abstractmethod
    async def get(self, config: dict[str, Any]) -> dict[str, Any] | None:
        """
        Fetch a single record.

        Args:
            config: {"table": str, "params": {field: value}} where params is
                either {"id": id} or a set of natural-key fields

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def save(self, config: dict[str, Any]) -> dict[str, Any]:
        """
        Insert a new record.

        Args:
            config: {"table": str, "params": {"id": id (optional),
                "data": {field: value}}}

        Returns:
            The stored record, including its id

        Raises:
            PersistenceError: If a record with the same id already exists
        """
        pass

    @abstractmethod
    async def update(self, config: dict[str, Any]) -> dict[str, Any] | None:
        """
        Update fields of an existing record.

        Args:
            config: {"table": str, "params": {"id": id, field: value, ...}}

        Returns:
            The updated record, or None if no record has that id
        """
        pass

    @abstractmethod
    async def remove(self, config: dict[str, Any]) -> None:
        """
        Delete a record.

        Args:
            config: {"table": str, "params": {"id": id}}
        """
        pass

    @abstractmethod
    async def scan(self, config: dict[str, Any]) -> Any:
        """
        List records matching filter, search, time range and paging options.

        Args:
            config: {"table": str, "params": {field: value or [values]}} plus
                any of "paginate" ({"page", "count"}), "sort" ("ascending" or
                "descending"), "sort_by", "search" ({"field", "keyword"}),
                "exclude", "group_by", "start_time", "end_time", "time_key",
                "aggregation_field", "raw", "get_count"

        Returns:
            A list of records, or {"count": int, "rows": [records]} when
            "get_count" is set
        """
        pass

    @abstractmethod
    async def query(self, config: dict[str, Any]) -> list[Any]:
        """
        Run a raw query written for this engine's dialect.

        Args:
            config: {"table": str, "queries": [{"db_type": str, "query": str}],
                "raw_response": bool, "replacements": {name: value}}

        Returns:
            The result rows
        """
        pass
