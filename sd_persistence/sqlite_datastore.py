"""
SQLite implementation of the datastore.

Uses aiosqlite for async operations. Every entity schema gets one table with
one column per declared field; structured fields are stored as JSON text.
Can be replaced with PostgreSQL/MySQL implementations of the same interface.
"""

import json
import logging
import re
from contextlib import contextmanager
from typing import Any, Iterable, Iterator

import aiosqlite

from sd_common.datastore import Datastore
from sd_common.errors import PersistenceError, ValidationError
from sd_common.schema import MODELS, ModelSchema

logger = logging.getLogger(__name__)

DIALECT = "sqlite"

# Named placeholders in raw queries
PLACEHOLDER = re.compile(r"(?<!:):(\w+)")


def _quote(identifier: str) -> str:
    return f'"{identifier}"'


class SQLiteDatastore(Datastore):
    """
    SQLite-based record storage.

    Tables use datastore-assigned integer ids unless the schema derives its
    ids, in which case the id column holds the derived text id. The natural
    key of every schema is enforced with a unique index.
    """

    dialect = DIALECT

    def __init__(
        self,
        db_path: str = "sd_models.db",
        prefix: str = "",
        schemas: Iterable[ModelSchema] | None = None,
    ):
        """
        Initialize the SQLite datastore.

        Args:
            db_path: Path to the SQLite database file
            prefix: Prefix prepended to every table name
            schemas: Entity schemas to store; defaults to every known model
        """
        self.db_path = db_path
        self.prefix = prefix
        self.schemas = {
            schema.table_name: schema
            for schema in (schemas if schemas is not None else MODELS.values())
        }
        self._connection: aiosqlite.Connection | None = None

    @contextmanager
    def _errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except aiosqlite.Error as e:
            raise PersistenceError(f"{action} failed: {e}") from e

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            with self._errors("Connect"):
                self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row
        return self._connection

    def _schema(self, table: str) -> ModelSchema:
        try:
            return self.schemas[table]
        except KeyError:
            raise ValidationError(f"Unknown table: {table}") from None

    def _table(self, table: str) -> str:
        return _quote(f"{self.prefix}{table}")

    def _column(self, schema: ModelSchema, field: str) -> str:
        """Quote a field name, or build a JSON path for "field.path"."""
        name, _, path = field.partition(".")
        if name not in schema.all_keys:
            raise ValidationError(f"Unknown field for {schema.name}: {name}")
        if path:
            if not re.fullmatch(r"[\w.]+", path):
                raise ValidationError(f"Invalid field path: {field}")
            return f"json_extract({_quote(name)}, '$.{path}')"
        return _quote(name)

    async def initialize(self) -> None:
        """
        Create tables and indexes if they don't exist.

        Schema, per entity:
        - id: INTEGER PRIMARY KEY AUTOINCREMENT, or TEXT PRIMARY KEY for
          derived ids
        - one untyped column per declared field
        - a unique index over the natural key, plus the declared indexes
        """
        conn = await self._get_connection()

        with self._errors("Initialize"):
            for table, schema in self.schemas.items():
                id_column = (
                    '"id" TEXT PRIMARY KEY'
                    if schema.derived_id
                    else '"id" INTEGER PRIMARY KEY AUTOINCREMENT'
                )
                columns = [id_column] + [
                    _quote(key) for key in schema.all_keys if key != "id"
                ]
                await conn.execute(
                    f"CREATE TABLE IF NOT EXISTS {self._table(table)} ({', '.join(columns)})"
                )

                name = f"{self.prefix}{table}"
                await conn.execute(
                    f"CREATE UNIQUE INDEX IF NOT EXISTS {_quote(f'uq_{name}_key')} "
                    f"ON {self._table(table)} ({', '.join(map(_quote, schema.keys))})"
                )
                for index in schema.indexes:
                    await conn.execute(
                        f"CREATE INDEX IF NOT EXISTS {_quote(f'idx_{name}_{index}')} "
                        f"ON {self._table(table)} ({_quote(index)})"
                    )

            await conn.commit()

        logger.info(f"Initialized {len(self.schemas)} tables in {self.db_path}")

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    def _encode(self, schema: ModelSchema, field: str, value: Any) -> Any:
        if value is None:
            return None
        if field in schema.json_fields:
            return json.dumps(value)
        if field in schema.bool_fields:
            return 1 if value else 0
        return value

    def _decode(self, schema: ModelSchema, row: Any) -> dict[str, Any]:
        record = dict(row)
        for field in schema.json_fields:
            if isinstance(record.get(field), str):
                record[field] = json.loads(record[field])
        for field in schema.bool_fields:
            if record.get(field) is not None:
                record[field] = bool(record[field])
        return record

    def _where(
        self, schema: ModelSchema, params: dict[str, Any]
    ) -> tuple[list[str], list[Any]]:
        """Translate equality params into WHERE clauses and bound values."""
        clauses: list[str] = []
        values: list[Any] = []

        for field, value in params.items():
            column = self._column(schema, field)
            if value is None:
                clauses.append(f"{column} IS NULL")
            elif isinstance(value, (list, tuple, set)):
                if not value:
                    # nothing can match an empty set
                    clauses.append("0")
                    continue
                clauses.append(f"{column} IN ({', '.join('?' for _ in value)})")
                values.extend(self._encode(schema, field, item) for item in value)
            else:
                clauses.append(f"{column} = ?")
                values.append(self._encode(schema, field, value))

        return clauses, values

    async def get(self, config: dict[str, Any]) -> dict[str, Any] | None:
        """
        Fetch a single record.

        Args:
            config: {"table": str, "params": {field: value}}

        Returns:
            The record if found, None otherwise
        """
        schema = self._schema(config["table"])
        clauses, values = self._where(schema, config.get("params") or {})
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""

        conn = await self._get_connection()
        with self._errors(f"Get from {config['table']}"):
            cursor = await conn.execute(
                f"SELECT * FROM {self._table(config['table'])}{where} LIMIT 1", values
            )
            row = await cursor.fetchone()

        if row is None:
            return None

        return self._decode(schema, row)

    async def save(self, config: dict[str, Any]) -> dict[str, Any]:
        """
        Insert a new record.

        Args:
            config: {"table": str, "params": {"id": id (optional), "data": {...}}}

        Returns:
            The stored record, including its id

        Raises:
            PersistenceError: If the id or natural key already exists
        """
        schema = self._schema(config["table"])
        params = config["params"]
        data = {key: value for key, value in params["data"].items() if key != "id"}
        if params.get("id") is not None:
            data = {"id": params["id"], **data}

        for field in data:
            self._column(schema, field)

        columns = ", ".join(map(_quote, data))
        placeholders = ", ".join("?" for _ in data)
        values = [self._encode(schema, field, value) for field, value in data.items()]

        conn = await self._get_connection()
        with self._errors(f"Save to {config['table']}"):
            cursor = await conn.execute(
                f"INSERT INTO {self._table(config['table'])} ({columns}) VALUES ({placeholders})",
                values,
            )
            await conn.commit()

        record_id = data.get("id", cursor.lastrowid)
        logger.debug(f"Saved {config['table']} {record_id}")

        return {**data, "id": record_id}

    async def update(self, config: dict[str, Any]) -> dict[str, Any] | None:
        """
        Update fields of a record by id.

        Args:
            config: {"table": str, "params": {"id": id, field: value, ...}}

        Returns:
            The updated record, or None if no record has that id
        """
        schema = self._schema(config["table"])
        fields = dict(config["params"])
        record_id = fields.pop("id")

        if fields:
            assignments = ", ".join(f"{self._column(schema, field)} = ?" for field in fields)
            values = [self._encode(schema, field, value) for field, value in fields.items()]
            values.append(record_id)

            conn = await self._get_connection()
            with self._errors(f"Update {config['table']}"):
                await conn.execute(
                    f'UPDATE {self._table(config["table"])} SET {assignments} WHERE "id" = ?',
                    values,
                )
                await conn.commit()

        return await self.get({"table": config["table"], "params": {"id": record_id}})

    async def remove(self, config: dict[str, Any]) -> None:
        """
        Delete a record by id.

        Args:
            config: {"table": str, "params": {"id": id}}
        """
        self._schema(config["table"])
        conn = await self._get_connection()
        with self._errors(f"Remove from {config['table']}"):
            await conn.execute(
                f'DELETE FROM {self._table(config["table"])} WHERE "id" = ?',
                (config["params"]["id"],),
            )
            await conn.commit()

    async def scan(self, config: dict[str, Any]) -> Any:
        """
        List records.

        Args:
            config: {"table": str, "params": {field: value | [values]}} plus
                optional "paginate" ({"page", "count"}), "sort"
                ("ascending"/"descending", default descending), "sort_by"
                (default "id"; "field.path" sorts by a JSON member),
                "search" ({"field": str | [str], "keyword": str}),
                "start_time"/"end_time" (on "time_key", default
                "create_time"), "exclude" ([fields]), "group_by" ([fields])
                with optional "aggregation_field", and "get_count"

        Returns:
            A list of records, or {"count": int, "rows": [records]} when
            "get_count" is set
        """
        table = config["table"]
        schema = self._schema(table)
        clauses, values = self._where(schema, config.get("params") or {})

        search = config.get("search")
        if search:
            fields = search["field"]
            if isinstance(fields, str):
                fields = [fields]
            likes = [f"{self._column(schema, field)} LIKE ?" for field in fields]
            clauses.append(f"({' OR '.join(likes)})")
            values.extend(search["keyword"] for _ in fields)

        if config.get("start_time") or config.get("end_time"):
            time_column = self._column(schema, config.get("time_key") or "create_time")
        if config.get("start_time"):
            clauses.append(f"{time_column} >= ?")
            values.append(config["start_time"])
        if config.get("end_time"):
            clauses.append(f"{time_column} <= ?")
            values.append(config["end_time"])

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""

        group_by = config.get("group_by")
        if group_by:
            selected = [self._column(schema, field) for field in group_by]
            if config.get("aggregation_field"):
                aggregated = self._column(schema, config["aggregation_field"])
                selected.append(f'COUNT({aggregated}) AS "count"')
            group = f" GROUP BY {', '.join(self._column(schema, field) for field in group_by)}"
        else:
            excluded = set(config.get("exclude") or ())
            selected = [_quote(key) for key in schema.all_keys if key not in excluded]
            group = ""

        direction = "ASC" if config.get("sort") == "ascending" else "DESC"
        order = f" ORDER BY {self._column(schema, config.get('sort_by') or 'id')} {direction}"
        if group_by:
            order = ""

        limit = ""
        paginate = config.get("paginate")
        if paginate:
            limit = " LIMIT ? OFFSET ?"

        sql = f"SELECT {', '.join(selected)} FROM {self._table(table)}{where}{group}{order}{limit}"
        query_values = list(values)
        if paginate:
            query_values += [paginate["count"], (paginate["page"] - 1) * paginate["count"]]

        conn = await self._get_connection()
        with self._errors(f"Scan {table}"):
            cursor = await conn.execute(sql, query_values)
            rows = [self._decode(schema, row) for row in await cursor.fetchall()]

            if not config.get("get_count"):
                return rows

            cursor = await conn.execute(
                f"SELECT COUNT(*) FROM {self._table(table)}{where}", values
            )
            (count,) = await cursor.fetchone()

        return {"count": count, "rows": rows}

    def _bind(self, query: str, replacements: dict[str, Any]) -> tuple[str, list[Any]]:
        """Turn :name placeholders into positional ones, expanding lists."""
        values: list[Any] = []

        def substitute(match: re.Match) -> str:
            name = match.group(1)
            if name not in replacements:
                raise ValidationError(f"Missing replacement for :{name}")
            value = replacements[name]
            if isinstance(value, (list, tuple)):
                values.extend(value)
                return ", ".join("?" for _ in value) or "NULL"
            values.append(value)
            return "?"

        return PLACEHOLDER.sub(substitute, query), values

    async def query(self, config: dict[str, Any]) -> list[dict[str, Any]]:
        """
        Run the SQLite variant of a raw query.

        Args:
            config: {"table": str, "queries": [{"db_type", "query"}],
                "raw_response": bool, "replacements": {name: value}}

        Returns:
            Rows as dicts; structured fields of the table are decoded unless
            "raw_response" is set

        Raises:
            PersistenceError: If no query is provided for this dialect
        """
        query = next(
            (q["query"] for q in config.get("queries") or [] if q["db_type"] == self.dialect),
            None,
        )
        if query is None:
            raise PersistenceError(f"No {self.dialect} query provided")

        sql, values = self._bind(query, config.get("replacements") or {})

        conn = await self._get_connection()
        with self._errors(f"Query {config.get('table')}"):
            cursor = await conn.execute(sql, values)
            rows = await cursor.fetchall()

        if config.get("raw_response"):
            return [dict(row) for row in rows]

        schema = self._schema(config["table"])
        return [self._decode(schema, row) for row in rows]
