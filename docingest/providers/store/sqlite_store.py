"""SQLite-backed structured store.

Persists ``documents`` and ``document_chunks`` rows to a local SQLite
database (default ``data/docingest.db``) using ``aiosqlite`` for async I/O.

Column encoding:
    - ``metadata`` and ``embedding`` are stored as JSON text
    - ``is_private`` is stored as 0/1 and read back as ``bool``
    - datetimes are stored as ISO-8601 text

Chunks reference their document with ``ON DELETE CASCADE``; foreign keys are
switched on for every connection.  Table and column names are checked
against a fixed schema before any SQL is built; values always travel as
bound parameters.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite
import structlog

from docingest.interfaces.structured_store import Filter, IStructuredStore, OrderBy, Row
from docingest.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/docingest.db")

_CREATE_DOCUMENTS_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    id          TEXT    PRIMARY KEY,
    title       TEXT    NOT NULL,
    content     TEXT    NOT NULL DEFAULT '',
    user_id     TEXT    NOT NULL,
    team_id     TEXT,
    department  TEXT,
    is_private  INTEGER NOT NULL DEFAULT 0,
    metadata    TEXT    NOT NULL DEFAULT '{}',
    created_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_CREATE_CHUNKS_SQL = """\
CREATE TABLE IF NOT EXISTS document_chunks (
    id           TEXT    PRIMARY KEY,
    document_id  TEXT    NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    chunk_index  INTEGER NOT NULL,
    content      TEXT    NOT NULL,
    embedding    TEXT,
    metadata     TEXT    NOT NULL DEFAULT '{}',
    user_id      TEXT    NOT NULL,
    team_id      TEXT,
    department   TEXT,
    is_private   INTEGER NOT NULL DEFAULT 0,
    created_at   TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    UNIQUE(document_id, chunk_index)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_user ON documents(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_documents_team ON documents(team_id);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON document_chunks(document_id);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_user ON document_chunks(user_id);",
]

_TABLE_COLUMNS: dict[str, frozenset[str]] = {
    "documents": frozenset(
        {
            "id", "title", "content", "user_id", "team_id", "department",
            "is_private", "metadata", "created_at", "updated_at",
        }
    ),
    "document_chunks": frozenset(
        {
            "id", "document_id", "chunk_index", "content", "embedding", "metadata",
            "user_id", "team_id", "department", "is_private", "created_at",
        }
    ),
}

_JSON_COLUMNS = frozenset({"metadata", "embedding"})
_BOOL_COLUMNS = frozenset({"is_private"})

_COMPARISON_SQL = {"gt": ">", "gte": ">=", "lt": "<", "lte": "<="}


class SQLiteStructuredStore(IStructuredStore):
    """SQLite-backed implementation of :class:`IStructuredStore`."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)
        self._initialized = False

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_DOCUMENTS_SQL)
            await db.execute(_CREATE_CHUNKS_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        self._initialized = True
        logger.info("structured_store_initialized", path=str(self._db_path))

    def get_provider_name(self) -> str:
        return "sqlite"

    # ------------------------------------------------------------------
    # IStructuredStore implementation
    # ------------------------------------------------------------------

    async def insert(self, table: str, rows: list[Row]) -> list[Row]:
        if not rows:
            return []
        columns = self._check_columns(table, {key for row in rows for key in row})
        ordered = sorted(columns)
        sql = (
            f"INSERT INTO {table} ({', '.join(ordered)}) "
            f"VALUES ({', '.join('?' for _ in ordered)})"
        )
        params = [tuple(_encode(col, row.get(col)) for col in ordered) for row in rows]

        async with self._connect(f"insert into {table}") as db:
            await db.executemany(sql, params)
            await db.commit()
        logger.debug("rows_inserted", table=table, count=len(rows))
        return rows

    async def select(
        self,
        table: str,
        filters: list[Filter] | None = None,
        order_by: list[OrderBy] | None = None,
        limit: int | None = None,
        any_of: list[list[Filter]] | None = None,
    ) -> list[Row]:
        self._check_columns(table, set())
        where, params = self._where(table, filters or [], any_of)
        sql = f"SELECT * FROM {table}{where}"
        if order_by:
            self._check_columns(table, {o.column for o in order_by})
            sql += " ORDER BY " + ", ".join(
                f"{o.column} {'DESC' if o.descending else 'ASC'}" for o in order_by
            )
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        async with self._connect(f"select from {table}") as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [_decode_row(dict(r)) for r in rows]

    async def update(self, table: str, values: Row, filters: list[Filter]) -> int:
        if not values:
            return 0
        self._check_columns(table, set(values))
        assignments = ", ".join(f"{col} = ?" for col in values)
        where, params = self._where(table, filters, None)
        sql = f"UPDATE {table} SET {assignments}{where}"
        bound = [_encode(col, v) for col, v in values.items()] + params

        async with self._connect(f"update {table}") as db:
            cursor = await db.execute(sql, bound)
            await db.commit()
            count = cursor.rowcount
        logger.debug("rows_updated", table=table, count=count)
        return count

    async def delete(self, table: str, filters: list[Filter]) -> int:
        self._check_columns(table, set())
        where, params = self._where(table, filters, None)
        async with self._connect(f"delete from {table}") as db:
            cursor = await db.execute(f"DELETE FROM {table}{where}", params)
            await db.commit()
            count = cursor.rowcount
        logger.debug("rows_deleted", table=table, count=count)
        return count

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _connect(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection; wrap any sqlite failure in :class:`StorageError`.

        Uncommitted work is rolled back when the connection closes.
        """
        if not self._initialized:
            await self.initialize()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                await db.execute("PRAGMA foreign_keys = ON")
                yield db
        except aiosqlite.Error as exc:
            logger.error("storage_operation_failed", operation=operation, error=str(exc))
            raise StorageError(
                f"SQLite {operation} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def _check_columns(self, table: str, columns: set[str]) -> set[str]:
        known = _TABLE_COLUMNS.get(table)
        if known is None:
            raise StorageError(f"Unknown table: {table}", provider_name=self.get_provider_name())
        unknown = columns - known
        if unknown:
            raise StorageError(
                f"Unknown column(s) for {table}: {', '.join(sorted(unknown))}",
                provider_name=self.get_provider_name(),
            )
        return columns

    def _where(
        self,
        table: str,
        filters: list[Filter],
        any_of: list[list[Filter]] | None,
    ) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []

        for f in filters:
            clause, values = self._filter_sql(table, f)
            clauses.append(clause)
            params.extend(values)

        if any_of:
            groups: list[str] = []
            for group in any_of:
                parts: list[str] = []
                for f in group:
                    clause, values = self._filter_sql(table, f)
                    parts.append(clause)
                    params.extend(values)
                groups.append("(" + " AND ".join(parts or ["1"]) + ")")
            clauses.append("(" + " OR ".join(groups) + ")")

        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    def _filter_sql(self, table: str, f: Filter) -> tuple[str, list[Any]]:
        self._check_columns(table, {f.column})
        col = f.column

        if f.op == "eq":
            return f"{col} IS ?", [_encode_scalar(f.value)]
        if f.op == "neq":
            return f"{col} IS NOT ?", [_encode_scalar(f.value)]
        if f.op in _COMPARISON_SQL:
            return f"{col} {_COMPARISON_SQL[f.op]} ?", [_encode_scalar(f.value)]
        if f.op == "in":
            values = list(f.value or [])
            if not values:
                return "0", []
            return f"{col} IN ({', '.join('?' for _ in values)})", [
                _encode_scalar(v) for v in values
            ]
        if f.op == "ilike":
            return f"LOWER({col}) LIKE LOWER(?) ESCAPE '\\'", [f.value]
        if f.op == "contains":
            if col not in _JSON_COLUMNS or not isinstance(f.value, dict):
                raise StorageError(
                    f"'contains' needs a JSON column and a dict value, got {col}",
                    provider_name=self.get_provider_name(),
                )
            parts: list[str] = []
            params: list[Any] = []
            for key, value in f.value.items():
                path = '$."' + str(key).replace('"', '') + '"'
                if isinstance(value, (dict, list)):
                    parts.append(f"json_extract({col}, ?) = json(?)")
                    params.extend([path, json.dumps(value, separators=(",", ":"))])
                else:
                    parts.append(f"json_extract({col}, ?) IS ?")
                    params.extend([path, _encode_scalar(value)])
            return "(" + " AND ".join(parts or ["1"]) + ")", params

        raise StorageError(f"Unsupported filter op: {f.op}", provider_name=self.get_provider_name())


def _encode_scalar(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _encode(column: str, value: Any) -> Any:
    if column in _JSON_COLUMNS:
        return None if value is None else json.dumps(value)
    return _encode_scalar(value)


def _decode_row(row: Row) -> Row:
    for col in _JSON_COLUMNS:
        if col in row and isinstance(row[col], str):
            row[col] = json.loads(row[col])
    for col in _BOOL_COLUMNS:
        if col in row and row[col] is not None:
            row[col] = bool(row[col])
    return row
