"""Schema introspection queries used by the tree and the structure viewer."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .models import ColumnInfo, ConnectionOptions, TableInfo
from .query import QueryExecutionError, QueryExecutor
from .sqltext import InvalidIdentifierError, quote_identifier

LOG = logging.getLogger(__name__)

SYSTEM_DATABASES = frozenset({"information_schema", "mysql", "performance_schema", "sys"})

_TABLES_SQL = (
    "SELECT TABLE_NAME, TABLE_COMMENT FROM information_schema.TABLES "
    "WHERE TABLE_SCHEMA = %s LIMIT %s"
)
_COLUMNS_SQL = (
    "SELECT COLUMN_NAME, COLUMN_TYPE, COLUMN_COMMENT, COLUMN_KEY, IS_NULLABLE, "
    "COLUMN_DEFAULT, EXTRA FROM information_schema.COLUMNS "
    "WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s ORDER BY ORDINAL_POSITION"
)
_KEYS_SQL = (
    "SELECT k.COLUMN_NAME, k.REFERENCED_TABLE_NAME, k.REFERENCED_COLUMN_NAME "
    "FROM information_schema.TABLE_CONSTRAINTS t "
    "JOIN information_schema.KEY_COLUMN_USAGE k "
    "ON t.CONSTRAINT_NAME = k.CONSTRAINT_NAME "
    "AND t.TABLE_SCHEMA = k.TABLE_SCHEMA AND t.TABLE_NAME = k.TABLE_NAME "
    "WHERE t.CONSTRAINT_TYPE = %s AND t.TABLE_SCHEMA = %s AND t.TABLE_NAME = %s "
    "ORDER BY k.ORDINAL_POSITION"
)
_INDEXES_SQL = (
    "SELECT INDEX_NAME, COLUMN_NAME, NON_UNIQUE FROM information_schema.STATISTICS "
    "WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s ORDER BY INDEX_NAME, SEQ_IN_INDEX"
)
_TABLE_COMMENT_SQL = (
    "SELECT TABLE_COMMENT FROM information_schema.TABLES "
    "WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s"
)


@dataclass(frozen=True, slots=True)
class ForeignKeyInfo:
    column: str
    referenced_table: str
    referenced_column: str


@dataclass(frozen=True, slots=True)
class IndexInfo:
    """An index and its columns in key order."""

    name: str
    columns: tuple[str, ...]
    unique: bool


@dataclass(frozen=True, slots=True)
class StructureReport:
    """Everything the structure document shows for one table."""

    database: str
    table: str
    comment: str = ""
    columns: tuple[ColumnInfo, ...] = ()
    primary_keys: tuple[str, ...] = ()
    foreign_keys: tuple[ForeignKeyInfo, ...] = ()
    indexes: tuple[IndexInfo, ...] = ()
    sample_sql: str = ""
    sample_rows: tuple[dict[str, object], ...] = ()


class SchemaCatalog:
    """Thin wrapper issuing information_schema queries through an executor.

    Nothing is cached; every call opens its own connection via the executor.
    """

    def __init__(self, executor: QueryExecutor) -> None:
        self._executor = executor

    async def list_databases(self, options: ConnectionOptions) -> list[str]:
        rows = await self._executor.fetch(options.with_database(None), "SHOW DATABASES")
        names = [str(_first_value(row)) for row in rows]
        return [name for name in names if name not in SYSTEM_DATABASES]

    async def list_tables(
        self, options: ConnectionOptions, database: str, limit: int = 500
    ) -> list[TableInfo]:
        rows = await self._executor.fetch(options, _TABLES_SQL, (database, int(limit)))
        return [
            TableInfo(name=str(row["TABLE_NAME"]), comment=str(row.get("TABLE_COMMENT") or ""))
            for row in rows
        ]

    async def list_columns(
        self, options: ConnectionOptions, database: str, table: str
    ) -> list[ColumnInfo]:
        rows = await self._executor.fetch(options, _COLUMNS_SQL, (database, table))
        return [_column_from_row(row) for row in rows]

    async def table_comment(self, options: ConnectionOptions, database: str, table: str) -> str:
        """Best-effort lookup; failures yield an empty comment."""

        try:
            rows = await self._executor.fetch(options, _TABLE_COMMENT_SQL, (database, table))
        except QueryExecutionError as exc:
            LOG.debug("Table comment unavailable", extra={"table": f"{database}.{table}", "reason": str(exc)})
            return ""
        if not rows:
            return ""
        return str(rows[0].get("TABLE_COMMENT") or "")

    async def table_structure(
        self, options: ConnectionOptions, database: str, table: str
    ) -> StructureReport:
        columns = await self.list_columns(options, database, table)
        primary = await self._executor.fetch(options, _KEYS_SQL, ("PRIMARY KEY", database, table))
        foreign = await self._executor.fetch(options, _KEYS_SQL, ("FOREIGN KEY", database, table))
        index_rows = await self._executor.fetch(options, _INDEXES_SQL, (database, table))
        comment = await self.table_comment(options, database, table)

        primary_keys = tuple(str(row["COLUMN_NAME"]) for row in primary)
        sample_sql = sample_rows_sql(database, table, primary_keys, columns)
        sample_rows = await self._executor.fetch(options, sample_sql)
        return StructureReport(
            database=database,
            table=table,
            comment=comment,
            columns=tuple(columns),
            primary_keys=primary_keys,
            foreign_keys=tuple(
                ForeignKeyInfo(
                    column=str(row["COLUMN_NAME"]),
                    referenced_table=str(row.get("REFERENCED_TABLE_NAME") or ""),
                    referenced_column=str(row.get("REFERENCED_COLUMN_NAME") or ""),
                )
                for row in foreign
            ),
            indexes=_group_indexes(index_rows),
            sample_sql=sample_sql,
            sample_rows=tuple(sample_rows),
        )


def sample_rows_sql(
    database: str,
    table: str,
    primary_keys: tuple[str, ...],
    columns: list[ColumnInfo],
    limit: int = 5,
) -> str:
    """``SELECT *`` ordered newest-first by the first primary key column or ``id``."""

    order_column = primary_keys[0] if primary_keys else None
    if order_column is None:
        order_column = next((col.name for col in columns if col.name.lower() == "id"), None)
    order_clause = ""
    if order_column is not None:
        try:
            order_clause = f" ORDER BY {quote_identifier(order_column)} DESC"
        except InvalidIdentifierError:
            order_clause = ""
    return f"SELECT * FROM {quote_identifier(database, table)}{order_clause} LIMIT {limit};"


def _column_from_row(row: dict[str, object]) -> ColumnInfo:
    return ColumnInfo(
        name=str(row["COLUMN_NAME"]),
        column_type=str(row.get("COLUMN_TYPE") or ""),
        comment=str(row.get("COLUMN_COMMENT") or ""),
        key=str(row.get("COLUMN_KEY") or ""),
        nullable=str(row.get("IS_NULLABLE") or "YES"),
        default=row.get("COLUMN_DEFAULT"),
        extra=str(row.get("EXTRA") or ""),
    )


def _group_indexes(rows: list[dict[str, object]]) -> tuple[IndexInfo, ...]:
    grouped: dict[str, list[str]] = {}
    unique: dict[str, bool] = {}
    for row in rows:
        name = str(row["INDEX_NAME"])
        grouped.setdefault(name, []).append(str(row["COLUMN_NAME"]))
        unique.setdefault(name, int(row.get("NON_UNIQUE") or 0) == 0)
    return tuple(IndexInfo(name=name, columns=tuple(cols), unique=unique[name]) for name, cols in grouped.items())


def _first_value(row: dict[str, object]) -> object:
    if "Database" in row:
        return row["Database"]
    return next(iter(row.values()))


__all__ = [
    "ForeignKeyInfo",
    "IndexInfo",
    "SYSTEM_DATABASES",
    "SchemaCatalog",
    "StructureReport",
    "sample_rows_sql",
]
