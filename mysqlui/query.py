"""Query execution services for the query pad, tree and result panel."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from .connections import ConnectionBackendError, close_connection, open_connection
from .models import ConnectionOptions
from .sqltext import (
    InvalidIdentifierError,
    apply_auto_limit,
    count_sql,
    parse_table_from_sql,
    remove_delimiter_instructions,
)

LOG = logging.getLogger(__name__)


class QueryExecutionError(RuntimeError):
    """Raised when a statement fails; ``partial`` holds earlier result sets."""

    def __init__(self, message: str, *, partial: Sequence[QueryResult] = ()) -> None:
        super().__init__(message)
        self.partial: tuple[QueryResult, ...] = tuple(partial)


@dataclass(frozen=True, slots=True)
class QueryResult:
    """One result set (or affected-row summary) of a statement."""

    columns: tuple[str, ...]
    rows: tuple[tuple[object, ...], ...]
    status: str
    elapsed_ms: int
    row_count: int | None = None

    @property
    def returns_rows(self) -> bool:
        return bool(self.columns)

    def as_dicts(self) -> list[dict[str, object]]:
        return [dict(zip(self.columns, row)) for row in self.rows]


@dataclass(frozen=True, slots=True)
class QueryOutcome:
    """Result of ``execute_with_row_count``."""

    sql: str
    results: tuple[QueryResult, ...] = ()
    total_rows: int | None = None
    database: str | None = None
    table: str | None = None
    error: str | None = None
    elapsed_ms: int = 0

    @property
    def row_sets(self) -> tuple[QueryResult, ...]:
        return tuple(result for result in self.results if result.returns_rows)


class QueryExecutor(Protocol):
    """Interface implemented by query executors."""

    async def execute(self, options: ConnectionOptions, sql: str) -> list[QueryResult]: ...

    async def fetch(
        self, options: ConnectionOptions, sql: str, args: Sequence[object] | None = None
    ) -> list[dict[str, object]]: ...


class MySQLQueryExecutor:
    """Runs SQL against MySQL, one fresh connection per call."""

    def __init__(
        self,
        *,
        connect_timeout: float = 10.0,
        enable_delimiter_operator: bool = True,
        auto_limit: int = 100,
    ) -> None:
        self._connect_timeout = connect_timeout
        self._enable_delimiter_operator = enable_delimiter_operator
        self._auto_limit = auto_limit

    async def execute(self, options: ConnectionOptions, sql: str) -> list[QueryResult]:
        statement = sql.strip()
        if not statement:
            raise QueryExecutionError("Provide SQL to execute.")
        if self._enable_delimiter_operator:
            statement = remove_delimiter_instructions(statement)
        LOG.debug("Executing query", extra={"host": options.host, "database": options.database})
        conn = await open_connection(options, connect_timeout=self._connect_timeout)
        try:
            return await self._run(conn, statement)
        finally:
            await close_connection(conn)

    async def fetch(
        self,
        options: ConnectionOptions,
        sql: str,
        args: Sequence[object] | None = None,
    ) -> list[dict[str, object]]:
        """Run a single parameterised metadata query and return dict rows."""

        conn = await open_connection(
            options, multi_statements=False, connect_timeout=self._connect_timeout
        )
        try:
            async with conn.cursor() as cur:
                try:
                    await cur.execute(sql, tuple(args) if args is not None else None)
                    rows = await cur.fetchall()
                except Exception as exc:
                    raise QueryExecutionError(str(exc)) from exc
                columns = _column_names(cur.description)
        finally:
            await close_connection(conn)
        return [dict(zip(columns, row)) for row in rows]

    async def execute_with_row_count(
        self,
        options: ConnectionOptions,
        sql: str,
        *,
        database: str | None = None,
        table: str | None = None,
    ) -> QueryOutcome:
        """Execute with auto-limit and a best-effort total row count."""

        statement = apply_auto_limit(sql.strip(), self._auto_limit)
        parsed = parse_table_from_sql(statement)
        resolved_table = parsed.table or table
        resolved_database = parsed.database or database or options.database
        total_rows = await self._count_rows(options, resolved_database, resolved_table)
        started = time.perf_counter()
        try:
            results = await self.execute(options, statement)
        except QueryExecutionError as exc:
            return QueryOutcome(
                sql=statement,
                results=exc.partial,
                total_rows=total_rows,
                database=resolved_database,
                table=resolved_table,
                error=str(exc),
                elapsed_ms=_elapsed_ms(started),
            )
        return QueryOutcome(
            sql=statement,
            results=tuple(results),
            total_rows=total_rows,
            database=resolved_database,
            table=resolved_table,
            elapsed_ms=_elapsed_ms(started),
        )

    async def _count_rows(
        self,
        options: ConnectionOptions,
        database: str | None,
        table: str | None,
    ) -> int | None:
        if not database or not table:
            return None
        try:
            rows = await self.fetch(options, count_sql(database, table))
        except (ConnectionBackendError, QueryExecutionError, InvalidIdentifierError) as exc:
            LOG.debug("Row count skipped", extra={"table": f"{database}.{table}", "reason": str(exc)})
            return None
        if not rows:
            return None
        total = rows[0].get("total")
        return int(total) if total is not None else None

    async def _run(self, conn: Any, statement: str) -> list[QueryResult]:
        results: list[QueryResult] = []
        started = time.perf_counter()
        async with conn.cursor() as cur:
            try:
                await cur.execute(statement)
                while True:
                    results.append(await _collect(cur, started))
                    started = time.perf_counter()
                    if not await cur.nextset():
                        break
            except Exception as exc:
                LOG.warning("Query failed", extra={"completed": len(results), "reason": str(exc)})
                raise QueryExecutionError(str(exc), partial=results) from exc
        return results


async def _collect(cur: Any, started: float) -> QueryResult:
    if cur.description:
        columns = _column_names(cur.description)
        rows = tuple(tuple(row) for row in await cur.fetchall())
        return QueryResult(
            columns=columns,
            rows=rows,
            status=f"{len(rows)} row(s)",
            elapsed_ms=_elapsed_ms(started),
            row_count=len(rows),
        )
    affected = cur.rowcount if cur.rowcount is not None and cur.rowcount >= 0 else 0
    return QueryResult(
        columns=(),
        rows=(),
        status=f"Affected rows: {affected}",
        elapsed_ms=_elapsed_ms(started),
    )


def _column_names(description: Sequence[Sequence[object]] | None) -> tuple[str, ...]:
    if not description:
        return ()
    return tuple(str(entry[0]) for entry in description)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


__all__ = [
    "MySQLQueryExecutor",
    "QueryExecutionError",
    "QueryExecutor",
    "QueryOutcome",
    "QueryResult",
]
