"""Session context wiring the registry, executor, tree and result panel together."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from .config import ConfigStore, Settings
from .metadata import SchemaCatalog
from .models import ConnectionOptions, ConnectionProfile, TableInfo
from .query import MySQLQueryExecutor, QueryExecutionError, QueryOutcome, QueryResult
from .registry import ConnectionRegistry, SecretStore
from .render import render_structure
from .results import ResultPanel
from .sqltext import (
    backup_table_name,
    backup_table_sql,
    count_sql,
    drop_table_sql,
    select_column_sql,
    select_filter_sql,
    select_top_sql,
    split_table_reference,
)
from .tree import ColumnNode, DatabaseNode, FilterState, TableNode, TreeModel

LOG = logging.getLogger(__name__)

SessionListener = Callable[["SessionState"], None]


class NoActiveConnectionError(RuntimeError):
    """Raised when an operation needs a selected server or database."""


@dataclass(frozen=True, slots=True)
class SessionState:
    """Snapshot of the active connection and the last operation."""

    connection: ConnectionOptions | None
    label: str | None
    status: str
    refreshed_at: datetime
    latency_ms: int | None = None
    last_error: str | None = None


class Session:
    """Explicit application context replacing process-wide globals.

    Holds the active connection record (overwritten on every selection, never
    merged), the filter state, the tree model and the result panel.
    """

    def __init__(
        self,
        store: ConfigStore,
        secrets: SecretStore,
        *,
        executor: MySQLQueryExecutor | None = None,
    ) -> None:
        settings = store.config.settings
        self._store = store
        self._registry = ConnectionRegistry(store, secrets)
        self._executor = executor or MySQLQueryExecutor(
            enable_delimiter_operator=settings.enable_delimiter_operator,
            auto_limit=settings.auto_limit,
        )
        self._catalog = SchemaCatalog(self._executor)
        self._filter_state = FilterState()
        self._tree = TreeModel(
            self._registry,
            self._catalog,
            self._filter_state,
            max_table_count=settings.max_table_count,
        )
        self._insert_text: Callable[[str], None] | None = None
        self._results = ResultPanel(
            self._rerun,
            set_table_filter=self._filter_state.set_table_filter,
            insert_text=self._forward_insert_text,
            page_size=settings.page_size,
        )
        self._active: ConnectionOptions | None = None
        self._active_label: str | None = None
        self._listeners: set[SessionListener] = set()
        self._state = SessionState(
            connection=None,
            label=None,
            status="No connection selected",
            refreshed_at=datetime.now(timezone.utc),
        )

    @property
    def settings(self) -> Settings:
        return self._store.config.settings

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def executor(self) -> MySQLQueryExecutor:
        return self._executor

    @property
    def catalog(self) -> SchemaCatalog:
        return self._catalog

    @property
    def filter_state(self) -> FilterState:
        return self._filter_state

    @property
    def tree(self) -> TreeModel:
        return self._tree

    @property
    def results(self) -> ResultPanel:
        return self._results

    @property
    def active(self) -> ConnectionOptions | None:
        return self._active

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener; it is called immediately with the current state."""

        self._listeners.add(listener)
        listener(self._state)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    def bind_insert_text(self, callback: Callable[[str], None] | None) -> None:
        self._insert_text = callback

    # Connection management -------------------------------------------------

    def add_connection(
        self,
        host: str,
        user: str,
        *,
        port: int,
        password: str | None = None,
        cert_path: str | None = None,
        display_name: str | None = None,
    ) -> str:
        profile_id = self._registry.add(
            host,
            user,
            port=port,
            password=password,
            cert_path=cert_path,
            display_name=display_name,
        )
        self._tree.refresh()
        return profile_id

    def delete_connection(self, profile_id: str) -> None:
        self._registry.delete(profile_id)
        self._tree.refresh()

    def rename_connection(self, profile_id: str, new_name: str) -> ConnectionProfile:
        profile = self._registry.rename(profile_id, new_name)
        self._tree.refresh()
        return profile

    def activate(self, profile: ConnectionProfile, database: str | None = None) -> ConnectionOptions:
        """Make ``profile``/``database`` the target of the query pad."""

        self._active = self._registry.options_for(profile, database)
        self._active_label = f"{profile.label}/{database}" if database else profile.label
        status = f"Database selected: {database}" if database else f"Server selected: {profile.label}"
        self._publish(status)
        return self._active

    def select_database(self, node: DatabaseNode) -> ConnectionOptions:
        return self.activate(node.profile, node.database)

    # Query execution ----------------------------------------------------------

    def require_active(self) -> ConnectionOptions:
        if self._active is None:
            raise NoActiveConnectionError("No MySQL Server or Database selected")
        return self._active

    async def run_query(self, sql: str) -> list[QueryResult]:
        """Run the query pad contents against the active connection.

        The outcome is shown in the result panel either way; failures are
        re-raised after the partial results have been displayed.
        """

        options = self.require_active()
        started = time.perf_counter()
        try:
            results = await self._executor.execute(options, sql)
        except QueryExecutionError as exc:
            elapsed = _elapsed_ms(started)
            self._results.show(
                QueryOutcome(
                    sql=sql.strip(),
                    results=exc.partial,
                    database=options.database,
                    error=str(exc),
                    elapsed_ms=elapsed,
                )
            )
            self._publish("Query failed", latency_ms=elapsed, error=str(exc))
            raise
        elapsed = _elapsed_ms(started)
        self._results.show(
            QueryOutcome(sql=sql.strip(), results=tuple(results), database=options.database, elapsed_ms=elapsed)
        )
        last = results[-1].status if results else "Done"
        self._publish(last, latency_ms=elapsed)
        return results

    async def run_query_with_total(
        self,
        sql: str,
        *,
        database: str | None = None,
        table: str | None = None,
        update: bool = False,
    ) -> QueryOutcome:
        """Run with auto-limit and row count, then show the outcome in the result panel."""

        options = self.require_active()
        outcome = await self._executor.execute_with_row_count(
            options, sql, database=database, table=table
        )
        if update:
            self._results.update(outcome)
        else:
            self._results.show(outcome)
        if outcome.error:
            self._publish("Query failed", latency_ms=outcome.elapsed_ms, error=outcome.error)
        else:
            total = f", total {outcome.total_rows} rows" if outcome.total_rows is not None else ""
            self._publish(f"Query finished{total}", latency_ms=outcome.elapsed_ms)
        return outcome

    async def select_top(self, node: TableNode) -> QueryOutcome:
        self.activate(node.profile, node.database)
        sql = select_top_sql(node.database, node.table, self.settings.auto_limit)
        return await self.run_query_with_total(sql, database=node.database, table=node.table)

    async def count_table(self, node: TableNode) -> int:
        options = self._registry.options_for(node.profile, node.database)
        rows = await self._executor.fetch(options, count_sql(node.database, node.table))
        return int(rows[0]["total"]) if rows else 0

    async def select_column(self, node: ColumnNode) -> QueryOutcome:
        self.activate(node.profile, node.database)
        sql = select_column_sql(node.database, node.table, node.column.name)
        return await self.run_query_with_total(sql, database=node.database, table=node.table)

    async def filter_by_column(self, node: ColumnNode, value: str) -> QueryOutcome:
        self.activate(node.profile, node.database)
        sql = select_filter_sql(
            node.database, node.table, node.column.name, node.column.column_type, value
        )
        return await self.run_query_with_total(sql, database=node.database, table=node.table)

    async def drop_table(self, node: TableNode) -> None:
        options = self._registry.options_for(node.profile, node.database)
        await self._executor.execute(options, drop_table_sql(node.database, node.table))
        LOG.info("Dropped table", extra={"table": f"{node.database}.{node.table}"})
        if node.key in self._registry.pinned_tables():
            self._registry.unpin(node.key)
        self._tree.refresh()

    async def backup_table(self, node: TableNode, now: datetime | None = None) -> str:
        """Copy structure and rows into ``{table}_{timestamp}``; returns the new name."""

        options = self._registry.options_for(node.profile, node.database)
        backup = backup_table_name(node.table, now)
        create, copy = backup_table_sql(node.database, node.table, backup)
        await self._executor.execute(options, create)
        await self._executor.execute(options, copy)
        LOG.info("Backed up table", extra={"table": f"{node.database}.{node.table}", "backup": backup})
        self._tree.refresh()
        return backup

    # Structure and table lookup -------------------------------------------------

    async def structure_report(self, profile: ConnectionProfile, database: str, table: str) -> str:
        options = self._registry.options_for(profile, database)
        report = await self._catalog.table_structure(options, database, table)
        return render_structure(report)

    async def structure_for_text(self, text: str) -> str:
        """Structure document for a ``table`` or ``db.table`` name picked from the editor."""

        options = self.require_active()
        ref = split_table_reference(text)
        database = ref.database or options.database
        if not ref.table:
            raise ValueError("Please select a table name")
        if not database:
            raise NoActiveConnectionError(
                "Cannot determine database. Select a database first or use database.table"
            )
        report = await self._catalog.table_structure(options.with_database(database), database, ref.table)
        return render_structure(report)

    async def tables_for_picker(self) -> list[TableInfo]:
        """All tables of the active database sorted by name, for the table picker."""

        options = self.require_active()
        if not options.database:
            raise NoActiveConnectionError("No MySQL database selected. Please select a database first.")
        tables = await self._catalog.list_tables(options, options.database, self.settings.max_table_count)
        return sorted(tables, key=lambda info: info.name.lower())

    async def active_table_structure(self, table: str) -> str:
        options = self.require_active()
        if not options.database:
            raise NoActiveConnectionError("No MySQL database selected. Please select a database first.")
        report = await self._catalog.table_structure(options, options.database, table)
        return render_structure(report)

    # Internals ------------------------------------------------------------------

    async def _rerun(self, sql: str, database: str | None, table: str | None) -> QueryOutcome:
        options = self.require_active()
        return await self._executor.execute_with_row_count(
            options, sql, database=database, table=table
        )

    def _forward_insert_text(self, text: str) -> None:
        if self._insert_text is None:
            LOG.debug("No editor bound for inserted text")
            return
        self._insert_text(text)

    def _publish(self, status: str, *, latency_ms: int | None = None, error: str | None = None) -> None:
        self._state = SessionState(
            connection=self._active,
            label=self._active_label,
            status=status,
            refreshed_at=datetime.now(timezone.utc),
            latency_ms=latency_ms,
            last_error=error,
        )
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                LOG.exception("Session listener failed")


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


__all__ = ["NoActiveConnectionError", "Session", "SessionState"]
