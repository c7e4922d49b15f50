"""Textual application entry point for mysqlui."""

from __future__ import annotations

import argparse
import logging
import tempfile
import webbrowser
from pathlib import Path
from typing import Awaitable, Callable, Sequence, TypeVar

from keyring.errors import KeyringError
from rich.markup import escape
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Header

from .config import AppConfig, ConfigStore, load_config
from .connections import ConnectionBackendError
from .models import DEFAULT_PORT
from .providers import ConnectionSwitchProvider, MysqluiCommandProvider
from .query import QueryExecutionError
from .registry import KeyringSecretStore, ProfileNotFoundError, SecretStore
from .screens import (
    ConfirmScreen,
    FormField,
    FormScreen,
    PromptScreen,
    TablePickerScreen,
    TextViewerScreen,
)
from .session import NoActiveConnectionError, Session
from .sqltext import InvalidIdentifierError, add_column_sql, drop_column_sql
from .tree import ColumnNode, ConnectionNode, DatabaseNode, TableNode, TreeNode
from .widgets import QueryPad, ResultView, SidebarPanel, StatusBar

LOG = logging.getLogger(__name__)

T = TypeVar("T")
NodeT = TypeVar("NodeT")

RESULTS_FILE_NAME = "mysqlui-results.html"


def _load_app_config() -> AppConfig:
    """Load configuration with a small wrapper for test overrides."""

    return load_config()


def _create_secret_store() -> SecretStore:
    return KeyringSecretStore()


class MysqluiApp(App[None]):
    """Sidebar tree, query pad and result view over one ``Session``."""

    TITLE = "mysqlui"
    COMMANDS = App.COMMANDS | {MysqluiCommandProvider, ConnectionSwitchProvider}
    CSS = """
    Screen {
        layout: vertical;
    }
    #content {
        layout: horizontal;
        height: 1fr;
    }
    #main-column {
        layout: vertical;
        height: 1fr;
    }
    QueryPad {
        height: 2fr;
    }
    ResultView {
        height: 3fr;
    }
    """

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit"),
        Binding("ctrl+n", "add_connection", "Add connection"),
        Binding("ctrl+r", "refresh", "Refresh"),
        Binding("ctrl+o", "open_table", "Open table"),
        Binding("ctrl+t", "structure_from_editor", "Structure", show=False),
        Binding("ctrl+e", "expand_all", "Expand all", show=False),
        Binding("ctrl+w", "collapse_all", "Collapse all", show=False),
        Binding("ctrl+l", "clear_filters", "Clear filters", show=False),
        Binding("ctrl+b", "open_results_in_browser", "Open in browser", show=False),
    ]

    def __init__(self, session: Session | None = None) -> None:
        super().__init__()
        self._config = _load_app_config()
        self._store = ConfigStore(self._config)
        self._session = session or Session(self._store, _create_secret_store())
        self._sidebar: SidebarPanel | None = None
        self._query_pad: QueryPad | None = None

    @property
    def session(self) -> Session:
        """Expose the session for providers and tests."""

        return self._session

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        self._sidebar = SidebarPanel(
            self._session,
            initial_width=self._store.config.layout.sidebar_width,
            on_width_change=self.remember_sidebar_width,
        )
        self._query_pad = QueryPad(self._session)
        main_column = Vertical(self._query_pad, ResultView(self._session.results), id="main-column")
        yield Horizontal(self._sidebar, main_column, id="content")
        yield StatusBar(self._session)
        yield Footer()

    async def on_mount(self) -> None:
        theme = self._store.config.theme
        if theme in self.available_themes:
            self.theme = theme
        if self._query_pad is not None:
            self._session.bind_insert_text(self._query_pad.insert_text)

    def on_unmount(self) -> None:
        self._session.bind_insert_text(None)

    def remember_sidebar_width(self, width: int) -> None:
        """Persist the sidebar width when it changes."""

        config = self._store.config
        if config.layout.sidebar_width == width:
            return
        self._store.update(config.with_layout(sidebar_width=width))

    def use_connection(self, profile_id: str) -> None:
        try:
            profile = self._session.registry.get(profile_id)
        except ProfileNotFoundError:
            self._notify(f"Unknown connection: {profile_id}", severity="error")
            return
        if self._attempt(lambda: self._session.activate(profile)) is not None:
            self._notify(f"Server selected: {profile.label}")

    # Connection commands ------------------------------------------------------

    def action_add_connection(self) -> None:
        fields = [
            FormField("host", "Host", placeholder="host", default="127.0.0.1", required=True),
            FormField("user", "User", placeholder="user", default="root", required=True),
            FormField("password", "Password", placeholder="password", password=True),
            FormField("port", "Port", placeholder="port", default=str(DEFAULT_PORT), required=True),
            FormField("cert_path", "SSL certificate path", placeholder="[Optional] SSL certificate path"),
            FormField("display_name", "Display name", placeholder="[Optional] name shown in the tree"),
        ]
        self.push_screen(FormScreen("Add connection", fields), self._finish_add_connection)

    def _finish_add_connection(self, values: dict[str, str] | None) -> None:
        if values is None:
            return
        try:
            port = int(values["port"])
        except ValueError:
            self._notify(f"Invalid port: {values['port']}", severity="error")
            return
        added = self._attempt(
            lambda: self._session.add_connection(
                values["host"],
                values["user"],
                port=port,
                password=values["password"] or None,
                cert_path=values["cert_path"] or None,
                display_name=values["display_name"] or None,
            )
        )
        if added is None:
            return
        self._notify(f"Connection added: {values['display_name'] or values['host']}")

    def action_delete_connection(self) -> None:
        node = self._selected(ConnectionNode, "Select a connection first.")
        if node is None:
            return

        def _finish(confirmed: bool | None) -> None:
            if not confirmed:
                return
            try:
                self._attempt(lambda: self._session.delete_connection(node.profile.id))
            except ProfileNotFoundError:
                self._notify("Connection no longer exists.", severity="warning")

        self.push_screen(ConfirmScreen(f"Delete connection {node.profile.label}?"), _finish)

    def action_rename_connection(self) -> None:
        node = self._selected(ConnectionNode, "Select a connection first.")
        if node is None:
            return

        def _finish(name: str | None) -> None:
            if name is None or not name.strip():
                return
            try:
                self._session.rename_connection(node.profile.id, name.strip())
            except ProfileNotFoundError:
                self._notify("Connection no longer exists.", severity="warning")

        self.push_screen(
            PromptScreen("Display name", placeholder="display name", default=node.profile.label),
            _finish,
        )

    def action_new_query(self) -> None:
        node = self._selected((ConnectionNode, DatabaseNode), "Select a connection or database first.")
        if node is None:
            return
        database = node.database if isinstance(node, DatabaseNode) else None
        if self._attempt(lambda: self._session.activate(node.profile, database)) is not None:
            self._set_query_text("")

    def action_select_database(self) -> None:
        node = self._selected(DatabaseNode, "Select a database first.")
        if node is None:
            return
        if self._attempt(lambda: self._session.select_database(node)) is not None:
            self._notify(f"Database selected: {node.database}")

    async def action_run_query(self) -> None:
        if self._query_pad is not None:
            await self._query_pad.action_run_query()

    def action_refresh(self) -> None:
        self._session.tree.refresh()

    # Table commands -----------------------------------------------------------

    def action_toggle_pin(self) -> None:
        node = self._selected(TableNode, "Select a table first.")
        if node is None:
            return
        pinned = self._session.tree.toggle_pin(node)
        self._notify(f"{'Pinned' if pinned else 'Unpinned'}: {node.table}")

    async def action_select_top(self) -> None:
        node = self._selected(TableNode, "Select a table first.")
        if node is None:
            return
        outcome = await self._guard(self._session.select_top(node))
        if outcome is not None:
            self._set_query_text(outcome.sql)

    async def action_count_table(self) -> None:
        node = self._selected(TableNode, "Select a table first.")
        if node is None:
            return
        total = await self._guard(self._session.count_table(node))
        if total is not None:
            self._notify(f"{node.database}.{node.table}: {total} rows")

    async def action_show_structure(self) -> None:
        node = self._selected(TableNode, "Select a table first.")
        if node is None:
            return
        text = await self._guard(self._session.structure_report(node.profile, node.database, node.table))
        if text is not None:
            self._show_document(f"{node.database}.{node.table}", text)

    async def action_structure_from_editor(self) -> None:
        word = self._query_pad.current_word() if self._query_pad is not None else ""
        if not word:
            self._notify("Please select a table name", severity="warning")
            return
        text = await self._guard(self._session.structure_for_text(word))
        if text is not None:
            self._show_document(word.replace("`", ""), text)

    async def action_open_table(self) -> None:
        tables = await self._guard(self._session.tables_for_picker())
        if tables is None:
            return
        if not tables:
            self._notify("No tables found in current database.")
            return

        async def _finish(table: str | None) -> None:
            if not table:
                return
            text = await self._guard(self._session.active_table_structure(table))
            if text is not None:
                self._show_document(table, text)

        self.push_screen(TablePickerScreen(tables), _finish)

    def action_copy_name(self) -> None:
        node = self._selected((TableNode, ColumnNode), "Select a table or column first.")
        if node is None:
            return
        name = node.column.name if isinstance(node, ColumnNode) else node.table
        self.copy_to_clipboard(name)
        self._notify(f"Copied: {name}")

    def action_drop_table(self) -> None:
        node = self._selected(TableNode, "Select a table first.")
        if node is None:
            return

        async def _finish(confirmed: bool | None) -> None:
            if not confirmed:
                return
            done = await self._guard(self._drop(node))
            if done:
                self._notify(f"Table `{node.table}` dropped successfully.")

        question = (
            f"Are you sure you want to drop table `{node.database}`.`{node.table}`? "
            "This action cannot be undone."
        )
        self.push_screen(ConfirmScreen(question, confirm_label="Drop"), _finish)

    async def action_backup_table(self) -> None:
        node = self._selected(TableNode, "Select a table first.")
        if node is None:
            return
        backup = await self._guard(self._session.backup_table(node))
        if backup is not None:
            self._notify(f"Table backed up as `{backup}`")

    def action_add_column(self) -> None:
        node = self._selected(TableNode, "Select a table first.")
        if node is None:
            return
        fields = [
            FormField("name", "Column name", placeholder="new_column", required=True),
            FormField("type", "Column type", default="VARCHAR(255)", required=True),
            FormField("nullable", "Allow NULL", default="1", checkbox=True),
            FormField("comment", "Comment", placeholder="[Optional] column comment"),
        ]

        def _finish(values: dict[str, str] | None) -> None:
            if values is None:
                return
            try:
                sql = add_column_sql(
                    node.database,
                    node.table,
                    values["name"],
                    values["type"],
                    nullable=bool(values["nullable"]),
                    comment=values["comment"] or None,
                )
            except InvalidIdentifierError as exc:
                self._notify(str(exc), severity="error")
                return
            self._set_query_text(sql)

        self.push_screen(FormScreen(f"Add column to {node.table}", fields), _finish)

    # Column commands ----------------------------------------------------------

    async def action_select_column(self) -> None:
        node = self._selected(ColumnNode, "Select a column first.")
        if node is None:
            return
        outcome = await self._guard(self._session.select_column(node))
        if outcome is not None:
            self._set_query_text(outcome.sql)

    def action_filter_by_column(self) -> None:
        node = self._selected(ColumnNode, "Select a column first.")
        if node is None:
            return

        async def _finish(value: str | None) -> None:
            if value is None:
                return
            outcome = await self._guard(self._session.filter_by_column(node, value))
            if outcome is not None:
                self._set_query_text(outcome.sql)

        prompt = f"Enter filter value for column '{node.column.name}' (type: {node.column.column_type})"
        self.push_screen(PromptScreen(prompt, placeholder="filter value"), _finish)

    def action_insert_column_name(self) -> None:
        node = self._selected(ColumnNode, "Select a column first.")
        if node is None or self._query_pad is None:
            return
        self._query_pad.insert_text(node.column.name)

    def action_drop_column(self) -> None:
        node = self._selected(ColumnNode, "Select a column first.")
        if node is None:
            return
        try:
            sql = drop_column_sql(node.database, node.table, node.column.name)
        except InvalidIdentifierError as exc:
            self._notify(str(exc), severity="error")
            return
        self._set_query_text(sql)

    # Tree view commands -------------------------------------------------------

    def action_expand_all(self) -> None:
        self._session.filter_state.set_all_expanded(True)

    def action_collapse_all(self) -> None:
        self._session.filter_state.set_all_expanded(False)

    def action_clear_filters(self) -> None:
        self._session.filter_state.clear()

    def action_open_results_in_browser(self) -> None:
        results = self._session.results
        if results.outcome is None:
            self._notify("Run a query first.", severity="warning")
            return
        path = results.export_html(Path(tempfile.gettempdir()) / RESULTS_FILE_NAME)
        webbrowser.open(path.as_uri())
        self._notify(f"Results written to {path}")

    def on_result_view_cell_opened(self, event: ResultView.CellOpened) -> None:
        self._show_document(event.column, event.value)

    # Helpers ------------------------------------------------------------------

    def _selected(self, kinds: type[NodeT] | tuple[type, ...], message: str) -> NodeT | None:
        node: TreeNode | None = self._sidebar.schema_tree.selected if self._sidebar is not None else None
        if node is None or not isinstance(node, kinds):
            self._notify(message, severity="warning")
            return None
        return node  # type: ignore[return-value]

    async def _drop(self, node: TableNode) -> bool:
        await self._session.drop_table(node)
        return True

    async def _guard(self, awaitable: Awaitable[T]) -> T | None:
        """Await ``awaitable``, turning expected failures into notifications."""

        try:
            return await awaitable
        except NoActiveConnectionError as exc:
            self._notify(str(exc), severity="warning")
        except (ConnectionBackendError, QueryExecutionError) as exc:
            LOG.warning("Command failed", extra={"reason": str(exc)})
            self._notify(f"Error: {exc}", severity="error")
        except ValueError as exc:
            self._notify(str(exc), severity="warning")
        except KeyringError as exc:
            self._keyring_failed(exc)
        return None

    def _attempt(self, call: Callable[[], T]) -> T | None:
        """Synchronous counterpart of ``_guard`` for secret store access."""

        try:
            return call()
        except KeyringError as exc:
            self._keyring_failed(exc)
        return None

    def _keyring_failed(self, exc: KeyringError) -> None:
        LOG.warning("Secret store unavailable", extra={"reason": str(exc)})
        self._notify(f"Password store error: {exc}", severity="error")

    def _set_query_text(self, sql: str) -> None:
        if self._query_pad is not None:
            self._query_pad.set_text(sql)

    def _show_document(self, title: str, text: str) -> None:
        def _finish(opened: str | None) -> None:
            if opened is not None:
                self._set_query_text(opened)

        self.push_screen(TextViewerScreen(title, text), _finish)

    def _notify(self, message: str, *, severity: str = "information") -> None:
        try:
            self.notify(escape(message), severity=severity)  # type: ignore[arg-type]
        except Exception:
            LOG.exception("Failed to display notification", extra={"message": message})


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="mysqlui", description="Terminal MySQL browser and query runner.")
    parser.add_argument("--log-file", type=Path, help="Write logs to this file.")
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level.")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    """Invoke the Textual application."""

    args = _parse_args(argv)
    if args.log_file is not None:
        logging.basicConfig(
            filename=str(args.log_file),
            level=logging.DEBUG if args.debug else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    MysqluiApp().run()


if __name__ == "__main__":
    main()
