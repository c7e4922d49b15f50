"""Command palette providers for core app features."""

from __future__ import annotations

from dataclasses import dataclass

from textual.command import DiscoveryHit, Hit, Hits, Provider
from textual.types import IgnoreReturnCallbackType

from .session import Session


@dataclass(frozen=True, slots=True)
class PaletteCommand:
    """A palette entry that runs ``action`` on the app."""

    label: str
    action: str
    help: str


PALETTE_COMMANDS: tuple[PaletteCommand, ...] = (
    PaletteCommand("Add connection", "add_connection", "Register a MySQL server."),
    PaletteCommand("Delete connection", "delete_connection", "Remove the selected connection."),
    PaletteCommand("Rename connection", "rename_connection", "Change the selected connection's display name."),
    PaletteCommand("New query", "new_query", "Open an empty query pad on the selected server or database."),
    PaletteCommand("Run query", "run_query", "Execute the query pad contents."),
    PaletteCommand("Select database", "select_database", "Target the selected database."),
    PaletteCommand("Refresh", "refresh", "Reload the connection tree."),
    PaletteCommand("Pin / unpin table", "toggle_pin", "Keep the selected table at the top of its database."),
    PaletteCommand("Select top rows", "select_top", "SELECT * ... LIMIT for the selected table."),
    PaletteCommand("Count rows", "count_table", "COUNT(*) of the selected table."),
    PaletteCommand("Show table structure", "show_structure", "Columns, keys, indexes and sample rows."),
    PaletteCommand("Structure of name under cursor", "structure_from_editor", "Table structure for the word in the query pad."),
    PaletteCommand("Open table", "open_table", "Pick a table of the active database."),
    PaletteCommand("Copy name", "copy_name", "Copy the selected table or column name."),
    PaletteCommand("Drop table", "drop_table", "DROP TABLE after confirmation."),
    PaletteCommand("Backup table", "backup_table", "Copy the selected table to {table}_{timestamp}."),
    PaletteCommand("Add column", "add_column", "Generate ALTER TABLE ... ADD COLUMN in the query pad."),
    PaletteCommand("Select column", "select_column", "SELECT the selected column."),
    PaletteCommand("Filter by column value", "filter_by_column", "SELECT rows where the column equals a value."),
    PaletteCommand("Insert column name", "insert_column_name", "Insert the selected column name into the query pad."),
    PaletteCommand("Drop column", "drop_column", "Generate ALTER TABLE ... DROP COLUMN in the query pad."),
    PaletteCommand("Expand all", "expand_all", "Expand every connection, database and table."),
    PaletteCommand("Collapse all", "collapse_all", "Collapse the whole tree."),
    PaletteCommand("Clear filters", "clear_filters", "Reset the table and column filters."),
    PaletteCommand("Open results in browser", "open_results_in_browser", "Export the result page as HTML."),
)


class MysqluiCommandProvider(Provider):
    """Expose every tree and query command to the command palette."""

    async def search(self, query: str) -> Hits:
        matcher = self.matcher(query)
        for command in PALETTE_COMMANDS:
            score = matcher.match(command.label)
            if score > 0:
                yield Hit(
                    score=score,
                    match_display=matcher.highlight(command.label),
                    command=self._build_callback(command.action),
                    help=command.help,
                )

    async def discover(self) -> Hits:
        for command in PALETTE_COMMANDS:
            yield DiscoveryHit(
                display=command.label,
                command=self._build_callback(command.action),
                help=command.help,
            )

    def _build_callback(self, action: str) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            await self.app.run_action(action)

        return _run


class ConnectionSwitchProvider(Provider):
    """Expose saved connections so one can be made the query target."""

    async def search(self, query: str) -> Hits:
        session = self._session
        if session is None:
            return
        matcher = self.matcher(query)
        for profile in session.registry.list():
            label = f"Use connection: {profile.label}"
            match = matcher.match(label)
            if match > 0:
                yield Hit(
                    score=match,
                    match_display=matcher.highlight(label),
                    command=self._build_callback(profile.id),
                    help=f"{profile.user}@{profile.host}:{profile.port}",
                )

    async def discover(self) -> Hits:
        session = self._session
        if session is None:
            return
        for profile in session.registry.list():
            yield DiscoveryHit(
                display=f"Use connection: {profile.label}",
                command=self._build_callback(profile.id),
                help=f"{profile.user}@{profile.host}:{profile.port}",
            )

    @property
    def _session(self) -> Session | None:
        session = getattr(self.app, "session", None)
        if isinstance(session, Session):
            return session
        return None

    def _build_callback(self, profile_id: str) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            switcher = getattr(self.app, "use_connection", None)
            if switcher is None:
                return
            switcher(profile_id)

        return _run


__all__ = ["ConnectionSwitchProvider", "MysqluiCommandProvider", "PALETTE_COMMANDS", "PaletteCommand"]
