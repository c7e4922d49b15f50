"""Status bar widget that mirrors session information."""

from __future__ import annotations

from typing import Callable

from rich.text import Text
from textual.widgets import Static

from mysqlui.session import Session, SessionState
from mysqlui.tree import FilterState


class StatusBar(Static):
    """Compact status strip rendered above Textual's footer."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        padding: 0 1;
        background: $surface-darken-3;
        color: $text;
    }
    """

    def __init__(self, session: Session) -> None:
        super().__init__("", id="status-bar")
        self._session = session
        self._unsubscribers: list[Callable[[], None]] = []

    async def on_mount(self) -> None:
        self._unsubscribers.append(self._session.subscribe(self._handle_session_update))
        self._unsubscribers.append(self._session.filter_state.subscribe(self._handle_filter_update))

    def on_unmount(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    def _handle_filter_update(self, _state: FilterState) -> None:
        self._handle_session_update(self._session.state)

    def _handle_session_update(self, state: SessionState) -> None:
        self.update(Text(format_status(state, self._session.filter_state)))


def format_status(state: SessionState, filters: FilterState) -> str:
    latency = f"{state.latency_ms} ms" if state.latency_ms is not None else "—"
    refreshed = state.refreshed_at.astimezone().strftime("%H:%M:%S")
    parts = [
        f"Connection: {state.label or 'none'}",
        f"Status: {state.status} ({latency})",
        f"Updated: {refreshed}",
    ]
    if filters.table_filter:
        parts.append(f"Tables~{filters.table_filter}")
    if filters.column_filter:
        parts.append(f"Columns~{filters.column_filter}")
    if state.last_error:
        parts.append(f"Error: {state.last_error.splitlines()[0][:80]}")
    return " | ".join(parts)


__all__ = ["StatusBar", "format_status"]
