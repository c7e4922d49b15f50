"""SQL editor pane bound to the session's active connection."""

from __future__ import annotations

import re
from typing import Callable

from rich.markup import escape
from rich.text import Text
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.widgets import Button, Static, TextArea

from mysqlui.connections import ConnectionBackendError
from mysqlui.query import QueryExecutionError
from mysqlui.session import NoActiveConnectionError, Session, SessionState

_WORD_RE = re.compile(r"[\w.`]+")


class QueryPad(Container):
    """Editor surface; runs the selection (or the whole buffer) on Ctrl+Enter."""

    DEFAULT_CSS = """
    QueryPad {
        layout: vertical;
        border: round $primary 40%;
        padding: 0 1;
        height: 1fr;
        background: $surface;
    }

    QueryPad .panel-title {
        text-style: bold;
    }

    QueryPad:focus-within {
        border: round $primary;
    }

    QueryPad #query-editor {
        height: 1fr;
    }

    QueryPad .query-actions {
        height: auto;
        align-horizontal: left;
    }

    QueryPad .query-actions > * {
        margin-right: 1;
    }

    #query-target {
        color: $text-muted;
    }
    """

    BINDINGS = Container.BINDINGS + [
        Binding("ctrl+enter", "run_query", "Run query", show=False, priority=True),
        Binding("f5", "run_query", "Run query", show=True),
    ]

    def __init__(self, session: Session) -> None:
        super().__init__(id="query-pad")
        self._session = session
        self._editor: TextArea | None = None
        self._status_panel: Static | None = None
        self._target: Static | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def compose(self) -> ComposeResult:
        yield Static("Query Pad", classes="panel-title")
        yield Static("No connection selected", id="query-target")
        yield TextArea("", id="query-editor", show_line_numbers=True, tab_behavior="indent")
        yield Horizontal(
            Button("Run query", id="run-query", variant="primary"),
            Static("", id="query-status"),
            classes="query-actions",
        )

    async def on_mount(self) -> None:
        self._editor = self.query_one("#query-editor", TextArea)
        self._status_panel = self.query_one("#query-status", Static)
        self._target = self.query_one("#query-target", Static)
        self._unsubscribe = self._session.subscribe(self._handle_session_update)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def text(self) -> str:
        return self._editor.text if self._editor else ""

    def set_text(self, sql: str) -> None:
        """Replace the buffer, the equivalent of opening a new SQL document."""

        if self._editor is None:
            return
        self._editor.load_text(sql)
        self._editor.focus()

    def insert_text(self, text: str) -> None:
        if self._editor is None:
            return
        self._editor.insert(text)
        self._editor.focus()

    def statement_to_run(self) -> str:
        if self._editor is None:
            return ""
        return self._editor.selected_text or self._editor.text

    def current_word(self) -> str:
        """Selected text, else the ``db.table``-like word under the cursor."""

        if self._editor is None:
            return ""
        if self._editor.selected_text.strip():
            return self._editor.selected_text.strip()
        row, column = self._editor.cursor_location
        line = self._editor.document.get_line(row)
        for match in _WORD_RE.finditer(line):
            if match.start() <= column <= match.end():
                return match.group(0)
        return ""

    async def action_run_query(self) -> None:
        await self._execute()

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "run-query":
            event.stop()
            await self._execute()

    async def _execute(self) -> None:
        sql = self.statement_to_run().strip()
        if not sql:
            self._set_status("Enter SQL to run.", severity="warning")
            return
        self._set_status("Executing…", severity="information")
        try:
            results = await self._session.run_query(sql)
        except NoActiveConnectionError as exc:
            self._set_status(str(exc), severity="warning")
            self.app.notify(escape(str(exc)), severity="warning")
            return
        except ConnectionBackendError as exc:
            self._set_status("Connection failed", severity="error")
            self.app.notify(escape(str(exc)), severity="error")
            return
        except QueryExecutionError as exc:
            self._set_status(f"Error: {exc}", severity="error")
            return
        last = results[-1] if results else None
        badge = f"{last.status} · {last.elapsed_ms} ms" if last else "Done"
        if len(results) > 1:
            badge = f"{len(results)} statements · {badge}"
        self._set_status(badge, severity="success")

    def _handle_session_update(self, state: SessionState) -> None:
        if self._target is None:
            return
        if state.connection is None:
            self._target.update("No connection selected")
            return
        conn = state.connection
        database = f"/{conn.database}" if conn.database else ""
        self._target.update(Text(f"Target: {conn.user}@{conn.host}:{conn.port}{database}"))

    def _set_status(self, message: str, *, severity: str) -> None:
        if not self._status_panel:
            return
        prefix = {
            "information": "ℹ",
            "warning": "⚠",
            "error": "✖",
            "success": "✔",
        }.get(severity, "•")
        self._status_panel.update(Text(f"{prefix} {message}"))


__all__ = ["QueryPad"]
