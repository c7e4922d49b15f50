"""In-terminal result viewer: SQL bar, paged DataTable and row filter."""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from rich.markup import escape
from rich.text import Text
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.message import Message
from textual.widgets import DataTable, Input, Static

from mysqlui.connections import ConnectionBackendError
from mysqlui.query import QueryExecutionError
from mysqlui.render import cell_text, is_truncated, truncate_display
from mysqlui.results import ResultPanel, filter_rows, page_count, page_slice
from mysqlui.session import NoActiveConnectionError

LOG = logging.getLogger(__name__)


class ResultView(Container):
    """Renders the result panel's current outcome with pagination."""

    DEFAULT_CSS = """
    ResultView {
        layout: vertical;
        height: 1fr;
        border: round $secondary 40%;
        padding: 0 1;
    }

    ResultView:focus-within {
        border: round $secondary;
    }

    ResultView .result-bar {
        height: auto;
    }

    ResultView #result-sql {
        width: 1fr;
    }

    ResultView #result-total {
        width: auto;
        padding: 1 1 0 1;
        color: $accent;
    }

    ResultView #result-table {
        height: 1fr;
    }

    ResultView #result-footer {
        color: $text-muted;
    }

    ResultView #result-error {
        color: $error;
    }
    """

    BINDINGS = [
        Binding("left_square_bracket", "previous_page", "Prev page"),
        Binding("right_square_bracket", "next_page", "Next page"),
        Binding("left_curly_bracket", "previous_set", "Prev result set", show=False),
        Binding("right_curly_bracket", "next_set", "Next result set", show=False),
    ]

    class CellOpened(Message):
        """Posted when the user asks to see a full cell value."""

        def __init__(self, column: str, value: str) -> None:
            super().__init__()
            self.column = column
            self.value = value

    def __init__(self, panel: ResultPanel) -> None:
        super().__init__(id="result-view")
        self._panel = panel
        self._page = 0
        self._filter = ""
        self._columns: tuple[str, ...] = ()
        self._visible_rows: list[Sequence[object]] = []
        self._unsubscribe: Callable[[], None] | None = None

    def compose(self) -> ComposeResult:
        yield Horizontal(
            Input(placeholder="Enter SQL query... (Enter to run)", id="result-sql"),
            Static("", id="result-total"),
            classes="result-bar",
        )
        yield Input(placeholder="Filter rows: text or column=text; separate terms with ;", id="result-filter")
        yield Static("", id="result-error")
        yield DataTable(id="result-table", zebra_stripes=True)
        yield Static("No results yet.", id="result-footer")

    async def on_mount(self) -> None:
        table = self.query_one("#result-table", DataTable)
        table.cursor_type = "cell"
        self._unsubscribe = self._panel.subscribe(self._handle_panel_update)
        if self._panel.outcome is not None:
            self._handle_panel_update(self._panel)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def page(self) -> int:
        return self._page

    @property
    def page_total(self) -> int:
        return page_count(len(self._visible_rows), self._panel.page_size)

    def action_previous_page(self) -> None:
        if self._page > 0:
            self._page -= 1
            self._render_page()

    def action_next_page(self) -> None:
        if self._page + 1 < self.page_total:
            self._page += 1
            self._render_page()

    def action_previous_set(self) -> None:
        self._panel.select_set(self._panel.selected_index - 1)

    def action_next_set(self) -> None:
        self._panel.select_set(self._panel.selected_index + 1)

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "result-sql":
            return
        event.stop()
        try:
            await self._panel.handle_message({"command": "runQuery", "sql": event.value})
        except NoActiveConnectionError as exc:
            self.app.notify(escape(str(exc)), severity="warning")
        except (ConnectionBackendError, QueryExecutionError) as exc:
            self.app.notify(escape(str(exc)), severity="error")

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id != "result-filter":
            return
        event.stop()
        self._filter = event.value
        self._apply_filter()

    def on_data_table_cell_selected(self, event: DataTable.CellSelected) -> None:
        row, column = event.coordinate.row, event.coordinate.column
        rows = page_slice(self._visible_rows, self._page, self._panel.page_size)
        if row >= len(rows) or column >= len(self._columns):
            return
        event.stop()
        self.post_message(self.CellOpened(self._columns[column], cell_text(rows[row][column])))

    def _handle_panel_update(self, panel: ResultPanel) -> None:
        outcome = panel.outcome
        if outcome is None:
            return
        sql_input = self.query_one("#result-sql", Input)
        with sql_input.prevent(Input.Changed):
            sql_input.value = outcome.sql
        total = self.query_one("#result-total", Static)
        total.update(f"(total {outcome.total_rows} rows)" if outcome.total_rows is not None else "")
        error = self.query_one("#result-error", Static)
        error.update(Text(f"✖ {outcome.error}") if outcome.error else "")
        result = panel.primary_result
        self._columns = result.columns if result is not None else ()
        self._page = 0
        self._apply_filter()

    def _apply_filter(self) -> None:
        result = self._panel.primary_result
        rows = result.rows if result is not None else ()
        self._visible_rows = filter_rows(self._columns, rows, self._filter)
        self._page = min(self._page, self.page_total - 1)
        self._render_page()

    def _render_page(self) -> None:
        table = self.query_one("#result-table", DataTable)
        table.clear(columns=True)
        footer = self.query_one("#result-footer", Static)
        result = self._panel.primary_result
        if not self._columns:
            footer.update(Text(result.status if result is not None else "No data"))
            return
        table.add_columns(*self._columns)
        for row in page_slice(self._visible_rows, self._page, self._panel.page_size):
            table.add_row(*(_display_cell(value) for value in row))
        sets = len(self._panel.result_sets)
        extra = f" · Results {self._panel.selected_index + 1} / {sets} ({{ }} to switch)" if sets > 1 else ""
        footer.update(
            Text(
                f"Page {self._page + 1} / {self.page_total} · {len(self._visible_rows)} rows"
                f" · [ ] to page · Enter on a cell shows the full value{extra}"
            )
        )


def _display_cell(value: object) -> Text:
    if value is None:
        return Text("NULL", style="dim italic")
    text = cell_text(value)
    if is_truncated(text):
        return Text(truncate_display(text))
    return Text(text)


__all__ = ["ResultView"]
