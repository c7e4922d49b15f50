"""Table and column filter inputs that narrow the schema tree."""

from __future__ import annotations

from typing import Callable

from textual.app import ComposeResult
from textual.containers import Container
from textual.widgets import Input, Static

from mysqlui.debounce import Debouncer
from mysqlui.tree import FilterState


class FilterBar(Container):
    """Two debounced inputs bound to the shared filter state."""

    DEFAULT_CSS = """
    FilterBar {
        height: auto;
        padding: 0 1;
        background: $surface-darken-2;
    }

    FilterBar Input {
        margin-bottom: 1;
    }

    FilterBar .filter-heading {
        text-style: bold;
    }
    """

    def __init__(self, filter_state: FilterState, *, delay: float = 0.1) -> None:
        super().__init__(id="filter-bar")
        self._filter_state = filter_state
        self._debouncers = {"table-filter": Debouncer(delay), "column-filter": Debouncer(delay)}
        self._unsubscribe: Callable[[], None] | None = None

    def compose(self) -> ComposeResult:
        yield Static("Filters", classes="filter-heading")
        yield Input(
            value=self._filter_state.table_filter,
            placeholder="Table name or comment",
            id="table-filter",
        )
        yield Input(
            value=self._filter_state.column_filter,
            placeholder="Column name, type or comment",
            id="column-filter",
        )

    async def on_mount(self) -> None:
        self._unsubscribe = self._filter_state.subscribe(self._sync_inputs)

    def on_unmount(self) -> None:
        for debouncer in self._debouncers.values():
            debouncer.cancel()
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    async def on_input_changed(self, event: Input.Changed) -> None:
        value = event.value
        if event.input.id == "table-filter":
            setter = self._filter_state.set_table_filter
        elif event.input.id == "column-filter":
            setter = self._filter_state.set_column_filter
        else:
            return
        self._debouncers[event.input.id].submit(lambda s=setter, v=value: self._apply(s, v))
        event.stop()

    async def _apply(self, setter: Callable[[str], None], value: str) -> None:
        setter(value)

    def _sync_inputs(self, state: FilterState) -> None:
        # Mirror changes made elsewhere (clear filters, result panel messages).
        for input_id, value in (("#table-filter", state.table_filter), ("#column-filter", state.column_filter)):
            widget = self.query_one(input_id, Input)
            if widget.value.strip() != value:
                with widget.prevent(Input.Changed):
                    widget.value = value


__all__ = ["FilterBar"]
