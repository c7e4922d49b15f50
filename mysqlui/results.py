"""Host side of the result panel: current outcome, HTML export and message dispatch."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Awaitable, Callable, Mapping, Sequence

from .query import QueryOutcome, QueryResult
from .render import cell_text, render_result_html

LOG = logging.getLogger(__name__)

RunQuery = Callable[[str, "str | None", "str | None"], Awaitable[QueryOutcome]]
PanelListener = Callable[["ResultPanel"], None]


class ResultPanel:
    """Keeps the last result and the database/table it was queried against.

    ``handle_message`` accepts the same ``{"command": ...}`` payloads the HTML
    page posts, so the terminal widgets and the exported page share one path.
    """

    def __init__(
        self,
        run_query: RunQuery,
        *,
        set_table_filter: Callable[[str], None] | None = None,
        insert_text: Callable[[str], None] | None = None,
        page_size: int = 100,
    ) -> None:
        self._run_query = run_query
        self._set_table_filter = set_table_filter
        self._insert_text = insert_text
        self._page_size = page_size
        self._outcome: QueryOutcome | None = None
        self._selected = 0
        self._html = ""
        self._database: str | None = None
        self._table: str | None = None
        self._listeners: set[PanelListener] = set()
        self._visible = False

    @property
    def outcome(self) -> QueryOutcome | None:
        return self._outcome

    @property
    def html(self) -> str:
        return self._html

    @property
    def database(self) -> str | None:
        return self._database

    @property
    def table(self) -> str | None:
        return self._table

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def result_sets(self) -> tuple[QueryResult, ...]:
        """Every row-returning set, else the last status-only result on its own."""

        if self._outcome is None:
            return ()
        row_sets = self._outcome.row_sets
        if row_sets:
            return row_sets
        return self._outcome.results[-1:]

    @property
    def selected_index(self) -> int:
        return self._selected

    @property
    def primary_result(self) -> QueryResult | None:
        """The result set currently shown; the last one after each new outcome."""

        sets = self.result_sets
        return sets[self._selected] if sets else None

    def select_set(self, index: int) -> bool:
        """Show result set ``index``; returns False when it is out of range or already shown."""

        if not 0 <= index < len(self.result_sets) or index == self._selected:
            return False
        self._selected = index
        self._notify()
        return True

    def subscribe(self, listener: PanelListener) -> Callable[[], None]:
        self._listeners.add(listener)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    def show(self, outcome: QueryOutcome) -> None:
        """Replace the panel contents with a fresh outcome."""

        self._visible = True
        self._database = outcome.database
        self._table = outcome.table
        self._apply(outcome)

    def update(self, outcome: QueryOutcome) -> None:
        """Refresh in place; database/table only change when the outcome names them."""

        if not self._visible:
            self.show(outcome)
            return
        if outcome.database is not None:
            self._database = outcome.database
        if outcome.table is not None:
            self._table = outcome.table
        self._apply(outcome)

    def close(self) -> None:
        self._visible = False

    async def handle_message(self, message: Mapping[str, object]) -> None:
        command = message.get("command")
        if command == "runQuery":
            sql = str(message.get("sql") or "").strip()
            if not sql:
                return
            outcome = await self._run_query(sql, self._database, self._table)
            self.update(outcome)
        elif command == "updateFilter":
            if self._set_table_filter is not None:
                self._set_table_filter(str(message.get("text") or ""))
        elif command == "insertText":
            if self._insert_text is not None:
                self._insert_text(str(message.get("text") or ""))
        else:
            LOG.warning("Ignoring unknown result panel message", extra={"command": command})

    def export_html(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self._html, encoding="utf-8")
        return path

    def _apply(self, outcome: QueryOutcome) -> None:
        self._outcome = outcome
        self._selected = max(len(self.result_sets) - 1, 0)
        title = f"{outcome.database}.{outcome.table}" if outcome.database and outcome.table else "MySQL"
        self._html = render_result_html(
            self.result_sets,
            outcome.sql,
            outcome.total_rows,
            page_size=self._page_size,
            error=outcome.error,
            title=title,
        )
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                LOG.exception("Result panel listener failed")


def filter_rows(
    columns: Sequence[str],
    rows: Sequence[Sequence[object]],
    expression: str,
) -> list[Sequence[object]]:
    """Case-insensitive substring filter used by the result view.

    ``expression`` holds ``;``-separated terms, each either ``column=text``
    (matched against that column) or bare text (matched against any column).
    All terms must match.
    """

    terms: list[tuple[int | None, str]] = []
    lookup = {name.lower(): index for index, name in enumerate(columns)}
    for raw in expression.split(";"):
        term = raw.strip()
        if not term:
            continue
        name, sep, needle = term.partition("=")
        index = lookup.get(name.strip().lower()) if sep else None
        if index is not None:
            terms.append((index, needle.strip().lower()))
        else:
            terms.append((None, term.lower()))
    if not terms:
        return list(rows)

    def _matches(row: Sequence[object]) -> bool:
        cells = [cell_text(value).lower() for value in row]
        for index, needle in terms:
            if index is None:
                if not any(needle in cell for cell in cells):
                    return False
            elif index >= len(cells) or needle not in cells[index]:
                return False
        return True

    return [row for row in rows if _matches(row)]


def page_count(total: int, page_size: int) -> int:
    return max(1, -(-total // max(1, page_size)))


def page_slice(rows: Sequence[Sequence[object]], page: int, page_size: int) -> list[Sequence[object]]:
    """Rows of the zero-based ``page``; out-of-range pages clamp to the ends."""

    page = min(max(page, 0), page_count(len(rows), page_size) - 1)
    start = page * page_size
    return list(rows[start : start + page_size])


__all__ = ["ResultPanel", "filter_rows", "page_count", "page_slice"]
