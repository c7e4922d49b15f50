"""Tests for the result panel host logic."""

from __future__ import annotations

from pathlib import Path

import pytest

from mysqlui.query import QueryOutcome, QueryResult
from mysqlui.results import ResultPanel, filter_rows, page_count, page_slice

ROWS = QueryResult(
    columns=("id", "name"),
    rows=((1, "Alice"), (2, "Bob"), (3, None)),
    status="3 row(s)",
    elapsed_ms=2,
    row_count=3,
)


class _Runner:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str | None, str | None]] = []

    async def __call__(self, sql: str, database: str | None, table: str | None) -> QueryOutcome:
        self.calls.append((sql, database, table))
        return QueryOutcome(sql=sql, results=(ROWS,), total_rows=3)


def test_show_replaces_context_and_notifies() -> None:
    panel = ResultPanel(_Runner())
    seen: list[QueryOutcome | None] = []
    panel.subscribe(lambda p: seen.append(p.outcome))

    outcome = QueryOutcome(sql="SELECT 1", results=(ROWS,), database="shop", table="users", total_rows=3)
    panel.show(outcome)

    assert panel.visible is True
    assert (panel.database, panel.table) == ("shop", "users")
    assert seen == [outcome]
    assert "shop.users" in panel.html


def test_update_keeps_context_when_outcome_is_silent() -> None:
    panel = ResultPanel(_Runner())
    panel.show(QueryOutcome(sql="SELECT 1", results=(ROWS,), database="shop", table="users"))

    panel.update(QueryOutcome(sql="SELECT 2", results=(ROWS,)))

    assert (panel.database, panel.table) == ("shop", "users")
    assert panel.outcome is not None and panel.outcome.sql == "SELECT 2"


def test_primary_result_prefers_last_row_set() -> None:
    panel = ResultPanel(_Runner())
    status = QueryResult(columns=(), rows=(), status="Affected rows: 1", elapsed_ms=1)

    panel.show(QueryOutcome(sql="x", results=(ROWS, status)))
    assert panel.primary_result is ROWS

    panel.show(QueryOutcome(sql="y", results=(status,)))
    assert panel.primary_result is status


def test_every_row_set_is_kept_and_selectable() -> None:
    panel = ResultPanel(_Runner())
    first = QueryResult(columns=("a",), rows=((1,),), status="1 row(s)", elapsed_ms=1, row_count=1)
    status = QueryResult(columns=(), rows=(), status="Affected rows: 1", elapsed_ms=1)
    seen: list[int] = []
    panel.subscribe(lambda p: seen.append(p.selected_index))

    panel.show(QueryOutcome(sql="SELECT a FROM x; UPDATE y SET b = 1; SELECT id FROM users", results=(first, status, ROWS)))

    assert panel.result_sets == (first, ROWS)
    assert panel.selected_index == 1
    assert panel.select_set(0) is True
    assert panel.primary_result is first
    assert panel.select_set(0) is False
    assert panel.select_set(5) is False
    assert seen == [1, 0]
    assert ">a</th>" in panel.html
    assert ">name</th>" in panel.html
    assert "Results 1" in panel.html and "Results 2" in panel.html

    panel.show(QueryOutcome(sql="SELECT 1", results=(ROWS,)))
    assert panel.selected_index == 0
    assert "Results 1" not in panel.html


@pytest.mark.anyio
async def test_run_query_message_reruns_against_panel_context() -> None:
    runner = _Runner()
    panel = ResultPanel(runner)
    panel.show(QueryOutcome(sql="SELECT 1", results=(ROWS,), database="shop", table="users"))

    await panel.handle_message({"command": "runQuery", "sql": "  SELECT * FROM users WHERE id = 2 "})
    await panel.handle_message({"command": "runQuery", "sql": "   "})

    assert runner.calls == [("SELECT * FROM users WHERE id = 2", "shop", "users")]
    assert panel.outcome is not None and panel.outcome.total_rows == 3


@pytest.mark.anyio
async def test_filter_and_insert_messages_are_forwarded() -> None:
    filters: list[str] = []
    inserted: list[str] = []
    panel = ResultPanel(_Runner(), set_table_filter=filters.append, insert_text=inserted.append)

    await panel.handle_message({"command": "updateFilter", "text": "ord"})
    await panel.handle_message({"command": "insertText", "text": "email"})
    await panel.handle_message({"command": "bogus"})

    assert filters == ["ord"]
    assert inserted == ["email"]


def test_export_html_writes_file(tmp_path: Path) -> None:
    panel = ResultPanel(_Runner())
    panel.show(QueryOutcome(sql="SELECT 1", results=(ROWS,)))

    path = panel.export_html(tmp_path / "out" / "results.html")

    assert path.read_text(encoding="utf-8") == panel.html
    assert "Alice" in path.read_text(encoding="utf-8")


def test_filter_rows_supports_column_terms() -> None:
    columns = ROWS.columns
    rows = ROWS.rows

    assert filter_rows(columns, rows, "") == list(rows)
    assert filter_rows(columns, rows, "ali") == [(1, "Alice")]
    assert filter_rows(columns, rows, "name=b") == [(2, "Bob")]
    assert filter_rows(columns, rows, "NAME=null; id=3") == [(3, None)]
    assert filter_rows(columns, rows, "missing=x") == []


def test_page_helpers_clamp() -> None:
    rows = [(index,) for index in range(5)]

    assert page_count(0, 100) == 1
    assert page_count(5, 2) == 3
    assert page_slice(rows, 1, 2) == [(2,), (3,)]
    assert page_slice(rows, 9, 2) == [(4,)]
    assert page_slice(rows, -1, 2) == [(0,), (1,)]
