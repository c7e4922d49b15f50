"""Tests for the text and HTML renderers."""

from __future__ import annotations

from mysqlui.query import QueryResult
from mysqlui.render import (
    cell_text,
    display_width,
    format_text_table,
    is_truncated,
    render_result_html,
    truncate_display,
)


def test_display_width_counts_cjk_as_two_columns() -> None:
    assert display_width("abc") == 3
    assert display_width("订单") == 4
    assert display_width("ａ") == 2


def test_truncate_display_keeps_short_text() -> None:
    text = "x" * 50

    assert truncate_display(text) == text
    assert not is_truncated(text)


def test_truncate_display_cuts_long_text() -> None:
    assert truncate_display("x" * 51) == "x" * 47 + "..."
    assert truncate_display("订" * 30) == "订" * 23 + "..."


def test_cell_text_handles_null_and_bytes() -> None:
    assert cell_text(None) == "NULL"
    assert cell_text(b"caf\xc3\xa9") == "café"
    assert cell_text(3.5) == "3.5"


def test_format_text_table_pads_to_display_width() -> None:
    table = format_text_table(("name", "city"), [("订单", "Oslo"), ("bob", None)], min_widths=(6,))

    lines = table.splitlines()
    assert lines[0] == "name    city"
    assert lines[1] == "------  ----"
    assert lines[2] == "订单    Oslo"
    assert lines[3] == "bob     NULL"


def test_render_result_html_escapes_and_paginates() -> None:
    result = QueryResult(
        columns=("id", "note"),
        rows=((1, "<b>bold</b>"), (2, "y" * 80), (3, None)),
        status="3 row(s)",
        elapsed_ms=4,
        row_count=3,
    )

    page = render_result_html(result, "SELECT * FROM notes LIMIT 100", 1234, page_size=100, title="shop.notes")

    assert "<title>shop.notes</title>" in page
    assert "&lt;b&gt;bold&lt;/b&gt;" in page
    assert "<b>bold</b>" not in page
    assert "(total 1234 rows)" in page
    assert "y" * 47 + "..." in page
    assert '<span class="empty-cell">NULL</span>' in page
    assert 'value="SELECT * FROM notes LIMIT 100"' in page
    assert '<option value="100" selected>' in page
    assert 'command: "runQuery"' in page


def test_render_result_html_shows_error_and_status() -> None:
    status_only = QueryResult(columns=(), rows=(), status="Affected rows: 2", elapsed_ms=1)

    failed = render_result_html(None, "SELEC 1", error="You have an error in your SQL syntax")
    updated = render_result_html(status_only, "UPDATE t SET a = 1")

    assert '<div class="error">You have an error in your SQL syntax</div>' in failed
    assert "<table" not in failed
    assert "Affected rows: 2" in updated
    assert "(total" not in updated
