"""Plain-text and HTML renderers for result sets and structure reports."""

from __future__ import annotations

from typing import Sequence

from jinja2 import Environment

from .metadata import StructureReport
from .query import QueryResult
from .sqltext import quote_literal

TRUNCATE_LIMIT = 50
TRUNCATE_KEEP = 47
ELLIPSIS = "..."

_WIDE_RANGES = (
    (0x4E00, 0x9FFF),
    (0x3400, 0x4DBF),
    (0xFF01, 0xFF60),
)


def char_width(char: str) -> int:
    code = ord(char)
    for low, high in _WIDE_RANGES:
        if low <= code <= high:
            return 2
    return 1


def display_width(text: str) -> int:
    """Column width of ``text`` with CJK ideographs and fullwidth forms counted as 2."""

    return sum(char_width(char) for char in text)


def is_truncated(text: str, limit: int = TRUNCATE_LIMIT) -> bool:
    return display_width(text) > limit


def truncate_display(text: str, limit: int = TRUNCATE_LIMIT, keep: int = TRUNCATE_KEEP) -> str:
    """Cut ``text`` to at most ``keep`` columns plus an ellipsis when wider than ``limit``."""

    if display_width(text) <= limit:
        return text
    width = 0
    end = 0
    for index, char in enumerate(text):
        step = char_width(char)
        if width + step > keep:
            break
        width += step
        end = index + 1
    return text[:end] + ELLIPSIS


def cell_text(value: object) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def pad_display(text: str, width: int, fill: str = " ") -> str:
    gap = width - display_width(text)
    return text + fill * gap if gap > 0 else text


def format_text_table(
    headers: Sequence[str],
    rows: Sequence[Sequence[object]],
    *,
    min_widths: Sequence[int] | None = None,
    gap: int = 2,
) -> str:
    """Fixed-width table with a dashed separator; long cells are truncated."""

    cells = [[truncate_display(cell_text(value)) for value in row] for row in rows]
    widths: list[int] = []
    for index, header in enumerate(headers):
        width = display_width(header)
        for row in cells:
            if index < len(row):
                width = max(width, display_width(row[index]))
        if min_widths is not None and index < len(min_widths):
            width = max(width, min_widths[index])
        widths.append(width)
    spacer = " " * gap
    lines = [
        spacer.join(pad_display(header, widths[index]) for index, header in enumerate(headers)).rstrip(),
        spacer.join("-" * width for width in widths),
    ]
    for row in cells:
        padded = [pad_display(row[index] if index < len(row) else "", widths[index]) for index in range(len(headers))]
        lines.append(spacer.join(padded).rstrip())
    return "\n".join(lines)


def structure_sql(database: str, table: str) -> str:
    return (
        "SELECT COLUMN_NAME AS 'Field', COLUMN_TYPE AS 'Type', IS_NULLABLE AS 'Null', "
        "COLUMN_KEY AS 'Key', COLUMN_DEFAULT AS 'Default', EXTRA AS 'Extra', "
        "COLUMN_COMMENT AS 'Comment' FROM information_schema.COLUMNS "
        f"WHERE TABLE_SCHEMA = {quote_literal(database)} AND TABLE_NAME = {quote_literal(table)};"
    )


def render_structure(report: StructureReport) -> str:
    """Build the plain-text table structure document."""

    title = f"Table: {report.database}.{report.table}"
    if report.comment:
        title += f" [{report.comment}]"
    out: list[str] = [title, "=" * 80, "", "-- Columns --", structure_sql(report.database, report.table), ""]

    if report.columns:
        out.append(
            format_text_table(
                ("Field", "Type", "Null", "Default", "Comment"),
                [
                    (col.name, col.column_type, col.nullable, "NULL" if col.default in (None, "") else col.default, col.comment)
                    for col in report.columns
                ],
                min_widths=(15, 20, 8, 15, 10),
            )
        )
    else:
        out.append("No columns found.")
    out.append("")

    if report.primary_keys:
        out.extend(["-- Primary Key --", f"Primary Key({', '.join(report.primary_keys)})", ""])

    if report.foreign_keys:
        out.append("-- Foreign Keys --")
        for fk in report.foreign_keys:
            out.append(f"FOREIGN KEY ({fk.column}) REFERENCES {fk.referenced_table}({fk.referenced_column})")
        out.append("")

    if report.indexes:
        out.append("-- Indexes --")
        for index in report.indexes:
            unique = "UNIQUE " if index.unique else ""
            out.append(f"{unique}INDEX {index.name} ({', '.join(index.columns)})")
        out.append("")

    out.extend(["-- Sample Data (5 rows) --", report.sample_sql, ""])
    out.append(_render_samples(report))
    return "\n".join(out) + "\n"


def _render_samples(report: StructureReport) -> str:
    if not report.sample_rows:
        return "(No data)"
    active = [
        col
        for col in report.columns
        if any(row.get(col.name) not in (None, "") for row in report.sample_rows)
    ]
    if not active:
        return "(No data in any column)"
    headers = [f"{col.name} ({col.comment})" if col.comment else col.name for col in active]
    rows = [[row.get(col.name) for col in active] for row in report.sample_rows]
    return format_text_table(headers, rows)


_ENV = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)

_RESULT_TEMPLATE = _ENV.from_string(
    """<!DOCTYPE html>
<html>
<head>
<meta http-equiv="Content-type" content="text/html;charset=UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{{ title }}</title>
<style>
body { font-family: -apple-system, "Segoe UI", Roboto, sans-serif; margin: 0; padding: 16px; }
table { border-collapse: collapse; width: 100%; font-size: 13px; }
th { background: #e0e0e0; border: 1px solid #d0d0d0; padding: 8px 12px; text-align: left; position: sticky; top: 0; cursor: copy; }
td { border: 1px solid #e0e0e0; padding: 6px 10px; white-space: nowrap; }
tr.hidden { display: none; }
.filter-row input { width: 100%; box-sizing: border-box; }
.query-bar { display: flex; gap: 8px; align-items: center; margin-bottom: 12px; }
.query-input { flex: 1; font-family: monospace; padding: 4px 8px; }
.total-info { font-size: 12px; white-space: nowrap; }
.empty-cell { color: #999; font-style: italic; }
.error { color: #c00; white-space: pre-wrap; }
.pager { margin-top: 8px; display: flex; gap: 8px; align-items: center; }
.result-set { margin-bottom: 24px; }
#modal { display: none; position: fixed; inset: 0; background: rgba(0, 0, 0, 0.5); }
#modal.show { display: flex; align-items: center; justify-content: center; }
.modal-content { background: #fff; padding: 16px; max-width: 80%; max-height: 80%; overflow: auto; }
.modal-value { white-space: pre-wrap; word-break: break-all; font-family: monospace; }
</style>
</head>
<body>
<div class="query-bar">
<input type="text" id="sqlInput" class="query-input" value="{{ sql }}" placeholder="Enter SQL query...">
<button class="run-btn" onclick="runQuery()">Run</button>
{% if total_rows is not none %}
<span class="total-info">(total {{ total_rows }} rows)</span>
{% endif %}
</div>
{% if error %}
<div class="error">{{ error }}</div>
{% endif %}
{% for result_set in sets %}
<section class="result-set" data-page="0" data-page-size="{{ page_size }}">
{% if sets|length > 1 %}
<h3 class="set-title">Results {{ loop.index }}</h3>
{% endif %}
{% if result_set.columns %}
<table class="results">
<thead>
<tr>
{% for column in result_set.columns %}
<th title="Click to copy" onclick='copyHeader({{ column|tojson }})'>{{ column }}</th>
{% endfor %}
</tr>
<tr class="filter-row">
{% for column in result_set.columns %}
<th><input type="text" data-column="{{ loop.index0 }}" placeholder="filter" oninput="applyFilters(this)"></th>
{% endfor %}
</tr>
</thead>
<tbody>
{% for row in result_set.rows %}
<tr class="data-row">
{% for cell in row %}
<td data-value="{{ cell.full }}">
{% if cell.null %}
<span class="empty-cell">NULL</span>
{% elif cell.truncated %}
<span class="cell-content truncated">{{ cell.display }}</span><button class="expand-btn" onclick='showModal({{ cell.full|tojson }})'>...</button>
{% else %}
<span class="cell-content">{{ cell.display }}</span>
{% endif %}
</td>
{% endfor %}
</tr>
{% endfor %}
</tbody>
</table>
<div class="pager">
<button onclick="changePage(this, -1)">Prev</button>
<span class="page-info"></span>
<button onclick="changePage(this, 1)">Next</button>
<select class="page-size" onchange="setPageSize(this)">
{% for size in page_sizes %}
<option value="{{ size }}"{% if size == page_size %} selected{% endif %}>{{ size }} / page</option>
{% endfor %}
</select>
</div>
{% else %}
<div class="no-data">{{ result_set.status or "No data" }}</div>
{% endif %}
</section>
{% else %}
{% if not error %}
<div class="no-data">No data</div>
{% endif %}
{% endfor %}
<div id="modal">
<div class="modal-content">
<button class="close-btn" onclick="closeModal()">&times;</button>
<div class="modal-value" id="modalValue"></div>
</div>
</div>
<script>
const host = window.acquireHostApi ? window.acquireHostApi() : { postMessage: (message) => window.parent.postMessage(message, "*") };

function matchingRows(section) {
    const inputs = Array.from(section.querySelectorAll(".filter-row input"));
    return Array.from(section.querySelectorAll("tr.data-row")).filter((row) =>
        inputs.every((input) => {
            const needle = input.value.toLowerCase();
            if (!needle) { return true; }
            const cell = row.cells[Number(input.dataset.column)];
            return cell && cell.dataset.value.toLowerCase().includes(needle);
        })
    );
}

function render(section) {
    const pageSize = Number(section.dataset.pageSize);
    const visible = matchingRows(section);
    const pages = Math.max(1, Math.ceil(visible.length / pageSize));
    const page = Math.min(Math.max(Number(section.dataset.page), 0), pages - 1);
    section.dataset.page = page;
    section.querySelectorAll("tr.data-row").forEach((row) => row.classList.add("hidden"));
    visible.slice(page * pageSize, (page + 1) * pageSize).forEach((row) => row.classList.remove("hidden"));
    const info = section.querySelector(".page-info");
    if (info) { info.textContent = `Page ${page + 1} / ${pages} (${visible.length} rows)`; }
}

function applyFilters(input) { const section = input.closest("section"); section.dataset.page = 0; render(section); }
function changePage(button, delta) {
    const section = button.closest("section");
    section.dataset.page = Number(section.dataset.page) + delta;
    render(section);
}
function setPageSize(select) {
    const section = select.closest("section");
    section.dataset.pageSize = select.value;
    section.dataset.page = 0;
    render(section);
}

function copyHeader(name) {
    if (navigator.clipboard) { navigator.clipboard.writeText(name); }
    host.postMessage({ command: "insertText", text: name });
}

function showModal(value) {
    document.getElementById("modalValue").textContent = value;
    document.getElementById("modal").classList.add("show");
}
function closeModal() { document.getElementById("modal").classList.remove("show"); }
document.getElementById("modal").addEventListener("click", (e) => { if (e.target.id === "modal") { closeModal(); } });

function runQuery() {
    const input = document.getElementById("sqlInput");
    if (input) { host.postMessage({ command: "runQuery", sql: input.value }); }
}

document.addEventListener("keydown", (e) => {
    if (e.key === "Escape") { closeModal(); }
    if (e.key === "Enter" && e.target.id === "sqlInput" && !e.shiftKey) { e.preventDefault(); runQuery(); }
});

document.querySelectorAll("section.result-set").forEach(render);
</script>
</body>
</html>
"""
)


def render_result_html(
    results: QueryResult | Sequence[QueryResult] | None,
    sql: str = "",
    total_rows: int | None = None,
    *,
    page_size: int = 100,
    error: str | None = None,
    title: str = "MySQL",
) -> str:
    """Render result sets as a standalone HTML document.

    Each set gets its own table, column filters and pager; a page holding
    more than one set labels them ``Results 1..N``.
    """

    if results is None:
        results = ()
    elif isinstance(results, QueryResult):
        results = (results,)
    sets = [
        {
            "columns": list(result.columns),
            "rows": [[_html_cell(value) for value in row] for row in result.rows],
            "status": result.status,
        }
        for result in results
    ]
    sizes = sorted({50, 100, 200, 500, page_size})
    return _RESULT_TEMPLATE.render(
        title=title,
        sql=sql.strip(),
        total_rows=total_rows,
        error=error,
        sets=sets,
        page_size=page_size,
        page_sizes=sizes,
    )


def _html_cell(value: object) -> dict[str, object]:
    full = cell_text(value)
    truncated = value is not None and is_truncated(full)
    return {
        "null": value is None,
        "full": full,
        "truncated": truncated,
        "display": truncate_display(full) if truncated else full,
    }


__all__ = [
    "ELLIPSIS",
    "TRUNCATE_KEEP",
    "TRUNCATE_LIMIT",
    "cell_text",
    "display_width",
    "format_text_table",
    "is_truncated",
    "pad_display",
    "render_result_html",
    "render_structure",
    "structure_sql",
    "truncate_display",
]
