"""Textual SQL helpers: delimiter stripping, auto-limit, table parsing, DDL builders.

None of these are SQL parsers. ``parse_table_from_sql`` in particular is a
best-effort scan meant for single-table ``SELECT`` statements; joins,
subqueries and ``FROM`` inside literals or comments can mis-parse.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation

_DELIMITER_RE = re.compile(r"\bdelimiter[ \t]+(\S+)", re.IGNORECASE)
_LIMIT_RE = re.compile(r"\blimit\b", re.IGNORECASE)
_SELECT_RE = re.compile(r"select\b", re.IGNORECASE)
_FROM_RE = re.compile(r"\bfrom\b", re.IGNORECASE)
_IDENTIFIER_RE = re.compile(r"^\w+$")

_QUOTES = "`'\""
_NAME_STOP = set(" \t\r\n,;()") | set(_QUOTES)
_NUMERIC_HINTS = ("int", "decimal", "float", "double", "numeric", "bit")


class InvalidIdentifierError(ValueError):
    """Raised when a name or literal cannot be safely interpolated."""


@dataclass(frozen=True, slots=True)
class TableRef:
    """Result of ``parse_table_from_sql``."""

    database: str | None = None
    table: str | None = None


def remove_delimiter_instructions(sql: str) -> str:
    """Rewrite ``DELIMITER x`` blocks into plain ``;``-terminated statements."""

    current = ";"
    position = 0
    parts: list[str] = []
    for match in _DELIMITER_RE.finditer(sql):
        line_start = sql.rfind("\n", 0, match.start()) + 1
        if "--" in sql[line_start : match.start()]:
            continue
        parts.append(_swap_delimiter(sql[position : match.start()], current))
        position = match.end()
        current = match.group(1)
    parts.append(_swap_delimiter(sql[position:], current))
    return "".join(parts)


def _swap_delimiter(chunk: str, delimiter: str) -> str:
    if delimiter == ";":
        return chunk
    return chunk.replace(delimiter, ";")


def apply_auto_limit(sql: str, limit: int = 100) -> str:
    """Append ``LIMIT n`` to a bare ``SELECT`` lacking a ``LIMIT`` token."""

    statement = sql.strip()
    body, trailer = _split_trailing_comments(statement)
    if not _SELECT_RE.match(body) or _LIMIT_RE.search(body):
        return sql
    terminated = body.endswith(";")
    body = body.rstrip(";").rstrip()
    suffix = ";" if terminated else ""
    return f"{body} LIMIT {limit}{suffix}{trailer}"


def _split_trailing_comments(statement: str) -> tuple[str, str]:
    """Peel ``-- ...`` and ``# ...`` comments off the end of ``statement``."""

    body = statement
    while body:
        line_start = body.rfind("\n") + 1
        start = _line_comment_start(body[line_start:])
        if start is None:
            break
        body = body[: line_start + start].rstrip()
    return body, statement[len(body) :]


def _line_comment_start(line: str) -> int | None:
    quote: str | None = None
    for index, char in enumerate(line):
        if quote is not None:
            if char == quote:
                quote = None
        elif char in _QUOTES:
            quote = char
        elif char == "#" or (line.startswith("--", index) and line[index + 2 : index + 3] in ("", " ", "\t")):
            return index
    return None


def parse_table_from_sql(sql: str) -> TableRef:
    """Return the first ``FROM`` target as ``TableRef(database, table)``."""

    match = _FROM_RE.search(sql)
    if match is None:
        return TableRef()
    text = sql[match.end() :].lstrip()
    first, rest = _read_name(text)
    if not first:
        return TableRef()
    if rest.startswith("."):
        second, _ = _read_name(rest[1:])
        if second:
            return TableRef(database=first, table=second)
    return TableRef(table=first)


def split_table_reference(text: str) -> TableRef:
    """Parse a selected ``table`` or ``db.table`` name, ignoring backticks."""

    name = text.strip().replace("`", "")
    if not name:
        return TableRef()
    database, dot, table = name.partition(".")
    if dot:
        return TableRef(database=database or None, table=table or None)
    return TableRef(table=name)


def _read_name(text: str) -> tuple[str, str]:
    """Read one optionally quoted name; returns (name, remaining text)."""

    index = 0
    while index < len(text) and text[index] in _QUOTES:
        index += 1
    start = index
    while index < len(text) and text[index] not in _NAME_STOP and text[index] != ".":
        index += 1
    name = text[start:index]
    while index < len(text) and text[index] in _QUOTES:
        index += 1
    return name, text[index:]


def validate_identifier(name: str) -> str:
    if not name or not _IDENTIFIER_RE.match(name):
        raise InvalidIdentifierError(f"Invalid identifier: {name!r}")
    return name


def quote_identifier(*names: str) -> str:
    """Backtick-quote a dotted path after validating each part."""

    return ".".join(f"`{validate_identifier(name)}`" for name in names)


def quote_literal(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "''")
    return "'" + escaped + "'"


def is_numeric_type(column_type: str) -> bool:
    lowered = column_type.lower()
    return any(hint in lowered for hint in _NUMERIC_HINTS)


def select_top_sql(database: str, table: str, limit: int = 100) -> str:
    return f"SELECT * FROM {quote_identifier(database, table)} LIMIT {limit};"


def count_sql(database: str, table: str) -> str:
    return f"SELECT COUNT(*) AS total FROM {quote_identifier(database, table)};"


def select_column_sql(database: str, table: str, column: str, limit: int = 1000) -> str:
    return f"SELECT {quote_identifier(column)}\nFROM {quote_identifier(database, table)}\nLIMIT {limit};"


def select_filter_sql(
    database: str,
    table: str,
    column: str,
    column_type: str,
    value: str,
    limit: int = 1000,
) -> str:
    """Build ``SELECT * ... WHERE column = value`` honouring numeric types."""

    if is_numeric_type(column_type):
        try:
            literal = str(Decimal(value.strip()))
        except InvalidOperation as exc:
            raise InvalidIdentifierError(f"Not a number: {value!r}") from exc
    else:
        literal = quote_literal(value)
    return (
        f"SELECT *\nFROM {quote_identifier(database, table)}\n"
        f"WHERE {quote_identifier(column)} = {literal}\nLIMIT {limit};"
    )


def drop_table_sql(database: str, table: str) -> str:
    return f"DROP TABLE {quote_identifier(database, table)};"


def backup_table_name(table: str, now: datetime | None = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")
    return f"{table}_{stamp}"


def backup_table_sql(database: str, table: str, backup: str) -> tuple[str, str]:
    """Statements creating ``backup`` as a structural copy and filling it."""

    source = quote_identifier(database, table)
    target = quote_identifier(database, backup)
    return (
        f"CREATE TABLE {target} LIKE {source};",
        f"INSERT INTO {target} SELECT * FROM {source};",
    )


_COLUMN_TYPE_RE = re.compile(r"^[A-Za-z]+(\s*\(\s*\d+(\s*,\s*\d+)?\s*\))?(\s+unsigned)?$", re.IGNORECASE)


def add_column_sql(
    database: str,
    table: str,
    column: str,
    column_type: str,
    *,
    nullable: bool = True,
    comment: str | None = None,
) -> str:
    column_type = column_type.strip()
    if not _COLUMN_TYPE_RE.match(column_type):
        raise InvalidIdentifierError(f"Invalid column type: {column_type!r}")
    parts = [
        f"ALTER TABLE {quote_identifier(database, table)}",
        f"ADD COLUMN {quote_identifier(column)} {column_type.upper()}",
    ]
    if not nullable:
        parts[-1] += " NOT NULL"
    if comment:
        parts[-1] += f" COMMENT {quote_literal(comment)}"
    return "\n".join(parts) + ";"


def drop_column_sql(database: str, table: str, column: str) -> str:
    return f"ALTER TABLE {quote_identifier(database, table)}\nDROP COLUMN {quote_identifier(column)};"


__all__ = [
    "InvalidIdentifierError",
    "TableRef",
    "add_column_sql",
    "apply_auto_limit",
    "backup_table_name",
    "backup_table_sql",
    "count_sql",
    "drop_column_sql",
    "drop_table_sql",
    "is_numeric_type",
    "parse_table_from_sql",
    "quote_identifier",
    "quote_literal",
    "remove_delimiter_instructions",
    "select_column_sql",
    "select_filter_sql",
    "select_top_sql",
    "split_table_reference",
    "validate_identifier",
]
