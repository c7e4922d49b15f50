"""Shared dataclasses used across registry/query/tree modules."""

from __future__ import annotations

from dataclasses import dataclass, replace

DEFAULT_PORT = 3306


@dataclass(frozen=True, slots=True)
class ConnectionProfile:
    """Persisted connection profile; the password lives in the secret store."""

    id: str
    host: str
    user: str
    port: int = DEFAULT_PORT
    cert_path: str | None = None
    display_name: str | None = None

    @property
    def label(self) -> str:
        return self.display_name or self.host


@dataclass(frozen=True, slots=True)
class ConnectionOptions:
    """Everything needed to open one client connection."""

    host: str
    user: str
    password: str | None = None
    port: int = DEFAULT_PORT
    database: str | None = None
    cert_path: str | None = None

    def with_database(self, database: str | None) -> ConnectionOptions:
        return replace(self, database=database)


@dataclass(frozen=True, slots=True)
class TableInfo:
    name: str
    comment: str = ""


@dataclass(frozen=True, slots=True)
class ColumnInfo:
    """One row of information_schema.COLUMNS."""

    name: str
    column_type: str
    comment: str = ""
    key: str = ""
    nullable: str = "YES"
    default: object | None = None
    extra: str = ""

    @property
    def is_primary(self) -> bool:
        return self.key == "PRI"


def table_key(host: str, port: int | str, database: str, table: str) -> str:
    """Identity used for pinning: ``host:port:database:table``."""

    return f"{host}:{port}:{database}:{table}"


__all__ = [
    "ColumnInfo",
    "ConnectionOptions",
    "ConnectionProfile",
    "DEFAULT_PORT",
    "TableInfo",
    "table_key",
]
