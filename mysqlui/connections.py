"""Opening client connections for the per-operation connection lifecycle."""

from __future__ import annotations

import logging
import os
import ssl
from typing import Any

import aiomysql
from pymysql.constants import CLIENT

from .models import ConnectionOptions

LOG = logging.getLogger(__name__)


class ConnectionBackendError(RuntimeError):
    """Raised when a connection to the server cannot be established."""


def build_ssl_context(cert_path: str | None) -> ssl.SSLContext | None:
    """Return a TLS context trusting ``cert_path`` when the file exists."""

    if not cert_path or not os.path.isfile(cert_path):
        return None
    return ssl.create_default_context(cafile=cert_path)


def connect_kwargs(
    options: ConnectionOptions,
    *,
    multi_statements: bool = True,
    connect_timeout: float = 10.0,
) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "host": options.host or "localhost",
        "port": int(options.port),
        "user": options.user,
        "password": options.password or "",
        "charset": "utf8mb4",
        "autocommit": True,
        "connect_timeout": connect_timeout,
    }
    if options.database:
        kwargs["db"] = options.database
    if multi_statements:
        kwargs["client_flag"] = CLIENT.MULTI_STATEMENTS
    context = build_ssl_context(options.cert_path)
    if context is not None:
        kwargs["ssl"] = context
    return kwargs


async def open_connection(options: ConnectionOptions, **kwargs: Any) -> aiomysql.Connection:
    """Open one new connection; failures surface as ConnectionBackendError."""

    try:
        return await aiomysql.connect(**connect_kwargs(options, **kwargs))
    except Exception as exc:
        target = f"{options.user}@{options.host}:{options.port}"
        raise ConnectionBackendError(f"Failed to connect to {target}: {exc}") from exc


async def close_connection(conn: aiomysql.Connection) -> None:
    try:
        await conn.ensure_closed()
    except Exception:  # pragma: no cover - best effort cleanup
        LOG.debug("Connection close failed; dropping transport", exc_info=True)
        conn.close()


__all__ = [
    "ConnectionBackendError",
    "build_ssl_context",
    "close_connection",
    "connect_kwargs",
    "open_connection",
]
