"""Shared fakes for the registry, executor and session tests."""

from __future__ import annotations

from typing import Callable, Sequence

import pytest
from keyring.errors import KeyringError

from mysqlui.config import AppConfig, ConfigStore
from mysqlui.models import ConnectionOptions
from mysqlui.query import QueryExecutionError, QueryResult


class MemorySecretStore:
    def __init__(self) -> None:
        self.secrets: dict[str, str] = {}
        self.deleted: list[str] = []

    def get(self, key: str) -> str | None:
        return self.secrets.get(key)

    def set(self, key: str, secret: str) -> None:
        self.secrets[key] = secret

    def delete(self, key: str) -> None:
        self.deleted.append(key)
        self.secrets.pop(key, None)


class LockedSecretStore(MemorySecretStore):
    """Secret store behaving like a keyring with no usable backend."""

    def get(self, key: str) -> str | None:
        raise KeyringError("No recommended backend was available")

    def set(self, key: str, secret: str) -> None:
        raise KeyringError("No recommended backend was available")


FetchHandler = Callable[[str, tuple[object, ...]], list[dict[str, object]]]


class FakeExecutor:
    """Scripted executor; ``fetch`` answers by the first matching SQL fragment."""

    def __init__(self) -> None:
        self.fetch_routes: list[tuple[str, FetchHandler | list[dict[str, object]] | Exception]] = []
        self.fetch_calls: list[tuple[ConnectionOptions, str, tuple[object, ...]]] = []
        self.executed: list[tuple[ConnectionOptions, str]] = []
        self.results: list[QueryResult] = [
            QueryResult(columns=("id",), rows=((1,), (2,)), status="2 row(s)", elapsed_ms=1, row_count=2)
        ]
        self.execute_error: QueryExecutionError | None = None

    def route(self, fragment: str, answer: FetchHandler | list[dict[str, object]] | Exception) -> None:
        self.fetch_routes.append((fragment, answer))

    async def execute(self, options: ConnectionOptions, sql: str) -> list[QueryResult]:
        self.executed.append((options, sql))
        if self.execute_error is not None:
            raise self.execute_error
        return list(self.results)

    async def fetch(
        self,
        options: ConnectionOptions,
        sql: str,
        args: Sequence[object] | None = None,
    ) -> list[dict[str, object]]:
        params = tuple(args or ())
        self.fetch_calls.append((options, sql, params))
        for fragment, answer in self.fetch_routes:
            if fragment in sql:
                if isinstance(answer, Exception):
                    raise answer
                if callable(answer):
                    return answer(sql, params)
                return list(answer)
        return []


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def secrets() -> MemorySecretStore:
    return MemorySecretStore()


@pytest.fixture
def store() -> ConfigStore:
    return ConfigStore(AppConfig(), autosave=False)


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()
