"""Tests for the filter input debouncer."""

from __future__ import annotations

import asyncio

import pytest

from mysqlui.debounce import Debouncer


@pytest.mark.anyio
async def test_debouncer_runs_only_latest_submission() -> None:
    seen: list[str] = []
    debouncer = Debouncer(delay=0.01)

    async def _record(value: str) -> None:
        seen.append(value)

    debouncer.submit(lambda: _record("o"))
    debouncer.submit(lambda: _record("or"))
    debouncer.submit(lambda: _record("ord"))
    assert debouncer.pending is True
    await asyncio.sleep(0.05)

    assert seen == ["ord"]
    assert debouncer.pending is False


@pytest.mark.anyio
async def test_debouncer_cancel_drops_pending_run() -> None:
    seen: list[str] = []
    debouncer = Debouncer(delay=0.01)

    async def _record() -> None:
        seen.append("ran")

    debouncer.submit(_record)
    debouncer.cancel()
    await asyncio.sleep(0.03)

    assert seen == []
    assert debouncer.pending is False
