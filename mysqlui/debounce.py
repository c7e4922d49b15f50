"""Async debounce helper used by the filter inputs."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any


class Debouncer:
    """Coalesces rapid keystrokes into a single delayed coroutine run."""

    def __init__(self, delay: float = 0.1) -> None:
        self._delay = delay
        self._task: asyncio.Task[Any] | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def submit(self, coro_factory: Callable[[], Awaitable[Any]]) -> None:
        """Schedule ``coro_factory`` after the delay, replacing any pending run."""

        self.cancel()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._runner(coro_factory))

    def cancel(self) -> None:
        if self._task:
            self._task.cancel()
            self._task = None

    async def _runner(self, coro_factory: Callable[[], Awaitable[Any]]) -> None:
        try:
            await asyncio.sleep(self._delay)
        except asyncio.CancelledError:
            return
        await coro_factory()


__all__ = ["Debouncer"]
