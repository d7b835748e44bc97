"""Cancellable periodic tasks.

:class:`AsyncioTicker` drives the batched flusher in production.
:class:`ManualTicker` has the same interface but only fires when a test
calls :meth:`~ManualTicker.tick` or :meth:`~ManualTicker.advance`, so
flush timing is deterministic.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

from blocsync.observability import get_logger

log = get_logger("blocsync.ticker")

TickCallback = Callable[[], Awaitable[None]]


@runtime_checkable
class Ticker(Protocol):
    """A periodic callback with an explicit stop handle."""

    interval: float

    def start(self, callback: TickCallback) -> None: ...

    async def stop(self) -> None: ...

    @property
    def running(self) -> bool: ...


class AsyncioTicker:
    """Runs *callback* every *interval* seconds on the running event loop.

    Exceptions raised by the callback are logged and the ticker keeps
    running.  :meth:`stop` lets a callback that is already running finish;
    only the sleep between callbacks is cancelled.
    """

    def __init__(self, interval: float) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self.interval = interval
        self._task: asyncio.Task[None] | None = None
        self._busy = False
        self._stopping = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, callback: TickCallback) -> None:
        if self.running:
            raise RuntimeError("Ticker is already running")
        self._task = asyncio.get_running_loop().create_task(self._run(callback))

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        self._stopping = True
        if not self._busy:
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        finally:
            self._stopping = False

    async def _run(self, callback: TickCallback) -> None:
        while not self._stopping:
            await asyncio.sleep(self.interval)
            self._busy = True
            try:
                await callback()
            except Exception as exc:
                log.error(
                    "tick callback failed",
                    exc_info=True,
                    extra={"extra_fields": {"op": "tick", "error": str(exc)}},
                )
            finally:
                self._busy = False


class ManualTicker:
    """Test ticker advanced by hand instead of by the clock."""

    def __init__(self, interval: float = 1.0) -> None:
        self.interval = interval
        self._callback: TickCallback | None = None
        self._elapsed = 0.0
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._callback is not None

    def start(self, callback: TickCallback) -> None:
        if self.running:
            raise RuntimeError("Ticker is already running")
        self._callback = callback
        self._elapsed = 0.0

    async def stop(self) -> None:
        self._callback = None

    async def tick(self) -> None:
        """Fire the callback once, immediately."""
        if self._callback is None:
            return
        self.ticks += 1
        await self._callback()

    async def advance(self, seconds: float) -> int:
        """Advance virtual time, firing once per elapsed interval.

        Returns the number of ticks fired.
        """
        self._elapsed += seconds
        fired = 0
        while self._callback is not None and self._elapsed >= self.interval:
            self._elapsed -= self.interval
            await self.tick()
            fired += 1
        return fired
