"""Batched flush of content updates.

Content edits arrive on every keystroke and coalesce safely, so UPDATE
records are only queued by the classifier.  :class:`BatchedFlusher` drains
the queue once per ticker interval and writes the *latest* content of each
queued bloc, so three edits to one node within an interval produce one
store call.

The queue is drained snapshot-then-clear: records pushed while a flush is
awaiting the store land in the next batch.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import Any

from blocsync.bridge import IdentityBridge
from blocsync.content import set_update_time_state, stamp
from blocsync.models import ChangeRecord, FlushResult, WriteStatus
from blocsync.observability import NoopMetricsHook, get_logger
from blocsync.tree.snapshot import Snapshot
from blocsync.utils.clock import now_ms

from .executor import ChangeExecutor
from .queue import ChangeQueue
from .ticker import Ticker

log = get_logger("blocsync.flusher")


class BatchedFlusher:
    """Write queued content updates once per tick.

    Parameters
    ----------
    queue:
        The update queue filled by the classifier.
    bridge:
        The session's identity bridge, consulted at flush time.
    executor:
        Performs the content writes.
    snapshot_provider:
        Returns the latest snapshot of the tree.
    ticker:
        Periodic driver; see :mod:`blocsync.sync.ticker`.
    clock:
        Returns the current epoch milliseconds.
    metrics:
        Metrics backend.
    """

    def __init__(
        self,
        queue: ChangeQueue,
        bridge: IdentityBridge,
        executor: ChangeExecutor,
        snapshot_provider: Callable[[], Snapshot],
        ticker: Ticker,
        *,
        clock: Callable[[], int] = now_ms,
        metrics: Any | None = None,
    ) -> None:
        self.queue = queue
        self._bridge = bridge
        self._executor = executor
        self._snapshot = snapshot_provider
        self.ticker = ticker
        self._clock = clock
        self._metrics = metrics if metrics is not None else NoopMetricsHook()

    @property
    def running(self) -> bool:
        return self.ticker.running

    def start(self) -> None:
        self.ticker.start(self._on_tick)

    async def stop(self, *, flush: bool = True) -> FlushResult | None:
        """Stop the ticker, flushing what is still queued first."""
        await self.ticker.stop()
        if flush:
            return await self.flush_now()
        return None

    async def _on_tick(self) -> None:
        if self.queue:
            await self.flush_now()

    async def flush_now(self) -> FlushResult:
        """Drain the queue and write every record once.

        Returns
        -------
        FlushResult
            Per-id outcome of this flush.
        """
        result = FlushResult()
        records = self.queue.drain()
        if not records:
            return result

        t0 = time.monotonic()
        done = 0
        try:
            for record in records:
                await self._flush_one(record, self._snapshot(), result)
                done += 1
        finally:
            # Unwritten records go back unless a newer edit re-queued them.
            for record in records[done:]:
                if record.id not in self.queue:
                    self.queue.push(record)

        self._metrics.gauge("blocsync.flush_batch_size", len(records))
        self._metrics.timing("blocsync.flush_duration_ms", (time.monotonic() - t0) * 1000)
        log.debug(
            "flush complete",
            extra={
                "extra_fields": {
                    "op": "flush",
                    "written": len(result.written),
                    "unchanged": len(result.unchanged),
                    "failed": len(result.failed),
                    "skipped": len(result.skipped),
                }
            },
        )
        return result

    async def _flush_one(
        self,
        record: ChangeRecord,
        snapshot: Snapshot,
        result: FlushResult,
    ) -> None:
        entry = self._bridge.get(record.key)
        if entry is None or entry.id != record.id or record.key not in snapshot:
            log.debug(
                "dropping update for a bloc that no longer exists",
                extra={"extra_fields": {"op": "flush", "bloc_id": record.id, "key": record.key}},
            )
            result.skipped.append(record.id)
            return

        now = self._clock()
        content = stamp(snapshot.export_node(record.key), entry.id, entry.position)
        set_update_time_state(content, now)
        status = await self._executor.write_content(record, json.dumps(content), now)
        if status is WriteStatus.SUCCESS:
            result.written.append(record.id)
        elif status is WriteStatus.NO_CHANGE:
            result.unchanged.append(record.id)
        else:
            result.failed.append(record.id)
