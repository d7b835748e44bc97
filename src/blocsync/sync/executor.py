"""Persistence dispatch for classified changes.

:class:`ChangeExecutor` is the only component that calls the
:class:`~blocsync.store.base.BlocStore`.  Structural calls (create, delete,
position update) are scheduled as tasks on the running event loop so the
synchronous classifier never blocks on I/O; content writes from the
flusher are awaited directly.

Every call is wrapped: exceptions and failure results are logged with
structured fields, counted in ``blocsync.persist_failures_total`` and
recorded in :class:`~blocsync.state.DocumentState`, so nothing escapes to
the tree engine's update cycle.  Nothing is retried here.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

from blocsync.errors import BlocSyncPersistenceError
from blocsync.models import Bloc, ChangeRecord, WriteStatus
from blocsync.observability import NoopMetricsHook, get_logger
from blocsync.state import DocumentState

from .queue import ChangeQueue

log = get_logger("blocsync.executor")


class ChangeExecutor:
    """Issue store calls for change records and track them until done.

    Parameters
    ----------
    store:
        The persistence adapter.
    state:
        Document state receiving saved / failed notifications.
    structural_queue:
        Queue of pending ADD / REMOVE / MOVE records.  A record leaves
        the queue when its call succeeds; failed records stay.
    metrics:
        Metrics backend.
    """

    def __init__(
        self,
        store: Any,
        state: DocumentState,
        structural_queue: ChangeQueue,
        metrics: Any | None = None,
    ) -> None:
        self._store = store
        self._state = state
        self._queue = structural_queue
        self._metrics = metrics if metrics is not None else NoopMetricsHook()
        self._inflight: set[asyncio.Task[Any]] = set()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    # -- structural calls (fire and track) ---------------------------------

    def create(self, record: ChangeRecord, bloc: Bloc) -> asyncio.Task[Any] | None:
        self._queue.push(record)
        return self._spawn("create", record, self._create(record, bloc))

    def remove(self, record: ChangeRecord) -> asyncio.Task[Any] | None:
        self._queue.push(record)
        return self._spawn("delete", record, self._remove(record))

    def move(
        self, record: ChangeRecord, position: str, updated_at: int
    ) -> asyncio.Task[Any] | None:
        self._queue.push(record)
        return self._spawn("update_position", record, self._move(record, position, updated_at))

    async def wait_idle(self) -> None:
        """Wait until every scheduled call has finished."""
        await asyncio.sleep(0)
        while self._inflight:
            await asyncio.gather(*list(self._inflight))

    # -- content writes (awaited by the flusher) ---------------------------

    async def write_content(
        self,
        record: ChangeRecord,
        content: str,
        updated_at: int,
    ) -> WriteStatus:
        """Write *content* for *record* and return the resulting status.

        Exceptions are converted to :attr:`WriteStatus.ERROR`.
        """
        try:
            status = WriteStatus(
                await self._store.update_bloc_content(record.id, content, updated_at)
            )
        except Exception as exc:
            self._fail("update_content", record, exc)
            return WriteStatus.ERROR

        if status is WriteStatus.ERROR:
            self._fail(
                "update_content",
                record,
                BlocSyncPersistenceError(
                    "save last updated block failed",
                    context={"operation": "update_content", "bloc_id": record.id,
                             "status": int(status)},
                ),
            )
        elif status is WriteStatus.NO_CHANGE:
            log.info(
                "save last updated block: no change",
                extra={"extra_fields": {"op": "update_content", "bloc_id": record.id}},
            )
            self._state.mark_saved(record.id)
        else:
            self._state.mark_saved(record.id)
        return status

    # -- internals ---------------------------------------------------------

    def _spawn(
        self, op: str, record: ChangeRecord, coro: Coroutine[Any, Any, None]
    ) -> asyncio.Task[Any] | None:
        """Schedule *coro*; without a running loop the call fails like any other."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            coro.close()
            self._fail(op, record, exc)
            return None
        task = loop.create_task(coro)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _create(self, record: ChangeRecord, bloc: Bloc) -> None:
        try:
            bloc_id = await self._store.create_bloc(bloc)
        except Exception as exc:
            self._fail("create", record, exc)
            return
        if not bloc_id:
            self._fail(
                "create",
                record,
                BlocSyncPersistenceError(
                    "add bloc failed",
                    context={"operation": "create", "bloc_id": record.id},
                ),
            )
            return
        self._succeed(record)

    async def _remove(self, record: ChangeRecord) -> None:
        try:
            deleted = await self._store.delete_bloc(record.id)
        except Exception as exc:
            self._fail("delete", record, exc)
            return
        if not deleted:
            self._fail(
                "delete",
                record,
                BlocSyncPersistenceError(
                    "no bloc deleted",
                    context={"operation": "delete", "bloc_id": record.id},
                ),
            )
            return
        self._succeed(record)

    async def _move(self, record: ChangeRecord, position: str, updated_at: int) -> None:
        try:
            status = WriteStatus(
                await self._store.update_bloc_position(record.id, position, updated_at)
            )
        except Exception as exc:
            self._fail("update_position", record, exc)
            return
        if status is WriteStatus.ERROR:
            self._fail(
                "update_position",
                record,
                BlocSyncPersistenceError(
                    "move bloc failed",
                    context={"operation": "update_position", "bloc_id": record.id,
                             "status": int(status)},
                ),
            )
            return
        if status is WriteStatus.NO_CHANGE:
            log.info(
                "move bloc: no change",
                extra={"extra_fields": {"op": "update_position", "bloc_id": record.id}},
            )
        self._succeed(record)

    def _succeed(self, record: ChangeRecord) -> None:
        queued = self._queue.discard(record.id)
        if queued is not None and queued != record:
            # A newer record for the same id was queued meanwhile.
            self._queue.push(queued)
        self._state.mark_saved(record.id)

    def _fail(self, op: str, record: ChangeRecord, exc: Exception) -> None:
        log.error(
            f"{op} failed for bloc {record.id}",
            extra={
                "extra_fields": {
                    "op": op,
                    "bloc_id": record.id,
                    "key": record.key,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                }
            },
        )
        self._metrics.increment("blocsync.persist_failures_total", tags={"op": op})
        self._state.mark_failed(record)
