"""Tests for blocsync.sync.flusher."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from blocsync.bridge import IdentityBridge
from blocsync.engine import BlocSyncEngine
from blocsync.models import ChangeRecord, ChangeType, WriteStatus
from blocsync.state import DocumentState
from blocsync.sync.executor import ChangeExecutor
from blocsync.sync.flusher import BatchedFlusher
from blocsync.sync.queue import ChangeQueue
from blocsync.store.memory import InMemoryBlocStore
from blocsync.sync.ticker import AsyncioTicker, ManualTicker
from blocsync.tree.engine import TreeEngine

NOW = 1_700_000_000_000


class FlushHarness:
    def __init__(self, status=WriteStatus.SUCCESS, metrics=None):
        self.tree = TreeEngine()
        self.key = self.tree.update(lambda w: w.insert_paragraph("hello"))
        self.bridge = IdentityBridge()
        self.bridge.set(self.key, "b1", "a0")
        self.queue = ChangeQueue()
        self.state = DocumentState()
        self.store = AsyncMock()
        self.store.update_bloc_content = AsyncMock(return_value=status)
        self.executor = ChangeExecutor(self.store, self.state, ChangeQueue())
        self.ticker = ManualTicker()
        self.flusher = BatchedFlusher(
            self.queue,
            self.bridge,
            self.executor,
            lambda: self.tree.editor_state,
            self.ticker,
            clock=lambda: NOW,
            metrics=metrics,
        )

    def record(self, key=None, bloc_id="b1"):
        return ChangeRecord(type=ChangeType.UPDATE, key=key or self.key, id=bloc_id)

    def edit(self, suffix):
        self.tree.update(lambda w: w.append_text(self.key, suffix))
        self.queue.push(self.record())

    def written_content(self, call_index=-1):
        return json.loads(self.store.update_bloc_content.await_args_list[call_index].args[1])


@pytest.fixture
def fh():
    return FlushHarness()


class TestFlushNow:
    async def test_writes_latest_content_once(self, fh):
        for suffix in (" a", " b", " c"):
            fh.edit(suffix)
        result = await fh.flusher.flush_now()
        assert result.written == ["b1"]
        fh.store.update_bloc_content.assert_awaited_once()
        bloc_id, _, updated_at = fh.store.update_bloc_content.await_args.args
        assert (bloc_id, updated_at) == ("b1", NOW)
        content = fh.written_content()
        assert content["children"][0]["text"] == "hello a b c"
        assert content["$"] == {"id": "b1", "position": "a0", "updateAt": str(NOW)}
        assert not fh.queue

    async def test_empty_queue_writes_nothing(self, fh):
        result = await fh.flusher.flush_now()
        assert result.total == 0
        fh.store.update_bloc_content.assert_not_awaited()

    async def test_removed_node_is_skipped(self, fh):
        fh.edit("!")
        fh.tree.update(lambda w: w.remove(fh.key))
        result = await fh.flusher.flush_now()
        assert result.skipped == ["b1"]
        fh.store.update_bloc_content.assert_not_awaited()

    async def test_stale_id_is_skipped(self, fh):
        fh.queue.push(fh.record(bloc_id="old"))
        result = await fh.flusher.flush_now()
        assert result.skipped == ["old"]

    async def test_missing_bridge_entry_is_skipped(self, fh):
        fh.edit("!")
        fh.bridge.delete(fh.key)
        result = await fh.flusher.flush_now()
        assert result.skipped == ["b1"]

    async def test_no_change(self):
        fh = FlushHarness(status=WriteStatus.NO_CHANGE)
        fh.edit("!")
        result = await fh.flusher.flush_now()
        assert result.unchanged == ["b1"]

    async def test_error_keeps_document_modified(self):
        fh = FlushHarness(status=WriteStatus.ERROR)
        fh.edit("!")
        fh.state.set_modified(fh.record())
        result = await fh.flusher.flush_now()
        assert result.failed == ["b1"]
        assert fh.state.is_modified()
        assert fh.state.failed_ids == {"b1"}

    async def test_records_pushed_during_flush_land_in_next_batch(self, fh):
        other = fh.tree.update(lambda w: w.insert_paragraph("other"))
        fh.bridge.set(other, "b2", "a1")

        async def write(bloc_id, content, updated_at):
            if bloc_id == "b1":
                fh.queue.push(fh.record(key=other, bloc_id="b2"))
            return WriteStatus.SUCCESS

        fh.store.update_bloc_content.side_effect = write
        fh.edit("!")
        first = await fh.flusher.flush_now()
        assert first.written == ["b1"]
        assert fh.queue.ids() == ["b2"]
        second = await fh.flusher.flush_now()
        assert second.written == ["b2"]

    async def test_batch_metrics(self, metrics):
        fh = FlushHarness(metrics=metrics)
        fh.edit("!")
        await fh.flusher.flush_now()
        assert {"name": "blocsync.flush_batch_size", "value": 1, "tags": None} in metrics.gauges
        assert metrics.timings[-1]["name"] == "blocsync.flush_duration_ms"


class TestTicking:
    async def test_one_write_per_interval(self, fh):
        fh.flusher.start()
        assert fh.flusher.running
        fh.edit(" a")
        fh.edit(" b")
        assert await fh.ticker.advance(0.5) == 0
        fh.store.update_bloc_content.assert_not_awaited()
        assert await fh.ticker.advance(0.5) == 1
        assert fh.store.update_bloc_content.await_count == 1

    async def test_idle_tick_does_nothing(self, fh):
        fh.flusher.start()
        await fh.ticker.tick()
        fh.store.update_bloc_content.assert_not_awaited()

    async def test_stop_flushes_remaining(self, fh):
        fh.flusher.start()
        fh.edit("!")
        result = await fh.flusher.stop()
        assert result.written == ["b1"]
        assert not fh.flusher.running

    async def test_stop_without_flush(self, fh):
        fh.flusher.start()
        fh.edit("!")
        assert await fh.flusher.stop(flush=False) is None
        assert fh.queue.ids() == ["b1"]


class SlowStore(InMemoryBlocStore):
    async def update_bloc_content(self, bloc_id, content, updated_at):
        await asyncio.sleep(0.05)
        return await super().update_bloc_content(bloc_id, content, updated_at)


class TestInterruptedFlush:
    async def test_close_during_tick_keeps_every_edit(self):
        store = SlowStore()
        ids = iter(["b1", "b2"])
        engine = BlocSyncEngine(
            store, page_id="p", ticker=AsyncioTicker(0.01), id_factory=lambda: next(ids)
        )
        tree = TreeEngine()
        engine.attach(tree)
        k1 = tree.update(lambda w: w.insert_paragraph("a"))
        k2 = tree.update(lambda w: w.insert_paragraph("b"))
        await engine.wait_idle()

        engine.start()
        tree.update(lambda w: w.append_text(k1, "1"))
        tree.update(lambda w: w.append_text(k2, "2"))
        await asyncio.sleep(0.03)
        await engine.close()

        assert '"text": "a1"' in (await store.get_bloc_by_id("b1")).content
        assert '"text": "b2"' in (await store.get_bloc_by_id("b2")).content
        assert not engine.update_queue

    async def test_cancelled_flush_requeues_unwritten_records(self, fh):
        other = fh.tree.update(lambda w: w.insert_paragraph("other"))
        fh.bridge.set(other, "b2", "a1")
        started = asyncio.Event()

        async def write(bloc_id, content, updated_at):
            started.set()
            await asyncio.sleep(10)
            return WriteStatus.SUCCESS

        fh.store.update_bloc_content.side_effect = write
        fh.edit("!")
        fh.queue.push(fh.record(key=other, bloc_id="b2"))
        task = asyncio.ensure_future(fh.flusher.flush_now())
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert fh.queue.ids() == ["b1", "b2"]

    async def test_requeue_keeps_newer_record(self, fh):
        started = asyncio.Event()

        async def write(bloc_id, content, updated_at):
            started.set()
            await asyncio.sleep(10)
            return WriteStatus.SUCCESS

        fh.store.update_bloc_content.side_effect = write
        fh.edit("!")
        task = asyncio.ensure_future(fh.flusher.flush_now())
        await started.wait()
        newer = ChangeRecord(type=ChangeType.UPDATE, key="k-newer", id="b1")
        fh.queue.push(newer)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert list(fh.queue) == [newer]
