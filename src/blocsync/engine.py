"""Sync engine facade.

:class:`BlocSyncEngine` wires the bridge, the queues, the classifier, the
executor, the batched flusher and the history reconciler together for one
editing session, and exposes page-level operations on top of them.

Usage::

    import asyncio
    from blocsync import BlocSyncEngine, InMemoryBlocStore, TreeEngine

    async def main():
        tree = TreeEngine()
        async with BlocSyncEngine(InMemoryBlocStore()) as engine:
            engine.attach(tree)
            await engine.new_page("page-1")
            tree.update(lambda w: w.insert_paragraph("Hello"))
            await engine.wait_idle()

    asyncio.run(main())
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from blocsync.bridge import IdentityBridge
from blocsync.config import BlocSyncConfig
from blocsync.content import set_update_time_state, stamp
from blocsync.errors import BlocSyncPersistenceError, BlocSyncSnapshotError
from blocsync.indexing import generate_key_between
from blocsync.models import Bloc, FlushResult
from blocsync.observability import get_logger, resolve_metrics
from blocsync.state import DocumentState
from blocsync.sync.classifier import ChangeClassifier
from blocsync.sync.executor import ChangeExecutor
from blocsync.sync.flusher import BatchedFlusher
from blocsync.sync.history import HistoryReconciler
from blocsync.sync.queue import ChangeQueue
from blocsync.sync.ticker import AsyncioTicker, Ticker
from blocsync.tree.engine import HISTORIC_TAG, HISTORY_MERGE_TAG, TreeEngine, UpdatePayload
from blocsync.tree.nodes import ParagraphNode
from blocsync.tree.snapshot import Snapshot
from blocsync.utils.clock import now_ms

log = get_logger("blocsync.engine")


class BlocSyncEngine:
    """Mirror one tree engine's document into a bloc store.

    Parameters
    ----------
    store:
        Any :class:`~blocsync.store.base.BlocStore`.
    config:
        Engine configuration.  Defaults to ``BlocSyncConfig()``.
    page_id:
        Id of the page the session starts on.
    ticker:
        Flush driver.  Defaults to an :class:`AsyncioTicker` with
        ``config.flush_interval_seconds``.
    clock:
        Returns the current epoch milliseconds.
    id_factory:
        Mints bloc ids.  Defaults to random UUID4 strings.
    """

    def __init__(
        self,
        store: Any,
        config: BlocSyncConfig | None = None,
        *,
        page_id: str = "",
        ticker: Ticker | None = None,
        clock: Callable[[], int] = now_ms,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._config = config or BlocSyncConfig()
        self._store = store
        self._clock = clock
        self._metrics = resolve_metrics(self._config)

        self.bridge = IdentityBridge()
        self.state = DocumentState()
        self.structural_queue = ChangeQueue(limit=self._config.structural_queue_limit)
        self.update_queue = ChangeQueue()
        self.executor = ChangeExecutor(store, self.state, self.structural_queue, self._metrics)

        classifier_kwargs: dict[str, Any] = {}
        if id_factory is not None:
            classifier_kwargs["id_factory"] = id_factory
        self.classifier = ChangeClassifier(
            self.bridge,
            self.update_queue,
            self.executor,
            self.state,
            page_id=page_id,
            clock=clock,
            metrics=self._metrics,
            debug_dump=self._config.debug_dump_changes,
            **classifier_kwargs,
        )
        self.flusher = BatchedFlusher(
            self.update_queue,
            self.bridge,
            self.executor,
            self._current_snapshot,
            ticker or AsyncioTicker(self._config.flush_interval_seconds),
            clock=clock,
            metrics=self._metrics,
        )
        self.reconciler = HistoryReconciler(self.classifier, self.structural_queue)

        self._tree: TreeEngine | None = None
        self._detach: list[Callable[[], None]] = []
        self._loading = False

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    @property
    def page_id(self) -> str:
        return self.classifier.page_id

    @property
    def tree(self) -> TreeEngine:
        if self._tree is None:
            raise RuntimeError("No tree engine attached; call attach() first")
        return self._tree

    def attach(self, tree: TreeEngine) -> Callable[[], None]:
        """Listen to *tree*'s updates and intercept its undo and redo.

        Returns a callable that detaches the engine again.
        """
        if self._tree is not None:
            raise RuntimeError("A tree engine is already attached")
        self._tree = tree
        self._detach = [
            tree.register_update_listener(self._on_update),
            self.reconciler.attach(tree),
        ]
        return self.detach

    def detach(self) -> None:
        for fn in self._detach:
            fn()
        self._detach = []
        self._tree = None

    def _current_snapshot(self) -> Snapshot:
        return self._tree.editor_state if self._tree is not None else Snapshot.empty()

    def _on_update(self, payload: UpdatePayload) -> None:
        if self._loading or HISTORIC_TAG in payload.tags:
            return
        if self._config.ignore_history_merge and HISTORY_MERGE_TAG in payload.tags:
            return
        if (
            self._config.ignore_selection_change
            and not payload.dirty_elements
            and not payload.dirty_leaves
        ):
            return
        self.classifier.detect_change(
            payload.snapshot,
            payload.prev_snapshot,
            payload.dirty_elements,
            payload.dirty_leaves,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic flush.  Requires a running event loop."""
        if not self.flusher.running:
            self.flusher.start()

    async def flush(self) -> FlushResult:
        """Write every queued content update now."""
        return await self.flusher.flush_now()

    async def wait_idle(self) -> None:
        """Wait for pending history reconciliation and in-flight store calls."""
        await self.reconciler.wait_idle()
        await self.executor.wait_idle()

    async def close(self) -> None:
        """Flush the last edits, stop the ticker and drain in-flight calls."""
        await self.reconciler.wait_idle()
        await self.executor.wait_idle()
        await self.flusher.stop(flush=True)
        await self.executor.wait_idle()

    async def __aenter__(self) -> BlocSyncEngine:
        self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    async def open_page(self, page_id: str) -> list[Bloc]:
        """Load *page_id* into the attached tree and rebuild the bridge.

        Pending edits of the current page are flushed first.  The load is
        not recorded in the undo history.

        Returns
        -------
        list[Bloc]
            The page's blocs in position order.

        Raises
        ------
        BlocSyncSnapshotError
            If a stored bloc does not hold a valid serialized node.
        """
        tree = self.tree
        await self._settle()
        blocs = await self._store.get_blocs_by_page_id(page_id)
        blocs = sorted(blocs, key=lambda b: b.position)
        self._load(tree, page_id, blocs)
        log.info(
            "page opened",
            extra={"extra_fields": {"op": "open_page", "page_id": page_id, "blocs": len(blocs)}},
        )
        return blocs

    async def new_page(self, page_id: str) -> Bloc:
        """Create *page_id* with one empty paragraph and load it.

        Raises
        ------
        BlocSyncPersistenceError
            If the store does not accept the seed bloc.
        """
        tree = self.tree
        await self._settle()
        now = self._clock()
        bloc_id = self.classifier.new_bloc_id()
        position = generate_key_between(None, None)
        content = stamp(ParagraphNode(key="", parent=None).export_json(), bloc_id, position)
        content["children"] = []
        set_update_time_state(content, now)
        bloc = Bloc(
            id=bloc_id,
            position=position,
            content=json.dumps(content),
            page_id=page_id,
            bloc_type="paragraph",
            created_at=now,
            updated_at=now,
        )
        if not await self._store.create_bloc(bloc):
            raise BlocSyncPersistenceError(
                f"Could not create the first bloc of page {page_id}",
                context={"operation": "create", "bloc_id": bloc_id},
            )
        self._load(tree, page_id, [bloc])
        return bloc

    async def delete_page(self, page_id: str) -> bool:
        """Delete every bloc of *page_id*."""
        return await self._store.delete_bloc_by_page_id(page_id)

    async def move_bloc_to_page(self, bloc_id: str, page_id: str) -> bool:
        """Reassign a stored bloc to another page."""
        return await self._store.update_bloc_page_id(bloc_id, page_id)

    async def _settle(self) -> None:
        await self.wait_idle()
        await self.flusher.flush_now()
        await self.executor.wait_idle()

    def _load(self, tree: TreeEngine, page_id: str, blocs: list[Bloc]) -> None:
        children: list[dict[str, Any]] = []
        for bloc in blocs:
            try:
                data = json.loads(bloc.content)
            except ValueError as exc:
                raise BlocSyncSnapshotError(
                    f"Bloc {bloc.id} does not hold valid JSON",
                    context={"key": bloc.id, "node_type": bloc.bloc_type},
                    cause=exc,
                ) from exc
            children.append(stamp(data, bloc.id, bloc.position))

        self._loading = True
        try:
            tree.set_editor_state({"root": {"type": "root", "children": children}})
        finally:
            self._loading = False
        tree.clear_history()

        self.classifier.page_id = page_id
        self.update_queue.drain()
        self.structural_queue.drain()
        self.bridge.rebuild(tree.editor_state)
        self.state.reset()
