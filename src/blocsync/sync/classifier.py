"""Snapshot differ and change classifier.

:class:`ChangeClassifier` compares two successive snapshots, given the keys
the tree engine reported dirty, and turns every difference into a
:class:`~blocsync.models.ChangeRecord`:

* **UPDATE** -- a dirty leaf (or nested element) whose top-level owner is
  known to the bridge.  Queued in the update queue for the batched
  flusher; never written immediately.
* **ADD** -- a top-level node present now and absent before.  A bloc id is
  minted, a position is computed between the nearest positioned siblings,
  the bridge is written and the create call is scheduled.
* **REMOVE** -- a top-level node present before and absent now.  The
  bridge entry is purged and the delete call is scheduled.
* **MOVE** -- a top-level node present in both whose previous *and* next
  siblings both changed.  A new position is computed against its current
  neighbours and the position update is scheduled.

Only direct children of the root are blocs.  The bridge is always mutated
before the store call is scheduled, so the next update observes the state
"as if" the call had already completed.

Processing order within one call: leaves first, then removals, then
additions and moves in current document order.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Callable, Iterable
from typing import Any

from blocsync.bridge import IdentityBridge
from blocsync.content import set_update_time_state, stamp
from blocsync.indexing import generate_key_between
from blocsync.models import Bloc, ChangeRecord, ChangeType
from blocsync.observability import NoopMetricsHook, get_logger
from blocsync.state import DocumentState
from blocsync.tree.nodes import ROOT_KEY
from blocsync.tree.snapshot import Snapshot
from blocsync.utils.clock import now_ms

from .executor import ChangeExecutor
from .queue import ChangeQueue

log = get_logger("blocsync.classifier")


def _new_bloc_id() -> str:
    return str(uuid.uuid4())


def _owner(current: Snapshot, prev: Snapshot, key: str) -> str | None:
    """Top-level node in *current* containing *key*.

    A key that no longer exists resolves through its old owner in *prev*,
    as long as that owner is still top-level.
    """
    owner = current.top_level_owner(key)
    if owner is None and key in prev:
        owner = prev.top_level_owner(key)
        if owner is not None and not current.is_top_level(owner):
            return None
    return owner


class ChangeClassifier:
    """Classify snapshot differences and dispatch them.

    Parameters
    ----------
    bridge:
        The session's identity bridge.  Mutated synchronously.
    update_queue:
        Queue receiving UPDATE records.
    executor:
        Dispatcher for structural store calls.
    state:
        Document state; every emitted record marks the document modified.
    page_id:
        Id of the page new blocs belong to.  Reassigned when another page
        is opened.
    clock:
        Returns the current epoch milliseconds.
    id_factory:
        Mints bloc ids.  Defaults to random UUID4 strings.
    metrics:
        Metrics backend.
    debug_dump:
        Log every emitted record at debug level.
    """

    def __init__(
        self,
        bridge: IdentityBridge,
        update_queue: ChangeQueue,
        executor: ChangeExecutor,
        state: DocumentState,
        *,
        page_id: str = "",
        clock: Callable[[], int] = now_ms,
        id_factory: Callable[[], str] = _new_bloc_id,
        metrics: Any | None = None,
        debug_dump: bool = False,
    ) -> None:
        self.bridge = bridge
        self.update_queue = update_queue
        self.executor = executor
        self.state = state
        self.page_id = page_id
        self._clock = clock
        self._new_id = id_factory
        self._metrics = metrics if metrics is not None else NoopMetricsHook()
        self._debug_dump = debug_dump

    def new_bloc_id(self) -> str:
        return self._new_id()

    def detect_change(
        self,
        current: Snapshot,
        prev: Snapshot,
        dirty_elements: Iterable[str],
        dirty_leaves: Iterable[str],
    ) -> list[ChangeRecord]:
        """Classify and dispatch every change between *prev* and *current*.

        Parameters
        ----------
        current:
            The snapshot after the update.
        prev:
            The snapshot before the update.
        dirty_elements:
            Keys of elements the engine reports as structurally changed.
        dirty_leaves:
            Keys of leaves the engine reports as content-changed.

        Returns
        -------
        list[ChangeRecord]
            Emitted records in dispatch order.  Skipped bridge misses are
            not included.

        Raises
        ------
        BlocSyncIndexError
            If two positioned neighbours are out of order.  This is a
            corrupted bridge and must not be papered over.
        """
        dirty_elements = set(dirty_elements)
        records: list[ChangeRecord] = []
        updated: set[str] = set()

        for key in dirty_leaves:
            self._classify_content(_owner(current, prev, key), records, updated)

        for key in dirty_elements:
            if key == ROOT_KEY or current.is_top_level(key) or prev.is_top_level(key):
                continue
            # Nested element: the owning bloc's content changed.
            self._classify_content(_owner(current, prev, key), records, updated)

        for key in prev.top_level_keys():
            if key in dirty_elements and not current.is_top_level(key):
                self._remove(key, records)

        for key in current.top_level_keys():
            if key not in dirty_elements:
                continue
            if not prev.is_top_level(key):
                self._add(current, key, records)
            elif not self._maybe_move(current, prev, key, records):
                if current.get(key) != prev.get(key):
                    # Own fields or child list changed in place.
                    self._classify_content(key, records, updated)

        return records

    # -- UPDATE ------------------------------------------------------------

    def _classify_content(
        self,
        owner: str | None,
        records: list[ChangeRecord],
        updated: set[str],
    ) -> None:
        if owner is None or owner in updated:
            return
        bloc_id = self.bridge.id_of(owner)
        if bloc_id is None:
            return
        updated.add(owner)
        record = ChangeRecord(type=ChangeType.UPDATE, key=owner, id=bloc_id)
        self.update_queue.push(record)
        self._emit(record, records)

    # -- ADD ---------------------------------------------------------------

    def _add(self, current: Snapshot, key: str, records: list[ChangeRecord]) -> None:
        if key in self.bridge:
            log.debug(
                "node already has a bloc, not adding",
                extra={"extra_fields": {"op": "add", "key": key}},
            )
            return
        position = self._position_between_neighbours(current, key)
        bloc_id = self.new_bloc_id()
        self.bridge.set(key, bloc_id, position)

        now = self._clock()
        content = stamp(current.export_node(key), bloc_id, position)
        set_update_time_state(content, now)
        bloc = Bloc(
            id=bloc_id,
            position=position,
            content=json.dumps(content),
            page_id=self.page_id,
            bloc_type=str(content.get("type", "")),
            created_at=now,
            updated_at=now,
        )
        record = ChangeRecord(type=ChangeType.ADD, key=key, id=bloc_id)
        self._emit(record, records)
        self.executor.create(record, bloc)

    # -- REMOVE ------------------------------------------------------------

    def _remove(self, key: str, records: list[ChangeRecord]) -> None:
        entry = self.bridge.delete(key)
        if entry is None:
            log.error(
                "not enough information to remove bloc",
                extra={"extra_fields": {"op": "remove", "key": key}},
            )
            return
        self.update_queue.discard(entry.id)
        record = ChangeRecord(type=ChangeType.REMOVE, key=key, id=entry.id)
        self._emit(record, records)
        self.executor.remove(record)

    # -- MOVE --------------------------------------------------------------

    def _maybe_move(
        self,
        current: Snapshot,
        prev: Snapshot,
        key: str,
        records: list[ChangeRecord],
    ) -> bool:
        if current.previous_sibling(key) == prev.previous_sibling(key):
            return False
        if current.next_sibling(key) == prev.next_sibling(key):
            return False
        entry = self.bridge.get(key)
        if entry is None:
            log.error(
                "not enough information to move bloc",
                extra={"extra_fields": {"op": "move", "key": key}},
            )
            return True
        position = self._position_between_neighbours(current, key)
        self.bridge.set(key, entry.id, position)
        record = ChangeRecord(type=ChangeType.MOVE, key=key, id=entry.id)
        self._emit(record, records)
        self.executor.move(record, position, self._clock())
        return True

    # -- helpers -----------------------------------------------------------

    def _position_between_neighbours(self, current: Snapshot, key: str) -> str:
        lower = next(
            (p for p in map(self.bridge.position_of, current.previous_siblings(key)) if p),
            None,
        )
        upper = next(
            (p for p in map(self.bridge.position_of, current.next_siblings(key)) if p),
            None,
        )
        return generate_key_between(lower, upper)

    def _emit(self, record: ChangeRecord, records: list[ChangeRecord]) -> None:
        records.append(record)
        self.state.set_modified(record)
        self._metrics.increment(
            "blocsync.changes_total", tags={"type": record.type.value}  # type: ignore[union-attr]
        )
        if self._debug_dump:
            log.debug(
                "classified change",
                extra={"extra_fields": {"op": "classify", **record.to_dict()}},
            )
