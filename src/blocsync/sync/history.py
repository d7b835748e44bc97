"""Undo/redo reconciliation.

After an undo or redo the tree engine jumps to an arbitrary earlier or
later tree and its dirty-key reporting can under-report.  The
:class:`HistoryReconciler` intercepts both commands, remembers the tree as
it was before the command, waits one event-loop turn for the engine to
settle, and re-runs the classifier with every key it might have to touch
forced dirty:

* elements: every bridge key, every key with a pending structural record,
  and every top-level key of both snapshots;
* leaves: every bridge key still present after the jump.

Reconciliation errors are logged and never reach the command: the
interceptor always returns ``False`` so the engine still performs the
undo or redo.

A node restored by undoing its removal gets a **new** bloc id.  Identity
is only tracked forward from ADD; the old id was purged with the REMOVE.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from blocsync.bridge import IdentityBridge
from blocsync.observability import get_logger
from blocsync.tree.engine import COMMAND_PRIORITY_EDITOR, Command, TreeEngine
from blocsync.tree.snapshot import Snapshot

from .classifier import ChangeClassifier
from .queue import ChangeQueue

log = get_logger("blocsync.history")


class HistoryReconciler:
    """Re-classify the tree after every undo and redo.

    Parameters
    ----------
    classifier:
        The classifier used for regular updates.
    structural_queue:
        Pending ADD / REMOVE / MOVE records.
    """

    def __init__(self, classifier: ChangeClassifier, structural_queue: ChangeQueue) -> None:
        self._classifier = classifier
        self._queue = structural_queue
        self._tree: TreeEngine | None = None
        self._pending_prev: Snapshot | None = None
        self._pending: tuple[asyncio.Handle, Command] | None = None
        self.reconciled = 0

    @property
    def bridge(self) -> IdentityBridge:
        return self._classifier.bridge

    @property
    def pending(self) -> bool:
        return self._pending_prev is not None

    def attach(self, tree: TreeEngine) -> Callable[[], None]:
        """Intercept *tree*'s undo and redo commands.

        Returns a callable that removes both interceptors.
        """
        self._tree = tree
        unregister = [
            tree.register_command(Command.UNDO, self._on_command, COMMAND_PRIORITY_EDITOR),
            tree.register_command(Command.REDO, self._on_command, COMMAND_PRIORITY_EDITOR),
        ]

        def detach() -> None:
            for fn in unregister:
                fn()
            self._tree = None

        return detach

    async def wait_idle(self) -> None:
        """Yield until no reconciliation is scheduled."""
        while self._pending_prev is not None:
            await asyncio.sleep(0)

    def _on_command(self, command: Command) -> bool:
        if self._tree is None:
            return False
        if self._pending is not None:
            # The earlier command has already been applied; diff it on its own.
            handle, earlier = self._pending
            handle.cancel()
            self._reconcile(earlier)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.error(
                "no running event loop, cannot reconcile history",
                extra={"extra_fields": {"op": command.value}},
            )
            return False
        self._pending_prev = self._tree.editor_state
        self._pending = (loop.call_soon(self._reconcile, command), command)
        return False

    def _reconcile(self, command: Command) -> None:
        prev, self._pending_prev = self._pending_prev, None
        self._pending = None
        if self._tree is None or prev is None:
            return
        current = self._tree.editor_state
        if current is prev:
            return
        try:
            bridge_keys = set(self.bridge.keys())
            dirty_elements = (
                bridge_keys
                | self._queue.keys()
                | set(prev.top_level_keys())
                | set(current.top_level_keys())
            )
            dirty_leaves = {key for key in bridge_keys if key in current}
            records = self._classifier.detect_change(current, prev, dirty_elements, dirty_leaves)
            self.reconciled += 1
            log.debug(
                "history reconciled",
                extra={"extra_fields": {"op": command.value, "changes": len(records)}},
            )
        except Exception as exc:
            log.error(
                "history reconciliation failed",
                exc_info=True,
                extra={"extra_fields": {"op": command.value, "error": str(exc)}},
            )
