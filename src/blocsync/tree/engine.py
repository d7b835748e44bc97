"""Reference tree engine.

A small host for the sync engine: it holds the current :class:`Snapshot`,
applies edits through a :class:`TreeWriter` draft, and after every
committed update notifies listeners with the previous snapshot, the new
one, and the keys it marked dirty.  Undo and redo are commands that
registered handlers may intercept before the engine applies them.

Like real rich-text engines, its dirty tracking is derived from the edits
made through the writer.  History jumps replace the whole tree and report
**no** dirty keys, so listeners must reconcile history updates themselves
(see :class:`blocsync.sync.history.HistoryReconciler`).

Usage::

    tree = TreeEngine()
    tree.register_update_listener(print)
    key = tree.update(lambda w: w.insert_paragraph("Hello"))
    tree.update(lambda w: w.append_text(key, ", world"))
    tree.undo()
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, TypeVar

from blocsync.errors import BlocSyncSnapshotError

from .nodes import (
    ROOT_KEY,
    Node,
    TextNode,
    children_of,
    is_element,
    node_from_json,
    with_children,
)
from .snapshot import KeyFactory, Snapshot, counter_key_factory

T = TypeVar("T")

HISTORY_MERGE_TAG = "history-merge"
"""Updates with this tag are not recorded in the undo history."""

HISTORIC_TAG = "historic"
"""Tag carried by the notification emitted after an undo or redo."""

COMMAND_PRIORITY_EDITOR = 0
COMMAND_PRIORITY_LOW = 1
COMMAND_PRIORITY_HIGH = 3


class Command(str, Enum):
    UNDO = "undo"
    REDO = "redo"
    CLEAR_HISTORY = "clear_history"


@dataclass(frozen=True)
class UpdatePayload:
    """What an update listener receives after each committed update."""

    snapshot: Snapshot
    prev_snapshot: Snapshot
    dirty_elements: frozenset[str]
    dirty_leaves: frozenset[str]
    tags: frozenset[str]


UpdateListener = Callable[[UpdatePayload], None]
CommandHandler = Callable[[Command], bool]


class TreeWriter:
    """Mutable draft of a snapshot, valid for one :meth:`TreeEngine.update`."""

    def __init__(self, base: Snapshot, key_factory: KeyFactory) -> None:
        self._nodes: dict[str, Node] = dict(base.nodes)
        self._next_key = key_factory
        self.dirty_elements: set[str] = set()
        self.dirty_leaves: set[str] = set()

    # -- reads ------------------------------------------------------------

    def top_level_keys(self) -> tuple[str, ...]:
        return children_of(self._nodes[ROOT_KEY])

    def node(self, key: str) -> Node:
        try:
            return self._nodes[key]
        except KeyError:
            raise BlocSyncSnapshotError(
                f"No node with key {key!r}", context={"key": key}
            ) from None

    def text(self, key: str) -> str:
        node = self.node(key)
        own = node.text if isinstance(node, TextNode) else ""
        return own + "".join(self.text(child) for child in children_of(node))

    # -- edits ------------------------------------------------------------

    def insert_node(
        self,
        data: dict[str, Any],
        index: int | None = None,
        parent: str = ROOT_KEY,
    ) -> str:
        """Insert the serialized subtree *data* under *parent* at *index*.

        ``index=None`` appends.  Returns the key of the new node.
        """
        key = self._build(data, parent)
        siblings = list(children_of(self.node(parent)))
        siblings.insert(len(siblings) if index is None else index, key)
        self._set_children(parent, siblings)
        return key

    def insert_paragraph(self, text: str = "", index: int | None = None) -> str:
        children = [{"type": "text", "text": text}] if text else []
        return self.insert_node({"type": "paragraph", "children": children}, index)

    def insert_heading(self, text: str = "", tag: str = "h1", index: int | None = None) -> str:
        children = [{"type": "text", "text": text}] if text else []
        return self.insert_node({"type": "heading", "tag": tag, "children": children}, index)

    def set_text(self, key: str, text: str) -> str:
        """Set the text of a text node, or of an element's first text child.

        Returns the key of the text node that was written.
        """
        node = self.node(key)
        if isinstance(node, TextNode):
            self._nodes[key] = replace(node, text=text)
            self._mark_leaf(key)
            return key
        if not is_element(node):
            raise BlocSyncSnapshotError(
                f"{node.kind.value} node has no text",
                context={"key": key, "node_type": node.kind.value},
            )
        for child in children_of(node):
            if isinstance(self._nodes[child], TextNode):
                return self.set_text(child, text)
        return self.insert_node({"type": "text", "text": text}, parent=key)

    def append_text(self, key: str, suffix: str) -> str:
        return self.set_text(key, self.text(key) + suffix)

    def remove(self, key: str) -> None:
        """Remove *key* and its whole subtree."""
        if key == ROOT_KEY:
            raise BlocSyncSnapshotError("Cannot remove the root", context={"key": key})
        node = self.node(key)
        parent = node.parent or ROOT_KEY
        self._set_children(parent, [k for k in children_of(self.node(parent)) if k != key])
        self._drop(key)

    def move(self, key: str, index: int) -> None:
        """Move *key* to *index* among its siblings (index after removal)."""
        node = self.node(key)
        parent = node.parent or ROOT_KEY
        siblings = [k for k in children_of(self.node(parent)) if k != key]
        siblings.insert(index, key)
        self._set_children(parent, siblings)
        self._mark_element(key)

    def clear(self) -> None:
        for key in self.top_level_keys():
            self.remove(key)

    # -- internals --------------------------------------------------------

    def _build(self, data: dict[str, Any], parent: str) -> str:
        key = self._next_key()
        node = node_from_json(data, key, parent)
        child_keys = [self._build(child, key) for child in data.get("children") or []]
        if child_keys:
            node = with_children(node, tuple(child_keys))
        self._nodes[key] = node
        if is_element(node):
            self._mark_element(key)
        else:
            self._mark_leaf(key)
        return key

    def _drop(self, key: str) -> None:
        node = self._nodes.pop(key)
        if is_element(node):
            self.dirty_elements.add(key)
        else:
            self.dirty_leaves.add(key)
        for child in children_of(node):
            self._drop(child)

    def _set_children(self, key: str, children: Iterable[str]) -> None:
        self._nodes[key] = with_children(self._nodes[key], tuple(children))
        self._mark_element(key)

    def _mark_leaf(self, key: str) -> None:
        self.dirty_leaves.add(key)
        parent = self._nodes[key].parent
        if parent is not None:
            self._mark_element(parent)

    def _mark_element(self, key: str | None) -> None:
        while key is not None:
            self.dirty_elements.add(key)
            node = self._nodes.get(key)
            key = node.parent if node is not None else None

    @property
    def changed(self) -> bool:
        return bool(self.dirty_elements or self.dirty_leaves)

    def commit(self) -> Snapshot:
        return Snapshot(self._nodes)


class TreeEngine:
    """Holds the editable tree and notifies listeners after each update.

    Parameters
    ----------
    initial:
        Starting tree as a snapshot or its serialized form.  Defaults to
        an empty root.
    history_limit:
        Maximum depth of the undo stack.
    """

    def __init__(
        self,
        initial: Snapshot | dict[str, Any] | None = None,
        *,
        history_limit: int = 100,
    ) -> None:
        if history_limit < 1:
            raise ValueError(f"history_limit must be >= 1, got {history_limit}")
        self._next_key = counter_key_factory()
        self._state = self._coerce(initial) if initial is not None else Snapshot.empty()
        self._history_limit = history_limit
        self._undo_stack: list[Snapshot] = []
        self._redo_stack: list[Snapshot] = []
        self._listeners: list[UpdateListener] = []
        self._commands: dict[Command, list[tuple[int, CommandHandler]]] = {}

    @property
    def editor_state(self) -> Snapshot:
        return self._state

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    # -- listeners and commands -------------------------------------------

    def register_update_listener(self, listener: UpdateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unregister() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unregister

    def register_command(
        self,
        command: Command,
        handler: CommandHandler,
        priority: int = COMMAND_PRIORITY_EDITOR,
    ) -> Callable[[], None]:
        """Register *handler* to run before *command*'s default action.

        Handlers run highest priority first.  A handler returning ``True``
        consumes the command and the default action is skipped.
        """
        entry = (priority, handler)
        handlers = self._commands.setdefault(command, [])
        handlers.append(entry)
        handlers.sort(key=lambda item: -item[0])

        def unregister() -> None:
            if entry in handlers:
                handlers.remove(entry)

        return unregister

    def dispatch_command(self, command: Command) -> bool:
        """Run *command*; returns ``True`` if anything handled it."""
        for _, handler in list(self._commands.get(command, [])):
            if handler(command):
                return True
        if command is Command.UNDO:
            return self._jump(self._undo_stack, self._redo_stack)
        if command is Command.REDO:
            return self._jump(self._redo_stack, self._undo_stack)
        if command is Command.CLEAR_HISTORY:
            self._undo_stack.clear()
            self._redo_stack.clear()
            return True
        return False

    def undo(self) -> bool:
        return self.dispatch_command(Command.UNDO)

    def redo(self) -> bool:
        return self.dispatch_command(Command.REDO)

    def clear_history(self) -> None:
        self.dispatch_command(Command.CLEAR_HISTORY)

    # -- updates ----------------------------------------------------------

    def update(self, fn: Callable[[TreeWriter], T], *, tags: Iterable[str] = ()) -> T:
        """Apply *fn* to a draft, commit it, and notify listeners."""
        writer = TreeWriter(self._state, self._next_key)
        result = fn(writer)
        tag_set = frozenset(tags)
        prev = self._state
        if writer.changed:
            self._state = writer.commit()
            if HISTORY_MERGE_TAG not in tag_set:
                self._push_history(prev)
        self._notify(
            UpdatePayload(
                snapshot=self._state,
                prev_snapshot=prev,
                dirty_elements=frozenset(writer.dirty_elements),
                dirty_leaves=frozenset(writer.dirty_leaves),
                tags=tag_set,
            )
        )
        return result

    def set_editor_state(
        self,
        state: Snapshot | dict[str, Any],
        *,
        tags: Iterable[str] = (HISTORY_MERGE_TAG,),
    ) -> Snapshot:
        """Replace the whole tree, e.g. when a document is opened."""
        prev = self._state
        self._state = self._coerce(state)
        tag_set = frozenset(tags)
        if HISTORY_MERGE_TAG not in tag_set:
            self._push_history(prev)
        elements = frozenset(k for k, n in self._state.nodes.items() if is_element(n))
        leaves = frozenset(k for k, n in self._state.nodes.items() if not is_element(n))
        self._notify(UpdatePayload(self._state, prev, elements, leaves, tag_set))
        return self._state

    # -- internals --------------------------------------------------------

    def _coerce(self, state: Snapshot | dict[str, Any]) -> Snapshot:
        if isinstance(state, Snapshot):
            return state
        return Snapshot.from_json(state, self._next_key)

    def _push_history(self, prev: Snapshot) -> None:
        self._undo_stack.append(prev)
        del self._undo_stack[: -self._history_limit]
        self._redo_stack.clear()

    def _jump(self, source: list[Snapshot], target: list[Snapshot]) -> bool:
        if not source:
            return False
        prev = self._state
        self._state = source.pop()
        target.append(prev)
        self._notify(
            UpdatePayload(
                snapshot=self._state,
                prev_snapshot=prev,
                dirty_elements=frozenset(),
                dirty_leaves=frozenset(),
                tags=frozenset({HISTORIC_TAG}),
            )
        )
        return True

    def _notify(self, payload: UpdatePayload) -> None:
        for listener in list(self._listeners):
            listener(payload)
