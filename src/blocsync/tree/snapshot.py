"""Immutable snapshots of the editable tree.

A :class:`Snapshot` is a fully materialized view of the tree at one
instant, addressed by ephemeral per-process node keys.  It is never
mutated after creation: the tree engine builds a new snapshot for every
committed update, and the classifier always compares two of them.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Iterator, Mapping
from types import MappingProxyType
from typing import Any

from blocsync.errors import BlocSyncSnapshotError

from .nodes import (
    ROOT_KEY,
    Node,
    RootNode,
    children_of,
    is_element,
    node_from_json,
    with_children,
)

KeyFactory = Callable[[], str]


def counter_key_factory(start: int = 1) -> KeyFactory:
    """Return a factory yielding ``"1"``, ``"2"``, ... on each call."""
    counter = itertools.count(start)
    return lambda: str(next(counter))


class Snapshot:
    """Read-only tree addressed by node key.

    Parameters
    ----------
    nodes:
        Mapping of every node key (including ``"root"``) to its node.
        The mapping is copied; later changes to the argument are not
        visible through the snapshot.
    """

    __slots__ = ("_nodes",)

    def __init__(self, nodes: Mapping[str, Node]) -> None:
        if ROOT_KEY not in nodes:
            raise BlocSyncSnapshotError("Snapshot has no root node", context={"key": ROOT_KEY})
        self._nodes: Mapping[str, Node] = MappingProxyType(dict(nodes))

    # -- construction -----------------------------------------------------

    @classmethod
    def empty(cls) -> Snapshot:
        return cls({ROOT_KEY: RootNode()})

    @classmethod
    def from_json(
        cls,
        data: dict[str, Any],
        key_factory: KeyFactory | None = None,
    ) -> Snapshot:
        """Build a snapshot from ``{"root": {"type": "root", "children": [...]}}``.

        Every non-root node gets a fresh key from *key_factory*.

        Raises
        ------
        BlocSyncSnapshotError
            On a missing root or an unknown node type.
        """
        root_data = data.get("root")
        if not isinstance(root_data, dict) or root_data.get("type") != "root":
            raise BlocSyncSnapshotError(
                "Serialized tree has no root node",
                context={"key": ROOT_KEY},
            )
        next_key = key_factory or counter_key_factory()
        nodes: dict[str, Node] = {}

        def build(item: dict[str, Any], key: str, parent: str | None) -> None:
            node = node_from_json(item, key, parent)
            child_keys: list[str] = []
            for child in item.get("children") or []:
                child_key = next_key()
                build(child, child_key, key)
                child_keys.append(child_key)
            if child_keys:
                node = with_children(node, tuple(child_keys))
            nodes[key] = node

        build(root_data, ROOT_KEY, None)
        return cls(nodes)

    # -- lookups ----------------------------------------------------------

    @property
    def nodes(self) -> Mapping[str, Node]:
        return self._nodes

    def has(self, key: str) -> bool:
        return key in self._nodes

    def get(self, key: str) -> Node | None:
        return self._nodes.get(key)

    def node(self, key: str) -> Node:
        try:
            return self._nodes[key]
        except KeyError:
            raise BlocSyncSnapshotError(
                f"No node with key {key!r}", context={"key": key}
            ) from None

    def parent_key(self, key: str) -> str | None:
        node = self._nodes.get(key)
        return node.parent if node is not None else None

    def children(self, key: str) -> tuple[str, ...]:
        node = self._nodes.get(key)
        return children_of(node) if node is not None else ()

    def top_level_keys(self) -> tuple[str, ...]:
        return self.children(ROOT_KEY)

    def is_top_level(self, key: str) -> bool:
        return self.parent_key(key) == ROOT_KEY

    def index_within_parent(self, key: str) -> int:
        parent = self.parent_key(key)
        if parent is None:
            return -1
        return self.children(parent).index(key)

    def previous_sibling(self, key: str) -> str | None:
        parent = self.parent_key(key)
        if parent is None:
            return None
        siblings = self.children(parent)
        idx = siblings.index(key)
        return siblings[idx - 1] if idx > 0 else None

    def next_sibling(self, key: str) -> str | None:
        parent = self.parent_key(key)
        if parent is None:
            return None
        siblings = self.children(parent)
        idx = siblings.index(key)
        return siblings[idx + 1] if idx + 1 < len(siblings) else None

    def previous_siblings(self, key: str) -> Iterator[str]:
        """Yield siblings before *key*, nearest first."""
        parent = self.parent_key(key)
        if parent is None:
            return
        siblings = self.children(parent)
        yield from reversed(siblings[: siblings.index(key)])

    def next_siblings(self, key: str) -> Iterator[str]:
        """Yield siblings after *key*, nearest first."""
        parent = self.parent_key(key)
        if parent is None:
            return
        siblings = self.children(parent)
        yield from siblings[siblings.index(key) + 1 :]

    def top_level_owner(self, key: str) -> str | None:
        """Return the direct child of the root that contains *key*.

        A top-level node is its own owner.  Returns ``None`` for the root
        itself and for keys not in the snapshot.
        """
        node = self._nodes.get(key)
        if node is None or key == ROOT_KEY:
            return None
        while node.parent is not None and node.parent != ROOT_KEY:
            parent = self._nodes.get(node.parent)
            if parent is None:
                return None
            node = parent
        return node.key if node.parent == ROOT_KEY else None

    # -- serialisation ----------------------------------------------------

    def export_node(self, key: str) -> dict[str, Any]:
        """Serialize the subtree under *key* into a fresh dict.

        The result shares nothing with the snapshot and may be mutated.
        """
        node = self.node(key)
        data = node.export_json()
        if is_element(node):
            data["children"] = [self.export_node(child) for child in children_of(node)]
        return data

    def to_json(self) -> dict[str, Any]:
        return {"root": self.export_node(ROOT_KEY)}

    def text_content(self, key: str) -> str:
        """Concatenated text of every text node under *key*."""
        node = self.node(key)
        own = getattr(node, "text", "")
        return own + "".join(self.text_content(child) for child in children_of(node))

    def is_empty(self) -> bool:
        """``True`` when the root has no children."""
        return not self.top_level_keys()

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, key: object) -> bool:
        return key in self._nodes

    def __repr__(self) -> str:
        return f"Snapshot({len(self._nodes)} nodes, {len(self.top_level_keys())} top-level)"
