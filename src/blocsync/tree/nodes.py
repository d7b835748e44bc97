"""Node variants of the editable tree.

The node set is closed: :class:`NodeKind` lists every variant and
:func:`node_from_json` dispatches on the serialized ``type`` tag with an
exhaustive ``match``.  Every variant implements the :class:`Serializable`
capability; element variants additionally carry the keys of their
children.

Custom inline widgets (math expressions, events, invokers) share the one
:class:`WidgetNode` variant.  Their widget-specific fields travel in
``payload`` and are opaque to the sync engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar, Protocol, Union, runtime_checkable

from blocsync.content import STATE_KEY
from blocsync.errors import BlocSyncSnapshotError

ROOT_KEY = "root"

WIDGET_TYPES: frozenset[str] = frozenset({"math-expression", "event", "invoker"})
"""Serialized ``type`` tags handled by :class:`WidgetNode`."""


class NodeKind(str, Enum):
    ROOT = "root"
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    QUOTE = "quote"
    TEXT = "text"
    LINEBREAK = "linebreak"
    WIDGET = "widget"


@runtime_checkable
class Serializable(Protocol):
    """Capability: the node can write its own fields to JSON.

    ``export_json`` returns the node's fields only.  Children are filled
    in by :meth:`Snapshot.export_node`, which owns the tree structure.
    """

    def export_json(self) -> dict[str, Any]: ...


def _with_state(data: dict[str, Any], state: dict[str, Any]) -> dict[str, Any]:
    if state:
        data[STATE_KEY] = dict(state)
    return data


@dataclass(frozen=True)
class RootNode:
    key: str = ROOT_KEY
    parent: str | None = None
    children: tuple[str, ...] = ()

    kind: ClassVar[NodeKind] = NodeKind.ROOT

    def export_json(self) -> dict[str, Any]:
        return {"type": "root", "format": "", "indent": 0, "version": 1}


@dataclass(frozen=True)
class ParagraphNode:
    key: str
    parent: str | None
    children: tuple[str, ...] = ()
    format: str = ""
    indent: int = 0
    state: dict[str, Any] = field(default_factory=dict, compare=False)

    kind: ClassVar[NodeKind] = NodeKind.PARAGRAPH

    def export_json(self) -> dict[str, Any]:
        return _with_state(
            {"type": "paragraph", "format": self.format, "indent": self.indent, "version": 1},
            self.state,
        )


@dataclass(frozen=True)
class HeadingNode:
    key: str
    parent: str | None
    tag: str = "h1"
    children: tuple[str, ...] = ()
    format: str = ""
    indent: int = 0
    state: dict[str, Any] = field(default_factory=dict, compare=False)

    kind: ClassVar[NodeKind] = NodeKind.HEADING

    def export_json(self) -> dict[str, Any]:
        return _with_state(
            {
                "type": "heading",
                "tag": self.tag,
                "format": self.format,
                "indent": self.indent,
                "version": 1,
            },
            self.state,
        )


@dataclass(frozen=True)
class QuoteNode:
    key: str
    parent: str | None
    children: tuple[str, ...] = ()
    format: str = ""
    indent: int = 0
    state: dict[str, Any] = field(default_factory=dict, compare=False)

    kind: ClassVar[NodeKind] = NodeKind.QUOTE

    def export_json(self) -> dict[str, Any]:
        return _with_state(
            {"type": "quote", "format": self.format, "indent": self.indent, "version": 1},
            self.state,
        )


@dataclass(frozen=True)
class TextNode:
    key: str
    parent: str | None
    text: str = ""
    format: int = 0
    style: str = ""

    kind: ClassVar[NodeKind] = NodeKind.TEXT

    def export_json(self) -> dict[str, Any]:
        return {
            "type": "text",
            "text": self.text,
            "format": self.format,
            "style": self.style,
            "detail": 0,
            "mode": "normal",
            "version": 1,
        }


@dataclass(frozen=True)
class LineBreakNode:
    key: str
    parent: str | None

    kind: ClassVar[NodeKind] = NodeKind.LINEBREAK

    def export_json(self) -> dict[str, Any]:
        return {"type": "linebreak", "version": 1}


@dataclass(frozen=True)
class WidgetNode:
    key: str
    parent: str | None
    widget_type: str = "invoker"
    payload: dict[str, Any] = field(default_factory=dict, compare=False)
    state: dict[str, Any] = field(default_factory=dict, compare=False)

    kind: ClassVar[NodeKind] = NodeKind.WIDGET

    def export_json(self) -> dict[str, Any]:
        data = dict(self.payload)
        data["type"] = self.widget_type
        data.setdefault("version", 1)
        return _with_state(data, self.state)


Node = Union[
    RootNode, ParagraphNode, HeadingNode, QuoteNode, TextNode, LineBreakNode, WidgetNode
]

ElementNode = Union[RootNode, ParagraphNode, HeadingNode, QuoteNode]


def is_element(node: Node) -> bool:
    """``True`` for variants that own children."""
    match node.kind:
        case NodeKind.ROOT | NodeKind.PARAGRAPH | NodeKind.HEADING | NodeKind.QUOTE:
            return True
        case NodeKind.TEXT | NodeKind.LINEBREAK | NodeKind.WIDGET:
            return False


def children_of(node: Node) -> tuple[str, ...]:
    if is_element(node):
        return node.children  # type: ignore[union-attr]
    return ()


def with_children(node: Node, children: tuple[str, ...]) -> Node:
    if not is_element(node):
        raise BlocSyncSnapshotError(
            f"{node.kind.value} node cannot have children",
            context={"key": node.key, "node_type": node.kind.value},
        )
    return replace(node, children=children)  # type: ignore[type-var]


def node_from_json(
    data: dict[str, Any],
    key: str,
    parent: str | None,
) -> Node:
    """Build the node for one serialized dict, without its children.

    Raises
    ------
    BlocSyncSnapshotError
        If the ``type`` tag is unknown.
    """
    node_type = data.get("type")
    state = dict(data.get(STATE_KEY) or {})
    match node_type:
        case "root":
            return RootNode(key=key, parent=None)
        case "paragraph":
            return ParagraphNode(
                key=key,
                parent=parent,
                format=str(data.get("format") or ""),
                indent=int(data.get("indent") or 0),
                state=state,
            )
        case "heading":
            return HeadingNode(
                key=key,
                parent=parent,
                tag=str(data.get("tag") or "h1"),
                format=str(data.get("format") or ""),
                indent=int(data.get("indent") or 0),
                state=state,
            )
        case "quote":
            return QuoteNode(
                key=key,
                parent=parent,
                format=str(data.get("format") or ""),
                indent=int(data.get("indent") or 0),
                state=state,
            )
        case "text":
            return TextNode(
                key=key,
                parent=parent,
                text=str(data.get("text") or ""),
                format=int(data.get("format") or 0),
                style=str(data.get("style") or ""),
            )
        case "linebreak":
            return LineBreakNode(key=key, parent=parent)
        case str() if node_type in WIDGET_TYPES:
            payload = {
                k: v for k, v in data.items() if k not in ("type", "children", STATE_KEY)
            }
            return WidgetNode(
                key=key,
                parent=parent,
                widget_type=node_type,
                payload=payload,
                state=state,
            )
        case _:
            raise BlocSyncSnapshotError(
                f"Unknown node type: {node_type!r}",
                context={"key": key, "node_type": node_type},
            )
