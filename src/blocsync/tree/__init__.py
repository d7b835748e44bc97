"""Editable tree: node variants, immutable snapshots and a reference engine."""

from __future__ import annotations

from .engine import (
    HISTORIC_TAG,
    HISTORY_MERGE_TAG,
    Command,
    TreeEngine,
    TreeWriter,
    UpdatePayload,
)
from .nodes import (
    ROOT_KEY,
    HeadingNode,
    LineBreakNode,
    Node,
    NodeKind,
    ParagraphNode,
    QuoteNode,
    RootNode,
    Serializable,
    TextNode,
    WidgetNode,
    is_element,
)
from .snapshot import Snapshot, counter_key_factory

__all__ = [
    "HISTORIC_TAG",
    "HISTORY_MERGE_TAG",
    "ROOT_KEY",
    "Command",
    "HeadingNode",
    "LineBreakNode",
    "Node",
    "NodeKind",
    "ParagraphNode",
    "QuoteNode",
    "RootNode",
    "Serializable",
    "Snapshot",
    "TextNode",
    "TreeEngine",
    "TreeWriter",
    "UpdatePayload",
    "WidgetNode",
    "counter_key_factory",
    "is_element",
]
