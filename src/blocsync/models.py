"""Public data models for blocsync.

Plain dataclasses and enums shared by the classifier, the queues, the
flusher and the persistence adapters.  None of them carry behaviour beyond
what is needed for equality, hashing and (de)serialisation.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum, IntEnum
from typing import Any


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ChangeType(str, Enum):
    """Classes of change the classifier emits."""

    ADD = "add_bloc"
    """A top-level node appeared -- create a bloc."""

    REMOVE = "remove_bloc"
    """A top-level node disappeared -- delete its bloc."""

    MOVE = "move_bloc"
    """A top-level node changed neighbours -- recompute its position."""

    UPDATE = "update_bloc"
    """A node's content changed -- rewrite the bloc content."""


class WriteStatus(IntEnum):
    """Three-way result of a content or position write."""

    SUCCESS = 1
    NO_CHANGE = 0
    ERROR = -1


# ---------------------------------------------------------------------------
# Change tracking
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChangeRecord:
    """One pending change for a bloc.

    Attributes
    ----------
    type:
        The change class, or ``None`` for the empty "clean" marker.
    key:
        Ephemeral key of the affected tree node.
    id:
        Durable bloc id.
    """

    type: ChangeType | None
    key: str
    id: str

    @classmethod
    def empty(cls) -> ChangeRecord:
        """The marker meaning "no unsaved change"."""
        return cls(type=None, key="", id="")

    @property
    def is_empty(self) -> bool:
        return self.type is None and not self.key and not self.id

    def to_dict(self) -> dict[str, str]:
        """Serialise as ``{type, key, id}`` with empty strings when clean."""
        return {
            "type": self.type.value if self.type is not None else "",
            "key": self.key,
            "id": self.id,
        }


@dataclass(frozen=True)
class BridgeEntry:
    """Durable identity of a tree node: its bloc id and sort position."""

    id: str
    position: str


# ---------------------------------------------------------------------------
# Persisted unit
# ---------------------------------------------------------------------------

@dataclass
class Bloc:
    """The durable representation of one top-level document node.

    Attributes
    ----------
    id:
        Globally unique id, minted client-side when the node first appears.
    position:
        Fractional index; lexicographic order of positions is sibling order.
    content:
        JSON serialisation of exactly one top-level node.
    page_id:
        Id of the owning document.
    bloc_type:
        Node type tag (``"paragraph"``, ``"heading"`` ...).
    created_at, updated_at:
        Epoch-millisecond timestamps.
    """

    id: str
    position: str
    content: str
    page_id: str
    bloc_type: str
    created_at: int = 0
    updated_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Bloc:
        """Build a bloc from its wire form, ignoring unknown keys."""
        return cls(
            id=str(data.get("id") or ""),
            position=str(data.get("position") or ""),
            content=str(data.get("content") or ""),
            page_id=str(data.get("page_id") or ""),
            bloc_type=str(data.get("bloc_type") or ""),
            created_at=int(data.get("created_at") or 0),
            updated_at=int(data.get("updated_at") or 0),
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class FlushResult:
    """Summary of one flush of the update queue.

    Attributes
    ----------
    written:
        Ids whose content write returned ``SUCCESS``.
    unchanged:
        Ids whose content write returned ``NO_CHANGE``.
    failed:
        Ids whose write returned ``ERROR`` or raised.
    skipped:
        Ids dropped because their node or bridge entry no longer exists.
    """

    written: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.written) + len(self.unchanged) + len(self.failed) + len(self.skipped)
