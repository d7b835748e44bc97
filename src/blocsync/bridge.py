"""Identity/position bridge between ephemeral node keys and durable blocs.

The tree engine addresses nodes by keys that only live as long as the
process.  Blocs are addressed by ids that live forever.  The bridge is the
single place where the two are reconciled: every component asks it whether
a node already exists durably and where it sorts.

The bridge lives for one editing session.  It is never persisted; when a
document is opened it is rebuilt from the ``$`` state the stored content
carries (see :meth:`IdentityBridge.rebuild`).
"""

from __future__ import annotations

from collections.abc import ItemsView, Iterator, KeysView
from typing import TYPE_CHECKING

from blocsync.content import get_id_state, get_position_state
from blocsync.models import BridgeEntry

if TYPE_CHECKING:
    from blocsync.tree.snapshot import Snapshot


class IdentityBridge:
    """Mapping ``ephemeral_key -> BridgeEntry(id, position)``.

    Setting an existing key replaces its entry, so a moved node keeps one
    entry with its new position.
    """

    __slots__ = ("_entries",)

    def __init__(self) -> None:
        self._entries: dict[str, BridgeEntry] = {}

    def get(self, key: str) -> BridgeEntry | None:
        return self._entries.get(key)

    def set(self, key: str, bloc_id: str, position: str) -> BridgeEntry:
        entry = BridgeEntry(id=bloc_id, position=position)
        self._entries[key] = entry
        return entry

    def delete(self, key: str) -> BridgeEntry | None:
        """Remove *key* and return the entry it had, if any."""
        return self._entries.pop(key, None)

    def id_of(self, key: str) -> str | None:
        entry = self._entries.get(key)
        return entry.id if entry is not None else None

    def position_of(self, key: str | None) -> str | None:
        if key is None:
            return None
        entry = self._entries.get(key)
        return entry.position if entry is not None else None

    def keys(self) -> KeysView[str]:
        return self._entries.keys()

    def items(self) -> ItemsView[str, BridgeEntry]:
        return self._entries.items()

    def clear(self) -> None:
        self._entries.clear()

    def rebuild(self, snapshot: Snapshot) -> int:
        """Replace the bridge contents from the ``$`` state of *snapshot*.

        Top-level nodes without both an id and a position are left out;
        they will be picked up as ADDs if the engine ever reports them.

        Returns
        -------
        int
            The number of entries written.
        """
        self._entries.clear()
        for key in snapshot.top_level_keys():
            content = snapshot.export_node(key)
            bloc_id = get_id_state(content)
            position = get_position_state(content)
            if bloc_id and position:
                self._entries[key] = BridgeEntry(id=bloc_id, position=position)
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __repr__(self) -> str:
        return f"IdentityBridge({len(self._entries)} entries)"
