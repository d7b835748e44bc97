"""Dict-backed :class:`~blocsync.store.base.BlocStore`.

Behaves like the reference SQLite backend: a content write whose checksum
matches the stored content, or a position write with an unchanged
position, returns ``NO_CHANGE``; writes to an unknown id also return
``NO_CHANGE`` (no row affected).  Used by tests and for offline sessions.
"""

from __future__ import annotations

from dataclasses import replace

from blocsync.models import Bloc, WriteStatus
from blocsync.utils.hashing import content_checksum


class InMemoryBlocStore:
    """In-process bloc store.

    Attributes
    ----------
    calls:
        Names of the store operations in call order, for assertions.
    """

    def __init__(self, blocs: list[Bloc] | None = None) -> None:
        self._blocs: dict[str, Bloc] = {}
        self._checksums: dict[str, str] = {}
        self.calls: list[str] = []
        for bloc in blocs or []:
            self._put(bloc)

    def _put(self, bloc: Bloc) -> None:
        self._blocs[bloc.id] = bloc
        self._checksums[bloc.id] = content_checksum(bloc.content)

    async def create_bloc(self, bloc: Bloc) -> str:
        self.calls.append("create_bloc")
        if not bloc.id or bloc.id in self._blocs:
            return ""
        self._put(replace(bloc))
        return bloc.id

    async def update_bloc_content(
        self, bloc_id: str, content: str, updated_at: int
    ) -> WriteStatus:
        self.calls.append("update_bloc_content")
        bloc = self._blocs.get(bloc_id)
        if bloc is None:
            return WriteStatus.NO_CHANGE
        checksum = content_checksum(content)
        if checksum == self._checksums[bloc_id]:
            return WriteStatus.NO_CHANGE
        bloc.content = content
        bloc.updated_at = updated_at
        self._checksums[bloc_id] = checksum
        return WriteStatus.SUCCESS

    async def update_bloc_position(
        self, bloc_id: str, position: str, updated_at: int
    ) -> WriteStatus:
        self.calls.append("update_bloc_position")
        bloc = self._blocs.get(bloc_id)
        if bloc is None or bloc.position == position:
            return WriteStatus.NO_CHANGE
        bloc.position = position
        bloc.updated_at = updated_at
        return WriteStatus.SUCCESS

    async def update_bloc_page_id(self, bloc_id: str, new_page_id: str) -> bool:
        self.calls.append("update_bloc_page_id")
        bloc = self._blocs.get(bloc_id)
        if bloc is None:
            return False
        bloc.page_id = new_page_id
        return True

    async def delete_bloc(self, bloc_id: str) -> bool:
        self.calls.append("delete_bloc")
        self._checksums.pop(bloc_id, None)
        return self._blocs.pop(bloc_id, None) is not None

    async def delete_bloc_by_page_id(self, page_id: str) -> bool:
        self.calls.append("delete_bloc_by_page_id")
        doomed = [bloc_id for bloc_id, bloc in self._blocs.items() if bloc.page_id == page_id]
        for bloc_id in doomed:
            del self._blocs[bloc_id]
            del self._checksums[bloc_id]
        return bool(doomed)

    async def get_bloc_by_id(self, bloc_id: str) -> Bloc | None:
        self.calls.append("get_bloc_by_id")
        bloc = self._blocs.get(bloc_id)
        return replace(bloc) if bloc is not None else None

    async def get_blocs_by_page_id(self, page_id: str) -> list[Bloc]:
        self.calls.append("get_blocs_by_page_id")
        blocs = [replace(b) for b in self._blocs.values() if b.page_id == page_id]
        return sorted(blocs, key=lambda b: b.position)

    def count(self, operation: str) -> int:
        return self.calls.count(operation)

    def __len__(self) -> int:
        return len(self._blocs)
