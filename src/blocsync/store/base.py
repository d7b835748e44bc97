"""Persistence adapter contract.

The sync engine only ever talks to a store through :class:`BlocStore`.
Content and position writes return a three-way
:class:`~blocsync.models.WriteStatus` so the engine can tell "nothing to
do" (``NO_CHANGE``) apart from a failed write (``ERROR``); the remaining
operations report success as a ``bool`` or a value.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from blocsync.models import Bloc, WriteStatus


@runtime_checkable
class BlocStore(Protocol):
    """Asynchronous CRUD surface over persisted blocs."""

    async def create_bloc(self, bloc: Bloc) -> str:
        """Persist *bloc* and return its id (empty string on failure)."""
        ...

    async def update_bloc_content(
        self, bloc_id: str, content: str, updated_at: int
    ) -> WriteStatus:
        ...

    async def update_bloc_position(
        self, bloc_id: str, position: str, updated_at: int
    ) -> WriteStatus:
        ...

    async def update_bloc_page_id(self, bloc_id: str, new_page_id: str) -> bool:
        ...

    async def delete_bloc(self, bloc_id: str) -> bool:
        ...

    async def delete_bloc_by_page_id(self, page_id: str) -> bool:
        ...

    async def get_bloc_by_id(self, bloc_id: str) -> Bloc | None:
        ...

    async def get_blocs_by_page_id(self, page_id: str) -> list[Bloc]:
        """Return every bloc of *page_id* ordered by position."""
        ...
