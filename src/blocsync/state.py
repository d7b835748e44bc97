"""Shared document state: the "unsaved change" marker.

The sync engine reports the document's dirty state as a
:class:`~blocsync.models.ChangeRecord` (``{type, key, id}``); the empty
record means every change has been persisted.  UI code subscribes to render
a dirty indicator and never writes the marker itself.
"""

from __future__ import annotations

from collections.abc import Callable

from blocsync.models import ChangeRecord

ModifiedListener = Callable[[ChangeRecord], None]


class DocumentState:
    """Holder of the current unsaved-change marker.

    A failed write keeps the document marked modified until a later write
    for the same id succeeds, so the indicator never claims "saved" while a
    bloc is out of sync.
    """

    def __init__(self) -> None:
        self._modified = ChangeRecord.empty()
        self._failures: dict[str, ChangeRecord] = {}
        self._listeners: list[ModifiedListener] = []

    @property
    def modified(self) -> ChangeRecord:
        return self._modified

    @property
    def failed_ids(self) -> frozenset[str]:
        return frozenset(self._failures)

    def is_modified(self) -> bool:
        return not self._modified.is_empty

    def set_modified(self, record: ChangeRecord) -> None:
        self._set(record)

    def mark_saved(self, bloc_id: str) -> None:
        """Record a successful write for *bloc_id*.

        Clears the marker when it points at *bloc_id* and no other write
        is still failed.
        """
        self._failures.pop(bloc_id, None)
        if self._failures:
            self._set(next(reversed(self._failures.values())))
        elif self._modified.id == bloc_id:
            self._set(ChangeRecord.empty())

    def mark_failed(self, record: ChangeRecord) -> None:
        self._failures[record.id] = record
        self._set(record)

    def reset(self) -> None:
        """Forget every failure and mark the document clean."""
        self._failures.clear()
        self._set(ChangeRecord.empty())

    def subscribe(self, listener: ModifiedListener) -> Callable[[], None]:
        """Call *listener* with the new marker whenever it changes."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, record: ChangeRecord) -> None:
        if record == self._modified:
            return
        self._modified = record
        for listener in list(self._listeners):
            listener(record)
