"""Deduplicating change queues.

Two instances are used per engine: one for structural records
(ADD / REMOVE / MOVE) and one for content UPDATE records.  Each keeps at
most one pending record per bloc id; pushing a record for an id already in
the queue replaces the old record and moves it to the back.
"""

from __future__ import annotations

from collections.abc import Iterator

from blocsync.models import ChangeRecord


class ChangeQueue:
    """Insertion-ordered queue with one pending record per bloc id.

    Parameters
    ----------
    limit:
        Optional maximum length.  When exceeded, the oldest records are
        evicted.
    """

    __slots__ = ("_records", "limit")

    def __init__(self, limit: int | None = None) -> None:
        if limit is not None and limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        self._records: dict[str, ChangeRecord] = {}
        self.limit = limit

    def push(self, record: ChangeRecord) -> None:
        self._records.pop(record.id, None)
        self._records[record.id] = record
        if self.limit is not None:
            while len(self._records) > self.limit:
                del self._records[next(iter(self._records))]

    def discard(self, bloc_id: str) -> ChangeRecord | None:
        return self._records.pop(bloc_id, None)

    def drain(self) -> list[ChangeRecord]:
        """Return every queued record and leave the queue empty.

        Records pushed after this call land in the next drain.
        """
        records = list(self._records.values())
        self._records = {}
        return records

    def keys(self) -> set[str]:
        """Ephemeral node keys of the queued records."""
        return {record.key for record in self._records.values()}

    def ids(self) -> list[str]:
        return list(self._records)

    def __contains__(self, bloc_id: object) -> bool:
        return bloc_id in self._records

    def __iter__(self) -> Iterator[ChangeRecord]:
        return iter(list(self._records.values()))

    def __len__(self) -> int:
        return len(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)

    def __repr__(self) -> str:
        return f"ChangeQueue({len(self._records)} pending)"
