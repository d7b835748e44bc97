"""Change detection and persistence scheduling."""

from __future__ import annotations

from .classifier import ChangeClassifier
from .executor import ChangeExecutor
from .flusher import BatchedFlusher
from .history import HistoryReconciler
from .queue import ChangeQueue
from .ticker import AsyncioTicker, ManualTicker, Ticker

__all__ = [
    "AsyncioTicker",
    "BatchedFlusher",
    "ChangeClassifier",
    "ChangeExecutor",
    "ChangeQueue",
    "HistoryReconciler",
    "ManualTicker",
    "Ticker",
]
