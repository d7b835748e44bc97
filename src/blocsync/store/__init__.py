"""Persistence adapters for blocs."""

from __future__ import annotations

from .base import BlocStore
from .http import HttpBlocStore
from .memory import InMemoryBlocStore
from .transport import AsyncBlocTransport

__all__ = [
    "AsyncBlocTransport",
    "BlocStore",
    "HttpBlocStore",
    "InMemoryBlocStore",
]
