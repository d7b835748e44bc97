"""blocsync: mirror an editable document tree into a bloc store.

Public re-exports
-----------------

* **Engine:** :class:`BlocSyncEngine` and the reference :class:`TreeEngine`
* **Configuration:** :class:`BlocSyncConfig`
* **Stores:** :class:`BlocStore`, :class:`InMemoryBlocStore`,
  :class:`HttpBlocStore`
* **Errors:** Every :class:`BlocSyncError` subclass and :class:`ErrorCode`
* **Models:** :class:`Bloc`, :class:`ChangeRecord` and supporting types

Usage::

    from blocsync import BlocSyncEngine, HttpBlocStore, BlocSyncConfig, TreeEngine

    config = BlocSyncConfig(base_url="https://blocs.example.com/api", token="secret")
    tree = TreeEngine()
    async with BlocSyncEngine(HttpBlocStore(config), config) as engine:
        engine.attach(tree)
        await engine.open_page("<page_id>")
"""

from __future__ import annotations

# ── Core ────────────────────────────────────────────────────────────────
from blocsync.bridge import IdentityBridge

# ── Configuration ───────────────────────────────────────────────────────
from blocsync.config import BlocSyncConfig
from blocsync.engine import BlocSyncEngine

# ── Errors ──────────────────────────────────────────────────────────────
from blocsync.errors import (
    BlocSyncAuthError,
    BlocSyncBridgeError,
    BlocSyncError,
    BlocSyncIndexError,
    BlocSyncNetworkError,
    BlocSyncNotFoundError,
    BlocSyncPersistenceError,
    BlocSyncRetryExhaustedError,
    BlocSyncSnapshotError,
    BlocSyncValidationError,
    ErrorCode,
)
from blocsync.indexing import generate_key_between, generate_n_keys_between

# ── Models ──────────────────────────────────────────────────────────────
from blocsync.models import (
    Bloc,
    BridgeEntry,
    ChangeRecord,
    ChangeType,
    FlushResult,
    WriteStatus,
)
from blocsync.state import DocumentState

# ── Stores ──────────────────────────────────────────────────────────────
from blocsync.store import BlocStore, HttpBlocStore, InMemoryBlocStore
from blocsync.tree import Snapshot, TreeEngine

# ── Public surface ──────────────────────────────────────────────────────

__all__ = [
    # Engine
    "BlocSyncEngine",
    "TreeEngine",
    "Snapshot",
    "IdentityBridge",
    "DocumentState",
    "generate_key_between",
    "generate_n_keys_between",
    # Configuration
    "BlocSyncConfig",
    # Stores
    "BlocStore",
    "InMemoryBlocStore",
    "HttpBlocStore",
    # Error base + code enum
    "BlocSyncError",
    "ErrorCode",
    # Core errors
    "BlocSyncIndexError",
    "BlocSyncSnapshotError",
    "BlocSyncBridgeError",
    "BlocSyncPersistenceError",
    # Transport errors
    "BlocSyncValidationError",
    "BlocSyncAuthError",
    "BlocSyncNotFoundError",
    "BlocSyncNetworkError",
    "BlocSyncRetryExhaustedError",
    # Models
    "Bloc",
    "BridgeEntry",
    "ChangeRecord",
    "ChangeType",
    "FlushResult",
    "WriteStatus",
]
