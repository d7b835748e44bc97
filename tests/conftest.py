"""Shared test fixtures for the blocsync test suite."""

from __future__ import annotations

import itertools
from typing import Any

import pytest

from blocsync.bridge import IdentityBridge
from blocsync.config import BlocSyncConfig
from blocsync.engine import BlocSyncEngine
from blocsync.store.memory import InMemoryBlocStore
from blocsync.sync.ticker import ManualTicker
from blocsync.tree.engine import TreeEngine


class RecordingMetricsHook:
    """A metrics backend that records all calls for assertion."""

    def __init__(self) -> None:
        self.increments: list[dict[str, Any]] = []
        self.timings: list[dict[str, Any]] = []
        self.gauges: list[dict[str, Any]] = []

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        self.increments.append({"name": name, "value": value, "tags": tags})

    def timing(self, name: str, ms: float, tags: dict[str, str] | None = None) -> None:
        self.timings.append({"name": name, "ms": ms, "tags": tags})

    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        self.gauges.append({"name": name, "value": value, "tags": tags})

    def names(self) -> list[str]:
        return [c["name"] for c in self.increments + self.timings + self.gauges]


def sequential_ids(prefix: str = "bloc") -> Any:
    """Return an id factory yielding ``bloc-1``, ``bloc-2``, ..."""
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


@pytest.fixture
def config() -> BlocSyncConfig:
    """Default test configuration with a dummy token."""
    return BlocSyncConfig(token="test_token_1234")


@pytest.fixture
def metrics() -> RecordingMetricsHook:
    return RecordingMetricsHook()


@pytest.fixture
def bridge() -> IdentityBridge:
    return IdentityBridge()


@pytest.fixture
def tree() -> TreeEngine:
    return TreeEngine()


@pytest.fixture
def store() -> InMemoryBlocStore:
    return InMemoryBlocStore()


@pytest.fixture
def ticker() -> ManualTicker:
    return ManualTicker(interval=1.0)


@pytest.fixture
def engine(
    store: InMemoryBlocStore,
    tree: TreeEngine,
    ticker: ManualTicker,
    metrics: RecordingMetricsHook,
) -> BlocSyncEngine:
    """An engine on the in-memory store, attached to ``tree``, not started."""
    sync = BlocSyncEngine(
        store,
        BlocSyncConfig(metrics=metrics),
        page_id="page-1",
        ticker=ticker,
        clock=lambda: 1_700_000_000_000,
        id_factory=sequential_ids(),
    )
    sync.attach(tree)
    return sync
