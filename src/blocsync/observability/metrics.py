"""Metrics hook protocol and no-op default implementation.

blocsync emits counters, timings and gauges at the points where changes
are classified and persisted.  By default a :class:`NoopMetricsHook` is
used.  Supply any object satisfying :class:`MetricsHook` through
``BlocSyncConfig(metrics=...)`` to route them elsewhere.

Emitted metric names:

* ``blocsync.changes_total``           -- counter, tag ``type``
* ``blocsync.persist_failures_total``  -- counter, tag ``op``
* ``blocsync.flush_batch_size``        -- gauge
* ``blocsync.flush_duration_ms``       -- timing
* ``blocsync.requests_total``          -- counter (HTTP store)
* ``blocsync.retries_total``           -- counter (HTTP store)
* ``blocsync.request_duration_ms``     -- timing (HTTP store)
* ``blocsync.rate_limit_wait_ms``      -- timing (HTTP store)
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    All methods accept an optional *tags* dict of string keys and values.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter metric."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration in milliseconds."""
        ...

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge metric to an absolute value."""
        ...


class NoopMetricsHook:
    """Default metrics implementation that discards all data points."""

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass


def resolve_metrics(config: Any) -> MetricsHook:
    """Return the configured metrics backend, or a no-op one."""
    metrics = getattr(config, "metrics", None)
    return metrics if metrics is not None else NoopMetricsHook()
