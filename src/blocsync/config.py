"""Configuration for blocsync.

:class:`BlocSyncConfig` is a plain dataclass that captures every tuneable
knob of the sync engine and of the bundled HTTP store.  Instances are
passed to :class:`~blocsync.engine.BlocSyncEngine` and
:class:`~blocsync.store.http.HttpBlocStore`.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any


@dataclass
class BlocSyncConfig:
    """Complete configuration for a sync engine.

    Every parameter has a default, so ``BlocSyncConfig()`` is a working
    configuration for the in-memory store.

    Parameters
    ----------
    flush_interval_seconds:
        Interval of the batched content flush.  Content edits arriving
        within one interval are coalesced into one write per bloc.
    ignore_selection_change:
        Skip update notifications that carry no dirty nodes at all.
    ignore_history_merge:
        Skip update notifications tagged ``history-merge`` (state loads
        and other changes that must not be recorded).
    structural_queue_limit:
        Maximum number of ADD / REMOVE / MOVE records kept in the
        structural queue.  The oldest records are evicted first.
    token:
        Bearer token for the HTTP store.  Never logged.
    base_url:
        Root URL of the HTTP store.
    timeout_seconds:
        HTTP request timeout in seconds.
    retry_max_attempts:
        Total attempts per HTTP request for transient failures
        (429 for any method; 5xx and network errors for GET and PATCH only).
        ``1`` disables transport retries.
    retry_base_delay:
        Base delay (seconds) for exponential backoff.
    retry_max_delay:
        Upper cap (seconds) on computed backoff delay.
    retry_jitter:
        Add random jitter to backoff intervals.
    rate_limit_rps:
        Target requests per second for client-side pacing.
    http_proxy:
        Optional HTTP/HTTPS proxy URL.
    metrics:
        Optional :class:`~blocsync.observability.MetricsHook` backend.
    debug_dump_changes:
        Log every classified change record at debug level.
    debug_dump_payload:
        Dump redacted HTTP request and response bodies to stderr.
    """

    # ── Sync ────────────────────────────────────────────────────────────
    flush_interval_seconds: float = 1.0

    ignore_selection_change: bool = False

    ignore_history_merge: bool = True

    structural_queue_limit: int = 256

    # ── HTTP store ──────────────────────────────────────────────────────
    token: str = ""

    base_url: str = "http://localhost:8080/api"

    timeout_seconds: float = 30.0

    retry_max_attempts: int = 3

    retry_base_delay: float = 0.5

    retry_max_delay: float = 10.0

    retry_jitter: bool = True

    rate_limit_rps: float = 20.0

    http_proxy: str | None = None

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    debug_dump_changes: bool = False

    debug_dump_payload: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        from urllib.parse import urlparse

        parsed = urlparse(self.base_url)
        if parsed.scheme == "http" and parsed.hostname not in (
            "localhost",
            "127.0.0.1",
            "::1",
        ):
            raise ValueError(
                f"base_url uses insecure HTTP for non-local host '{parsed.hostname}'. "
                "Use HTTPS to protect your token, or target localhost."
            )

        if self.flush_interval_seconds <= 0:
            raise ValueError(
                f"flush_interval_seconds must be > 0, got {self.flush_interval_seconds}"
            )
        if self.structural_queue_limit < 1:
            raise ValueError(
                f"structural_queue_limit must be >= 1, got {self.structural_queue_limit}"
            )
        if self.retry_max_attempts < 1:
            raise ValueError(f"retry_max_attempts must be >= 1, got {self.retry_max_attempts}")
        if self.retry_base_delay < 0:
            raise ValueError(f"retry_base_delay must be >= 0, got {self.retry_base_delay}")
        if self.retry_max_delay < 0:
            raise ValueError(f"retry_max_delay must be >= 0, got {self.retry_max_delay}")
        if self.rate_limit_rps <= 0:
            raise ValueError(f"rate_limit_rps must be > 0, got {self.rate_limit_rps}")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")

    def __repr__(self) -> str:
        """Mask the token to prevent accidental credential leakage."""
        parts: list[str] = []
        for f in dataclasses.fields(self):
            val = getattr(self, f.name)
            if f.name == "token":
                masked = f"...{val[-4:]}" if len(val) >= 4 else "****"
                parts.append(f"token='{masked}'")
            else:
                parts.append(f"{f.name}={val!r}")
        return f"BlocSyncConfig({', '.join(parts)})"
