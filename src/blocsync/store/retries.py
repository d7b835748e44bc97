"""Retry policy for the HTTP bloc store.

A request is resent only when resending cannot repeat a write the server
may already have applied:

* ``429`` means the store refused the request without processing it, so
  every method may be resent after the advertised delay.
* ``5xx`` responses and network errors leave the outcome unknown.  They
  are resent for ``GET`` and ``PATCH`` only; both are idempotent for blocs
  (a repeated content or position write answers ``NO_CHANGE``).  A
  ``POST /blocs`` or ``DELETE`` that fails this way is reported once and
  the executor marks the bloc unsaved.

The sync layer above never retries.
"""

from __future__ import annotations

import random
from dataclasses import dataclass

import httpx

from blocsync.config import BlocSyncConfig

RESENDABLE_METHODS: frozenset[str] = frozenset({"GET", "PATCH"})

THROTTLED = 429
TRANSIENT_STATUSES: frozenset[int] = frozenset({500, 502, 503, 504})
TRANSIENT_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
)


def is_transient_status(status_code: int) -> bool:
    """``True`` for statuses that say nothing about the request itself."""
    return status_code == THROTTLED or status_code in TRANSIENT_STATUSES


@dataclass(frozen=True)
class RetryPolicy:
    """When and how long to wait before resending a store request.

    Parameters
    ----------
    max_attempts:
        Total attempts including the first one.  ``1`` disables retries.
    base_delay:
        Backoff base in seconds; attempt *n* waits ``base_delay * 2**n``.
    max_delay:
        Cap on the computed backoff.
    jitter:
        Scale each delay to between 50 % and 100 % of its value.
    """

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0
    jitter: bool = True

    @classmethod
    def from_config(cls, config: BlocSyncConfig) -> RetryPolicy:
        return cls(
            max_attempts=config.retry_max_attempts,
            base_delay=config.retry_base_delay,
            max_delay=config.retry_max_delay,
            jitter=config.retry_jitter,
        )

    def resendable(
        self,
        method: str,
        *,
        status_code: int | None = None,
        error: Exception | None = None,
    ) -> bool:
        """Whether this kind of failure may be resent for *method*."""
        if status_code == THROTTLED:
            return True
        if error is not None and not isinstance(error, TRANSIENT_EXCEPTIONS):
            return False
        if error is None and status_code not in TRANSIENT_STATUSES:
            return False
        return method.upper() in RESENDABLE_METHODS

    def allows(
        self,
        method: str,
        attempt: int,
        *,
        status_code: int | None = None,
        error: Exception | None = None,
    ) -> bool:
        """Whether attempt number *attempt* (0-indexed) may be followed by another."""
        if attempt + 1 >= self.max_attempts:
            return False
        return self.resendable(method, status_code=status_code, error=error)

    def delay(self, attempt: int, retry_after: float | None = None) -> float:
        """Seconds to wait before the next attempt.

        A ``Retry-After`` value from the store wins over the computed
        backoff.
        """
        if retry_after is not None:
            delay = retry_after
        else:
            delay = min(self.base_delay * (2 ** attempt), self.max_delay)
        if self.jitter:
            delay *= random.uniform(0.5, 1.0)
        return delay
