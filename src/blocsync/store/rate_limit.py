"""Client-side pacing of store requests.

:class:`RequestPacer` keeps requests at or under a sustained rate while
allowing short bursts.  It tracks the theoretical arrival time of the next
request: each caller reserves the next slot before it sleeps, so concurrent
callers on one event loop are served in call order without a lock.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable


class RequestPacer:
    """Reservation-based request pacer.

    Parameters
    ----------
    rate_rps:
        Sustained requests per second.
    burst:
        Requests that may be sent back to back before pacing starts.
    clock:
        Monotonic clock in seconds.
    """

    def __init__(
        self,
        rate_rps: float,
        burst: int = 10,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate_rps <= 0:
            raise ValueError(f"rate_rps must be > 0, got {rate_rps}")
        if burst < 1:
            raise ValueError(f"burst must be >= 1, got {burst}")
        self.interval = 1.0 / rate_rps
        self.burst = burst
        self._clock = clock
        self._next_slot = clock()

    def reserve(self) -> float:
        """Claim the next slot and return how long to wait for it."""
        now = self._clock()
        slot = max(self._next_slot, now)
        self._next_slot = slot + self.interval
        return max(0.0, slot - now - (self.burst - 1) * self.interval)

    async def wait(self) -> float:
        """Wait for a slot; returns the seconds waited."""
        delay = self.reserve()
        if delay > 0:
            await asyncio.sleep(delay)
        return delay
