"""Wall-clock helpers."""

from __future__ import annotations

import time


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)
