from __future__ import annotations

import time
from typing import Optional


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000


def resolve_now_ms(override: Optional[int] = None) -> int:
    """Return ``override`` when one was injected, otherwise read the wall clock."""
    if override is not None:
        return override
    return now_ms()
