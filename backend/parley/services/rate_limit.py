"""Fixed-window request counters keyed by client."""

from __future__ import annotations

import time

from parley.services.cache import get_cache
from parley.services.errors import RateLimitedError


def hit(bucket: str, limit: int, window_seconds: int) -> int:
    """Count one request against ``bucket`` and raise once ``limit`` is exceeded.

    Returns the number of requests still allowed in the current window.
    """

    window = int(time.time()) // max(window_seconds, 1)
    count = get_cache().incr(f"ratelimit:{bucket}:{window}", window_seconds)
    if count > limit:
        raise RateLimitedError()
    return limit - count
