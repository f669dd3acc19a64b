"""Per-shop request pacing."""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict


class RateLimiter:
    """Minimum interval between requests to the same shop."""

    def __init__(self, *, rate: float = 2.0) -> None:
        self.rate = rate
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._last_request: dict[str, float] = defaultdict(lambda: 0.0)

    async def wait_for_shop(self, shop: str) -> None:
        if self.rate <= 0:
            return
        lock = self._locks[shop]
        async with lock:
            now = time.monotonic()
            elapsed = now - self._last_request[shop]
            min_interval = 1.0 / self.rate
            if elapsed < min_interval:
                await asyncio.sleep(min_interval - elapsed)
            self._last_request[shop] = time.monotonic()
