from __future__ import annotations

import math
import time
from typing import Callable, NamedTuple

from .store import KVStore


class RateLimitResult(NamedTuple):
    allowed: bool
    reset_in: int  # seconds until the window resets; 0 when allowed


def _rate_key(guest_id: str) -> str:
    return f"guest:{guest_id}:rate"


class RateLimiter:
    """Fixed-window request counter per guest (persisted).

    A burst straddling a window edge can reach twice ``max_requests``.
    """

    def __init__(
        self,
        store: KVStore,
        max_requests: int = 10,
        window_ms: int = 60_000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self.max_requests = max(1, int(max_requests))
        self.window_ms = max(1, int(window_ms))
        self._clock = clock

    async def check_rate_limit(self, guest_id: str) -> RateLimitResult:
        key = _rate_key(str(guest_id))
        now = int(self._clock() * 1000)
        doc = await self._store.get(key) or {}
        count = int(doc.get("count", 0))
        window_start = int(doc.get("window_start", now))

        if now - window_start >= self.window_ms:
            count, window_start = 0, now

        if count >= self.max_requests:
            reset_in = math.ceil((window_start + self.window_ms - now) / 1000)
            return RateLimitResult(False, max(1, reset_in))

        # expire with the window so idle guests leave nothing behind
        remaining_s = math.ceil((window_start + self.window_ms - now) / 1000)
        await self._store.put(
            key, {"count": count + 1, "window_start": window_start}, expire_in=max(1, remaining_s)
        )
        return RateLimitResult(True, 0)
