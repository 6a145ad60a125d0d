"""In-memory sliding-window limits for answer submissions.

Counts are per process. Behind several workers each one enforces its own
window, which is acceptable for slowing down brute-force guessing.
"""

from __future__ import annotations

import asyncio
import os
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional


class RateLimitExceeded(Exception):
    def __init__(self, key: str, retry_after: float) -> None:
        super().__init__(f"rate limit exceeded for {key}")
        self.key = key
        self.retry_after = retry_after


class RateLimiter:
    """Allow at most ``limit`` hits per key in any ``window_seconds`` span."""

    def __init__(self, *, limit: int, window_seconds: float) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window = window_seconds
        self._lock = asyncio.Lock()
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)

    def _prune(self, hits: Deque[float], now: float) -> None:
        while hits and now - hits[0] >= self.window:
            hits.popleft()

    async def try_acquire(self, key: str) -> bool:
        """Record a hit for ``key``; False (nothing recorded) when over the limit."""
        now = time.monotonic()
        async with self._lock:
            hits = self._hits[key]
            self._prune(hits, now)
            if len(hits) >= self.limit:
                return False
            hits.append(now)
            return True

    async def retry_after(self, key: str) -> float:
        """Seconds until ``key`` may hit again (0 when it already may)."""
        now = time.monotonic()
        async with self._lock:
            hits = self._hits.get(key)
            if not hits:
                return 0.0
            self._prune(hits, now)
            if len(hits) < self.limit:
                return 0.0
            return max(0.0, self.window - (now - hits[0]))

    async def check(self, key: str) -> None:
        if not await self.try_acquire(key):
            raise RateLimitExceeded(key, await self.retry_after(key))


_UNSET = object()
_answer_limiter = _UNSET


def _limiter_from_env() -> Optional[RateLimiter]:
    try:
        limit = int(os.getenv("ANSWER_RATE_LIMIT", "0"))
        window = float(os.getenv("ANSWER_RATE_WINDOW", "60"))
    except ValueError:
        return None
    if limit <= 0 or window <= 0:
        return None
    return RateLimiter(limit=limit, window_seconds=window)


def get_answer_rate_limiter() -> Optional[RateLimiter]:
    """Shared limiter for answer submissions; None when ANSWER_RATE_LIMIT is unset or 0."""

    global _answer_limiter
    if _answer_limiter is _UNSET:
        _answer_limiter = _limiter_from_env()
    return _answer_limiter


def reset_answer_rate_limiter() -> None:
    """Forget the cached limiter so the next call re-reads the environment."""

    global _answer_limiter
    _answer_limiter = _UNSET


__all__ = [
    "RateLimiter",
    "RateLimitExceeded",
    "get_answer_rate_limiter",
    "reset_answer_rate_limiter",
]
