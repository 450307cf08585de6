"""
Rate limit gate.

The gate asks a limiter collaborator whether a client key may proceed. A
missing limiter means rate limiting is off. When the limiter itself fails the
request is let through and the failure is logged.
"""
import asyncio
import logging
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Optional, Protocol

from app.core.errors import RateLimitError
from app.core.logging import get_logger, log_event

logger = get_logger("services.rate_limit")


@dataclass(frozen=True)
class LimitResult:
    success: bool


class RateLimiter(Protocol):
    async def limit(self, key: str) -> LimitResult: ...


class InMemoryRateLimiter:
    """Sliding-window limiter kept in process memory, one window per key."""

    def __init__(self, times: int, seconds: float, cleanup_interval: float = 60.0):
        self._times = times
        self._seconds = seconds
        self._hits: defaultdict[str, deque[float]] = defaultdict(deque)
        self._lock = asyncio.Lock()
        self._cleanup_interval = cleanup_interval
        self._last_cleanup = time.monotonic()

    def _cleanup_old_keys(self, now: float) -> None:
        """Drop keys whose window holds no hits. Caller holds the lock."""
        if now - self._last_cleanup < self._cleanup_interval:
            return

        self._last_cleanup = now
        window_start = now - self._seconds
        stale = []
        for key, hits in self._hits.items():
            while hits and hits[0] <= window_start:
                hits.popleft()
            if not hits:
                stale.append(key)

        for key in stale:
            del self._hits[key]

    async def limit(self, key: str) -> LimitResult:
        now = time.monotonic()
        window_start = now - self._seconds
        async with self._lock:
            self._cleanup_old_keys(now)
            hits = self._hits[key]
            while hits and hits[0] <= window_start:
                hits.popleft()
            if len(hits) >= self._times:
                return LimitResult(success=False)
            hits.append(now)
        return LimitResult(success=True)

    async def reset(self) -> None:
        async with self._lock:
            self._hits.clear()


class RateLimitGate:
    def __init__(self, limiter: Optional[RateLimiter] = None):
        self.limiter = limiter

    async def check(self, client_key: str) -> None:
        """Raise RateLimitError when the limiter denies ``client_key``."""
        if self.limiter is None:
            return

        try:
            result = await self.limiter.limit(client_key)
        except Exception as exc:
            log_event(logger, logging.ERROR, "Rate limiter error", error=str(exc))
            return

        if not result.success:
            logger.warning(f"Rate limit exceeded for key={client_key!r}")
            raise RateLimitError()
