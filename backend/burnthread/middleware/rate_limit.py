"""
Per-client-IP token buckets for the HTTP control plane
"""

import time
from threading import Lock
from typing import Callable, Dict, Tuple

from burnthread.config import settings


class RateLimiter:
    """
    Token bucket keyed by client IP

    A bucket left idle for a full refill period is back at burst capacity,
    the same state as a fresh one. Such buckets are dropped by a sweep that
    runs at most once per refill period, so the map only holds recently
    active clients.
    """

    def __init__(
        self,
        requests_per_minute: int,
        burst_size: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.tokens_per_second = requests_per_minute / 60.0
        self.burst_size = float(burst_size)
        self.refill_seconds = self.burst_size / self.tokens_per_second
        self._clock = clock
        self._buckets: Dict[str, Tuple[float, float]] = {}
        self._lock = Lock()
        self._next_sweep = clock() + self.refill_seconds

    def is_allowed(self, ip: str) -> bool:
        """Take one token for ip; False when its bucket is empty"""
        with self._lock:
            now = self._clock()
            if now >= self._next_sweep:
                self._sweep(now)

            last_seen, tokens = self._buckets.get(ip, (now, self.burst_size))
            tokens = min(self.burst_size, tokens + (now - last_seen) * self.tokens_per_second)

            if tokens >= 1:
                self._buckets[ip] = (now, tokens - 1)
                return True

            self._buckets[ip] = (now, tokens)
            return False

    def _sweep(self, now: float) -> None:
        idle = [
            ip for ip, (last_seen, _) in self._buckets.items()
            if now - last_seen >= self.refill_seconds
        ]
        for ip in idle:
            del self._buckets[ip]
        self._next_sweep = now + self.refill_seconds

    def __len__(self) -> int:
        return len(self._buckets)


rate_limiter = RateLimiter(
    requests_per_minute=settings.RATE_LIMIT_PER_MINUTE,
    burst_size=settings.RATE_LIMIT_BURST,
)
