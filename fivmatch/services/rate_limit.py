"""
Rate limiters — fixed-window submission counters keyed by IP hash.

Two backends behind one interface:
  - InMemoryRateLimiter: process-local dict guarded by a lock. Best effort,
    resets on restart. Right for a single process.
  - RedisRateLimiter: shared counter in Redis for horizontally scaled deploys.

Window semantics are the same for both: the first hit opens a window of
`window_seconds` with count=1; every further hit increments; a hit is refused
once the count exceeds `max_requests`. After the window expires the next hit
starts a fresh window.
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger('services.rate_limit')


class RateLimiter(ABC):
    window_seconds: int
    max_requests: int

    @abstractmethod
    def check_and_increment(self, key: str, now: Optional[float] = None) -> bool:
        """Count one hit for `key`. Returns True if the hit is allowed."""
        ...


@dataclass
class RateBucket:
    count: int
    reset_at: float


class InMemoryRateLimiter(RateLimiter):
    """
    Thread-safe in-process limiter.

    Increment-and-compare happens under a single lock, so two concurrent hits
    can never both slip under the cap. Expired buckets are pruned
    opportunistically, at most once per `prune_seconds`.
    """

    def __init__(self, window_seconds: int = 15 * 60, max_requests: int = 5,
                 prune_seconds: int = 5 * 60):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.prune_seconds = prune_seconds
        self._buckets: Dict[str, RateBucket] = {}
        self._lock = threading.Lock()
        self._last_prune = time.time()

    def check_and_increment(self, key: str, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        with self._lock:
            if now - self._last_prune >= self.prune_seconds:
                self._prune_locked(now)

            bucket = self._buckets.get(key)
            if bucket is None or now > bucket.reset_at:
                self._buckets[key] = RateBucket(count=1, reset_at=now + self.window_seconds)
                return True

            bucket.count += 1
            return bucket.count <= self.max_requests

    def prune(self, now: Optional[float] = None) -> int:
        """Drop expired buckets. Returns how many were removed."""
        now = time.time() if now is None else now
        with self._lock:
            return self._prune_locked(now)

    def _prune_locked(self, now: float) -> int:
        expired = [k for k, b in self._buckets.items() if now > b.reset_at]
        for k in expired:
            del self._buckets[k]
        self._last_prune = now
        if expired:
            logger.debug("Pruned %d expired rate-limit buckets", len(expired))
        return len(expired)

    def __len__(self):
        return len(self._buckets)


class RedisRateLimiter(RateLimiter):
    """
    Shared limiter backed by Redis.

    `SET key 0 EX window NX` opens the window only if none is open, then INCR
    counts the hit; both run in one MULTI/EXEC so the pair is atomic. Redis
    expires the key at the end of the window, so no pruning is needed.
    """

    def __init__(self, client, window_seconds: int = 15 * 60, max_requests: int = 5,
                 prefix: str = 'ratelimit:intake:'):
        self.client = client
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.prefix = prefix

    def check_and_increment(self, key: str, now: Optional[float] = None) -> bool:
        redis_key = f"{self.prefix}{key}"
        pipe = self.client.pipeline(transaction=True)
        pipe.set(redis_key, 0, ex=self.window_seconds, nx=True)
        pipe.incr(redis_key)
        _, count = pipe.execute()
        return int(count) <= self.max_requests


def build_rate_limiter(settings, redis_client=None) -> RateLimiter:
    """Construct the limiter the settings ask for."""
    if settings.rate_limit_backend == 'redis':
        if redis_client is None:
            from fivmatch.extensions import redis_client
        logger.info("Using Redis rate limiter (window=%ds, cap=%d)",
                    settings.rate_limit_window_seconds, settings.rate_limit_max_requests)
        return RedisRateLimiter(
            redis_client,
            window_seconds=settings.rate_limit_window_seconds,
            max_requests=settings.rate_limit_max_requests,
        )
    return InMemoryRateLimiter(
        window_seconds=settings.rate_limit_window_seconds,
        max_requests=settings.rate_limit_max_requests,
        prune_seconds=settings.rate_limit_prune_seconds,
    )
