"""Rate limiting for token validation and telemetry ingestion."""

import asyncio
import logging
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class RateLimitBucket:
    """Request timestamps recorded for a single key."""

    requests: list[float] = field(default_factory=list)
    last_update: float = field(default_factory=time.monotonic)


class RateLimiter:
    """In-memory sliding-window rate limiter keyed by arbitrary strings.

    Keys are namespaced by the caller (``token_validation:<ip>``,
    ``telemetry:<site>``). Counts are approximate and per process,
    which is enough for a single-node deployment.
    """

    _instance: Optional["RateLimiter"] = None
    _instance_lock: threading.Lock = threading.Lock()

    def __init__(self) -> None:
        self._buckets: dict[str, RateLimitBucket] = defaultdict(RateLimitBucket)
        self._lock = asyncio.Lock()

    @classmethod
    def get_instance(cls) -> "RateLimiter":
        """Get the singleton instance (thread-safe)."""
        if cls._instance is None:
            with cls._instance_lock:
                # Double-check locking pattern
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @staticmethod
    def _prune(bucket: RateLimitBucket, now: float, window_seconds: int) -> None:
        cutoff = now - window_seconds
        bucket.requests = [ts for ts in bucket.requests if ts > cutoff]

    @staticmethod
    def _retry_after(bucket: RateLimitBucket, now: float, window_seconds: int) -> int:
        oldest = min(bucket.requests) if bucket.requests else now
        return max(1, int(window_seconds - (now - oldest)))

    async def check(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        """Count an attempt against ``key`` if it is still within the limit.

        Returns:
            Tuple of (is_allowed, retry_after_seconds)
        """
        async with self._lock:
            bucket = self._buckets[key]
            now = time.monotonic()
            self._prune(bucket, now, window_seconds)

            if len(bucket.requests) >= limit:
                return False, self._retry_after(bucket, now, window_seconds)

            bucket.requests.append(now)
            bucket.last_update = now
            return True, 0

    async def is_limited(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        """Check ``key`` without counting an attempt."""
        async with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                return False, 0
            now = time.monotonic()
            self._prune(bucket, now, window_seconds)
            if len(bucket.requests) >= limit:
                return True, self._retry_after(bucket, now, window_seconds)
            return False, 0

    async def record(self, key: str) -> None:
        """Count an attempt against ``key`` unconditionally."""
        async with self._lock:
            bucket = self._buckets[key]
            now = time.monotonic()
            bucket.requests.append(now)
            bucket.last_update = now

    async def cleanup_inactive_buckets(self, inactive_seconds: int = 86400) -> int:
        """Remove buckets that have not been touched for ``inactive_seconds``.

        This prevents unbounded memory growth from abandoned keys.

        Returns:
            Number of buckets removed
        """
        async with self._lock:
            cutoff = time.monotonic() - inactive_seconds
            keys_to_remove = [
                key for key, bucket in self._buckets.items() if bucket.last_update < cutoff
            ]
            for key in keys_to_remove:
                del self._buckets[key]

            if keys_to_remove:
                logger.info(f"Cleaned up {len(keys_to_remove)} inactive rate limit buckets")

            return len(keys_to_remove)


def get_rate_limiter() -> RateLimiter:
    """Get the rate limiter singleton (FastAPI dependency)."""
    return RateLimiter.get_instance()
