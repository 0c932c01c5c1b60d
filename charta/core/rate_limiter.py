"""CHARTA — Token-Bucket Rate Limiter.

Independent bucket per key. ``allow`` never waits: with fewer than one token
in the bucket it answers False immediately.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, List

from charta.config import settings


@dataclass
class _Bucket:
    tokens: float
    last: float


class TokenBucketLimiter:
    """Per-key token buckets refilled at ``rate_per_sec`` up to ``burst``."""

    def __init__(
        self,
        rate_per_sec: float = 1.0,
        burst: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.rate_per_sec = rate_per_sec
        self.burst = burst
        self._clock = clock
        self._buckets: Dict[str, _Bucket] = {}

    def allow(self, key: str) -> bool:
        now = self._clock()
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = _Bucket(tokens=float(self.burst), last=now)
            self._buckets[key] = bucket
        elapsed = max(now - bucket.last, 0.0)
        bucket.tokens = min(float(self.burst), bucket.tokens + elapsed * self.rate_per_sec)
        bucket.last = now
        if bucket.tokens >= 1:
            bucket.tokens -= 1
            return True
        return False

    def snapshot(self) -> List[dict]:
        return [
            {"key": key, "tokens": round(b.tokens, 3)}
            for key, b in sorted(self._buckets.items())
        ]


# Shared by the manual sync / propose routes
trigger_limiter = TokenBucketLimiter(settings.trigger_rate_per_sec, settings.trigger_burst)
