# ibja_rates/services/rate_limiter.py

"""In-memory per-client request limiter with fixed windows and blocking."""

import logging
import math
import time
from dataclasses import dataclass

from ibja_rates.config.settings import Settings

logger = logging.getLogger("ibja_rates.rate_limiter")


@dataclass
class RateLimitResult:
    """Outcome of consuming one point for a client."""

    allowed: bool
    limit: int
    remaining: int
    ms_before_next: int

    @property
    def retry_after(self) -> int:
        """Seconds the client should wait before retrying."""
        return math.ceil(self.ms_before_next / 1000)


@dataclass
class _Bucket:
    consumed: int
    window_ends_at: float
    blocked_until: float = 0.0


class RateLimiter:
    """Allow *points* requests per *duration* seconds for each key.

    Exceeding the budget blocks the key for *block_duration* seconds,
    counted from the rejected request.
    """

    def __init__(
        self,
        name: str,
        points: int,
        duration: int,
        block_duration: int | None = None,
    ) -> None:
        self.name = name
        self.points = points
        self.duration = duration
        self.block_duration = (
            duration if block_duration is None else block_duration
        )
        self._buckets: dict[str, _Bucket] = {}

    def consume(self, key: str) -> RateLimitResult:
        """Spend one point for *key* and report the remaining budget."""
        now = time.time()
        self._evict_expired(now)

        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = _Bucket(consumed=0, window_ends_at=now + self.duration)
            self._buckets[key] = bucket

        if bucket.blocked_until > now:
            return RateLimitResult(
                allowed=False,
                limit=self.points,
                remaining=0,
                ms_before_next=int((bucket.blocked_until - now) * 1000),
            )

        bucket.consumed += 1
        if bucket.consumed > self.points:
            if self.block_duration > 0:
                bucket.blocked_until = now + self.block_duration
                bucket.window_ends_at = max(
                    bucket.window_ends_at, bucket.blocked_until,
                )
                wait = bucket.blocked_until - now
            else:
                wait = bucket.window_ends_at - now
            logger.warning(
                "[%s] Rate limit exceeded for %s", self.name, key,
            )
            return RateLimitResult(
                allowed=False,
                limit=self.points,
                remaining=0,
                ms_before_next=int(wait * 1000),
            )

        return RateLimitResult(
            allowed=True,
            limit=self.points,
            remaining=self.points - bucket.consumed,
            ms_before_next=int((bucket.window_ends_at - now) * 1000),
        )

    def reset(self) -> None:
        """Forget every client's usage."""
        self._buckets.clear()

    def _evict_expired(self, now: float) -> None:
        """Drop buckets whose window and block have both elapsed."""
        self._buckets = {
            k: b for k, b in self._buckets.items()
            if b.window_ends_at > now or b.blocked_until > now
        }


def build_limiters() -> dict[str, RateLimiter]:
    """Create the general, data-heavy and utility limiters."""
    return {
        name: RateLimiter(
            name=name,
            points=points,
            duration=Settings.RATE_LIMIT_WINDOW,
        )
        for name, points in Settings.RATE_LIMIT_TIERS.items()
    }
