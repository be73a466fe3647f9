"""Rate Limiter — per user/org transcription quotas.

Fixed-window token buckets held in process memory, one limiter per
subscription tier. Keys are "org:<org_id>" when present, else
"user:<user_id>", so every member of an organization draws from the same
bucket and a user id can never collide with an org id.

Limits:
  - free: 10 transcriptions/min
  - pro: 100 transcriptions/min
  - enterprise: 1000 transcriptions/min
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from core.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


# Rate limit configurations
TIER_LIMITS = {
    "free": {"max": 10, "window_ms": 60_000},
    "pro": {"max": 100, "window_ms": 60_000},
    "enterprise": {"max": 1000, "window_ms": 60_000},
}

DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_MS = 60_000


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at_ms: int
    retry_after_ms: Optional[int] = None


class _Bucket:
    __slots__ = ("tokens", "reset_at_ms")

    def __init__(self, tokens: int, reset_at_ms: int):
        self.tokens = tokens
        self.reset_at_ms = reset_at_ms


class STTRateLimiter:
    """Token bucket limiter that refills in full when its window expires."""

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_ms: int = DEFAULT_WINDOW_MS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._clock = clock
        self._buckets: Dict[str, _Bucket] = {}
        self._last_sweep_ms = self._now_ms()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def check(self, key: str) -> RateLimitResult:
        """Check and consume a slot for the given key."""
        now = self._now_ms()
        if now - self._last_sweep_ms >= self.window_ms:
            self._last_sweep_ms = now
            self.cleanup()

        bucket = self._buckets.get(key)

        if bucket is None or now >= bucket.reset_at_ms:
            # First token of the fresh window goes to this request
            bucket = _Bucket(self.max_requests - 1, now + self.window_ms)
            self._buckets[key] = bucket
            return RateLimitResult(True, bucket.tokens, bucket.reset_at_ms)

        if bucket.tokens <= 0:
            return RateLimitResult(
                False, 0, bucket.reset_at_ms, retry_after_ms=bucket.reset_at_ms - now,
            )

        bucket.tokens -= 1
        return RateLimitResult(True, bucket.tokens, bucket.reset_at_ms)

    def peek(self, key: str) -> RateLimitResult:
        """Current status without consuming."""
        now = self._now_ms()
        bucket = self._buckets.get(key)
        if bucket is None or now >= bucket.reset_at_ms:
            return RateLimitResult(True, self.max_requests, now + self.window_ms)
        return RateLimitResult(bucket.tokens > 0, bucket.tokens, bucket.reset_at_ms)

    def reset(self, key: str) -> None:
        """Drop a key's bucket (e.g. on subscription upgrade)."""
        self._buckets.pop(key, None)

    def cleanup(self) -> int:
        """Remove expired buckets. Returns how many were dropped."""
        now = self._now_ms()
        expired = [k for k, b in self._buckets.items() if now >= b.reset_at_ms]
        for k in expired:
            del self._buckets[k]
        return len(expired)


# ---- Per-tier limiters ----

_limiters: Dict[str, STTRateLimiter] = {}


def get_tier_limiter(tier: str) -> STTRateLimiter:
    """Process-wide limiter for a tier. Unknown tiers share the free limits."""
    tier = tier if tier in TIER_LIMITS else "free"
    if tier not in _limiters:
        config = TIER_LIMITS[tier]
        _limiters[tier] = STTRateLimiter(config["max"], config["window_ms"])
    return _limiters[tier]


def reset_rate_limiters() -> None:
    _limiters.clear()


def _limit_key(auth) -> str:
    if auth.org_id:
        return f"org:{auth.org_id}"
    return f"user:{auth.user_id}"


def check_rate_limit(auth) -> RateLimitResult:
    """Consume one slot for the caller. Raises RateLimitExceededError when exhausted."""
    key = _limit_key(auth)
    result = get_tier_limiter(auth.tier).check(key)
    if not result.allowed:
        logger.warning(
            "RATE_LIMITED: tier=%s key=%s retry_after=%dms",
            auth.tier, key[:20], result.retry_after_ms,
        )
        raise RateLimitExceededError(result.retry_after_ms)
    return result


def get_rate_limit_status(auth) -> dict:
    """Get current rate limit status without consuming a slot."""
    limiter = get_tier_limiter(auth.tier)
    result = limiter.peek(_limit_key(auth))
    return {
        "allowed": result.allowed,
        "remaining": result.remaining,
        "reset_at_ms": result.reset_at_ms,
        "max": limiter.max_requests,
        "window_ms": limiter.window_ms,
        "tier": auth.tier,
    }
