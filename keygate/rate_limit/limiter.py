"""Sliding-window rate limiter with per-tier ceilings."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from keygate.clock import DEFAULT_CLOCK, Clock
from keygate.plans.config import UNLIMITED, PlanTier, get_tier_config
from keygate.rate_limit.config import DEFAULT_RATE_LIMIT_CONFIG, RateLimitConfig
from keygate.stores.base import StoreUnavailableError, WindowStore

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    """Outcome of a rate-limit check."""

    allowed: bool = True
    limit: int = 0
    remaining: int = 0
    reset_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    retry_after_seconds: Optional[int] = None

    @property
    def unlimited(self) -> bool:
        return self.limit == UNLIMITED


def rate_limit_key(credential_id: Optional[str] = None, address: Optional[str] = None) -> str:
    """Window key: the credential when known, else the caller's address."""
    if credential_id:
        return f"key:{credential_id}"
    if address:
        return f"ip:{address}"
    return "ip:unknown"


def rate_limit_headers(result: RateLimitResult) -> Dict[str, str]:
    """Build standard X-RateLimit-* response headers."""
    if result.unlimited:
        limit = remaining = "unlimited"
    else:
        limit, remaining = str(result.limit), str(result.remaining)
    headers = {
        "X-RateLimit-Limit": limit,
        "X-RateLimit-Remaining": remaining,
        "X-RateLimit-Reset": result.reset_at.isoformat(),
    }
    if not result.allowed and result.retry_after_seconds is not None:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return headers


class SlidingWindowRateLimiter:
    """Counts hits per key over a trailing window held in a ``WindowStore``.

    The check and the insert are separate store calls, so concurrent
    requests may overshoot the ceiling by a small margin.
    """

    def __init__(
        self,
        store: WindowStore,
        config: Optional[RateLimitConfig] = None,
        clock: Clock = DEFAULT_CLOCK,
    ) -> None:
        self.store = store
        self.config = config or DEFAULT_RATE_LIMIT_CONFIG
        self.clock = clock

    # ── public API ───────────────────────────────────────────────────

    def limit_for(self, tier: Optional[PlanTier]) -> int:
        if tier is None:
            return self.config.anonymous_limit
        return get_tier_config(tier).requests_per_window

    def check(self, key: str, tier: Optional[PlanTier] = None) -> RateLimitResult:
        """Count ``key`` against its ceiling and record the hit when allowed."""
        now = self.clock.now()
        window = timedelta(seconds=self.config.window_seconds)
        reset_at = now + window
        limit = self.limit_for(tier)

        if limit == UNLIMITED:
            return RateLimitResult(allowed=True, limit=UNLIMITED, remaining=UNLIMITED, reset_at=reset_at)

        try:
            count = self.store.count_hits(key, now - window)
            if count >= limit:
                logger.info(f"Rate limit exceeded for {key} ({count}/{limit})")
                return RateLimitResult(
                    allowed=False,
                    limit=limit,
                    remaining=0,
                    reset_at=reset_at,
                    retry_after_seconds=self.config.window_seconds,
                )
            self.store.add_hit(key, now)
            self.store.purge_hits(key, now - window)
        except StoreUnavailableError as exc:
            # Fail open on window store faults.
            logger.warning(f"Rate limit store unavailable, allowing {key}: {exc}")
            return RateLimitResult(allowed=True, limit=limit, remaining=limit, reset_at=reset_at)

        return RateLimitResult(
            allowed=True,
            limit=limit,
            remaining=max(0, limit - count),
            reset_at=reset_at,
        )

    def peek(self, key: str, tier: Optional[PlanTier] = None) -> RateLimitResult:
        """Report the window state for ``key`` without recording a hit."""
        now = self.clock.now()
        window = timedelta(seconds=self.config.window_seconds)
        limit = self.limit_for(tier)
        if limit == UNLIMITED:
            return RateLimitResult(allowed=True, limit=UNLIMITED, remaining=UNLIMITED, reset_at=now + window)
        try:
            count = self.store.count_hits(key, now - window)
        except StoreUnavailableError as exc:
            logger.warning(f"Rate limit store unavailable during peek for {key}: {exc}")
            count = 0
        return RateLimitResult(
            allowed=count < limit,
            limit=limit,
            remaining=max(0, limit - count),
            reset_at=now + window,
            retry_after_seconds=None if count < limit else self.config.window_seconds,
        )

    def sweep(self) -> int:
        """Purge expired hits for every key. Returns the number removed."""
        cutoff = self.clock.now() - timedelta(seconds=self.config.window_seconds)
        try:
            removed = self.store.purge_all_hits(cutoff)
        except StoreUnavailableError as exc:
            logger.warning(f"Rate window sweep failed: {exc}")
            return 0
        if removed:
            logger.debug(f"Swept {removed} expired rate window records")
        return removed
