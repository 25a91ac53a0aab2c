"""Sliding-window rate limiting."""

from keygate.rate_limit.config import DEFAULT_RATE_LIMIT_CONFIG, RateLimitConfig
from keygate.rate_limit.limiter import (
    RateLimitResult,
    SlidingWindowRateLimiter,
    rate_limit_headers,
    rate_limit_key,
)

__all__ = [
    "DEFAULT_RATE_LIMIT_CONFIG",
    "RateLimitConfig",
    "RateLimitResult",
    "SlidingWindowRateLimiter",
    "rate_limit_headers",
    "rate_limit_key",
]
