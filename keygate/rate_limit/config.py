"""Rate limiter configuration."""

from dataclasses import dataclass


@dataclass
class RateLimitConfig:
    """Sliding window settings.

    Per-tier ceilings come from ``keygate.plans.DEFAULT_TIERS``;
    ``anonymous_limit`` applies to keys checked without a tier.
    """

    window_seconds: int = 60
    anonymous_limit: int = 60


DEFAULT_RATE_LIMIT_CONFIG = RateLimitConfig()
