"""HTTP adapter configuration."""

from dataclasses import dataclass, field


@dataclass
class APIConfig:
    """Core API settings."""

    title: str = "Keygate API"
    version: str = "1.0.0"
    description: str = "API access gateway: key auth, rate limits, metered usage"
    prefix: str = "/v1"
    docs_url: str = "/docs"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    cors_methods: list[str] = field(default_factory=lambda: ["GET", "POST", "DELETE", "OPTIONS"])
    cors_headers: list[str] = field(default_factory=lambda: ["*"])
    expose_headers: list[str] = field(default_factory=lambda: [
        "X-RateLimit-Limit",
        "X-RateLimit-Remaining",
        "X-RateLimit-Reset",
        "Retry-After",
        "X-Request-ID",
    ])


DEFAULT_API_CONFIG = APIConfig()
