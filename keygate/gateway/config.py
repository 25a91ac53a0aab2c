"""Gateway pipeline configuration."""

from dataclasses import dataclass


@dataclass
class GatewayConfig:
    """Top-level pipeline settings."""

    peek_on_auth_failure: bool = True  # attach address-keyed rate headers to auth rejections
    slow_request_ms: float = 1000.0


DEFAULT_GATEWAY_CONFIG = GatewayConfig()
