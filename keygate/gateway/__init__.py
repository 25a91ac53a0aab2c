"""Gateway orchestrator and request pipeline types."""

from keygate.gateway.config import DEFAULT_GATEWAY_CONFIG, GatewayConfig
from keygate.gateway.gateway import APIGateway
from keygate.gateway.models import (
    AuthorizedRequest,
    GatewayResponse,
    MeteredOperation,
    RequestContext,
    RequestState,
)

__all__ = [
    "DEFAULT_GATEWAY_CONFIG",
    "APIGateway",
    "AuthorizedRequest",
    "GatewayConfig",
    "GatewayResponse",
    "MeteredOperation",
    "RequestContext",
    "RequestState",
]
