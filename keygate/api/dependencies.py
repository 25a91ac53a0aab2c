"""FastAPI dependencies."""

from fastapi import Request

from keygate.services import GatewayServices


def get_services(request: Request) -> GatewayServices:
    """The services container attached to the app by ``create_app``."""
    return request.app.state.services
