"""FastAPI adapter for the gateway pipeline."""

from keygate.api.app import create_app
from keygate.api.guard import run_through_gateway, to_http_response

__all__ = ["create_app", "run_through_gateway", "to_http_response"]
