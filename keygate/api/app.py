"""FastAPI Application Factory.

Creates the gateway's HTTP app with the middleware stack: security
headers, request tracing, error handling and CORS.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from keygate.api.config import DEFAULT_API_CONFIG, APIConfig
from keygate.api.routes import keys as keys_routes
from keygate.api.routes import usage as usage_routes
from keygate.api_errors.handlers import register_exception_handlers
from keygate.api_errors.middleware import ErrorHandlingMiddleware
from keygate.logging_config.config import LoggingConfig
from keygate.logging_config.middleware import RequestTracingMiddleware
from keygate.logging_config.setup import configure_logging
from keygate.services import GatewayServices, build_services

logger = logging.getLogger(__name__)


# ── Security Headers Middleware ───────────────────────────────────────


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds standard security headers to all HTTP responses."""

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if os.environ.get("KEYGATE_ENABLE_HSTS", "").lower() == "true":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response


# ── App Factory ──────────────────────────────────────────────────────


def create_app(
    services: Optional[GatewayServices] = None,
    config: Optional[APIConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Middleware stack (outermost → innermost):
        SecurityHeaders → RequestTracing → ErrorHandling → CORS → App

    Args:
        services: Pre-built gateway services. Built from settings when omitted,
            in which case the app also shuts them down.
        config: API configuration. Uses defaults if not provided.
    """
    config = config or DEFAULT_API_CONFIG
    owns_services = services is None
    services = services or build_services()
    logging_config = LoggingConfig.from_settings(services.settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(logging_config)
        logger.info("Keygate API starting up")
        yield
        logger.info("Keygate API shutting down")
        if owns_services:
            services.shutdown()

    app = FastAPI(
        title=config.title,
        version=config.version,
        description=config.description,
        docs_url=config.docs_url,
        lifespan=lifespan,
    )
    app.state.services = services

    # ── Middleware stack ──────────────────────────────────────────
    # add_middleware prepends, so order here is innermost-first.

    cors_origins = os.environ.get("KEYGATE_CORS_ORIGINS", "").split(",")
    cors_origins = [o.strip() for o in cors_origins if o.strip()] or config.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=config.cors_methods,
        allow_headers=config.cors_headers,
        expose_headers=config.expose_headers,
    )
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestTracingMiddleware, config=logging_config)
    app.add_middleware(SecurityHeadersMiddleware)

    register_exception_handlers(app)

    # ── Health check ─────────────────────────────────────────────

    @app.get("/health")
    async def health():
        components = dict(services.gateway.get_health())
        store = type(services.store).__name__
        try:
            services.store.get_plan("__health__")
            components["store"] = f"ok ({store})"
        except Exception as e:
            components["store"] = f"error: {e}"

        overall = "ok" if components["store"].startswith("ok") else "degraded"
        return {
            "status": overall,
            "version": config.version,
            "components": components,
        }

    # ── Route modules ────────────────────────────────────────────

    app.include_router(usage_routes.router, prefix=config.prefix)
    app.include_router(keys_routes.router, prefix=config.prefix)

    return app
