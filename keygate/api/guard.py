"""Runs route handlers through the gateway pipeline.

Metered and unmetered routes call ``run_through_gateway`` with a sync
handler taking an ``AuthorizedRequest``. The pipeline runs in the thread
pool and completes, including the usage commit, even if the client has
disconnected.
"""

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.responses import Response

from keygate.api.dependencies import get_services
from keygate.api_errors.exceptions import KeygateAPIError, ServiceUnavailableError
from keygate.api_errors.handlers import handle_keygate_error, handle_unhandled_error
from keygate.gateway.models import (
    AuthorizedRequest,
    GatewayResponse,
    MeteredOperation,
    RequestContext,
    RequestState,
)
from keygate.logging_config.context import get_request_id
from keygate.stores.base import StoreUnavailableError

logger = logging.getLogger(__name__)


def client_address(request: Request) -> Optional[str]:
    """First hop of X-Forwarded-For, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def build_context(request: Request, operation: Optional[MeteredOperation] = None) -> RequestContext:
    return RequestContext(
        request_id=get_request_id() or RequestContext().request_id,
        path=request.url.path,
        method=request.method,
        headers=dict(request.headers),
        client_address=client_address(request),
        operation=operation,
    )


def to_http_response(result: GatewayResponse) -> Response:
    """Render a pipeline result, carrying the rate-limit headers on every outcome."""
    headers: Dict[str, str] = dict(result.headers)

    if result.state == RequestState.REJECTED:
        return JSONResponse(
            status_code=result.status_code,
            content=result.rejection_payload(),
            headers=headers,
        )

    exc = result.error
    if isinstance(exc, StoreUnavailableError):
        exc = ServiceUnavailableError()
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers={**headers, **(exc.headers or {})},
        )
    if isinstance(exc, KeygateAPIError):
        error_response = handle_keygate_error(exc)
        return JSONResponse(
            status_code=error_response.status_code,
            content=error_response.to_dict(),
            headers={**headers, **exc.headers},
        )
    if exc is not None:
        error_response = handle_unhandled_error(exc)
        return JSONResponse(
            status_code=error_response.status_code,
            content=error_response.to_dict(),
            headers=headers,
        )

    body = result.body
    if isinstance(body, Response):
        for name, value in headers.items():
            body.headers[name] = value
        return body
    return JSONResponse(
        status_code=result.status_code,
        content=jsonable_encoder(body),
        headers=headers,
    )


async def run_through_gateway(
    request: Request,
    handler: Callable[[AuthorizedRequest], Any],
    operation: Optional[MeteredOperation] = None,
) -> Response:
    """Authenticate, rate limit, check balance, call ``handler`` and meter it."""
    services = get_services(request)
    ctx = build_context(request, operation)
    result = await run_in_threadpool(services.gateway.process_request, ctx, handler)
    return to_http_response(result)
