"""API Key Management: issue, list, deactivate and delete keys.

Every endpoint authenticates through the gateway with an existing key and
acts on that key's account. These calls are not metered.
"""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from keygate.api.dependencies import get_services
from keygate.api.guard import run_through_gateway
from keygate.api.models import APIKeyCreateRequest, APIKeyResponse
from keygate.auth.models import APIKey
from keygate.gateway.models import AuthorizedRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/keys", tags=["API Keys"])


def _to_response(key: APIKey, plaintext: Optional[str] = None) -> APIKeyResponse:
    return APIKeyResponse(
        key_id=key.key_id,
        name=key.name,
        key=plaintext,
        key_prefix=key.key_prefix,
        is_active=key.is_active,
        created_at=key.created_at,
        expires_at=key.expires_at,
        last_used_at=key.last_used_at,
        usage_count=key.usage_count,
    )


@router.post("", response_model=APIKeyResponse, status_code=201)
async def create_key(body: APIKeyCreateRequest, request: Request):
    """Issue a new key. The secret is returned only in this response."""
    services = get_services(request)

    def handler(authorized: AuthorizedRequest):
        expires_at = None
        if body.expires_in_days:
            expires_at = services.clock.now() + timedelta(days=body.expires_in_days)
        issued = services.keys.issue_key(authorized.account_id, body.name, expires_at)
        return JSONResponse(
            status_code=201,
            content=jsonable_encoder(_to_response(issued.record, issued.key)),
        )

    return await run_through_gateway(request, handler)


@router.get("", response_model=list[APIKeyResponse])
async def list_keys(request: Request):
    """List the caller's keys. Secrets are never re-exposed."""
    services = get_services(request)

    def handler(authorized: AuthorizedRequest):
        return [_to_response(k) for k in services.keys.list_keys(authorized.account_id)]

    return await run_through_gateway(request, handler)


@router.post("/{key_id}/deactivate", response_model=APIKeyResponse)
async def deactivate_key(key_id: str, request: Request):
    services = get_services(request)

    def handler(authorized: AuthorizedRequest):
        return _to_response(services.keys.deactivate_key(authorized.account_id, key_id))

    return await run_through_gateway(request, handler)


@router.delete("/{key_id}", status_code=200)
async def delete_key(key_id: str, request: Request):
    services = get_services(request)

    def handler(authorized: AuthorizedRequest):
        services.keys.delete_key(authorized.account_id, key_id)
        return {"key_id": key_id, "deleted": True}

    return await run_through_gateway(request, handler)
