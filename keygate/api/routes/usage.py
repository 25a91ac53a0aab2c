"""Usage summary for the calling account."""

import logging

from fastapi import APIRouter, Request

from keygate.api.dependencies import get_services
from keygate.api.guard import run_through_gateway
from keygate.api.models import UsageResponse
from keygate.billing.analytics import usage_warnings
from keygate.gateway.models import AuthorizedRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/usage", tags=["Usage"])


@router.get("", response_model=UsageResponse)
async def get_usage(request: Request):
    """Cycle-to-date usage, cost, warnings and billing alerts. Not metered."""
    services = get_services(request)

    def handler(authorized: AuthorizedRequest) -> UsageResponse:
        plan = authorized.plan
        summary = services.ledger.summarize(plan)
        warnings = usage_warnings(plan, services.ledger, services.clock, services.monitor.config)
        alerts = services.store.list_alerts(plan.account_id)
        return UsageResponse(
            **summary,
            warnings=[w.to_dict() for w in warnings],
            alerts=[a.to_dict() for a in alerts],
        )

    return await run_through_gateway(request, handler)
