"""Usage warnings for an account's current billing cycle."""

from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

from keygate.billing.config import DEFAULT_BILLING_CONFIG, BillingConfig
from keygate.clock import DEFAULT_CLOCK, Clock
from keygate.ledger.ledger import UsageLedger
from keygate.plans.config import OperationKind
from keygate.plans.models import PlanState

WARNING_TYPES = {
    OperationKind.API_CALL: "API_LIMIT_WARNING",
    OperationKind.PREDICTION: "PREDICTION_LIMIT_WARNING",
    OperationKind.EXPORT: "EXPORT_LIMIT_WARNING",
}
HIGH_ACTIVITY = "HIGH_ACTIVITY"


@dataclass
class UsageWarning:
    type: str
    message: str
    severity: str = "warning"

    def to_dict(self) -> dict:
        return {"type": self.type, "message": self.message, "severity": self.severity}


def usage_warnings(
    plan: PlanState,
    ledger: UsageLedger,
    clock: Clock = DEFAULT_CLOCK,
    config: Optional[BillingConfig] = None,
) -> List[UsageWarning]:
    """Warnings for allowances at or past the warning percentage, and for bursts of activity."""
    config = config or DEFAULT_BILLING_CONFIG
    warnings: List[UsageWarning] = []
    agg = ledger.aggregate(plan.account_id, plan.cycle)

    for kind in OperationKind:
        if plan.has_unlimited(kind):
            continue
        limit = plan.allowance(kind)
        if limit <= 0:
            continue
        used = max(plan.consumed(kind), agg.quantity(kind))
        pct = used / limit * 100
        if pct >= config.limit_warning_pct:
            warnings.append(UsageWarning(
                type=WARNING_TYPES[kind],
                message=f"{kind.value} usage at {pct:.1f}% of {limit}",
                severity="critical" if pct >= 100 else "warning",
            ))

    since = clock.now() - timedelta(minutes=config.high_activity_window_minutes)
    recent = ledger.count_since(plan.account_id, since)
    if recent > config.high_activity_entries:
        warnings.append(UsageWarning(
            type=HIGH_ACTIVITY,
            message=f"{recent} metered operations in the last {config.high_activity_window_minutes} minutes",
            severity="info",
        ))
    return warnings
