"""Account plan state as read by the gateway on every check."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from keygate.plans.config import (
    UNLIMITED,
    OperationKind,
    PlanStatus,
    PlanTier,
    get_tier_config,
)

# kind -> (allowance attribute, consumed attribute)
COUNTER_FIELDS: Dict[OperationKind, Tuple[str, str]] = {
    OperationKind.API_CALL: ("api_calls_limit", "api_calls_used"),
    OperationKind.PREDICTION: ("predictions_limit", "predictions_used"),
    OperationKind.EXPORT: ("exports_limit", "exports_used"),
}


@dataclass
class CycleWindow:
    """Half-open billing cycle ``[start, end)``; ``end`` may be open."""

    start: datetime
    end: Optional[datetime] = None

    def contains(self, moment: datetime) -> bool:
        if moment < self.start:
            return False
        return self.end is None or moment < self.end


@dataclass
class PlanState:
    """Subscription state of one account.

    Allowance and consumed counters are reset at the cycle boundary by the
    billing-cycle collaborator. ``UNLIMITED`` (-1) disables an allowance.
    """

    account_id: str
    tier: PlanTier = PlanTier.FREE
    status: PlanStatus = PlanStatus.ACTIVE
    api_calls_limit: int = 1_000
    api_calls_used: int = 0
    predictions_limit: int = 5
    predictions_used: int = 0
    exports_limit: int = 1_000
    exports_used: int = 0
    cycle_start: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    cycle_end: Optional[datetime] = None

    @classmethod
    def for_tier(
        cls,
        account_id: str,
        tier: PlanTier,
        status: PlanStatus = PlanStatus.ACTIVE,
        cycle_start: Optional[datetime] = None,
        cycle_end: Optional[datetime] = None,
    ) -> "PlanState":
        """Build a fresh plan with the tier's default allowances."""
        limits = get_tier_config(tier)
        return cls(
            account_id=account_id,
            tier=tier,
            status=status,
            api_calls_limit=limits.api_calls,
            predictions_limit=limits.predictions,
            exports_limit=limits.exports,
            cycle_start=cycle_start or datetime.now(timezone.utc),
            cycle_end=cycle_end,
        )

    @property
    def is_active(self) -> bool:
        return self.status == PlanStatus.ACTIVE

    @property
    def cycle(self) -> CycleWindow:
        return CycleWindow(start=self.cycle_start, end=self.cycle_end)

    def allowance(self, kind: OperationKind) -> int:
        return getattr(self, COUNTER_FIELDS[kind][0])

    def consumed(self, kind: OperationKind) -> int:
        return getattr(self, COUNTER_FIELDS[kind][1])

    def has_unlimited(self, kind: OperationKind) -> bool:
        return self.tier == PlanTier.ENTERPRISE or self.allowance(kind) == UNLIMITED
