"""Balance and allowance enforcement for metered operations."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from keygate.api_errors.config import ErrorCode
from keygate.clock import DEFAULT_CLOCK, Clock
from keygate.ledger.ledger import UsageLedger
from keygate.ledger.models import LedgerEntry, UsageMetadata
from keygate.plans.config import UNLIMITED, ExportFormat, OperationKind, PriceClass
from keygate.plans.models import PlanState
from keygate.plans.pricing import total_cost, unit_cost
from keygate.stores.base import PlanStore, StoreUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class BalanceCheck:
    """Outcome of a pre-dispatch balance check."""

    allowed: bool
    available_balance: float
    unit_cost: float
    total_cost: float
    plan: Optional[PlanState] = None
    error: Optional[ErrorCode] = None

    @property
    def unlimited(self) -> bool:
        return self.available_balance == UNLIMITED

    def to_payload(self) -> Dict[str, Any]:
        return {
            "availableBalance": self.available_balance,
            "costPerPrediction": self.unit_cost,
            "totalCost": self.total_cost,
        }


class BalanceEnforcer:
    """Checks remaining allowance before dispatch and commits usage after.

    ``check_balance`` never writes. ``commit_usage`` is the only mutating
    path: ledger append first, then the plan counter.
    """

    def __init__(self, plans: PlanStore, ledger: UsageLedger, clock: Clock = DEFAULT_CLOCK) -> None:
        self.plans = plans
        self.ledger = ledger
        self.clock = clock

    def check_balance(
        self,
        account_id: str,
        kind: OperationKind,
        quantity: int = 1,
        price_class: PriceClass = PriceClass.BASIC,
        export_format: Optional[ExportFormat] = None,
    ) -> BalanceCheck:
        if quantity <= 0:
            raise ValueError(f"quantity must be positive, got {quantity}")

        kind = OperationKind(kind)
        price = unit_cost(kind, price_class, export_format)
        cost = total_cost(price, quantity)

        try:
            plan = self.plans.get_plan(account_id)
            if plan is None:
                return BalanceCheck(False, 0.0, price, cost, error=ErrorCode.INSUFFICIENT_BALANCE)
            if plan.has_unlimited(kind):
                return BalanceCheck(True, UNLIMITED, price, cost, plan=plan)
            consumed = max(
                plan.consumed(kind),
                self.ledger.cycle_quantity(account_id, kind, plan.cycle),
            )
        except StoreUnavailableError as exc:
            # Fail closed on plan store faults.
            logger.error(f"Balance check failed for {account_id}: {exc}")
            return BalanceCheck(False, 0.0, price, cost, error=ErrorCode.INFRASTRUCTURE_FAULT)

        available = round(max(0, plan.allowance(kind) - consumed) * price, 4)
        allowed = available >= cost
        return BalanceCheck(
            allowed=allowed,
            available_balance=available,
            unit_cost=price,
            total_cost=cost,
            plan=plan,
            error=None if allowed else ErrorCode.INSUFFICIENT_BALANCE,
        )

    def commit_usage(
        self,
        account_id: str,
        kind: OperationKind,
        quantity: int = 1,
        price_class: PriceClass = PriceClass.BASIC,
        export_format: Optional[ExportFormat] = None,
        metadata: Optional[UsageMetadata] = None,
        at: Optional[datetime] = None,
    ) -> LedgerEntry:
        """Append the ledger entry, then bump the plan's consumed counter."""
        kind = OperationKind(kind)
        price = unit_cost(kind, price_class, export_format)
        entry = self.ledger.append(account_id, kind, quantity, price, metadata=metadata, at=at)

        try:
            plan = self.plans.get_plan(account_id)
            if plan is not None and not plan.has_unlimited(kind):
                self.plans.increment_consumed(account_id, kind, quantity)
        except StoreUnavailableError as exc:
            # check_balance reconciles the counter from the ledger.
            logger.error(f"Counter update failed for {account_id} after entry {entry.entry_id}: {exc}")

        return entry
