"""Append-only usage ledger and cycle aggregation."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from keygate.clock import DEFAULT_CLOCK, Clock
from keygate.ledger.models import LedgerEntry, UsageMetadata, default_metadata
from keygate.plans.config import OperationKind
from keygate.plans.models import CycleWindow, PlanState
from keygate.plans.pricing import apply_bulk_discount, total_cost
from keygate.stores.base import LedgerStore

logger = logging.getLogger(__name__)


@dataclass
class KindTotals:
    """Cycle-to-date quantity and cost for one operation kind."""

    kind: OperationKind
    quantity: int = 0
    gross_cost: float = 0.0
    cost: float = 0.0

    @property
    def discounted(self) -> bool:
        return self.cost < self.gross_cost


@dataclass
class CycleAggregate:
    """Per-kind totals for one account over one billing cycle."""

    account_id: str
    cycle: CycleWindow
    by_kind: Dict[OperationKind, KindTotals] = field(default_factory=dict)

    @property
    def total_cost(self) -> float:
        return round(sum(t.cost for t in self.by_kind.values()), 4)

    def quantity(self, kind: OperationKind) -> int:
        totals = self.by_kind.get(kind)
        return totals.quantity if totals else 0


class UsageLedger:
    """Records metered operations and answers cycle-to-date questions.

    The ledger is the source of truth for usage; plan counters are a
    derived, eventually consistent view of it.
    """

    def __init__(self, store: LedgerStore, clock: Clock = DEFAULT_CLOCK):
        self.store = store
        self.clock = clock

    def append(
        self,
        account_id: str,
        kind: OperationKind,
        quantity: int,
        unit_price: float,
        metadata: Optional[UsageMetadata] = None,
        at: Optional[datetime] = None,
    ) -> LedgerEntry:
        kind = OperationKind(kind)
        entry = LedgerEntry(
            entry_id=uuid.uuid4().hex[:16],
            account_id=account_id,
            kind=kind,
            quantity=quantity,
            unit_price=unit_price,
            cost=total_cost(unit_price, quantity),
            metadata=metadata if metadata is not None else default_metadata(kind),
            timestamp=at or self.clock.now(),
        )
        self.store.append_entry(entry)
        logger.debug(
            f"Ledger entry {entry.entry_id}: {account_id} {kind.value} x{quantity} = {entry.cost}"
        )
        return entry

    def entries(
        self,
        account_id: str,
        cycle: Optional[CycleWindow] = None,
        kind: Optional[OperationKind] = None,
    ) -> List[LedgerEntry]:
        if cycle is None:
            return self.store.list_entries(account_id, kind=kind)
        return self.store.list_entries(account_id, start=cycle.start, end=cycle.end, kind=kind)

    def cycle_quantity(self, account_id: str, kind: OperationKind, cycle: CycleWindow) -> int:
        return self.store.sum_quantity(account_id, kind, cycle.start, cycle.end)

    def aggregate(
        self,
        account_id: str,
        cycle: CycleWindow,
        exclude_entry_id: Optional[str] = None,
    ) -> CycleAggregate:
        """Sum the cycle per kind, applying the bulk discount to each kind's total."""
        result = CycleAggregate(account_id=account_id, cycle=cycle)
        sums = self.store.totals_by_kind(account_id, cycle.start, cycle.end, exclude_entry_id)
        for kind, (quantity, gross) in sums.items():
            gross = round(gross, 4)
            result.by_kind[kind] = KindTotals(
                kind=kind,
                quantity=quantity,
                gross_cost=gross,
                cost=apply_bulk_discount(gross, quantity),
            )
        return result

    def cycle_cost(
        self,
        account_id: str,
        cycle: CycleWindow,
        exclude_entry_id: Optional[str] = None,
    ) -> float:
        return self.aggregate(account_id, cycle, exclude_entry_id).total_cost

    def count_since(self, account_id: str, since: datetime) -> int:
        """Number of entries recorded at or after ``since``."""
        return self.store.count_entries(account_id, start=since)

    def summarize(self, plan: PlanState) -> Dict[str, object]:
        """Usage report for an account's current cycle: used, limit and percentage per kind."""
        agg = self.aggregate(plan.account_id, plan.cycle)
        usage = {}
        for kind in OperationKind:
            limit = plan.allowance(kind)
            used = max(plan.consumed(kind), agg.quantity(kind))
            unlimited = plan.has_unlimited(kind)
            usage[kind.value] = {
                "used": used,
                "limit": -1 if unlimited else limit,
                "percentage": None if unlimited or limit <= 0 else round(used / limit * 100, 2),
                "cost": agg.by_kind[kind].cost if kind in agg.by_kind else 0.0,
            }
        return {
            "account_id": plan.account_id,
            "tier": plan.tier.value,
            "status": plan.status.value,
            "cycle_start": plan.cycle_start.isoformat(),
            "cycle_end": plan.cycle_end.isoformat() if plan.cycle_end else None,
            "usage": usage,
            "total_cost": agg.total_cost,
        }

    def reader(self) -> "LedgerReader":
        return LedgerReader(self)


class LedgerReader:
    """Read-only view of the ledger handed to pipeline hooks."""

    def __init__(self, ledger: UsageLedger):
        self._ledger = ledger

    def entries(self, account_id: str, cycle: Optional[CycleWindow] = None,
                kind: Optional[OperationKind] = None) -> List[LedgerEntry]:
        return self._ledger.entries(account_id, cycle, kind)

    def cycle_cost(self, account_id: str, cycle: CycleWindow) -> float:
        return self._ledger.cycle_cost(account_id, cycle)

    def recent(self, account_id: str, minutes: int = 60) -> List[LedgerEntry]:
        since = self._ledger.clock.now() - timedelta(minutes=minutes)
        return self._ledger.store.list_entries(account_id, start=since)
