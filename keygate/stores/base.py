"""Store protocols the gateway components are written against.

Each component depends only on the narrow protocol it needs. Both
``MemoryStore`` and ``SQLStore`` implement all of them, so one instance
is normally shared by every component.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Dict, List, Optional, Protocol, Tuple

if TYPE_CHECKING:
    from keygate.auth.models import APIKey
    from keygate.billing.models import BillingAlert
    from keygate.ledger.models import LedgerEntry
    from keygate.plans.config import OperationKind
    from keygate.plans.models import PlanState


class StoreUnavailableError(Exception):
    """A backing store could not be reached or failed mid-operation."""


class KeyStore(Protocol):
    def find_key(self, key_hash: str) -> Optional[Tuple[APIKey, Optional[PlanState]]]:
        """Look up a key by hash together with its account's plan, in one read."""
        ...

    def touch_key(self, key_id: str, at: datetime) -> None: ...

    def add_key(self, key: APIKey) -> None: ...

    def get_key(self, key_id: str) -> Optional[APIKey]: ...

    def list_keys(self, account_id: str) -> List[APIKey]: ...

    def set_key_active(self, key_id: str, active: bool) -> bool: ...

    def delete_key(self, key_id: str) -> bool: ...


class PlanStore(Protocol):
    def get_plan(self, account_id: str) -> Optional[PlanState]: ...

    def save_plan(self, plan: PlanState) -> None: ...

    def increment_consumed(self, account_id: str, kind: OperationKind, quantity: int) -> None:
        """Atomically add ``quantity`` to the consumed counter for ``kind``."""
        ...


class WindowStore(Protocol):
    def count_hits(self, key: str, since: datetime) -> int: ...

    def add_hit(self, key: str, at: datetime) -> None: ...

    def purge_hits(self, key: str, before: datetime) -> int: ...

    def purge_all_hits(self, before: datetime) -> int: ...


class LedgerStore(Protocol):
    def append_entry(self, entry: LedgerEntry) -> None: ...

    def list_entries(
        self,
        account_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        kind: Optional[OperationKind] = None,
    ) -> List[LedgerEntry]:
        """Entries with ``start <= timestamp < end``, oldest first."""
        ...

    def sum_quantity(
        self,
        account_id: str,
        kind: OperationKind,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> int:
        """Total quantity of ``kind`` recorded in ``[start, end)``."""
        ...

    def totals_by_kind(
        self,
        account_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        exclude_entry_id: Optional[str] = None,
    ) -> Dict[OperationKind, Tuple[int, float]]:
        """(quantity, undiscounted cost) per kind recorded in ``[start, end)``."""
        ...

    def count_entries(self, account_id: str, start: Optional[datetime] = None) -> int: ...


class AlertStore(Protocol):
    def create_alert_if_absent(self, alert: BillingAlert) -> bool:
        """Insert unless an alert exists for the same account and cycle start."""
        ...

    def list_alerts(self, account_id: str) -> List[BillingAlert]: ...
