"""Thread-safe in-process store."""

import threading
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from keygate.auth.models import APIKey
from keygate.billing.models import BillingAlert
from keygate.ledger.models import LedgerEntry
from keygate.plans.config import OperationKind
from keygate.plans.models import COUNTER_FIELDS, PlanState


class MemoryStore:
    """Implements every store protocol on plain dicts.

    Each operation holds a single lock; reads hand out copies so callers
    cannot mutate stored state.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._keys: Dict[str, APIKey] = {}
        self._keys_by_hash: Dict[str, str] = {}
        self._plans: Dict[str, PlanState] = {}
        self._hits: Dict[str, List[datetime]] = defaultdict(list)
        self._entries: Dict[str, List[LedgerEntry]] = defaultdict(list)
        self._alerts: Dict[Tuple[str, datetime], BillingAlert] = {}

    # ── keys ──────────────────────────────────────────────────────────

    def find_key(self, key_hash: str) -> Optional[Tuple[APIKey, Optional[PlanState]]]:
        with self._lock:
            key_id = self._keys_by_hash.get(key_hash)
            if key_id is None:
                return None
            key = self._keys[key_id]
            plan = self._plans.get(key.account_id)
            return replace(key), (replace(plan) if plan else None)

    def touch_key(self, key_id: str, at: datetime) -> None:
        with self._lock:
            key = self._keys.get(key_id)
            if key is not None:
                key.last_used_at = at
                key.usage_count += 1

    def add_key(self, key: APIKey) -> None:
        with self._lock:
            self._keys[key.key_id] = replace(key)
            self._keys_by_hash[key.key_hash] = key.key_id

    def get_key(self, key_id: str) -> Optional[APIKey]:
        with self._lock:
            key = self._keys.get(key_id)
            return replace(key) if key else None

    def list_keys(self, account_id: str) -> List[APIKey]:
        with self._lock:
            return [replace(k) for k in self._keys.values() if k.account_id == account_id]

    def set_key_active(self, key_id: str, active: bool) -> bool:
        with self._lock:
            key = self._keys.get(key_id)
            if key is None:
                return False
            key.is_active = active
            return True

    def delete_key(self, key_id: str) -> bool:
        with self._lock:
            key = self._keys.pop(key_id, None)
            if key is None:
                return False
            self._keys_by_hash.pop(key.key_hash, None)
            return True

    # ── plans ─────────────────────────────────────────────────────────

    def get_plan(self, account_id: str) -> Optional[PlanState]:
        with self._lock:
            plan = self._plans.get(account_id)
            return replace(plan) if plan else None

    def save_plan(self, plan: PlanState) -> None:
        with self._lock:
            self._plans[plan.account_id] = replace(plan)

    def increment_consumed(self, account_id: str, kind: OperationKind, quantity: int) -> None:
        with self._lock:
            plan = self._plans.get(account_id)
            if plan is None:
                return
            attr = COUNTER_FIELDS[kind][1]
            setattr(plan, attr, getattr(plan, attr) + quantity)

    # ── rate windows ──────────────────────────────────────────────────

    def count_hits(self, key: str, since: datetime) -> int:
        with self._lock:
            return sum(1 for ts in self._hits.get(key, ()) if ts >= since)

    def add_hit(self, key: str, at: datetime) -> None:
        with self._lock:
            self._hits[key].append(at)

    def purge_hits(self, key: str, before: datetime) -> int:
        with self._lock:
            hits = self._hits.get(key)
            if not hits:
                return 0
            kept = [ts for ts in hits if ts >= before]
            removed = len(hits) - len(kept)
            if kept:
                self._hits[key] = kept
            else:
                del self._hits[key]
            return removed

    def purge_all_hits(self, before: datetime) -> int:
        with self._lock:
            removed = 0
            for key in list(self._hits):
                kept = [ts for ts in self._hits[key] if ts >= before]
                removed += len(self._hits[key]) - len(kept)
                if kept:
                    self._hits[key] = kept
                else:
                    del self._hits[key]
            return removed

    # ── ledger ────────────────────────────────────────────────────────

    def append_entry(self, entry: LedgerEntry) -> None:
        with self._lock:
            self._entries[entry.account_id].append(entry)

    @staticmethod
    def _in_window(entry: LedgerEntry, start: Optional[datetime], end: Optional[datetime]) -> bool:
        return (start is None or entry.timestamp >= start) and (end is None or entry.timestamp < end)

    def list_entries(
        self,
        account_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        kind: Optional[OperationKind] = None,
    ) -> List[LedgerEntry]:
        with self._lock:
            entries = [
                e for e in self._entries.get(account_id, ())
                if self._in_window(e, start, end) and (kind is None or e.kind == kind)
            ]
        return sorted(entries, key=lambda e: e.timestamp)

    def sum_quantity(
        self,
        account_id: str,
        kind: OperationKind,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> int:
        with self._lock:
            return sum(
                e.quantity for e in self._entries.get(account_id, ())
                if e.kind == kind and self._in_window(e, start, end)
            )

    def totals_by_kind(
        self,
        account_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        exclude_entry_id: Optional[str] = None,
    ) -> Dict[OperationKind, Tuple[int, float]]:
        totals: Dict[OperationKind, Tuple[int, float]] = {}
        with self._lock:
            for e in self._entries.get(account_id, ()):
                if e.entry_id == exclude_entry_id or not self._in_window(e, start, end):
                    continue
                quantity, cost = totals.get(e.kind, (0, 0.0))
                totals[e.kind] = (quantity + e.quantity, cost + e.cost)
        return totals

    def count_entries(self, account_id: str, start: Optional[datetime] = None) -> int:
        with self._lock:
            return sum(1 for e in self._entries.get(account_id, ()) if self._in_window(e, start, None))

    # ── alerts ────────────────────────────────────────────────────────

    def create_alert_if_absent(self, alert: BillingAlert) -> bool:
        slot = (alert.account_id, alert.cycle_start)
        with self._lock:
            if slot in self._alerts:
                return False
            self._alerts[slot] = replace(alert)
            return True

    def list_alerts(self, account_id: str) -> List[BillingAlert]:
        with self._lock:
            alerts = [replace(a) for a in self._alerts.values() if a.account_id == account_id]
        return sorted(alerts, key=lambda a: a.created_at)
