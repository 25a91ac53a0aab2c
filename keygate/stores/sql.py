"""SQLAlchemy-backed store implementing every store protocol."""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from keygate.auth.models import APIKey
from keygate.billing.models import BillingAlert
from keygate.db.models import (
    AccountPlanRecord,
    APIKeyRecord,
    BillingAlertRecord,
    RateWindowRecord,
    UsageLedgerRecord,
)
from keygate.ledger.models import LedgerEntry, metadata_from_dict
from keygate.plans.config import OperationKind, PlanStatus, PlanTier
from keygate.plans.models import COUNTER_FIELDS, PlanState
from keygate.stores.base import StoreUnavailableError

logger = logging.getLogger(__name__)


def _utc(moment: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; stored values are always UTC."""
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=timezone.utc)


def _key_from_record(row: APIKeyRecord) -> APIKey:
    return APIKey(
        key_id=row.id,
        account_id=row.account_id,
        name=row.name,
        key_hash=row.key_hash,
        key_prefix=row.key_prefix or "",
        is_active=bool(row.is_active),
        created_at=_utc(row.created_at),
        expires_at=_utc(row.expires_at),
        last_used_at=_utc(row.last_used_at),
        usage_count=row.usage_count or 0,
    )


def _plan_from_record(row: AccountPlanRecord) -> PlanState:
    return PlanState(
        account_id=row.account_id,
        tier=PlanTier(row.tier),
        status=PlanStatus(row.status),
        api_calls_limit=row.api_calls_limit,
        api_calls_used=row.api_calls_used,
        predictions_limit=row.predictions_limit,
        predictions_used=row.predictions_used,
        exports_limit=row.exports_limit,
        exports_used=row.exports_used,
        cycle_start=_utc(row.cycle_start),
        cycle_end=_utc(row.cycle_end),
    )


def _entry_from_record(row: UsageLedgerRecord) -> LedgerEntry:
    return LedgerEntry(
        entry_id=row.id,
        account_id=row.account_id,
        kind=OperationKind(row.kind),
        quantity=row.quantity,
        unit_price=row.unit_price,
        cost=row.cost,
        metadata=metadata_from_dict(row.metadata_json),
        timestamp=_utc(row.timestamp),
    )


def _alert_from_record(row: BillingAlertRecord) -> BillingAlert:
    return BillingAlert(
        alert_id=row.id,
        account_id=row.account_id,
        accumulated_cost=row.accumulated_cost,
        threshold=row.threshold,
        cycle_start=_utc(row.cycle_start),
        created_at=_utc(row.created_at),
    )


class SQLStore:
    """Store over a SQLAlchemy session factory.

    Every method runs in its own session and transaction. Driver and
    connection errors surface as ``StoreUnavailableError``.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except IntegrityError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(f"Database operation failed: {exc}")
            raise StoreUnavailableError(str(exc)) from exc
        finally:
            session.close()

    # ── keys ──────────────────────────────────────────────────────────

    def find_key(self, key_hash: str) -> Optional[Tuple[APIKey, Optional[PlanState]]]:
        with self._session() as session:
            row = session.execute(
                select(APIKeyRecord, AccountPlanRecord)
                .outerjoin(AccountPlanRecord, AccountPlanRecord.account_id == APIKeyRecord.account_id)
                .where(APIKeyRecord.key_hash == key_hash)
            ).first()
            if row is None:
                return None
            key_row, plan_row = row
            return _key_from_record(key_row), (_plan_from_record(plan_row) if plan_row else None)

    def touch_key(self, key_id: str, at: datetime) -> None:
        with self._session() as session:
            session.execute(
                update(APIKeyRecord)
                .where(APIKeyRecord.id == key_id)
                .values(last_used_at=at, usage_count=APIKeyRecord.usage_count + 1)
            )

    def add_key(self, key: APIKey) -> None:
        with self._session() as session:
            session.add(APIKeyRecord(
                id=key.key_id,
                account_id=key.account_id,
                name=key.name,
                key_hash=key.key_hash,
                key_prefix=key.key_prefix,
                is_active=key.is_active,
                created_at=key.created_at,
                expires_at=key.expires_at,
                last_used_at=key.last_used_at,
                usage_count=key.usage_count,
            ))

    def get_key(self, key_id: str) -> Optional[APIKey]:
        with self._session() as session:
            row = session.get(APIKeyRecord, key_id)
            return _key_from_record(row) if row else None

    def list_keys(self, account_id: str) -> List[APIKey]:
        with self._session() as session:
            rows = session.execute(
                select(APIKeyRecord).where(APIKeyRecord.account_id == account_id)
            ).scalars()
            return [_key_from_record(r) for r in rows]

    def set_key_active(self, key_id: str, active: bool) -> bool:
        with self._session() as session:
            result = session.execute(
                update(APIKeyRecord).where(APIKeyRecord.id == key_id).values(is_active=active)
            )
            return result.rowcount > 0

    def delete_key(self, key_id: str) -> bool:
        with self._session() as session:
            result = session.execute(delete(APIKeyRecord).where(APIKeyRecord.id == key_id))
            return result.rowcount > 0

    # ── plans ─────────────────────────────────────────────────────────

    def get_plan(self, account_id: str) -> Optional[PlanState]:
        with self._session() as session:
            row = session.get(AccountPlanRecord, account_id)
            return _plan_from_record(row) if row else None

    def save_plan(self, plan: PlanState) -> None:
        with self._session() as session:
            session.merge(AccountPlanRecord(
                account_id=plan.account_id,
                tier=plan.tier.value,
                status=plan.status.value,
                api_calls_limit=plan.api_calls_limit,
                api_calls_used=plan.api_calls_used,
                predictions_limit=plan.predictions_limit,
                predictions_used=plan.predictions_used,
                exports_limit=plan.exports_limit,
                exports_used=plan.exports_used,
                cycle_start=plan.cycle_start,
                cycle_end=plan.cycle_end,
            ))

    def increment_consumed(self, account_id: str, kind: OperationKind, quantity: int) -> None:
        column = getattr(AccountPlanRecord, COUNTER_FIELDS[kind][1])
        with self._session() as session:
            session.execute(
                update(AccountPlanRecord)
                .where(AccountPlanRecord.account_id == account_id)
                .values({column: column + quantity})
            )

    # ── rate windows ──────────────────────────────────────────────────

    def count_hits(self, key: str, since: datetime) -> int:
        with self._session() as session:
            return session.execute(
                select(func.count())
                .select_from(RateWindowRecord)
                .where(RateWindowRecord.key == key, RateWindowRecord.timestamp >= since)
            ).scalar_one()

    def add_hit(self, key: str, at: datetime) -> None:
        with self._session() as session:
            session.add(RateWindowRecord(key=key, timestamp=at))

    def purge_hits(self, key: str, before: datetime) -> int:
        with self._session() as session:
            result = session.execute(
                delete(RateWindowRecord)
                .where(RateWindowRecord.key == key, RateWindowRecord.timestamp < before)
            )
            return result.rowcount

    def purge_all_hits(self, before: datetime) -> int:
        with self._session() as session:
            result = session.execute(
                delete(RateWindowRecord).where(RateWindowRecord.timestamp < before)
            )
            return result.rowcount

    # ── ledger ────────────────────────────────────────────────────────

    def append_entry(self, entry: LedgerEntry) -> None:
        with self._session() as session:
            session.add(UsageLedgerRecord(
                id=entry.entry_id,
                account_id=entry.account_id,
                kind=entry.kind.value,
                quantity=entry.quantity,
                unit_price=entry.unit_price,
                cost=entry.cost,
                metadata_json=entry.metadata.to_dict(),
                timestamp=entry.timestamp,
            ))

    def list_entries(
        self,
        account_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        kind: Optional[OperationKind] = None,
    ) -> List[LedgerEntry]:
        query = self._ledger_window(
            select(UsageLedgerRecord).where(UsageLedgerRecord.account_id == account_id), start, end
        )
        if kind is not None:
            query = query.where(UsageLedgerRecord.kind == OperationKind(kind).value)
        with self._session() as session:
            rows = session.execute(query.order_by(UsageLedgerRecord.timestamp)).scalars()
            return [_entry_from_record(r) for r in rows]

    @staticmethod
    def _ledger_window(query, start: Optional[datetime], end: Optional[datetime]):
        if start is not None:
            query = query.where(UsageLedgerRecord.timestamp >= start)
        if end is not None:
            query = query.where(UsageLedgerRecord.timestamp < end)
        return query

    def sum_quantity(
        self,
        account_id: str,
        kind: OperationKind,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> int:
        query = select(func.coalesce(func.sum(UsageLedgerRecord.quantity), 0)).where(
            UsageLedgerRecord.account_id == account_id,
            UsageLedgerRecord.kind == OperationKind(kind).value,
        )
        with self._session() as session:
            return int(session.execute(self._ledger_window(query, start, end)).scalar_one())

    def totals_by_kind(
        self,
        account_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        exclude_entry_id: Optional[str] = None,
    ) -> Dict[OperationKind, Tuple[int, float]]:
        query = (
            select(
                UsageLedgerRecord.kind,
                func.sum(UsageLedgerRecord.quantity),
                func.sum(UsageLedgerRecord.cost),
            )
            .where(UsageLedgerRecord.account_id == account_id)
            .group_by(UsageLedgerRecord.kind)
        )
        if exclude_entry_id is not None:
            query = query.where(UsageLedgerRecord.id != exclude_entry_id)
        with self._session() as session:
            rows = session.execute(self._ledger_window(query, start, end)).all()
            return {OperationKind(kind): (int(qty), float(cost)) for kind, qty, cost in rows}

    def count_entries(self, account_id: str, start: Optional[datetime] = None) -> int:
        query = (
            select(func.count())
            .select_from(UsageLedgerRecord)
            .where(UsageLedgerRecord.account_id == account_id)
        )
        with self._session() as session:
            return session.execute(self._ledger_window(query, start, None)).scalar_one()

    # ── alerts ────────────────────────────────────────────────────────

    def create_alert_if_absent(self, alert: BillingAlert) -> bool:
        try:
            with self._session() as session:
                session.add(BillingAlertRecord(
                    id=alert.alert_id,
                    account_id=alert.account_id,
                    accumulated_cost=alert.accumulated_cost,
                    threshold=alert.threshold,
                    cycle_start=alert.cycle_start,
                    created_at=alert.created_at,
                ))
        except IntegrityError:
            return False
        return True

    def list_alerts(self, account_id: str) -> List[BillingAlert]:
        with self._session() as session:
            rows = session.execute(
                select(BillingAlertRecord)
                .where(BillingAlertRecord.account_id == account_id)
                .order_by(BillingAlertRecord.created_at)
            ).scalars()
            return [_alert_from_record(r) for r in rows]
