"""SQLAlchemy ORM models for the gateway.

Tables:
- api_keys: Hashed API keys and their bookkeeping counters
- account_plans: Subscription tier, status, allowances and consumed counters
- rate_window_records: (key, timestamp) hits for the sliding rate window
- usage_ledger: Append-only metered usage entries
- billing_alerts: One threshold alert per account per billing cycle
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    UniqueConstraint,
)

from keygate.db.base import Base


class APIKeyRecord(Base):
    __tablename__ = "api_keys"

    id = Column(String(32), primary_key=True)
    account_id = Column(String(64), nullable=False, index=True)
    name = Column(String(200), nullable=False, default="")
    key_hash = Column(String(64), unique=True, nullable=False, index=True)
    key_prefix = Column(String(20), default="")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True))
    expires_at = Column(DateTime(timezone=True))
    last_used_at = Column(DateTime(timezone=True))
    usage_count = Column(Integer, default=0, nullable=False)


class AccountPlanRecord(Base):
    __tablename__ = "account_plans"

    account_id = Column(String(64), primary_key=True)
    tier = Column(String(20), nullable=False, default="free")
    status = Column(String(20), nullable=False, default="active")
    api_calls_limit = Column(Integer, nullable=False, default=0)
    api_calls_used = Column(Integer, nullable=False, default=0)
    predictions_limit = Column(Integer, nullable=False, default=0)
    predictions_used = Column(Integer, nullable=False, default=0)
    exports_limit = Column(Integer, nullable=False, default=0)
    exports_used = Column(Integer, nullable=False, default=0)
    cycle_start = Column(DateTime(timezone=True), nullable=False)
    cycle_end = Column(DateTime(timezone=True))


class RateWindowRecord(Base):
    __tablename__ = "rate_window_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(128), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_rate_window_key_ts", "key", "timestamp"),
    )


class UsageLedgerRecord(Base):
    __tablename__ = "usage_ledger"

    id = Column(String(32), primary_key=True)
    account_id = Column(String(64), nullable=False)
    kind = Column(String(20), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    cost = Column(Float, nullable=False)
    metadata_json = Column("metadata", JSON, nullable=False, default=dict)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_usage_ledger_account_ts", "account_id", "timestamp"),
    )


class BillingAlertRecord(Base):
    __tablename__ = "billing_alerts"

    id = Column(String(32), primary_key=True)
    account_id = Column(String(64), nullable=False)
    accumulated_cost = Column(Float, nullable=False)
    threshold = Column(Float, nullable=False)
    cycle_start = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("account_id", "cycle_start", name="uq_billing_alert_cycle"),
    )
