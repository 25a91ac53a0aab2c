"""Database package for the gateway's SQL store."""

from keygate.db.base import Base
from keygate.db.engine import create_db_engine, create_session_factory, init_db
from keygate.db.models import (
    AccountPlanRecord,
    APIKeyRecord,
    BillingAlertRecord,
    RateWindowRecord,
    UsageLedgerRecord,
)

__all__ = [
    "Base",
    "create_db_engine",
    "create_session_factory",
    "init_db",
    "AccountPlanRecord",
    "APIKeyRecord",
    "BillingAlertRecord",
    "RateWindowRecord",
    "UsageLedgerRecord",
]
