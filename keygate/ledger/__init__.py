"""Usage ledger: append-only record of metered operations."""

from keygate.ledger.ledger import CycleAggregate, KindTotals, LedgerReader, UsageLedger
from keygate.ledger.models import (
    CallMetadata,
    ExportMetadata,
    LedgerEntry,
    PredictionMetadata,
    UsageMetadata,
    default_metadata,
    metadata_from_dict,
)

__all__ = [
    "CallMetadata",
    "CycleAggregate",
    "ExportMetadata",
    "KindTotals",
    "LedgerEntry",
    "LedgerReader",
    "PredictionMetadata",
    "UsageLedger",
    "UsageMetadata",
    "default_metadata",
    "metadata_from_dict",
]
