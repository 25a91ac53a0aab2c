"""Plan tiers, statuses, metered operation kinds and tier limits."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict

# Sentinel used for every "no limit" allowance or rate ceiling.
UNLIMITED = -1


class PlanTier(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"


class PlanStatus(str, Enum):
    ACTIVE = "active"
    TRIAL = "trial"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"


class OperationKind(str, Enum):
    """Kinds of metered work recorded in the usage ledger."""

    API_CALL = "api_call"
    PREDICTION = "prediction"
    EXPORT = "export"


class PriceClass(str, Enum):
    """Sub-classification that selects the per-unit price of calls and predictions."""

    BASIC = "basic"
    ADVANCED = "advanced"
    INSTITUTIONAL = "institutional"


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"
    XML = "xml"
    EXCEL = "excel"


@dataclass
class TierConfig:
    """Limits granted by a subscription tier."""

    tier: PlanTier = PlanTier.FREE
    requests_per_window: int = 60
    api_calls: int = 1_000
    predictions: int = 5
    exports: int = 1_000
    max_api_keys: int = 1


DEFAULT_TIERS: Dict[PlanTier, TierConfig] = {
    PlanTier.FREE: TierConfig(
        tier=PlanTier.FREE,
        requests_per_window=60,
        api_calls=1_000,
        predictions=5,
        exports=1_000,
        max_api_keys=1,
    ),
    PlanTier.BASIC: TierConfig(
        tier=PlanTier.BASIC,
        requests_per_window=600,
        api_calls=10_000,
        predictions=50,
        exports=UNLIMITED,
        max_api_keys=3,
    ),
    PlanTier.PROFESSIONAL: TierConfig(
        tier=PlanTier.PROFESSIONAL,
        requests_per_window=6_000,
        api_calls=100_000,
        predictions=1_000,
        exports=UNLIMITED,
        max_api_keys=10,
    ),
    PlanTier.ENTERPRISE: TierConfig(
        tier=PlanTier.ENTERPRISE,
        requests_per_window=UNLIMITED,
        api_calls=UNLIMITED,
        predictions=UNLIMITED,
        exports=UNLIMITED,
        max_api_keys=UNLIMITED,
    ),
}


def get_tier_config(tier: PlanTier) -> TierConfig:
    """Return the limits for a tier, falling back to FREE for unknown values."""
    return DEFAULT_TIERS.get(tier, DEFAULT_TIERS[PlanTier.FREE])
