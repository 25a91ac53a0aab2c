"""Subscription plans, tier limits and unit pricing."""

from keygate.plans.config import (
    DEFAULT_TIERS,
    UNLIMITED,
    ExportFormat,
    OperationKind,
    PlanStatus,
    PlanTier,
    PriceClass,
    TierConfig,
    get_tier_config,
)
from keygate.plans.models import COUNTER_FIELDS, CycleWindow, PlanState
from keygate.plans.pricing import (
    BULK_DISCOUNT_RATE,
    BULK_DISCOUNT_THRESHOLD,
    EXPORT_UNIT_COSTS,
    PRICE_CLASS_COSTS,
    apply_bulk_discount,
    total_cost,
    unit_cost,
)

__all__ = [
    # Config
    "DEFAULT_TIERS",
    "UNLIMITED",
    "ExportFormat",
    "OperationKind",
    "PlanStatus",
    "PlanTier",
    "PriceClass",
    "TierConfig",
    "get_tier_config",
    # Models
    "COUNTER_FIELDS",
    "CycleWindow",
    "PlanState",
    # Pricing
    "BULK_DISCOUNT_RATE",
    "BULK_DISCOUNT_THRESHOLD",
    "EXPORT_UNIT_COSTS",
    "PRICE_CLASS_COSTS",
    "apply_bulk_discount",
    "total_cost",
    "unit_cost",
]
