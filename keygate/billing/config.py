"""Billing configuration."""

from dataclasses import dataclass


@dataclass
class BillingConfig:
    """Threshold alerting and usage warning settings.

    ``billing_threshold`` is in the same currency unit as ledger costs.
    """

    billing_threshold: float = 1000.0
    high_activity_entries: int = 1000
    high_activity_window_minutes: int = 60
    limit_warning_pct: float = 90.0


DEFAULT_BILLING_CONFIG = BillingConfig()
