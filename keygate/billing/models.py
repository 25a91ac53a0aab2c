"""Billing alert records."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class BillingAlert:
    """Raised once per account per billing cycle when accumulated cost crosses the threshold."""

    alert_id: str
    account_id: str
    accumulated_cost: float
    threshold: float
    cycle_start: datetime
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "alert_id": self.alert_id,
            "account_id": self.account_id,
            "accumulated_cost": self.accumulated_cost,
            "threshold": self.threshold,
            "cycle_start": self.cycle_start.isoformat(),
            "created_at": self.created_at.isoformat(),
        }
