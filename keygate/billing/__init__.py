"""Balance enforcement, threshold alerts and usage warnings."""

from keygate.billing.analytics import UsageWarning, usage_warnings
from keygate.billing.config import DEFAULT_BILLING_CONFIG, BillingConfig
from keygate.billing.enforcer import BalanceCheck, BalanceEnforcer
from keygate.billing.models import BillingAlert
from keygate.billing.monitor import (
    BillingThresholdMonitor,
    CallbackNotificationSink,
    LoggingNotificationSink,
    NotificationSink,
)

__all__ = [
    "DEFAULT_BILLING_CONFIG",
    "BalanceCheck",
    "BalanceEnforcer",
    "BillingAlert",
    "BillingConfig",
    "BillingThresholdMonitor",
    "CallbackNotificationSink",
    "LoggingNotificationSink",
    "NotificationSink",
    "UsageWarning",
    "usage_warnings",
]
