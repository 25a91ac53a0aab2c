"""Billing threshold monitoring and alert notification."""

import logging
import threading
import uuid
from concurrent.futures import Executor, Future
from typing import Callable, List, Optional, Protocol

from keygate.billing.config import DEFAULT_BILLING_CONFIG, BillingConfig
from keygate.billing.models import BillingAlert
from keygate.clock import DEFAULT_CLOCK, Clock
from keygate.ledger.ledger import UsageLedger
from keygate.stores.base import AlertStore, PlanStore

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def notify(self, alert: BillingAlert) -> None: ...


class LoggingNotificationSink:
    """Default sink: writes the alert to the log."""

    def notify(self, alert: BillingAlert) -> None:
        logger.warning(
            f"Billing threshold reached for {alert.account_id}: "
            f"{alert.accumulated_cost:.4f} >= {alert.threshold:.4f}",
            extra={"account_id": alert.account_id, "cost": alert.accumulated_cost},
        )


class CallbackNotificationSink:
    """Forwards alerts to a callable (webhook sender, queue producer, test spy)."""

    def __init__(self, callback: Callable[[BillingAlert], None]):
        self.callback = callback

    def notify(self, alert: BillingAlert) -> None:
        self.callback(alert)


class BillingThresholdMonitor:
    """Raises at most one alert per account per cycle once cost crosses the threshold.

    Runs off the request path. Nothing raised here reaches the caller.
    """

    def __init__(
        self,
        plans: PlanStore,
        ledger: UsageLedger,
        alerts: AlertStore,
        sink: Optional[NotificationSink] = None,
        clock: Clock = DEFAULT_CLOCK,
        config: Optional[BillingConfig] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.plans = plans
        self.ledger = ledger
        self.alerts = alerts
        self.sink = sink or LoggingNotificationSink()
        self.clock = clock
        self.config = config or DEFAULT_BILLING_CONFIG
        self.executor = executor
        self._pending: List[Future] = []
        self._pending_lock = threading.Lock()

    def record_and_check(
        self,
        account_id: str,
        cost: float,
        entry_id: Optional[str] = None,
    ) -> Optional[BillingAlert]:
        """Check the discounted cycle total against the threshold.

        When ``entry_id`` names a committed ledger entry, ``cost`` is already
        part of the cycle and the total is read as is. Without it ``cost`` is
        added to the cycle total.
        """
        try:
            plan = self.plans.get_plan(account_id)
            if plan is None:
                return None
            if entry_id is not None:
                accumulated = round(self.ledger.cycle_cost(account_id, plan.cycle), 4)
            else:
                accumulated = round(self.ledger.cycle_cost(account_id, plan.cycle) + cost, 4)
            if accumulated < self.config.billing_threshold:
                return None

            alert = BillingAlert(
                alert_id=uuid.uuid4().hex[:16],
                account_id=account_id,
                accumulated_cost=accumulated,
                threshold=self.config.billing_threshold,
                cycle_start=plan.cycle_start,
                created_at=self.clock.now(),
            )
            if not self.alerts.create_alert_if_absent(alert):
                return None
        except Exception as exc:
            logger.error(f"Billing threshold check failed for {account_id}: {exc}", exc_info=True)
            return None

        logger.info(f"Billing alert {alert.alert_id} created for {account_id} at {accumulated}")
        try:
            self.sink.notify(alert)
        except Exception as exc:
            logger.error(f"Billing alert notification failed for {account_id}: {exc}", exc_info=True)
        return alert

    def schedule(self, account_id: str, cost: float, entry_id: Optional[str] = None) -> Optional[Future]:
        """Run ``record_and_check`` on the executor, or inline when there is none."""
        if self.executor is None:
            self.record_and_check(account_id, cost, entry_id)
            return None
        try:
            future = self.executor.submit(self.record_and_check, account_id, cost, entry_id)
        except RuntimeError as exc:
            logger.error(f"Billing threshold check not scheduled for {account_id}: {exc}")
            return None
        with self._pending_lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)
        return future

    def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for scheduled checks to finish."""
        with self._pending_lock:
            pending, self._pending = self._pending, []
        for future in pending:
            future.result(timeout=timeout)

    def shutdown(self) -> None:
        if self.executor is not None:
            self.executor.shutdown(wait=True)
