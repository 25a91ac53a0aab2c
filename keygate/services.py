"""Service container: builds every gateway component once per process.

The FastAPI app, scripts and tests all receive a ``GatewayServices``
instance instead of reaching for module-level singletons.
"""

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Optional

from keygate.auth.authenticator import KeyAuthenticator
from keygate.auth.keys import APIKeyManager
from keygate.billing.config import BillingConfig
from keygate.billing.enforcer import BalanceEnforcer
from keygate.billing.monitor import BillingThresholdMonitor, NotificationSink
from keygate.clock import DEFAULT_CLOCK, Clock
from keygate.gateway.gateway import APIGateway
from keygate.ledger.ledger import UsageLedger
from keygate.rate_limit.config import RateLimitConfig
from keygate.rate_limit.limiter import SlidingWindowRateLimiter
from keygate.settings import Settings, get_settings

logger = logging.getLogger(__name__)

_DEFAULT_EXECUTOR: Any = object()


def build_store(settings: Settings):
    """Create the store selected by ``settings.store_backend``."""
    backend = settings.store_backend.lower()
    if backend == "memory":
        from keygate.stores.memory import MemoryStore

        return MemoryStore()
    if backend == "sql":
        from keygate.db.engine import create_db_engine, create_session_factory, init_db
        from keygate.stores.sql import SQLStore

        engine = create_db_engine(settings.database_url, echo=settings.database_echo)
        init_db(engine)
        return SQLStore(create_session_factory(engine))
    raise ValueError(f"Unknown store backend: {settings.store_backend!r}")


@dataclass
class GatewayServices:
    settings: Settings
    store: Any
    clock: Clock
    ledger: UsageLedger
    authenticator: KeyAuthenticator
    rate_limiter: SlidingWindowRateLimiter
    enforcer: BalanceEnforcer
    monitor: BillingThresholdMonitor
    keys: APIKeyManager
    gateway: APIGateway

    def shutdown(self) -> None:
        """Wait for pending threshold checks and release the worker pool."""
        self.monitor.shutdown()
        logger.info("Gateway services shut down")


def build_services(
    settings: Optional[Settings] = None,
    store: Any = None,
    clock: Optional[Clock] = None,
    sink: Optional[NotificationSink] = None,
    executor: Optional[Executor] = _DEFAULT_EXECUTOR,
) -> GatewayServices:
    """Wire the gateway components around one shared store.

    Pass ``executor=None`` to run billing threshold checks inline.
    """
    settings = settings or get_settings()
    store = store if store is not None else build_store(settings)
    clock = clock or DEFAULT_CLOCK
    if executor is _DEFAULT_EXECUTOR:
        executor = (
            ThreadPoolExecutor(max_workers=settings.monitor_workers, thread_name_prefix="billing-monitor")
            if settings.monitor_workers > 0
            else None
        )

    ledger = UsageLedger(store, clock)
    authenticator = KeyAuthenticator(store, clock)
    rate_limiter = SlidingWindowRateLimiter(
        store,
        RateLimitConfig(
            window_seconds=settings.rate_window_seconds,
            anonymous_limit=settings.anonymous_rate_limit,
        ),
        clock,
    )
    enforcer = BalanceEnforcer(store, ledger, clock)
    monitor = BillingThresholdMonitor(
        store,
        ledger,
        store,
        sink=sink,
        clock=clock,
        config=BillingConfig(billing_threshold=settings.billing_threshold),
        executor=executor,
    )
    keys = APIKeyManager(store, store, clock, prefix=settings.api_key_prefix)
    gateway = APIGateway(authenticator, rate_limiter, enforcer, ledger, monitor)

    logger.info(
        f"Gateway services ready (store={type(store).__name__}, "
        f"monitor={'async' if executor is not None else 'inline'})"
    )
    return GatewayServices(
        settings=settings,
        store=store,
        clock=clock,
        ledger=ledger,
        authenticator=authenticator,
        rate_limiter=rate_limiter,
        enforcer=enforcer,
        monitor=monitor,
        keys=keys,
        gateway=gateway,
    )
