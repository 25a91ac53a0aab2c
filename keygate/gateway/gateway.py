"""Gateway orchestrator: authenticate, rate limit, check balance, dispatch, meter."""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from keygate.api_errors.config import ErrorCode, status_for
from keygate.auth.authenticator import KeyAuthenticator, extract_credential
from keygate.billing.enforcer import BalanceEnforcer
from keygate.billing.monitor import BillingThresholdMonitor
from keygate.gateway.config import DEFAULT_GATEWAY_CONFIG, GatewayConfig
from keygate.gateway.models import (
    AuthorizedRequest,
    GatewayResponse,
    RequestContext,
    RequestState,
)
from keygate.ledger.ledger import LedgerReader, UsageLedger
from keygate.logging_config.context import LogContext, bind_context, get_correlation_id
from keygate.rate_limit.limiter import (
    SlidingWindowRateLimiter,
    rate_limit_headers,
    rate_limit_key,
)

logger = logging.getLogger(__name__)

Handler = Callable[[AuthorizedRequest], Any]
PreHook = Callable[[RequestContext, AuthorizedRequest, LedgerReader], None]
PostHook = Callable[[RequestContext, GatewayResponse, LedgerReader], None]


class APIGateway:
    """Runs each request through the access pipeline.

    Pipeline:
    1. Authenticate the credential
    2. Rate limit on the credential
    3. Check balance for the metered operation, if any
    4. Pre-hooks, then the downstream handler
    5. Commit usage and schedule the billing threshold check
    6. Post-hooks

    Any failed check ends the request in ``REJECTED`` with nothing written.
    """

    def __init__(
        self,
        authenticator: KeyAuthenticator,
        rate_limiter: SlidingWindowRateLimiter,
        enforcer: BalanceEnforcer,
        ledger: UsageLedger,
        monitor: BillingThresholdMonitor,
        config: Optional[GatewayConfig] = None,
    ) -> None:
        self._authenticator = authenticator
        self._rate_limiter = rate_limiter
        self._enforcer = enforcer
        self._ledger = ledger
        self._monitor = monitor
        self._config = config or DEFAULT_GATEWAY_CONFIG
        self._hooks_pre: List[PreHook] = []
        self._hooks_post: List[PostHook] = []

    # ── request processing ───────────────────────────────────────────

    def process_request(self, ctx: RequestContext, handler: Handler) -> GatewayResponse:
        start = time.monotonic()
        response = GatewayResponse()
        log_ctx = LogContext(
            request_id=ctx.request_id,
            correlation_id=get_correlation_id() or ctx.request_id,
        )
        with log_ctx:
            try:
                self._run(ctx, handler, response)
            finally:
                self._log_outcome(ctx, response, start)
        return response

    def _log_outcome(self, ctx: RequestContext, response: GatewayResponse, start: float) -> None:
        duration_ms = (time.monotonic() - start) * 1000
        level = logging.WARNING if duration_ms > self._config.slow_request_ms else logging.INFO
        logger.log(
            level,
            f"{ctx.method} {ctx.path} -> {response.state.value}",
            extra={
                "state": response.state.value,
                "rejection": response.rejection_reason.value if response.rejection_reason else None,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )

    def _run(self, ctx: RequestContext, handler: Handler, response: GatewayResponse) -> None:
        # 1. Authentication
        auth = self._authenticator.authenticate(extract_credential(ctx.headers))
        if not auth.ok:
            if self._config.peek_on_auth_failure:
                peek = self._rate_limiter.peek(rate_limit_key(None, ctx.client_address))
                response.headers.update(rate_limit_headers(peek))
            self._reject(response, auth.error, auth.message)
            return
        identity, plan = auth.identity, auth.plan
        response.identity = identity
        bind_context(account_id=identity.account_id, key_id=identity.key_id)
        response.advance(RequestState.AUTHENTICATED)

        # 2. Rate limiting
        rate = self._rate_limiter.check(rate_limit_key(identity.key_id, ctx.client_address), plan.tier)
        response.rate_limit = rate
        response.headers.update(rate_limit_headers(rate))
        if not rate.allowed:
            self._reject(response, ErrorCode.RATE_LIMITED, "Rate limit exceeded")
            return
        response.advance(RequestState.RATE_OK)

        # 3. Balance
        op = ctx.operation
        balance = None
        if op is not None:
            balance = self._enforcer.check_balance(
                identity.account_id, op.kind, op.quantity, op.price_class, op.export_format
            )
            response.balance = balance
            if not balance.allowed:
                message = "Insufficient balance or usage allowance"
                if balance.error == ErrorCode.INFRASTRUCTURE_FAULT:
                    message = "Balance could not be verified"
                self._reject(response, ErrorCode.INSUFFICIENT_BALANCE, message)
                return
            plan = balance.plan or plan
        response.advance(RequestState.BALANCE_OK)
        self._authenticator.record_use(identity)

        # 4. Dispatch
        authorized = AuthorizedRequest(context=ctx, identity=identity, plan=plan, balance=balance)
        reader = self._ledger.reader()
        for hook in self._hooks_pre:
            try:
                hook(ctx, authorized, reader)
            except Exception as exc:
                logger.error(f"Pre-hook error: {exc}")

        response.advance(RequestState.DISPATCHED)
        try:
            result = handler(authorized)
        except Exception as exc:
            logger.warning(f"Downstream handler failed: {type(exc).__name__}: {exc}")
            response.allowed = False
            response.rejection_reason = ErrorCode.DOWNSTREAM_ERROR
            response.status_code = getattr(exc, "status_code", None) or status_for(ErrorCode.DOWNSTREAM_ERROR)
            response.error = exc
            return

        response.body = result
        result_status = getattr(result, "status_code", None)
        if isinstance(result_status, int) and result_status >= 400:
            response.allowed = False
            response.rejection_reason = ErrorCode.DOWNSTREAM_ERROR
            response.status_code = result_status
            return
        if isinstance(result_status, int):
            response.status_code = result_status

        # 5. Metering
        if op is not None:
            try:
                entry = self._enforcer.commit_usage(
                    identity.account_id,
                    op.kind,
                    op.quantity,
                    op.price_class,
                    op.export_format,
                    metadata=op.build_metadata(ctx, identity.key_id),
                )
            except Exception as exc:
                logger.error(f"Usage commit failed for {identity.account_id}: {exc}", exc_info=True)
            else:
                response.ledger_entry = entry
                self._monitor.schedule(identity.account_id, entry.cost, entry.entry_id)
        response.advance(RequestState.METERED)

        # 6. Post-hooks
        for hook in self._hooks_post:
            try:
                hook(ctx, response, reader)
            except Exception as exc:
                logger.error(f"Post-hook error: {exc}")
        response.advance(RequestState.DONE)

    def _reject(self, response: GatewayResponse, reason: ErrorCode, message: str) -> None:
        response.allowed = False
        response.rejection_reason = reason
        response.message = message
        response.status_code = status_for(reason)
        response.advance(RequestState.REJECTED)

    # ── hooks ────────────────────────────────────────────────────────

    def add_pre_hook(self, func: PreHook) -> None:
        """Register a hook called after all checks pass, before the handler."""
        self._hooks_pre.append(func)

    def add_post_hook(self, func: PostHook) -> None:
        """Register a hook called after usage is committed."""
        self._hooks_post.append(func)

    # ── health ───────────────────────────────────────────────────────

    def get_health(self) -> Dict[str, str]:
        return {
            "gateway": "healthy",
            "rate_window_seconds": str(self._rate_limiter.config.window_seconds),
            "billing_threshold": str(self._monitor.config.billing_threshold),
            "monitor": "async" if self._monitor.executor is not None else "inline",
        }

    # ── properties for external access ───────────────────────────────

    @property
    def authenticator(self) -> KeyAuthenticator:
        return self._authenticator

    @property
    def rate_limiter(self) -> SlidingWindowRateLimiter:
        return self._rate_limiter

    @property
    def enforcer(self) -> BalanceEnforcer:
        return self._enforcer

    @property
    def ledger(self) -> UsageLedger:
        return self._ledger

    @property
    def monitor(self) -> BillingThresholdMonitor:
        return self._monitor
