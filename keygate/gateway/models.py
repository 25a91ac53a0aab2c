"""Request, operation and response types for the gateway pipeline."""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from keygate.api_errors.config import ErrorCode
from keygate.auth.models import AuthIdentity
from keygate.billing.enforcer import BalanceCheck
from keygate.ledger.models import (
    CallMetadata,
    ExportMetadata,
    LedgerEntry,
    PredictionMetadata,
    UsageMetadata,
)
from keygate.plans.config import ExportFormat, OperationKind, PriceClass
from keygate.plans.models import PlanState
from keygate.rate_limit.limiter import RateLimitResult


class RequestState(str, Enum):
    RECEIVED = "received"
    AUTHENTICATED = "authenticated"
    RATE_OK = "rate_ok"
    BALANCE_OK = "balance_ok"
    DISPATCHED = "dispatched"
    METERED = "metered"
    DONE = "done"
    REJECTED = "rejected"


@dataclass
class MeteredOperation:
    """What a request will consume if it is served."""

    kind: OperationKind = OperationKind.API_CALL
    quantity: int = 1
    price_class: PriceClass = PriceClass.BASIC
    export_format: Optional[ExportFormat] = None
    symbol: Optional[str] = None

    def build_metadata(self, ctx: "RequestContext", key_id: Optional[str]) -> UsageMetadata:
        common = {"origin_address": ctx.client_address, "credential_id": key_id}
        if self.kind == OperationKind.PREDICTION:
            return PredictionMetadata(symbol=self.symbol, price_class=self.price_class, **common)
        if self.kind == OperationKind.EXPORT:
            return ExportMetadata(
                export_format=self.export_format or ExportFormat.CSV,
                size=self.quantity,
                **common,
            )
        return CallMetadata(endpoint=ctx.path, method=ctx.method, **common)


@dataclass
class RequestContext:
    """One inbound request as seen by the pipeline."""

    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    path: str = ""
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    client_address: Optional[str] = None
    operation: Optional[MeteredOperation] = None


@dataclass
class AuthorizedRequest:
    """Handed to the downstream handler once every check has passed."""

    context: RequestContext
    identity: AuthIdentity
    plan: PlanState
    balance: Optional[BalanceCheck] = None

    @property
    def account_id(self) -> str:
        return self.identity.account_id


@dataclass
class GatewayResponse:
    """Result of running one request through the pipeline."""

    state: RequestState = RequestState.RECEIVED
    history: List[RequestState] = field(default_factory=lambda: [RequestState.RECEIVED])
    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    allowed: bool = True
    rejection_reason: Optional[ErrorCode] = None
    message: str = ""
    body: Any = None
    error: Optional[BaseException] = None
    identity: Optional[AuthIdentity] = None
    rate_limit: Optional[RateLimitResult] = None
    balance: Optional[BalanceCheck] = None
    ledger_entry: Optional[LedgerEntry] = None

    def advance(self, state: RequestState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def served(self) -> bool:
        """The downstream handler ran and succeeded."""
        return self.state in (RequestState.METERED, RequestState.DONE)

    def rejection_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.rejection_reason.value if self.rejection_reason else "",
            "message": self.message,
        }
        if self.rejection_reason == ErrorCode.INSUFFICIENT_BALANCE and self.balance is not None:
            payload.update(self.balance.to_payload())
        if self.rejection_reason == ErrorCode.RATE_LIMITED and self.rate_limit is not None:
            payload["retryAfter"] = self.rate_limit.retry_after_seconds
        return payload
