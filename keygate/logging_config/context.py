"""Request Context Management.

Request-scoped logging context using contextvars for binding request
IDs, correlation IDs and caller identity to log entries.
"""

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List


_request_id_var: ContextVar[str] = ContextVar("request_id", default="")
_correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
_extra_context_var: ContextVar[Dict[str, Any]] = ContextVar("extra_context", default={})


def generate_request_id() -> str:
    """Generate a unique request ID using UUID4."""
    return str(uuid.uuid4())


def get_request_id() -> str:
    """Get the current request ID from context."""
    return _request_id_var.get()


def get_correlation_id() -> str:
    return _correlation_id_var.get()


def bind_context(**kwargs: Any) -> None:
    """Add key-value pairs to the current logging context.

    Used by the pipeline to attach ``account_id`` and ``key_id`` once a
    credential has been authenticated.
    """
    current = _extra_context_var.get()
    _extra_context_var.set({**current, **kwargs})


def get_context_dict() -> Dict[str, Any]:
    """Get all context variables as a dictionary for log binding."""
    ctx: Dict[str, Any] = {}
    req_id = _request_id_var.get()
    if req_id:
        ctx["request_id"] = req_id
    corr_id = _correlation_id_var.get()
    if corr_id:
        ctx["correlation_id"] = corr_id
    extra = _extra_context_var.get()
    if extra:
        ctx.update(extra)
    return ctx


@dataclass
class LogContext:
    """Context manager for request-scoped logging context.

    Binds request_id and correlation_id to all log entries within the
    context and restores the previous values on exit.

    Example:
        with LogContext(request_id="abc-123"):
            logger.info("processing request")  # includes request_id
    """

    request_id: str = ""
    correlation_id: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    _tokens: List[Any] = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not self.request_id:
            self.request_id = generate_request_id()
        if not self.correlation_id:
            self.correlation_id = self.request_id

    def __enter__(self) -> "LogContext":
        self._tokens = [
            (_request_id_var, _request_id_var.set(self.request_id)),
            (_correlation_id_var, _correlation_id_var.set(self.correlation_id)),
            (_extra_context_var, _extra_context_var.set(self.extra.copy())),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since context was created."""
        delta = datetime.now(timezone.utc) - self.started_at
        return delta.total_seconds() * 1000

    def bind(self, **kwargs: Any) -> None:
        """Add extra key-value pairs to the context."""
        bind_context(**kwargs)
        self.extra.update(kwargs)
