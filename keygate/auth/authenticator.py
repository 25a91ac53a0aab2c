"""Credential extraction and API key authentication."""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from keygate.api_errors.config import ErrorCode
from keygate.auth.models import AuthIdentity, hash_key
from keygate.clock import DEFAULT_CLOCK, Clock
from keygate.plans.models import PlanState
from keygate.stores.base import KeyStore, StoreUnavailableError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"
AUTHORIZATION_HEADER = "authorization"
BEARER_PREFIX = "bearer "

AUTH_MESSAGES = {
    ErrorCode.MISSING_CREDENTIAL: "API key required",
    ErrorCode.INVALID_CREDENTIAL: "Invalid API key",
    ErrorCode.INACTIVE_CREDENTIAL: "API key is inactive",
    ErrorCode.EXPIRED_CREDENTIAL: "API key has expired",
    ErrorCode.INACTIVE_PLAN: "Subscription is not active",
    ErrorCode.INFRASTRUCTURE_FAULT: "Authentication is temporarily unavailable",
}


def extract_credential(headers: Mapping[str, str]) -> Optional[str]:
    """Pull the API key from ``X-API-Key`` or an ``Authorization: Bearer`` header.

    Header names are matched case-insensitively and ``X-API-Key`` wins when
    both are present. Blank values count as absent.
    """
    lowered = {k.lower(): v for k, v in headers.items()}

    api_key = (lowered.get(API_KEY_HEADER) or "").strip()
    if api_key:
        return api_key

    auth = (lowered.get(AUTHORIZATION_HEADER) or "").strip()
    if auth.lower().startswith(BEARER_PREFIX):
        token = auth[len(BEARER_PREFIX):].strip()
        return token or None
    return None


@dataclass
class AuthResult:
    """Outcome of authenticating one credential."""

    identity: Optional[AuthIdentity] = None
    plan: Optional[PlanState] = None
    error: Optional[ErrorCode] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None and self.identity is not None

    @classmethod
    def rejected(cls, error: ErrorCode) -> "AuthResult":
        return cls(error=error, message=AUTH_MESSAGES.get(error, error.value))


class KeyAuthenticator:
    """Resolves a presented credential to an account and its plan."""

    def __init__(self, store: KeyStore, clock: Clock = DEFAULT_CLOCK) -> None:
        self.store = store
        self.clock = clock

    def authenticate(self, credential: Optional[str]) -> AuthResult:
        if not credential:
            return AuthResult.rejected(ErrorCode.MISSING_CREDENTIAL)

        try:
            found = self.store.find_key(hash_key(credential))
        except StoreUnavailableError as exc:
            logger.error(f"Key lookup failed: {exc}")
            return AuthResult.rejected(ErrorCode.INFRASTRUCTURE_FAULT)

        if found is None:
            return AuthResult.rejected(ErrorCode.INVALID_CREDENTIAL)

        key, plan = found
        now = self.clock.now()
        if not key.is_active:
            return AuthResult.rejected(ErrorCode.INACTIVE_CREDENTIAL)
        if key.is_expired(now):
            return AuthResult.rejected(ErrorCode.EXPIRED_CREDENTIAL)
        if plan is None or not plan.is_active:
            return AuthResult.rejected(ErrorCode.INACTIVE_PLAN)

        identity = AuthIdentity(key_id=key.key_id, account_id=key.account_id, key_name=key.name)
        return AuthResult(identity=identity, plan=plan)

    def record_use(self, identity: AuthIdentity) -> None:
        """Stamp last use and bump the lifetime counter of an accepted key.

        Called only once a request has passed every check.
        """
        try:
            self.store.touch_key(identity.key_id, self.clock.now())
        except StoreUnavailableError as exc:
            logger.warning(f"Could not record usage of key {identity.key_id}: {exc}")
