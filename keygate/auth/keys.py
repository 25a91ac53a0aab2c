"""API key issuance and lifecycle."""

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from keygate.api_errors.exceptions import KeyLimitExceededError, NotFoundError
from keygate.auth.models import APIKey, hash_key
from keygate.clock import DEFAULT_CLOCK, Clock
from keygate.plans.config import UNLIMITED, PlanTier, get_tier_config
from keygate.stores.base import KeyStore, PlanStore

logger = logging.getLogger(__name__)


@dataclass
class IssuedKey:
    """A newly issued key. ``key`` is the only time the secret is visible."""

    key: str
    record: APIKey


class APIKeyManager:
    """Issues, lists, deactivates and deletes an account's API keys."""

    def __init__(
        self,
        store: KeyStore,
        plans: PlanStore,
        clock: Clock = DEFAULT_CLOCK,
        prefix: str = "pk_",
    ) -> None:
        self.store = store
        self.plans = plans
        self.clock = clock
        self.prefix = prefix

    def issue_key(self, account_id: str, name: str, expires_at: Optional[datetime] = None) -> IssuedKey:
        plan = self.plans.get_plan(account_id)
        tier = plan.tier if plan else PlanTier.FREE
        cap = get_tier_config(tier).max_api_keys
        active = [k for k in self.store.list_keys(account_id) if k.is_active]
        if cap != UNLIMITED and len(active) >= cap:
            raise KeyLimitExceededError(
                f"{tier.value} plan allows at most {cap} active API key(s)", limit=cap
            )

        plaintext = f"{self.prefix}{secrets.token_hex(24)}"
        record = APIKey(
            key_id=uuid.uuid4().hex[:16],
            account_id=account_id,
            name=name,
            key_hash=hash_key(plaintext),
            key_prefix=plaintext[: len(self.prefix) + 8],
            created_at=self.clock.now(),
            expires_at=expires_at,
        )
        self.store.add_key(record)
        logger.info(f"Issued API key {record.key_id} for account {account_id}")
        return IssuedKey(key=plaintext, record=record)

    def list_keys(self, account_id: str) -> List[APIKey]:
        return self.store.list_keys(account_id)

    def _owned(self, account_id: str, key_id: str) -> APIKey:
        key = self.store.get_key(key_id)
        if key is None or key.account_id != account_id:
            raise NotFoundError("API key not found", resource_type="api_key", resource_id=key_id)
        return key

    def deactivate_key(self, account_id: str, key_id: str) -> APIKey:
        key = self._owned(account_id, key_id)
        self.store.set_key_active(key_id, False)
        key.is_active = False
        logger.info(f"Deactivated API key {key_id}")
        return key

    def delete_key(self, account_id: str, key_id: str) -> None:
        self._owned(account_id, key_id)
        self.store.delete_key(key_id)
        logger.info(f"Deleted API key {key_id}")
