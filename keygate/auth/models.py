"""API key records and authenticated identities."""

import hashlib
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


def hash_key(plaintext: str) -> str:
    """SHA-256 digest under which a key secret is stored and looked up."""
    return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()


@dataclass
class APIKey:
    """A stored API key. Only the hash of the secret is persisted."""

    key_id: str
    account_id: str
    name: str
    key_hash: str
    key_prefix: str = ""
    is_active: bool = True
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    usage_count: int = 0

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def to_dict(self) -> dict:
        return {
            "key_id": self.key_id,
            "account_id": self.account_id,
            "name": self.name,
            "key_prefix": self.key_prefix,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
            "usage_count": self.usage_count,
        }


@dataclass(frozen=True)
class AuthIdentity:
    """Who a request is acting as once its credential is accepted."""

    key_id: str
    account_id: str
    key_name: str = ""
