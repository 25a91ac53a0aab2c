"""API Request/Response Models."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class APIKeyCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    expires_in_days: Optional[int] = Field(default=None, ge=1, le=3650)


class APIKeyResponse(BaseModel):
    key_id: str
    name: str
    key: Optional[str] = None  # Only returned on creation
    key_prefix: str = ""
    is_active: bool = True
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    usage_count: int = 0


class KindUsage(BaseModel):
    used: int
    limit: int
    percentage: Optional[float] = None
    cost: float = 0.0


class UsageWarningResponse(BaseModel):
    type: str
    message: str
    severity: str


class UsageResponse(BaseModel):
    """Cycle-to-date usage for the calling account."""

    account_id: str
    tier: str
    status: str
    cycle_start: str
    cycle_end: Optional[str] = None
    usage: dict[str, KindUsage]
    total_cost: float
    warnings: list[UsageWarningResponse] = Field(default_factory=list)
    alerts: list[dict[str, Any]] = Field(default_factory=list)
