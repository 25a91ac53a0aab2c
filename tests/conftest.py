"""Pytest configuration and shared fixtures."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from keygate.clock import FrozenClock  # noqa: E402
from keygate.plans.config import PlanStatus, PlanTier  # noqa: E402
from keygate.plans.models import PlanState  # noqa: E402
from keygate.settings import Settings  # noqa: E402
from keygate.stores.memory import MemoryStore  # noqa: E402

START = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
CYCLE_START = datetime(2026, 3, 1, tzinfo=timezone.utc)


def make_plan(account_id="acct_1", tier=PlanTier.FREE, status=PlanStatus.ACTIVE, **overrides):
    plan = PlanState.for_tier(
        account_id,
        tier,
        status=status,
        cycle_start=CYCLE_START,
        cycle_end=CYCLE_START + timedelta(days=31),
    )
    for name, value in overrides.items():
        setattr(plan, name, value)
    return plan


def seed_account(services, account_id="acct_1", tier=PlanTier.FREE, status=PlanStatus.ACTIVE, **overrides):
    """Save a plan and issue one key for it. Returns the plaintext key."""
    plan = make_plan(account_id, tier, status, **overrides)
    services.store.save_plan(plan)
    issued = services.keys.issue_key(account_id, "default")
    return issued.key


@pytest.fixture
def clock():
    return FrozenClock(START)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def settings():
    return Settings(_env_file=None, store_backend="memory", monitor_workers=0, log_format="console")


@pytest.fixture
def services(settings, store, clock):
    from keygate.services import build_services

    services = build_services(settings=settings, store=store, clock=clock, executor=None)
    yield services
    services.shutdown()
