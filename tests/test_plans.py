"""Tests for plan tiers, pricing and plan state."""

from datetime import datetime, timedelta, timezone

import pytest

from keygate.plans.config import (
    DEFAULT_TIERS,
    UNLIMITED,
    ExportFormat,
    OperationKind,
    PlanStatus,
    PlanTier,
    PriceClass,
    get_tier_config,
)
from keygate.plans.models import CycleWindow, PlanState
from keygate.plans.pricing import (
    BULK_DISCOUNT_THRESHOLD,
    apply_bulk_discount,
    total_cost,
    unit_cost,
)


# ── Config Tests ─────────────────────────────────────────────────────


class TestTierConfig:
    def test_tier_values(self):
        assert PlanTier.FREE.value == "free"
        assert PlanTier.BASIC.value == "basic"
        assert PlanTier.PROFESSIONAL.value == "professional"
        assert PlanTier.ENTERPRISE.value == "enterprise"
        assert len(PlanTier) == 4

    def test_rate_ceilings(self):
        assert DEFAULT_TIERS[PlanTier.FREE].requests_per_window == 60
        assert DEFAULT_TIERS[PlanTier.BASIC].requests_per_window == 600
        assert DEFAULT_TIERS[PlanTier.PROFESSIONAL].requests_per_window == 6000
        assert DEFAULT_TIERS[PlanTier.ENTERPRISE].requests_per_window == UNLIMITED

    def test_allowances(self):
        free = get_tier_config(PlanTier.FREE)
        assert (free.api_calls, free.predictions, free.exports) == (1000, 5, 1000)
        basic = get_tier_config(PlanTier.BASIC)
        assert (basic.api_calls, basic.predictions) == (10000, 50)
        pro = get_tier_config(PlanTier.PROFESSIONAL)
        assert (pro.api_calls, pro.predictions) == (100000, 1000)

    def test_key_caps(self):
        assert [DEFAULT_TIERS[t].max_api_keys for t in PlanTier] == [1, 3, 10, UNLIMITED]


class TestPricing:
    def test_price_classes(self):
        assert unit_cost(OperationKind.PREDICTION, PriceClass.BASIC) == 0.01
        assert unit_cost(OperationKind.PREDICTION, PriceClass.ADVANCED) == 0.05
        assert unit_cost(OperationKind.PREDICTION, PriceClass.INSTITUTIONAL) == 0.10
        assert unit_cost(OperationKind.API_CALL) == 0.01

    def test_export_formats(self):
        assert unit_cost(OperationKind.EXPORT, export_format=ExportFormat.CSV) == 0.001
        assert unit_cost(OperationKind.EXPORT, export_format=ExportFormat.JSON) == 0.002
        assert unit_cost(OperationKind.EXPORT, export_format=ExportFormat.XML) == 0.0015
        assert unit_cost(OperationKind.EXPORT, export_format=ExportFormat.EXCEL) == 0.003

    def test_export_defaults_to_csv(self):
        assert unit_cost(OperationKind.EXPORT) == 0.001

    def test_total_cost_rounds(self):
        assert total_cost(0.0015, 3) == 0.0045
        assert total_cost(0.01, 7) == 0.07

    def test_bulk_discount_only_above_threshold(self):
        assert apply_bulk_discount(100.0, BULK_DISCOUNT_THRESHOLD) == 100.0
        assert apply_bulk_discount(100.0, BULK_DISCOUNT_THRESHOLD + 1) == 80.0


# ── Model Tests ──────────────────────────────────────────────────────


class TestPlanState:
    def test_for_tier_copies_allowances(self):
        plan = PlanState.for_tier("a", PlanTier.BASIC)
        assert plan.api_calls_limit == 10000
        assert plan.predictions_limit == 50
        assert plan.exports_limit == UNLIMITED
        assert plan.api_calls_used == 0

    def test_is_active_only_for_active(self):
        assert PlanState.for_tier("a", PlanTier.FREE).is_active
        for status in (PlanStatus.TRIAL, PlanStatus.PAST_DUE, PlanStatus.CANCELLED):
            assert not PlanState.for_tier("a", PlanTier.FREE, status=status).is_active

    def test_allowance_and_consumed_by_kind(self):
        plan = PlanState.for_tier("a", PlanTier.FREE)
        plan.predictions_used = 3
        assert plan.allowance(OperationKind.PREDICTION) == 5
        assert plan.consumed(OperationKind.PREDICTION) == 3
        assert plan.consumed(OperationKind.API_CALL) == 0

    def test_enterprise_is_unlimited_for_every_kind(self):
        plan = PlanState.for_tier("a", PlanTier.ENTERPRISE)
        assert all(plan.has_unlimited(kind) for kind in OperationKind)

    def test_unlimited_sentinel_within_plan(self):
        plan = PlanState.for_tier("a", PlanTier.BASIC)
        assert plan.has_unlimited(OperationKind.EXPORT)
        assert not plan.has_unlimited(OperationKind.PREDICTION)


class TestCycleWindow:
    def test_half_open(self):
        start = datetime(2026, 3, 1, tzinfo=timezone.utc)
        cycle = CycleWindow(start, start + timedelta(days=1))
        assert cycle.contains(start)
        assert cycle.contains(start + timedelta(hours=23))
        assert not cycle.contains(start + timedelta(days=1))
        assert not cycle.contains(start - timedelta(seconds=1))

    def test_open_ended(self):
        start = datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert CycleWindow(start).contains(start + timedelta(days=400))
