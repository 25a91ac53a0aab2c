"""Tests for the gateway request pipeline."""

from datetime import timedelta

import pytest

from keygate.api_errors.config import ErrorCode
from keygate.billing.monitor import CallbackNotificationSink
from keygate.gateway.models import (
    GatewayResponse,
    MeteredOperation,
    RequestContext,
    RequestState,
)
from keygate.ledger.models import CallMetadata, PredictionMetadata
from keygate.plans.config import OperationKind, PlanStatus, PlanTier, PriceClass
from keygate.services import build_services

from conftest import START, make_plan, seed_account

FULL_PATH = [
    RequestState.RECEIVED,
    RequestState.AUTHENTICATED,
    RequestState.RATE_OK,
    RequestState.BALANCE_OK,
    RequestState.DISPATCHED,
    RequestState.METERED,
    RequestState.DONE,
]


def ok_handler(request):
    return {"account": request.account_id}


def make_ctx(key=None, operation=None, path="/v1/quotes", address="10.0.0.7"):
    headers = {"X-API-Key": key} if key else {}
    return RequestContext(
        path=path,
        method="GET",
        headers=headers,
        client_address=address,
        operation=operation if operation is not None else MeteredOperation(),
    )


class DownstreamHTTPError(Exception):
    status_code = 404


class TestGatewayHappyPath:
    def test_full_state_history(self, services):
        key = seed_account(services)
        response = services.gateway.process_request(make_ctx(key), ok_handler)

        assert response.history == FULL_PATH
        assert response.state == RequestState.DONE
        assert response.allowed is True
        assert response.served is True
        assert response.status_code == 200
        assert response.body == {"account": "acct_1"}

    def test_usage_committed_once(self, services):
        key = seed_account(services)
        response = services.gateway.process_request(make_ctx(key), ok_handler)

        entries = services.ledger.entries("acct_1")
        assert len(entries) == 1
        assert entries[0] == response.ledger_entry
        assert entries[0].kind == OperationKind.API_CALL
        assert entries[0].cost == 0.01
        assert services.store.get_plan("acct_1").api_calls_used == 1

    def test_call_metadata_recorded(self, services):
        key = seed_account(services)
        response = services.gateway.process_request(make_ctx(key), ok_handler)

        metadata = response.ledger_entry.metadata
        assert isinstance(metadata, CallMetadata)
        assert metadata.endpoint == "/v1/quotes"
        assert metadata.origin_address == "10.0.0.7"
        assert metadata.credential_id == response.identity.key_id

    def test_prediction_metadata_recorded(self, services):
        key = seed_account(services, tier=PlanTier.BASIC)
        op = MeteredOperation(kind=OperationKind.PREDICTION, price_class=PriceClass.ADVANCED, symbol="AAPL")
        response = services.gateway.process_request(make_ctx(key, op), ok_handler)

        entry = response.ledger_entry
        assert isinstance(entry.metadata, PredictionMetadata)
        assert entry.metadata.symbol == "AAPL"
        assert entry.cost == 0.05
        assert services.store.get_plan("acct_1").predictions_used == 1

    def test_credential_touched(self, services):
        key = seed_account(services)
        response = services.gateway.process_request(make_ctx(key), ok_handler)

        record = services.store.get_key(response.identity.key_id)
        assert record.usage_count == 1
        assert record.last_used_at == START

    def test_rate_limit_headers_on_success(self, services):
        key = seed_account(services)
        response = services.gateway.process_request(make_ctx(key), ok_handler)

        assert response.headers["X-RateLimit-Limit"] == "60"
        assert response.headers["X-RateLimit-Remaining"] == "60"
        assert "X-RateLimit-Reset" in response.headers
        assert "Retry-After" not in response.headers

    def test_unmetered_operation_skips_ledger(self, services):
        key = seed_account(services)
        ctx = make_ctx(key)
        ctx.operation = None
        response = services.gateway.process_request(ctx, ok_handler)

        assert response.history == FULL_PATH
        assert response.ledger_entry is None
        assert services.ledger.entries("acct_1") == []


class TestGatewayRejections:
    def setup_method(self):
        self.calls = 0

    def handler(self, request):
        self.calls += 1
        return {"ok": True}

    def _assert_untouched(self, services, response: GatewayResponse):
        assert response.state == RequestState.REJECTED
        assert response.allowed is False
        assert self.calls == 0
        assert services.ledger.entries("acct_1") == []
        plan = services.store.get_plan("acct_1")
        if plan is not None:
            assert plan.api_calls_used == 0

    def test_missing_credential(self, services):
        seed_account(services)
        response = services.gateway.process_request(make_ctx(None), self.handler)

        assert response.rejection_reason == ErrorCode.MISSING_CREDENTIAL
        assert response.status_code == 401
        assert response.history == [RequestState.RECEIVED, RequestState.REJECTED]
        assert response.headers["X-RateLimit-Limit"] == "60"
        self._assert_untouched(services, response)

    def test_invalid_credential(self, services):
        seed_account(services)
        response = services.gateway.process_request(make_ctx("pk_not-a-real-key"), self.handler)

        assert response.rejection_reason == ErrorCode.INVALID_CREDENTIAL
        assert response.status_code == 401
        self._assert_untouched(services, response)

    def test_deactivated_credential(self, services):
        key = seed_account(services)
        record = services.keys.list_keys("acct_1")[0]
        services.keys.deactivate_key("acct_1", record.key_id)

        response = services.gateway.process_request(make_ctx(key), self.handler)
        assert response.rejection_reason == ErrorCode.INACTIVE_CREDENTIAL
        self._assert_untouched(services, response)
        assert services.store.get_key(record.key_id).usage_count == 0

    def test_expired_credential(self, services, clock):
        services.store.save_plan(make_plan("acct_1"))
        issued = services.keys.issue_key("acct_1", "short", expires_at=START + timedelta(hours=1))
        assert services.gateway.process_request(make_ctx(issued.key), self.handler).allowed
        self.calls = 0

        clock.advance(hours=2)
        response = services.gateway.process_request(make_ctx(issued.key), self.handler)
        assert response.rejection_reason == ErrorCode.EXPIRED_CREDENTIAL
        assert response.status_code == 401
        assert self.calls == 0

    def test_inactive_plan(self, services):
        key = seed_account(services, status=PlanStatus.CANCELLED)
        response = services.gateway.process_request(make_ctx(key), self.handler)

        assert response.rejection_reason == ErrorCode.INACTIVE_PLAN
        assert response.status_code == 403
        self._assert_untouched(services, response)

    def test_rate_limited_on_sixty_first_request(self, services):
        key = seed_account(services)
        for _ in range(60):
            assert services.gateway.process_request(make_ctx(key), self.handler).allowed

        response = services.gateway.process_request(make_ctx(key), self.handler)
        assert response.rejection_reason == ErrorCode.RATE_LIMITED
        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.rejection_payload()["retryAfter"] == 60
        assert self.calls == 60
        assert len(services.ledger.entries("acct_1")) == 60

    def test_rate_limited_request_leaves_key_untouched(self, services, clock):
        key = seed_account(services)
        for _ in range(60):
            services.gateway.process_request(make_ctx(key), self.handler)
        key_id = services.keys.list_keys("acct_1")[0].key_id
        assert services.store.get_key(key_id).usage_count == 60

        clock.advance(1)
        response = services.gateway.process_request(make_ctx(key), self.handler)
        assert response.rejection_reason == ErrorCode.RATE_LIMITED
        record = services.store.get_key(key_id)
        assert record.usage_count == 60
        assert record.last_used_at == START

    def test_rate_window_slides(self, services, clock):
        key = seed_account(services)
        for _ in range(60):
            services.gateway.process_request(make_ctx(key), self.handler)
        clock.advance(61)
        assert services.gateway.process_request(make_ctx(key), self.handler).allowed

    def test_insufficient_balance(self, services):
        key = seed_account(services, predictions_used=5)
        op = MeteredOperation(kind=OperationKind.PREDICTION)
        response = services.gateway.process_request(make_ctx(key, op), self.handler)

        assert response.rejection_reason == ErrorCode.INSUFFICIENT_BALANCE
        assert response.status_code == 402
        assert response.history[-1] == RequestState.REJECTED
        assert RequestState.RATE_OK in response.history
        assert response.rejection_payload() == {
            "error": "insufficient_balance",
            "message": "Insufficient balance or usage allowance",
            "availableBalance": 0.0,
            "costPerPrediction": 0.01,
            "totalCost": 0.01,
        }
        assert self.calls == 0
        assert services.ledger.entries("acct_1") == []
        assert services.keys.list_keys("acct_1")[0].usage_count == 0

    def test_balance_rejection_leaves_key_untouched(self, services):
        key = seed_account(services, tier=PlanTier.BASIC, predictions_used=50)
        op = MeteredOperation(kind=OperationKind.PREDICTION)
        response = services.gateway.process_request(make_ctx(key, op), self.handler)
        assert response.rejection_reason == ErrorCode.INSUFFICIENT_BALANCE
        record = services.keys.list_keys("acct_1")[0]
        assert record.usage_count == 0
        assert record.last_used_at is None

class TestGatewayDownstream:
    def test_handler_exception_not_metered(self, services):
        key = seed_account(services)

        def broken(request):
            raise ValueError("upstream exploded")

        response = services.gateway.process_request(make_ctx(key), broken)
        assert response.state == RequestState.DISPATCHED
        assert response.rejection_reason == ErrorCode.DOWNSTREAM_ERROR
        assert response.status_code == 500
        assert isinstance(response.error, ValueError)
        assert services.ledger.entries("acct_1") == []
        assert services.store.get_plan("acct_1").api_calls_used == 0

    def test_handler_status_passed_through(self, services):
        key = seed_account(services)

        def missing(request):
            raise DownstreamHTTPError("no such symbol")

        response = services.gateway.process_request(make_ctx(key), missing)
        assert response.status_code == 404
        assert response.served is False

    def test_error_result_not_metered(self, services):
        key = seed_account(services)

        class Result:
            status_code = 503

        response = services.gateway.process_request(make_ctx(key), lambda request: Result())
        assert response.state == RequestState.DISPATCHED
        assert response.status_code == 503
        assert services.ledger.entries("acct_1") == []

    def test_commit_failure_still_completes(self, services, monkeypatch):
        key = seed_account(services)

        def fail(*args, **kwargs):
            raise RuntimeError("ledger offline")

        monkeypatch.setattr(services.enforcer, "commit_usage", fail)
        response = services.gateway.process_request(make_ctx(key), ok_handler)
        assert response.state == RequestState.DONE
        assert response.ledger_entry is None


class TestGatewayEnterprise:
    def test_never_rate_limited(self, services):
        key = seed_account(services, tier=PlanTier.ENTERPRISE)
        for _ in range(500):
            response = services.gateway.process_request(make_ctx(key), ok_handler)
            assert response.allowed
        assert response.headers["X-RateLimit-Limit"] == "unlimited"

    def test_never_insufficient_balance(self, services):
        key = seed_account(services, tier=PlanTier.ENTERPRISE)
        op = MeteredOperation(kind=OperationKind.PREDICTION, quantity=50_000)
        response = services.gateway.process_request(make_ctx(key, op), ok_handler)
        assert response.state == RequestState.DONE
        # Unlimited plans are not counted
        assert services.store.get_plan("acct_1").predictions_used == 0


class TestGatewayBillingAlerts:
    def test_threshold_crossing_notifies(self, settings, store, clock):
        alerts = []
        services = build_services(
            settings=settings, store=store, clock=clock,
            sink=CallbackNotificationSink(alerts.append), executor=None,
        )
        key = seed_account(services, tier=PlanTier.ENTERPRISE)
        op = MeteredOperation(
            kind=OperationKind.PREDICTION, quantity=10_000, price_class=PriceClass.INSTITUTIONAL
        )
        services.gateway.process_request(make_ctx(key, op), ok_handler)
        services.gateway.process_request(make_ctx(key, op), ok_handler)
        services.shutdown()

        assert len(alerts) == 1
        assert alerts[0].accumulated_cost == 1000.0
        assert alerts[0].account_id == "acct_1"


class TestGatewayHooks:
    def test_hooks_called_in_order(self, services):
        key = seed_account(services)
        seen = []
        services.gateway.add_pre_hook(lambda ctx, req, reader: seen.append(("pre", req.account_id)))
        services.gateway.add_post_hook(
            lambda ctx, resp, reader: seen.append(("post", len(reader.entries("acct_1"))))
        )
        services.gateway.process_request(make_ctx(key), ok_handler)
        assert seen == [("pre", "acct_1"), ("post", 1)]

    def test_hook_errors_are_contained(self, services):
        key = seed_account(services)

        def bad_hook(*args):
            raise RuntimeError("hook failed")

        services.gateway.add_pre_hook(bad_hook)
        services.gateway.add_post_hook(bad_hook)
        response = services.gateway.process_request(make_ctx(key), ok_handler)
        assert response.state == RequestState.DONE

    def test_hooks_skipped_on_rejection(self, services):
        seen = []
        services.gateway.add_pre_hook(lambda *args: seen.append("pre"))
        response = services.gateway.process_request(make_ctx(None), ok_handler)
        assert response.state == RequestState.REJECTED
        assert seen == []


class TestGatewayHealth:
    def test_health(self, services):
        health = services.gateway.get_health()
        assert health["gateway"] == "healthy"
        assert health["monitor"] == "inline"
        assert health["rate_window_seconds"] == "60"


@pytest.mark.parametrize("tier,limit", [(PlanTier.BASIC, "600"), (PlanTier.PROFESSIONAL, "6000")])
def test_tier_rate_ceiling_in_headers(services, tier, limit):
    key = seed_account(services, tier=tier)
    response = services.gateway.process_request(make_ctx(key), ok_handler)
    assert response.headers["X-RateLimit-Limit"] == limit
