"""Tests for the error taxonomy, exception hierarchy and handlers."""

import pytest

from keygate.api_errors.config import (
    ERROR_SEVERITY_MAP,
    ERROR_STATUS_MAP,
    ErrorCode,
    ErrorConfig,
    status_for,
)
from keygate.api_errors.exceptions import (
    KeyLimitExceededError,
    KeygateAPIError,
    NotFoundError,
    ServiceUnavailableError,
)
from keygate.api_errors.handlers import (
    create_error_response,
    handle_keygate_error,
    handle_unhandled_error,
)
from keygate.logging_config.context import LogContext


class TestErrorTaxonomy:
    def test_every_code_has_status_and_severity(self):
        for code in ErrorCode:
            assert code in ERROR_STATUS_MAP
            assert code in ERROR_SEVERITY_MAP

    @pytest.mark.parametrize("code,status", [
        (ErrorCode.MISSING_CREDENTIAL, 401),
        (ErrorCode.EXPIRED_CREDENTIAL, 401),
        (ErrorCode.INACTIVE_PLAN, 403),
        (ErrorCode.INSUFFICIENT_BALANCE, 402),
        (ErrorCode.RATE_LIMITED, 429),
        (ErrorCode.INFRASTRUCTURE_FAULT, 503),
    ])
    def test_status_codes(self, code, status):
        assert status_for(code) == status

    def test_codes_are_lowercase_strings(self):
        assert ErrorCode.RATE_LIMITED == "rate_limited"


class TestExceptions:
    def test_base_error(self):
        exc = KeygateAPIError("nope", ErrorCode.INACTIVE_PLAN, headers={"X-Reason": "plan"})
        assert exc.status_code == 403
        assert exc.headers == {"X-Reason": "plan"}
        assert str(exc) == "nope"

    def test_not_found(self):
        exc = NotFoundError("API key not found", resource_type="api_key", resource_id="k1")
        assert exc.status_code == 404
        assert exc.details[0]["resource_id"] == "k1"

    def test_key_limit(self):
        exc = KeyLimitExceededError(limit=3)
        assert exc.limit == 3
        assert exc.error_code == ErrorCode.KEY_LIMIT_EXCEEDED

    def test_service_unavailable(self):
        assert ServiceUnavailableError().status_code == 503


class TestHandlers:
    def test_envelope(self):
        body = create_error_response(ErrorCode.NOT_FOUND, "missing", request_id="req-1").to_dict()
        assert body["error"]["code"] == "not_found"
        assert body["error"]["request_id"] == "req-1"
        assert "details" not in body["error"]
        assert body["error"]["timestamp"]

    def test_handle_keygate_error_uses_request_id(self):
        with LogContext(request_id="req-42"):
            response = handle_keygate_error(NotFoundError("gone"))
        assert response.status_code == 404
        assert response.request_id == "req-42"

    def test_custom_messages(self):
        config = ErrorConfig(custom_error_messages={"not_found": "Nothing here"})
        response = handle_keygate_error(NotFoundError("gone"), config)
        assert response.message == "Nothing here"

    def test_unhandled_error_hides_details(self):
        response = handle_unhandled_error(RuntimeError("db password is hunter2"))
        assert response.status_code == 500
        assert response.message == "An internal error occurred"

    def test_unhandled_error_details_when_allowed(self):
        config = ErrorConfig(suppress_internal_details=False)
        response = handle_unhandled_error(RuntimeError("boom"), config)
        assert response.message == "RuntimeError: boom"
