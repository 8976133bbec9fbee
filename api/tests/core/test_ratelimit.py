"""Unit tests for core.ratelimit module.

Tests rate limiting utilities:
- _get_request_identifier returns user-based or IP-based key
- rate_limit_exceeded_handler returns proper 429 JSON response
"""

import json
from unittest.mock import MagicMock

import pytest
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request

from core.ratelimit import (
    CERTIFICATE_LIMIT,
    FEEDBACK_LIMIT,
    VERIFY_LIMIT,
    _get_request_identifier,
    rate_limit_exceeded_handler,
)


def _make_rate_limit_exc(
    detail: str = "5 per 1 minute", retry_after: int = 30
) -> RateLimitExceeded:
    """Create a RateLimitExceeded with a mock Limit object."""
    mock_limit = MagicMock()
    mock_limit.error_message = None
    mock_limit.limit = detail
    exc = RateLimitExceeded(mock_limit)
    object.__setattr__(exc, "retry_after", retry_after)
    return exc


def _make_request(session: dict | None = None, client_ip: str = "10.0.0.7") -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/api/feedback",
        "headers": [],
        "client": (client_ip, 51234),
    }
    if session is not None:
        scope["session"] = session
    return Request(scope)


@pytest.mark.unit
class TestGetRequestIdentifier:
    def test_uses_user_resolved_by_auth(self):
        request = _make_request()
        request.state.user_id = "user_abc"

        assert _get_request_identifier(request) == "user:user_abc"

    def test_uses_session_user(self):
        request = _make_request(session={"user_id": "user_xyz"})

        assert _get_request_identifier(request) == "user:user_xyz"

    def test_falls_back_to_client_ip(self):
        request = _make_request(session={}, client_ip="192.168.1.1")

        assert _get_request_identifier(request) == "192.168.1.1"

    def test_ip_without_session_middleware(self):
        assert _get_request_identifier(_make_request()) == "10.0.0.7"


@pytest.mark.unit
class TestRateLimitExceededHandler:
    def test_returns_429_with_retry_after(self):
        response = rate_limit_exceeded_handler(
            _make_request(), _make_rate_limit_exc(retry_after=30)
        )

        assert response.status_code == 429
        assert response.headers.get("Retry-After") == "30"

    def test_response_body(self):
        response = rate_limit_exceeded_handler(
            _make_request(), _make_rate_limit_exc(detail="10 per 1 minute")
        )

        body = json.loads(response.body)
        assert "Rate limit exceeded" in body["detail"]
        assert body["code"] == "rate_limited"
        assert body["retry_after"] == "10 per 1 minute"


@pytest.mark.unit
def test_endpoint_limits():
    assert FEEDBACK_LIMIT == "10/minute"
    assert CERTIFICATE_LIMIT == "10/minute"
    assert VERIFY_LIMIT == "30/minute"
