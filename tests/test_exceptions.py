"""Tests for the exception hierarchy and HTTP error mapping."""

from __future__ import annotations

import builtins

import httpx
import pytest

from gradium.exceptions import (
    APIError,
    AuthenticationError,
    ConnectionError,
    GradiumError,
    InternalServerError,
    NotFoundError,
    NotReadyError,
    RateLimitError,
    SessionClosedError,
    TimeoutError,
    ValidationError,
    WebSocketError,
    raise_for_response,
)


def response(status: int, json=None, text: str | None = None, headers=None) -> httpx.Response:
    request = httpx.Request("GET", "https://eu.api.gradium.ai/api/voices/")
    if json is not None:
        return httpx.Response(status, json=json, headers=headers, request=request)
    return httpx.Response(status, text=text or "", headers=headers, request=request)


class TestHierarchy:
    """All library errors share a base class."""

    @pytest.mark.parametrize(
        "error",
        [
            AuthenticationError(),
            APIError(418, "teapot"),
            NotFoundError(),
            RateLimitError(),
            InternalServerError(),
            WebSocketError("boom", 1),
            NotReadyError("not ready"),
            ConnectionError(),
            SessionClosedError("closed"),
            TimeoutError(),
            ValidationError([]),
        ],
    )
    def test_is_gradium_error(self, error: Exception) -> None:
        assert isinstance(error, GradiumError)

    def test_not_ready_is_websocket_error(self) -> None:
        assert issubclass(NotReadyError, WebSocketError)

    def test_timeout_is_builtin_timeout(self) -> None:
        assert isinstance(TimeoutError(), builtins.TimeoutError)

    def test_connection_error_fields(self) -> None:
        error = ConnectionError("closed", code=1011, reason="server crash")
        assert error.code == 1011
        assert error.reason == "server crash"


class TestRaiseForResponse:
    """Tests for raise_for_response."""

    def test_success_passes(self) -> None:
        raise_for_response(response(200, json={"ok": True}))
        raise_for_response(response(204))

    def test_validation_error(self) -> None:
        body = {
            "detail": [
                {"loc": ["body", "name"], "msg": "field required", "type": "missing"},
                {"loc": ["query", "limit"], "msg": "must be positive", "type": "value_error"},
            ]
        }
        with pytest.raises(ValidationError) as exc_info:
            raise_for_response(response(422, json=body))

        assert str(exc_info.value) == "body.name: field required; query.limit: must be positive"
        assert exc_info.value.status == 422
        assert len(exc_info.value.errors) == 2

    @pytest.mark.parametrize("status", [401, 403])
    def test_authentication(self, status: int) -> None:
        with pytest.raises(AuthenticationError, match="Invalid API key"):
            raise_for_response(response(status, json={"detail": "Invalid API key"}))

    def test_not_found(self) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            raise_for_response(response(404, json={"detail": "Voice not found"}))
        assert exc_info.value.status == 404
        assert str(exc_info.value) == "Voice not found"

    def test_rate_limit_with_retry_after(self) -> None:
        with pytest.raises(RateLimitError) as exc_info:
            raise_for_response(
                response(429, json={"detail": "Slow down"}, headers={"retry-after": "30"})
            )
        assert exc_info.value.retry_after == 30
        assert str(exc_info.value) == "Slow down"

    def test_rate_limit_bad_retry_after(self) -> None:
        with pytest.raises(RateLimitError) as exc_info:
            raise_for_response(response(429, text="", headers={"retry-after": "soon"}))
        assert exc_info.value.retry_after is None
        assert str(exc_info.value) == "Rate limit exceeded"

    @pytest.mark.parametrize("status", [500, 502, 503])
    def test_server_errors(self, status: int) -> None:
        with pytest.raises(InternalServerError) as exc_info:
            raise_for_response(response(status, text="upstream down"))
        assert exc_info.value.status == status

    def test_other_status(self) -> None:
        with pytest.raises(APIError) as exc_info:
            raise_for_response(response(400, json={"detail": "Bad file", "hint": "wav only"}))
        assert exc_info.value.status == 400
        assert str(exc_info.value) == "Bad file"
        assert exc_info.value.body == {"detail": "Bad file", "hint": "wav only"}

    def test_non_json_body(self) -> None:
        with pytest.raises(APIError) as exc_info:
            raise_for_response(response(409, text="conflict"))
        assert exc_info.value.body == "conflict"
        assert str(exc_info.value) == "API error (409)"
