"""Custom exception classes for the gradium SDK.

Streaming sessions raise the WebSocket-side errors (``WebSocketError``,
``ConnectionError``, ``SessionClosedError``, ``NotReadyError``,
``ProtocolDecodeError``). REST resources go through ``raise_for_response``,
which maps an HTTP error response to the matching ``APIError`` subclass.
"""

from __future__ import annotations

import builtins
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)


class GradiumError(Exception):
    """Base error for this library."""


class AuthenticationError(GradiumError):
    """Raised when the API key is missing or rejected."""

    def __init__(self, message: str = "Invalid or missing API key") -> None:
        super().__init__(message)


class ConfigurationError(GradiumError):
    """Raised when client configuration is invalid."""


class ValidationError(GradiumError):
    """Raised when the API rejects a request body (HTTP 422).

    Attributes:
        status: Always 422.
        errors: Detail entries as returned by the API, each with ``loc``,
            ``msg`` and ``type`` keys.
    """

    status = 422

    def __init__(self, errors: list[dict[str, Any]], message: str | None = None) -> None:
        super().__init__(message or self.format_errors(errors))
        self.errors = errors

    @staticmethod
    def format_errors(errors: list[dict[str, Any]]) -> str:
        parts = []
        for error in errors:
            loc = ".".join(str(p) for p in error.get("loc", []))
            parts.append(f"{loc}: {error.get('msg', '')}")
        return "; ".join(parts)


class APIError(GradiumError):
    """Raised when the API returns an error status.

    Attributes:
        status: HTTP status code.
        body: Decoded response body, if any.
    """

    def __init__(self, status: int, message: str, body: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class NotFoundError(APIError):
    """Raised on HTTP 404."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(404, message)


class RateLimitError(APIError):
    """Raised on HTTP 429.

    Attributes:
        retry_after: Seconds to wait, from the ``retry-after`` header.
    """

    def __init__(self, message: str = "Rate limit exceeded", retry_after: int | None = None) -> None:
        super().__init__(429, message)
        self.retry_after = retry_after


class InternalServerError(APIError):
    """Raised on HTTP 5xx."""

    def __init__(self, status: int = 500, message: str = "Internal server error") -> None:
        super().__init__(status, message)


class WebSocketError(GradiumError):
    """Raised when the remote side of a streaming session reports an error.

    Attributes:
        code: Numeric error code from the error envelope, if any.
    """

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class NotReadyError(WebSocketError):
    """Raised when input is sent to a session that is not active."""


class ConnectionError(GradiumError):  # noqa: A001
    """Raised when the transport fails or closes unexpectedly.

    Attributes:
        code: Close code reported by the transport, if known.
        reason: Close reason reported by the transport.
    """

    def __init__(
        self,
        message: str = "Failed to connect to the API",
        code: int | None = None,
        reason: str = "",
    ) -> None:
        super().__init__(message)
        self.code = code
        self.reason = reason


class SessionClosedError(GradiumError):
    """Raised to waiters of a session that was closed locally before it ended."""


class ProtocolDecodeError(GradiumError):
    """Raised when an inbound message is not a well-formed envelope."""


class TimeoutError(GradiumError, builtins.TimeoutError):  # noqa: A001
    """Raised when a request times out."""

    def __init__(self, message: str = "Request timed out") -> None:
        super().__init__(message)


# =============================================================================
# HTTP status mapping
# =============================================================================


def _detail_message(body: Any, default: str) -> str:
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return default


def raise_for_response(response: httpx.Response) -> None:
    """Raise the error matching a failed HTTP response.

    Successful responses (2xx) are returned from silently.

    Args:
        response: Response returned by ``httpx``.

    Raises:
        ValidationError: On 422 with a ``detail`` list.
        AuthenticationError: On 401 and 403.
        NotFoundError: On 404.
        RateLimitError: On 429.
        InternalServerError: On 5xx.
        APIError: On any other error status.
    """
    if response.is_success:
        return

    status = response.status_code
    try:
        body: Any = response.json()
    except ValueError:
        body = response.text or None

    logger.debug("API error response: status=%d body=%r", status, body)

    if status == 422 and isinstance(body, dict) and isinstance(body.get("detail"), list):
        raise ValidationError(body["detail"])

    if status in (401, 403):
        raise AuthenticationError(_detail_message(body, "Authentication failed"))

    if status == 404:
        raise NotFoundError(_detail_message(body, "Resource not found"))

    if status == 429:
        retry_after_header = response.headers.get("retry-after")
        retry_after = None
        if retry_after_header is not None:
            try:
                retry_after = int(retry_after_header)
            except ValueError:
                logger.warning("Ignoring non-integer retry-after header: %r", retry_after_header)
        raise RateLimitError(_detail_message(body, "Rate limit exceeded"), retry_after)

    if status >= 500:
        raise InternalServerError(status, _detail_message(body, f"Server error ({status})"))

    raise APIError(status, _detail_message(body, f"API error ({status})"), body)


__all__ = [
    "GradiumError",
    "AuthenticationError",
    "ConfigurationError",
    "ValidationError",
    "APIError",
    "NotFoundError",
    "RateLimitError",
    "InternalServerError",
    "WebSocketError",
    "NotReadyError",
    "ConnectionError",
    "SessionClosedError",
    "ProtocolDecodeError",
    "TimeoutError",
    "raise_for_response",
]
