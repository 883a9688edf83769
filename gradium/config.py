"""Client configuration for the gradium SDK.

``ClientConfig`` can be created programmatically or loaded from
``GRADIUM_*`` environment variables. It resolves the REST base URL and the
WebSocket base URL used by the speech sessions.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

from .exceptions import AuthenticationError, ConfigurationError
from .session import DEFAULT_CLOSE_TIMEOUT

logger = logging.getLogger(__name__)

Region = Literal["eu", "us"]

ALLOWED_REGIONS: set[str] = {"eu", "us"}
DEFAULT_REGION: Region = "eu"
DEFAULT_TIMEOUT = 30.0
DEFAULT_OPEN_TIMEOUT = 10.0

API_KEY_HEADER = "x-api-key"


def validate_region(region: str) -> str:
    """
    Validate that region is a supported API region.

    Args:
        region: Requested region (case-insensitive).

    Returns:
        The normalized (lowercase) region.

    Raises:
        ConfigurationError: If region is not one of the allowed values.
    """
    normalized = region.lower()
    if normalized not in ALLOWED_REGIONS:
        allowed = ", ".join(sorted(ALLOWED_REGIONS))
        raise ConfigurationError(f"Invalid region '{region}'. Must be one of: {allowed}")
    return normalized


def api_url_for_region(region: str) -> str:
    return f"https://{region}.api.gradium.ai/api"


def ws_url_for_region(region: str) -> str:
    return f"wss://{region}.api.gradium.ai/api/speech"


@dataclass
class ClientConfig:
    """
    Settings shared by every resource of a ``Gradium`` client.

    Attributes:
        api_key: API key sent in the ``x-api-key`` header.
        region: API region, ``eu`` or ``us``. Ignored when base_url is set.
        base_url: Override for the REST base URL. The WebSocket base URL is
            derived from it by switching the scheme and appending ``/speech``.
        timeout: HTTP request timeout in seconds.
        open_timeout: WebSocket handshake timeout in seconds.
        close_timeout: Seconds a closing session waits for the channel to
            report its close before failing locally.
    """

    api_key: str
    region: str = DEFAULT_REGION
    base_url: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    open_timeout: float = DEFAULT_OPEN_TIMEOUT
    close_timeout: float = DEFAULT_CLOSE_TIMEOUT

    def __post_init__(self) -> None:
        if not self.api_key:
            raise AuthenticationError(
                "API key is required. Pass it via api_key or set GRADIUM_API_KEY environment variable."
            )
        self.region = validate_region(self.region)
        if self.base_url is not None:
            self.base_url = self.base_url.rstrip("/")
        for name in ("timeout", "open_timeout", "close_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")

    @property
    def api_url(self) -> str:
        """Base URL for REST requests."""
        if self.base_url:
            return self.base_url
        return api_url_for_region(self.region)

    @property
    def ws_url(self) -> str:
        """Base URL for speech WebSocket sessions."""
        if self.base_url:
            scheme, sep, rest = self.base_url.partition("://")
            ws_scheme = {"https": "wss", "http": "ws"}.get(scheme, scheme)
            return f"{ws_scheme}{sep}{rest}/speech"
        return ws_url_for_region(self.region)

    @property
    def headers(self) -> dict[str, str]:
        """Default headers for REST requests."""
        return {API_KEY_HEADER: self.api_key, "Accept": "application/json"}

    @property
    def ws_headers(self) -> dict[str, str]:
        """Headers for the WebSocket handshake."""
        return {API_KEY_HEADER: self.api_key}

    @classmethod
    def from_env(
        cls,
        prefix: str = "GRADIUM_",
        env: Mapping[str, str] | None = None,
        **overrides: object,
    ) -> ClientConfig:
        """
        Load configuration from environment variables.

        Environment variables are mapped to config fields:
        - {prefix}API_KEY -> api_key
        - {prefix}REGION -> region
        - {prefix}BASE_URL -> base_url
        - {prefix}TIMEOUT -> timeout

        Keyword overrides that are not None take precedence over the
        environment.

        Args:
            prefix: Environment variable prefix (default: "GRADIUM_").
            env: Environment mapping (defaults to os.environ).
            **overrides: Explicit field values.

        Returns:
            ClientConfig instance.

        Raises:
            AuthenticationError: If no API key is available.
            ConfigurationError: If environment variables contain invalid values.

        Example:
            export GRADIUM_API_KEY=gd_...
            export GRADIUM_REGION=us
        """
        env = os.environ if env is None else env
        values: dict[str, object] = {}

        if api_key := env.get(f"{prefix}API_KEY"):
            values["api_key"] = api_key
        if region := env.get(f"{prefix}REGION"):
            values["region"] = region
        if base_url := env.get(f"{prefix}BASE_URL"):
            values["base_url"] = base_url
        if timeout := env.get(f"{prefix}TIMEOUT"):
            try:
                values["timeout"] = float(timeout)
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid {prefix}TIMEOUT: '{timeout}' (must be a number of seconds)"
                ) from e

        values.update({k: v for k, v in overrides.items() if v is not None})
        values.setdefault("api_key", "")

        config = cls(**values)  # type: ignore[arg-type]
        logger.debug("Loaded client config: region=%s base_url=%s", config.region, config.base_url)
        return config


__all__ = [
    "ClientConfig",
    "Region",
    "ALLOWED_REGIONS",
    "DEFAULT_REGION",
    "DEFAULT_TIMEOUT",
    "DEFAULT_OPEN_TIMEOUT",
    "DEFAULT_CLOSE_TIMEOUT",
    "API_KEY_HEADER",
    "validate_region",
    "api_url_for_region",
    "ws_url_for_region",
]
