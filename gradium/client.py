"""
Top-level ``Gradium`` client.

The client resolves configuration, owns the ``httpx.AsyncClient`` used by
the REST resources and creates the duplex channels used by the speech
sessions.

Example:
    async with Gradium() as client:
        result = await client.tts.create(TTSSetupParams("voice", "wav"), "Hello")
        voices = await client.voices.list(include_catalog=True)
"""

from __future__ import annotations

import functools
import logging
from typing import Any

import httpx

from .channel import ChannelFactory, DuplexChannel, connect_websocket
from .config import ClientConfig
from .credits import Credits
from .exceptions import ConnectionError, TimeoutError, raise_for_response
from .stt import STT
from .tts import TTS
from .voices import Voices

logger = logging.getLogger(__name__)


class Gradium:
    """
    Client for the Gradium speech API.

    Args:
        api_key: API key. Defaults to ``GRADIUM_API_KEY``.
        region: ``eu`` (default) or ``us``. Defaults to ``GRADIUM_REGION``.
        base_url: REST base URL override; the region is then ignored.
        timeout: HTTP request timeout in seconds.
        config: Fully built configuration. Other settings are ignored.
        channel_factory: Creates the duplex channel for a speech session from
            a URL and handshake headers. Defaults to a WebSocket channel.
        http_client: Pre-configured ``httpx.AsyncClient`` for REST calls.
            The caller keeps ownership of a client passed in here.

    Raises:
        AuthenticationError: If no API key is available.
        ConfigurationError: If the settings are invalid.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        region: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        config: ClientConfig | None = None,
        channel_factory: ChannelFactory | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if config is None:
            config = ClientConfig.from_env(
                api_key=api_key, region=region, base_url=base_url, timeout=timeout
            )
        self._config = config

        if channel_factory is None:
            channel_factory = functools.partial(
                connect_websocket, open_timeout=config.open_timeout
            )
        self._channel_factory = channel_factory

        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=config.api_url,
            headers=config.headers,
            timeout=config.timeout,
        )

        self.tts = TTS(self)
        self.stt = STT(self)
        self.voices = Voices(self)
        self.credits = Credits(self)

        logger.debug("Gradium client created: api_url=%s ws_url=%s", self.base_url, self.ws_url)

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def base_url(self) -> str:
        return self._config.api_url

    @property
    def ws_url(self) -> str:
        return self._config.ws_url

    @property
    def headers(self) -> dict[str, str]:
        return self._config.headers

    def open_channel(self, path: str) -> DuplexChannel:
        """Create an unopened duplex channel for the speech endpoint ``path``."""
        url = f"{self.ws_url}/{path}"
        return self._channel_factory(url, self._config.ws_headers)

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a REST request and raise the mapped error on failure."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.debug("%s %s", method, url)
        try:
            response = await self._http.request(method, url, headers=self.headers, **kwargs)
        except httpx.TimeoutException as e:
            raise TimeoutError(f"Request timed out: {method} {url}") from e
        except httpx.TransportError as e:
            raise ConnectionError(f"Request failed: {method} {url}: {e}") from e
        raise_for_response(response)
        return response

    async def aclose(self) -> None:
        """Close the HTTP client if this client created it."""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> Gradium:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()


__all__ = ["Gradium"]
