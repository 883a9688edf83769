"""
Duplex channel adapter used by streaming sessions.

A session never talks to a socket directly. It binds itself as the
``ChannelListener`` of a ``DuplexChannel`` and from then on only:

- writes text frames with ``send``
- asks for shutdown with ``close``
- reacts to ``on_message`` / ``on_error`` / ``on_close`` notifications

``WebSocketChannel`` is the production implementation on top of the
``websockets`` library. Tests substitute an in-memory channel with the same
capability set.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, InvalidStatus, WebSocketException

from .exceptions import ConnectionError

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006


# =============================================================================
# Protocols
# =============================================================================


class ChannelListener(Protocol):
    """Receiver of inbound channel notifications."""

    def on_message(self, raw: str | bytes) -> None:
        """Handle one inbound frame."""
        ...

    def on_error(self, error: Exception) -> None:
        """Handle a transport error. ``on_close`` follows."""
        ...

    def on_close(self, code: int | None, reason: str, clean: bool) -> None:
        """Handle the end of the channel. Called exactly once."""
        ...


class DuplexChannel(Protocol):
    """Capability set a streaming session needs from its transport."""

    def bind(self, listener: ChannelListener) -> None:
        """Register the listener. Must happen before ``open``."""
        ...

    async def open(self) -> None:
        """Open the channel.

        Raises:
            ConnectionError: If the channel fails before it is open.
        """
        ...

    async def send(self, text: str) -> None:
        """Write one text frame.

        Raises:
            ConnectionError: If the channel is not open or the write fails.
        """
        ...

    async def close(self) -> None:
        """Close the channel. Safe to call more than once."""
        ...


ChannelFactory = Callable[[str, Mapping[str, str]], DuplexChannel]


# =============================================================================
# WebSocket implementation
# =============================================================================


class WebSocketChannel:
    """``DuplexChannel`` backed by a ``websockets`` client connection.

    Inbound frames are pumped to the listener by a background receive task
    started once the handshake completes.
    """

    def __init__(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        *,
        open_timeout: float | None = 10.0,
    ) -> None:
        self.url = url
        self._headers = dict(headers or {})
        self._open_timeout = open_timeout
        self._listener: ChannelListener | None = None
        self._websocket: Any = None  # websockets.asyncio.client.ClientConnection
        self._receive_task: asyncio.Task[None] | None = None
        self._close_requested = False
        self._close_notified = False

    @property
    def is_open(self) -> bool:
        return self._websocket is not None and not self._close_notified

    def bind(self, listener: ChannelListener) -> None:
        self._listener = listener

    async def open(self) -> None:
        if self._websocket is not None:
            raise RuntimeError("Channel already opened")
        if self._listener is None:
            raise RuntimeError("Bind a listener before opening the channel")

        logger.info("Connecting to %s", self.url)
        try:
            self._websocket = await websockets.connect(
                self.url,
                additional_headers=self._headers,
                open_timeout=self._open_timeout,
            )
        except InvalidStatus as e:
            status = e.response.status_code
            logger.error("WebSocket handshake rejected: HTTP %d", status)
            raise ConnectionError(
                f"Failed to connect to {self.url}: HTTP {status}", code=status
            ) from e
        except (OSError, TimeoutError, WebSocketException) as e:
            logger.error("Connection failed: %s", e)
            raise ConnectionError(f"Failed to connect to {self.url}: {e}") from e

        self._receive_task = asyncio.create_task(self._receive_loop())
        logger.info("Connected to %s", self.url)

    async def send(self, text: str) -> None:
        if self._websocket is None or self._close_notified:
            raise ConnectionError("Channel is not open")
        try:
            await self._websocket.send(text)
        except ConnectionClosed as e:
            code, reason = _close_info(e)
            raise ConnectionError(f"Failed to send message: {e}", code=code, reason=reason) from e

    async def close(self) -> None:
        if self._close_requested:
            return
        self._close_requested = True

        if self._websocket is None:
            self._notify_close(NORMAL_CLOSURE, "")
            return

        logger.info("Closing channel to %s", self.url)
        try:
            await self._websocket.close()
        except (OSError, WebSocketException) as e:
            logger.warning("Error closing websocket: %s", e)

        if self._receive_task is not None and self._receive_task is not asyncio.current_task():
            await self._receive_task

    # =========================================================================
    # Internal Methods
    # =========================================================================

    async def _receive_loop(self) -> None:
        """Background task forwarding inbound frames to the listener."""
        assert self._listener is not None
        websocket = self._websocket
        try:
            async for raw in websocket:
                try:
                    self._listener.on_message(raw)
                except Exception as e:
                    logger.error("Listener failed to handle frame: %s", e, exc_info=True)
        except ConnectionClosedError:
            # Reported through on_close with the received close code
            pass
        except (OSError, WebSocketException) as e:
            logger.error("Receive loop error: %s", e)
            self._listener.on_error(ConnectionError(f"WebSocket error occurred: {e}"))
        finally:
            code = websocket.close_code if websocket.close_code is not None else ABNORMAL_CLOSURE
            reason = websocket.close_reason or ""
            self._notify_close(code, reason)

    def _notify_close(self, code: int, reason: str) -> None:
        if self._close_notified:
            return
        self._close_notified = True
        clean = code == NORMAL_CLOSURE
        logger.info("Channel closed: code=%s reason=%r clean=%s", code, reason, clean)
        if self._listener is not None:
            self._listener.on_close(code, reason, clean)


def _close_info(error: ConnectionClosed) -> tuple[int | None, str]:
    frame = error.rcvd or error.sent
    if frame is None:
        return ABNORMAL_CLOSURE, ""
    return frame.code, frame.reason


def connect_websocket(url: str, headers: Mapping[str, str], open_timeout: float | None = 10.0) -> WebSocketChannel:
    """Default ``ChannelFactory``: an unopened ``WebSocketChannel``."""
    return WebSocketChannel(url, headers, open_timeout=open_timeout)


__all__ = [
    "ChannelListener",
    "DuplexChannel",
    "ChannelFactory",
    "WebSocketChannel",
    "connect_websocket",
    "NORMAL_CLOSURE",
    "ABNORMAL_CLOSURE",
]
