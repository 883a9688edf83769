"""
Streaming session core shared by text-to-speech and speech-to-text.

A ``StreamSession`` wraps one ``DuplexChannel`` and is its only listener.
All inbound frames are decoded and appended to an append-only buffer; the
phase only moves forward:

    CONNECTING -> AWAITING_READY -> ACTIVE -> ENDED | FAILED

An error envelope, an undecodable frame or a channel failure moves the
session to FAILED from any non-terminal phase. ENDED and FAILED are
terminal: later frames are dropped.

Consumers never remove anything from the buffer. ``await_ready``,
``iterate`` and ``collect`` each read it with their own cursor, so any
number of them can run at once and each sees the full history, including
messages that arrived before it started. Waiting consumers are woken when
a message is appended or the session reaches a terminal phase.

Example:
    session = await open_session(TTSStream, channel, setup)
    await session.await_ready()
    await session.send_text("Hello")
    await session.send_end_of_stream()
    async for chunk in session.iter_audio():
        ...
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from .channel import DuplexChannel
from .exceptions import (
    ConnectionError,
    GradiumError,
    NotReadyError,
    ProtocolDecodeError,
    SessionClosedError,
    WebSocketError,
)
from .protocol import (
    AudioChunk,
    ClientMessage,
    EndOfStream,
    ErrorMessage,
    ReadyMessage,
    ServerMessage,
    StepMessage,
    TextResult,
    decode_server_message,
    encode_message,
)

logger = logging.getLogger(__name__)

DEFAULT_CLOSE_TIMEOUT = 5.0

T = TypeVar("T")
S = TypeVar("S", bound="StreamSession")


# =============================================================================
# Session Phase
# =============================================================================


class SessionPhase(str, Enum):
    """Lifecycle phases of a streaming session."""

    CONNECTING = "connecting"
    AWAITING_READY = "awaiting_ready"
    ACTIVE = "active"
    ENDED = "ended"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionPhase.ENDED, SessionPhase.FAILED)


# =============================================================================
# Selectors
# =============================================================================

Selector = Callable[[ServerMessage], bool]


def audio_chunks(message: ServerMessage) -> bool:
    """Select synthesized audio chunks."""
    return isinstance(message, AudioChunk)


def text_results(message: ServerMessage) -> bool:
    """Select transcription results."""
    return isinstance(message, TextResult)


def vad_steps(message: ServerMessage) -> bool:
    """Select voice activity steps."""
    return isinstance(message, StepMessage)


def all_messages(message: ServerMessage) -> bool:
    """Select everything except ``ready`` and ``error``.

    Errors are not yielded as items: they end the iteration by raising.
    """
    return not isinstance(message, (ReadyMessage, ErrorMessage))


# =============================================================================
# Statistics
# =============================================================================


@dataclass
class SessionStats:
    """Counters tracked by a streaming session.

    Attributes:
        messages_received: Inbound frames accepted into the buffer.
        inputs_sent: Text or audio input envelopes written.
        bytes_sent: Raw input bytes written (UTF-8 text or audio).
        audio_chunks_received: Inbound audio chunks.
        audio_bytes_received: Decoded bytes across inbound audio chunks.
        text_results_received: Inbound transcription results.
    """

    messages_received: int = 0
    inputs_sent: int = 0
    bytes_sent: int = 0
    audio_chunks_received: int = 0
    audio_bytes_received: int = 0
    text_results_received: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary."""
        return {
            "messages_received": self.messages_received,
            "inputs_sent": self.inputs_sent,
            "bytes_sent": self.bytes_sent,
            "audio_chunks_received": self.audio_chunks_received,
            "audio_bytes_received": self.audio_bytes_received,
            "text_results_received": self.text_results_received,
        }


def _consume_exception(future: asyncio.Future[Any]) -> None:
    # Failures are re-raised through the session API; keep asyncio from
    # reporting them as never retrieved when nobody awaited this future.
    if not future.cancelled():
        future.exception()


# =============================================================================
# Stream Session
# =============================================================================


class StreamSession:
    """One logical streaming exchange over a duplex channel.

    Subclasses add direction-specific ``send_*`` helpers, iterators and
    folds; everything stateful lives here.
    """

    def __init__(
        self,
        channel: DuplexChannel,
        *,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
    ) -> None:
        """Create a session and register it as the channel's listener.

        Must be called from a running event loop.

        Args:
            channel: Unopened channel the session will own.
            close_timeout: Seconds ``close`` waits for the channel to
                report its close before failing the session locally.
        """
        loop = asyncio.get_running_loop()

        self._channel = channel
        self._close_timeout = close_timeout
        self._phase = SessionPhase.CONNECTING
        self._setup: ClientMessage | None = None
        self._ready_info: ReadyMessage | None = None
        self._failure: Exception | None = None

        # Append-only inbound history
        self._messages: list[ServerMessage] = []

        # One-shot waiters
        self._ready: asyncio.Future[ReadyMessage] = loop.create_future()
        self._done: asyncio.Future[None] = loop.create_future()
        self._ready.add_done_callback(_consume_exception)
        self._done.add_done_callback(_consume_exception)

        # Replaced after every notification so each waiter wakes once
        self._changed = asyncio.Event()

        self._close_requested = False
        self._tasks: set[asyncio.Task[Any]] = set()

        self.stats = SessionStats()

        channel.bind(self)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def request_id(self) -> str | None:
        """Request ID assigned by the server, available once ready."""
        return self._ready_info.request_id if self._ready_info else None

    @property
    def ready_info(self) -> ReadyMessage | None:
        return self._ready_info

    @property
    def failure(self) -> Exception | None:
        """The error that failed the session, if any."""
        return self._failure

    @property
    def is_ready(self) -> bool:
        return self._phase is SessionPhase.ACTIVE

    @property
    def is_done(self) -> bool:
        return self._phase.is_terminal

    @property
    def messages(self) -> tuple[ServerMessage, ...]:
        """Snapshot of every inbound message received so far, in arrival order."""
        return tuple(self._messages)

    def buffered(self, selector: Selector = all_messages) -> list[ServerMessage]:
        """Messages received so far that match ``selector``, in arrival order."""
        return [m for m in self._messages if selector(m)]

    # =========================================================================
    # Waiting and consuming
    # =========================================================================

    async def await_ready(self) -> ReadyMessage:
        """Wait until the server accepted the session.

        Any number of callers may wait at once; all see the same outcome.

        Returns:
            The ``ready`` message.

        Raises:
            WebSocketError: If the server reported an error.
            ConnectionError: If the channel failed.
            SessionClosedError: If the session was closed locally.
            ProtocolDecodeError: If an inbound frame could not be decoded.
        """
        await asyncio.shield(self._ready)
        if self._failure is not None:
            raise self._failure
        return self._ready.result()

    async def wait_done(self) -> None:
        """Wait until the session is terminal.

        Raises:
            GradiumError: The failure, if the session failed.
        """
        await asyncio.shield(self._done)
        if self._failure is not None:
            raise self._failure

    async def iterate(self, selector: Selector = all_messages) -> AsyncIterator[ServerMessage]:
        """Yield buffered and future messages matching ``selector``.

        Every call starts its own cursor at the beginning of the buffer. The
        iterator finishes once the session ended cleanly and every matching
        message was yielded; if the session failed, it raises the failure
        after yielding what was received.
        """
        cursor = 0
        while True:
            changed = self._changed
            while cursor < len(self._messages):
                message = self._messages[cursor]
                cursor += 1
                if selector(message):
                    yield message

            if self._phase.is_terminal:
                if self._failure is not None:
                    raise self._failure
                return

            await changed.wait()

    async def collect(self, selector: Selector = all_messages) -> list[ServerMessage]:
        """Drain ``iterate(selector)`` to the end of the session."""
        return [message async for message in self.iterate(selector)]

    def __aiter__(self) -> AsyncIterator[Any]:
        return self.iterate()

    # =========================================================================
    # Sending
    # =========================================================================

    async def send_end_of_stream(self) -> None:
        """Tell the server no more input follows.

        The phase does not change: the server may still be flushing output
        and confirms with its own ``end_of_stream``.
        """
        await self._channel.send(encode_message(EndOfStream()))
        logger.info("Sent end_of_stream")

    async def _send_input(self, message: ClientMessage, size: int) -> None:
        if self._phase is not SessionPhase.ACTIVE:
            if self._failure is not None:
                raise self._failure
            if self._phase.is_terminal:
                raise NotReadyError(f"Stream is not active (phase={self._phase.value}).")
            raise NotReadyError("Stream is not ready. Call await_ready() first.")

        await self._channel.send(encode_message(message))
        self.stats.inputs_sent += 1
        self.stats.bytes_sent += size

    async def _send_setup(self, message: ClientMessage) -> None:
        """Write the setup envelope. Called once by ``open_session``."""
        if self._phase is not SessionPhase.CONNECTING:
            raise RuntimeError(f"Cannot send setup in phase {self._phase.value}")

        self._setup = message
        await self._channel.send(encode_message(message))
        if self._phase is SessionPhase.CONNECTING:
            self._phase = SessionPhase.AWAITING_READY
        logger.info("Sent setup: %s", message.to_dict())

    # =========================================================================
    # Termination
    # =========================================================================

    async def close(self) -> None:
        """Close the channel and make sure every waiter gets an outcome.

        Safe to call multiple times. A session that already ended keeps its
        ENDED phase. Otherwise it fails with ``SessionClosedError`` once the
        channel reports the close, or after ``close_timeout`` seconds if it
        never does.
        """
        if self._close_requested:
            return
        self._close_requested = True

        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()

        try:
            await self._channel.close()
        except GradiumError as e:
            logger.warning("Error closing channel: %s", e)

        if not self._phase.is_terminal:
            await asyncio.wait({self._done}, timeout=self._close_timeout)
        if not self._phase.is_terminal:
            self._fail(SessionClosedError("Session closed before the server ended the stream"))

    async def abort(self, error: Exception) -> None:
        """Fail the session with ``error`` and close it."""
        self._fail(error)
        await self.close()

    def track_task(self, task: asyncio.Task[Any]) -> None:
        """Keep a background task alive until it finishes or the session closes."""
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def __aenter__(self: S) -> S:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # =========================================================================
    # Channel listener
    # =========================================================================

    def on_message(self, raw: str | bytes) -> None:
        if self._phase.is_terminal:
            logger.debug("Dropping message received in phase %s", self._phase.value)
            return

        try:
            message = decode_server_message(raw)
        except ProtocolDecodeError as e:
            logger.error("Failed to decode message: %s", e)
            self._fail(e)
            return

        self._messages.append(message)
        self._count(message)

        if isinstance(message, ReadyMessage):
            self._handle_ready(message)
        elif isinstance(message, ErrorMessage):
            self._fail(WebSocketError(message.message, message.code))
        elif isinstance(message, EndOfStream):
            self._handle_end_of_stream()

        self._notify()

    def on_error(self, error: Exception) -> None:
        if not isinstance(error, GradiumError):
            error = ConnectionError(f"WebSocket error occurred: {error}")
        self._fail(error)

    def on_close(self, code: int | None, reason: str, clean: bool) -> None:
        if self._phase.is_terminal:
            return

        if self._close_requested:
            self._fail(SessionClosedError("Session closed before the server ended the stream"))
        elif clean:
            self._fail(
                ConnectionError(
                    f"Connection closed before end of stream: {reason}", code=code, reason=reason
                )
            )
        else:
            self._fail(
                ConnectionError(f"WebSocket closed unexpectedly: {reason}", code=code, reason=reason)
            )

    # =========================================================================
    # Internal Methods
    # =========================================================================

    def _handle_ready(self, message: ReadyMessage) -> None:
        if self._ready_info is not None:
            logger.warning("Ignoring duplicate ready message: request_id=%s", message.request_id)
            return

        self._ready_info = message
        self._phase = SessionPhase.ACTIVE
        self._ready.set_result(message)
        logger.info("Session ready: request_id=%s", message.request_id)

    def _handle_end_of_stream(self) -> None:
        if self._phase is not SessionPhase.ACTIVE:
            self._fail(WebSocketError("Stream ended before the session was ready"))
            return

        self._phase = SessionPhase.ENDED
        self._done.set_result(None)
        logger.info(
            "Session ended: request_id=%s, received %d messages",
            self.request_id,
            self.stats.messages_received,
        )

    def _fail(self, error: Exception) -> None:
        if self._phase.is_terminal:
            return

        self._phase = SessionPhase.FAILED
        self._failure = error
        # A ready waiter that already resolved re-checks _failure in await_ready
        for future in (self._ready, self._done):
            if not future.done():
                future.set_exception(error)
        logger.error("Session failed: %s", error)
        self._notify()

    def _count(self, message: ServerMessage) -> None:
        self.stats.messages_received += 1
        if isinstance(message, AudioChunk):
            self.stats.audio_chunks_received += 1
            self.stats.audio_bytes_received += len(message.audio)
        elif isinstance(message, TextResult):
            self.stats.text_results_received += 1

    def _notify(self) -> None:
        self._changed.set()
        self._changed = asyncio.Event()


# =============================================================================
# Factory and feeding helpers
# =============================================================================


async def open_session(
    session_cls: type[S],
    channel: DuplexChannel,
    setup: ClientMessage,
    *,
    close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
) -> S:
    """Open ``channel`` and return a session that has sent its setup.

    The session is bound to the channel before it opens, so no inbound
    frame can arrive unobserved. Call ``await_ready`` on the result to get
    the server-assigned metadata.

    Raises:
        ConnectionError: If the channel fails to open or the setup write fails.
    """
    session = session_cls(channel, close_timeout=close_timeout)
    await channel.open()
    try:
        await session._send_setup(setup)
    except GradiumError:
        await session.close()
        raise
    return session


async def _aiterate(source: Iterable[T] | AsyncIterable[T]) -> AsyncIterator[T]:
    if isinstance(source, AsyncIterable):
        async for item in source:
            yield item
    else:
        for item in source:
            yield item


def start_feeder(
    session: StreamSession,
    source: Iterable[T] | AsyncIterable[T],
    send: Callable[[T], Awaitable[None]],
) -> asyncio.Task[None]:
    """Drain ``source`` into ``send`` in the background, then end the stream.

    If the source or a send raises, the session is aborted with that error
    so every consumer sees it. The task is cancelled if the session closes
    first.
    """

    async def _feed() -> None:
        count = 0
        try:
            async for item in _aiterate(source):
                await send(item)
                count += 1
            await session.send_end_of_stream()
            logger.debug("Feeder finished after %d inputs", count)
        except asyncio.CancelledError:
            logger.debug("Feeder cancelled after %d inputs", count)
            raise
        except Exception as e:
            logger.error("Feeder failed after %d inputs: %s", count, e)
            await session.abort(e)

    task = asyncio.create_task(_feed())
    session.track_task(task)
    return task


__all__ = [
    "SessionPhase",
    "SessionStats",
    "StreamSession",
    "Selector",
    "audio_chunks",
    "text_results",
    "vad_steps",
    "all_messages",
    "open_session",
    "start_feeder",
    "DEFAULT_CLOSE_TIMEOUT",
]
