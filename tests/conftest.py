"""
Pytest configuration and fixtures for tests.

This module provides:
- An in-memory duplex channel standing in for the WebSocket
- Scripted server responders for TTS and STT sessions
- A ``Gradium`` client wired to the in-memory channel
"""

from __future__ import annotations

import base64
import json
from collections.abc import Callable, Mapping
from typing import Any

import pytest

from gradium import ClientConfig, Gradium
from gradium.exceptions import ConnectionError

Responder = Callable[["FakeChannel", dict[str, Any]], None]


# ============================================================================
# In-memory channel
# ============================================================================


class FakeChannel:
    """``DuplexChannel`` that records writes and lets tests play the server.

    Frames pushed with ``push`` are delivered to the listener synchronously.
    ``respond`` (if set) is called for every frame the session writes, which
    lets a test script a whole server conversation.
    """

    def __init__(
        self,
        url: str = "wss://test.gradium.ai/api/speech/tts",
        headers: Mapping[str, str] | None = None,
        *,
        respond: Responder | None = None,
    ) -> None:
        self.url = url
        self.headers = dict(headers or {})
        self.respond = respond
        self.listener: Any = None
        self.sent: list[str] = []
        self.opened = False
        self.closed = False
        self.close_calls = 0
        self.open_error: Exception | None = None
        # When False, close() never reports back, like a hung transport
        self.report_close = True

    # DuplexChannel capability set

    def bind(self, listener: Any) -> None:
        self.listener = listener

    async def open(self) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.opened = True

    async def send(self, text: str) -> None:
        if not self.opened or self.closed:
            raise ConnectionError("Channel is not open")
        self.sent.append(text)
        if self.respond is not None:
            self.respond(self, json.loads(text))

    async def close(self) -> None:
        self.close_calls += 1
        if self.report_close:
            self.finish(1000, "")

    # Server side helpers

    def push(self, payload: dict[str, Any] | str) -> None:
        raw = payload if isinstance(payload, str) else json.dumps(payload)
        self.listener.on_message(raw)

    def finish(self, code: int, reason: str = "") -> None:
        if self.closed:
            return
        self.closed = True
        self.listener.on_close(code, reason, code == 1000)

    def error(self, error: Exception) -> None:
        self.listener.on_error(error)

    @property
    def sent_messages(self) -> list[dict[str, Any]]:
        return [json.loads(raw) for raw in self.sent]

    @property
    def sent_types(self) -> list[str]:
        return [message["type"] for message in self.sent_messages]


class ChannelRecorder:
    """Channel factory that hands out ``FakeChannel`` objects and keeps them."""

    def __init__(self) -> None:
        self.channels: list[FakeChannel] = []
        self.respond: Responder | None = None
        self.open_error: Exception | None = None

    def __call__(self, url: str, headers: Mapping[str, str]) -> FakeChannel:
        channel = FakeChannel(url, headers, respond=self.respond)
        channel.open_error = self.open_error
        self.channels.append(channel)
        return channel

    @property
    def last(self) -> FakeChannel:
        return self.channels[-1]


# ============================================================================
# Scripted servers
# ============================================================================


def audio_frame(data: bytes) -> dict[str, Any]:
    return {"type": "audio", "audio": base64.b64encode(data).decode("ascii")}


def make_tts_responder(
    chunks: list[bytes], request_id: str = "req-tts-1"
) -> Responder:
    """Answer setup with ready and end_of_stream with ``chunks`` then end_of_stream."""

    def respond(channel: FakeChannel, message: dict[str, Any]) -> None:
        if message["type"] == "setup":
            channel.push({"type": "ready", "request_id": request_id})
        elif message["type"] == "end_of_stream":
            for chunk in chunks:
                channel.push(audio_frame(chunk))
            channel.push({"type": "end_of_stream"})

    return respond


def make_stt_responder(
    words: list[str],
    request_id: str = "req-stt-1",
    frame_size: int = 1920,
    sample_rate: int = 24000,
) -> Responder:
    """Answer setup with ready, each audio with a step, end_of_stream with ``words``."""

    def respond(channel: FakeChannel, message: dict[str, Any]) -> None:
        if message["type"] == "setup":
            channel.push(
                {
                    "type": "ready",
                    "request_id": request_id,
                    "model_name": message.get("model_name", "default"),
                    "sample_rate": sample_rate,
                    "frame_size": frame_size,
                    "delay_in_tokens": 6,
                    "text_stream_names": ["transcript"],
                }
            )
        elif message["type"] == "audio":
            step_idx = sum(1 for sent in channel.sent_types if sent == "audio") - 1
            channel.push(
                {
                    "type": "step",
                    "step_idx": step_idx,
                    "vad": [{"horizon_s": 0.5, "inactivity_prob": 0.1}],
                    "step_duration_s": 0.08,
                    "total_duration_s": 0.08 * (step_idx + 1),
                }
            )
        elif message["type"] == "end_of_stream":
            for i, word in enumerate(words):
                channel.push({"type": "text", "text": word, "start_s": 0.5 * i})
            channel.push({"type": "end_text", "stop_s": 0.5 * len(words)})
            channel.push({"type": "end_of_stream"})

    return respond


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def channel() -> FakeChannel:
    """An unopened in-memory channel with no scripted server."""
    return FakeChannel()


@pytest.fixture
def channel_factory() -> ChannelRecorder:
    return ChannelRecorder()


@pytest.fixture
def client(channel_factory: ChannelRecorder) -> Gradium:
    """Client whose speech sessions run over ``channel_factory``."""
    return Gradium(config=ClientConfig(api_key="test-key"), channel_factory=channel_factory)


@pytest.fixture
def tts_responder() -> Callable[..., Responder]:
    return make_tts_responder


@pytest.fixture
def stt_responder() -> Callable[..., Responder]:
    return make_stt_responder


@pytest.fixture
def audio_message() -> Callable[[bytes], dict[str, Any]]:
    return audio_frame
