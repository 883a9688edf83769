"""
Text-to-speech streaming.

A TTS session takes text in and produces audio out:

    setup -> ready -> text* -> end_of_stream -> audio* ... end_of_stream

Three ways to use it:

- ``TTS.create``: synthesize one text and return the whole audio.
- ``TTS.stream``: drive the session yourself with ``send_text`` and read
  audio with ``async for chunk in stream``.
- ``TTS.stream_text``: feed text from a (sync or async) iterable in the
  background while you consume audio.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .exceptions import GradiumError
from .protocol import DEFAULT_MODEL_NAME, AudioChunk, TextInput, TTSSetupMessage
from .session import StreamSession, audio_chunks, open_session, start_feeder

if TYPE_CHECKING:
    from .client import Gradium

logger = logging.getLogger(__name__)

TTS_PATH = "tts"

# wav/pcm/opus without an explicit rate come out at the model's native rate
DEFAULT_SAMPLE_RATE = 48_000

OUTPUT_FORMATS: tuple[str, ...] = (
    "wav",
    "pcm",
    "opus",
    "ulaw_8000",
    "alaw_8000",
    "pcm_16000",
    "pcm_24000",
)


def sample_rate_for_format(output_format: str) -> int:
    """Sample rate implied by an output format name such as ``pcm_16000``."""
    _, _, suffix = output_format.rpartition("_")
    if suffix.isdigit():
        return int(suffix)
    return DEFAULT_SAMPLE_RATE


@dataclass
class TTSSetupParams:
    """Parameters for a text-to-speech session.

    Attributes:
        voice_id: Voice to synthesize with.
        output_format: One of ``OUTPUT_FORMATS``.
        model_name: Model to use (default: "default").
        json_config: Advanced settings, e.g. ``{"padding_bonus": -1.0}``
            to speak faster (negative) or slower (positive).
    """

    voice_id: str
    output_format: str
    model_name: str = DEFAULT_MODEL_NAME
    json_config: dict[str, Any] | None = None

    def to_message(self) -> TTSSetupMessage:
        return TTSSetupMessage(
            voice_id=self.voice_id,
            output_format=self.output_format,
            model_name=self.model_name or DEFAULT_MODEL_NAME,
            json_config=self.json_config,
        )


@dataclass
class TTSResult:
    """Complete synthesized audio.

    Attributes:
        raw_data: Audio bytes in the requested output format.
        sample_rate: Sample rate of the audio.
        request_id: Request ID assigned by the server.
    """

    raw_data: bytes
    sample_rate: int
    request_id: str


class TTSStream(StreamSession):
    """Streaming session that turns text into audio."""

    @property
    def sample_rate(self) -> int:
        if isinstance(self._setup, TTSSetupMessage):
            return sample_rate_for_format(self._setup.output_format)
        return DEFAULT_SAMPLE_RATE

    async def send_text(self, text: str) -> None:
        """Send a fragment of text to synthesize.

        Raises:
            NotReadyError: If the session is not active yet (or anymore).
            GradiumError: The failure of a session that already failed.
        """
        await self._send_input(TextInput(text=text), len(text.encode("utf-8")))
        logger.debug("Sent text: %d chars", len(text))

    async def iter_audio(self) -> AsyncIterator[bytes]:
        """Yield audio chunks in arrival order until the stream ends."""
        async for message in self.iterate(audio_chunks):
            assert isinstance(message, AudioChunk)
            yield message.audio

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.iter_audio()

    async def collect_audio(self) -> TTSResult:
        """Wait for the end of the stream and return all audio concatenated."""
        chunks = [chunk async for chunk in self.iter_audio()]
        return TTSResult(
            raw_data=b"".join(chunks),
            sample_rate=self.sample_rate,
            request_id=self.request_id or "",
        )


class TTS:
    """Text-to-speech resource of a ``Gradium`` client."""

    def __init__(self, client: Gradium) -> None:
        self._client = client

    async def stream(self, params: TTSSetupParams) -> TTSStream:
        """Open a TTS session and send its setup.

        Call ``await_ready`` on the result before sending text.

        Example:
            stream = await client.tts.stream(TTSSetupParams(voice_id, "pcm"))
            await stream.await_ready()
            await stream.send_text("Hello, world!")
            await stream.send_end_of_stream()
            async for chunk in stream:
                player.write(chunk)

        Raises:
            ConnectionError: If the WebSocket cannot be opened.
        """
        channel = self._client.open_channel(TTS_PATH)
        return await open_session(
            TTSStream,
            channel,
            params.to_message(),
            close_timeout=self._client.config.close_timeout,
        )

    async def create(self, params: TTSSetupParams, text: str) -> TTSResult:
        """Synthesize ``text`` in one go and return the complete audio."""
        async with await self.stream(params) as stream:
            await stream.await_ready()
            await stream.send_text(text)
            await stream.send_end_of_stream()
            result = await stream.collect_audio()
        logger.info(
            "Synthesized %d bytes of audio (request_id=%s)", len(result.raw_data), result.request_id
        )
        return result

    async def stream_text(
        self,
        params: TTSSetupParams,
        texts: Iterable[str] | AsyncIterable[str],
    ) -> TTSStream:
        """Open a ready session and feed ``texts`` into it in the background.

        Returns as soon as the session is ready; audio can be consumed while
        text is still being sent. End of stream is sent after the last text.
        """
        stream = await self.stream(params)
        try:
            await stream.await_ready()
        except GradiumError:
            await stream.close()
            raise
        start_feeder(stream, texts, stream.send_text)
        return stream


__all__ = [
    "TTS",
    "TTSStream",
    "TTSSetupParams",
    "TTSResult",
    "OUTPUT_FORMATS",
    "DEFAULT_SAMPLE_RATE",
    "sample_rate_for_format",
]
