"""
Speech-to-text streaming.

An STT session takes audio in and produces text out:

    setup -> ready -> audio* -> end_of_stream -> (text | step | end_text)* ... end_of_stream

Input audio for the ``pcm`` format is 16-bit mono at the sample rate
announced in ``ready`` (24 kHz by default). The server works in frames of
``frame_size`` samples, so ``transcribe`` sends slices of exactly one frame.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .exceptions import GradiumError
from .protocol import (
    DEFAULT_MODEL_NAME,
    AudioInput,
    ServerMessage,
    StepMessage,
    STTSetupMessage,
    TextResult,
)
from .session import StreamSession, all_messages, open_session, start_feeder, text_results, vad_steps

if TYPE_CHECKING:
    from .client import Gradium

logger = logging.getLogger(__name__)

STT_PATH = "stt"

DEFAULT_SAMPLE_RATE = 24_000
DEFAULT_FRAME_SIZE = 1920
BYTES_PER_SAMPLE = 2

INPUT_FORMATS: tuple[str, ...] = ("pcm", "wav", "opus")


@dataclass
class STTSetupParams:
    """Parameters for a speech-to-text session.

    Attributes:
        input_format: One of ``INPUT_FORMATS``.
        model_name: Model to use (default: "default").
    """

    input_format: str = "pcm"
    model_name: str = DEFAULT_MODEL_NAME

    def to_message(self) -> STTSetupMessage:
        return STTSetupMessage(
            input_format=self.input_format,
            model_name=self.model_name or DEFAULT_MODEL_NAME,
        )


def iter_slices(audio: bytes, slice_size: int) -> Iterable[bytes]:
    """Split ``audio`` into consecutive slices of at most ``slice_size`` bytes."""
    if slice_size <= 0:
        raise ValueError(f"slice_size must be positive, got {slice_size}")
    for offset in range(0, len(audio), slice_size):
        yield audio[offset : offset + slice_size]


class STTStream(StreamSession):
    """Streaming session that turns audio into text."""

    @property
    def sample_rate(self) -> int:
        info = self.ready_info
        if info is not None and info.sample_rate:
            return info.sample_rate
        return DEFAULT_SAMPLE_RATE

    @property
    def frame_size(self) -> int:
        info = self.ready_info
        if info is not None and info.frame_size:
            return info.frame_size
        return DEFAULT_FRAME_SIZE

    @property
    def recommended_chunk_bytes(self) -> int:
        """Bytes in one frame of 16-bit audio."""
        return self.frame_size * BYTES_PER_SAMPLE

    async def send_audio(self, audio: bytes) -> None:
        """Send a chunk of audio to transcribe.

        Raises:
            NotReadyError: If the session is not active yet (or anymore).
            GradiumError: The failure of a session that already failed.
        """
        await self._send_input(AudioInput(audio=bytes(audio)), len(audio))
        logger.debug("Sent audio chunk: bytes=%d", len(audio))

    async def iter_text(self) -> AsyncIterator[TextResult]:
        """Yield transcription results in arrival order until the stream ends."""
        async for message in self.iterate(text_results):
            assert isinstance(message, TextResult)
            yield message

    async def iter_vad(self) -> AsyncIterator[StepMessage]:
        """Yield voice activity steps in arrival order until the stream ends."""
        async for message in self.iterate(vad_steps):
            assert isinstance(message, StepMessage)
            yield message

    async def iter_messages(self) -> AsyncIterator[ServerMessage]:
        """Yield every message except ``ready`` until the stream ends."""
        async for message in self.iterate(all_messages):
            yield message

    def __aiter__(self) -> AsyncIterator[TextResult]:
        return self.iter_text()

    async def collect_text(self) -> str:
        """Wait for the end of the stream and return all text joined by spaces."""
        return " ".join([result.text async for result in self.iter_text()])


class STT:
    """Speech-to-text resource of a ``Gradium`` client."""

    def __init__(self, client: Gradium) -> None:
        self._client = client

    async def stream(self, params: STTSetupParams | None = None) -> STTStream:
        """Open an STT session and send its setup.

        Example:
            stream = await client.stt.stream(STTSetupParams(input_format="pcm"))
            ready = await stream.await_ready()
            await stream.send_audio(chunk)
            await stream.send_end_of_stream()
            async for result in stream:
                print(result.start_s, result.text)

        Raises:
            ConnectionError: If the WebSocket cannot be opened.
        """
        params = params or STTSetupParams()
        channel = self._client.open_channel(STT_PATH)
        return await open_session(
            STTStream,
            channel,
            params.to_message(),
            close_timeout=self._client.config.close_timeout,
        )

    async def transcribe(
        self,
        audio: bytes,
        params: STTSetupParams | None = None,
        *,
        chunk_size: int | None = None,
    ) -> str:
        """Transcribe a complete recording and return the text.

        Args:
            audio: Audio bytes in ``params.input_format``.
            params: Session parameters (default: PCM, default model).
            chunk_size: Bytes per audio message. Defaults to one frame as
                announced by the server (3840 bytes at 1920 samples).

        Returns:
            Transcribed text fragments joined by single spaces.

        Raises:
            ValueError: If ``chunk_size`` is not positive.
        """
        async with await self.stream(params) as stream:
            await stream.await_ready()
            slice_size = chunk_size if chunk_size is not None else stream.recommended_chunk_bytes
            for piece in iter_slices(audio, slice_size):
                await stream.send_audio(piece)
            await stream.send_end_of_stream()
            text = await stream.collect_text()
        logger.info(
            "Transcribed %d bytes of audio into %d chars (request_id=%s)",
            len(audio),
            len(text),
            stream.request_id,
        )
        return text

    async def stream_audio(
        self,
        params: STTSetupParams | None,
        chunks: Iterable[bytes] | AsyncIterable[bytes],
    ) -> STTStream:
        """Open a ready session and feed ``chunks`` into it in the background.

        Returns as soon as the session is ready; results can be consumed
        while audio is still being sent.
        """
        stream = await self.stream(params)
        try:
            await stream.await_ready()
        except GradiumError:
            await stream.close()
            raise
        start_feeder(stream, chunks, stream.send_audio)
        return stream


__all__ = [
    "STT",
    "STTStream",
    "STTSetupParams",
    "INPUT_FORMATS",
    "DEFAULT_SAMPLE_RATE",
    "DEFAULT_FRAME_SIZE",
    "iter_slices",
]
