"""
Message codec for the gradium speech WebSocket protocol.

Every frame exchanged over a speech session is a JSON object whose ``type``
field selects the variant. Binary payloads (audio) travel base64-encoded
inside the envelope; the dataclasses below always hold raw ``bytes``.

Client messages (sent by this SDK):
- setup: direction-specific session parameters (TTS or STT)
- text: a fragment of text to synthesize (TTS)
- audio: a chunk of audio to transcribe (STT)
- end_of_stream: no more input will follow

Server messages (received by this SDK):
- ready: session accepted, carries request_id and STT stream metadata
- audio: a chunk of synthesized audio (TTS)
- text: a transcription result (STT)
- step: voice activity predictions for one model step (STT)
- end_text: end of a transcription span (STT)
- error: the session failed on the server side
- end_of_stream: the server has flushed all output

Only structural decoding happens here: field presence and types, base64
validity and the ``type`` tag. Domain values (formats, voices) are passed
through untouched.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from .exceptions import ProtocolDecodeError

logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "default"


# =============================================================================
# Message Type Enums
# =============================================================================


class ClientMessageType(str, Enum):
    """Message types sent from client to server."""

    SETUP = "setup"
    TEXT = "text"
    AUDIO = "audio"
    END_OF_STREAM = "end_of_stream"


class ServerMessageType(str, Enum):
    """Message types sent from server to client."""

    READY = "ready"
    AUDIO = "audio"
    TEXT = "text"
    STEP = "step"
    END_TEXT = "end_text"
    ERROR = "error"
    END_OF_STREAM = "end_of_stream"


# =============================================================================
# Base64 helpers
# =============================================================================


def encode_audio(audio: bytes) -> str:
    """Encode raw audio bytes as a base64 string."""
    return base64.b64encode(audio).decode("ascii")


def decode_audio(data: str) -> bytes:
    """Decode a base64 audio field.

    Raises:
        ProtocolDecodeError: If the field is not valid base64.
    """
    if not isinstance(data, str):
        raise ProtocolDecodeError(f"Audio payload must be a base64 string, got {type(data).__name__}")
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ProtocolDecodeError(f"Invalid base64 audio data: {e}") from e


# =============================================================================
# Client Messages
# =============================================================================


@dataclass(slots=True)
class TTSSetupMessage:
    """Setup envelope opening a text-to-speech session."""

    type: ClassVar[ClientMessageType] = ClientMessageType.SETUP

    voice_id: str
    output_format: str
    model_name: str = DEFAULT_MODEL_NAME
    json_config: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": self.type.value,
            "voice_id": self.voice_id,
            "output_format": self.output_format,
            "model_name": self.model_name,
        }
        if self.json_config is not None:
            result["json_config"] = self.json_config
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TTSSetupMessage:
        return cls(
            voice_id=_require(data, "voice_id", str),
            output_format=_require(data, "output_format", str),
            model_name=_optional(data, "model_name", str) or DEFAULT_MODEL_NAME,
            json_config=_optional(data, "json_config", dict),
        )


@dataclass(slots=True)
class STTSetupMessage:
    """Setup envelope opening a speech-to-text session."""

    type: ClassVar[ClientMessageType] = ClientMessageType.SETUP

    input_format: str
    model_name: str = DEFAULT_MODEL_NAME

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "model_name": self.model_name,
            "input_format": self.input_format,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> STTSetupMessage:
        return cls(
            input_format=_require(data, "input_format", str),
            model_name=_optional(data, "model_name", str) or DEFAULT_MODEL_NAME,
        )


@dataclass(slots=True)
class TextInput:
    """A fragment of text to synthesize."""

    type: ClassVar[ClientMessageType] = ClientMessageType.TEXT

    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TextInput:
        return cls(text=_require(data, "text", str))


@dataclass(slots=True)
class AudioInput:
    """A chunk of raw audio to transcribe."""

    type: ClassVar[ClientMessageType] = ClientMessageType.AUDIO

    audio: bytes

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "audio": encode_audio(self.audio)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AudioInput:
        return cls(audio=decode_audio(_require(data, "audio", str)))


@dataclass(slots=True)
class EndOfStream:
    """End of stream marker. Used in both directions."""

    type: ClassVar[str] = "end_of_stream"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EndOfStream:  # noqa: ARG003
        return cls()


# =============================================================================
# Server Messages
# =============================================================================


@dataclass(slots=True)
class ReadyMessage:
    """Session accepted by the server.

    TTS sessions only carry ``request_id``. STT sessions add the negotiated
    audio parameters and the names of the text streams the model emits.
    """

    type: ClassVar[ServerMessageType] = ServerMessageType.READY

    request_id: str
    model_name: str | None = None
    sample_rate: int | None = None
    frame_size: int | None = None
    delay_in_tokens: int | None = None
    text_stream_names: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type.value, "request_id": self.request_id}
        for key in ("model_name", "sample_rate", "frame_size", "delay_in_tokens"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.text_stream_names:
            result["text_stream_names"] = list(self.text_stream_names)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReadyMessage:
        names = _optional(data, "text_stream_names", list) or []
        return cls(
            request_id=_require(data, "request_id", str),
            model_name=_optional(data, "model_name", str),
            sample_rate=_optional(data, "sample_rate", int),
            frame_size=_optional(data, "frame_size", int),
            delay_in_tokens=_optional(data, "delay_in_tokens", int),
            text_stream_names=[str(name) for name in names],
        )


@dataclass(slots=True)
class AudioChunk:
    """A chunk of synthesized audio, already base64-decoded."""

    type: ClassVar[ServerMessageType] = ServerMessageType.AUDIO

    audio: bytes

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "audio": encode_audio(self.audio)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AudioChunk:
        return cls(audio=decode_audio(_require(data, "audio", str)))


@dataclass(slots=True)
class TextResult:
    """A transcription result.

    Attributes:
        text: Transcribed text fragment.
        start_s: Start of the fragment in the input audio, in seconds.
        stream_id: Index into ``ReadyMessage.text_stream_names`` when the
            model emits several text streams.
    """

    type: ClassVar[ServerMessageType] = ServerMessageType.TEXT

    text: str
    start_s: float
    stream_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type.value, "text": self.text, "start_s": self.start_s}
        if self.stream_id is not None:
            result["stream_id"] = self.stream_id
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TextResult:
        return cls(
            text=_require(data, "text", str),
            start_s=float(_require(data, "start_s", (int, float))),
            stream_id=_optional(data, "stream_id", int),
        )


@dataclass(slots=True)
class VADPrediction:
    """Probability that the speaker stays silent over the next ``horizon_s`` seconds."""

    horizon_s: float
    inactivity_prob: float

    def to_dict(self) -> dict[str, Any]:
        return {"horizon_s": self.horizon_s, "inactivity_prob": self.inactivity_prob}

    @classmethod
    def from_dict(cls, data: Any) -> VADPrediction:
        if not isinstance(data, dict):
            raise ProtocolDecodeError("VAD prediction must be an object")
        return cls(
            horizon_s=float(_require(data, "horizon_s", (int, float))),
            inactivity_prob=float(_require(data, "inactivity_prob", (int, float))),
        )


@dataclass(slots=True)
class StepMessage:
    """Voice activity analytics for one model step."""

    type: ClassVar[ServerMessageType] = ServerMessageType.STEP

    step_idx: int
    vad: list[VADPrediction] = field(default_factory=list)
    step_duration_s: float | None = None
    total_duration_s: float | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": self.type.value,
            "step_idx": self.step_idx,
            "vad": [p.to_dict() for p in self.vad],
        }
        if self.step_duration_s is not None:
            result["step_duration_s"] = self.step_duration_s
        if self.total_duration_s is not None:
            result["total_duration_s"] = self.total_duration_s
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StepMessage:
        step_duration = _optional(data, "step_duration_s", (int, float))
        total_duration = _optional(data, "total_duration_s", (int, float))
        return cls(
            step_idx=_require(data, "step_idx", int),
            vad=[VADPrediction.from_dict(p) for p in _require(data, "vad", list)],
            step_duration_s=float(step_duration) if step_duration is not None else None,
            total_duration_s=float(total_duration) if total_duration is not None else None,
        )


@dataclass(slots=True)
class EndTextMessage:
    """End of a transcription span."""

    type: ClassVar[ServerMessageType] = ServerMessageType.END_TEXT

    stop_s: float
    stream_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type.value, "stop_s": self.stop_s}
        if self.stream_id is not None:
            result["stream_id"] = self.stream_id
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EndTextMessage:
        return cls(
            stop_s=float(_require(data, "stop_s", (int, float))),
            stream_id=_optional(data, "stream_id", int),
        )


@dataclass(slots=True)
class ErrorMessage:
    """Server-side failure of the session."""

    type: ClassVar[ServerMessageType] = ServerMessageType.ERROR

    message: str
    code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type.value, "message": self.message}
        if self.code is not None:
            result["code"] = self.code
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ErrorMessage:
        return cls(
            message=_require(data, "message", str),
            code=_error_code(data),
        )


ClientMessage = TTSSetupMessage | STTSetupMessage | TextInput | AudioInput | EndOfStream
ServerMessage = (
    ReadyMessage
    | AudioChunk
    | TextResult
    | StepMessage
    | EndTextMessage
    | ErrorMessage
    | EndOfStream
)

_SERVER_DECODERS: dict[str, Callable[[dict[str, Any]], ServerMessage]] = {
    ServerMessageType.READY.value: ReadyMessage.from_dict,
    ServerMessageType.AUDIO.value: AudioChunk.from_dict,
    ServerMessageType.TEXT.value: TextResult.from_dict,
    ServerMessageType.STEP.value: StepMessage.from_dict,
    ServerMessageType.END_TEXT.value: EndTextMessage.from_dict,
    ServerMessageType.ERROR.value: ErrorMessage.from_dict,
    ServerMessageType.END_OF_STREAM.value: EndOfStream.from_dict,
}


# =============================================================================
# Field helpers
# =============================================================================


def _require(data: dict[str, Any], key: str, kind: type | tuple[type, ...]) -> Any:
    if key not in data or data[key] is None:
        raise ProtocolDecodeError(f"Missing '{key}' field in '{data.get('type')}' message")
    return _check(data, key, kind)


def _optional(data: dict[str, Any], key: str, kind: type | tuple[type, ...]) -> Any:
    if data.get(key) is None:
        return None
    return _check(data, key, kind)


def _check(data: dict[str, Any], key: str, kind: type | tuple[type, ...]) -> Any:
    value = data[key]
    # bool is an int subclass; never accept it where a number is expected
    if isinstance(value, bool) and kind is not bool:
        raise ProtocolDecodeError(f"Field '{key}' has invalid type bool")
    if not isinstance(value, kind):
        raise ProtocolDecodeError(f"Field '{key}' has invalid type {type(value).__name__}")
    return value


def _error_code(data: dict[str, Any]) -> int | None:
    """Read an error ``code`` sent as any JSON number (``404`` or ``404.0``)."""
    code = _optional(data, "code", (int, float))
    if code is None or isinstance(code, int):
        return code
    if not code.is_integer():
        raise ProtocolDecodeError(f"Field 'code' must be an integral number, got {code!r}")
    return int(code)


def _load_object(raw: str | bytes) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolDecodeError(f"Message is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ProtocolDecodeError(f"Message must be a JSON object, got {type(data).__name__}")
    if "type" not in data:
        raise ProtocolDecodeError("Missing 'type' field in message")
    return data


# =============================================================================
# Encode / Decode
# =============================================================================


def encode_message(message: ClientMessage | ServerMessage) -> str:
    """Serialize an envelope to its JSON wire form."""
    return json.dumps(message.to_dict())


def decode_server_message(raw: str | bytes) -> ServerMessage:
    """Decode one inbound frame.

    Args:
        raw: JSON text (or UTF-8 bytes) received from the server.

    Returns:
        The envelope variant selected by the ``type`` tag.

    Raises:
        ProtocolDecodeError: If the frame is not a JSON object, has an
            unknown ``type``, or lacks a required field.
    """
    data = _load_object(raw)
    decoder = _SERVER_DECODERS.get(data["type"]) if isinstance(data["type"], str) else None
    if decoder is None:
        raise ProtocolDecodeError(f"Invalid server message type: {data['type']!r}")
    return decoder(data)


def parse_client_message(raw: str | bytes) -> ClientMessage:
    """Decode one outbound frame, as a server would.

    Setup messages are told apart by the presence of ``voice_id`` (TTS)
    versus ``input_format`` (STT).

    Raises:
        ProtocolDecodeError: If the frame is malformed or has an unknown type.
    """
    data = _load_object(raw)
    msg_type = data["type"]

    if msg_type == ClientMessageType.SETUP.value:
        if "voice_id" in data:
            return TTSSetupMessage.from_dict(data)
        return STTSetupMessage.from_dict(data)
    if msg_type == ClientMessageType.TEXT.value:
        return TextInput.from_dict(data)
    if msg_type == ClientMessageType.AUDIO.value:
        return AudioInput.from_dict(data)
    if msg_type == ClientMessageType.END_OF_STREAM.value:
        return EndOfStream()

    raise ProtocolDecodeError(f"Invalid client message type: {msg_type!r}")


# =============================================================================
# Public API
# =============================================================================

__all__ = [
    # Enums
    "ClientMessageType",
    "ServerMessageType",
    # Client messages
    "TTSSetupMessage",
    "STTSetupMessage",
    "TextInput",
    "AudioInput",
    "EndOfStream",
    # Server messages
    "ReadyMessage",
    "AudioChunk",
    "TextResult",
    "VADPrediction",
    "StepMessage",
    "EndTextMessage",
    "ErrorMessage",
    # Unions
    "ClientMessage",
    "ServerMessage",
    # Codec
    "DEFAULT_MODEL_NAME",
    "encode_audio",
    "decode_audio",
    "encode_message",
    "decode_server_message",
    "parse_client_message",
]
