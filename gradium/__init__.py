"""
Python client for the Gradium speech API.

Public API:
    - Gradium: Top-level client with ``tts``, ``stt``, ``voices`` and ``credits``
    - ClientConfig: Settings loaded from arguments or ``GRADIUM_*`` variables

Streaming:
    - TTSStream / TTSSetupParams / TTSResult: Text in, audio out
    - STTStream / STTSetupParams: Audio in, text out
    - StreamSession / SessionPhase / SessionStats: Shared session core
    - DuplexChannel / WebSocketChannel: Transport seam used by sessions

Exceptions:
    - GradiumError: Base exception for this library
    - WebSocketError: Error reported by the remote peer
    - ConnectionError: Channel failure with close code and reason
    - SessionClosedError: Session closed locally before it ended
    - NotReadyError: Input sent before the session was ready
"""

from __future__ import annotations

__version__ = "0.1.0"

from .channel import ChannelListener, DuplexChannel, WebSocketChannel
from .client import Gradium
from .config import ClientConfig
from .credits import CreditsSummary
from .exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    ConnectionError,
    GradiumError,
    InternalServerError,
    NotFoundError,
    NotReadyError,
    ProtocolDecodeError,
    RateLimitError,
    SessionClosedError,
    TimeoutError,
    ValidationError,
    WebSocketError,
)
from .protocol import (
    AudioChunk,
    EndTextMessage,
    ErrorMessage,
    ReadyMessage,
    StepMessage,
    TextResult,
    VADPrediction,
)
from .session import SessionPhase, SessionStats, StreamSession
from .stt import STTSetupParams, STTStream
from .tts import TTSResult, TTSSetupParams, TTSStream
from .voices import Voice, VoiceCreateResponse, VoiceUpdate

__all__ = [
    "__version__",
    # Client
    "Gradium",
    "ClientConfig",
    # Streaming
    "TTSStream",
    "TTSSetupParams",
    "TTSResult",
    "STTStream",
    "STTSetupParams",
    "StreamSession",
    "SessionPhase",
    "SessionStats",
    "DuplexChannel",
    "ChannelListener",
    "WebSocketChannel",
    # Messages
    "ReadyMessage",
    "AudioChunk",
    "TextResult",
    "StepMessage",
    "VADPrediction",
    "EndTextMessage",
    "ErrorMessage",
    # REST models
    "Voice",
    "VoiceCreateResponse",
    "VoiceUpdate",
    "CreditsSummary",
    # Exceptions
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
]
