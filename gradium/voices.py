"""Voice catalog REST resource."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .client import Gradium

logger = logging.getLogger(__name__)

VOICES_PATH = "voices/"


@dataclass(slots=True)
class Voice:
    """A voice usable for synthesis.

    Attributes:
        uid: Unique identifier, passed as ``voice_id`` to TTS.
        name: Display name.
        description: Optional description.
        language: Language code such as ``en`` or ``fr``.
        start_s: Start of the sample used from the source audio.
        stop_s: End of the sample used from the source audio.
        filename: Original filename of the voice sample.
    """

    uid: str
    name: str
    description: str | None = None
    language: str | None = None
    start_s: float = 0.0
    stop_s: float | None = None
    filename: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "name": self.name,
            "description": self.description,
            "language": self.language,
            "start_s": self.start_s,
            "stop_s": self.stop_s,
            "filename": self.filename,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Voice:
        return cls(
            uid=d["uid"],
            name=d.get("name", ""),
            description=d.get("description"),
            language=d.get("language"),
            start_s=float(d.get("start_s") or 0.0),
            stop_s=d.get("stop_s"),
            filename=d.get("filename") or "",
        )


@dataclass(slots=True)
class VoiceCreateResponse:
    """Outcome of a voice creation request."""

    uid: str | None = None
    error: str | None = None
    was_updated: bool = False

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> VoiceCreateResponse:
        return cls(
            uid=d.get("uid"),
            error=d.get("error"),
            was_updated=bool(d.get("was_updated", False)),
        )


@dataclass(slots=True)
class VoiceUpdate:
    """Fields to change on an existing voice. ``None`` fields are not sent."""

    name: str | None = None
    description: str | None = None
    language: str | None = None
    start_s: float | None = None
    tags: list[dict[str, Any]] | None = None
    rank: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d = {
            "name": self.name,
            "description": self.description,
            "language": self.language,
            "start_s": self.start_s,
            "tags": self.tags,
            "rank": self.rank,
        }
        d = {k: v for k, v in d.items() if v is not None}
        d.update(self.extra)
        return d


class Voices:
    """Voice catalog resource of a ``Gradium`` client."""

    def __init__(self, client: Gradium) -> None:
        self._client = client

    async def list(
        self,
        *,
        skip: int | None = None,
        limit: int | None = None,
        include_catalog: bool | None = None,
    ) -> list[Voice]:
        """List voices, optionally including the public catalog."""
        params: dict[str, Any] = {}
        if skip is not None:
            params["skip"] = skip
        if limit is not None:
            params["limit"] = limit
        if include_catalog is not None:
            params["include_catalog"] = "true" if include_catalog else "false"

        response = await self._client._request("GET", VOICES_PATH, params=params)
        return [Voice.from_dict(item) for item in response.json()]

    async def get(self, voice_uid: str) -> Voice:
        """Fetch one voice by UID.

        Raises:
            NotFoundError: If the voice does not exist.
        """
        response = await self._client._request("GET", f"{VOICES_PATH}{voice_uid}")
        return Voice.from_dict(response.json())

    async def create(
        self,
        audio_file: str | Path | bytes,
        name: str,
        *,
        filename: str | None = None,
        input_format: str | None = None,
        description: str | None = None,
        language: str | None = None,
        start_s: float | None = None,
        timeout_s: float | None = None,
    ) -> VoiceCreateResponse:
        """Clone a voice from an audio sample.

        Args:
            audio_file: Path to the sample, or its raw bytes.
            name: Display name of the new voice.
            filename: Upload filename when ``audio_file`` is bytes.
            input_format: Format of the sample, e.g. ``wav``.
            description: Optional description.
            language: Language code.
            start_s: Where the sample starts in the audio.
            timeout_s: Server-side processing timeout.

        Returns:
            VoiceCreateResponse with the new UID or an error message.
        """
        if isinstance(audio_file, bytes):
            content = audio_file
            upload_name = filename or "audio.wav"
        else:
            path = Path(audio_file)
            content = path.read_bytes()
            upload_name = filename or path.name

        data: dict[str, str] = {"name": name}
        if input_format:
            data["input_format"] = input_format
        if description is not None:
            data["description"] = description
        if language is not None:
            data["language"] = language
        if start_s is not None:
            data["start_s"] = str(start_s)
        if timeout_s is not None:
            data["timeout_s"] = str(timeout_s)

        logger.info("Creating voice %r from %s (%d bytes)", name, upload_name, len(content))
        response = await self._client._request(
            "POST",
            VOICES_PATH,
            data=data,
            files={"audio_file": (upload_name, content)},
        )
        return VoiceCreateResponse.from_dict(response.json())

    async def update(self, voice_uid: str, update: VoiceUpdate) -> Voice:
        """Change fields of an existing voice."""
        response = await self._client._request(
            "PUT", f"{VOICES_PATH}{voice_uid}", json=update.to_dict()
        )
        return Voice.from_dict(response.json())

    async def delete(self, voice_uid: str) -> None:
        """Delete a voice."""
        await self._client._request("DELETE", f"{VOICES_PATH}{voice_uid}")
        logger.info("Deleted voice %s", voice_uid)


__all__ = ["Voices", "Voice", "VoiceCreateResponse", "VoiceUpdate"]
