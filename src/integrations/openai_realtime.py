"""OpenAI Realtime session vocabulary and WebSocket connector."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from config.settings import Settings
from integrations.twilio_streaming import b64decode_strict, b64encode_text, parse_json_object
from relay.errors import ConfigurationError, UpstreamConnectError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SessionConfig:
    sample_rate: int
    instructions: str
    voice: str = "alloy"
    transcription_model: str = "whisper-1"
    modalities: tuple[str, ...] = ("text", "audio")
    audio_format: str = "pcm16"

    @classmethod
    def from_settings(cls, settings: Settings) -> SessionConfig:
        return cls(
            sample_rate=settings.target_sample_rate,
            instructions=settings.realtime_instructions,
            voice=settings.realtime_voice,
            transcription_model=settings.transcription_model,
        )

    def as_payload(self) -> dict[str, Any]:
        return {
            "modalities": list(self.modalities),
            "instructions": self.instructions,
            "voice": self.voice,
            "input_audio_format": self.audio_format,
            "output_audio_format": self.audio_format,
            "input_audio_sample_rate": self.sample_rate,
            "output_audio_sample_rate": self.sample_rate,
            "input_audio_transcription": {"model": self.transcription_model},
        }


@dataclass(frozen=True, slots=True)
class SessionCreated:
    session: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AudioDelta:
    pcm: bytes


@dataclass(frozen=True, slots=True)
class UpstreamErrorEvent:
    error: Any

    @property
    def message(self) -> str:
        if isinstance(self.error, dict):
            return str(self.error.get("message") or self.error)
        return str(self.error)


UpstreamEvent = SessionCreated | AudioDelta | UpstreamErrorEvent


def encode_session_update(config: SessionConfig) -> str:
    return json.dumps({"type": "session.update", "session": config.as_payload()})


def encode_append(pcm: bytes) -> str:
    return json.dumps({"type": "input_audio_buffer.append", "audio": b64encode_text(pcm)})


def encode_commit() -> str:
    return json.dumps({"type": "input_audio_buffer.commit"})


def decode_upstream_event(text: str | bytes) -> UpstreamEvent | None:
    """Decode one Realtime server event; unknown types return None.

    Raises:
        ProtocolDecodeError: on non-JSON text or an audio delta that is not base64.
    """

    message = parse_json_object(text)
    event_type = str(message.get("type") or "")

    if event_type == "response.audio.delta":
        return AudioDelta(pcm=b64decode_strict(message.get("delta"), field="delta"))
    if event_type == "session.created":
        session = message.get("session")
        return SessionCreated(session=session if isinstance(session, dict) else {})
    if event_type == "error":
        return UpstreamErrorEvent(error=message.get("error"))
    return None


class UpstreamConnection(Protocol):
    """What a session pair needs from the upstream socket."""

    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[str | bytes]: ...


class RealtimeConnection:
    """Thin wrapper over a `websockets` client connection."""

    def __init__(self, ws: Any) -> None:
        self._ws = ws

    async def send(self, message: str) -> None:
        await self._ws.send(message)

    async def close(self) -> None:
        await self._ws.close()

    async def __aiter__(self) -> AsyncIterator[str | bytes]:
        try:
            async for message in self._ws:
                yield message
        except ConnectionClosed as exc:
            LOGGER.info("Realtime socket closed: %s", exc)


class RealtimeConnector:
    """Opens one authenticated Realtime WebSocket per call."""

    def __init__(self, settings: Settings) -> None:
        self._url = settings.realtime_endpoint
        self._api_key = settings.openai_api_key
        self._timeout = settings.realtime_connect_timeout

    async def __call__(self) -> RealtimeConnection:
        if not self._api_key:
            raise ConfigurationError("OPENAI_API_KEY not configured")

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "OpenAI-Beta": "realtime=v1",
        }
        LOGGER.info("Connecting to realtime session: %s", self._url)
        try:
            ws = await asyncio.wait_for(
                websockets.connect(
                    self._url,
                    additional_headers=headers,
                    ping_interval=20,
                    ping_timeout=20,
                    close_timeout=5,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            raise UpstreamConnectError(f"Timed out connecting to {self._url}") from exc
        except (OSError, InvalidHandshake) as exc:
            raise UpstreamConnectError(f"Failed to connect to {self._url}: {exc}") from exc
        return RealtimeConnection(ws)
