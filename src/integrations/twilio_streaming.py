"""Twilio Media Streams wire vocabulary.

Inbound events (Twilio -> relay)::

    {"event": "connected", "protocol": "Call", "version": "1.0.0"}
    {"event": "start", "start": {"streamSid": "MZ...", "callSid": "CA..."}}
    {"event": "media", "media": {"track": "inbound", "payload": "<base64 mu-law>"}}
    {"event": "stop", "stop": {...}}

Outbound events (relay -> Twilio)::

    {"event": "media", "streamSid": "MZ...", "media": {"payload": "<base64 mu-law>"}}

Only structural decoding happens here; audio stays mu-law bytes.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any

from relay.errors import ProtocolDecodeError


@dataclass(frozen=True, slots=True)
class StreamStart:
    stream_sid: str
    call_sid: str | None = None


@dataclass(frozen=True, slots=True)
class StreamMedia:
    payload: bytes


@dataclass(frozen=True, slots=True)
class StreamStop:
    pass


TelephonyEvent = StreamStart | StreamMedia | StreamStop


def parse_json_object(text: str | bytes) -> dict[str, Any]:
    try:
        message = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ProtocolDecodeError(f"Message is not valid JSON: {exc}") from exc
    if not isinstance(message, dict):
        raise ProtocolDecodeError("Message is not a JSON object")
    return message


def b64decode_strict(value: Any, *, field: str) -> bytes:
    if not isinstance(value, str):
        raise ProtocolDecodeError(f"{field} must be a base64 string")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ProtocolDecodeError(f"{field} is not valid base64: {exc}") from exc


def b64encode_text(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _nested_object(message: dict, key: str) -> dict:
    value = message.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ProtocolDecodeError(f"{key} must be a JSON object")
    return value


def decode_telephony_event(text: str | bytes) -> TelephonyEvent | None:
    """Decode one Media Streams message.

    Returns None for events the relay does not act on (connected, mark, dtmf,
    unknown types, and media for tracks other than inbound).

    Raises:
        ProtocolDecodeError: on non-JSON text, a start or media body that is
            not an object, a start without streamSid, or a media payload that
            is not valid base64.
    """

    message = parse_json_object(text)
    event = str(message.get("event") or "")

    if event == "start":
        start = _nested_object(message, "start")
        stream_sid = start.get("streamSid") or message.get("streamSid")
        if not isinstance(stream_sid, str) or not stream_sid:
            raise ProtocolDecodeError("start event without streamSid")
        call_sid = start.get("callSid")
        if call_sid is not None and not isinstance(call_sid, str):
            raise ProtocolDecodeError("start.callSid must be a string")
        return StreamStart(stream_sid=stream_sid, call_sid=call_sid or None)

    if event == "media":
        media = _nested_object(message, "media")
        if media.get("track") and media.get("track") != "inbound":
            return None
        return StreamMedia(payload=b64decode_strict(media.get("payload"), field="media.payload"))

    if event == "stop":
        return StreamStop()

    return None


def encode_media_event(stream_sid: str, mulaw: bytes) -> str:
    return json.dumps(
        {
            "event": "media",
            "streamSid": stream_sid,
            "media": {"payload": b64encode_text(mulaw)},
        }
    )
