# backend/protocol/convai.py
"""
Message codec for the conversational-AI socket.

Outbound (bridge -> AI), JSON text frames:
    {"user_audio_chunk": "<base64 PCM16LE 16kHz mono>"}
    {"type": "pong", "event_id": <int>}

Inbound (AI -> bridge):
    JSON text frames, audio carried Base64 in any of
        {"audio_event": {"audio_base_64": ...}}
        {"data": {"audio_event": {"audio_base_64": ...}}}
        {"audio_base_64": ...}
    keep-alives as {"type": "ping", "ping_event": {"event_id": N}},
    server-side barge-in as {"type": "interruption", ...}.
    Binary frames are raw PCM16LE 16kHz mono.

Usage example:

    try:
        msg = decode_text_message(raw)
    except ProtocolError as e:
        log({"event_type": "convai_message_dropped", "error": str(e)})
        return

    if isinstance(msg, AudioChunk):
        ...
    elif isinstance(msg, PingRequest) and msg.event_id is not None:
        await ws.send(encode_pong(msg.event_id))
"""

from __future__ import annotations

import base64
import binascii
import json
import urllib.parse
from dataclasses import dataclass
from typing import Any, Union

from constants import CONVAI_API_KEY_HEADER


# -------------------------
# Exceptions
# -------------------------

class ProtocolError(Exception):
    """
    Raised when an inbound message cannot be interpreted.

    The message is unsafe to act on and must be dropped; it never affects
    connection state.
    """


# -------------------------
# Inbound message types
# -------------------------

@dataclass(frozen=True)
class AudioChunk:
    """A fragment of AI speech, PCM16LE 16kHz mono."""
    pcm_bytes: bytes
    event_id: int | None = None


@dataclass(frozen=True)
class PingRequest:
    """Application-level keep-alive; answered with a pong when event_id is set."""
    event_id: int | None


@dataclass(frozen=True)
class RemoteInterruption:
    """The AI endpoint detected barge-in on its side."""
    event_id: int | None


@dataclass(frozen=True)
class ConversationMetadata:
    """Handshake metadata sent once after the socket opens."""
    conversation_id: str | None
    agent_output_audio_format: str | None


@dataclass(frozen=True)
class OtherMessage:
    """Any well-formed message the bridge passes over (transcripts, etc.)."""
    message_type: str | None


ServerMessage = Union[
    AudioChunk,
    PingRequest,
    RemoteInterruption,
    ConversationMetadata,
    OtherMessage,
]


# -------------------------
# Connection parameters
# -------------------------

def build_conversation_url(base_url: str, *, agent_id: str, output_format: str) -> str:
    """Socket URL for one agent with the requested output audio format."""
    qs = urllib.parse.urlencode({
        "agent_id": agent_id,
        "output_format": output_format,
    })
    sep = "&" if "?" in base_url else "?"
    return f"{base_url}{sep}{qs}"


def build_auth_headers(api_key: str) -> dict[str, str]:
    """Request headers authenticating the socket handshake."""
    return {CONVAI_API_KEY_HEADER: api_key}


# -------------------------
# Outbound encoding
# -------------------------

def encode_user_audio_chunk(pcm_bytes: bytes) -> str:
    """Wrap 16kHz mono PCM16LE into a user_audio_chunk message."""
    return json.dumps({
        "user_audio_chunk": base64.b64encode(pcm_bytes).decode("ascii"),
    })


def encode_pong(event_id: int) -> str:
    """Answer to a PingRequest."""
    return json.dumps({"type": "pong", "event_id": event_id})


# -------------------------
# Inbound decoding
# -------------------------

def decode_binary_message(payload: bytes) -> AudioChunk:
    """Binary frames carry raw PCM16LE 16kHz mono."""
    if not payload:
        raise ProtocolError("empty binary frame")
    return AudioChunk(pcm_bytes=bytes(payload))


def decode_text_message(payload: str | bytes) -> ServerMessage:
    """
    Parse one inbound text frame.

    Raises:
        ProtocolError for invalid JSON, a non-object payload, or an audio
        field that is not valid Base64.
    """
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"invalid json: {e}") from e

    if not isinstance(data, dict):
        raise ProtocolError(f"expected json object, got {type(data).__name__}")

    msg_type = data.get("type")
    if msg_type is not None and not isinstance(msg_type, str):
        raise ProtocolError("message type must be a string")

    if msg_type == "ping":
        return PingRequest(event_id=_event_id(data, "ping_event"))

    if msg_type == "interruption":
        return RemoteInterruption(event_id=_event_id(data, "interruption_event"))

    audio_b64 = _find_audio_base64(data)
    if audio_b64 is not None:
        pcm = _b64decode(audio_b64)
        if pcm:
            return AudioChunk(pcm_bytes=pcm, event_id=_event_id(data, "audio_event"))
        return OtherMessage(message_type=msg_type)

    if msg_type == "conversation_initiation_metadata":
        meta = data.get("conversation_initiation_metadata_event")
        meta = meta if isinstance(meta, dict) else {}
        return ConversationMetadata(
            conversation_id=_str_or_none(meta.get("conversation_id")),
            agent_output_audio_format=_str_or_none(meta.get("agent_output_audio_format")),
        )

    return OtherMessage(message_type=msg_type)


# -------------------------
# Low-level helpers
# -------------------------

def _find_audio_base64(data: dict[str, Any]) -> Any:
    event = data.get("audio_event")
    if not isinstance(event, dict):
        nested = data.get("data")
        if isinstance(nested, dict):
            event = nested.get("audio_event")

    if isinstance(event, dict) and "audio_base_64" in event:
        return event["audio_base_64"]

    return data.get("audio_base_64")


def _b64decode(value: Any) -> bytes:
    if not isinstance(value, str):
        raise ProtocolError("audio_base_64 must be a string")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ProtocolError(f"invalid base64 audio: {e}") from e


def _event_id(data: dict[str, Any], event_key: str) -> int | None:
    event = data.get(event_key)
    raw = event.get("event_id") if isinstance(event, dict) else None
    if raw is None:
        raw = data.get("event_id")
    if isinstance(raw, bool) or not isinstance(raw, int):
        return None
    return raw


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None
