"""
Unified event definitions for the bridge reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Timer events carry whatever the reducer needs for stale gating
(segment_id for the silence timer).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from orchestrator.retry import FailureType


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every event type must be explicitly handled or explicitly ignored
    by the reducer.
    """

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    SESSION_STARTED = "SESSION_STARTED"
    STOP_REQUESTED = "STOP_REQUESTED"

    # ------------------------------------------------------------------
    # Participant input
    # ------------------------------------------------------------------
    USER_AUDIO_FRAME = "USER_AUDIO_FRAME"
    INPUT_STALL_CHECK = "INPUT_STALL_CHECK"
    INPUT_DECODE_ERROR = "INPUT_DECODE_ERROR"
    INPUT_ENDED = "INPUT_ENDED"

    # ------------------------------------------------------------------
    # Playback / AI output
    # ------------------------------------------------------------------
    PLAYBACK_STATE_CHANGED = "PLAYBACK_STATE_CHANGED"
    AI_AUDIO_RECEIVED = "AI_AUDIO_RECEIVED"
    REMOTE_INTERRUPTION = "REMOTE_INTERRUPTION"

    # ------------------------------------------------------------------
    # AI socket
    # ------------------------------------------------------------------
    CONNECTION_OPENED = "CONNECTION_OPENED"
    CONNECTION_LOST = "CONNECTION_LOST"

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    SEGMENT_SILENCE_TIMEOUT = "SEGMENT_SILENCE_TIMEOUT"
    DECODER_COOLDOWN_ELAPSED = "DECODER_COOLDOWN_ELAPSED"
    RECONNECT_READY = "RECONNECT_READY"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: monotonic timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


# =============================================================================
# Session Events
# =============================================================================

@dataclass(frozen=True)
class SessionStarted(Event):
    """Channel is ready and every component is wired."""
    session_id: str


@dataclass(frozen=True)
class StopRequested(Event):
    """Session teardown was requested (host call or internal fatal path)."""
    reason: str | None = None


# =============================================================================
# Participant Input Events
# =============================================================================

@dataclass(frozen=True)
class UserAudioFrame(Event):
    """
    One decoded participant frame, already at 16kHz mono.

    peak is the frame's peak absolute amplitude, short-circuited once it
    exceeds the VAD threshold (so it is only exact up to the threshold).
    """
    pcm_bytes: bytes
    peak: int


@dataclass(frozen=True)
class InputStallCheck(Event):
    """Periodic watchdog tick; ts_ms is the check time."""


@dataclass(frozen=True)
class InputDecodeError(Event):
    """The decoder rejected a packet."""
    reason: str


@dataclass(frozen=True)
class InputEnded(Event):
    """The participant stream finished or its source raised."""
    reason: str


# =============================================================================
# Playback / AI Output Events
# =============================================================================

@dataclass(frozen=True)
class PlaybackStateChanged(Event):
    """Playback sink switched between active and idle."""
    active: bool


@dataclass(frozen=True)
class AIAudioReceived(Event):
    """A fragment of AI speech, 16kHz mono PCM16LE."""
    pcm_bytes: bytes


@dataclass(frozen=True)
class RemoteInterruption(Event):
    """The AI endpoint reported barge-in on its side."""


# =============================================================================
# Connection Events
# =============================================================================

@dataclass(frozen=True)
class ConnectionOpened(Event):
    """Socket handshake completed."""


@dataclass(frozen=True)
class ConnectionLost(Event):
    """
    Socket handshake failed or an open socket went away.

    Never emitted for a close the bridge initiated on shutdown.
    """
    failure: FailureType
    reason: str | None = None


# =============================================================================
# Timer Events
# =============================================================================

@dataclass(frozen=True)
class SegmentSilenceTimeout(Event):
    """No AI audio arrived for the segment's silence window."""
    segment_id: int


@dataclass(frozen=True)
class DecoderCooldownElapsed(Event):
    """Decoder restart cooldown finished."""


@dataclass(frozen=True)
class ReconnectReady(Event):
    """Reconnect backoff delay elapsed."""
