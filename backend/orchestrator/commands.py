"""
Side-effect command definitions for the bridge.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
- Reducer logic remains pure and deterministic.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from orchestrator.events import EventType

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging and runtime dispatch.
    """

    # AI socket
    CONNECT = "CONNECT"
    SCHEDULE_RECONNECT = "SCHEDULE_RECONNECT"
    FORWARD_USER_AUDIO = "FORWARD_USER_AUDIO"

    # Playback / segments
    STOP_PLAYBACK = "STOP_PLAYBACK"
    OPEN_SEGMENT = "OPEN_SEGMENT"
    APPEND_SEGMENT = "APPEND_SEGMENT"
    CLOSE_SEGMENT = "CLOSE_SEGMENT"
    DISCARD_SEGMENT = "DISCARD_SEGMENT"

    # Input decoder
    TEARDOWN_DECODER = "TEARDOWN_DECODER"
    RESUBSCRIBE_INPUT = "RESUBSCRIBE_INPUT"

    # Session / lifecycle
    END_SESSION = "END_SESSION"

    # Timers
    START_TIMER = "START_TIMER"
    CANCEL_TIMER = "CANCEL_TIMER"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# AI Socket Commands
# =============================================================================

@dataclass(frozen=True)
class Connect(Command):
    """Open (or re-open) the socket to the AI endpoint."""
    command_type: CommandType = CommandType.CONNECT


@dataclass(frozen=True)
class ScheduleReconnect(Command):
    """
    Request that runtime schedule a reconnect after delay_ms.

    Runtime responsibilities:
    - mark the connection as RECONNECTING
    - wait delay_ms
    - emit ReconnectReady

    Reducer remains pure: it decides *that* a reconnect should happen,
    runtime performs the waiting.
    """
    delay_ms: int
    attempt: int
    command_type: CommandType = CommandType.SCHEDULE_RECONNECT


@dataclass(frozen=True)
class ForwardUserAudio(Command):
    """Send one 16kHz mono frame to the AI endpoint (dropped unless OPEN)."""
    pcm_bytes: bytes
    command_type: CommandType = CommandType.FORWARD_USER_AUDIO


# =============================================================================
# Playback / Segment Commands
# =============================================================================

@dataclass(frozen=True)
class StopPlayback(Command):
    """Halt playback immediately and drop buffered audio."""
    command_type: CommandType = CommandType.STOP_PLAYBACK


@dataclass(frozen=True)
class OpenSegment(Command):
    """Begin a new response segment."""
    segment_id: int
    command_type: CommandType = CommandType.OPEN_SEGMENT


@dataclass(frozen=True)
class AppendSegment(Command):
    """Append AI audio (16kHz mono) to the open segment and play it."""
    segment_id: int
    pcm_bytes: bytes
    command_type: CommandType = CommandType.APPEND_SEGMENT


@dataclass(frozen=True)
class CloseSegment(Command):
    """Pad the segment with trailing silence and mark it closed."""
    segment_id: int
    command_type: CommandType = CommandType.CLOSE_SEGMENT


@dataclass(frozen=True)
class DiscardSegment(Command):
    """Drop the segment without padding (interrupted)."""
    segment_id: int
    command_type: CommandType = CommandType.DISCARD_SEGMENT


# =============================================================================
# Input Decoder Commands
# =============================================================================

@dataclass(frozen=True)
class TeardownDecoder(Command):
    """Release the failing decoder; packets are dropped until resubscribe."""
    command_type: CommandType = CommandType.TEARDOWN_DECODER


@dataclass(frozen=True)
class ResubscribeInput(Command):
    """Create a fresh decoder and resubscribe to the participant stream."""
    command_type: CommandType = CommandType.RESUBSCRIBE_INPUT


# =============================================================================
# Session / Lifecycle Commands
# =============================================================================

@dataclass(frozen=True)
class EndSession(Command):
    """Request full session teardown."""
    reason: str | None = None
    command_type: CommandType = CommandType.END_SESSION


# =============================================================================
# Timer Commands
# =============================================================================

@dataclass(frozen=True)
class StartTimer(Command):
    """
    Request to start a named timer.

    On expiration, the runtime must inject the specified timeout event.
    Starting a timer id that is already running replaces it.
    """
    timer_id: str
    duration_ms: int
    timeout_event_type: EventType
    segment_id: int | None = None
    command_type: CommandType = CommandType.START_TIMER


@dataclass(frozen=True)
class CancelTimer(Command):
    """Request to cancel a previously scheduled timer."""
    timer_id: str
    command_type: CommandType = CommandType.CANCEL_TIMER


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
