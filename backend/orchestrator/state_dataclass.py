"""
Authoritative bridge state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL cross-component state the reducer may ever need.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from audio.vad import VADState
from orchestrator.enums.connection import ConnectionState
from orchestrator.enums.decoder import DecoderHealth
from orchestrator.retry import RetryAttempt


@dataclass(frozen=True)
class BridgeState:
    """Immutable snapshot of all reducer-owned state for one session."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    # Permanent once set; every later event is ignored.
    stopped: bool = False
    stop_reason: str | None = None

    # ------------------------------------------------------------------
    # VAD / interrupt
    # ------------------------------------------------------------------
    vad: VADState = field(default_factory=VADState)

    # Mirrors the playback sink's last reported active/idle state.
    playback_active: bool = False

    # ------------------------------------------------------------------
    # Response segments
    # ------------------------------------------------------------------
    # segment_id is the id of the open segment, or of the last one when
    # none is open. Monotonic, never reused.
    segment_open: bool = False
    segment_id: int = 0

    # ------------------------------------------------------------------
    # AI socket
    # ------------------------------------------------------------------
    connection_state: ConnectionState = ConnectionState.CONNECTING
    reconnect_attempt: RetryAttempt = RetryAttempt(attempt=0)

    # ------------------------------------------------------------------
    # Input decoder
    # ------------------------------------------------------------------
    decoder_health: DecoderHealth = DecoderHealth.HEALTHY
