"""
Pure bridge reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every event type is handled or explicitly ignored (logged).
  High-rate events (audio frames, stall checks) only log when they
  change something.
- Once stopped, every event is ignored silently.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from audio.vad import VADTransition, begin_interrupt, check_stall, observe_frame
from constants import (
    DECODER_RECOVERY_COOLDOWN_MS,
    INPUT_STALL_TIMEOUT_MS,
    SEGMENT_SILENCE_TIMEOUT_MS,
)
from orchestrator.commands import (
    AppendSegment,
    CancelTimer,
    CloseSegment,
    Command,
    Connect,
    DiscardSegment,
    EndSession,
    ForwardUserAudio,
    LogEvent,
    OpenSegment,
    ResubscribeInput,
    ScheduleReconnect,
    StartTimer,
    StopPlayback,
    TeardownDecoder,
)
from orchestrator.enums.connection import ConnectionState
from orchestrator.enums.decoder import DecoderHealth
from orchestrator.events import (
    AIAudioReceived,
    ConnectionLost,
    ConnectionOpened,
    DecoderCooldownElapsed,
    Event,
    EventType,
    InputDecodeError,
    InputEnded,
    InputStallCheck,
    PlaybackStateChanged,
    ReconnectReady,
    RemoteInterruption,
    SegmentSilenceTimeout,
    SessionStarted,
    StopRequested,
    UserAudioFrame,
)
from orchestrator.retry import (
    get_retry_delay_ms,
    next_attempt,
    reset_attempt,
    should_retry,
)
from orchestrator.state_dataclass import BridgeState


# =============================================================================
# Timer IDs
# =============================================================================

TIMER_SEGMENT_SILENCE = "segment_silence"
TIMER_DECODER_COOLDOWN = "decoder_cooldown"
TIMER_RECONNECT = "reconnect"


# =============================================================================
# Small helpers
# =============================================================================

Result = tuple[BridgeState, tuple[Command, ...]]


def _log(
    state: BridgeState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "event_ts_ms": event.ts_ms,
            "event_type": event.event_type.value,
            "decision": decision,
            "connection_state": state.connection_state.value,
            "decoder_health": state.decoder_health.value,
            "vad": {
                "is_speaking": state.vad.is_speaking,
                "is_interrupting": state.vad.is_interrupting,
            },
            "playback_active": state.playback_active,
            "segment": {
                "id": state.segment_id,
                "open": state.segment_open,
            },
            "details": details or {},
        }
    )


def _ignore(state: BridgeState, event: Event, reason: str) -> Result:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _halt_output(state: BridgeState) -> tuple[BridgeState, list[Command]]:
    """
    Stop playback and drop the in-flight segment, if any.

    Shared by local (VAD onset) and remote interruptions.
    """
    cmds: list[Command] = [StopPlayback()]
    if state.segment_open:
        cmds.append(DiscardSegment(segment_id=state.segment_id))
    cmds.append(CancelTimer(timer_id=TIMER_SEGMENT_SILENCE))
    return replace(state, segment_open=False, playback_active=False), cmds


# =============================================================================
# Reducer
# =============================================================================

def reduce(state: BridgeState, event: Event) -> Result:
    """
    Pure reducer for the bridge session.

    Given the current bridge state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every event type is handled or explicitly ignored
    - Terminal: nothing is emitted after the session is stopped
    """
    if state.stopped:
        return state, ()

    if isinstance(event, StopRequested):
        return _on_stop_requested(state, event)

    if isinstance(event, SessionStarted):
        return state, (
            _log(state, event, "session_started", {"session_id": event.session_id}),
            Connect(),
        )

    # ------------------------------------------------------------------
    # Participant input
    # ------------------------------------------------------------------
    if isinstance(event, UserAudioFrame):
        return _on_user_audio_frame(state, event)

    if isinstance(event, InputStallCheck):
        return _on_input_stall_check(state, event)

    if isinstance(event, InputDecodeError):
        return _on_input_decode_error(state, event)

    if isinstance(event, DecoderCooldownElapsed):
        if state.decoder_health is not DecoderHealth.RECOVERING:
            return _ignore(state, event, "decoder_not_recovering")
        new_state = replace(state, decoder_health=DecoderHealth.HEALTHY)
        return new_state, (
            ResubscribeInput(),
            _log(new_state, event, "decoder_recovered"),
        )

    if isinstance(event, InputEnded):
        return state, (
            _log(state, event, "input_ended", {"reason": event.reason}),
            EndSession(reason=f"input_ended:{event.reason}"),
        )

    # ------------------------------------------------------------------
    # Playback / AI output
    # ------------------------------------------------------------------
    if isinstance(event, PlaybackStateChanged):
        if state.playback_active == event.active:
            return state, ()
        new_state = replace(state, playback_active=event.active)
        return new_state, (
            _log(
                new_state,
                event,
                "playback_active" if event.active else "playback_idle",
            ),
        )

    if isinstance(event, AIAudioReceived):
        return _on_ai_audio(state, event)

    if isinstance(event, SegmentSilenceTimeout):
        if not state.segment_open or event.segment_id != state.segment_id:
            return _ignore(state, event, "stale_segment_timer")
        new_state = replace(state, segment_open=False)
        return new_state, (
            CloseSegment(segment_id=event.segment_id),
            _log(new_state, event, "segment_closed", {"segment_id": event.segment_id}),
        )

    if isinstance(event, RemoteInterruption):
        if not (state.playback_active or state.segment_open):
            return _ignore(state, event, "nothing_playing")
        new_state, cmds = _halt_output(state)
        cmds.append(_log(new_state, event, "remote_interruption"))
        return new_state, tuple(cmds)

    # ------------------------------------------------------------------
    # AI socket
    # ------------------------------------------------------------------
    if isinstance(event, ConnectionOpened):
        if state.connection_state is ConnectionState.CLOSED:
            return _ignore(state, event, "connection_closed")
        new_state = replace(
            state,
            connection_state=ConnectionState.OPEN,
            reconnect_attempt=reset_attempt(),
        )
        return new_state, (
            CancelTimer(timer_id=TIMER_RECONNECT),
            _log(
                new_state,
                event,
                "connection_opened",
                {"after_reconnects": state.reconnect_attempt.attempt},
            ),
        )

    if isinstance(event, ConnectionLost):
        return _on_connection_lost(state, event)

    if isinstance(event, ReconnectReady):
        if state.connection_state is not ConnectionState.RECONNECTING:
            return _ignore(state, event, "no_reconnect_pending")
        new_state = replace(state, connection_state=ConnectionState.CONNECTING)
        return new_state, (
            Connect(),
            _log(
                new_state,
                event,
                "reconnecting",
                {"attempt": state.reconnect_attempt.attempt},
            ),
        )

    return _ignore(state, event, "unhandled_event")


# =============================================================================
# Handlers
# =============================================================================

def _on_stop_requested(state: BridgeState, event: StopRequested) -> Result:
    new_state = replace(
        state,
        stopped=True,
        stop_reason=event.reason,
        connection_state=ConnectionState.CLOSED,
        segment_open=False,
    )
    return new_state, (
        _log(new_state, event, "session_stopping", {"reason": event.reason}),
    )


def _on_user_audio_frame(state: BridgeState, event: UserAudioFrame) -> Result:
    vad, transition = observe_frame(state.vad, peak=event.peak, ts_ms=event.ts_ms)
    new_state = replace(state, vad=vad)
    cmds: list[Command] = []

    if transition is VADTransition.ONSET:
        if state.playback_active:
            new_state, halt_cmds = _halt_output(new_state)
            new_state = replace(new_state, vad=begin_interrupt(new_state.vad))
            cmds.extend(halt_cmds)
            cmds.append(
                _log(new_state, event, "interrupt", {"peak": event.peak})
            )
        else:
            cmds.append(_log(new_state, event, "speech_onset", {"peak": event.peak}))

    elif transition is VADTransition.RELEASE:
        cmds.append(
            _log(
                new_state,
                event,
                "speech_release",
                {"was_interrupting": state.vad.is_interrupting},
            )
        )

    # The onset frame itself is forwarded
    if new_state.vad.is_speaking:
        cmds.insert(0, ForwardUserAudio(pcm_bytes=event.pcm_bytes))

    return new_state, tuple(cmds)


def _on_input_stall_check(state: BridgeState, event: InputStallCheck) -> Result:
    vad, transition = check_stall(
        state.vad,
        now_ms=event.ts_ms,
        stall_timeout_ms=INPUT_STALL_TIMEOUT_MS,
    )
    if transition is not VADTransition.RELEASE:
        return state, ()

    new_state = replace(state, vad=vad)
    return new_state, (
        _log(
            new_state,
            event,
            "speech_stalled",
            {
                "last_frame_ts_ms": state.vad.last_frame_ts_ms,
                "was_interrupting": state.vad.is_interrupting,
            },
        ),
    )


def _on_input_decode_error(state: BridgeState, event: InputDecodeError) -> Result:
    if state.decoder_health is DecoderHealth.RECOVERING:
        return _ignore(state, event, "decoder_recovery_pending")

    new_state = replace(state, decoder_health=DecoderHealth.RECOVERING)
    return new_state, (
        TeardownDecoder(),
        StartTimer(
            timer_id=TIMER_DECODER_COOLDOWN,
            duration_ms=DECODER_RECOVERY_COOLDOWN_MS,
            timeout_event_type=EventType.DECODER_COOLDOWN_ELAPSED,
        ),
        _log(new_state, event, "decoder_recovery_started", {"reason": event.reason}),
    )


def _on_ai_audio(state: BridgeState, event: AIAudioReceived) -> Result:
    if not event.pcm_bytes:
        return _ignore(state, event, "empty_audio")

    if state.vad.is_interrupting:
        return _ignore(state, event, "interrupting")

    cmds: list[Command] = []
    new_state = state

    if not state.segment_open:
        new_state = replace(
            state,
            segment_open=True,
            segment_id=state.segment_id + 1,
        )
        cmds.append(OpenSegment(segment_id=new_state.segment_id))
        cmds.append(
            _log(new_state, event, "segment_opened", {"segment_id": new_state.segment_id})
        )

    cmds.append(AppendSegment(segment_id=new_state.segment_id, pcm_bytes=event.pcm_bytes))
    cmds.append(
        StartTimer(
            timer_id=TIMER_SEGMENT_SILENCE,
            duration_ms=SEGMENT_SILENCE_TIMEOUT_MS,
            timeout_event_type=EventType.SEGMENT_SILENCE_TIMEOUT,
            segment_id=new_state.segment_id,
        )
    )
    return new_state, tuple(cmds)


def _on_connection_lost(state: BridgeState, event: ConnectionLost) -> Result:
    if state.connection_state is ConnectionState.CLOSED:
        return _ignore(state, event, "connection_closed")

    if state.connection_state is ConnectionState.RECONNECTING:
        return _ignore(state, event, "reconnect_pending")

    details: dict[str, Any] = {
        "failure": event.failure.value,
        "reason": event.reason,
        "attempt": state.reconnect_attempt.attempt,
    }

    if not should_retry(state.reconnect_attempt):
        new_state = replace(state, connection_state=ConnectionState.CLOSED)
        return new_state, (
            _log(new_state, event, "reconnect_exhausted", details),
            EndSession(reason="reconnect_exhausted"),
        )

    delay_ms = get_retry_delay_ms(state.reconnect_attempt)
    attempt = next_attempt(state.reconnect_attempt)
    new_state = replace(
        state,
        connection_state=ConnectionState.RECONNECTING,
        reconnect_attempt=attempt,
    )
    details["delay_ms"] = delay_ms
    return new_state, (
        ScheduleReconnect(delay_ms=delay_ms, attempt=attempt.attempt),
        _log(new_state, event, "reconnect_scheduled", details),
    )
