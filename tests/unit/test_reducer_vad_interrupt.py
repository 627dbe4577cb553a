# pylint: disable=missing-module-docstring,missing-function-docstring

from dataclasses import replace

from orchestrator.commands import (
    AppendSegment,
    CancelTimer,
    DiscardSegment,
    ForwardUserAudio,
    LogEvent,
    OpenSegment,
    StopPlayback,
)
from orchestrator.events import (
    AIAudioReceived,
    EventType,
    InputStallCheck,
    PlaybackStateChanged,
    UserAudioFrame,
)
from orchestrator.reducer import TIMER_SEGMENT_SILENCE, reduce
from orchestrator.state_dataclass import BridgeState

LOUD = 5000


def frame(ts: int, peak: int, pcm: bytes = b"\x10\x00") -> UserAudioFrame:
    return UserAudioFrame(
        event_type=EventType.USER_AUDIO_FRAME,
        ts_ms=ts,
        pcm_bytes=pcm,
        peak=peak,
    )


def ai_audio(ts: int, pcm: bytes = b"\x01\x00" * 160) -> AIAudioReceived:
    return AIAudioReceived(event_type=EventType.AI_AUDIO_RECEIVED, ts_ms=ts, pcm_bytes=pcm)


def decisions(commands) -> list[str]:
    return [c.event["decision"] for c in commands if isinstance(c, LogEvent)]


def feed(state: BridgeState, peaks: list[int], start_ts: int = 0):
    all_commands = []
    for i, peak in enumerate(peaks):
        state, commands = reduce(state, frame(start_ts + i * 20, peak, pcm=bytes([i % 256, 0])))
        all_commands.append(commands)
    return state, all_commands


# ---------------------------------------------------------------------
# Forwarding
# ---------------------------------------------------------------------

def test_frames_before_onset_are_not_forwarded():
    state, per_frame = feed(BridgeState(), [LOUD, LOUD])
    assert state.vad.is_speaking is False
    for commands in per_frame:
        assert not any(isinstance(c, ForwardUserAudio) for c in commands)


def test_onset_frame_is_forwarded():
    state, per_frame = feed(BridgeState(), [LOUD, LOUD, LOUD])
    assert state.vad.is_speaking is True

    forwarded = [c for c in per_frame[2] if isinstance(c, ForwardUserAudio)]
    assert forwarded == [ForwardUserAudio(pcm_bytes=bytes([2, 0]))]
    assert "speech_onset" in decisions(per_frame[2])


def test_quiet_frames_are_forwarded_while_speaking():
    state, _ = feed(BridgeState(), [LOUD] * 3)
    _, commands = reduce(state, frame(100, 0))
    assert any(isinstance(c, ForwardUserAudio) for c in commands)


def test_release_stops_forwarding():
    state, _ = feed(BridgeState(), [LOUD] * 3)
    state, per_frame = feed(state, [0] * 81, start_ts=60)

    assert state.vad.is_speaking is False
    assert not any(isinstance(c, ForwardUserAudio) for c in per_frame[-1])
    assert "speech_release" in decisions(per_frame[-1])


# ---------------------------------------------------------------------
# Interrupts
# ---------------------------------------------------------------------

def _playing_state() -> BridgeState:
    state, _ = reduce(BridgeState(), ai_audio(0))
    state, _ = reduce(
        state,
        PlaybackStateChanged(
            event_type=EventType.PLAYBACK_STATE_CHANGED, ts_ms=1, active=True
        ),
    )
    assert state.segment_open and state.playback_active
    return state


def test_onset_during_playback_interrupts():
    state, per_frame = feed(_playing_state(), [LOUD] * 3, start_ts=10)
    commands = per_frame[-1]

    assert StopPlayback() in commands
    assert DiscardSegment(segment_id=1) in commands
    assert CancelTimer(timer_id=TIMER_SEGMENT_SILENCE) in commands
    assert commands.index(StopPlayback()) < commands.index(DiscardSegment(segment_id=1))
    assert "interrupt" in decisions(commands)

    assert state.vad.is_interrupting is True
    assert state.vad.is_speaking is True
    assert state.vad.speaking_frame_count == 0
    assert state.segment_open is False
    assert state.playback_active is False


def test_onset_without_playback_does_not_interrupt():
    state, per_frame = feed(BridgeState(), [LOUD] * 3)
    assert StopPlayback() not in per_frame[-1]
    assert state.vad.is_interrupting is False


def test_ai_audio_is_dropped_while_interrupting():
    state, _ = feed(_playing_state(), [LOUD] * 3, start_ts=10)

    new_state, commands = reduce(state, ai_audio(200))

    assert new_state == state
    assert not any(isinstance(c, (OpenSegment, AppendSegment)) for c in commands)
    assert decisions(commands) == ["ignore"]


def test_release_after_interrupt_accepts_ai_audio_in_new_segment():
    state, _ = feed(_playing_state(), [LOUD] * 3, start_ts=10)
    state, _ = feed(state, [0] * 81, start_ts=100)
    assert state.vad.is_interrupting is False

    state, commands = reduce(state, ai_audio(5000))
    assert OpenSegment(segment_id=2) in commands
    assert state.segment_id == 2


def test_stall_check_releases_and_clears_interrupt():
    state, _ = feed(_playing_state(), [LOUD] * 3, start_ts=10)
    last_ts = state.vad.last_frame_ts_ms
    assert last_ts is not None

    same, commands = reduce(
        state,
        InputStallCheck(event_type=EventType.INPUT_STALL_CHECK, ts_ms=last_ts + 100),
    )
    assert same == state
    assert commands == ()

    released, commands = reduce(
        state,
        InputStallCheck(event_type=EventType.INPUT_STALL_CHECK, ts_ms=last_ts + 500),
    )
    assert released.vad.is_speaking is False
    assert released.vad.is_interrupting is False
    assert decisions(commands) == ["speech_stalled"]


def test_playback_state_change_is_mirrored():
    state = replace(BridgeState(), playback_active=False)
    state, commands = reduce(
        state,
        PlaybackStateChanged(event_type=EventType.PLAYBACK_STATE_CHANGED, ts_ms=0, active=True),
    )
    assert state.playback_active is True
    assert decisions(commands) == ["playback_active"]

    same, commands = reduce(
        state,
        PlaybackStateChanged(event_type=EventType.PLAYBACK_STATE_CHANGED, ts_ms=1, active=True),
    )
    assert same == state
    assert commands == ()
