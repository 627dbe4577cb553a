"""
Peak-amplitude Voice Activity Detection with hysteresis.

Operates on fixed-size PCM16 frames summarized by their peak absolute
amplitude. Speech onset requires several consecutive loud frames; speech
release requires a longer run of quiet frames. A stall check forces
release when frames stop arriving altogether (participant muted or left
without trailing silence).

Everything here is pure: functions take a VADState and return the next
VADState plus the transition that occurred. The reducer decides what a
transition means (forwarding, interrupts).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from constants import (
    INPUT_STALL_TIMEOUT_MS,
    VAD_PEAK_THRESHOLD,
    VAD_SILENCE_FRAMES_LIMIT,
    VAD_SPEECH_FRAMES_REQUIRED,
)


class VADTransition(str, Enum):
    """
    Result of classifying one frame (or one stall check).

    NONE:    is_speaking unchanged
    ONSET:   is_speaking went False -> True
    RELEASE: is_speaking went True -> False
    """

    NONE = "none"
    ONSET = "onset"
    RELEASE = "release"


@dataclass(frozen=True)
class VADState:
    """
    Immutable VAD / interrupt flags for the single participant.

    is_interrupting:
        Set by the reducer when speech onset cut off AI playback.
        Cleared on every RELEASE.

    last_frame_ts_ms:
        Monotonic ms of the last classified frame; None before the first.
    """
    speaking_frame_count: int = 0
    silence_frame_count: int = 0
    is_speaking: bool = False
    is_interrupting: bool = False
    last_frame_ts_ms: int | None = None


def observe_frame(
    state: VADState,
    *,
    peak: int,
    ts_ms: int,
    threshold: int = VAD_PEAK_THRESHOLD,
) -> tuple[VADState, VADTransition]:
    """
    Classify one frame and advance the hysteresis counters.

    - peak > threshold: speaking += 1, silence = 0; onset at speaking >= 3
    - otherwise:        silence += 1, speaking = 0; release at silence > 80
    """
    if peak > threshold:
        speaking = state.speaking_frame_count + 1
        new_state = replace(
            state,
            speaking_frame_count=speaking,
            silence_frame_count=0,
            last_frame_ts_ms=ts_ms,
        )
        if not state.is_speaking and speaking >= VAD_SPEECH_FRAMES_REQUIRED:
            return replace(new_state, is_speaking=True), VADTransition.ONSET
        return new_state, VADTransition.NONE

    silent = state.silence_frame_count + 1
    new_state = replace(
        state,
        speaking_frame_count=0,
        silence_frame_count=silent,
        last_frame_ts_ms=ts_ms,
    )
    if state.is_speaking and silent > VAD_SILENCE_FRAMES_LIMIT:
        return _released(new_state), VADTransition.RELEASE
    return new_state, VADTransition.NONE


def check_stall(
    state: VADState,
    *,
    now_ms: int,
    stall_timeout_ms: int = INPUT_STALL_TIMEOUT_MS,
) -> tuple[VADState, VADTransition]:
    """
    Force release if speaking and no frame has arrived for stall_timeout_ms.
    """
    if not state.is_speaking or state.last_frame_ts_ms is None:
        return state, VADTransition.NONE

    if now_ms - state.last_frame_ts_ms < stall_timeout_ms:
        return state, VADTransition.NONE

    forced = replace(state, speaking_frame_count=0, silence_frame_count=0)
    return _released(forced), VADTransition.RELEASE


def begin_interrupt(state: VADState) -> VADState:
    """Mark an interrupt in progress and restart the onset counter."""
    return replace(state, speaking_frame_count=0, is_interrupting=True)


def _released(state: VADState) -> VADState:
    return replace(state, is_speaking=False, is_interrupting=False)
