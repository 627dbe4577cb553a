"""
AI audio playback with response segments.

A response segment is one AI speaking turn: it opens with the first audio
fragment after a quiet period and closes once no audio has arrived for
SEGMENT_SILENCE_TIMEOUT_MS, at which point SEGMENT_TAIL_PADDING_MS of
silence is written so the playback stream ends cleanly instead of
cutting off mid-sample.

Which segment is open and when it closes is decided by the reducer; this
module performs the audio work and keeps the per-segment buffers.

Failure policy: the sink raising is logged and never propagates.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from adapters.channel.base import PlaybackSink
from audio.frame_generator import bytes_to_frame_count
from audio.pcm import silence
from audio.resample import upsample_16k_to_48k
from constants import (
    AUDIO_FRAME_MS,
    PARTICIPANT_SAMPLE_RATE_HZ,
    RESAMPLE_FACTOR,
    SEGMENT_TAIL_PADDING_MS,
)
from observability.logger import LogFn, log_event
from observability.metrics import discard_timer, start_timer, stop_timer, timed


def _now_ms() -> int:
    return time.monotonic_ns() // 1_000_000


@dataclass
class ResponseSegment:
    """
    One AI speaking turn.

    pcm holds the 16kHz mono audio as received; padding_bytes is the
    length of the 48kHz silence tail written on close.
    """
    segment_id: int
    opened_at_ms: int
    pcm: bytearray = field(default_factory=bytearray)
    padding_bytes: int = 0
    closed: bool = False
    discarded: bool = False
    metric_timer_id: str | None = None


class OutputPipeline:
    def __init__(self, *, sink: PlaybackSink, log: LogFn = log_event) -> None:
        self._sink = sink
        self._log = log
        self._channels = sink.channels
        self._segment: ResponseSegment | None = None
        self._closed = False
        self.write_failures = 0

    @property
    def current_segment(self) -> ResponseSegment | None:
        return self._segment

    # ------------------------------------------------------------------
    # Segment lifecycle
    # ------------------------------------------------------------------

    def open_segment(self, segment_id: int) -> None:
        if self._closed:
            return
        if self._segment is not None:
            self._drop_segment(self._segment, reason="superseded")

        self._segment = ResponseSegment(
            segment_id=segment_id,
            opened_at_ms=_now_ms(),
            metric_timer_id=start_timer("response_segment"),
        )
        self._log({"event_type": "segment_started", "segment_id": segment_id})

    def append(self, segment_id: int, pcm_bytes: bytes) -> None:
        """Buffer AI audio (16kHz mono) and play it at 48kHz."""
        segment = self._open(segment_id)
        if segment is None:
            return
        segment.pcm.extend(pcm_bytes)
        self._write(upsample_16k_to_48k(pcm_bytes, self._channels))

    def close_segment(self, segment_id: int) -> None:
        segment = self._open(segment_id)
        if segment is None:
            return

        padding = silence(SEGMENT_TAIL_PADDING_MS, PARTICIPANT_SAMPLE_RATE_HZ, self._channels)
        self._write(padding)
        segment.padding_bytes = len(padding)
        segment.closed = True
        self._segment = None

        played_bytes = len(segment.pcm) * RESAMPLE_FACTOR * self._channels + len(padding)
        details = {
            "segment_id": segment_id,
            "ai_bytes": len(segment.pcm),
            "frames": bytes_to_frame_count(
                played_bytes,
                sample_rate_hz=PARTICIPANT_SAMPLE_RATE_HZ,
                frame_duration_ms=AUDIO_FRAME_MS,
                channels=self._channels,
            ),
            "padding_bytes": segment.padding_bytes,
        }
        if segment.metric_timer_id is not None:
            stop_timer(segment.metric_timer_id, log=self._log, details=details)
        self._log({"event_type": "segment_closed", **details})

    def discard_segment(self, segment_id: int) -> None:
        segment = self._open(segment_id)
        if segment is None:
            return
        self._drop_segment(segment, reason="interrupted")

    def stop_playback(self) -> None:
        if self._closed:
            return
        with timed("playback_interrupt", log=self._log):
            try:
                self._sink.interrupt()
            except Exception as e:  # pylint: disable=broad-exception-caught
                self._log({"event_type": "playback_interrupt_failed", "error": repr(e)})

    # ------------------------------------------------------------------
    # Teardown (session stop, in this order)
    # ------------------------------------------------------------------

    def release_segments(self) -> None:
        """Drop segment buffers; every later operation is a no-op."""
        self._closed = True
        if self._segment is not None:
            self._drop_segment(self._segment, reason="session_stopped")

    def close_playback(self) -> None:
        self._closed = True
        self._sink.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open(self, segment_id: int) -> ResponseSegment | None:
        if self._closed:
            return None
        segment = self._segment
        if segment is None or segment.segment_id != segment_id:
            self._log({
                "event_type": "segment_op_ignored",
                "segment_id": segment_id,
                "open_segment_id": segment.segment_id if segment else None,
            })
            return None
        return segment

    def _drop_segment(self, segment: ResponseSegment, *, reason: str) -> None:
        segment.discarded = True
        segment.pcm.clear()
        if segment.metric_timer_id is not None:
            discard_timer(segment.metric_timer_id)
        if self._segment is segment:
            self._segment = None
        self._log({
            "event_type": "segment_discarded",
            "segment_id": segment.segment_id,
            "reason": reason,
        })

    def _write(self, pcm_bytes: bytes) -> None:
        if not pcm_bytes:
            return
        try:
            self._sink.write(pcm_bytes)
        except Exception as e:  # pylint: disable=broad-exception-caught
            self.write_failures += 1
            self._log({"event_type": "playback_write_failed", "error": repr(e)})
