"""
Default playback sink: a bounded queue of 20ms frames.

The host's player pulls frames with read_frame() at real-time pace (one
every 20ms) and feeds them to the voice channel. The sink itself never
blocks and never touches the network.

Active/idle:
- Goes active when a write queues the first frame into an empty queue.
- Goes idle when read_frame() finds the queue drained, or on interrupt().
"""

from __future__ import annotations

import time

from adapters.channel.base import PlaybackSink, PlaybackStateListener
from audio.frame_generator import split_pcm_into_frames
from audio.frames import AudioFrame
from audio.queues import PlaybackFrameQueue
from constants import (
    PLAYBACK_CHANNELS_DEFAULT,
    PLAYBACK_QUEUE_MAX_S,
    SUPPORTED_CHANNEL_COUNTS,
    playback_format,
)
from observability.logger import LogFn, log_event


def _now_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class QueuedPlaybackSink(PlaybackSink):
    """PlaybackSink backed by a PlaybackFrameQueue (drop newest on overflow)."""

    def __init__(
        self,
        *,
        channels: int = PLAYBACK_CHANNELS_DEFAULT,
        max_depth_s: float = PLAYBACK_QUEUE_MAX_S,
        log: LogFn = log_event,
    ) -> None:
        if channels not in SUPPORTED_CHANNEL_COUNTS:
            raise ValueError(f"unsupported channel count: {channels}")

        self.channels = channels
        self._format = playback_format(channels)
        self._log = log
        self._queue = PlaybackFrameQueue(
            max_depth_s=max_depth_s,
            frame_duration_s=self._format.frame_duration_s,
        )
        self._remainder = b""
        self._sequence_num = 0
        self._active = False
        self._listeners: list[PlaybackStateListener] = []

    # -------------------------
    # PlaybackSink
    # -------------------------

    @property
    def is_active(self) -> bool:
        return self._active

    def add_state_listener(self, listener: PlaybackStateListener) -> None:
        self._listeners.append(listener)

    def write(self, pcm_bytes: bytes) -> bool:
        if self._queue.closed:
            return False

        frames, self._remainder = split_pcm_into_frames(
            self._remainder + pcm_bytes,
            sample_rate_hz=self._format.sample_rate_hz,
            frame_duration_ms=self._format.frame_ms,
            channels=self.channels,
        )

        all_queued = True
        queued_any = False
        for chunk in frames:
            self._sequence_num += 1
            frame = AudioFrame(
                pcm_bytes=chunk,
                sample_rate_hz=self._format.sample_rate_hz,
                channels=self.channels,
                ts_ms=_now_ms(),
                sequence_num=self._sequence_num,
            )
            if self._queue.enqueue(frame):
                queued_any = True
            else:
                all_queued = False

        if not all_queued:
            self._log({
                "event_type": "playback_frames_dropped",
                "queue": self._queue.snapshot(),
            })

        if queued_any:
            self._set_active(True)
        return all_queued

    def interrupt(self) -> None:
        cleared = self._queue.clear()
        self._remainder = b""
        self._log({"event_type": "playback_interrupted", "frames_cleared": cleared})
        self._set_active(False)

    def close(self) -> None:
        self._queue.close()
        self._remainder = b""
        self._active = False
        self._listeners.clear()

    # -------------------------
    # Player side
    # -------------------------

    def read_frame(self) -> bytes | None:
        """
        Next 20ms frame for the player, or None when nothing is buffered.

        Returning None marks the sink idle.
        """
        frame = self._queue.dequeue()
        if frame is None:
            self._set_active(False)
            return None
        return frame.pcm_bytes

    def depth_seconds(self) -> float:
        return self._queue.depth_seconds()

    def snapshot(self) -> dict[str, float | int]:
        return self._queue.snapshot()

    # -------------------------
    # Internals
    # -------------------------

    def _set_active(self, active: bool) -> None:
        if self._active == active:
            return
        self._active = active
        for listener in list(self._listeners):
            try:
                listener(active)
            except Exception as e:  # pylint: disable=broad-exception-caught
                self._log({"event_type": "playback_listener_failed", "error": repr(e)})
