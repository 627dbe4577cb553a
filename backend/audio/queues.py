# backend/audio/queues.py
"""
Bounded playback frame queue with canonical depth measurement.

Requirements:
- Depth measured in seconds (not frame count)
- Explicit drop behavior: a full queue drops the NEW frame, never blocks
- Drop reasons distinguishable (overflow vs closed)
- Deterministic, synchronous behavior
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Optional

from audio.frames import AudioFrame


class DropReason(str, Enum):
    """
    Reason an audio frame was dropped.
    """
    OVERFLOW = "overflow"
    CLOSED = "closed"


@dataclass
class DropCounters:
    """
    Drop counters for observability.
    """
    overflow: int = 0
    closed: int = 0


class PlaybackFrameQueue:
    """
    Bounded FIFO queue of fixed-duration AudioFrame objects.

    Drop rules:
    - closed: every enqueue is dropped
    - else: drop NEW frame if enqueue would exceed max_depth_s
    """

    def __init__(self, *, max_depth_s: float, frame_duration_s: float) -> None:
        if max_depth_s <= 0:
            raise ValueError("max_depth_s must be > 0")
        if frame_duration_s <= 0:
            raise ValueError("frame_duration_s must be > 0")

        self._max_depth_s: float = max_depth_s
        self._frame_duration_s: float = frame_duration_s
        self._frames: Deque[AudioFrame] = deque()
        self._closed: bool = False
        self.drops: DropCounters = DropCounters()

    # -------------------------
    # Core queue operations
    # -------------------------

    def enqueue(self, frame: AudioFrame) -> bool:
        """
        Enqueue an AudioFrame.

        Returns:
            True if enqueued
            False if dropped
        """
        if self._closed:
            self.drops.closed += 1
            return False

        if self.depth_seconds() + self._frame_duration_s > self._max_depth_s + 1e-9:
            self.drops.overflow += 1
            return False

        self._frames.append(frame)
        return True

    def dequeue(self) -> Optional[AudioFrame]:
        """
        Dequeue the oldest AudioFrame.

        Returns None if queue is empty.
        """
        if not self._frames:
            return None
        return self._frames.popleft()

    def peek(self) -> Optional[AudioFrame]:
        """
        View the oldest frame without removing it.
        """
        return self._frames[0] if self._frames else None

    def clear(self) -> int:
        """
        Drop all queued frames without counting them as drops.

        Used on interrupts and teardown. Returns the number cleared.
        """
        n = len(self._frames)
        self._frames.clear()
        return n

    def close(self) -> None:
        """Clear and refuse all further frames."""
        self._closed = True
        self._frames.clear()

    # -------------------------
    # Introspection helpers
    # -------------------------

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def closed(self) -> bool:
        """True once close() has been called."""
        return self._closed

    def is_empty(self) -> bool:
        """Check if the queue is empty."""
        return not self._frames

    def depth_seconds(self) -> float:
        """
        Canonical queue depth in seconds.

        depth_s = num_frames × frame_duration_s
        """
        return len(self._frames) * self._frame_duration_s

    def total_drops(self) -> int:
        """
        Total frames dropped for any reason.
        """
        return self.drops.overflow + self.drops.closed

    def snapshot(self) -> dict[str, float | int]:
        """
        Lightweight snapshot for logging.
        """
        return {
            "frames": len(self._frames),
            "depth_s": self.depth_seconds(),
            "dropped_overflow": self.drops.overflow,
            "dropped_closed": self.drops.closed,
            "dropped_total": self.total_drops(),
        }
