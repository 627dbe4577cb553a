# pylint: disable=missing-module-docstring,missing-function-docstring

import time

from audio.frames import AudioFrame
from audio.queues import PlaybackFrameQueue
from constants import playback_format

FRAME_S = playback_format().frame_duration_s


def make_frame(seq: int) -> AudioFrame:
    return AudioFrame(
        pcm_bytes=b"\x00\x00" * 960,
        sample_rate_hz=48_000,
        channels=1,
        ts_ms=int(time.monotonic() * 1000),
        sequence_num=seq,
    )


# ---------------------------------------------------------------------
# depth_seconds math
# ---------------------------------------------------------------------

def test_depth_seconds_exact():
    q = PlaybackFrameQueue(max_depth_s=1.0, frame_duration_s=FRAME_S)

    q.enqueue(make_frame(1))
    q.enqueue(make_frame(2))
    q.enqueue(make_frame(3))

    expected = 3 * FRAME_S
    assert q.depth_seconds() == expected
    assert len(q) == 3


# ---------------------------------------------------------------------
# Overflow behavior
# ---------------------------------------------------------------------

def test_overflow_drops_newest():
    max_depth = 2 * FRAME_S
    q = PlaybackFrameQueue(max_depth_s=max_depth, frame_duration_s=FRAME_S)

    assert q.enqueue(make_frame(1)) is True
    assert q.enqueue(make_frame(2)) is True

    # Would exceed max_depth_s
    assert q.enqueue(make_frame(3)) is False

    assert q.drops.overflow == 1
    assert q.total_drops() == 1
    assert q.depth_seconds() == max_depth

    # Oldest frames survive
    head = q.peek()
    assert head is not None
    assert head.sequence_num == 1


def test_fifo_order():
    q = PlaybackFrameQueue(max_depth_s=1.0, frame_duration_s=FRAME_S)
    for seq in (1, 2, 3):
        q.enqueue(make_frame(seq))

    assert [q.dequeue().sequence_num for _ in range(3)] == [1, 2, 3]
    assert q.dequeue() is None
    assert q.is_empty()


# ---------------------------------------------------------------------
# Clear / close
# ---------------------------------------------------------------------

def test_clear_is_not_counted_as_drops():
    q = PlaybackFrameQueue(max_depth_s=1.0, frame_duration_s=FRAME_S)
    q.enqueue(make_frame(1))
    q.enqueue(make_frame(2))

    assert q.clear() == 2
    assert q.is_empty()
    assert q.total_drops() == 0

    # Still usable after clear
    assert q.enqueue(make_frame(3)) is True


def test_closed_queue_refuses_frames():
    q = PlaybackFrameQueue(max_depth_s=1.0, frame_duration_s=FRAME_S)
    q.enqueue(make_frame(1))
    q.close()

    assert q.closed
    assert q.is_empty()
    assert q.enqueue(make_frame(2)) is False
    assert q.drops.closed == 1
    assert q.snapshot()["dropped_total"] == 1
