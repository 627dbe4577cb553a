# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from adapters.playback.queued_sink import QueuedPlaybackSink

FRAME_MONO = 1920


def make_sink(**kwargs):
    logs = []
    states = []
    sink = QueuedPlaybackSink(log=logs.append, **kwargs)
    sink.add_state_listener(states.append)
    return sink, logs, states


def test_write_queues_whole_frames_and_carries_remainder():
    sink, _, states = make_sink()

    assert sink.write(b"\x00" * (FRAME_MONO + 100)) is True
    assert sink.depth_seconds() == pytest.approx(0.02)
    assert states == [True]

    # The carried 100 bytes complete the second frame
    sink.write(b"\x00" * (FRAME_MONO - 100))
    assert sink.depth_seconds() == pytest.approx(0.04)


def test_partial_frame_does_not_activate():
    sink, _, states = make_sink()
    sink.write(b"\x00" * 100)
    assert sink.is_active is False
    assert states == []


def test_read_frame_drains_then_goes_idle():
    sink, _, states = make_sink()
    sink.write(b"\x01" * FRAME_MONO)

    assert sink.read_frame() == b"\x01" * FRAME_MONO
    assert sink.read_frame() is None
    assert sink.is_active is False
    assert states == [True, False]


def test_stereo_frames_are_twice_as_large():
    sink, _, _ = make_sink(channels=2)
    sink.write(b"\x00" * FRAME_MONO)
    assert sink.depth_seconds() == 0

    sink.write(b"\x00" * FRAME_MONO)
    assert len(sink.read_frame()) == 2 * FRAME_MONO


def test_unsupported_channel_count_is_rejected():
    with pytest.raises(ValueError):
        QueuedPlaybackSink(channels=3)


def test_overflow_drops_newest_and_logs():
    sink, logs, _ = make_sink(max_depth_s=0.04)

    assert sink.write(b"\x00" * FRAME_MONO * 3) is False

    assert sink.depth_seconds() == pytest.approx(0.04)
    assert [e["event_type"] for e in logs] == ["playback_frames_dropped"]


def test_interrupt_clears_and_goes_idle():
    sink, logs, states = make_sink()
    sink.write(b"\x00" * (FRAME_MONO * 2 + 10))

    sink.interrupt()

    assert sink.depth_seconds() == 0
    assert sink.is_active is False
    assert states == [True, False]
    assert logs[-1] == {"event_type": "playback_interrupted", "frames_cleared": 2}

    # Remainder was dropped too
    sink.write(b"\x00" * (FRAME_MONO - 10))
    assert sink.depth_seconds() == 0


def test_listener_failure_is_logged():
    sink, logs, _ = make_sink()

    def broken(_active):
        raise RuntimeError("listener")

    sink.add_state_listener(broken)
    sink.write(b"\x00" * FRAME_MONO)

    assert sink.is_active is True
    assert any(e["event_type"] == "playback_listener_failed" for e in logs)


def test_close_refuses_writes_without_notifying():
    sink, _, states = make_sink()
    sink.write(b"\x00" * FRAME_MONO)

    sink.close()

    assert sink.write(b"\x00" * FRAME_MONO) is False
    assert sink.read_frame() is None
    assert states == [True]
