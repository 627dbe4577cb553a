# tests/unit/test_frame_generator.py

import pytest

from audio.frame_generator import (
    bytes_to_frame_count,
    frame_size_bytes,
    split_pcm_into_frames,
)

MONO_FRAME = frame_size_bytes()


def test_frame_size_for_48k_20ms():
    assert MONO_FRAME == 1920
    assert frame_size_bytes(channels=2) == 3840
    assert frame_size_bytes(sample_rate_hz=16_000) == 640


def test_correct_bytes_per_frame():
    # 3 full frames
    pcm = b"\x00" * (MONO_FRAME * 3)

    frames, remainder = split_pcm_into_frames(pcm)

    assert len(frames) == 3
    assert remainder == b""
    for frame in frames:
        assert len(frame) == MONO_FRAME


def test_incomplete_trailing_frame_is_returned_as_remainder():
    pcm = b"\x00" * (MONO_FRAME * 2) + b"\x01" * 10

    frames, remainder = split_pcm_into_frames(pcm)

    assert len(frames) == 2
    assert remainder == b"\x01" * 10


def test_empty_input_returns_no_frames():
    assert split_pcm_into_frames(b"") == ([], b"")


def test_invalid_parameters_raise():
    with pytest.raises(ValueError):
        frame_size_bytes(channels=0)
    with pytest.raises(ValueError):
        split_pcm_into_frames(b"\x00" * 10, frame_duration_ms=0)


def test_bytes_to_frame_count_floors():
    assert bytes_to_frame_count(MONO_FRAME * 5 + 3) == 5
    assert bytes_to_frame_count(0) == 0
    assert bytes_to_frame_count(-1) == 0
