"""
PCM frame splitting utilities (pure).

Purpose:
- Cut an arbitrary-length PCM16 blob (an upsampled AI fragment, silence
  padding) into fixed-size 20ms frames for the playback queue.

Invariants:
- PCM16 signed, little-endian, interleaved channels
- Frame size derived from (sample rate, frame ms, channels, sample width)

Design:
- Pure functions only (no queues, no timing, no IO).
- Incomplete trailing bytes are returned to the caller as a remainder
  so a streaming writer can prepend them to the next blob.
"""

from __future__ import annotations

from constants import (
    AUDIO_FRAME_MS,
    AUDIO_SAMPLE_WIDTH_BYTES,
    PARTICIPANT_SAMPLE_RATE_HZ,
    PLAYBACK_CHANNELS_DEFAULT,
)


def frame_size_bytes(
    *,
    sample_rate_hz: int = PARTICIPANT_SAMPLE_RATE_HZ,
    frame_duration_ms: int = AUDIO_FRAME_MS,
    channels: int = PLAYBACK_CHANNELS_DEFAULT,
    sample_width_bytes: int = AUDIO_SAMPLE_WIDTH_BYTES,
) -> int:
    """
    Bytes in one frame for the given format.

    Raises:
        ValueError if parameters are invalid.
    """
    if sample_rate_hz <= 0:
        raise ValueError("sample_rate_hz must be > 0")
    if frame_duration_ms <= 0:
        raise ValueError("frame_duration_ms must be > 0")
    if channels <= 0:
        raise ValueError("channels must be > 0")
    if sample_width_bytes <= 0:
        raise ValueError("sample_width_bytes must be > 0")

    samples_per_frame = (sample_rate_hz * frame_duration_ms) // 1000
    bytes_per_frame = samples_per_frame * channels * sample_width_bytes
    if bytes_per_frame <= 0:
        raise ValueError("bytes_per_frame must be > 0")
    return bytes_per_frame


def split_pcm_into_frames(
    pcm_bytes: bytes,
    *,
    sample_rate_hz: int = PARTICIPANT_SAMPLE_RATE_HZ,
    frame_duration_ms: int = AUDIO_FRAME_MS,
    channels: int = PLAYBACK_CHANNELS_DEFAULT,
    sample_width_bytes: int = AUDIO_SAMPLE_WIDTH_BYTES,
) -> tuple[list[bytes], bytes]:
    """
    Split raw PCM16 bytes into fixed-size frames.

    Returns:
        (frames, remainder): every frame is exactly frame_size_bytes();
        remainder holds the incomplete trailing bytes (possibly b"").

    Raises:
        ValueError if parameters are invalid.

    Notes:
        This function does NOT resample or pad.
    """
    bytes_per_frame = frame_size_bytes(
        sample_rate_hz=sample_rate_hz,
        frame_duration_ms=frame_duration_ms,
        channels=channels,
        sample_width_bytes=sample_width_bytes,
    )

    if not pcm_bytes:
        return [], b""

    whole_frames = len(pcm_bytes) // bytes_per_frame
    end = whole_frames * bytes_per_frame

    out: list[bytes] = []
    for offset in range(0, end, bytes_per_frame):
        out.append(pcm_bytes[offset : offset + bytes_per_frame])

    return out, pcm_bytes[end:]


def bytes_to_frame_count(
    num_bytes: int,
    *,
    sample_rate_hz: int = PARTICIPANT_SAMPLE_RATE_HZ,
    frame_duration_ms: int = AUDIO_FRAME_MS,
    channels: int = PLAYBACK_CHANNELS_DEFAULT,
    sample_width_bytes: int = AUDIO_SAMPLE_WIDTH_BYTES,
) -> int:
    """
    Return the number of whole frames represented by num_bytes.

    Drops any incomplete trailing frame (floor division).
    """
    if num_bytes <= 0:
        return 0

    return num_bytes // frame_size_bytes(
        sample_rate_hz=sample_rate_hz,
        frame_duration_ms=frame_duration_ms,
        channels=channels,
        sample_width_bytes=sample_width_bytes,
    )
