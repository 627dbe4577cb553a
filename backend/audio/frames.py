"""
Audio frame primitives.

Pure data containers only.
No behavior, no queues, no timing logic.
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class AudioFrame:
    """
    Canonical audio frame used throughout the bridge pipelines.

    pcm_bytes:
        Raw PCM16LE audio bytes, interleaved when channels == 2.

    sample_rate_hz / channels:
        Format contract implied by the frame's position in the pipeline:
        48kHz mono/stereo on the participant side, 16kHz mono on the AI side,
        48kHz (playback channels) towards the playback sink.

    ts_ms:
        Monotonic timestamp (milliseconds) when the frame was produced.
        Used for stall detection and observability.

    sequence_num:
        Per-producer counter. Used for debugging only.
    """
    pcm_bytes: bytes
    sample_rate_hz: int
    channels: int
    ts_ms: int
    sequence_num: int = 0
