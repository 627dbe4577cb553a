"""
Sample-rate / channel conversion between participant audio and AI audio.

Pure, stateless transforms (no filters, no carry-over between calls):

- downmix_decimate_48k_to_16k: average stereo to mono, keep every 3rd sample.
  No anti-aliasing filter; latency wins over fidelity here.
- upsample_16k_to_48k: zero-order hold (each sample repeated 3 times),
  optionally duplicated to two interleaved channels.

Contract for both:
- Input that is not a whole number of blocks is truncated to the largest
  usable prefix.
- Under-sized input or an unsupported channel count yields b"".
- Never raises.
"""

from __future__ import annotations

import numpy as np

from audio.pcm import pcm16le_to_int16
from constants import RESAMPLE_FACTOR, SUPPORTED_CHANNEL_COUNTS


def downmix_decimate_48k_to_16k(pcm_bytes: bytes, channels: int) -> bytes:
    """
    Convert 48kHz PCM16LE (mono or interleaved stereo) to 16kHz mono.

    Stereo pairs are averaged with floor division ((l + r) // 2), then
    every RESAMPLE_FACTOR-th mono sample is kept starting at index 0.
    N input sample frames produce exactly N // 3 output samples.
    """
    if channels not in SUPPORTED_CHANNEL_COUNTS:
        return b""

    samples = pcm16le_to_int16(pcm_bytes)
    n_frames = samples.size // channels
    usable = (n_frames // RESAMPLE_FACTOR) * RESAMPLE_FACTOR
    if usable == 0:
        return b""

    if channels == 2:
        pairs = samples[: usable * 2].reshape(usable, 2).astype(np.int32)
        mono = ((pairs[:, 0] + pairs[:, 1]) // 2).astype("<i2")
    else:
        mono = samples[:usable]

    return mono[::RESAMPLE_FACTOR].astype("<i2").tobytes()


def upsample_16k_to_48k(pcm_bytes: bytes, channels: int = 1) -> bytes:
    """
    Convert 16kHz mono PCM16LE to 48kHz with `channels` output channels.

    Every input sample is repeated RESAMPLE_FACTOR times; for stereo each
    repeated sample is written to both channels.
    """
    if channels not in SUPPORTED_CHANNEL_COUNTS:
        return b""

    samples = pcm16le_to_int16(pcm_bytes)
    if samples.size == 0:
        return b""

    held = np.repeat(samples, RESAMPLE_FACTOR)
    if channels == 2:
        held = np.repeat(held, 2)

    return held.astype("<i2").tobytes()
