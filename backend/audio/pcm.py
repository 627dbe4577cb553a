"""PCM16 inspection and generation utilities."""
import numpy as np

from constants import AUDIO_SAMPLE_WIDTH_BYTES, samples_for_ms


def pcm16le_to_int16(pcm_bytes: bytes) -> np.ndarray:
    """
    View PCM16 little-endian bytes as an int16 array.

    A trailing odd byte (truncated sample) is dropped.
    No resampling. No channel mixing.
    """
    usable = len(pcm_bytes) - (len(pcm_bytes) % AUDIO_SAMPLE_WIDTH_BYTES)
    return np.frombuffer(pcm_bytes[:usable], dtype="<i2")


def peak_amplitude(pcm_bytes: bytes, threshold: int | None = None) -> int:
    """
    Peak absolute sample value of a PCM16 frame.

    When `threshold` is given, the magnitude of the FIRST sample exceeding
    it is returned instead of the true maximum. Callers comparing against
    the same threshold get the same answer; the value is only a lower bound
    on the peak.
    """
    samples = pcm16le_to_int16(pcm_bytes)
    if samples.size == 0:
        return 0

    # int32 so abs(-32768) does not wrap
    magnitudes = np.abs(samples.astype(np.int32))

    if threshold is not None:
        over = np.flatnonzero(magnitudes > threshold)
        if over.size:
            return int(magnitudes[over[0]])

    return int(magnitudes.max())


def silence(duration_ms: int, sample_rate_hz: int, channels: int) -> bytes:
    """Zero-valued PCM16 covering duration_ms."""
    n = samples_for_ms(duration_ms, sample_rate_hz) * channels
    return bytes(n * AUDIO_SAMPLE_WIDTH_BYTES)
