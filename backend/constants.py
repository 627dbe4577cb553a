"""
BRIDGE CONSTANTS
----------------
Single source of truth for all behavioral constants of the voice bridge.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

# =============================================================================
# Audio Formats
# =============================================================================
# Participant side: 48kHz PCM16LE (mono or stereo) after decode.
# AI side: 16kHz PCM16LE mono in both directions.

PARTICIPANT_SAMPLE_RATE_HZ: Final[int] = 48_000
AI_SAMPLE_RATE_HZ: Final[int] = 16_000
RESAMPLE_FACTOR: Final[int] = PARTICIPANT_SAMPLE_RATE_HZ // AI_SAMPLE_RATE_HZ

AUDIO_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed 16-bit)
AUDIO_FRAME_MS: Final[int] = 20

PARTICIPANT_CHANNELS_DEFAULT: Final[int] = 2
PLAYBACK_CHANNELS_DEFAULT: Final[int] = 1
SUPPORTED_CHANNEL_COUNTS: Final[tuple[int, ...]] = (1, 2)

# =============================================================================
# Voice Activity Detection / Interruption
# =============================================================================

# Peak amplitude (on the ±32768 scale) a frame must exceed to count as voiced.
VAD_PEAK_THRESHOLD: Final[int] = 200

# Consecutive loud frames before speech onset (>=).
VAD_SPEECH_FRAMES_REQUIRED: Final[int] = 3

# Consecutive quiet frames before speech release (strictly greater than).
VAD_SILENCE_FRAMES_LIMIT: Final[int] = 80

# Force release if no frame arrived for this long while speaking.
INPUT_STALL_TIMEOUT_MS: Final[int] = 500
INPUT_STALL_POLL_MS: Final[int] = 200

# =============================================================================
# Input Decoder Recovery
# =============================================================================

DECODER_RECOVERY_COOLDOWN_MS: Final[int] = 500

# =============================================================================
# Conversational-AI Socket
# =============================================================================

CONVAI_WS_URL_DEFAULT: Final[str] = "wss://api.elevenlabs.io/v1/convai/conversation"
CONVAI_OUTPUT_FORMAT_DEFAULT: Final[str] = "pcm_16000"
CONVAI_API_KEY_HEADER: Final[str] = "xi-api-key"
CONVAI_MAX_MESSAGE_BYTES: Final[int] = 2**22

HEARTBEAT_INTERVAL_S: Final[float] = 30.0
HEARTBEAT_PONG_TIMEOUT_S: Final[float] = 10.0

OUTBOUND_QUEUE_MAX_MESSAGES: Final[int] = 200

# =============================================================================
# Reconnect Policy
# =============================================================================

RECONNECT_BASE_DELAY_MS: Final[int] = 1_000
RECONNECT_MAX_DELAY_MS: Final[int] = 8_000
RECONNECT_MAX_ATTEMPTS: Final[int] = 5

# =============================================================================
# Response Segments / Playback
# =============================================================================

SEGMENT_SILENCE_TIMEOUT_MS: Final[int] = 3_000
SEGMENT_TAIL_PADDING_MS: Final[int] = 200

PLAYBACK_QUEUE_MAX_S: Final[float] = 30.0

# =============================================================================
# Session Lifecycle
# =============================================================================

CHANNEL_READY_TIMEOUT_S: Final[float] = 20.0


# =============================================================================
# Helper Functions
# =============================================================================

def samples_for_ms(duration_ms: int, sample_rate_hz: int) -> int:
    """
    Whole samples (per channel) covering duration_ms.

    Edge cases:
    - Non-positive input returns 0.
    """
    if duration_ms <= 0 or sample_rate_hz <= 0:
        return 0
    return (sample_rate_hz * duration_ms) // 1000


def bytes_for_ms(duration_ms: int, sample_rate_hz: int, channels: int) -> int:
    """PCM16 byte length of duration_ms of audio."""
    return samples_for_ms(duration_ms, sample_rate_hz) * channels * AUDIO_SAMPLE_WIDTH_BYTES


# =============================================================================
# Convenience Bundles
# =============================================================================

@dataclass(frozen=True)
class AudioFormat:
    """
    Immutable bundle describing a PCM16 stream format.

    This is a convenience wrapper for passing format metadata around;
    it is NOT a second source of truth.
    """
    sample_rate_hz: int
    channels: int
    sample_width_bytes: int = AUDIO_SAMPLE_WIDTH_BYTES
    frame_ms: int = AUDIO_FRAME_MS

    @property
    def samples_per_frame(self) -> int:
        """Return number of samples (per channel) per frame."""
        return (self.sample_rate_hz * self.frame_ms) // 1000

    @property
    def bytes_per_frame(self) -> int:
        """Return number of bytes per frame across all channels."""
        return self.samples_per_frame * self.channels * self.sample_width_bytes

    @property
    def frame_duration_s(self) -> float:
        """Return the duration of one frame in seconds."""
        return self.frame_ms / 1000.0


def playback_format(channels: int = PLAYBACK_CHANNELS_DEFAULT) -> AudioFormat:
    """Format of audio written to the playback sink."""
    return AudioFormat(sample_rate_hz=PARTICIPANT_SAMPLE_RATE_HZ, channels=channels)
