"""
Pass-through decoder for channels that already deliver PCM16.

Hosts whose voice transport decodes packets itself (or test fixtures)
hand the bridge 48kHz PCM16LE frames. This decoder only validates them, so
corrupt frames still surface as DecodeError and go through the same
cooldown-restart path as a real codec's errors.
"""

from __future__ import annotations

from adapters.channel.base import FrameDecoder
from constants import AUDIO_SAMPLE_WIDTH_BYTES, SUPPORTED_CHANNEL_COUNTS
from session.errors import DecodeError


class PCM16Decoder(FrameDecoder):
    """Validate-and-forward decoder for interleaved PCM16LE frames."""

    def __init__(self, channels: int) -> None:
        if channels not in SUPPORTED_CHANNEL_COUNTS:
            raise ValueError(f"unsupported channel count: {channels}")
        self._block = channels * AUDIO_SAMPLE_WIDTH_BYTES
        self._closed = False

    def decode(self, packet: bytes) -> bytes:
        if self._closed:
            raise DecodeError("decoder closed")
        if not packet:
            raise DecodeError("empty packet")
        if len(packet) % self._block != 0:
            raise DecodeError(
                f"packet length {len(packet)} is not a multiple of {self._block} bytes"
            )
        return bytes(packet)

    def close(self) -> None:
        self._closed = True
