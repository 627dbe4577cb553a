"""
Voice channel contract.

This module defines the *interface only* the bridge needs from the hosting
voice platform. Joining/leaving channels, command handling and credentials
belong to the host; the bridge receives a channel that is (or will soon be)
connected and talks to it exclusively through these abstractions.

Key invariants:
- One AudioSubscription carries exactly one participant's packets, in
  arrival order.
- Decoders are cheap and disposable: the input pipeline tears one down and
  creates a fresh one after a decode error.
- Playback sinks never block. A full or closed sink reports False from
  write() and drops the audio.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable

PlaybackStateListener = Callable[[bool], None]


class FrameDecoder(ABC):
    """
    Turns one encoded packet into 48kHz PCM16LE.

    Implementations raise session.errors.DecodeError for packets they
    cannot decode; any other exception is treated the same way by the
    input pipeline.
    """

    @abstractmethod
    def decode(self, packet: bytes) -> bytes:
        """Decode a single packet into interleaved PCM16LE bytes."""

    @abstractmethod
    def close(self) -> None:
        """Release decoder resources. Idempotent."""


class AudioSubscription(ABC):
    """
    Stream of encoded packets for a single participant.

    Iteration ends when the participant stream ends; an exception raised
    from iteration is a transport error.
    """

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[bytes]:
        ...

    @abstractmethod
    def close(self) -> None:
        """Stop delivering packets. Idempotent."""


class PlaybackSink(ABC):
    """
    Continuous PCM16LE playback stream towards the voice channel.

    Audio format: 48kHz, `channels` interleaved channels.

    State reporting:
    - is_active is True while buffered audio is being played out.
    - Listeners are called with the new value on every active/idle change.
    """

    channels: int

    @abstractmethod
    def write(self, pcm_bytes: bytes) -> bool:
        """Queue audio for playback. False if (part of) it was dropped."""

    @abstractmethod
    def interrupt(self) -> None:
        """Stop current playback immediately and drop buffered audio."""

    @abstractmethod
    def close(self) -> None:
        """Stop playback permanently. Later writes are no-ops."""

    @property
    @abstractmethod
    def is_active(self) -> bool:
        """True while audio is being played out."""

    @abstractmethod
    def add_state_listener(self, listener: PlaybackStateListener) -> None:
        """Register a callback for active/idle transitions."""


class VoiceChannel(ABC):
    """
    A joined voice channel as seen by one bridge session.

    input_channels:
        Channel count of decoded participant audio (1 or 2).
    """

    input_channels: int

    @abstractmethod
    async def wait_until_ready(self) -> None:
        """Return once the channel can carry audio. May wait indefinitely."""

    @abstractmethod
    def subscribe(self, participant_id: str) -> AudioSubscription:
        """Start receiving one participant's encoded packets."""

    @abstractmethod
    def create_decoder(self) -> FrameDecoder:
        """Return a fresh decoder for this channel's packet format."""

    @abstractmethod
    def create_playback_sink(self, channels: int) -> PlaybackSink:
        """Return the sink whose audio the channel plays to the participant."""
