"""
Bridge error taxonomy.

Only two of these ever reach a caller of BridgeSession:
- MissingCredentialError from the constructor
- ChannelNotReadyError from start()

DecodeError is raised by decoders and absorbed by the input pipeline
(cooldown restart). Protocol errors live in protocol.convai and are
absorbed by the connection manager (log + drop).
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for voice bridge errors."""


class MissingCredentialError(BridgeError, ValueError):
    """
    Raised at construction when the agent id or API key is missing.

    Raised before any resource is acquired, so there is nothing to release.
    """


class ChannelNotReadyError(BridgeError, TimeoutError):
    """
    Raised by start() when the voice channel never signals readiness
    within the bounded wait. The session is already stopped when this
    propagates.
    """


class DecodeError(BridgeError):
    """
    Raised by a FrameDecoder for a packet it cannot turn into PCM.

    Recoverable: isolated corrupt packets are expected on live voice
    transports.
    """
