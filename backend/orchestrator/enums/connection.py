"""
Connection state enumeration for the conversational-AI socket.

Rules:
- This enum defines ONLY the socket lifecycle states.
- No behavior, no helper methods, no side effects.
- The connection manager owns the value; the reducer decides transitions
  between attempts (reconnect vs. give up).
"""

from __future__ import annotations

from enum import Enum


class ConnectionState(str, Enum):
    """
    Lifecycle of the persistent socket to the AI endpoint.

    CONNECTING:
        Handshake in progress (first attempt or a scheduled reconnect).

    OPEN:
        Handshake done; outbound audio is sent only in this state.

    RECONNECTING:
        Socket lost, waiting out the backoff delay before the next attempt.

    CLOSED:
        Terminal. Session stopped or reconnect budget exhausted.
    """

    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    RECONNECTING = "RECONNECTING"
    CLOSED = "CLOSED"
