"""
Reconnect policy helpers.

Purpose:
- Centralize the socket reconnect rules
- Keep reducer pure
- Allow runtime to make deterministic retry decisions

This module contains NO timers, NO async, NO side effects.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from constants import (
    RECONNECT_BASE_DELAY_MS,
    RECONNECT_MAX_ATTEMPTS,
    RECONNECT_MAX_DELAY_MS,
)


# =============================================================================
# Failure Types
# =============================================================================

class FailureType(str, Enum):
    """
    How the socket to the AI endpoint was lost.

    HANDSHAKE_FAILED:
        Connect or upgrade failed before the socket was ever open.

    REMOTE_CLOSED:
        The endpoint closed an open socket.

    TRANSPORT_ERROR:
        The socket broke with an I/O or protocol error.

    HEARTBEAT_TIMEOUT:
        No pong arrived for a heartbeat ping; the socket was closed locally.

    Notes:
    - All failure types share one backoff schedule and one budget.
    - Local shutdown (session stop) is NOT a failure and never retries.
    """

    HANDSHAKE_FAILED = "handshake_failed"
    REMOTE_CLOSED = "remote_closed"
    TRANSPORT_ERROR = "transport_error"
    HEARTBEAT_TIMEOUT = "heartbeat_timeout"


# =============================================================================
# Retry State
# =============================================================================

@dataclass(frozen=True)
class RetryAttempt:
    """
    Immutable reconnect attempt counter.

    Semantics:
    - attempt == 0: no reconnect scheduled since the last successful open.
    - attempt == N: N reconnects have been scheduled.
    """
    attempt: int


def next_attempt(current: RetryAttempt) -> RetryAttempt:
    """
    Advance to the next retry attempt.

    Returns a new RetryAttempt with attempt incremented by 1.
    """
    return RetryAttempt(attempt=current.attempt + 1)


def reset_attempt() -> RetryAttempt:
    """Returns a fresh retry attempt counter."""
    return RetryAttempt(attempt=0)


# =============================================================================
# Policy
# =============================================================================

def should_retry(attempt: RetryAttempt) -> bool:
    """
    Returns True if another reconnect may be scheduled.

    attempt = number of reconnects already scheduled. Once it reaches
    RECONNECT_MAX_ATTEMPTS the session is stopped instead.
    """
    return attempt.attempt < RECONNECT_MAX_ATTEMPTS


def get_retry_delay_ms(attempt: RetryAttempt) -> int:
    """
    Delay before the reconnect that follows `attempt` earlier reconnects.

    Exponential: min(base * 2**attempt, cap).
    With base=1000, cap=8000: 1000, 2000, 4000, 8000, 8000, ...
    """
    if attempt.attempt <= 0:
        return RECONNECT_BASE_DELAY_MS
    # Clamp the exponent so huge attempt values cannot build huge ints
    exponent = min(attempt.attempt, 16)
    return min(RECONNECT_BASE_DELAY_MS * (2 ** exponent), RECONNECT_MAX_DELAY_MS)
