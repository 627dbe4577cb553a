"""
Runtime execution context.

Provides Runtime with live access to session-owned imperative resources
needed for command execution and side effects (pipelines, socket).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from session.bridge_session import BridgeSession


# ---------------------------------------------------------------------
# Component Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class ConnectionProtocol(Protocol):
    def connect(self) -> None:
        """Start a connection attempt in the background."""

    def mark_reconnecting(self) -> None:
        """Record that a reconnect has been scheduled."""


@runtime_checkable
class InputPipelineProtocol(Protocol):
    def handle_input_chunk(self, pcm_bytes: bytes) -> None:
        """Forward 16kHz mono PCM to the AI socket iff it is open."""

    def teardown_decoder(self) -> None: ...

    def resubscribe(self) -> None: ...


@runtime_checkable
class OutputPipelineProtocol(Protocol):
    """
    Segment-oriented playback protocol.

    Contract:
    - At most one segment is open at a time
    - Operations on a segment id that is not open are no-ops
    - Playback failures are absorbed (logged), never raised
    """

    def open_segment(self, segment_id: int) -> None: ...
    def append(self, segment_id: int, pcm_bytes: bytes) -> None: ...
    def close_segment(self, segment_id: int) -> None: ...
    def discard_segment(self, segment_id: int) -> None: ...
    def stop_playback(self) -> None: ...


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    This object provides *live views* into session-owned resources
    so Runtime does not need to synchronize or cache anything.

    Runtime is allowed to:
    - Call pipelines and the connection manager
    - Ask the session to end

    Runtime is NOT allowed to:
    - Mutate session state directly
    - Perform orchestration decisions
    """

    def __init__(self, session: BridgeSession) -> None:
        self.session = session

    # ----------------------------
    # Session metadata
    # ----------------------------

    @property
    def session_id(self) -> str:
        return self.session.session_id

    # ----------------------------
    # Components
    # ----------------------------

    @property
    def connection(self) -> ConnectionProtocol | None:
        return self.session.connection

    @property
    def input_pipeline(self) -> InputPipelineProtocol | None:
        return self.session.input_pipeline

    @property
    def output_pipeline(self) -> OutputPipelineProtocol | None:
        return self.session.output_pipeline

    # ----------------------------
    # Lifecycle
    # ----------------------------

    def end_session(self, reason: str | None) -> None:
        self.session.stop(reason)
