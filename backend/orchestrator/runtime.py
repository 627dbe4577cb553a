"""
Runtime execution shell for a single bridge session.

Responsibilities:
- Own bridge state
- Call pure reducer
- Execute commands with side effects (socket, pipelines, timers)
- Schedule and cancel timers
- Convert timer expiry into events
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import TYPE_CHECKING

from observability.logger import LogFn, log_event
from orchestrator.commands import (
    AppendSegment,
    CancelTimer,
    CloseSegment,
    Command,
    Connect,
    DiscardSegment,
    EndSession,
    ForwardUserAudio,
    LogEvent,
    OpenSegment,
    ResubscribeInput,
    ScheduleReconnect,
    StartTimer,
    StopPlayback,
    TeardownDecoder,
)
from orchestrator.events import (
    DecoderCooldownElapsed,
    Event,
    EventType,
    ReconnectReady,
    SegmentSilenceTimeout,
    StopRequested,
)
from orchestrator.reducer import TIMER_RECONNECT, reduce
from orchestrator.state_dataclass import BridgeState

if TYPE_CHECKING:
    from orchestrator.runtime_context import RuntimeExecutionContext


def _now_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class Runtime:
    """
    Runtime execution boundary for a single bridge session.

    Responsibilities:
    - Own the authoritative bridge state
    - Act as the universal event sink for the session
      (input pipeline, connection manager, playback sink, watchdog, timers)
    - Invoke the pure reducer deterministically
    - Execute emitted commands with side effects
    - Schedule and cancel timers
    - Convert timer expiry into events

    Guarantees:
    - Reducer is always called exactly once per accepted event
    - State transitions are serialized and deterministic
    - All side effects occur *after* state has been updated
    - Events raised while commands execute are queued and reduced
      afterwards in arrival order (no re-entrant reduction)
    - After shutdown() nothing is reduced, executed or re-armed

    handle_event() is synchronous so callbacks without a coroutine
    context (playback state listeners, stop()) can use it directly.
    Timers and reconnect delays need a running event loop.
    """

    def __init__(
        self,
        *,
        context: RuntimeExecutionContext,
        initial_state: BridgeState | None = None,
        log: LogFn = log_event,
    ) -> None:
        self._state = initial_state if initial_state is not None else BridgeState()
        self._ctx = context
        self._log = log
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._pending: deque[Event] = deque()
        self._dispatching = False
        self._shut_down = False

    @property
    def state(self) -> BridgeState:
        """
        Return the current immutable bridge state.

        Consumers must never modify this state directly; it only changes
        through the reducer.
        """
        return self._state

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    def handle_event(self, event: Event) -> None:
        """
        Process an event through the reduction pipeline.

        Processing steps:
        1. Pass the current state and event to the pure reducer
        2. Swap in the new state
        3. Execute all emitted commands sequentially
        4. Repeat for any event queued meanwhile

        This method is the *only* entry point for events affecting
        bridge state.
        """
        if self._shut_down:
            return

        self._pending.append(event)
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._pending and not self._shut_down:
                next_event = self._pending.popleft()
                self._state, commands = reduce(self._state, next_event)
                for cmd in commands:
                    if self._shut_down:
                        break
                    self._execute_command(cmd)
        finally:
            self._dispatching = False

    def shutdown(self, reason: str | None = None) -> None:
        """
        Mark the session stopped and cancel every timer.

        Idempotent. Safe to call from inside command execution: the
        dispatch loop notices and skips whatever is left.
        """
        if self._shut_down:
            return

        self._state, commands = reduce(
            self._state,
            StopRequested(
                event_type=EventType.STOP_REQUESTED,
                ts_ms=_now_ms(),
                reason=reason,
            ),
        )
        self._shut_down = True
        self._pending.clear()

        # Only logging survives past this point
        for cmd in commands:
            if isinstance(cmd, LogEvent):
                self._log(cmd.event)

        for timer_id in list(self._timers.keys()):
            self._cancel_timer(timer_id)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    def _execute_command(self, cmd: Command) -> None:
        """Execute a single command; a failing command never stops the rest."""
        try:
            self._dispatch_command(cmd)
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._log({
                "event_type": "command_failed",
                "command_type": cmd.command_type.value,
                "error": repr(e),
            })

    def _dispatch_command(self, cmd: Command) -> None:
        if isinstance(cmd, LogEvent):
            self._log(cmd.event)

        elif isinstance(cmd, ForwardUserAudio):
            if self._ctx.input_pipeline is not None:
                self._ctx.input_pipeline.handle_input_chunk(cmd.pcm_bytes)

        elif isinstance(cmd, Connect):
            assert self._ctx.connection is not None, "connection manager missing"
            self._ctx.connection.connect()

        elif isinstance(cmd, ScheduleReconnect):
            assert self._ctx.connection is not None, "connection manager missing"
            self._ctx.connection.mark_reconnecting()
            self._start_timer(
                timer_id=TIMER_RECONNECT,
                duration_ms=cmd.delay_ms,
                timeout_event_type=EventType.RECONNECT_READY,
            )

        # ------------------------------------------------------------
        # Output
        # ------------------------------------------------------------

        elif isinstance(cmd, StopPlayback):
            if self._ctx.output_pipeline is not None:
                self._ctx.output_pipeline.stop_playback()

        elif isinstance(cmd, OpenSegment):
            if self._ctx.output_pipeline is not None:
                self._ctx.output_pipeline.open_segment(cmd.segment_id)

        elif isinstance(cmd, AppendSegment):
            if self._ctx.output_pipeline is not None:
                self._ctx.output_pipeline.append(cmd.segment_id, cmd.pcm_bytes)

        elif isinstance(cmd, CloseSegment):
            if self._ctx.output_pipeline is not None:
                self._ctx.output_pipeline.close_segment(cmd.segment_id)

        elif isinstance(cmd, DiscardSegment):
            if self._ctx.output_pipeline is not None:
                self._ctx.output_pipeline.discard_segment(cmd.segment_id)

        # ------------------------------------------------------------
        # Input decoder
        # ------------------------------------------------------------

        elif isinstance(cmd, TeardownDecoder):
            if self._ctx.input_pipeline is not None:
                self._ctx.input_pipeline.teardown_decoder()

        elif isinstance(cmd, ResubscribeInput):
            if self._ctx.input_pipeline is not None:
                self._ctx.input_pipeline.resubscribe()

        # ------------------------------------------------------------
        # Timers / lifecycle
        # ------------------------------------------------------------

        elif isinstance(cmd, StartTimer):
            self._start_timer(
                timer_id=cmd.timer_id,
                duration_ms=cmd.duration_ms,
                timeout_event_type=cmd.timeout_event_type,
                segment_id=cmd.segment_id,
            )

        elif isinstance(cmd, CancelTimer):
            self._cancel_timer(cmd.timer_id)

        elif isinstance(cmd, EndSession):
            self._ctx.end_session(cmd.reason)

        else:
            raise ValueError(f"Unknown command: {cmd!r}")

    # ------------------------------------------------------------------
    # Timer management
    # ------------------------------------------------------------------

    def _start_timer(
        self,
        *,
        timer_id: str,
        duration_ms: int,
        timeout_event_type: EventType,
        segment_id: int | None = None,
    ) -> None:
        """
        Start or replace a timer that emits a timeout event.

        Timer tasks re-enter handle_event() when they expire,
        maintaining the single event entry point invariant.
        """
        if self._shut_down:
            return

        # Cancel existing timer if present (idempotent)
        self._cancel_timer(timer_id)

        async def _timer_task() -> None:
            try:
                await asyncio.sleep(duration_ms / 1000.0)
            except asyncio.CancelledError:
                # Timer was cancelled - this is normal
                return

            # Expired: forget the handle before dispatching so the event
            # can re-arm the same timer id
            if self._timers.get(timer_id) is asyncio.current_task():
                del self._timers[timer_id]

            event = self._construct_timeout_event(
                timeout_event_type=timeout_event_type,
                segment_id=segment_id,
            )
            self.handle_event(event)

        self._timers[timer_id] = asyncio.get_running_loop().create_task(_timer_task())

    def _cancel_timer(self, timer_id: str) -> None:
        """
        Cancel an in-flight timer if it exists.

        Idempotent: safe to call even if timer doesn't exist.
        """
        task = self._timers.pop(timer_id, None)
        if task is not None and not task.done():
            task.cancel()

    def active_timer_ids(self) -> frozenset[str]:
        """Ids of timers that are currently armed."""
        return frozenset(
            timer_id for timer_id, task in self._timers.items() if not task.done()
        )

    def _construct_timeout_event(
        self,
        *,
        timeout_event_type: EventType,
        segment_id: int | None,
    ) -> Event:
        """
        Construct the appropriate timeout event based on type.

        The reducer emits timer commands with just EventType (plus the
        segment id for stale gating); runtime builds the full event.
        """
        ts = _now_ms()

        if timeout_event_type is EventType.SEGMENT_SILENCE_TIMEOUT:
            if segment_id is None:
                raise ValueError("segment silence timer requires a segment_id")
            return SegmentSilenceTimeout(
                event_type=EventType.SEGMENT_SILENCE_TIMEOUT,
                ts_ms=ts,
                segment_id=segment_id,
            )

        if timeout_event_type is EventType.DECODER_COOLDOWN_ELAPSED:
            return DecoderCooldownElapsed(
                event_type=EventType.DECODER_COOLDOWN_ELAPSED,
                ts_ms=ts,
            )

        if timeout_event_type is EventType.RECONNECT_READY:
            return ReconnectReady(
                event_type=EventType.RECONNECT_READY,
                ts_ms=ts,
            )

        # This should never happen if reducer is correct
        raise ValueError(f"Unknown timeout event type: {timeout_event_type}")
