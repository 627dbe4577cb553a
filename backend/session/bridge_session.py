"""
Audio bridging session: one participant <-> one conversational-AI agent.

This is the only object a host touches:

    session = BridgeSession(channel, participant_id, agent_id=..., api_key=...)
    await session.start()
    ...
    session.stop("participant_left")

Ownership:
- The session creates every component in start() and releases all of
  them in stop(). Components never outlive the session.
- All cross-component decisions happen in the reducer; components report
  events to the runtime and execute its commands.

Lifecycle:
- start() waits (bounded) for the voice channel, then wires
  Input -> socket (outbound) and socket -> Output (inbound) and starts
  the stall watchdog.
- stop() is the single teardown entry point: synchronous, idempotent,
  total. Each release step is isolated so one failure never blocks the
  rest.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any
from uuid import uuid4

from websockets.asyncio.client import connect as ws_connect

from adapters.channel.base import VoiceChannel
from adapters.convai.connection_manager import ConnectFn, ConvAIConnectionManager
from config import BridgeConfig
from constants import (
    CHANNEL_READY_TIMEOUT_S,
    CONVAI_OUTPUT_FORMAT_DEFAULT,
    CONVAI_WS_URL_DEFAULT,
    PLAYBACK_CHANNELS_DEFAULT,
)
from observability.logger import LogFn, bind_logger, configure_output, log_event
from orchestrator.events import EventType, PlaybackStateChanged, SessionStarted
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import BridgeState
from pipelines.input_pipeline import InputPipeline
from pipelines.output_pipeline import OutputPipeline
from pipelines.watchdog import InputStallWatchdog
from session.errors import ChannelNotReadyError, MissingCredentialError


def _now_ms() -> int:
    return time.monotonic_ns() // 1_000_000


def _new_session_id() -> str:
    return f"bridge_{uuid4().hex[:12]}"


class BridgeSession:
    """Bridges one participant of a voice channel to one AI agent."""

    def __init__(
        self,
        channel: VoiceChannel,
        participant_id: str,
        *,
        agent_id: str | None,
        api_key: str | None,
        log: LogFn = log_event,
        ws_url: str = CONVAI_WS_URL_DEFAULT,
        output_format: str = CONVAI_OUTPUT_FORMAT_DEFAULT,
        input_channels: int | None = None,
        playback_channels: int = PLAYBACK_CHANNELS_DEFAULT,
        connect_fn: ConnectFn = ws_connect,
        channel_ready_timeout_s: float = CHANNEL_READY_TIMEOUT_S,
    ) -> None:
        # Preconditions first: nothing is acquired before these pass
        if not agent_id:
            raise MissingCredentialError("conversational AI agent id is required")
        if not api_key:
            raise MissingCredentialError("conversational AI API key is required")

        self.session_id = _new_session_id()
        self.participant_id = participant_id

        self._channel = channel
        self._agent_id = agent_id
        self._api_key = api_key
        self._ws_url = ws_url
        self._output_format = output_format
        self._input_channels = input_channels
        self._playback_channels = playback_channels
        self._connect_fn = connect_fn
        self._channel_ready_timeout_s = channel_ready_timeout_s
        self._log = bind_logger(
            log,
            session_id=self.session_id,
            participant_id=participant_id,
        )

        # ------------------------------------------------------------------
        # Components (created in start())
        # ------------------------------------------------------------------
        self.runtime: Runtime | None = None
        self.connection: ConvAIConnectionManager | None = None
        self.input_pipeline: InputPipeline | None = None
        self.output_pipeline: OutputPipeline | None = None
        self.watchdog: InputStallWatchdog | None = None

        self._ready_wait: asyncio.Task[Any] | None = None
        self._started = False
        self._running = False
        self._stopped = False

    @classmethod
    def from_config(
        cls,
        config: BridgeConfig,
        channel: VoiceChannel,
        participant_id: str,
        *,
        log: LogFn = log_event,
        **overrides: Any,
    ) -> BridgeSession:
        """Build a session from deployment configuration."""
        configure_output(json_lines=config.enable_json_logs)
        kwargs: dict[str, Any] = {
            "agent_id": config.agent_id,
            "api_key": config.api_key,
            "log": bind_logger(log, env=config.env),
            "ws_url": config.ws_url,
            "output_format": config.output_format,
            "input_channels": config.input_channels,
            "playback_channels": config.playback_channels,
        }
        kwargs.update(overrides)
        return cls(channel, participant_id, **kwargs)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        """True between a successful start() and stop()."""
        return self._running and not self._stopped

    @property
    def bridge_state(self) -> BridgeState | None:
        """Current reducer state (read-only), None before start()."""
        return self.runtime.state if self.runtime is not None else None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Wait for the voice channel, then start bridging.

        Raises:
            ChannelNotReadyError if the channel does not become ready in
            time. The session is already stopped when this propagates.
        """
        if self._stopped or self._started:
            return
        self._started = True
        self._log({"event_type": "session_starting"})

        loop = asyncio.get_running_loop()
        ready = loop.create_task(self._channel.wait_until_ready())
        self._ready_wait = ready
        try:
            done, _ = await asyncio.wait({ready}, timeout=self._channel_ready_timeout_s)
        finally:
            self._ready_wait = None
            if not ready.done():
                ready.cancel()

        if self._stopped:
            return

        if not done:
            self.stop("channel_not_ready")
            raise ChannelNotReadyError(
                f"voice channel not ready after {self._channel_ready_timeout_s}s"
            )

        error = ready.exception()
        if error is not None:
            self.stop("channel_error")
            raise ChannelNotReadyError(f"voice channel failed: {error!r}") from error

        self._wire()

    def stop(self, reason: str | None = None) -> None:
        """
        Release everything. Idempotent; safe from any handler.

        Release order: decoder -> transport subscription -> segment
        buffers -> playback -> socket.
        """
        if self._stopped:
            return
        self._stopped = True
        self._running = False

        if self._ready_wait is not None and not self._ready_wait.done():
            self._ready_wait.cancel()

        # No further reduction, no timer re-arms
        if self.runtime is not None:
            self.runtime.shutdown(reason)
        if self.watchdog is not None:
            self.watchdog.stop()
        if self.input_pipeline is not None:
            self.input_pipeline.stop()

        inp = self.input_pipeline
        out = self.output_pipeline
        conn = self.connection
        steps = (
            ("decoder", inp.close_decoder if inp is not None else None),
            ("subscription", inp.close_subscription if inp is not None else None),
            ("segment_buffers", out.release_segments if out is not None else None),
            ("playback", out.close_playback if out is not None else None),
            ("socket", conn.close if conn is not None else None),
        )
        for step, release in steps:
            if release is None:
                continue
            try:
                release()
            except Exception as e:  # pylint: disable=broad-exception-caught
                self._log({
                    "event_type": "teardown_step_failed",
                    "step": step,
                    "error": repr(e),
                })

        self._log({"event_type": "session_stopped", "reason": reason})

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def _wire(self) -> None:
        runtime = Runtime(context=RuntimeExecutionContext(self), log=self._log)
        self.runtime = runtime
        emit = runtime.handle_event

        self.connection = ConvAIConnectionManager(
            agent_id=self._agent_id,
            api_key=self._api_key,
            emit_event=emit,
            log=self._log,
            ws_url=self._ws_url,
            output_format=self._output_format,
            connect_fn=self._connect_fn,
        )

        sink = self._channel.create_playback_sink(self._playback_channels)
        sink.add_state_listener(self._on_playback_state)
        self.output_pipeline = OutputPipeline(sink=sink, log=self._log)

        self.input_pipeline = InputPipeline(
            channel=self._channel,
            participant_id=self.participant_id,
            connection=self.connection,
            emit_event=emit,
            log=self._log,
            channels=self._input_channels,
        )
        self.watchdog = InputStallWatchdog(emit_event=emit)

        self.input_pipeline.start()
        self.watchdog.start()

        # The input stream may already have ended (and stopped us)
        if self._stopped:
            return

        self._running = True
        runtime.handle_event(
            SessionStarted(
                event_type=EventType.SESSION_STARTED,
                ts_ms=_now_ms(),
                session_id=self.session_id,
            )
        )

    def _on_playback_state(self, active: bool) -> None:
        if self._stopped or self.runtime is None:
            return
        self.runtime.handle_event(
            PlaybackStateChanged(
                event_type=EventType.PLAYBACK_STATE_CHANGED,
                ts_ms=_now_ms(),
                active=active,
            )
        )
