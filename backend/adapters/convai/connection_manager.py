"""
Persistent socket to the conversational-AI endpoint.

Core model:
- One socket per session, re-established after loss. The reducer decides
  WHETHER to reconnect (backoff budget); this adapter only performs a
  connection attempt when asked (connect()) and reports what happened.
- Outbound messages go through a bounded queue drained by one sender
  task, so producers never block on the network. Anything sent while the
  socket is not OPEN, or while the queue is full, is dropped.
- The adapter runs its own heartbeat: a transport ping every
  HEARTBEAT_INTERVAL_S whose pong must arrive within
  HEARTBEAT_PONG_TIMEOUT_S, otherwise the socket is closed and the loss
  is reported like any other.

Event behavior:
- Handshake complete     => ConnectionOpened
- Handshake failed       => ConnectionLost(HANDSHAKE_FAILED)
- Socket closed / broken => ConnectionLost(REMOTE_CLOSED | TRANSPORT_ERROR | HEARTBEAT_TIMEOUT)
- AI audio               => AIAudioReceived
- Server interruption    => RemoteInterruption
- After close() nothing is emitted.

Design constraints:
- Adapter must not call reducer directly.
- Adapter must not own reconnect decisions.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable

from websockets.asyncio.client import ClientConnection
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from constants import (
    CONVAI_MAX_MESSAGE_BYTES,
    CONVAI_OUTPUT_FORMAT_DEFAULT,
    CONVAI_WS_URL_DEFAULT,
    HEARTBEAT_INTERVAL_S,
    HEARTBEAT_PONG_TIMEOUT_S,
    OUTBOUND_QUEUE_MAX_MESSAGES,
)
from observability.logger import LogFn, log_event
from observability.metrics import discard_timer, start_timer, stop_timer
from orchestrator.enums.connection import ConnectionState
from orchestrator.events import (
    AIAudioReceived,
    ConnectionLost,
    ConnectionOpened,
    Event,
    EventType,
    RemoteInterruption,
)
from orchestrator.retry import FailureType
from protocol.convai import (
    AudioChunk,
    ConversationMetadata,
    PingRequest,
    ProtocolError,
    RemoteInterruption as RemoteInterruptionMessage,
    build_auth_headers,
    build_conversation_url,
    decode_binary_message,
    decode_text_message,
    encode_pong,
    encode_user_audio_chunk,
)

ConnectFn = Callable[..., Awaitable[Any]]


def _now_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class ConvAIConnectionManager:
    """
    Owns the socket, its ConnectionState and its background tasks.

    State ownership:
    - CONNECTING:   connect() called, handshake running
    - OPEN:         handshake done, outbound traffic allowed
    - CLOSED:       socket gone (transiently, until the runtime marks a
                    reconnect) or permanently after close()
    - RECONNECTING: mark_reconnecting() called, backoff delay running
    """

    def __init__(
        self,
        *,
        agent_id: str,
        api_key: str,
        emit_event: Callable[[Event], None],
        log: LogFn = log_event,
        ws_url: str = CONVAI_WS_URL_DEFAULT,
        output_format: str = CONVAI_OUTPUT_FORMAT_DEFAULT,
        connect_fn: ConnectFn = ws_connect,
        heartbeat_interval_s: float = HEARTBEAT_INTERVAL_S,
        pong_timeout_s: float = HEARTBEAT_PONG_TIMEOUT_S,
        max_outbound_messages: int = OUTBOUND_QUEUE_MAX_MESSAGES,
    ) -> None:
        self._emit = emit_event
        self._log = log
        self._url = build_conversation_url(
            ws_url,
            agent_id=agent_id,
            output_format=output_format,
        )
        self._headers = build_auth_headers(api_key)
        self._connect_fn = connect_fn
        self._heartbeat_interval_s = heartbeat_interval_s
        self._pong_timeout_s = pong_timeout_s

        self._state = ConnectionState.CONNECTING
        self._closed = False

        self._ws: ClientConnection | None = None
        self._run_task: asyncio.Task[None] | None = None
        self._sender_task: asyncio.Task[None] | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._close_task: asyncio.Task[None] | None = None
        self._heartbeat_failed = False
        self._send_error: str | None = None

        self._outbound: asyncio.Queue[str] = asyncio.Queue(maxsize=max_outbound_messages)
        self._outbound_dropped = 0

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def url(self) -> str:
        return self._url

    @property
    def outbound_dropped(self) -> int:
        return self._outbound_dropped

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def connect(self) -> None:
        """
        Start one connection attempt in the background.

        No-op after close() or while an attempt/connection is still alive.
        """
        if self._closed:
            return
        if self._run_task is not None and not self._run_task.done():
            return

        self._state = ConnectionState.CONNECTING
        self._heartbeat_failed = False
        self._send_error = None
        self._log({"event_type": "convai_connecting", "url": self._url})
        self._run_task = asyncio.get_running_loop().create_task(self._run_connection())

    def mark_reconnecting(self) -> None:
        if self._closed:
            return
        self._state = ConnectionState.RECONNECTING

    def close(self) -> None:
        """
        Tear down the socket and every background task.

        Must:
        - Not await
        - Not emit events
        - Be idempotent
        """
        if self._closed:
            return
        self._closed = True
        self._state = ConnectionState.CLOSED

        for task in (self._heartbeat_task, self._sender_task, self._run_task):
            if task is not None and not task.done():
                task.cancel()
        self._heartbeat_task = None
        self._sender_task = None
        self._run_task = None

        ws = self._ws
        self._ws = None
        if ws is None:
            return

        try:
            # Close best-effort (can't await).
            self._close_task = asyncio.get_running_loop().create_task(ws.close())
        except RuntimeError as e:
            self._log({"event_type": "convai_close_skipped", "error": repr(e)})

    # -------------------------------------------------------------------------
    # Outbound
    # -------------------------------------------------------------------------

    def send(self, message: str) -> bool:
        """
        Queue a text message for the sender task.

        Returns False (message dropped) unless the socket is OPEN and the
        queue has room.
        """
        if self._state is not ConnectionState.OPEN or self._ws is None:
            return False

        try:
            self._outbound.put_nowait(message)
        except asyncio.QueueFull:
            self._outbound_dropped += 1
            self._log({
                "event_type": "convai_outbound_dropped",
                "reason": "queue_full",
                "dropped_total": self._outbound_dropped,
            })
            return False
        return True

    def send_user_audio(self, pcm_bytes: bytes) -> bool:
        """Send one chunk of 16kHz mono PCM16LE participant audio."""
        return self.send(encode_user_audio_chunk(pcm_bytes))

    # -------------------------------------------------------------------------
    # Background loops
    # -------------------------------------------------------------------------

    async def _run_connection(self) -> None:
        timer_id = start_timer("ai_socket_connect")
        try:
            ws = await self._connect_fn(
                self._url,
                additional_headers=self._headers,
                max_size=CONVAI_MAX_MESSAGE_BYTES,
                ping_interval=None,
            )
        except asyncio.CancelledError:
            discard_timer(timer_id)
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            discard_timer(timer_id)
            self._connection_lost(FailureType.HANDSHAKE_FAILED, repr(e))
            return

        if self._closed:
            discard_timer(timer_id)
            await ws.close()
            return

        stop_timer(timer_id, log=self._log)
        self._ws = ws
        self._state = ConnectionState.OPEN
        self._reset_outbound()

        loop = asyncio.get_running_loop()
        self._sender_task = loop.create_task(self._send_loop(ws))
        self._heartbeat_task = loop.create_task(self._heartbeat_loop(ws))

        self._log({"event_type": "convai_connected"})
        self._emit(ConnectionOpened(event_type=EventType.CONNECTION_OPENED, ts_ms=_now_ms()))

        failure = FailureType.REMOTE_CLOSED
        reason: str | None = None
        try:
            async for raw in ws:
                self._handle_raw(raw)
        except ConnectionClosedOK as e:
            reason = repr(e)
        except ConnectionClosed as e:
            failure = FailureType.TRANSPORT_ERROR
            reason = repr(e)
        except Exception as e:  # pylint: disable=broad-exception-caught
            failure = FailureType.TRANSPORT_ERROR
            reason = repr(e)
        finally:
            self._stop_io_tasks()

        if self._heartbeat_failed:
            failure = FailureType.HEARTBEAT_TIMEOUT
        elif self._send_error is not None:
            failure = FailureType.TRANSPORT_ERROR
            reason = self._send_error

        self._ws = None
        self._connection_lost(failure, reason)

    async def _send_loop(self, ws: ClientConnection) -> None:
        """Drain the outbound queue in FIFO order."""
        while True:
            message = await self._outbound.get()
            try:
                await ws.send(message)
            except ConnectionClosed:
                # Receiver loop reports the loss
                return
            except Exception as e:  # pylint: disable=broad-exception-caught
                # A socket that cannot send is lost; closing it ends the receive loop
                self._send_error = repr(e)
                self._log({"event_type": "convai_send_failed", "error": repr(e)})
                await ws.close()
                return

    async def _heartbeat_loop(self, ws: ClientConnection) -> None:
        while True:
            await asyncio.sleep(self._heartbeat_interval_s)
            try:
                pong_waiter = await ws.ping()
                await asyncio.wait_for(pong_waiter, self._pong_timeout_s)
            except asyncio.TimeoutError:
                self._heartbeat_failed = True
                self._log({
                    "event_type": "convai_heartbeat_timeout",
                    "pong_timeout_s": self._pong_timeout_s,
                })
                await ws.close()
                return
            except ConnectionClosed:
                return

    def _stop_io_tasks(self) -> None:
        for task in (self._heartbeat_task, self._sender_task):
            if task is not None and not task.done():
                task.cancel()
        self._heartbeat_task = None
        self._sender_task = None

    def _reset_outbound(self) -> None:
        # Messages queued for a previous socket are stale
        while not self._outbound.empty():
            self._outbound.get_nowait()

    def _connection_lost(self, failure: FailureType, reason: str | None) -> None:
        self._run_task = None
        if self._closed:
            return

        self._state = ConnectionState.CLOSED
        self._log({
            "event_type": "convai_connection_lost",
            "failure": failure.value,
            "reason": reason,
        })
        self._emit(
            ConnectionLost(
                event_type=EventType.CONNECTION_LOST,
                ts_ms=_now_ms(),
                failure=failure,
                reason=reason,
            )
        )

    # -------------------------------------------------------------------------
    # Inbound
    # -------------------------------------------------------------------------

    def _handle_raw(self, raw: str | bytes) -> None:
        try:
            if isinstance(raw, (bytes, bytearray, memoryview)):
                msg: Any = decode_binary_message(bytes(raw))
            else:
                msg = decode_text_message(raw)
        except ProtocolError as e:
            self._log({"event_type": "convai_message_dropped", "error": str(e)})
            return

        if isinstance(msg, AudioChunk):
            self._emit(
                AIAudioReceived(
                    event_type=EventType.AI_AUDIO_RECEIVED,
                    ts_ms=_now_ms(),
                    pcm_bytes=msg.pcm_bytes,
                )
            )

        elif isinstance(msg, PingRequest):
            if msg.event_id is not None:
                self.send(encode_pong(msg.event_id))

        elif isinstance(msg, RemoteInterruptionMessage):
            self._emit(
                RemoteInterruption(
                    event_type=EventType.REMOTE_INTERRUPTION,
                    ts_ms=_now_ms(),
                )
            )

        elif isinstance(msg, ConversationMetadata):
            self._log({
                "event_type": "convai_conversation_started",
                "conversation_id": msg.conversation_id,
                "agent_output_audio_format": msg.agent_output_audio_format,
            })
