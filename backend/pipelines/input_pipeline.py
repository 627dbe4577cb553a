"""
Participant audio ingest.

Flow per packet:
    subscription -> decoder (48kHz PCM16) -> downmix + decimate (16kHz mono)
    -> peak amplitude -> UserAudioFrame event

Everything that requires a decision (forwarding, interrupts, decoder
recovery) goes back to the runtime as an event; the reducer answers with
commands that land in handle_input_chunk(), teardown_decoder() and
resubscribe().

Stream generations:
- Every (subscription, decoder, pump task) triple belongs to one
  generation. Tearing down or stopping bumps the generation, so a pump
  that outlives its stream can never emit InputEnded for a newer one.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable

from adapters.channel.base import AudioSubscription, FrameDecoder, VoiceChannel
from adapters.convai.connection_manager import ConvAIConnectionManager
from audio.pcm import peak_amplitude
from audio.resample import downmix_decimate_48k_to_16k
from constants import VAD_PEAK_THRESHOLD
from observability.logger import LogFn, log_event
from orchestrator.enums.connection import ConnectionState
from orchestrator.events import (
    Event,
    EventType,
    InputDecodeError,
    InputEnded,
    UserAudioFrame,
)


def _now_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class InputPipeline:
    """Subscribes to one participant and turns packets into UserAudioFrame events."""

    def __init__(
        self,
        *,
        channel: VoiceChannel,
        participant_id: str,
        connection: ConvAIConnectionManager,
        emit_event: Callable[[Event], None],
        log: LogFn = log_event,
        channels: int | None = None,
        vad_threshold: int = VAD_PEAK_THRESHOLD,
    ) -> None:
        self._channel = channel
        self._participant_id = participant_id
        self._connection = connection
        self._emit = emit_event
        self._log = log
        self._vad_threshold = vad_threshold
        self._channels = channels if channels is not None else channel.input_channels

        self._subscription: AudioSubscription | None = None
        self._decoder: FrameDecoder | None = None
        self._pump_task: asyncio.Task[None] | None = None
        self._generation = 0
        self._stopped = False

        self.frames_in = 0
        self.decode_errors = 0
        self.chunks_sent = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Subscribe to the participant and start pumping packets."""
        if self._stopped or self._pump_task is not None:
            return
        self._open_stream()

    def stop(self) -> None:
        """Stop the pump. Decoder and subscription are released separately."""
        if self._stopped:
            return
        self._stopped = True
        self._generation += 1
        self._cancel_pump()
        self._log({
            "event_type": "input_pipeline_stopped",
            "frames_in": self.frames_in,
            "decode_errors": self.decode_errors,
            "chunks_sent": self.chunks_sent,
        })

    def close_decoder(self) -> None:
        decoder = self._decoder
        self._decoder = None
        if decoder is not None:
            decoder.close()

    def close_subscription(self) -> None:
        subscription = self._subscription
        self._subscription = None
        if subscription is not None:
            subscription.close()

    @property
    def is_receiving(self) -> bool:
        return self._pump_task is not None and not self._pump_task.done()

    # ------------------------------------------------------------------
    # Reducer-driven operations
    # ------------------------------------------------------------------

    def handle_input_chunk(self, pcm_bytes: bytes) -> None:
        """
        Forward one 16kHz mono chunk to the AI socket.

        Sent only while the socket is OPEN; dropped otherwise.
        """
        if self._stopped or not pcm_bytes:
            return
        if self._connection.state is not ConnectionState.OPEN:
            return
        if self._connection.send_user_audio(pcm_bytes):
            self.chunks_sent += 1

    def teardown_decoder(self) -> None:
        """Drop the current stream; packets are lost until resubscribe()."""
        self._generation += 1
        self._cancel_pump()

        for release in (self.close_decoder, self.close_subscription):
            try:
                release()
            except Exception as e:  # pylint: disable=broad-exception-caught
                self._log({
                    "event_type": "input_release_failed",
                    "step": release.__name__,
                    "error": repr(e),
                })

        self._log({"event_type": "input_decoder_torn_down"})

    def resubscribe(self) -> None:
        """Fresh decoder + fresh subscription after a recovery cooldown."""
        if self._stopped:
            return
        self._open_stream()
        self._log({"event_type": "input_resubscribed", "generation": self._generation})

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open_stream(self) -> None:
        self._generation += 1
        generation = self._generation

        try:
            subscription = self._channel.subscribe(self._participant_id)
            decoder = self._channel.create_decoder()
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._emit_ended(f"subscribe_failed:{e!r}")
            return

        self._subscription = subscription
        self._decoder = decoder
        self._pump_task = asyncio.get_running_loop().create_task(
            self._pump(generation, subscription, decoder)
        )

    def _cancel_pump(self) -> None:
        task = self._pump_task
        self._pump_task = None
        if task is not None and not task.done():
            task.cancel()

    async def _pump(
        self,
        generation: int,
        subscription: AudioSubscription,
        decoder: FrameDecoder,
    ) -> None:
        reason = "stream_ended"
        try:
            async for packet in subscription:
                if generation != self._generation:
                    return
                self._handle_packet(decoder, packet)
        except asyncio.CancelledError:
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            reason = f"source_error:{e!r}"

        if generation != self._generation or self._stopped:
            return
        self._emit_ended(reason)

    def _handle_packet(self, decoder: FrameDecoder, packet: bytes) -> None:
        try:
            pcm_48k = decoder.decode(packet)
        except Exception as e:  # pylint: disable=broad-exception-caught
            # DecodeError or any other decoder failure: same recovery path
            self.decode_errors += 1
            self._emit(
                InputDecodeError(
                    event_type=EventType.INPUT_DECODE_ERROR,
                    ts_ms=_now_ms(),
                    reason=repr(e),
                )
            )
            return

        pcm_16k = downmix_decimate_48k_to_16k(pcm_48k, self._channels)
        if not pcm_16k:
            return

        self.frames_in += 1
        self._emit(
            UserAudioFrame(
                event_type=EventType.USER_AUDIO_FRAME,
                ts_ms=_now_ms(),
                pcm_bytes=pcm_16k,
                peak=peak_amplitude(pcm_16k, self._vad_threshold),
            )
        )

    def _emit_ended(self, reason: str) -> None:
        self._log({"event_type": "input_ended", "reason": reason})
        self._emit(
            InputEnded(
                event_type=EventType.INPUT_ENDED,
                ts_ms=_now_ms(),
                reason=reason,
            )
        )
