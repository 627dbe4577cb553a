# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio

import pytest

from adapters.channel.base import AudioSubscription, VoiceChannel
from adapters.channel.pcm_decoder import PCM16Decoder
from orchestrator.enums.connection import ConnectionState
from orchestrator.events import InputDecodeError, InputEnded, UserAudioFrame
from pipelines.input_pipeline import InputPipeline
from session.errors import DecodeError

# 20ms at 48kHz mono, every sample 1000
PACKET = (1000).to_bytes(2, "little", signed=True) * 960


class FakeSubscription(AudioSubscription):
    def __init__(self):
        self.queue = asyncio.Queue()
        self.closed = False

    async def _packets(self):
        while True:
            item = await self.queue.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    def __aiter__(self):
        return self._packets()

    def close(self):
        self.closed = True


class FakeChannel(VoiceChannel):
    input_channels = 1

    def __init__(self, fail_subscribe=False):
        self.subscriptions = []
        self.decoders = []
        self.fail_subscribe = fail_subscribe

    async def wait_until_ready(self):
        return None

    def subscribe(self, participant_id):
        if self.fail_subscribe:
            raise ConnectionError("participant gone")
        sub = FakeSubscription()
        self.subscriptions.append(sub)
        return sub

    def create_decoder(self):
        decoder = PCM16Decoder(self.input_channels)
        self.decoders.append(decoder)
        return decoder

    def create_playback_sink(self, channels):
        raise NotImplementedError


class FakeConnection:
    def __init__(self, state=ConnectionState.OPEN):
        self.state = state
        self.sent = []

    def send_user_audio(self, pcm_bytes):
        self.sent.append(pcm_bytes)
        return True


def make_pipeline(**channel_kwargs):
    channel = FakeChannel(**channel_kwargs)
    connection = FakeConnection()
    events = []
    logs = []
    pipeline = InputPipeline(
        channel=channel,
        participant_id="p1",
        connection=connection,
        emit_event=events.append,
        log=logs.append,
    )
    return pipeline, channel, connection, events, logs


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


def test_packets_become_16k_frames_with_peak():
    async def scenario():
        pipeline, channel, _, events, _ = make_pipeline()
        pipeline.start()
        assert pipeline.is_receiving

        channel.subscriptions[0].queue.put_nowait(PACKET)
        await settle()

        assert len(events) == 1
        frame = events[0]
        assert isinstance(frame, UserAudioFrame)
        assert len(frame.pcm_bytes) == 640
        assert frame.peak == 1000
        assert pipeline.frames_in == 1
        pipeline.stop()

    asyncio.run(scenario())


def test_corrupt_packet_reports_decode_error():
    async def scenario():
        pipeline, channel, _, events, _ = make_pipeline()
        pipeline.start()

        channel.subscriptions[0].queue.put_nowait(b"\x01")
        await settle()

        assert len(events) == 1
        assert isinstance(events[0], InputDecodeError)
        assert pipeline.decode_errors == 1
        pipeline.stop()

    asyncio.run(scenario())


def test_stream_end_reports_input_ended():
    async def scenario():
        pipeline, channel, _, events, logs = make_pipeline()
        pipeline.start()

        channel.subscriptions[0].queue.put_nowait(None)
        await settle()

        assert len(events) == 1
        assert isinstance(events[0], InputEnded)
        assert events[0].reason == "stream_ended"
        assert logs[-1]["event_type"] == "input_ended"

    asyncio.run(scenario())


def test_source_error_reports_input_ended():
    async def scenario():
        pipeline, channel, _, events, _ = make_pipeline()
        pipeline.start()

        channel.subscriptions[0].queue.put_nowait(ConnectionResetError("reset"))
        await settle()

        assert isinstance(events[0], InputEnded)
        assert events[0].reason.startswith("source_error:")

    asyncio.run(scenario())


def test_subscribe_failure_reports_input_ended():
    async def scenario():
        pipeline, _, _, events, _ = make_pipeline(fail_subscribe=True)
        pipeline.start()

        assert not pipeline.is_receiving
        assert isinstance(events[0], InputEnded)
        assert events[0].reason.startswith("subscribe_failed:")

    asyncio.run(scenario())


def test_teardown_then_resubscribe_uses_fresh_stream():
    async def scenario():
        pipeline, channel, _, events, _ = make_pipeline()
        pipeline.start()
        old_sub = channel.subscriptions[0]

        pipeline.teardown_decoder()
        await settle()

        assert old_sub.closed
        with pytest.raises(DecodeError):
            channel.decoders[0].decode(PACKET)
        assert not pipeline.is_receiving
        # The torn-down stream never reports an end
        assert events == []

        pipeline.resubscribe()
        assert len(channel.subscriptions) == 2
        assert len(channel.decoders) == 2

        channel.subscriptions[1].queue.put_nowait(PACKET)
        await settle()
        assert isinstance(events[0], UserAudioFrame)
        pipeline.stop()

    asyncio.run(scenario())


def test_chunks_are_sent_only_while_open():
    async def scenario():
        pipeline, _, connection, _, _ = make_pipeline()

        pipeline.handle_input_chunk(b"\x00\x01")
        connection.state = ConnectionState.RECONNECTING
        pipeline.handle_input_chunk(b"\x00\x02")
        connection.state = ConnectionState.OPEN
        pipeline.handle_input_chunk(b"")

        assert connection.sent == [b"\x00\x01"]
        assert pipeline.chunks_sent == 1

    asyncio.run(scenario())


def test_stop_silences_everything():
    async def scenario():
        pipeline, channel, connection, events, logs = make_pipeline()
        pipeline.start()
        sub = channel.subscriptions[0]

        pipeline.stop()
        pipeline.stop()
        sub.queue.put_nowait(None)
        await settle()

        assert events == []
        assert [e["event_type"] for e in logs] == ["input_pipeline_stopped"]

        pipeline.handle_input_chunk(b"\x00\x01")
        pipeline.resubscribe()
        assert connection.sent == []
        assert len(channel.subscriptions) == 1

        pipeline.close_decoder()
        pipeline.close_subscription()
        assert sub.closed

    asyncio.run(scenario())
