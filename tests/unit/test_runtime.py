# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio

from orchestrator.events import (
    AIAudioReceived,
    ConnectionLost,
    EventType,
    InputEnded,
    RemoteInterruption,
)
from orchestrator.reducer import TIMER_RECONNECT, TIMER_SEGMENT_SILENCE
from orchestrator.retry import FailureType
from orchestrator.runtime import Runtime

PCM = b"\x01\x00" * 160


class FakeConnection:
    def __init__(self, calls):
        self.calls = calls

    def connect(self):
        self.calls.append("connect")

    def mark_reconnecting(self):
        self.calls.append("mark_reconnecting")


class FakeOutput:
    def __init__(self, calls):
        self.calls = calls
        self.on_open = None

    def open_segment(self, segment_id):
        self.calls.append(f"open_segment:{segment_id}")
        if self.on_open is not None:
            self.on_open()

    def append(self, segment_id, pcm_bytes):
        self.calls.append(f"append:{segment_id}:{len(pcm_bytes)}")

    def close_segment(self, segment_id):
        self.calls.append(f"close_segment:{segment_id}")

    def discard_segment(self, segment_id):
        self.calls.append(f"discard_segment:{segment_id}")

    def stop_playback(self):
        self.calls.append("stop_playback")


class FakeInput:
    def __init__(self, calls):
        self.calls = calls

    def handle_input_chunk(self, pcm_bytes):
        self.calls.append(f"chunk:{len(pcm_bytes)}")

    def teardown_decoder(self):
        self.calls.append("teardown_decoder")

    def resubscribe(self):
        self.calls.append("resubscribe")


class FakeContext:
    session_id = "bridge_test"

    def __init__(self):
        self.calls = []
        self.connection = FakeConnection(self.calls)
        self.input_pipeline = FakeInput(self.calls)
        self.output_pipeline = FakeOutput(self.calls)
        self.runtime = None

    def end_session(self, reason):
        self.calls.append(f"end_session:{reason}")
        self.runtime.shutdown(reason)


def make_runtime():
    ctx = FakeContext()
    logs = []
    runtime = Runtime(context=ctx, log=logs.append)
    ctx.runtime = runtime
    return runtime, ctx, logs


def ai_audio() -> AIAudioReceived:
    return AIAudioReceived(event_type=EventType.AI_AUDIO_RECEIVED, ts_ms=0, pcm_bytes=PCM)


def test_ai_audio_opens_segment_and_arms_timer():
    async def scenario():
        runtime, ctx, _ = make_runtime()
        runtime.handle_event(ai_audio())

        assert ctx.calls == ["open_segment:1", f"append:1:{len(PCM)}"]
        assert runtime.active_timer_ids() == frozenset({TIMER_SEGMENT_SILENCE})
        runtime.shutdown("done")

    asyncio.run(scenario())


def test_events_raised_during_dispatch_are_queued():
    async def scenario():
        runtime, ctx, _ = make_runtime()
        ctx.output_pipeline.on_open = lambda: runtime.handle_event(
            RemoteInterruption(event_type=EventType.REMOTE_INTERRUPTION, ts_ms=1)
        )

        runtime.handle_event(ai_audio())

        # The interruption is reduced only after the first event's commands ran
        assert ctx.calls == [
            "open_segment:1",
            f"append:1:{len(PCM)}",
            "stop_playback",
            "discard_segment:1",
        ]
        assert runtime.state.segment_open is False
        assert TIMER_SEGMENT_SILENCE not in runtime.active_timer_ids()
        runtime.shutdown()

    asyncio.run(scenario())


def test_failing_command_is_logged_and_rest_still_run():
    async def scenario():
        runtime, ctx, logs = make_runtime()

        def explode():
            raise RuntimeError("sink gone")

        ctx.output_pipeline.on_open = explode
        runtime.handle_event(ai_audio())

        failures = [r for r in logs if r.get("event_type") == "command_failed"]
        assert len(failures) == 1
        assert failures[0]["command_type"] == "OPEN_SEGMENT"
        assert f"append:1:{len(PCM)}" in ctx.calls
        runtime.shutdown()

    asyncio.run(scenario())


def test_timer_expiry_dispatches_timeout_event(monkeypatch):
    monkeypatch.setattr("orchestrator.reducer.SEGMENT_SILENCE_TIMEOUT_MS", 10)

    async def scenario():
        runtime, ctx, _ = make_runtime()
        runtime.handle_event(ai_audio())
        await asyncio.sleep(0.1)

        assert ctx.calls[-1] == "close_segment:1"
        assert runtime.state.segment_open is False
        assert runtime.active_timer_ids() == frozenset()
        runtime.shutdown()

    asyncio.run(scenario())


def test_schedule_reconnect_marks_connection_and_arms_timer():
    async def scenario():
        runtime, ctx, _ = make_runtime()
        runtime.handle_event(
            ConnectionLost(
                event_type=EventType.CONNECTION_LOST,
                ts_ms=0,
                failure=FailureType.REMOTE_CLOSED,
            )
        )

        assert ctx.calls == ["mark_reconnecting"]
        assert TIMER_RECONNECT in runtime.active_timer_ids()
        runtime.shutdown()

    asyncio.run(scenario())


def test_shutdown_cancels_timers_and_ignores_later_events():
    async def scenario():
        runtime, ctx, logs = make_runtime()
        runtime.handle_event(ai_audio())
        assert runtime.active_timer_ids()

        runtime.shutdown("participant_left")
        runtime.shutdown("again")

        assert runtime.is_shut_down
        assert runtime.state.stopped is True
        assert runtime.state.stop_reason == "participant_left"
        assert runtime.active_timer_ids() == frozenset()

        calls_before = list(ctx.calls)
        runtime.handle_event(ai_audio())
        assert ctx.calls == calls_before
        assert runtime.active_timer_ids() == frozenset()

        stopping = [r for r in logs if r.get("decision") == "session_stopping"]
        assert len(stopping) == 1

    asyncio.run(scenario())


def test_end_session_from_inside_dispatch_stops_reduction():
    async def scenario():
        runtime, ctx, _ = make_runtime()
        runtime.handle_event(
            InputEnded(event_type=EventType.INPUT_ENDED, ts_ms=0, reason="stream_ended")
        )

        assert ctx.calls == ["end_session:input_ended:stream_ended"]
        assert runtime.is_shut_down
        assert runtime.state.stop_reason == "input_ended:stream_ended"

    asyncio.run(scenario())
