# pylint: disable=missing-module-docstring,missing-function-docstring

from typing import Any

import pytest

from observability.metrics import (
    active_timer_count,
    discard_timer,
    start_timer,
    stop_timer,
    timed,
)


def test_stop_timer_emits_one_metric():
    seen: list[dict[str, Any]] = []
    before = active_timer_count()

    timer_id = start_timer("ai_socket_connect")
    assert active_timer_count() == before + 1

    duration = stop_timer(timer_id, log=seen.append, details={"attempt": 1})

    assert duration is not None and duration >= 0
    assert active_timer_count() == before
    assert len(seen) == 1
    assert seen[0]["event_type"] == "METRIC_TIMER"
    assert seen[0]["metric"] == "ai_socket_connect"
    assert seen[0]["details"] == {"attempt": 1}


def test_stopping_unknown_timer_is_noop():
    seen: list[dict[str, Any]] = []
    assert stop_timer("timer_missing", log=seen.append) is None
    assert seen == []


def test_discard_emits_nothing():
    seen: list[dict[str, Any]] = []
    timer_id = start_timer("response_segment")
    discard_timer(timer_id)

    assert stop_timer(timer_id, log=seen.append) is None
    assert seen == []


def test_timed_stops_even_on_error():
    seen: list[dict[str, Any]] = []
    before = active_timer_count()

    with pytest.raises(RuntimeError):
        with timed("playback_interrupt", log=seen.append):
            raise RuntimeError("boom")

    assert active_timer_count() == before
    assert [e["metric"] for e in seen] == ["playback_interrupt"]
