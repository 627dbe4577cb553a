"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- No side effects beyond logging

Every bridge component takes an injectable `log` callable with the
signature of log_event(); bind_logger() layers session context on top.
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable

LogFn = Callable[[Mapping[str, Any]], None]


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests, swappable by the host)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print

_json_lines: bool = True


def configure_output(*, json_lines: bool) -> None:
    """
    Select the line format.

    json_lines=True (default): compact JSON objects.
    json_lines=False: "event_type key=value ..." for humans tailing a console.
    """
    global _json_lines  # pylint: disable=global-statement
    _json_lines = json_lines


def _plain(event: Mapping[str, Any]) -> str:
    head = str(event.get("event_type", "EVENT"))
    rest = " ".join(
        f"{k}={v!r}" for k, v in event.items() if k != "event_type"
    )
    return f"{head} {rest}".rstrip()


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single event line to stdout.

    The caller is responsible for:
    - Supplying a fully-formed event dict (or using bind_logger)

    This function:
    - Serializes to JSON
    - Writes exactly one line
    - Flushes immediately (no buffering)
    - Never raises
    """
    if not _json_lines:
        _print(_plain(event))
        return

    try:
        line = json.dumps(event, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Last-resort fallback, logging must never crash the bridge
        fallback: dict[str, Any] = {
            "ts_ms": event.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)


def bind_logger(log: LogFn, **context: Any) -> LogFn:
    """
    Wrap `log` so every event carries `context` and a wall-clock ts_ms.

    Keys already present in the event win over the bound context.
    """
    def _bound(event: Mapping[str, Any]) -> None:
        enriched: dict[str, Any] = {"ts_ms": time.time_ns() // 1_000_000}
        enriched.update(context)
        enriched.update(event)
        log(enriched)

    return _bound
