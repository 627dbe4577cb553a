"""
Input stall watchdog.

Ticks every INPUT_STALL_POLL_MS and emits InputStallCheck. Whether the
participant has actually stalled is decided by the reducer
(audio.vad.check_stall); the watchdog only provides the clock.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable

from constants import INPUT_STALL_POLL_MS
from orchestrator.events import Event, EventType, InputStallCheck


def _now_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class InputStallWatchdog:
    def __init__(
        self,
        *,
        emit_event: Callable[[Event], None],
        poll_ms: int = INPUT_STALL_POLL_MS,
    ) -> None:
        if poll_ms <= 0:
            raise ValueError("poll_ms must be > 0")
        self._emit = emit_event
        self._poll_s = poll_ms / 1000.0
        self._task: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._stopped or self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        """Idempotent; the watchdog never restarts after stop()."""
        self._stopped = True
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self._poll_s)
            if self._stopped:
                return
            self._emit(
                InputStallCheck(
                    event_type=EventType.INPUT_STALL_CHECK,
                    ts_ms=_now_ms(),
                )
            )
