"""Polling timers.

Owns:
- the clock abstraction polling runs on (event loop or a manual clock)
- one self-rescheduling timer per observable query
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

_logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Schedules a callback after a delay given in milliseconds."""

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopScheduler:
    """Production scheduler backed by the running asyncio loop."""

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay_ms / 1000.0, callback)


class _ManualTimer:
    __slots__ = ("callback", "cancelled")

    def __init__(self, callback: Callable[[], None]) -> None:
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic clock: timers only fire when :meth:`advance` is called.

    Callbacks run synchronously inside ``advance``; any tasks they start
    still need the event loop to run before their effects are visible.
    """

    def __init__(self) -> None:
        self._now = 0.0
        self._seq = itertools.count()
        self._queue: list[tuple[float, int, _ManualTimer]] = []

    @property
    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        timer = _ManualTimer(callback)
        heapq.heappush(self._queue, (self._now + max(delay_ms, 0.0), next(self._seq), timer))
        return timer

    def advance(self, delay_ms: float) -> None:
        target = self._now + delay_ms
        while self._queue and self._queue[0][0] <= target:
            when, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = when
            timer.callback()
        self._now = target


class PollTimer:
    """Recurring trigger with one reconfigurable period.

    The next tick is only scheduled once the previous tick's fetch has
    settled, so two cadences never overlap: re-arming while a tick is in
    flight just records the new period.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        on_tick: Callable[[], Awaitable[Any]],
        *,
        label: str = "",
    ) -> None:
        self._scheduler = scheduler
        self._on_tick = on_tick
        self._label = label
        self._interval = 0
        self._handle: TimerHandle | None = None
        self._tick_task: asyncio.Future[Any] | None = None

    @property
    def interval(self) -> int:
        return self._interval

    @property
    def is_armed(self) -> bool:
        return self._interval > 0

    @property
    def tick_in_flight(self) -> bool:
        return self._tick_task is not None

    def arm(self, interval_ms: int) -> None:
        if interval_ms <= 0:
            self.disarm()
            return
        if interval_ms == self._interval and (self._handle is not None or self._tick_task is not None):
            return
        self._interval = interval_ms
        if self._tick_task is not None:
            _logger.debug("Poll %s re-armed at %dms after current tick", self._label, interval_ms)
            return
        self._cancel_handle()
        self._handle = self._scheduler.call_later(interval_ms, self._fire)

    def disarm(self) -> None:
        self._interval = 0
        self._cancel_handle()

    def _cancel_handle(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        _logger.debug("Poll tick %s", self._label)
        task = asyncio.ensure_future(self._on_tick())
        self._tick_task = task
        task.add_done_callback(self._tick_done)

    def _tick_done(self, task: asyncio.Future[Any]) -> None:
        self._tick_task = None
        if not task.cancelled() and task.exception() is not None:
            _logger.debug("Poll tick %s failed", self._label, exc_info=task.exception())
        if self._interval > 0 and self._handle is None:
            self._handle = self._scheduler.call_later(self._interval, self._fire)
