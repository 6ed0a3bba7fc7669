"""Time sources used by the debounce scheduler and the rate-limit guard.

Everything in :mod:`inkwise.core` measures time in milliseconds through a
:class:`Clock`, so production code runs on the asyncio loop while tests drive a
:class:`ManualClock` forward explicitly.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, Protocol

LOGGER = logging.getLogger(__name__)

TimerCallback = Callable[[], None]


class TimerHandle(Protocol):
    """Handle returned by :meth:`Clock.after`."""

    def cancel(self) -> None:
        ...


class Clock(Protocol):
    """Capability for reading the time and arming one-shot timers."""

    def now(self) -> float:
        """Return a monotonic timestamp in milliseconds."""
        ...

    def after(self, delay_ms: float, callback: TimerCallback) -> TimerHandle:
        """Run ``callback`` once ``delay_ms`` milliseconds from now."""
        ...


class AsyncioClock:
    """Clock backed by the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def now(self) -> float:
        return self._resolve_loop().time() * 1000.0

    def after(self, delay_ms: float, callback: TimerCallback) -> asyncio.TimerHandle:
        delay = max(0.0, float(delay_ms)) / 1000.0
        return self._resolve_loop().call_later(delay, callback)

    def _resolve_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop


@dataclass(order=True)
class _ManualTimer:
    deadline: float
    sequence: int
    callback: TimerCallback = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """Deterministic clock whose time only moves when :meth:`advance` is called.

    Timers fire in deadline order (ties in arming order). A callback that arms a
    new timer whose deadline falls inside the advanced window fires during the
    same :meth:`advance` call.
    """

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = float(start_ms)
        self._timers: list[_ManualTimer] = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._now

    def after(self, delay_ms: float, callback: TimerCallback) -> _ManualTimer:
        timer = _ManualTimer(
            deadline=self._now + max(0.0, float(delay_ms)),
            sequence=next(self._counter),
            callback=callback,
        )
        heapq.heappush(self._timers, timer)
        return timer

    def advance(self, delta_ms: float) -> int:
        """Move time forward by ``delta_ms`` and fire due timers; return how many ran."""

        if delta_ms < 0:
            raise ValueError("ManualClock cannot move backwards")
        target = self._now + float(delta_ms)
        fired = 0
        while self._timers and self._timers[0].deadline <= target:
            timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self._now = timer.deadline
            fired += 1
            timer.callback()
        self._now = target
        return fired

    def pending(self) -> int:
        """Return the number of armed, non-cancelled timers."""

        return sum(1 for timer in self._timers if not timer.cancelled)


__all__ = ["AsyncioClock", "Clock", "ManualClock", "TimerCallback", "TimerHandle"]
