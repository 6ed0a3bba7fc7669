"""Per-channel trailing-edge debounce for editor change bursts."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable

from .clock import Clock, TimerHandle

LOGGER = logging.getLogger(__name__)

GRAMMAR_CHANNEL = "grammar"
AUTOCOMPLETE_CHANNEL = "autocomplete"

DebouncedAction = Callable[[], Any]


@dataclass(slots=True)
class _PendingTimer:
    token: int
    handle: TimerHandle
    action: DebouncedAction


class DebounceScheduler:
    """Coalesce rapid schedule calls into one delayed action per channel.

    Scheduling on a channel cancels whatever was pending there (last edit
    wins), so a storm of calls runs the action at most once, ``delay_ms``
    after the *last* call. Actions that return an awaitable are wrapped in an
    asyncio task; the scheduler never cancels such a task once it started.

    A channel can be suppressed for a short window (see :meth:`suppress`);
    schedule requests on a suppressed channel are dropped. The autocomplete
    lifecycle uses this to ignore the change notification caused by its own
    insertion.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._pending: dict[str, _PendingTimer] = {}
        self._suppressed: dict[str, TimerHandle] = {}
        self._tasks: set[asyncio.Future[Any]] = set()
        self._tokens = 0

    def schedule(self, channel: str, delay_ms: float, action: DebouncedAction) -> bool:
        """Arm ``action`` on ``channel``; return ``False`` when the channel is suppressed."""

        if channel in self._suppressed:
            LOGGER.debug("Schedule on %s suppressed while applying a result", channel)
            return False
        self.cancel(channel)
        self._tokens += 1
        token = self._tokens
        handle = self._clock.after(delay_ms, lambda: self._fire(channel, token))
        self._pending[channel] = _PendingTimer(token=token, handle=handle, action=action)
        return True

    def cancel(self, channel: str) -> bool:
        """Drop the pending timer on ``channel`` without running it."""

        pending = self._pending.pop(channel, None)
        if pending is None:
            return False
        pending.handle.cancel()
        return True

    def cancel_all(self) -> None:
        for channel in list(self._pending):
            self.cancel(channel)
        for handle in self._suppressed.values():
            handle.cancel()
        self._suppressed.clear()

    def is_pending(self, channel: str) -> bool:
        return channel in self._pending

    def suppress(self, channel: str, duration_ms: float) -> None:
        """Refuse schedule requests on ``channel`` for ``duration_ms`` milliseconds."""

        previous = self._suppressed.pop(channel, None)
        if previous is not None:
            previous.cancel()
        self._suppressed[channel] = self._clock.after(
            duration_ms, lambda: self._suppressed.pop(channel, None)
        )

    def is_suppressed(self, channel: str) -> bool:
        return channel in self._suppressed

    @property
    def in_flight(self) -> int:
        """Number of started asynchronous actions that have not finished yet."""

        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every started asynchronous action to finish."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_in_flight(self) -> int:
        """Cancel started asynchronous actions; only used when the engine shuts down."""

        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        return len(tasks)

    def _fire(self, channel: str, token: int) -> None:
        pending = self._pending.get(channel)
        if pending is None or pending.token != token:
            return
        del self._pending[channel]
        try:
            result = pending.action()
        except Exception:
            LOGGER.exception("Debounced action on %s failed", channel)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_finished)

    def _task_finished(self, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Debounced task failed", exc_info=exc)


__all__ = [
    "AUTOCOMPLETE_CHANNEL",
    "DebounceScheduler",
    "DebouncedAction",
    "GRAMMAR_CHANNEL",
]
