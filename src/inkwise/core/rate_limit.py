"""Process-wide cooldown gate tripped by provider rate-limit signals."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from .clock import Clock, TimerHandle

LOGGER = logging.getLogger(__name__)

RateLimitListener = Callable[["RateLimitState"], None]


@dataclass(frozen=True, slots=True)
class RateLimitState:
    """Snapshot of the guard: ``cooldown_until`` is a clock timestamp in ms."""

    limited: bool = False
    cooldown_until: float | None = None


class RateLimitGuard:
    """Binary Normal/Limited state machine with a single restartable cooldown timer.

    The guard only gates: it never queues, waits or retries on the caller's
    behalf. ``is_limited`` is a synchronous read that both lifecycles consult
    before any provider call.
    """

    def __init__(self, clock: Clock, *, on_change: RateLimitListener | None = None) -> None:
        self._clock = clock
        self._state = RateLimitState()
        self._timer: TimerHandle | None = None
        self._listeners: list[RateLimitListener] = []
        if on_change is not None:
            self._listeners.append(on_change)

    @property
    def state(self) -> RateLimitState:
        return self._state

    def add_listener(self, listener: RateLimitListener) -> None:
        self._listeners.append(listener)

    def is_limited(self) -> bool:
        return self._state.limited

    def remaining_ms(self) -> float:
        """Return milliseconds left in the current cooldown (0 when normal)."""

        if not self._state.limited or self._state.cooldown_until is None:
            return 0.0
        return max(0.0, self._state.cooldown_until - self._clock.now())

    def trip(self, backoff_ms: float) -> RateLimitState:
        """Enter (or re-enter) the limited state for ``backoff_ms`` milliseconds.

        Tripping while already limited replaces the deadline; the previous
        timer is cancelled so only one cooldown is ever live.
        """

        backoff = max(0.0, float(backoff_ms))
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        deadline = self._clock.now() + backoff
        self._state = RateLimitState(limited=True, cooldown_until=deadline)
        self._timer = self._clock.after(backoff, self._expire)
        LOGGER.info("Rate limit tripped; cooling down for %.0f ms", backoff)
        self._notify()
        return self._state

    def reset(self) -> None:
        """Return to the normal state immediately and drop any pending timer."""

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._state.limited:
            self._state = RateLimitState()
            self._notify()

    def _expire(self) -> None:
        self._timer = None
        self._state = RateLimitState()
        LOGGER.info("Rate limit cooldown ended; resuming requests")
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                LOGGER.exception("Rate limit listener %r failed", listener)


__all__ = ["RateLimitGuard", "RateLimitListener", "RateLimitState"]
