"""Scheduling primitives shared by the suggestion lifecycles.

Everything here is driven by a :class:`~inkwise.core.clock.Clock`, so the
same code runs on the asyncio loop and under a manual test clock.
"""

from .clock import AsyncioClock, Clock, ManualClock
from .context import EngineContext
from .debounce import AUTOCOMPLETE_CHANNEL, GRAMMAR_CHANNEL, DebounceScheduler
from .events import EventBus
from .rate_limit import RateLimitGuard, RateLimitState

__all__ = [
    "AUTOCOMPLETE_CHANNEL",
    "AsyncioClock",
    "Clock",
    "DebounceScheduler",
    "EngineContext",
    "EventBus",
    "GRAMMAR_CHANNEL",
    "ManualClock",
    "RateLimitGuard",
    "RateLimitState",
]
