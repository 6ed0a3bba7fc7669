"""Shared state handed to every lifecycle instead of module-level singletons."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..services.settings import Settings, SettingsGetter
from .clock import AsyncioClock, Clock
from .debounce import DebounceScheduler
from .events import EventBus
from .rate_limit import RateLimitGuard


@dataclass(slots=True)
class EngineContext:
    """Clock, bus, rate-limit guard and debounce scheduler for one engine instance.

    ``settings`` is a getter so every scheduling decision sees the current
    values; nothing here caches configuration.
    """

    clock: Clock
    settings: SettingsGetter
    bus: EventBus = field(default_factory=EventBus)
    guard: RateLimitGuard | None = None
    scheduler: DebounceScheduler | None = None

    def __post_init__(self) -> None:
        if self.guard is None:
            self.guard = RateLimitGuard(self.clock)
        if self.scheduler is None:
            self.scheduler = DebounceScheduler(self.clock)

    @classmethod
    def create(
        cls,
        settings: SettingsGetter | Settings,
        *,
        clock: Clock | None = None,
        bus: EventBus | None = None,
    ) -> "EngineContext":
        getter = settings if callable(settings) else (lambda: settings)
        return cls(clock=clock or AsyncioClock(), settings=getter, bus=bus or EventBus())


__all__ = ["EngineContext"]
