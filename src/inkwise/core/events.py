"""Typed publish/subscribe bus connecting the engine to editor and UI adapters.

Inbound events (``EditorChanged``, ``KeyPressed``, ``ActiveEditorChanged``) are
published by whatever hosts the editor widget. Outbound events tell the
overlay layer what to draw and what to put in the status line.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar
from weakref import WeakMethod

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..ai.types import AutocompleteSuggestion, GrammarSuggestion
    from ..editor.protocols import EditorPort

LOGGER = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")
Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for everything published on the :class:`EventBus`."""


# -----------------------------------------------------------------------------
# Inbound editor events
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class EditorChanged(Event):
    """The text of ``editor`` changed (typing, paste, programmatic edit)."""

    editor: "EditorPort"
    title: str | None = None


@dataclass(slots=True)
class ActiveEditorChanged(Event):
    """Focus moved to ``editor`` (``None`` when no text editor is focused)."""

    editor: "EditorPort | None"


@dataclass(slots=True)
class KeyPressed(Event):
    """A key-down in the active editor.

    ``key`` follows DOM naming: printable keys are a single character, others
    are names such as ``"ArrowRight"`` or ``"Escape"``. Handlers set
    ``handled`` when the key must not reach the editor.
    """

    key: str
    ctrl: bool = False
    meta: bool = False
    alt: bool = False
    handled: bool = False

    @property
    def has_modifier(self) -> bool:
        return self.ctrl or self.meta or self.alt

    @property
    def is_visible_character(self) -> bool:
        return len(self.key) == 1 and not self.has_modifier


# -----------------------------------------------------------------------------
# Outbound UI events
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class SuggestionAvailable(Event):
    """An autocomplete suggestion is ready to be shown at its anchor."""

    suggestion: "AutocompleteSuggestion"


@dataclass(slots=True)
class SuggestionCleared(Event):
    """The displayed autocomplete suggestion went away.

    ``reason`` is one of ``"accepted"``, ``"dismissed"``, ``"superseded"``,
    ``"stale"`` or ``"shutdown"``.
    """

    reason: str


@dataclass(slots=True)
class GrammarAnnotationsChanged(Event):
    """The set of live grammar annotations changed; ``annotations`` is the full set."""

    annotations: tuple["GrammarSuggestion", ...] = ()


@dataclass(slots=True)
class StatusMessage(Event):
    """Short progress text for a status bar; empty ``text`` clears it."""

    text: str


@dataclass(slots=True)
class NoticePosted(Event):
    """A one-shot user-facing message (toast/notice)."""

    message: str
    level: str = "info"


@dataclass(slots=True)
class RateLimitChanged(Event):
    """The shared rate-limit guard entered or left its cooldown."""

    limited: bool
    cooldown_until: float | None = None
    detail: dict[str, Any] = field(default_factory=dict)


# Published on every keystroke; publish() skips debug logging for them.
_QUIET_EVENT_TYPES: frozenset[type] = frozenset({EditorChanged, KeyPressed, StatusMessage})


class EventBus(Generic[E]):
    """Synchronous publish/subscribe dispatcher keyed by event class.

    Bound-method handlers are held weakly so a discarded component stops
    receiving events without an explicit unsubscribe. Handler exceptions are
    logged and do not stop delivery to the remaining handlers. The bus is not
    thread-safe; publish only from the event-loop thread.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: defaultdict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        self._handlers[event_type].append(_HandlerRef.create(handler))

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        for index, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(index)
                return

    def publish(self, event: E) -> E:
        """Deliver ``event`` to its subscribers in registration order and return it."""

        event_type = type(event)
        handlers = self._handlers.get(event_type)
        if event_type not in _QUIET_EVENT_TYPES:
            LOGGER.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers or ()))
        if not handlers:
            return event

        dead: list[_HandlerRef] = []
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead.append(handler_ref)
                continue
            try:
                handler(event)
            except Exception:
                LOGGER.exception("Handler %s failed for %s", _handler_name(handler), event_type.__name__)
        for handler_ref in dead:
            handlers.remove(handler_ref)
        return event

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference for plain callables."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, target: Any, is_weak: bool) -> None:
        self._ref = target
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler[Any]) -> "_HandlerRef":
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler[Any] | None:
        if not self._is_weak:
            return self._ref
        return self._ref()

    def matches(self, handler: Handler[Any]) -> bool:
        resolved = self.resolve()
        return resolved is not None and resolved == handler


def _handler_name(handler: Handler[Any]) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    return getattr(handler, "__name__", repr(handler))


__all__ = [
    "ActiveEditorChanged",
    "EditorChanged",
    "Event",
    "EventBus",
    "GrammarAnnotationsChanged",
    "Handler",
    "KeyPressed",
    "NoticePosted",
    "RateLimitChanged",
    "StatusMessage",
    "SuggestionAvailable",
    "SuggestionCleared",
]
