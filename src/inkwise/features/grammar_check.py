"""Real-time grammar checking: debounce, gate, check, annotate, apply."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Sequence

from ..ai.errors import (
    AuthenticationFailedError,
    EndpointNotFoundError,
    ProviderError,
    ProviderNetworkError,
    classify_provider_error,
    is_rate_limit_error,
)
from ..ai.types import GrammarSuggestion
from ..core.context import EngineContext
from ..core.debounce import GRAMMAR_CHANNEL
from ..core.events import GrammarAnnotationsChanged, NoticePosted, StatusMessage
from ..editor.protocols import EditorPort
from .autocomplete import ProviderGetter

LOGGER = logging.getLogger(__name__)

STATUS_CHECKING = "Checking grammar..."


class GrammarCheckState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    CHECKING = "checking"
    ANNOTATED = "annotated"


def grammar_failure_message(error: ProviderError) -> str:
    """Return the single user-facing message for a failed grammar check."""

    if isinstance(error, (AuthenticationFailedError, EndpointNotFoundError, ProviderNetworkError)):
        return error.user_message
    return f"Grammar check failed: {error.message}"


class GrammarCheckLifecycle:
    """Owns the live set of grammar annotations for the active editor.

    Annotations are keyed by their ``(start, end)`` range. A suggestion is only
    ever applied after re-reading the live range and finding ``original``
    there; otherwise applying it does nothing.
    """

    def __init__(self, context: EngineContext, provider: ProviderGetter) -> None:
        self._ctx = context
        self._provider = provider
        self._state = GrammarCheckState.IDLE
        self._annotations: dict[tuple[int, int], GrammarSuggestion] = {}
        self._started = 0
        self._published = 0

    @property
    def state(self) -> GrammarCheckState:
        return self._state

    @property
    def annotations(self) -> tuple[GrammarSuggestion, ...]:
        return tuple(self._annotations.values())

    def schedule_check(self, editor: EditorPort, title: str | None = None) -> bool:
        settings = self._ctx.settings()
        if not settings.real_time_enabled:
            return False
        armed = self._ctx.scheduler.schedule(
            GRAMMAR_CHANNEL,
            settings.debounce_ms,
            lambda: self.run_check(editor, title),
        )
        if armed and self._state is not GrammarCheckState.CHECKING:
            self._state = GrammarCheckState.SCHEDULED
        return armed

    def cancel_pending(self) -> bool:
        cancelled = self._ctx.scheduler.cancel(GRAMMAR_CHANNEL)
        if cancelled and self._state is GrammarCheckState.SCHEDULED:
            self._state = self._resting_state()
        return cancelled

    async def run_check(self, editor: EditorPort, title: str | None = None) -> list[GrammarSuggestion]:
        """Check the whole document now and replace the annotation set with the result."""

        settings = self._ctx.settings()
        text = editor.get_value()
        provider = self._provider()
        if not text.strip():
            self.clear()
            return []
        if provider is None or not settings.current_api_key():
            LOGGER.debug("API key not set, skipping grammar check")
            self.clear()
            return []
        if self._ctx.guard.is_limited():
            LOGGER.debug("Rate limited, skipping grammar check")
            self._state = self._resting_state()
            return []

        self._started += 1
        sequence = self._started
        self._state = GrammarCheckState.CHECKING
        self._ctx.bus.publish(StatusMessage(STATUS_CHECKING))
        try:
            suggestions = await provider.get_grammar_suggestions(text, settings.temperature, title)
        except Exception as exc:
            self._handle_failure(exc, sequence)
            return []
        finally:
            self._ctx.bus.publish(StatusMessage(""))

        if sequence < self._published:
            LOGGER.debug("Discarding grammar result older than the displayed one")
            return []
        self._published = sequence
        live = editor.get_value()
        applicable = [item for item in suggestions if _matches(live, item)]
        if len(applicable) != len(suggestions):
            LOGGER.debug(
                "Dropped %d grammar suggestion(s) that no longer match the document",
                len(suggestions) - len(applicable),
            )
        self._replace_annotations(applicable)
        if sequence == self._started:
            self._state = self._resting_state()
        return applicable

    def apply(self, editor: EditorPort, suggestion: GrammarSuggestion) -> bool:
        """Replace ``[start, end)`` with the suggestion if the live text still holds ``original``."""

        start = editor.offset_to_pos(suggestion.start)
        end = editor.offset_to_pos(suggestion.end)
        if len(editor.get_value()) < suggestion.end or editor.get_range(start, end) != suggestion.original:
            LOGGER.debug("Grammar suggestion at %s is stale; not applying", suggestion.key)
            return False
        editor.replace_range(suggestion.suggestion, start, end)
        self._annotations.pop(suggestion.key, None)
        self._publish()
        self._state = self._resting_state()
        self._ctx.bus.publish(NoticePosted("Applied suggestion"))
        return True

    def dismiss(self, suggestion: GrammarSuggestion) -> bool:
        if self._annotations.pop(suggestion.key, None) is None:
            return False
        self._publish()
        self._state = self._resting_state()
        return True

    def clear(self) -> None:
        self._state = GrammarCheckState.IDLE
        if self._annotations:
            self._annotations.clear()
            self._publish()

    def _handle_failure(self, exc: BaseException, sequence: int) -> None:
        error = classify_provider_error(exc)
        LOGGER.warning("Real-time grammar check failed: %s", error)
        if sequence == self._started:
            self._state = GrammarCheckState.IDLE
        if self._annotations:
            self._annotations.clear()
            self._publish()
        if is_rate_limit_error(error):
            self._ctx.guard.trip(self._ctx.settings().rate_limit_backoff_ms)
            return
        self._ctx.bus.publish(NoticePosted(grammar_failure_message(error), level="error"))

    def _replace_annotations(self, suggestions: Sequence[GrammarSuggestion]) -> None:
        self._annotations = {item.key: item for item in suggestions}
        self._publish()

    def _publish(self) -> None:
        self._ctx.bus.publish(GrammarAnnotationsChanged(self.annotations))

    def _resting_state(self) -> GrammarCheckState:
        return GrammarCheckState.ANNOTATED if self._annotations else GrammarCheckState.IDLE


def _matches(text: str, suggestion: GrammarSuggestion) -> bool:
    return suggestion.end <= len(text) and text[suggestion.start:suggestion.end] == suggestion.original


__all__ = ["GrammarCheckLifecycle", "GrammarCheckState", "STATUS_CHECKING", "grammar_failure_message"]
