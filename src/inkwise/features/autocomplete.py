"""Inline autocomplete: debounce, gate, fetch, reconcile, display, accept."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from ..ai.errors import classify_provider_error, is_rate_limit_error
from ..ai.providers import AIProvider
from ..ai.types import AutocompleteSuggestion
from ..core.context import EngineContext
from ..core.debounce import AUTOCOMPLETE_CHANNEL
from ..core.events import KeyPressed, NoticePosted, StatusMessage, SuggestionAvailable, SuggestionCleared
from ..editor.protocols import EditorPort
from ..text.reconciler import (
    adjust_suggestion_casing,
    is_at_sentence_start,
    remove_duplicate_prefix,
    should_trigger_autocomplete,
)

LOGGER = logging.getLogger(__name__)

ProviderGetter = Callable[[], "AIProvider | None"]

STATUS_FETCHING = "Getting AI suggestion..."
STATUS_READY = "Suggestion ready - Press → to accept"


class AutocompleteState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    FETCHING = "fetching"
    DISPLAYED = "displayed"


class AutocompleteLifecycle:
    """Owns the single live autocomplete suggestion for the active editor.

    Each new edit bumps a generation counter; a fetch whose generation is no
    longer current when the provider answers is discarded, as is one whose
    editor cursor moved away from the anchor. In-flight requests are never
    cancelled.
    """

    def __init__(self, context: EngineContext, provider: ProviderGetter) -> None:
        self._ctx = context
        self._provider = provider
        self._state = AutocompleteState.IDLE
        self._suggestion: AutocompleteSuggestion | None = None
        self._editor: EditorPort | None = None
        self._generation = 0
        self._applying = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def state(self) -> AutocompleteState:
        return self._state

    @property
    def suggestion(self) -> AutocompleteSuggestion | None:
        return self._suggestion

    def has_suggestion(self) -> bool:
        return self._suggestion is not None

    @property
    def is_applying_result(self) -> bool:
        """True while an accepted suggestion is being inserted, and for the guard window after."""

        return self._applying or self._ctx.scheduler.is_suppressed(AUTOCOMPLETE_CHANNEL)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def schedule(self, editor: EditorPort, title: str | None = None) -> bool:
        """Restart the debounce timer after an edit; return ``True`` when a fetch was armed."""

        settings = self._ctx.settings()
        if not settings.autocomplete_enabled:
            return False
        if self.is_applying_result:
            LOGGER.debug("Autocomplete skipped: currently accepting a suggestion")
            return False
        self._supersede()
        self._editor = editor
        armed = self._ctx.scheduler.schedule(
            AUTOCOMPLETE_CHANNEL,
            settings.autocomplete_debounce_ms,
            lambda: self.fetch(editor, title),
        )
        if armed:
            self._state = AutocompleteState.SCHEDULED
        return armed

    async def trigger_now(self, editor: EditorPort, title: str | None = None) -> AutocompleteSuggestion | None:
        """Fetch a suggestion immediately, skipping the debounce but not the gates."""

        if not self._ctx.settings().autocomplete_enabled:
            self._ctx.bus.publish(NoticePosted("Autocomplete is disabled. Enable it in settings."))
            return None
        self._ctx.scheduler.cancel(AUTOCOMPLETE_CHANNEL)
        self._supersede()
        self._editor = editor
        self._ctx.bus.publish(NoticePosted("Getting suggestion..."))
        return await self.fetch(editor, title)

    async def fetch(self, editor: EditorPort, title: str | None = None) -> AutocompleteSuggestion | None:
        settings = self._ctx.settings()
        generation = self._generation
        self._editor = editor
        provider = self._provider()
        if self._ctx.guard.is_limited() or provider is None or not settings.current_api_key():
            LOGGER.debug("Autocomplete skipped: rate limited or no API key")
            self._settle(generation)
            return None

        anchor = editor.pos_to_offset(editor.get_cursor())
        lookback = max(0, settings.autocomplete_lookback_chars)
        context_before = editor.get_value()[max(0, anchor - lookback):anchor]
        if not should_trigger_autocomplete(context_before, settings.autocomplete_min_context):
            LOGGER.debug("Autocomplete skipped: cursor mid-word or not enough context")
            self._settle(generation)
            return None

        self._state = AutocompleteState.FETCHING
        self._ctx.bus.publish(StatusMessage(STATUS_FETCHING))
        try:
            raw = await provider.get_autocomplete_suggestion(
                context_before,
                settings.temperature,
                settings.autocomplete_max_tokens,
                title,
            )
        except Exception as exc:
            self._ctx.bus.publish(StatusMessage(""))
            self._settle(generation)
            error = classify_provider_error(exc)
            if is_rate_limit_error(error):
                self._ctx.guard.trip(self._ctx.settings().rate_limit_backoff_ms)
            else:
                LOGGER.warning("Autocomplete request failed: %s", error)
            return None

        self._ctx.bus.publish(StatusMessage(""))
        if generation != self._generation or editor is not self._editor:
            LOGGER.debug("Discarding autocomplete result superseded by a newer edit")
            return None
        if editor.pos_to_offset(editor.get_cursor()) != anchor:
            LOGGER.debug("Discarding autocomplete result: cursor left the anchor")
            self._settle(generation)
            return None

        text = remove_duplicate_prefix(context_before, raw or "")
        text = adjust_suggestion_casing(text, is_at_sentence_start(context_before))
        if not text.strip():
            LOGGER.debug("No suggestion received")
            self._settle(generation)
            return None

        suggestion = AutocompleteSuggestion(text=text, anchor_offset=anchor)
        self._suggestion = suggestion
        self._state = AutocompleteState.DISPLAYED
        self._ctx.bus.publish(SuggestionAvailable(suggestion))
        self._ctx.bus.publish(StatusMessage(STATUS_READY))
        return suggestion

    # ------------------------------------------------------------------
    # Keyboard and acceptance
    # ------------------------------------------------------------------
    def handle_key(self, event: KeyPressed) -> bool:
        """React to a key-down while a suggestion is displayed; return ``True`` if consumed."""

        if self._suggestion is None:
            return False
        if event.key == "ArrowRight" and not event.has_modifier:
            if self.accept():
                event.handled = True
                return True
            return False
        if event.key == "Escape":
            self.dismiss()
            event.handled = True
            return True
        if event.is_visible_character:
            self.dismiss()
        return False

    def accept(self) -> bool:
        """Insert the displayed suggestion at the cursor.

        Only valid while the cursor sits at the end of its line and still at
        the anchor offset; anything else dismisses the suggestion as stale.
        """

        suggestion, editor = self._suggestion, self._editor
        if suggestion is None or editor is None:
            return False
        cursor = editor.get_cursor()
        offset = editor.pos_to_offset(cursor)
        if cursor.ch != len(editor.get_line(cursor.line)) or offset != suggestion.anchor_offset:
            LOGGER.debug("Autocomplete accept refused: cursor moved away from the anchor")
            self._clear("stale")
            return False

        text = suggestion.text.lstrip()
        if not text:
            self._clear("dismissed")
            return False

        scheduler = self._ctx.scheduler
        scheduler.cancel(AUTOCOMPLETE_CHANNEL)
        scheduler.suppress(AUTOCOMPLETE_CHANNEL, self._ctx.settings().accept_guard_ms)
        self._applying = True
        try:
            editor.replace_range(text, cursor)
            editor.set_cursor(editor.offset_to_pos(offset + len(text)))
        finally:
            self._applying = False
        self._clear("accepted")
        self._ctx.bus.publish(NoticePosted("Suggestion accepted"))
        return True

    def dismiss(self) -> bool:
        if self._suggestion is None:
            return False
        self._clear("dismissed")
        return True

    def clear(self, reason: str = "superseded") -> None:
        """Forget everything: pending timer, in-flight result and displayed suggestion."""

        self._ctx.scheduler.cancel(AUTOCOMPLETE_CHANNEL)
        self._generation += 1
        self._clear(reason)
        self._editor = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _supersede(self) -> None:
        self._generation += 1
        self._clear("superseded")

    def _settle(self, generation: int) -> None:
        if generation == self._generation:
            self._state = AutocompleteState.IDLE

    def _clear(self, reason: str) -> None:
        had_suggestion = self._suggestion is not None
        self._suggestion = None
        self._state = AutocompleteState.IDLE
        if had_suggestion:
            self._ctx.bus.publish(SuggestionCleared(reason))
            self._ctx.bus.publish(StatusMessage(""))


__all__ = ["AutocompleteLifecycle", "AutocompleteState", "ProviderGetter", "STATUS_FETCHING", "STATUS_READY"]
