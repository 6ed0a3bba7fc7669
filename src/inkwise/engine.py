"""Engine facade wiring the lifecycles to the inbound editor events."""

from __future__ import annotations

import logging
import math
from typing import Any

from .ai.errors import ErrorCode, ProviderError, classify_provider_error, is_rate_limit_error
from .ai.providers import AIProvider, ProviderFactory
from .ai.types import AutocompleteSuggestion, GrammarSuggestion
from .core.clock import Clock
from .core.context import EngineContext
from .core.events import (
    ActiveEditorChanged,
    EditorChanged,
    EventBus,
    KeyPressed,
    NoticePosted,
    RateLimitChanged,
)
from .core.rate_limit import RateLimitState
from .editor.protocols import EditorPort
from .features.autocomplete import AutocompleteLifecycle
from .features.corrections import GrammarCommands
from .features.grammar_check import GrammarCheckLifecycle
from .services.settings import Settings, SettingsGetter

LOGGER = logging.getLogger(__name__)


class AssistantEngine:
    """Subscribes to editor events on the bus and drives both suggestion lifecycles.

    The provider is rebuilt lazily whenever the provider-related settings
    change, so configuration edits take effect on the next request.
    """

    def __init__(
        self,
        settings: SettingsGetter | Settings,
        *,
        clock: Clock | None = None,
        bus: EventBus | None = None,
        provider_factory: ProviderFactory | None = None,
        provider: AIProvider | None = None,
    ) -> None:
        self.context = EngineContext.create(settings, clock=clock, bus=bus)
        self._factory = provider_factory or ProviderFactory()
        self._fixed_provider = provider
        self._provider: AIProvider | None = None
        self._provider_signature: tuple[Any, ...] | None = None
        self._retired: list[AIProvider] = []
        self._active_editor: EditorPort | None = None
        self._active_title: str | None = None

        self.autocomplete = AutocompleteLifecycle(self.context, self.current_provider)
        self.grammar = GrammarCheckLifecycle(self.context, self.current_provider)
        self.commands = GrammarCommands(self.context, self.current_provider)

        self.context.guard.add_listener(self._on_rate_limit_changed)
        self.bus.subscribe(EditorChanged, self._on_editor_changed)
        self.bus.subscribe(ActiveEditorChanged, self._on_active_editor_changed)
        self.bus.subscribe(KeyPressed, self._on_key_pressed)

    @property
    def bus(self) -> EventBus:
        return self.context.bus

    @property
    def settings(self) -> Settings:
        return self.context.settings()

    @property
    def active_editor(self) -> EditorPort | None:
        return self._active_editor

    # ------------------------------------------------------------------
    # Provider management
    # ------------------------------------------------------------------
    def current_provider(self) -> AIProvider | None:
        if self._fixed_provider is not None:
            return self._fixed_provider
        settings = self.context.settings()
        signature = (
            settings.provider,
            settings.current_api_key(),
            settings.model,
            settings.base_url,
            settings.request_timeout,
            settings.max_retries,
            settings.debug_logging,
        )
        if signature != self._provider_signature:
            if self._provider is not None:
                self._retired.append(self._provider)
            self._provider_signature = signature
            self._provider = self._factory.create(
                settings.provider,
                api_key=settings.current_api_key(),
                model=settings.model,
                base_url=settings.base_url,
                request_timeout=settings.request_timeout,
                max_retries=settings.max_retries,
                debug_logging=settings.debug_logging,
            )
            LOGGER.debug("AI provider set to %s (model=%s)", settings.provider, settings.model)
        return self._provider

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------
    def _on_active_editor_changed(self, event: ActiveEditorChanged) -> None:
        self.set_active_editor(event.editor)

    def set_active_editor(self, editor: EditorPort | None, title: str | None = None) -> None:
        if editor is self._active_editor:
            return
        self.autocomplete.clear()
        self.grammar.cancel_pending()
        self.grammar.clear()
        self._active_editor = editor
        self._active_title = title

    def _on_editor_changed(self, event: EditorChanged) -> None:
        if self._active_editor is None:
            self._active_editor = event.editor
        if event.editor is not self._active_editor:
            return
        if event.title is not None:
            self._active_title = event.title
        self.grammar.schedule_check(event.editor, self._active_title)
        self.autocomplete.schedule(event.editor, self._active_title)

    def _on_key_pressed(self, event: KeyPressed) -> None:
        self.autocomplete.handle_key(event)

    def _on_rate_limit_changed(self, state: RateLimitState) -> None:
        remaining = self.context.guard.remaining_ms()
        self.bus.publish(
            RateLimitChanged(
                limited=state.limited,
                cooldown_until=state.cooldown_until,
                detail={"remaining_ms": remaining},
            )
        )
        if state.limited:
            minutes = max(1, math.ceil(remaining / 60_000))
            self.bus.publish(
                NoticePosted(
                    f"Rate limit reached. Pausing for {minutes} minute(s) to avoid further limits.",
                    level="warning",
                )
            )
        else:
            LOGGER.info("Rate limit cooldown ended, resuming requests")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    async def trigger_autocomplete(self, editor: EditorPort | None = None) -> AutocompleteSuggestion | None:
        target = self._require_editor(editor)
        if target is None:
            return None
        return await self.autocomplete.trigger_now(target, self._active_title)

    def accept_autocomplete(self) -> bool:
        if not self.autocomplete.has_suggestion():
            self.bus.publish(NoticePosted("No autocomplete suggestion available"))
            return False
        return self.autocomplete.handle_key(KeyPressed("ArrowRight"))

    async def check_grammar(self, editor: EditorPort | None = None) -> list[GrammarSuggestion]:
        target = self._require_editor(editor)
        if target is None:
            return []
        self.grammar.cancel_pending()
        return await self.grammar.run_check(target, self._active_title)

    def apply_grammar_suggestion(self, suggestion: GrammarSuggestion, editor: EditorPort | None = None) -> bool:
        target = self._require_editor(editor)
        if target is None:
            return False
        return self.grammar.apply(target, suggestion)

    async def correct_selection(self, editor: EditorPort | None = None) -> bool:
        target = self._require_editor(editor)
        return await self.commands.correct_selection(target) if target is not None else False

    async def correct_document(self, editor: EditorPort | None = None) -> bool:
        target = self._require_editor(editor)
        return await self.commands.correct_document(target) if target is not None else False

    async def improve_writing(self, editor: EditorPort | None = None) -> bool:
        target = self._require_editor(editor)
        return await self.commands.improve_writing(target) if target is not None else False

    async def test_api_connection(self) -> bool:
        """Test the configured provider and post one notice describing the outcome."""

        settings = self.context.settings()
        api_key = settings.current_api_key()
        if not api_key:
            self._notice("Please set your API key first")
            return False
        provider = self.current_provider()
        if provider is None:
            self._notice("No AI provider configured")
            return False
        LOGGER.info("Testing API connection with provider %s", settings.provider)
        try:
            success = await provider.test_connection(api_key, settings.model)
        except Exception as exc:
            error = classify_provider_error(exc)
            LOGGER.warning("Connection test failed: %s", error)
            if is_rate_limit_error(error):
                self.context.guard.trip(settings.rate_limit_backoff_ms)
            else:
                self._notice(_connection_failure_message(error), level="error")
            return False
        if success:
            self._notice("API connection successful!")
            return True
        self._notice("API connection failed. Check your settings.", level="error")
        return False

    async def shutdown(self) -> None:
        """Cancel timers and in-flight work, drop suggestions and close providers."""

        scheduler = self.context.scheduler
        scheduler.cancel_all()
        cancelled = scheduler.cancel_in_flight()
        if cancelled:
            LOGGER.debug("Cancelled %d in-flight request(s) on shutdown", cancelled)
        await scheduler.drain()
        self.autocomplete.clear("shutdown")
        self.grammar.clear()
        self.context.guard.reset()
        providers = [*self._retired, self._provider]
        self._retired.clear()
        self._provider = None
        self._provider_signature = None
        for provider in providers:
            await _close_provider(provider)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _require_editor(self, editor: EditorPort | None) -> EditorPort | None:
        if editor is not None:
            if editor is not self._active_editor:
                self.set_active_editor(editor)
            return editor
        if self._active_editor is None:
            self._notice("No active editor")
        return self._active_editor

    def _notice(self, message: str, *, level: str = "info") -> None:
        self.bus.publish(NoticePosted(message, level=level))


def _connection_failure_message(error: ProviderError) -> str:
    if error.error_code == ErrorCode.NETWORK:
        return error.user_message
    return f"Connection failed: {error.message}"


async def _close_provider(provider: AIProvider | None) -> None:
    close = getattr(provider, "aclose", None)
    if close is None:
        return
    try:
        await close()
    except (ProviderError, OSError) as exc:
        LOGGER.debug("Provider shutdown failed: %s", exc)


__all__ = ["AssistantEngine"]
