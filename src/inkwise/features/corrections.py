"""On-demand rewriting commands: correct selection, correct document, improve writing."""

from __future__ import annotations

import logging
import re

from ..ai import prompts
from ..ai.errors import RateLimitedError, classify_provider_error, is_rate_limit_error
from ..core.context import EngineContext
from ..core.events import NoticePosted
from ..editor.protocols import CursorPosition, EditorPort
from ..text.reconciler import (
    clean_provider_response,
    extract_whitespace,
    is_at_sentence_start,
    preserve_capitalization,
)
from .autocomplete import ProviderGetter

LOGGER = logging.getLogger(__name__)

_MARKDOWN_FENCE_OPEN_RE = re.compile(r"^```(?:markdown|md)?\s*\n?", re.IGNORECASE)
_MARKDOWN_FENCE_CLOSE_RE = re.compile(r"\n?```\s*$")


class GrammarCommands:
    """User-invoked corrections that rewrite text through ``AIProvider.call_api``.

    Every command leaves the document untouched when the provider fails or
    the targeted text changed while the request was in flight.
    """

    def __init__(self, context: EngineContext, provider: ProviderGetter) -> None:
        self._ctx = context
        self._provider = provider

    async def correct_selection(self, editor: EditorPort) -> bool:
        selected = editor.get_selection()
        if not selected:
            self._notice("Please select some text to correct")
            return False
        self._notice("Correcting grammar...")
        return await self._rewrite_selection(
            editor,
            selected,
            lambda is_start, core: prompts.correct_selection_instruction(is_start, core),
            done_message="Grammar corrected",
        )

    async def improve_writing(self, editor: EditorPort) -> bool:
        selected = editor.get_selection()
        if not selected:
            self._notice("Please select some text to improve")
            return False
        self._notice("Improving writing...")
        return await self._rewrite_selection(
            editor,
            selected,
            lambda is_start, _core: prompts.improve_writing_instruction(is_start),
            done_message="Writing improved",
        )

    async def correct_document(self, editor: EditorPort) -> bool:
        original = editor.get_value()
        if not original.strip():
            self._notice("Document is empty")
            return False
        self._notice("Correcting document grammar...")
        corrected = await self._call(original, prompts.correct_document_instruction())
        if not corrected:
            return False
        cleaned = clean_provider_response(corrected)
        cleaned = _MARKDOWN_FENCE_CLOSE_RE.sub("", _MARKDOWN_FENCE_OPEN_RE.sub("", cleaned))
        if cleaned == original:
            LOGGER.debug("Document correction returned identical text")
            return False
        if editor.get_value() != original:
            LOGGER.info("Document changed during correction; discarding result")
            self._notice("Document changed while correcting; no changes applied")
            return False
        editor.set_value(cleaned)
        self._notice("Document grammar corrected")
        return True

    async def _rewrite_selection(self, editor, selected, instruction_for, *, done_message: str) -> bool:
        split = extract_whitespace(selected)
        if not split.content:
            return False
        start = editor.selection_start()
        before = editor.get_range(CursorPosition(start.line, 0), start)
        is_start = is_at_sentence_start(before)

        result = await self._call(split.content, instruction_for(is_start, split.content))
        if not result:
            return False
        cleaned = preserve_capitalization(split.content, clean_provider_response(result), is_start)
        if editor.get_selection() != selected:
            LOGGER.info("Selection changed during rewrite; discarding result")
            self._notice("Selection changed while rewriting; no changes applied")
            return False
        editor.replace_selection(f"{split.leading}{cleaned}{split.trailing}")
        self._notice(done_message)
        return True

    async def _call(self, text: str, instruction: str) -> str:
        settings = self._ctx.settings()
        if not settings.current_api_key():
            self._notice("Please set your API key in the plugin settings")
            return ""
        provider = self._provider()
        if provider is None:
            self._notice("No AI provider configured")
            return ""
        if self._ctx.guard.is_limited():
            self._notice(RateLimitedError.user_message)
            return ""
        LOGGER.debug("Rewriting %d chars with %s/%s", len(text), settings.provider, settings.model)
        try:
            return await provider.call_api(text, instruction, settings.temperature, prompts.CORRECTION_MAX_TOKENS)
        except Exception as exc:
            error = classify_provider_error(exc)
            LOGGER.warning("AI API error: %s", error)
            if is_rate_limit_error(error):
                # the guard listener reports the cooldown
                self._ctx.guard.trip(settings.rate_limit_backoff_ms)
            else:
                self._notice("Failed to connect to AI service. Please check your settings.", level="error")
            return ""

    def _notice(self, message: str, *, level: str = "info") -> None:
        self._ctx.bus.publish(NoticePosted(message, level=level))


__all__ = ["GrammarCommands"]
