"""Shared test helpers and stub classes.

Import from here instead of duplicating fakes in individual test files.
"""

from __future__ import annotations

import asyncio
from typing import Any

from inkwise.ai.types import GrammarSuggestion, ModelInfo, SuggestionType


class FakeProvider:
    """Scripted :class:`~inkwise.ai.providers.AIProvider`.

    Each queue holds replies consumed in order; an exception instance in a
    queue is raised instead of returned. When ``gate`` is set, calls block on
    it, which keeps a request "in flight" until the test releases it.

    Example:
        provider = FakeProvider(autocomplete=["quick fox."])
        provider.gate = asyncio.Event()
    """

    name = "fake"

    def __init__(
        self,
        *,
        autocomplete: list[Any] | None = None,
        grammar: list[Any] | None = None,
        rewrites: list[Any] | None = None,
        connection: list[Any] | None = None,
    ) -> None:
        self.autocomplete_replies = list(autocomplete or [])
        self.grammar_replies = list(grammar or [])
        self.rewrite_replies = list(rewrites or [])
        self.connection_replies = list(connection or [])
        self.calls: list[tuple[str, Any]] = []
        self.gate: asyncio.Event | None = None

    async def get_autocomplete_suggestion(
        self,
        context_before: str,
        temperature: float,
        max_tokens: int,
        title: str | None = None,
    ) -> str:
        self.calls.append(("autocomplete", context_before))
        return await self._next(self.autocomplete_replies, "")

    async def get_grammar_suggestions(self, text: str, temperature: float, title: str | None = None):
        self.calls.append(("grammar", text))
        return await self._next(self.grammar_replies, [])

    async def call_api(self, text: str, instruction: str, temperature: float, max_tokens: int = 2_000) -> str:
        self.calls.append(("call_api", text))
        return await self._next(self.rewrite_replies, text)

    async def test_connection(self, api_key: str, model: str) -> bool:
        self.calls.append(("test_connection", (api_key, model)))
        return await self._next(self.connection_replies, True)

    async def list_models(self) -> list[ModelInfo]:
        return [ModelInfo("fake-model", "Fake Model")]

    def count(self, kind: str) -> int:
        return sum(1 for name, _ in self.calls if name == kind)

    async def _next(self, queue: list[Any], default: Any) -> Any:
        if self.gate is not None:
            await self.gate.wait()
        reply = queue.pop(0) if queue else default
        if isinstance(reply, BaseException):
            raise reply
        return reply


def make_suggestion(text: str, original: str, replacement: str, *, occurrence: int = 0) -> GrammarSuggestion:
    """Build a grammar suggestion for the ``occurrence``-th match of ``original`` in ``text``."""

    start = -1
    for _ in range(occurrence + 1):
        start = text.index(original, start + 1)
    return GrammarSuggestion(
        start=start,
        end=start + len(original),
        suggestion=replacement,
        type=SuggestionType.GRAMMAR,
        original=original,
    )
