"""Suggestion value types shared by providers, lifecycles and UI adapters."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Iterable, Mapping

LOGGER = logging.getLogger(__name__)


class SuggestionType(str, Enum):
    """Category reported by the grammar checker."""

    GRAMMAR = "grammar"
    SPELLING = "spelling"
    STYLE = "style"

    @classmethod
    def coerce(cls, value: Any) -> "SuggestionType":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.GRAMMAR


@dataclass(frozen=True, slots=True)
class GrammarSuggestion:
    """A replacement for ``original`` found at ``[start, end)`` when the check ran.

    Offsets are only a hint: the suggestion may be applied only while the live
    document still holds ``original`` at that range.
    """

    start: int
    end: int
    suggestion: str
    type: SuggestionType
    original: str

    def __post_init__(self) -> None:
        if self.start < 0 or self.start > self.end:
            raise ValueError(f"invalid suggestion range [{self.start}, {self.end})")

    @property
    def key(self) -> tuple[int, int]:
        return (self.start, self.end)

    @classmethod
    def from_payload(cls, payload: Any) -> "GrammarSuggestion | None":
        """Build a suggestion from a decoded JSON object, or ``None`` if it is unusable."""

        if not isinstance(payload, Mapping):
            return None
        try:
            start = int(payload["start"])
            end = int(payload["end"])
        except (KeyError, TypeError, ValueError):
            return None
        suggestion = payload.get("suggestion")
        original = payload.get("original")
        if not isinstance(suggestion, str) or not isinstance(original, str):
            return None
        try:
            return cls(
                start=start,
                end=end,
                suggestion=suggestion,
                type=SuggestionType.coerce(payload.get("type", "grammar")),
                original=original,
            )
        except ValueError:
            return None

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data


def coerce_grammar_suggestions(items: Iterable[Any]) -> list[GrammarSuggestion]:
    """Convert decoded JSON items, skipping malformed entries."""

    suggestions: list[GrammarSuggestion] = []
    skipped = 0
    for item in items:
        suggestion = GrammarSuggestion.from_payload(item)
        if suggestion is None:
            skipped += 1
            continue
        suggestions.append(suggestion)
    if skipped:
        LOGGER.debug("Skipped %d malformed grammar suggestion(s)", skipped)
    return suggestions


@dataclass(frozen=True, slots=True)
class AutocompleteSuggestion:
    """Continuation ``text`` generated for the cursor at ``anchor_offset``."""

    text: str
    anchor_offset: int


@dataclass(frozen=True, slots=True)
class ModelInfo:
    id: str
    name: str


__all__ = [
    "AutocompleteSuggestion",
    "GrammarSuggestion",
    "ModelInfo",
    "SuggestionType",
    "coerce_grammar_suggestions",
]
