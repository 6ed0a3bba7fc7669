"""Pure text helpers that turn raw provider output into well-formed suggestions.

Nothing here touches the editor or the network, and nothing raises on odd
input: parsing helpers degrade to empty results instead.
"""

from __future__ import annotations

import json
import re
from typing import Any, NamedTuple

__all__ = [
    "WhitespaceSplit",
    "adjust_suggestion_casing",
    "clean_provider_response",
    "extract_whitespace",
    "is_at_sentence_start",
    "parse_suggestion_array",
    "preserve_capitalization",
    "remove_duplicate_prefix",
    "should_trigger_autocomplete",
    "strip_code_fence",
]

_SENTENCE_END_RE = re.compile(r"[.!?]\s*$")
_LINE_END_RE = re.compile(r"\n\s*$")
_FENCE_OPEN_RE = re.compile(r"^```(?:[\w+-]*)?\s*\n?", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\n?```\s*$")
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
_PREAMBLE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^Here'?s? (?:is )?(?:the )?correct(?:ed)? (?:text|version|grammar)[:.]?\s*",
        r"^Corrected (?:text|version|grammar)[:.]?\s*",
        r"^Here'?s? (?:is )?(?:the )?improved (?:text|version|writing)[:.]?\s*",
        r"^Improved (?:text|version|writing)[:.]?\s*",
    )
)

_SENTENCE_PUNCTUATION = frozenset(".!?")
_CLAUSE_PUNCTUATION = frozenset(",;:")
_QUOTES_AND_BRACKETS = frozenset("\"'`()[]{}“”‘’«»")


class WhitespaceSplit(NamedTuple):
    """Surrounding whitespace runs of a text and its trimmed core."""

    leading: str
    trailing: str
    content: str


def remove_duplicate_prefix(context: str, suggestion: str) -> str:
    """Drop words at the start of ``suggestion`` that repeat the end of ``context``.

    The longest case-insensitive whole-word overlap wins. Without a whole-word
    overlap, a first suggestion word that merely extends the last context word
    ("test" -> "testing") loses the shared part and is glued to the rest of the
    suggestion without a separating space; the remainder comes back lower-cased.
    """

    context_words = context.strip().lower().split()
    suggestion_words = suggestion.strip().split()

    for overlap in range(min(len(context_words), len(suggestion_words)), 0, -1):
        head = [word.lower() for word in suggestion_words[:overlap]]
        if context_words[-overlap:] == head:
            return " ".join(suggestion_words[overlap:])

    if context_words and suggestion_words:
        last_context_word = context_words[-1]
        folded = suggestion_words[0].lower()
        if folded.startswith(last_context_word) and folded != last_context_word:
            remaining = folded[len(last_context_word):]
            if remaining:
                return remaining + " ".join(suggestion_words[1:])

    return suggestion


def is_at_sentence_start(text_before_cursor: str) -> bool:
    """Return ``True`` when the next character would begin a new sentence."""

    if not text_before_cursor.rstrip():
        return True
    if _SENTENCE_END_RE.search(text_before_cursor):
        return True
    return bool(_LINE_END_RE.search(text_before_cursor))


def should_trigger_autocomplete(context_before: str, min_length: int = 10) -> bool:
    """Gate autocomplete on enough context and a cursor that sits after a word break."""

    if len(context_before.strip()) < min_length:
        return False
    if not context_before:
        return True
    if not context_before[-1].isspace():
        # mid-word
        return False
    stripped = context_before.rstrip()
    if not stripped:
        return False
    last = stripped[-1]
    return (
        last in _SENTENCE_PUNCTUATION
        or last in _CLAUSE_PUNCTUATION
        or last in _QUOTES_AND_BRACKETS
        or last.isalnum()
        or last == "_"
    )


def adjust_suggestion_casing(suggestion: str, is_start_of_sentence: bool) -> str:
    """Upper- or lower-case the first visible character, keeping leading whitespace."""

    index = len(suggestion) - len(suggestion.lstrip())
    if index >= len(suggestion):
        return suggestion
    first = suggestion[index]
    adjusted = first.upper() if is_start_of_sentence else first.lower()
    return suggestion[:index] + adjusted + suggestion[index + 1:]


def preserve_capitalization(original_selection: str, corrected_text: str, is_start_of_sentence: bool) -> str:
    """Keep a mid-sentence fragment lowercase when the provider capitalized it."""

    if not corrected_text:
        return corrected_text
    original = original_selection.strip()
    starts_lowercase = bool(original) and original[0].islower()
    if not is_start_of_sentence and starts_lowercase:
        return corrected_text[0].lower() + corrected_text[1:]
    return corrected_text


def extract_whitespace(text: str) -> WhitespaceSplit:
    content = text.strip()
    leading = text[: len(text) - len(text.lstrip())]
    trailing = text[len(text.rstrip()):]
    return WhitespaceSplit(leading=leading, trailing=trailing, content=content)


def strip_code_fence(text: str) -> str:
    """Remove one opening and one closing Markdown fence, if present."""

    stripped = _FENCE_OPEN_RE.sub("", text.strip(), count=1)
    return _FENCE_CLOSE_RE.sub("", stripped, count=1)


def clean_provider_response(raw: str) -> str:
    """Strip code fences and "Here is the corrected text:" style preambles."""

    cleaned = strip_code_fence(raw or "")
    for pattern in _PREAMBLE_PATTERNS:
        cleaned = pattern.sub("", cleaned, count=1)
    return cleaned.strip()


def parse_suggestion_array(raw: str | None) -> list[Any]:
    """Parse a JSON array out of a chat response; any failure yields ``[]``."""

    if not raw:
        return []
    payload = strip_code_fence(raw).strip()
    if not payload.startswith(("[", "{")):
        match = _ARRAY_RE.search(payload)
        if match:
            payload = match.group(0)
    try:
        result = json.loads(payload)
    except ValueError:
        return []
    return result if isinstance(result, list) else []
