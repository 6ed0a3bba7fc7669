"""Tests for suggestion value types."""

from __future__ import annotations

import pytest

from inkwise.ai.types import GrammarSuggestion, SuggestionType, coerce_grammar_suggestions


class TestGrammarSuggestion:
    def test_from_payload(self) -> None:
        suggestion = GrammarSuggestion.from_payload(
            {"start": "2", "end": 5, "suggestion": "have", "type": "Spelling", "original": "has"}
        )
        assert suggestion == GrammarSuggestion(2, 5, "have", SuggestionType.SPELLING, "has")
        assert suggestion.key == (2, 5)

    def test_unknown_type_defaults_to_grammar(self) -> None:
        suggestion = GrammarSuggestion.from_payload(
            {"start": 0, "end": 1, "suggestion": "A", "type": "punctuation", "original": "a"}
        )
        assert suggestion is not None
        assert suggestion.type is SuggestionType.GRAMMAR

    @pytest.mark.parametrize(
        "payload",
        [
            "not a mapping",
            {"end": 1, "suggestion": "x", "original": "y"},
            {"start": "zero", "end": 1, "suggestion": "x", "original": "y"},
            {"start": 0, "end": 1, "suggestion": None, "original": "y"},
            {"start": 4, "end": 1, "suggestion": "x", "original": "y"},
            {"start": -1, "end": 1, "suggestion": "x", "original": "y"},
        ],
    )
    def test_unusable_payloads(self, payload: object) -> None:
        assert GrammarSuggestion.from_payload(payload) is None

    def test_as_dict_uses_plain_type(self) -> None:
        suggestion = GrammarSuggestion(0, 3, "The", SuggestionType.STYLE, "teh")
        assert suggestion.as_dict() == {
            "start": 0,
            "end": 3,
            "suggestion": "The",
            "type": "style",
            "original": "teh",
        }


def test_coerce_skips_malformed_entries() -> None:
    items = [
        {"start": 0, "end": 3, "suggestion": "The", "type": "spelling", "original": "teh"},
        {"start": 1},
        42,
    ]
    suggestions = coerce_grammar_suggestions(items)
    assert [item.original for item in suggestions] == ["teh"]
