"""Tests for prompt templates."""

from __future__ import annotations

from datetime import date

from inkwise.ai import prompts

_TODAY = date(2024, 3, 5)


def test_date_context() -> None:
    assert prompts.date_context(_TODAY) == "Today's date is Tuesday, March 5, 2024"


def test_autocomplete_prompts_include_title_and_context() -> None:
    system = prompts.autocomplete_system_prompt("Weekly notes", today=_TODAY)
    assert system.startswith("Today's date is Tuesday, March 5, 2024.")
    assert 'Note title: "Weekly notes".' in system
    assert "Complete ONLY the current sentence" in system
    assert prompts.autocomplete_user_prompt("The quick brown ") == 'Complete this sentence: "The quick brown "'


def test_grammar_prompts_request_json_array() -> None:
    system = prompts.grammar_check_system_prompt(today=_TODAY)
    assert "Note title" not in system
    assert '"original": "wrong"' in system
    assert prompts.grammar_check_user_prompt("I has").endswith('"I has"')


def test_selection_instruction_describes_position_and_case() -> None:
    middle = prompts.correct_selection_instruction(False, "quick fox")
    assert "in the MIDDLE of a sentence" in middle
    assert "starts with a lowercase letter" in middle

    start = prompts.correct_selection_instruction(True, "Quick fox")
    assert "at the START of a sentence" in start
    assert "starts with an uppercase letter" in start

    assert "does not start with a letter" in prompts.correct_selection_instruction(True, "42 foxes")


def test_document_and_improve_instructions() -> None:
    assert "Preserve ALL markdown syntax" in prompts.correct_document_instruction()
    assert "at the START of a sentence" in prompts.improve_writing_instruction(True)
