"""Prompt templates for autocomplete, grammar checking and rewriting."""

from __future__ import annotations

from datetime import date

GRAMMAR_CHECK_MAX_TOKENS = 1_500
CORRECTION_MAX_TOKENS = 2_000
CONNECTION_TEST_MAX_TOKENS = 50

CONNECTION_TEST_SYSTEM = "You are a helpful AI assistant."
CONNECTION_TEST_USER = 'Hello, please respond with "OK" to confirm you are working.'

_CAPITALIZATION_RULES = (
    "   - If the text is in the MIDDLE of a sentence, keep the first letter lowercase "
    "(unless it's a proper noun)\n"
    "   - If the text is at the START of a sentence, capitalize the first letter\n"
)


def date_context(today: date | None = None) -> str:
    current = today or date.today()
    return f"Today's date is {current.strftime('%A, %B')} {current.day}, {current.year}"


def _preamble(title: str | None, today: date | None) -> str:
    preamble = f"{date_context(today)}."
    if title:
        preamble += f' Note title: "{title}".'
    return preamble


def autocomplete_system_prompt(title: str | None = None, *, today: date | None = None) -> str:
    return (
        f"{_preamble(title, today)} You are a professional writing assistant. Complete ONLY the "
        "current sentence being typed. Do NOT add new sentences. Continue the thought naturally "
        "and professionally. Return ONLY the continuation text, nothing else. Do not repeat any "
        "of the input text. ALWAYS end with the appropriate punctuation mark (period, question "
        "mark, or exclamation point)."
    )


def autocomplete_user_prompt(context_before: str) -> str:
    return f'Complete this sentence: "{context_before}"'


def grammar_check_system_prompt(title: str | None = None, *, today: date | None = None) -> str:
    return (
        f"{_preamble(title, today)} You are a grammar checker. Analyze the text for grammar, "
        "spelling, and style issues. For each issue found, provide a JSON response with the start "
        "position, end position, suggestion text, type (grammar/spelling/style), and original "
        "text. Positions are zero-based character offsets into the text, end exclusive. Return "
        "ONLY the JSON array WITHOUT markdown formatting or code blocks. Format: "
        '[{"start": 0, "end": 5, "suggestion": "corrected", "type": "grammar", "original": "wrong"}]'
    )


def grammar_check_user_prompt(text: str) -> str:
    return f'Please analyze this text for grammar and spelling issues: "{text}"'


def correct_selection_instruction(is_start_of_sentence: bool, original: str) -> str:
    """Instruction for fixing a selected fragment without changing its casing or layout."""

    position = "at the START of a sentence" if is_start_of_sentence else "in the MIDDLE of a sentence"
    if original[:1].isupper():
        first_letter = "starts with an uppercase letter"
    elif original[:1].islower():
        first_letter = "starts with a lowercase letter"
    else:
        first_letter = "does not start with a letter"
    return (
        "Correct only the grammar and spelling errors in the following text.\n\n"
        f"Context: This text is {position}. The original text {first_letter}.\n\n"
        "IMPORTANT RULES:\n"
        "1. Return ONLY the corrected text with no explanations or commentary\n"
        "2. Do NOT add any formatting, markdown, or code blocks\n"
        "3. Do NOT add or remove line breaks\n"
        "4. Do NOT change the meaning or structure\n"
        "5. CAPITALIZATION RULES:\n"
        f"{_CAPITALIZATION_RULES}"
        "   - Preserve proper nouns and acronyms\n"
        "6. If there are no errors, return the text exactly as is"
    )


def correct_document_instruction() -> str:
    return (
        "Correct only the grammar and spelling errors in the following markdown document. "
        "IMPORTANT RULES:\n"
        "1. Return ONLY the corrected document with no explanations or commentary\n"
        "2. Do NOT add any extra formatting or code blocks\n"
        "3. Preserve ALL markdown syntax exactly (headers, links, bold, italic, lists, code blocks, etc.)\n"
        "4. Do NOT change the document structure or add/remove sections\n"
        "5. Preserve the original line breaks and paragraph structure\n"
        "6. If there are no errors, return the text exactly as is"
    )


def improve_writing_instruction(is_start_of_sentence: bool) -> str:
    position = "at the START of a sentence" if is_start_of_sentence else "in the MIDDLE of a sentence"
    return (
        "Improve the clarity, style, and flow of the following text.\n\n"
        f"Context: This text is {position}.\n\n"
        "IMPORTANT RULES:\n"
        "1. Return ONLY the improved text with no explanations or commentary\n"
        "2. Do NOT add any formatting, markdown, or code blocks\n"
        "3. Do NOT add or remove line breaks\n"
        "4. Preserve the original meaning and key information\n"
        "5. Make it more professional and readable\n"
        "6. Do NOT change technical terms or proper nouns\n"
        "7. CAPITALIZATION RULES:\n"
        f"{_CAPITALIZATION_RULES}"
    )


__all__ = [
    "CONNECTION_TEST_MAX_TOKENS",
    "CONNECTION_TEST_SYSTEM",
    "CONNECTION_TEST_USER",
    "CORRECTION_MAX_TOKENS",
    "GRAMMAR_CHECK_MAX_TOKENS",
    "autocomplete_system_prompt",
    "autocomplete_user_prompt",
    "correct_document_instruction",
    "correct_selection_instruction",
    "date_context",
    "grammar_check_system_prompt",
    "grammar_check_user_prompt",
    "improve_writing_instruction",
]
