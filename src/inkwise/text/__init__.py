"""Stateless text reconciliation helpers."""

from .reconciler import (
    WhitespaceSplit,
    adjust_suggestion_casing,
    clean_provider_response,
    extract_whitespace,
    is_at_sentence_start,
    parse_suggestion_array,
    preserve_capitalization,
    remove_duplicate_prefix,
    should_trigger_autocomplete,
    strip_code_fence,
)

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
