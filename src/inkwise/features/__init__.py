"""Suggestion lifecycles and user-invoked writing commands."""

from .autocomplete import AutocompleteLifecycle, AutocompleteState
from .corrections import GrammarCommands
from .grammar_check import GrammarCheckLifecycle, GrammarCheckState

__all__ = [
    "AutocompleteLifecycle",
    "AutocompleteState",
    "GrammarCheckLifecycle",
    "GrammarCheckState",
    "GrammarCommands",
]
