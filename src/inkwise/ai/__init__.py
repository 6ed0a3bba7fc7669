"""Provider abstraction, prompts and the suggestion data model."""

from .errors import (
    AuthenticationFailedError,
    EndpointNotFoundError,
    ProviderError,
    ProviderNetworkError,
    ProviderNotConfiguredError,
    ProviderResponseError,
    RateLimitedError,
    classify_provider_error,
    is_rate_limit_error,
)
from .providers import AIProvider, ChatProvider, ProviderFactory, ProviderPreset
from .types import AutocompleteSuggestion, GrammarSuggestion, ModelInfo, SuggestionType

__all__ = [
    "AIProvider",
    "AuthenticationFailedError",
    "AutocompleteSuggestion",
    "ChatProvider",
    "EndpointNotFoundError",
    "GrammarSuggestion",
    "ModelInfo",
    "ProviderError",
    "ProviderFactory",
    "ProviderNetworkError",
    "ProviderNotConfiguredError",
    "ProviderPreset",
    "ProviderResponseError",
    "RateLimitedError",
    "SuggestionType",
    "classify_provider_error",
    "is_rate_limit_error",
]
