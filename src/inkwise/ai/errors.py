"""Provider failure taxonomy.

Backends raise (or are translated into) :class:`ProviderError` subclasses so
lifecycles can decide between surfacing a message, tripping the rate-limit
guard, or staying silent, without parsing transport exceptions themselves.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, ClassVar

import httpx
import openai


class ErrorCode:
    """Machine-readable identifiers carried by :class:`ProviderError`."""

    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    BAD_RESPONSE = "bad_response"
    NOT_CONFIGURED = "not_configured"
    UNKNOWN = "unknown"


@dataclass(eq=False)
class ProviderError(Exception):
    """Base class for failures reported by an AI provider.

    Attributes:
        message: Technical description, suitable for logs.
        status_code: HTTP status when the failure came from a response.
        details: Extra structured data (response body excerpt, provider name).
    """

    message: str
    status_code: int | None = None
    details: dict[str, Any] = field(default_factory=dict)

    error_code: ClassVar[str] = ErrorCode.UNKNOWN
    user_message: ClassVar[str] = "AI request failed"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"error": self.error_code, "message": self.message}
        if self.status_code is not None:
            result["status_code"] = self.status_code
        if self.details:
            result["details"] = dict(self.details)
        return result


@dataclass(eq=False)
class AuthenticationFailedError(ProviderError):
    error_code: ClassVar[str] = ErrorCode.AUTHENTICATION
    user_message: ClassVar[str] = "Authentication error: Check your API key"


@dataclass(eq=False)
class EndpointNotFoundError(ProviderError):
    error_code: ClassVar[str] = ErrorCode.NOT_FOUND
    user_message: ClassVar[str] = "API endpoint not found: Check your base URL setting"


@dataclass(eq=False)
class RateLimitedError(ProviderError):
    error_code: ClassVar[str] = ErrorCode.RATE_LIMITED
    user_message: ClassVar[str] = "Rate limit reached. Pausing requests temporarily."


@dataclass(eq=False)
class ProviderNetworkError(ProviderError):
    error_code: ClassVar[str] = ErrorCode.NETWORK
    user_message: ClassVar[str] = "Network error: Check your internet connection and API URL"


@dataclass(eq=False)
class ProviderResponseError(ProviderError):
    """The provider answered, but not with something usable."""

    error_code: ClassVar[str] = ErrorCode.BAD_RESPONSE
    user_message: ClassVar[str] = "The AI service returned an unexpected response"


@dataclass(eq=False)
class ProviderNotConfiguredError(ProviderError):
    error_code: ClassVar[str] = ErrorCode.NOT_CONFIGURED
    user_message: ClassVar[str] = "No AI provider configured"


_RATE_LIMIT_RE = re.compile(r"\b429\b|rate[\s_-]?limit", re.IGNORECASE)
_AUTH_RE = re.compile(r"\b40[13]\b|unauthori[sz]ed|forbidden|invalid api key", re.IGNORECASE)
_NOT_FOUND_RE = re.compile(r"\b404\b|not found", re.IGNORECASE)
_NETWORK_RE = re.compile(r"fetch|connect|timed? ?out|network|unreachable", re.IGNORECASE)


def is_rate_limit_error(exc: BaseException) -> bool:
    """Return ``True`` when ``exc`` carries a rate-limit signal."""

    if isinstance(exc, RateLimitedError):
        return True
    if isinstance(exc, ProviderError):
        return exc.status_code == 429
    if isinstance(exc, openai.RateLimitError):
        return True
    return bool(_RATE_LIMIT_RE.search(str(exc)))


def classify_provider_error(exc: BaseException) -> ProviderError:
    """Translate any exception raised during a provider call into the taxonomy."""

    if isinstance(exc, ProviderError):
        return exc
    if isinstance(exc, openai.APIStatusError):
        return error_for_status(exc.status_code, str(exc))
    if isinstance(exc, (openai.APIConnectionError, httpx.TransportError)):
        return ProviderNetworkError(str(exc) or type(exc).__name__)
    if isinstance(exc, httpx.HTTPStatusError):
        return error_for_status(exc.response.status_code, str(exc))

    message = str(exc) or type(exc).__name__
    if _RATE_LIMIT_RE.search(message):
        return RateLimitedError(message)
    if _AUTH_RE.search(message):
        return AuthenticationFailedError(message)
    if _NOT_FOUND_RE.search(message):
        return EndpointNotFoundError(message)
    if _NETWORK_RE.search(message):
        return ProviderNetworkError(message)
    return ProviderError(message)


def error_for_status(status_code: int, message: str, **details: Any) -> ProviderError:
    """Map an HTTP status to the matching :class:`ProviderError` subclass."""

    if status_code == 429:
        return RateLimitedError(message, status_code=status_code, details=dict(details))
    if status_code in (401, 403):
        return AuthenticationFailedError(message, status_code=status_code, details=dict(details))
    if status_code == 404:
        return EndpointNotFoundError(message, status_code=status_code, details=dict(details))
    if status_code >= 500:
        return ProviderNetworkError(message, status_code=status_code, details=dict(details))
    return ProviderError(message, status_code=status_code, details=dict(details))


__all__ = [
    "AuthenticationFailedError",
    "EndpointNotFoundError",
    "ErrorCode",
    "ProviderError",
    "ProviderNetworkError",
    "ProviderNotConfiguredError",
    "ProviderResponseError",
    "RateLimitedError",
    "classify_provider_error",
    "error_for_status",
    "is_rate_limit_error",
]
