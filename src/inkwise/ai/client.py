"""Chat-completion backends used by the providers.

Two wire formats are supported: OpenAI-compatible ``/chat/completions``
endpoints through :class:`openai.AsyncOpenAI`, and Straico's prompt-completion
API through :class:`httpx.AsyncClient`. Both raise
:class:`~inkwise.ai.errors.ProviderError` subclasses on failure.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Protocol

import httpx
from openai import APIConnectionError, AsyncOpenAI, OpenAIError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .errors import ProviderResponseError, classify_provider_error, error_for_status

LOGGER = logging.getLogger(__name__)
_CHAT_COMPLETIONS_SUFFIX = "/chat/completions"
_TRANSIENT_ERRORS = (APIConnectionError, httpx.TransportError)


@dataclass(slots=True)
class ClientSettings:
    """Connection parameters for a completion backend."""

    base_url: str
    api_key: str
    model: str
    request_timeout: float | None = 30.0
    max_retries: int = 2
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 4.0
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False


class CompletionBackend(Protocol):
    """Single-shot system+user completion returning plain text."""

    settings: ClientSettings

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        *,
        temperature: float,
        max_tokens: int,
    ) -> str:
        ...

    async def list_models(self) -> List[str]:
        ...

    async def aclose(self) -> None:
        ...


class _RetryingBackend:
    """Shared retry policy: transport failures only, never HTTP status errors."""

    settings: ClientSettings

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self.settings.max_retries)),
            wait=wait_exponential(
                multiplier=self.settings.retry_min_seconds,
                max=self.settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        )

    def _log_request(self, payload: Mapping[str, Any]) -> None:
        if not self.settings.debug_logging:
            return
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("Completion payload (unserializable): %s", payload)
        else:
            LOGGER.debug("Completion payload:\n%s", serialized)


class OpenAIChatBackend(_RetryingBackend):
    """Backend for any endpoint that speaks the OpenAI chat-completions protocol."""

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self.settings = settings
        self._client = client
        self._models_cache: List[str] | None = None
        self._models_lock = asyncio.Lock()

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        *,
        temperature: float,
        max_tokens: int,
    ) -> str:
        payload: Dict[str, Any] = {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        self._log_request(payload)
        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await self._get_client().chat.completions.create(**payload)
        except OpenAIError as exc:
            raise classify_provider_error(exc) from exc
        return _first_choice_content(response)

    async def list_models(self) -> List[str]:
        if self._models_cache is not None:
            return list(self._models_cache)
        async with self._models_lock:
            if self._models_cache is None:
                try:
                    response = await self._get_client().models.list()
                except OpenAIError as exc:
                    raise classify_provider_error(exc) from exc
                self._models_cache = [item.id for item in response.data if getattr(item, "id", None)]
        return list(self._models_cache)

    async def aclose(self) -> None:
        if self._client is None:
            return
        close = getattr(self._client, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            headers = dict(self.settings.default_headers) if self.settings.default_headers else None
            self._client = AsyncOpenAI(
                api_key=self.settings.api_key,
                base_url=normalize_openai_base_url(self.settings.base_url),
                timeout=self.settings.request_timeout,
                max_retries=0,
                default_headers=headers,
            )
        return self._client


class StraicoBackend(_RetryingBackend):
    """Backend for Straico's multi-model prompt-completion endpoint."""

    models_url = "https://api.straico.com/v2/models"

    def __init__(self, settings: ClientSettings, *, http_client: httpx.AsyncClient | None = None) -> None:
        self.settings = settings
        self._http = http_client
        self._owns_http = http_client is None

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        *,
        temperature: float,
        max_tokens: int,
    ) -> str:
        if not self.settings.model:
            raise ProviderResponseError("No model selected. Please select a model in the settings.")
        payload = {
            "models": [self.settings.model],
            "message": f"{system_prompt}\n\n{user_message}",
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        self._log_request(payload)
        data = await self._request("POST", self.settings.base_url, json=payload)
        return _extract_straico_content(data)

    async def list_models(self) -> List[str]:
        data = await self._request("GET", self.models_url)
        models = data.get("data") or []
        return [
            str(item["id"])
            for item in models
            if isinstance(item, Mapping) and item.get("id") and item.get("model_type") == "chat"
        ]

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.settings.api_key}"}
        if self.settings.default_headers:
            headers.update(self.settings.default_headers)
        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await self._get_http().request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise classify_provider_error(exc) from exc
        if response.status_code >= 400:
            body = response.text[:500]
            raise error_for_status(
                response.status_code,
                f"HTTP error! status: {response.status_code}, message: {body}",
                provider="straico",
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderResponseError("Straico returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise ProviderResponseError("Straico returned an unexpected payload")
        return data

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.settings.request_timeout)
        return self._http


def normalize_openai_base_url(url: str) -> str:
    """Accept either an API root or a full ``.../chat/completions`` URL."""

    cleaned = (url or "").strip().rstrip("/")
    if cleaned.endswith(_CHAT_COMPLETIONS_SUFFIX):
        cleaned = cleaned[: -len(_CHAT_COMPLETIONS_SUFFIX)]
    return cleaned


def _first_choice_content(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None) or ""
    return content.strip() if isinstance(content, str) else ""


def _extract_straico_content(data: Mapping[str, Any]) -> str:
    completions = (data.get("data") or {}).get("completions")
    if isinstance(completions, Mapping) and completions:
        first = next(iter(completions.values())) or {}
        choices = ((first.get("completion") or {}).get("choices")) or []
        if choices:
            message = choices[0].get("message") or {}
            return str(message.get("content") or message.get("reasoning") or "").strip()
        return ""
    choices = data.get("choices") or []
    if choices:
        return str((choices[0].get("message") or {}).get("content") or "").strip()
    return ""


__all__ = [
    "ClientSettings",
    "CompletionBackend",
    "OpenAIChatBackend",
    "StraicoBackend",
    "normalize_openai_base_url",
]
