"""AI provider abstraction and the built-in provider presets."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Protocol, Sequence, runtime_checkable

from . import prompts
from .client import ClientSettings, CompletionBackend, OpenAIChatBackend, StraicoBackend
from .errors import ProviderError, ProviderNotConfiguredError, is_rate_limit_error
from .types import GrammarSuggestion, ModelInfo, coerce_grammar_suggestions
from ..text.reconciler import parse_suggestion_array

LOGGER = logging.getLogger(__name__)

BackendFactory = Callable[[ClientSettings], CompletionBackend]


@runtime_checkable
class AIProvider(Protocol):
    """Operations the lifecycles and commands need from a language-model vendor."""

    name: str

    async def get_autocomplete_suggestion(
        self,
        context_before: str,
        temperature: float,
        max_tokens: int,
        title: str | None = None,
    ) -> str:
        ...

    async def get_grammar_suggestions(
        self,
        text: str,
        temperature: float,
        title: str | None = None,
    ) -> List[GrammarSuggestion]:
        ...

    async def call_api(
        self,
        text: str,
        instruction: str,
        temperature: float,
        max_tokens: int = prompts.CORRECTION_MAX_TOKENS,
    ) -> str:
        ...

    async def test_connection(self, api_key: str, model: str) -> bool:
        ...

    async def list_models(self) -> List[ModelInfo]:
        ...


@dataclass(frozen=True, slots=True)
class ProviderPreset:
    """Static description of a vendor: endpoints, defaults and fallback models."""

    name: str
    display_name: str
    default_base_url: str
    default_model: str
    backend: str = "openai"
    default_temperature: float = 0.1
    max_tokens_default: int = 2_000
    max_tokens_max: int = 4_000
    fallback_models: tuple[ModelInfo, ...] = ()
    model_id_filter: Callable[[str], bool] | None = field(default=None, compare=False)


def _is_openai_chat_model(model_id: str) -> bool:
    return "gpt" in model_id and "fine-tune" not in model_id and ":" not in model_id


ZAI_PRESET = ProviderPreset(
    name="zai",
    display_name="Z.AI",
    default_base_url="https://api.z.ai/api/paas/v4",
    default_model="GLM-4-32B-0414-128K",
    max_tokens_max=8_000,
    fallback_models=(ModelInfo("GLM-4-32B-0414-128K", "GLM-4-32B-0414-128K"),),
)

OPENAI_PRESET = ProviderPreset(
    name="openai",
    display_name="OpenAI",
    default_base_url="https://api.openai.com/v1",
    default_model="gpt-4",
    fallback_models=(
        ModelInfo("gpt-4o", "GPT-4o"),
        ModelInfo("gpt-4o-mini", "GPT-4o Mini"),
        ModelInfo("gpt-4-turbo", "GPT-4 Turbo"),
        ModelInfo("gpt-3.5-turbo", "GPT-3.5 Turbo"),
    ),
    model_id_filter=_is_openai_chat_model,
)

STRAICO_PRESET = ProviderPreset(
    name="straico",
    display_name="Straico",
    default_base_url="https://api.straico.com/v1/prompt/completion",
    default_model="openai/gpt-4o-mini",
    backend="straico",
    fallback_models=(
        ModelInfo("openai/gpt-4o-mini", "GPT-4o Mini"),
        ModelInfo("openai/gpt-4o", "GPT-4o"),
        ModelInfo("anthropic/claude-3-haiku", "Claude 3 Haiku"),
    ),
)

BUILTIN_PRESETS: tuple[ProviderPreset, ...] = (ZAI_PRESET, OPENAI_PRESET, STRAICO_PRESET)


def default_backend_factory(settings: ClientSettings, kind: str) -> CompletionBackend:
    if kind == "straico":
        return StraicoBackend(settings)
    return OpenAIChatBackend(settings)


class ChatProvider:
    """:class:`AIProvider` built on a single system+user completion backend."""

    def __init__(
        self,
        preset: ProviderPreset,
        *,
        api_key: str = "",
        model: str = "",
        base_url: str = "",
        request_timeout: float | None = 30.0,
        max_retries: int = 2,
        debug_logging: bool = False,
        backend_factory: BackendFactory | None = None,
    ) -> None:
        self.preset = preset
        self.name = preset.name
        self._settings = ClientSettings(
            base_url=base_url or preset.default_base_url,
            api_key=api_key,
            model=model or preset.default_model,
            request_timeout=request_timeout,
            max_retries=max_retries,
            debug_logging=debug_logging,
        )
        self._backend_factory = backend_factory or (
            lambda settings: default_backend_factory(settings, preset.backend)
        )
        self._backend: CompletionBackend | None = None

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def display_name(self) -> str:
        return self.preset.display_name

    async def get_autocomplete_suggestion(
        self,
        context_before: str,
        temperature: float,
        max_tokens: int,
        title: str | None = None,
    ) -> str:
        raw = await self._complete(
            prompts.autocomplete_system_prompt(title),
            prompts.autocomplete_user_prompt(context_before),
            temperature=temperature,
            max_tokens=max_tokens,
        )
        suggestion = raw.strip()
        # Completion follows a separator already present in the document.
        if context_before.endswith((" ", "\n")):
            suggestion = suggestion.lstrip()
        return suggestion

    async def get_grammar_suggestions(
        self,
        text: str,
        temperature: float,
        title: str | None = None,
    ) -> List[GrammarSuggestion]:
        content = await self._complete(
            prompts.grammar_check_system_prompt(title),
            prompts.grammar_check_user_prompt(text),
            temperature=temperature,
            max_tokens=prompts.GRAMMAR_CHECK_MAX_TOKENS,
        )
        return coerce_grammar_suggestions(parse_suggestion_array(content))

    async def call_api(
        self,
        text: str,
        instruction: str,
        temperature: float,
        max_tokens: int = prompts.CORRECTION_MAX_TOKENS,
    ) -> str:
        return await self._complete(instruction, text, temperature=temperature, max_tokens=max_tokens)

    async def test_connection(self, api_key: str, model: str) -> bool:
        """Send a tiny prompt with the given credentials; rate limits propagate."""

        probe = self._backend_factory(replace(self._settings, api_key=api_key, model=model or self._settings.model))
        try:
            reply = await probe.complete(
                prompts.CONNECTION_TEST_SYSTEM,
                prompts.CONNECTION_TEST_USER,
                temperature=self.preset.default_temperature,
                max_tokens=prompts.CONNECTION_TEST_MAX_TOKENS,
            )
        except ProviderError as exc:
            if is_rate_limit_error(exc):
                raise
            LOGGER.info("%s connection test failed: %s", self.display_name, exc)
            return False
        finally:
            await probe.aclose()
        return bool(reply)

    async def list_models(self) -> List[ModelInfo]:
        """Return the vendor's chat models, or the preset's fallback list on failure."""

        try:
            model_ids = await self._get_backend().list_models()
        except ProviderError as exc:
            LOGGER.info("Falling back to built-in %s model list: %s", self.display_name, exc)
            return list(self.preset.fallback_models)
        id_filter = self.preset.model_id_filter
        if id_filter is not None:
            model_ids = [model_id for model_id in model_ids if id_filter(model_id)]
        if not model_ids:
            return list(self.preset.fallback_models)
        return [ModelInfo(model_id, model_id) for model_id in sorted(set(model_ids))]

    async def aclose(self) -> None:
        if self._backend is not None:
            await self._backend.aclose()
            self._backend = None

    async def _complete(self, system_prompt: str, user_message: str, *, temperature: float, max_tokens: int) -> str:
        if not self._settings.api_key:
            raise ProviderNotConfiguredError(f"{self.display_name} API key is not set")
        return await self._get_backend().complete(
            system_prompt,
            user_message,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    def _get_backend(self) -> CompletionBackend:
        if self._backend is None:
            self._backend = self._backend_factory(self._settings)
        return self._backend


ProviderConstructor = Callable[..., AIProvider]


class ProviderFactory:
    """Registry of provider constructors keyed by provider name."""

    def __init__(self, presets: Sequence[ProviderPreset] = BUILTIN_PRESETS) -> None:
        self._presets: Dict[str, ProviderPreset] = {}
        self._constructors: Dict[str, ProviderConstructor] = {}
        for preset in presets:
            self.register_preset(preset)

    def register_preset(self, preset: ProviderPreset) -> None:
        self._presets[preset.name] = preset
        self._constructors[preset.name] = lambda **config: ChatProvider(preset, **config)

    def register_provider(
        self,
        name: str,
        constructor: ProviderConstructor,
        *,
        preset: ProviderPreset | None = None,
    ) -> None:
        """Add (or replace) a provider; ``constructor`` receives the same keywords as :class:`ChatProvider`."""

        self._constructors[name] = constructor
        if preset is not None:
            self._presets[name] = preset

    def available_providers(self) -> List[str]:
        return list(self._constructors)

    def preset(self, name: str) -> ProviderPreset | None:
        return self._presets.get(name)

    def create(self, name: str, **config: object) -> AIProvider | None:
        constructor = self._constructors.get(name)
        if constructor is None:
            LOGGER.warning("Unknown AI provider %r", name)
            return None
        return constructor(**config)


__all__ = [
    "AIProvider",
    "BUILTIN_PRESETS",
    "ChatProvider",
    "OPENAI_PRESET",
    "ProviderFactory",
    "ProviderPreset",
    "STRAICO_PRESET",
    "ZAI_PRESET",
    "default_backend_factory",
]
