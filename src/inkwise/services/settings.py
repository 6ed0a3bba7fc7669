"""Settings dataclass and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

__all__ = [
    "Settings",
    "SettingsGetter",
    "SettingsStore",
    "SecretVault",
    "PROVIDER_NAMES",
    "coerce_setting_value",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".inkwise"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 2
_API_KEYS_FIELD = "api_key_ciphertexts"
_LEGACY_API_KEY_FIELD = "api_key"
PROVIDER_NAMES: tuple[str, ...] = ("zai", "openai", "straico")
_ENV_OVERRIDES: Mapping[str, str] = {
    "INKWISE_PROVIDER": "provider",
    "INKWISE_MODEL": "model",
    "INKWISE_BASE_URL": "base_url",
    "INKWISE_TEMPERATURE": "temperature",
    "INKWISE_REQUEST_TIMEOUT": "request_timeout",
    "INKWISE_DEBOUNCE_MS": "debounce_ms",
    "INKWISE_AUTOCOMPLETE_DEBOUNCE_MS": "autocomplete_debounce_ms",
    "INKWISE_RATE_LIMIT_BACKOFF_MS": "rate_limit_backoff_ms",
    "INKWISE_REAL_TIME": "real_time_enabled",
    "INKWISE_AUTOCOMPLETE": "autocomplete_enabled",
    "INKWISE_DEBUG_LOGGING": "debug_logging",
}
_API_KEY_ENV = "INKWISE_API_KEY"
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _default_api_keys() -> dict[str, str]:
    return {name: "" for name in PROVIDER_NAMES}


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions.

    Durations are milliseconds. An empty ``base_url`` means "use the selected
    provider's default endpoint".
    """

    provider: str = "zai"
    api_keys: dict[str, str] = field(default_factory=_default_api_keys)
    model: str = "GLM-4-32B-0414-128K"
    base_url: str = ""
    real_time_enabled: bool = True
    debounce_ms: int = 1_000
    rate_limit_backoff_ms: int = 60_000
    temperature: float = 0.1
    autocomplete_enabled: bool = True
    autocomplete_debounce_ms: int = 500
    autocomplete_max_tokens: int = 50
    autocomplete_min_context: int = 10
    autocomplete_lookback_chars: int = 300
    accept_guard_ms: int = 500
    request_timeout: float = 30.0
    max_retries: int = 2
    debug_logging: bool = False

    def current_api_key(self) -> str:
        return (self.api_keys or {}).get(self.provider, "") or ""

    def with_api_key(self, provider: str, api_key: str) -> "Settings":
        keys = dict(self.api_keys or {})
        keys[provider] = api_key
        return replace(self, api_keys=keys)


SettingsGetter = Callable[[], Settings]


class SecretVault:
    """Encrypts API keys with a symmetric Fernet key stored next to the settings file."""

    strategy = "fernet"

    def __init__(self, *, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_SETTINGS_DIR / "settings.key")
        self._fernet: Fernet | None = None

    @property
    def key_path(self) -> Path:
        return self._key_path

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        token = self._get_fernet().encrypt(secret.encode("utf-8"))
        return f"{self.strategy}:{token.decode('ascii')}"

    def decrypt(self, token: str | None) -> str:
        if not token:
            return ""
        prefix, _, payload = token.partition(":")
        if not payload:
            prefix, payload = self.strategy, token
        if prefix != self.strategy:
            raise ValueError(f"Unsupported secret backend {prefix!r}")
        try:
            return self._get_fernet().decrypt(payload.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Invalid Fernet token") from exc

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_or_create_key())
        return self._fernet

    def _load_or_create_key(self) -> bytes:
        path = self._key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(path)
        return key


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH
        self._vault = vault or SecretVault(key_path=self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, then apply CLI and environment overrides."""

        payload = self._read_payload()
        settings = Settings()
        needs_migration = False

        if payload:
            api_keys, migrated = self._decrypt_api_keys(
                payload.pop(_API_KEYS_FIELD, None),
                payload.pop(_LEGACY_API_KEY_FIELD, None),
                provider=str(payload.get("provider") or settings.provider),
            )
            needs_migration = migrated
            data = _filter_fields(payload)
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            merged_keys = _default_api_keys()
            merged_keys.update(api_keys)
            settings = replace(settings, api_keys=merged_keys)
            LOGGER.debug("Settings loaded from %s (provider=%s)", self._path, settings.provider)

        version_mismatch = bool(payload) and payload.get("version") != _SETTINGS_VERSION
        if needs_migration or version_mismatch:
            try:
                self.save(settings)
            except OSError as exc:
                LOGGER.warning("Failed to migrate settings payload: %s", exc)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")
        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with an atomic replace."""

        body = json.dumps(self._serialize(settings), indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _serialize(self, settings: Settings) -> Dict[str, Any]:
        data = asdict(settings)
        api_keys = data.pop("api_keys", {}) or {}
        data[_API_KEYS_FIELD] = {
            provider: self._vault.encrypt(key) for provider, key in api_keys.items() if key
        }
        data["version"] = _SETTINGS_VERSION
        data["secret_backend"] = self._vault.strategy
        return data

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        return payload if isinstance(payload, dict) else {}

    def _decrypt_api_keys(
        self,
        ciphertexts: Any,
        legacy_plaintext: Any,
        *,
        provider: str,
    ) -> tuple[dict[str, str], bool]:
        keys: dict[str, str] = {}
        if isinstance(ciphertexts, Mapping):
            for name, token in ciphertexts.items():
                try:
                    keys[str(name)] = self._vault.decrypt(token)
                except ValueError as exc:
                    LOGGER.warning("Unable to decrypt %s API key: %s", name, exc)
        migrated = False
        if isinstance(legacy_plaintext, str) and legacy_plaintext and not keys.get(provider):
            LOGGER.info("Migrating legacy single API key to the %s provider slot.", provider)
            keys[provider] = legacy_plaintext
            migrated = True
        return keys, migrated

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {item.name for item in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = coerce_setting_value(key, value)
        api_keys_override = filtered.get("api_keys")
        if isinstance(api_keys_override, Mapping):
            merged = dict(settings.api_keys or {})
            merged.update(api_keys_override)
            filtered["api_keys"] = merged
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = coerce_setting_value(field_name, value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not valid", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        api_key = os.environ.get(_API_KEY_ENV)
        if api_key:
            settings = settings.with_api_key(settings.provider, api_key)
        return settings


def coerce_setting_value(name: str, value: Any) -> Any:
    """Convert ``value`` (usually a string from the CLI or environment) to the field's type.

    Raises:
        ValueError: if the text cannot be converted.
    """

    if not isinstance(value, str):
        return value
    default = getattr(Settings(), name, None)
    if isinstance(default, bool):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"{name} expects a boolean, got {value!r}")
    if isinstance(default, int):
        return int(value, 10)
    if isinstance(default, float):
        return float(value)
    if isinstance(default, dict):
        parsed = json.loads(value)
        if not isinstance(parsed, dict):
            raise ValueError(f"{name} expects a JSON object")
        return parsed
    return value


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(Settings)} - {"api_keys"}
    return {key: value for key, value in payload.items() if key in allowed}


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"
