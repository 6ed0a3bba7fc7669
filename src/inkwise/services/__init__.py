"""Persistence and configuration services."""

from .settings import SecretVault, Settings, SettingsGetter, SettingsStore, redact_secret

__all__ = ["SecretVault", "Settings", "SettingsGetter", "SettingsStore", "redact_secret"]
