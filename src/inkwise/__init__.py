"""Debounced AI grammar checking and inline autocomplete for text editors."""

from .engine import AssistantEngine
from .services.settings import Settings, SettingsStore

__version__ = "0.3.0"

__all__ = ["AssistantEngine", "Settings", "SettingsStore", "__version__"]
