"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from inkwise.core.clock import ManualClock
from inkwise.core.context import EngineContext
from inkwise.core.events import Event
from inkwise.editor.text_buffer import TextBufferEditor
from inkwise.services.settings import Settings

from tests.helpers import FakeProvider


class SettingsBox:
    """Mutable holder so tests can change settings between scheduling decisions."""

    def __init__(self, settings: Settings) -> None:
        self.value = settings

    def __call__(self) -> Settings:
        return self.value

    def update(self, **changes: Any) -> None:
        for key, value in changes.items():
            setattr(self.value, key, value)


class Recorder:
    """Collects every event of the given types published on a bus."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    def of(self, event_type: type) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def settings_box() -> SettingsBox:
    return SettingsBox(Settings().with_api_key("zai", "sk-test-key"))


@pytest.fixture
def context(clock: ManualClock, settings_box: SettingsBox) -> EngineContext:
    return EngineContext(clock=clock, settings=settings_box)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def editor() -> TextBufferEditor:
    return TextBufferEditor("The quick brown ")


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("INKWISE_LOG_DIR", str(tmp_path / "logs"))
    for name in ("INKWISE_API_KEY", "INKWISE_PROVIDER", "INKWISE_MODEL", "INKWISE_DEBUG", "INKWISE_SETTINGS_PATH"):
        monkeypatch.delenv(name, raising=False)


def record(context: EngineContext, *event_types: type) -> Recorder:
    recorder = Recorder()
    for event_type in event_types:
        context.bus.subscribe(event_type, recorder)
    return recorder
