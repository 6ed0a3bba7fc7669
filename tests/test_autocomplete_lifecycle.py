"""Tests for the inline autocomplete lifecycle."""

from __future__ import annotations

import asyncio

import pytest

from inkwise.ai.errors import ProviderNetworkError, RateLimitedError
from inkwise.core.events import KeyPressed, NoticePosted, StatusMessage, SuggestionAvailable, SuggestionCleared
from inkwise.editor.text_buffer import TextBufferEditor
from inkwise.features.autocomplete import STATUS_FETCHING, STATUS_READY, AutocompleteLifecycle, AutocompleteState

from tests.conftest import record
from tests.helpers import FakeProvider


def _lifecycle(context, provider: FakeProvider | None) -> AutocompleteLifecycle:
    return AutocompleteLifecycle(context, lambda: provider)


async def _settle(context, clock, ms: float = 500) -> None:
    clock.advance(ms)
    await context.scheduler.drain()


class TestScheduling:
    """Debounce and gating before any provider call."""

    @pytest.mark.asyncio
    async def test_debounced_fetch_displays_suggestion(self, context, clock, editor) -> None:
        provider = FakeProvider(autocomplete=["brown fox jumps."])
        lifecycle = _lifecycle(context, provider)
        events = record(context, SuggestionAvailable, StatusMessage)

        assert lifecycle.schedule(editor, "Story") is True
        assert lifecycle.state is AutocompleteState.SCHEDULED
        await _settle(context, clock, 499)
        assert provider.count("autocomplete") == 0
        await _settle(context, clock, 1)

        suggestion = lifecycle.suggestion
        assert suggestion is not None
        assert suggestion.text == "fox jumps."
        assert suggestion.anchor_offset == len("The quick brown ")
        assert lifecycle.state is AutocompleteState.DISPLAYED
        assert [e.suggestion for e in events.of(SuggestionAvailable)] == [suggestion]
        assert [e.text for e in events.of(StatusMessage)] == [STATUS_FETCHING, "", STATUS_READY]

    @pytest.mark.asyncio
    async def test_burst_of_edits_makes_one_request(self, context, clock, editor) -> None:
        provider = FakeProvider(autocomplete=["fox."])
        lifecycle = _lifecycle(context, provider)

        for _ in range(4):
            lifecycle.schedule(editor)
            clock.advance(300)
        await _settle(context, clock, 200)

        assert provider.count("autocomplete") == 1

    @pytest.mark.asyncio
    async def test_mid_word_cursor_skips_request(self, context, clock) -> None:
        provider = FakeProvider(autocomplete=["fox."])
        lifecycle = _lifecycle(context, provider)

        lifecycle.schedule(TextBufferEditor("The quick bro"))
        await _settle(context, clock)

        assert provider.count("autocomplete") == 0
        assert lifecycle.state is AutocompleteState.IDLE

    @pytest.mark.asyncio
    async def test_short_context_skips_request(self, context, clock) -> None:
        provider = FakeProvider(autocomplete=["there."])
        lifecycle = _lifecycle(context, provider)

        lifecycle.schedule(TextBufferEditor("Hi "))
        await _settle(context, clock)

        assert provider.count("autocomplete") == 0

    @pytest.mark.asyncio
    async def test_context_is_limited_to_lookback_window(self, context, clock, settings_box) -> None:
        settings_box.update(autocomplete_lookback_chars=12)
        provider = FakeProvider(autocomplete=["end."])
        lifecycle = _lifecycle(context, provider)

        lifecycle.schedule(TextBufferEditor("A long opening phrase and then the tail "))
        await _settle(context, clock)

        assert provider.calls[0] == ("autocomplete", "en the tail ")

    def test_disabled_feature_never_schedules(self, context, clock, editor, settings_box) -> None:
        settings_box.update(autocomplete_enabled=False)
        lifecycle = _lifecycle(context, FakeProvider())

        assert lifecycle.schedule(editor) is False
        assert clock.pending() == 0

    @pytest.mark.asyncio
    async def test_missing_api_key_skips_request(self, context, clock, editor, settings_box) -> None:
        settings_box.value = settings_box.value.with_api_key("zai", "")
        provider = FakeProvider(autocomplete=["fox."])
        lifecycle = _lifecycle(context, provider)

        lifecycle.schedule(editor)
        await _settle(context, clock)

        assert provider.count("autocomplete") == 0

    @pytest.mark.asyncio
    async def test_missing_provider_skips_request(self, context, clock, editor) -> None:
        lifecycle = _lifecycle(context, None)

        lifecycle.schedule(editor)
        await _settle(context, clock)

        assert lifecycle.suggestion is None
        assert lifecycle.state is AutocompleteState.IDLE


class TestStaleness:
    """Results that arrive after the document moved on are dropped."""

    @pytest.mark.asyncio
    async def test_newer_edit_discards_in_flight_result(self, context, clock, editor) -> None:
        provider = FakeProvider(autocomplete=["fox jumps."])
        provider.gate = asyncio.Event()
        lifecycle = _lifecycle(context, provider)
        events = record(context, SuggestionAvailable)

        lifecycle.schedule(editor)
        clock.advance(500)
        await asyncio.sleep(0)
        assert lifecycle.state is AutocompleteState.FETCHING

        editor.insert_at_cursor("dog ")
        lifecycle.schedule(editor)
        provider.gate.set()
        await context.scheduler.drain()

        assert events.of(SuggestionAvailable) == []
        assert lifecycle.suggestion is None
        assert lifecycle.state is AutocompleteState.SCHEDULED

    @pytest.mark.asyncio
    async def test_cursor_move_discards_result(self, context, clock, editor) -> None:
        provider = FakeProvider(autocomplete=["fox jumps."])
        provider.gate = asyncio.Event()
        lifecycle = _lifecycle(context, provider)

        lifecycle.schedule(editor)
        clock.advance(500)
        await asyncio.sleep(0)
        editor.set_cursor_offset(3)
        provider.gate.set()
        await context.scheduler.drain()

        assert lifecycle.suggestion is None
        assert lifecycle.state is AutocompleteState.IDLE

    @pytest.mark.asyncio
    async def test_clear_cancels_pending_fetch(self, context, clock, editor) -> None:
        provider = FakeProvider(autocomplete=["fox."])
        lifecycle = _lifecycle(context, provider)

        lifecycle.schedule(editor)
        lifecycle.clear()
        await _settle(context, clock)

        assert provider.count("autocomplete") == 0

    @pytest.mark.asyncio
    async def test_duplicate_only_reply_shows_nothing(self, context, clock, editor) -> None:
        provider = FakeProvider(autocomplete=["brown"])
        lifecycle = _lifecycle(context, provider)

        lifecycle.schedule(editor)
        await _settle(context, clock)

        assert lifecycle.suggestion is None


class TestFailures:
    @pytest.mark.asyncio
    async def test_rate_limit_reply_trips_guard(self, context, clock, editor) -> None:
        provider = FakeProvider(autocomplete=[RateLimitedError("slow down", status_code=429)])
        lifecycle = _lifecycle(context, provider)
        events = record(context, StatusMessage)

        lifecycle.schedule(editor)
        await _settle(context, clock)

        assert context.guard.is_limited() is True
        assert context.guard.remaining_ms() == 60_000
        assert [e.text for e in events.of(StatusMessage)] == [STATUS_FETCHING, ""]

    @pytest.mark.asyncio
    async def test_limited_guard_blocks_requests(self, context, clock, editor) -> None:
        provider = FakeProvider(autocomplete=["fox."])
        lifecycle = _lifecycle(context, provider)
        context.guard.trip(10_000)

        lifecycle.schedule(editor)
        await _settle(context, clock)

        assert provider.count("autocomplete") == 0

    @pytest.mark.asyncio
    async def test_other_errors_are_silent(self, context, clock, editor) -> None:
        provider = FakeProvider(autocomplete=[ProviderNetworkError("offline")])
        lifecycle = _lifecycle(context, provider)
        notices = record(context, NoticePosted)

        lifecycle.schedule(editor)
        await _settle(context, clock)

        assert notices.events == []
        assert context.guard.is_limited() is False
        assert lifecycle.state is AutocompleteState.IDLE


class TestAcceptance:
    """Keyboard handling while a suggestion is displayed."""

    async def _displayed(self, context, clock, editor, reply: str = "brown fox jumps.") -> AutocompleteLifecycle:
        lifecycle = _lifecycle(context, FakeProvider(autocomplete=[reply]))
        lifecycle.schedule(editor)
        await _settle(context, clock)
        assert lifecycle.has_suggestion()
        return lifecycle

    @pytest.mark.asyncio
    async def test_arrow_right_inserts_suggestion(self, context, clock, editor) -> None:
        lifecycle = await self._displayed(context, clock, editor)
        events = record(context, SuggestionCleared, NoticePosted)
        key = KeyPressed("ArrowRight")

        assert lifecycle.handle_key(key) is True

        assert key.handled is True
        assert editor.get_value() == "The quick brown fox jumps."
        assert editor.cursor_offset() == len(editor.get_value())
        assert [e.reason for e in events.of(SuggestionCleared)] == ["accepted"]
        assert [e.message for e in events.of(NoticePosted)] == ["Suggestion accepted"]
        assert lifecycle.state is AutocompleteState.IDLE

    @pytest.mark.asyncio
    async def test_own_insertion_does_not_retrigger(self, context, clock, editor, settings_box) -> None:
        lifecycle = await self._displayed(context, clock, editor)
        lifecycle.accept()

        assert lifecycle.is_applying_result is True
        assert lifecycle.schedule(editor) is False

        clock.advance(settings_box.value.accept_guard_ms)
        assert lifecycle.is_applying_result is False
        assert lifecycle.schedule(editor) is True

    @pytest.mark.asyncio
    async def test_accept_refused_when_cursor_moved(self, context, clock, editor) -> None:
        lifecycle = await self._displayed(context, clock, editor)
        events = record(context, SuggestionCleared)
        editor.set_cursor_offset(4)

        assert lifecycle.accept() is False

        assert editor.get_value() == "The quick brown "
        assert [e.reason for e in events.of(SuggestionCleared)] == ["stale"]

    @pytest.mark.asyncio
    async def test_accept_requires_end_of_line(self, context, clock) -> None:
        editor = TextBufferEditor("The quick brown \nnext line", cursor=16)
        lifecycle = await self._displayed(context, clock, editor)

        assert lifecycle.accept() is True
        assert editor.get_value() == "The quick brown fox jumps.\nnext line"

        clock.advance(500)
        editor = TextBufferEditor("The quick brown  tail", cursor=16)
        lifecycle = await self._displayed(context, clock, editor)
        assert lifecycle.accept() is False

    @pytest.mark.asyncio
    async def test_escape_dismisses(self, context, clock, editor) -> None:
        lifecycle = await self._displayed(context, clock, editor)
        events = record(context, SuggestionCleared)
        key = KeyPressed("Escape")

        assert lifecycle.handle_key(key) is True

        assert key.handled is True
        assert lifecycle.suggestion is None
        assert [e.reason for e in events.of(SuggestionCleared)] == ["dismissed"]

    @pytest.mark.asyncio
    async def test_typing_dismisses_without_consuming(self, context, clock, editor) -> None:
        lifecycle = await self._displayed(context, clock, editor)
        key = KeyPressed("x")

        assert lifecycle.handle_key(key) is False
        assert key.handled is False
        assert lifecycle.suggestion is None

    @pytest.mark.asyncio
    async def test_modified_arrow_is_ignored(self, context, clock, editor) -> None:
        lifecycle = await self._displayed(context, clock, editor)

        assert lifecycle.handle_key(KeyPressed("ArrowRight", ctrl=True)) is False
        assert lifecycle.has_suggestion()

    def test_keys_without_suggestion_pass_through(self, context) -> None:
        lifecycle = _lifecycle(context, FakeProvider())
        assert lifecycle.handle_key(KeyPressed("ArrowRight")) is False
        assert lifecycle.accept() is False
        assert lifecycle.dismiss() is False


class TestManualTrigger:
    @pytest.mark.asyncio
    async def test_trigger_now_skips_debounce(self, context, editor) -> None:
        provider = FakeProvider(autocomplete=["Fox jumps."])
        lifecycle = _lifecycle(context, provider)
        notices = record(context, NoticePosted)

        suggestion = await lifecycle.trigger_now(editor)

        assert suggestion is not None
        assert suggestion.text == "fox jumps."
        assert [e.message for e in notices.events] == ["Getting suggestion..."]

    @pytest.mark.asyncio
    async def test_trigger_now_cancels_pending_timer(self, context, clock, editor) -> None:
        provider = FakeProvider(autocomplete=["fox.", "cat."])
        lifecycle = _lifecycle(context, provider)

        lifecycle.schedule(editor)
        await lifecycle.trigger_now(editor)
        await _settle(context, clock)

        assert provider.count("autocomplete") == 1

    @pytest.mark.asyncio
    async def test_trigger_now_when_disabled(self, context, editor, settings_box) -> None:
        settings_box.update(autocomplete_enabled=False)
        provider = FakeProvider(autocomplete=["fox."])
        lifecycle = _lifecycle(context, provider)
        notices = record(context, NoticePosted)

        assert await lifecycle.trigger_now(editor) is None
        assert [e.message for e in notices.events] == ["Autocomplete is disabled. Enable it in settings."]
        assert provider.count("autocomplete") == 0

    @pytest.mark.asyncio
    async def test_sentence_start_capitalizes(self, context) -> None:
        provider = FakeProvider(autocomplete=["then we left."])
        lifecycle = _lifecycle(context, provider)

        suggestion = await lifecycle.trigger_now(TextBufferEditor("It was late. "))

        assert suggestion is not None
        assert suggestion.text == "Then we left."
