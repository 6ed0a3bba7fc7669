"""Tests for the shared rate-limit guard."""

from __future__ import annotations

from inkwise.core.clock import ManualClock
from inkwise.core.rate_limit import RateLimitGuard, RateLimitState


class TestRateLimitGuard:
    def test_starts_normal(self) -> None:
        guard = RateLimitGuard(ManualClock())

        assert guard.is_limited() is False
        assert guard.remaining_ms() == 0.0
        assert guard.state == RateLimitState()

    def test_trip_limits_until_backoff_elapses(self) -> None:
        clock = ManualClock()
        guard = RateLimitGuard(clock)

        state = guard.trip(60_000)

        assert state.limited is True
        assert state.cooldown_until == 60_000
        clock.advance(59_999)
        assert guard.is_limited() is True
        assert guard.remaining_ms() == 1.0
        clock.advance(1)
        assert guard.is_limited() is False

    def test_retrip_replaces_deadline(self) -> None:
        clock = ManualClock()
        guard = RateLimitGuard(clock)
        guard.trip(1_000)
        clock.advance(800)

        guard.trip(1_000)
        clock.advance(500)

        assert guard.is_limited() is True
        assert guard.state.cooldown_until == 1_800
        assert clock.pending() == 1
        clock.advance(500)
        assert guard.is_limited() is False

    def test_listeners_see_enter_and_exit(self) -> None:
        clock = ManualClock()
        seen: list[bool] = []
        guard = RateLimitGuard(clock, on_change=lambda state: seen.append(state.limited))

        guard.trip(100)
        clock.advance(100)

        assert seen == [True, False]

    def test_failing_listener_does_not_block_others(self) -> None:
        guard = RateLimitGuard(ManualClock())
        seen: list[bool] = []

        def broken(_state: RateLimitState) -> None:
            raise RuntimeError("boom")

        guard.add_listener(broken)
        guard.add_listener(lambda state: seen.append(state.limited))
        guard.trip(10)

        assert seen == [True]

    def test_reset_drops_timer(self) -> None:
        clock = ManualClock()
        seen: list[bool] = []
        guard = RateLimitGuard(clock, on_change=lambda state: seen.append(state.limited))
        guard.trip(100)

        guard.reset()

        assert guard.is_limited() is False
        assert clock.pending() == 0
        assert seen == [True, False]
        guard.reset()
        assert seen == [True, False]
