"""
Tests for kernel domain primitives.

Covers:
- DeterministicClock
- Workflow / Transition validation
- Decimal rounding helpers
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from windpark_kernel.db.types import round_money, round_percent, to_decimal
from windpark_kernel.domain.clock import DeterministicClock
from windpark_kernel.domain.workflow import Transition, Workflow


class TestDeterministicClock:
    """Tests for the test clock."""

    def test_default_time(self):
        clock = DeterministicClock()
        assert clock.now() == datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)
        assert clock.today() == date(2025, 1, 15)

    def test_advance_and_tick(self):
        clock = DeterministicClock()
        start = clock.now()
        clock.advance(59)
        assert clock.tick() == start + timedelta(seconds=60)

    def test_set_time_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(3600)
        clock.set_time(datetime(2024, 12, 31, 23, 59, tzinfo=timezone.utc))
        assert clock.today() == date(2024, 12, 31)

    def test_now_utc_converts(self):
        cet = timezone(timedelta(hours=1))
        clock = DeterministicClock(datetime(2025, 1, 1, 0, 30, tzinfo=cet))
        assert clock.now_utc().tzinfo == timezone.utc
        assert clock.today() == date(2024, 12, 31)


class TestWorkflow:
    """Tests for workflow definitions."""

    def _workflow(self) -> Workflow:
        return Workflow(
            name="demo",
            description="demo",
            initial_state="A",
            states=("A", "B", "C"),
            transitions=(
                Transition("A", "B", action="go"),
                Transition("C", "B", action="go"),
                Transition("B", "C", action="finish"),
            ),
        )

    def test_find_transition(self):
        assert self._workflow().find_transition("A", "go").to_state == "B"

    def test_find_transition_missing(self):
        assert self._workflow().find_transition("B", "go") is None

    def test_source_states_in_order(self):
        assert self._workflow().source_states("go") == ("A", "C")

    def test_unknown_initial_state_rejected(self):
        with pytest.raises(ValueError):
            Workflow(
                name="bad", description="", initial_state="X",
                states=("A",), transitions=(),
            )

    def test_transition_to_unknown_state_rejected(self):
        with pytest.raises(ValueError):
            Workflow(
                name="bad", description="", initial_state="A",
                states=("A",), transitions=(Transition("A", "Z", action="go"),),
            )


class TestRounding:
    """Tests for money and percent rounding."""

    def test_round_money_half_up(self):
        assert round_money(Decimal("2.345")) == Decimal("2.35")
        assert round_money(Decimal("-2.345")) == Decimal("-2.35")

    def test_round_percent_four_places(self):
        assert round_percent(Decimal("66.666666")) == Decimal("66.6667")

    def test_to_decimal(self):
        assert to_decimal(None) == Decimal("0")
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal("12.50") == Decimal("12.50")
        assert to_decimal(7) == Decimal("7")
