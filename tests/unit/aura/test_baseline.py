"""
Tests for the resident baseline model in `aura/services/baseline.py`.

Covers:
- Sleep window membership, including windows that wrap past midnight
- Deviation math and the variance epsilon
- Mobility sign flip so positive deviation always means more risk
- Out-of-range signals clamped before deviations are computed
"""

from __future__ import annotations

import math

import pytest
from hypothesis import given
from hypothesis import strategies as st

from aura.domain.models import CurrentState, ResidentBaseline
from aura.services.baseline import (
    DEFAULT_BASELINE,
    VARIANCE_EPSILON,
    compute_deviation,
    compute_deviations,
    default_state,
    is_night_hour,
)


class TestNightHour:
    """Sleep window checks against the default 22:00-06:00 window."""

    @pytest.mark.parametrize("hour", [22, 22.5, 23, 0, 3, 5.99])
    def test_hours_inside_wrapping_window_are_night(self, hour: float) -> None:
        assert is_night_hour(hour, DEFAULT_BASELINE) is True

    @pytest.mark.parametrize("hour", [6, 9, 14, 21.99])
    def test_hours_outside_wrapping_window_are_day(self, hour: float) -> None:
        assert is_night_hour(hour, DEFAULT_BASELINE) is False

    def test_hour_24_wraps_to_midnight(self) -> None:
        assert is_night_hour(24, DEFAULT_BASELINE) is True

    def test_negative_hours_wrap_into_day(self) -> None:
        # -1 is 23:00
        assert is_night_hour(-1, DEFAULT_BASELINE) is True
        # -12 is 12:00
        assert is_night_hour(-12, DEFAULT_BASELINE) is False

    def test_non_wrapping_window(self) -> None:
        baseline = ResidentBaseline(sleep_start=1, sleep_end=7)

        assert is_night_hour(1, baseline) is True
        assert is_night_hour(6.5, baseline) is True
        assert is_night_hour(7, baseline) is False
        assert is_night_hour(23, baseline) is False

    @given(hour=st.integers(min_value=-1000, max_value=1000))
    def test_night_check_is_periodic(self, hour: int) -> None:
        """Property-based test: shifting by whole days never changes the answer."""
        assert is_night_hour(hour, DEFAULT_BASELINE) == is_night_hour(hour + 24, DEFAULT_BASELINE)


class TestDeviation:
    """Deviation from a personal mean."""

    def test_deviation_at_mean_is_zero(self) -> None:
        assert compute_deviation(70, 70, 100) == 0

    def test_deviation_uses_variance_epsilon(self) -> None:
        assert compute_deviation(35, 25, 64) == pytest.approx(10 / math.sqrt(64 + VARIANCE_EPSILON))

    def test_zero_variance_does_not_divide_by_zero(self) -> None:
        assert compute_deviation(30, 20, 0) == pytest.approx(10.0)

    def test_negative_variance_treated_as_zero(self) -> None:
        assert compute_deviation(30, 20, -50) == pytest.approx(10.0)


class TestComputeDeviations:
    """Deviations for a full state snapshot."""

    def test_default_state_has_no_deviation(self) -> None:
        deviations = compute_deviations(DEFAULT_BASELINE, default_state())

        assert deviations.mobility == 0
        assert deviations.restlessness == 0
        assert deviations.speech == 0
        assert deviations.social == 0

    def test_low_mobility_is_positive_deviation(self) -> None:
        deviations = compute_deviations(DEFAULT_BASELINE, CurrentState(mobility=10))

        assert deviations.mobility == pytest.approx(60 / math.sqrt(101))

    def test_high_mobility_is_negative_deviation(self) -> None:
        deviations = compute_deviations(DEFAULT_BASELINE, CurrentState(mobility=90))

        assert deviations.mobility < 0

    def test_out_of_range_signals_are_clamped_first(self) -> None:
        wild = compute_deviations(DEFAULT_BASELINE, CurrentState(restlessness=250, mobility=-40))
        bounded = compute_deviations(DEFAULT_BASELINE, CurrentState(restlessness=100, mobility=0))

        assert wild == bounded

    def test_caller_state_is_not_mutated(self) -> None:
        state = CurrentState(restlessness=250)

        compute_deviations(DEFAULT_BASELINE, state)

        assert state.restlessness == 250
