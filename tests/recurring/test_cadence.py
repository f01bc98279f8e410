"""Tests for cadence inference and next-due arithmetic."""

from datetime import date, timedelta

import pytest

from billwatch.models import Cadence
from billwatch.services.cadence import bump_next_due, cadence_anchor, infer_cadence


class TestInferCadence:
    @pytest.mark.parametrize(
        ("intervals", "expected"),
        [
            ([7, 7, 7], Cadence.WEEKLY),
            ([6, 9], Cadence.WEEKLY),
            ([14, 14], Cadence.BIWEEKLY),
            ([15, 16], Cadence.BIWEEKLY),  # overlapping band, biweekly wins
            ([31, 28, 31], Cadence.MONTHLY),
            ([91, 92], Cadence.QUARTERLY),
            ([365], Cadence.YEARLY),
            ([45, 45], Cadence.UNKNOWN),
            ([2, 3], Cadence.UNKNOWN),
        ],
    )
    def test_bands(self, intervals, expected):
        assert infer_cadence(intervals) == expected

    def test_empty_is_unknown(self):
        assert infer_cadence([]) == Cadence.UNKNOWN

    def test_semimonthly_never_inferred(self):
        """GIVEN: Every mean inside the semimonthly band
        WHEN: Inferring
        THEN: Biweekly is returned because it is evaluated first"""
        for gap in range(13, 18):
            assert infer_cadence([gap]) == Cadence.BIWEEKLY

    def test_deterministic(self):
        assert infer_cadence([30, 31, 29]) == infer_cadence([30, 31, 29])


class TestBumpNextDue:
    def test_weekly_and_biweekly(self):
        assert bump_next_due(date(2024, 3, 1), Cadence.WEEKLY) == date(2024, 3, 8)
        assert bump_next_due(date(2024, 3, 1), Cadence.BIWEEKLY) == date(2024, 3, 15)

    def test_semimonthly(self):
        assert bump_next_due(date(2024, 3, 3), Cadence.SEMIMONTHLY) == date(2024, 3, 15)
        assert bump_next_due(date(2024, 3, 15), Cadence.SEMIMONTHLY) == date(2024, 4, 1)
        assert bump_next_due(date(2024, 12, 20), Cadence.SEMIMONTHLY) == date(2025, 1, 1)

    def test_monthly_clamps_to_28(self):
        assert bump_next_due(date(2024, 1, 31), Cadence.MONTHLY) == date(2024, 2, 28)
        assert bump_next_due(date(2024, 5, 30), Cadence.MONTHLY) == date(2024, 6, 28)

    def test_monthly_uses_day_of_month(self):
        assert bump_next_due(date(2024, 1, 3), Cadence.MONTHLY, day_of_month=10) == date(2024, 2, 10)

    def test_unknown_behaves_as_monthly(self):
        assert bump_next_due(date(2024, 11, 12), Cadence.UNKNOWN) == date(2024, 12, 12)

    def test_quarterly_and_yearly_clamp_to_month_length(self):
        assert bump_next_due(date(2024, 11, 30), Cadence.QUARTERLY) == date(2025, 2, 28)
        assert bump_next_due(date(2024, 2, 29), Cadence.YEARLY) == date(2025, 2, 28)

    @pytest.mark.parametrize("cadence", list(Cadence))
    def test_always_strictly_later(self, cadence):
        """GIVEN: Every day of a leap year and every cadence
        WHEN: Bumping
        THEN: The next due date is strictly after last_seen"""
        day = date(2024, 1, 1)
        while day.year == 2024:
            assert bump_next_due(day, cadence) > day
            day += timedelta(days=1)


class TestCadenceAnchor:
    def test_weekday_for_weekly_series(self):
        friday = date(2024, 3, 8)
        assert cadence_anchor(friday, Cadence.BIWEEKLY) == (None, 4)
        assert cadence_anchor(friday, Cadence.WEEKLY) == (None, 4)

    def test_day_of_month_clamped(self):
        assert cadence_anchor(date(2024, 3, 31), Cadence.MONTHLY) == (28, None)
        assert cadence_anchor(date(2024, 3, 12), Cadence.YEARLY) == (12, None)

    def test_semimonthly_has_no_anchor(self):
        assert cadence_anchor(date(2024, 3, 12), Cadence.SEMIMONTHLY) == (None, None)
