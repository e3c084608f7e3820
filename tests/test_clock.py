"""
Tests for the business-day clock.
"""
from datetime import date, datetime, timedelta, timezone

import pytest

from night_audit import BusinessDayClock


def _utc_for_local(local: datetime, offset: int) -> datetime:
    """UTC instant whose wall clock at UTC+offset is `local`."""
    return (local - timedelta(hours=offset)).replace(tzinfo=timezone.utc)


class TestNowInOffset:
    def test_adds_offset_to_utc_instant(self):
        clock = BusinessDayClock(7)
        local = clock.now_in_offset(datetime(2025, 3, 10, 20, 30, tzinfo=timezone.utc))
        assert local == datetime(2025, 3, 11, 3, 30)

    def test_naive_reference_is_utc(self):
        clock = BusinessDayClock(7)
        assert clock.now_in_offset(datetime(2025, 3, 10, 0, 0)) == datetime(2025, 3, 10, 7, 0)

    def test_aware_non_utc_reference_is_converted_first(self):
        clock = BusinessDayClock(0)
        plus_two = timezone(timedelta(hours=2))
        assert clock.now_in_offset(datetime(2025, 3, 10, 1, 0, tzinfo=plus_two)) == datetime(2025, 3, 9, 23, 0)

    def test_negative_offset(self):
        clock = BusinessDayClock(-5)
        assert clock.now_in_offset(datetime(2025, 3, 10, 3, 0, tzinfo=timezone.utc)) == datetime(2025, 3, 9, 22, 0)

    def test_uses_injected_now(self):
        clock = BusinessDayClock(7, now_fn=lambda: datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc))
        assert clock.now_in_offset() == datetime(2025, 1, 1, 7, 0)


class TestBusinessDay:
    def test_cutover_boundary_splits_days(self):
        clock = BusinessDayClock(7)
        before = _utc_for_local(datetime(2025, 3, 11, 3, 59), 7)
        after = _utc_for_local(datetime(2025, 3, 11, 4, 1), 7)

        assert clock.current_key(before) == "2025-03-10"
        assert clock.current_key(after) == "2025-03-11"

    def test_exactly_four_belongs_to_new_day(self):
        clock = BusinessDayClock(7)
        assert clock.current_key(_utc_for_local(datetime(2025, 3, 11, 4, 0), 7)) == "2025-03-11"

    @pytest.mark.parametrize("hour", range(4, 24))
    def test_daytime_hours_map_to_same_date(self, hour):
        clock = BusinessDayClock(7)
        instant = _utc_for_local(datetime(2025, 6, 15, hour, 30), 7)
        assert clock.current_key(instant) == "2025-06-15"

    @pytest.mark.parametrize("hour", range(0, 4))
    def test_early_hours_map_to_previous_date(self, hour):
        clock = BusinessDayClock(7)
        instant = _utc_for_local(datetime(2025, 6, 15, hour, 30), 7)
        assert clock.current_key(instant) == "2025-06-14"

    def test_early_hours_roll_back_across_month_and_year(self):
        clock = BusinessDayClock(7)
        assert clock.current_key(_utc_for_local(datetime(2025, 1, 1, 2, 0), 7)) == "2024-12-31"
        assert clock.current_key(_utc_for_local(datetime(2024, 3, 1, 1, 0), 7)) == "2024-02-29"

    def test_business_day_is_midnight(self):
        clock = BusinessDayClock(7)
        day = clock.business_day(_utc_for_local(datetime(2025, 6, 15, 17, 45, 12), 7))
        assert day == datetime(2025, 6, 15)

    def test_stable_for_frozen_instant(self):
        clock = BusinessDayClock(7)
        instant = datetime(2025, 6, 15, 21, 0, tzinfo=timezone.utc)
        keys = {clock.current_key(instant) for _ in range(5)}
        assert keys == {"2025-06-16"}

    def test_offset_changes_the_day(self):
        instant = datetime(2025, 6, 15, 22, 0, tzinfo=timezone.utc)
        assert BusinessDayClock(0).current_key(instant) == "2025-06-15"
        assert BusinessDayClock(7).current_key(instant) == "2025-06-16"

    def test_rejects_invalid_cutover(self):
        with pytest.raises(ValueError):
            BusinessDayClock(7, cutover_hour=24)


class TestBusinessDayKey:
    def test_formats_datetime(self):
        assert BusinessDayClock.business_day_key(datetime(2025, 3, 5, 13, 0)) == "2025-03-05"

    def test_formats_date(self):
        assert BusinessDayClock.business_day_key(date(999, 1, 2)) == "0999-01-02"
