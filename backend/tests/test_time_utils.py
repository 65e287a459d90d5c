# Overview: Pytest coverage for business-local time windows and bucket keys.

from datetime import date, datetime

import pytest

from kaunter.time_utils import (
    local_date_key,
    local_day_bounds,
    local_midnight_days_ago,
    local_midnight_months_ago,
    local_month_key,
    local_week_key,
    parse_local_range,
    shift_months,
    start_of_local_day,
    to_utc_z,
)
from kaunter.validation import ValidationError

from conftest import MYT


class TestBucketKeys:
    """Keys are computed from business-local wall clock, not UTC."""

    def test_late_utc_evening_is_next_local_day(self):
        # 2024-01-01T16:30Z == 2024-01-02T00:30+08:00
        assert local_date_key(datetime(2024, 1, 1, 16, 30), MYT) == "2024-01-02"

    def test_just_before_local_midnight_stays_on_day(self):
        # 2024-01-01T15:59:59Z == 2024-01-01T23:59:59+08:00
        assert local_date_key(datetime(2024, 1, 1, 15, 59, 59), MYT) == "2024-01-01"

    def test_month_key_rolls_over_in_local_time(self):
        assert local_month_key(datetime(2024, 1, 31, 16, 0), MYT) == "2024-02"
        assert local_month_key(datetime(2024, 1, 31, 15, 59), MYT) == "2024-01"

    def test_week_key_starts_monday(self):
        # Sunday 2024-01-07 local vs Monday 2024-01-08 local
        assert local_week_key(datetime(2024, 1, 7, 4, 0), MYT) == "2024-W01"
        assert local_week_key(datetime(2024, 1, 7, 16, 30), MYT) == "2024-W02"

    def test_week_key_uses_iso_week_year(self):
        # Monday 2024-12-30 belongs to ISO week 1 of 2025
        assert local_week_key(datetime(2024, 12, 30, 2, 0), MYT) == "2025-W01"
        # Friday 2021-01-01 belongs to ISO week 53 of 2020
        assert local_week_key(datetime(2021, 1, 1, 2, 0), MYT) == "2020-W53"

    def test_aware_instants_are_accepted(self):
        aware = datetime.fromisoformat("2024-01-01T16:30:00+00:00")
        assert local_date_key(aware, MYT) == "2024-01-02"


class TestDayBoundaries:

    def test_start_of_local_day(self):
        assert start_of_local_day(datetime(2024, 1, 1, 16, 30), MYT) == datetime(2024, 1, 1, 16, 0)
        assert start_of_local_day(datetime(2024, 1, 1, 15, 0), MYT) == datetime(2023, 12, 31, 16, 0)

    def test_local_day_bounds(self):
        start, end = local_day_bounds(datetime(2024, 3, 1, 4, 0), MYT)
        assert start == datetime(2024, 2, 29, 16, 0)
        assert end == datetime(2024, 3, 1, 15, 59, 59, 999000)

    def test_local_midnight_days_ago(self):
        # now is 2024-03-10 12:00 local
        now = datetime(2024, 3, 10, 4, 0)
        assert local_midnight_days_ago(now, MYT, 30) == datetime(2024, 2, 8, 16, 0)

    def test_local_midnight_months_ago_clamps_month_end(self):
        # now is 2024-03-31 10:00 local; one month back clamps to Feb 29
        now = datetime(2024, 3, 31, 2, 0)
        assert local_midnight_months_ago(now, MYT, 1) == datetime(2024, 2, 28, 16, 0)

    def test_shift_months(self):
        assert shift_months(date(2024, 1, 15), -1) == date(2023, 12, 15)
        assert shift_months(date(2024, 5, 31), -3) == date(2024, 2, 29)
        assert shift_months(date(2023, 11, 30), 3) == date(2024, 2, 29)


class TestParseLocalRange:
    """Report inputs are wall-clock business-local values."""

    def test_single_day_covers_whole_local_day(self):
        start, end = parse_local_range("2024-03-01", "2024-03-01", MYT)
        assert start == datetime(2024, 2, 29, 16, 0)
        assert end == datetime(2024, 3, 1, 15, 59, 59, 999000)

    def test_z_suffix_is_treated_as_local(self):
        start, end = parse_local_range("2024-03-01T00:00:00Z", "2024-03-01T00:00:00Z", MYT)
        assert start == datetime(2024, 2, 29, 16, 0)
        # End without 23:59:59 is widened to the end of its day
        assert end == datetime(2024, 3, 1, 15, 59, 59, 999000)

    def test_explicit_end_of_day_gets_milliseconds(self):
        _, end = parse_local_range("2024-03-01T00:00:00", "2024-03-01T23:59:59", MYT)
        assert end == datetime(2024, 3, 1, 15, 59, 59, 999000)

    def test_start_time_is_kept(self):
        start, _ = parse_local_range("2024-03-01T09:15:00", "2024-03-02", MYT)
        assert start == datetime(2024, 3, 1, 1, 15)

    @pytest.mark.parametrize("start,end", [
        ("", "2024-03-01"),
        ("2024-03-01", None),
        ("01/03/2024", "2024-03-01"),
        ("2024-02-30", "2024-03-01"),
        ("2024-03-01T25:00:00", "2024-03-01"),
    ])
    def test_malformed_input_rejected(self, start, end):
        with pytest.raises(ValidationError):
            parse_local_range(start, end, MYT)

    def test_start_after_end_rejected(self):
        with pytest.raises(ValidationError):
            parse_local_range("2024-03-02", "2024-03-01", MYT)


def test_to_utc_z_treats_naive_as_utc():
    assert to_utc_z(datetime(2024, 1, 1, 16, 30, 0, 500)) == "2024-01-01T16:30:00Z"
    assert to_utc_z(None) is None
