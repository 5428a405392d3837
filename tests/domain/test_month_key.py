"""
Tests for MonthKey and month boundaries.

Covers:
- Parsing and rejection of malformed keys
- Half-open boundaries computed in the reporting timezone
- next / previous / trailing / month_range
"""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from hypothesis import given
from hypothesis import strategies as st

from franchise_kernel.domain.month import MonthKey, month_range
from franchise_kernel.exceptions import InvalidMonthKeyError

JAKARTA = ZoneInfo("Asia/Jakarta")

month_keys = st.builds(
    MonthKey,
    year=st.integers(min_value=1970, max_value=2200),
    month=st.integers(min_value=1, max_value=12),
)


class TestParse:
    def test_parses_year_month(self):
        assert MonthKey.parse("2024-06") == MonthKey(2024, 6)

    def test_renders_zero_padded(self):
        assert str(MonthKey(2024, 3)) == "2024-03"

    def test_parse_passes_month_key_through(self):
        key = MonthKey(2024, 6)
        assert MonthKey.parse(key) is key

    @pytest.mark.parametrize(
        "value",
        ["2024-13", "2024-00", "2024-6", "24-06", "2024/06", "", "2024-06-01", None, 202406],
    )
    def test_rejects_malformed_keys(self, value):
        with pytest.raises(InvalidMonthKeyError):
            MonthKey.parse(value)

    def test_constructor_rejects_impossible_month(self):
        with pytest.raises(InvalidMonthKeyError):
            MonthKey(2024, 13)

    @pytest.mark.parametrize("value", ["0001-01", "9999-12"])
    def test_rejects_years_without_utc_boundaries(self, value):
        with pytest.raises(InvalidMonthKeyError):
            MonthKey.parse(value)

    @pytest.mark.parametrize("key", [MonthKey(2, 1), MonthKey(9998, 12)])
    def test_extreme_keys_have_bounds(self, key):
        start, end = key.bounds(JAKARTA)
        assert start < end


class TestBoundaries:
    def test_june_starts_at_jakarta_midnight(self):
        start, end = MonthKey(2024, 6).bounds(JAKARTA)

        assert start == datetime(2024, 5, 31, 17, 0, tzinfo=timezone.utc)
        assert end == datetime(2024, 6, 30, 17, 0, tzinfo=timezone.utc)

    def test_record_at_local_midnight_belongs_to_new_month(self):
        midnight = datetime(2024, 5, 31, 17, 0, tzinfo=timezone.utc)

        assert MonthKey.containing(midnight, JAKARTA) == MonthKey(2024, 6)
        assert MonthKey.containing(midnight - timedelta(seconds=1), JAKARTA) == MonthKey(2024, 5)

    def test_naive_datetime_is_read_as_utc(self):
        assert MonthKey.containing(datetime(2024, 5, 31, 17, 0), JAKARTA) == MonthKey(2024, 6)

    def test_year_rollover(self):
        assert MonthKey(2024, 12).next() == MonthKey(2025, 1)
        assert MonthKey(2025, 1).previous() == MonthKey(2024, 12)

    @given(month_keys)
    def test_consecutive_months_share_a_boundary(self, key):
        _, end = key.bounds(JAKARTA)
        next_start, _ = key.next().bounds(JAKARTA)
        assert end == next_start

    @given(month_keys)
    def test_start_of_month_is_contained_in_it(self, key):
        start, end = key.bounds(JAKARTA)
        assert MonthKey.containing(start, JAKARTA) == key
        assert MonthKey.containing(end - timedelta(microseconds=1), JAKARTA) == key

    @given(month_keys)
    def test_parse_inverts_str(self, key):
        assert MonthKey.parse(str(key)) == key


class TestRanges:
    def test_trailing_is_oldest_first_and_ends_with_self(self):
        months = MonthKey(2024, 2).trailing(4)

        assert months == [
            MonthKey(2023, 11),
            MonthKey(2023, 12),
            MonthKey(2024, 1),
            MonthKey(2024, 2),
        ]

    def test_trailing_rejects_non_positive_count(self):
        with pytest.raises(ValueError):
            MonthKey(2024, 2).trailing(0)

    def test_month_range_is_inclusive(self):
        assert month_range(MonthKey(2024, 11), MonthKey(2025, 1)) == [
            MonthKey(2024, 11),
            MonthKey(2024, 12),
            MonthKey(2025, 1),
        ]

    def test_month_range_single_month(self):
        assert month_range(MonthKey(2024, 6), MonthKey(2024, 6)) == [MonthKey(2024, 6)]

    def test_month_range_rejects_reversed(self):
        with pytest.raises(ValueError):
            month_range(MonthKey(2024, 6), MonthKey(2024, 5))

    @given(month_keys, st.integers(min_value=1, max_value=36))
    def test_trailing_matches_month_range(self, key, count):
        months = key.trailing(count)
        assert len(months) == count
        assert months == month_range(months[0], key)
