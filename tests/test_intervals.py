"""Tests for the interval time model."""

import pytest

from breakhelper.domain.intervals import (
    MalformedDateError,
    MalformedTimeError,
    add_intervals,
    generate_intervals,
    is_valid_15_minute_interval,
    minutes_to_time,
    normalize_time,
    parse_date,
    round_down_to_interval,
    round_up_to_interval,
    short_time,
    time_to_minutes,
)


class TestTimeConversion:
    """Tests for clock string and minute conversion."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("00:00:00", 0),
            ("09:00:00", 540),
            ("13:45:00", 825),
            ("23:59:59", 1439),
            ("09:30", 570),
        ],
    )
    def test_time_to_minutes(self, value, expected):
        """Hours and minutes are converted, seconds ignored."""
        assert time_to_minutes(value) == expected

    @pytest.mark.parametrize("value", ["00:00:00", "09:07:30", "17:45:00", "23:59:59"])
    def test_round_trip_reserializes_with_zero_seconds(self, value):
        """minutes_to_time(time_to_minutes(t)) keeps the minute and drops seconds."""
        result = minutes_to_time(time_to_minutes(value))
        assert result == value[:5] + ":00"
        assert time_to_minutes(result) == time_to_minutes(value)

    @pytest.mark.parametrize("value", ["9:00:00", "24:00:00", "12:60:00", "noon", "", "12:00:61"])
    def test_malformed_time_rejected(self, value):
        """Malformed clock strings raise instead of being coerced."""
        with pytest.raises(MalformedTimeError):
            time_to_minutes(value)

    def test_non_string_rejected(self):
        """Non-string input is malformed."""
        with pytest.raises(MalformedTimeError):
            time_to_minutes(540)

    def test_minutes_outside_day_rejected(self):
        """Minute offsets must fall inside one day."""
        with pytest.raises(MalformedTimeError):
            minutes_to_time(24 * 60)
        with pytest.raises(MalformedTimeError):
            minutes_to_time(-15)

    def test_normalize_and_short_time(self):
        """Normalized times carry seconds, short times drop them."""
        assert normalize_time("10:15") == "10:15:00"
        assert short_time("10:15:00") == "10:15"


class TestIntervalGeneration:
    """Tests for interval sequences."""

    def test_generate_intervals_half_open(self):
        """The end time is excluded."""
        assert generate_intervals("09:00:00", "09:45:00") == [
            "09:00:00",
            "09:15:00",
            "09:30:00",
        ]

    def test_generate_intervals_empty_when_end_not_after_start(self):
        """No intervals when end <= start."""
        assert generate_intervals("10:00:00", "10:00:00") == []
        assert generate_intervals("11:00:00", "10:00:00") == []

    def test_eight_hour_shift_has_32_intervals(self):
        """An 8-hour shift has 32 quarter-hour intervals."""
        intervals = generate_intervals("09:00:00", "17:00:00")
        assert len(intervals) == 32
        assert intervals[-1] == "16:45:00"
        assert all(is_valid_15_minute_interval(t) for t in intervals)

    def test_alignment_check(self):
        """Only quarter-hour boundaries are valid intervals."""
        assert is_valid_15_minute_interval("10:45:00")
        assert not is_valid_15_minute_interval("10:50:00")

    def test_rounding(self):
        """Minute offsets snap to interval boundaries."""
        assert round_down_to_interval(607) == 600
        assert round_up_to_interval(607) == 615
        assert round_up_to_interval(600) == 600

    def test_add_intervals(self):
        """Stepping moves in 15-minute increments."""
        assert add_intervals("12:30:00", 1) == "12:45:00"
        assert add_intervals("12:30:00", 2) == "13:00:00"
        assert add_intervals("12:30:00", -2) == "12:00:00"


class TestDates:
    """Tests for schedule date parsing."""

    def test_parse_valid_date(self):
        """YYYY-MM-DD dates parse to date objects."""
        assert parse_date("2026-01-05").isoformat() == "2026-01-05"

    @pytest.mark.parametrize("value", ["2026-1-5", "05/01/2026", "2026-02-30", ""])
    def test_malformed_date_rejected(self, value):
        """Wrong formats and impossible dates are rejected."""
        with pytest.raises(MalformedDateError):
            parse_date(value)
