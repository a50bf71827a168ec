"""Tests for duration parsing and elapsed time formatting."""

import pytest

from gittimer.utils.durations import format_elapsed, parse_duration


class TestParseDuration:
    """Test cases for parse_duration."""

    @pytest.mark.parametrize(
        "text,minutes",
        [
            ("1h 30m", 90),
            ("1h30m", 90),
            ("2h", 120),
            ("1.5h", 90),
            ("90m", 90),
            ("45", 45),
            ("  15M ", 15),
            ("2.5h", 150),
        ],
    )
    def test_valid(self, text, minutes):
        assert parse_duration(text) == minutes

    @pytest.mark.parametrize("text", ["", "   ", "abc", "1x", "1h abc", "0", "0m", "0.2m"])
    def test_invalid(self, text):
        """Should reject empty, malformed and sub-minute values."""
        with pytest.raises(ValueError):
            parse_duration(text)


class TestFormatElapsed:
    """Test cases for format_elapsed."""

    @pytest.mark.parametrize(
        "millis,expected",
        [
            (0, "00:00:00"),
            (999, "00:00:00"),
            (61_000, "00:01:01"),
            (2_700_000, "00:45:00"),
            (3_723_000, "01:02:03"),
            (360_000_000, "100:00:00"),
            (-5, "00:00:00"),
        ],
    )
    def test_format(self, millis, expected):
        assert format_elapsed(millis) == expected
