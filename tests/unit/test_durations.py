"""Unit tests for duration-string parsing."""

from datetime import timedelta

import pytest

from backoffice.durations import parse_duration
from backoffice.exceptions import ConfigurationError


class TestParseDuration:
    """Tests for the <integer><unit> duration grammar."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("30s", timedelta(seconds=30)),
            ("15m", timedelta(minutes=15)),
            ("12h", timedelta(hours=12)),
            ("7d", timedelta(days=7)),
        ],
    )
    def test_supported_units(self, value, expected):
        assert parse_duration(value) == expected

    def test_surrounding_whitespace_ignored(self):
        assert parse_duration(" 7d ") == timedelta(days=7)

    def test_timedelta_passes_through(self):
        delta = timedelta(minutes=5)
        assert parse_duration(delta) is delta

    @pytest.mark.parametrize("value", ["", "7", "d", "7w", "1.5h", "-1d", "7 d", "15min", "1d2h"])
    def test_malformed_strings_raise(self, value):
        with pytest.raises(ConfigurationError, match="Invalid duration"):
            parse_duration(value)

    def test_zero_duration_rejected(self):
        with pytest.raises(ConfigurationError, match="greater than zero"):
            parse_duration("0m")

    def test_non_string_rejected(self):
        with pytest.raises(ConfigurationError):
            parse_duration(15)

    def test_configuration_error_is_value_error(self):
        """Pydantic validators surface ValueError subclasses as validation errors."""
        assert issubclass(ConfigurationError, ValueError)
