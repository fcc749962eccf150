"""Tests for duration strings and the settings that use them."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from app.config import AppConfig
from app.core.durations import duration_days, duration_seconds, parse_duration, parse_duration_ms


class TestParseDuration:
    """Tests for the <int><unit> grammar."""

    def test_units(self):
        assert parse_duration_ms("30s") == 30_000
        assert parse_duration_ms("5m") == 300_000
        assert parse_duration_ms("2h") == 7_200_000
        assert parse_duration_ms("10d") == 864_000_000

    def test_bare_integer_is_milliseconds(self):
        assert parse_duration_ms("1500") == 1500
        assert parse_duration_ms(250) == 250

    def test_timedelta_helpers(self):
        assert parse_duration("30d") == timedelta(days=30)
        assert duration_seconds("5m") == 300
        assert duration_days("36h") == 1.5

    @pytest.mark.parametrize("value", ["5 m", "5x", "m5", "-5m", "1.5h", "5M"])
    def test_malformed(self, value):
        with pytest.raises(ValueError, match="Invalid time format"):
            parse_duration_ms(value)

    def test_empty(self):
        with pytest.raises(ValueError, match="Time string is required"):
            parse_duration_ms("")


class TestDurationSettings:
    """Duration settings are validated when the config loads."""

    def test_defaults(self):
        config = AppConfig()
        assert config.access_token_ttl == timedelta(minutes=5)
        assert config.refresh_token_ttl == timedelta(days=30)
        assert config.refresh_inactivity == timedelta(days=10)
        assert config.two_factor_setup_ttl == timedelta(minutes=10)

    def test_bad_value_fails_fast(self):
        with pytest.raises(ValidationError):
            AppConfig(JWT_ACCESS_EXPIRE="five minutes")

    def test_zero_rejected(self):
        with pytest.raises(ValidationError):
            AppConfig(JWT_REFRESH_EXPIRE="0d")

    def test_cors_origins_split(self):
        config = AppConfig(ALLOWED_ORIGINS="http://a.test, http://b.test,")
        assert config.cors_origins == ["http://a.test", "http://b.test"]
