"""Tests for configuration loading and validation."""

from dataclasses import replace

import pytest

from concierge.config import (
    AppConfig,
    BookingConfig,
    RoutingConfig,
    SessionConfig,
    _safe_bool,
    _safe_float,
    _safe_int,
    _validate_config,
)


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        config = AppConfig()
        _validate_config(config)  # should not raise

    def test_defaults(self):
        config = AppConfig()
        assert config.booking.default_dinner_time == "19:00"
        assert config.routing.switch_confidence == pytest.approx(0.6)
        assert config.routing.auto_handoff is False
        assert config.session.retention_hours == pytest.approx(24)

    def test_invalid_retention_hours(self):
        config = replace(AppConfig(), session=replace(SessionConfig(), retention_hours=0))
        with pytest.raises(ValueError, match="SESSION_RETENTION_HOURS"):
            _validate_config(config)

    def test_invalid_max_party_size(self):
        config = replace(AppConfig(), booking=replace(BookingConfig(), max_party_size=0))
        with pytest.raises(ValueError, match="MAX_PARTY_SIZE"):
            _validate_config(config)

    def test_invalid_default_dinner_time(self):
        config = replace(AppConfig(), booking=replace(BookingConfig(), default_dinner_time="7pm"))
        with pytest.raises(ValueError, match="DEFAULT_DINNER_TIME"):
            _validate_config(config)

    def test_invalid_override_threshold(self):
        config = replace(AppConfig(), routing=replace(RoutingConfig(), high_priority_override=11))
        with pytest.raises(ValueError, match="HIGH_PRIORITY_OVERRIDE"):
            _validate_config(config)

    def test_invalid_switch_confidence(self):
        config = replace(AppConfig(), routing=replace(RoutingConfig(), switch_confidence=1.5))
        with pytest.raises(ValueError, match="INTENT_SWITCH_CONFIDENCE"):
            _validate_config(config)


class TestSafeParsing:
    def test_safe_int_parsing(self):
        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_int_rejects_garbage(self, monkeypatch):
        monkeypatch.setenv("CONCIERGE_TEST_INT", "many")
        with pytest.raises(ValueError, match="CONCIERGE_TEST_INT"):
            _safe_int("CONCIERGE_TEST_INT", "1")

    def test_safe_float_parsing(self):
        assert _safe_float("NONEXISTENT_VAR_12345", "3.14") == pytest.approx(3.14)

    @pytest.mark.parametrize("raw,expected", [("true", True), ("YES", True), ("0", False), ("off", False)])
    def test_safe_bool_parsing(self, monkeypatch, raw, expected):
        monkeypatch.setenv("CONCIERGE_TEST_BOOL", raw)
        assert _safe_bool("CONCIERGE_TEST_BOOL", "true") is expected

    def test_safe_bool_rejects_garbage(self, monkeypatch):
        monkeypatch.setenv("CONCIERGE_TEST_BOOL", "maybe")
        with pytest.raises(ValueError, match="CONCIERGE_TEST_BOOL"):
            _safe_bool("CONCIERGE_TEST_BOOL", "true")
