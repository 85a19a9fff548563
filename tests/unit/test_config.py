"""Tests for configuration defaults and validation (src/config.py)"""
import logging
import pytest

from src import config
from src.exceptions import ConfigurationError


class TestConfigDefaults:
    """Test the progression defaults"""

    def test_defaults(self):
        """Test default values when no overrides are set"""
        assert config.BASE_XP == 100
        assert config.DEBUFF_PENALTY_PERCENT == 10
        assert config.DEBUFF_DURATION_HOURS == 24
        assert config.MIN_MISSED_CORE_QUESTS == 2
        assert config.ROTATING_QUEST_UNLOCK_DAY == 8
        assert config.ROTATING_RECENCY_DAYS == 3
        assert config.DEFAULT_TIMEZONE == "UTC"

    def test_defaults_are_valid(self):
        """Test that the shipped defaults pass validation"""
        config.validate_config()


class TestConfigValidation:
    """Test validate_config()"""

    @pytest.mark.parametrize("key,value", [
        ("BASE_XP", 0),
        ("LEVEL_CACHE_MAX_LEVEL", 1),
        ("DEBUFF_PENALTY_PERCENT", 100),
        ("DEBUFF_PENALTY_PERCENT", -5),
        ("DEBUFF_DURATION_HOURS", 0),
        ("MIN_MISSED_CORE_QUESTS", 0),
        ("ROTATING_QUEST_UNLOCK_DAY", -1),
    ])
    def test_invalid_values_raise(self, monkeypatch, key, value):
        """Test out-of-range settings"""
        monkeypatch.setattr(config, key, value)

        with pytest.raises(ConfigurationError) as exc_info:
            config.validate_config()

        assert exc_info.value.config_key == key


class TestConfigureLogging:
    """Test configure_logging()"""

    def test_uses_log_level(self, monkeypatch):
        """Test that LOG_LEVEL reaches basicConfig"""
        calls = []
        monkeypatch.setattr(config, "LOG_LEVEL", "debug")
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

        config.configure_logging()

        assert calls[0]["level"] == logging.DEBUG
        assert "%(name)s" in calls[0]["format"]

    def test_unknown_level_falls_back_to_info(self, monkeypatch):
        """Test an invalid LOG_LEVEL"""
        calls = []
        monkeypatch.setattr(config, "LOG_LEVEL", "chatty")
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

        config.configure_logging()

        assert calls[0]["level"] == logging.INFO
