"""Configuration management"""
import logging
import os
from dotenv import load_dotenv

load_dotenv()

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# Leveling curve
BASE_XP: int = int(os.getenv("BASE_XP", "100"))
LEVEL_CACHE_MAX_LEVEL: int = int(os.getenv("LEVEL_CACHE_MAX_LEVEL", "1000"))

# Debuff policy
DEBUFF_PENALTY_PERCENT: int = int(os.getenv("DEBUFF_PENALTY_PERCENT", "10"))
DEBUFF_DURATION_HOURS: int = int(os.getenv("DEBUFF_DURATION_HOURS", "24"))
MIN_MISSED_CORE_QUESTS: int = int(os.getenv("MIN_MISSED_CORE_QUESTS", "2"))

# Rotating quests
ROTATING_QUEST_UNLOCK_DAY: int = int(os.getenv("ROTATING_QUEST_UNLOCK_DAY", "8"))
ROTATING_RECENCY_DAYS: int = int(os.getenv("ROTATING_RECENCY_DAYS", "3"))

# Dates are bucketed per player timezone (IANA name)
DEFAULT_TIMEZONE: str = os.getenv("DEFAULT_TIMEZONE", "UTC")


def configure_logging() -> None:
    """Apply the process-wide logging format"""
    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO)
    )


# Validation
def validate_config() -> None:
    """Validate configuration values"""
    from src.exceptions import ConfigurationError

    if BASE_XP <= 0:
        raise ConfigurationError("BASE_XP must be positive", config_key="BASE_XP")
    if LEVEL_CACHE_MAX_LEVEL < 2:
        raise ConfigurationError(
            "LEVEL_CACHE_MAX_LEVEL must be at least 2",
            config_key="LEVEL_CACHE_MAX_LEVEL"
        )
    if not 0 <= DEBUFF_PENALTY_PERCENT < 100:
        raise ConfigurationError(
            "DEBUFF_PENALTY_PERCENT must be between 0 and 99",
            config_key="DEBUFF_PENALTY_PERCENT"
        )
    if DEBUFF_DURATION_HOURS <= 0:
        raise ConfigurationError(
            "DEBUFF_DURATION_HOURS must be positive",
            config_key="DEBUFF_DURATION_HOURS"
        )
    if MIN_MISSED_CORE_QUESTS < 1:
        raise ConfigurationError(
            "MIN_MISSED_CORE_QUESTS must be at least 1",
            config_key="MIN_MISSED_CORE_QUESTS"
        )
    if ROTATING_QUEST_UNLOCK_DAY < 0 or ROTATING_RECENCY_DAYS < 0:
        raise ConfigurationError(
            "Rotating quest settings must not be negative",
            config_key="ROTATING_QUEST_UNLOCK_DAY"
        )
