"""Application configuration settings.

This module provides centralized configuration management using environment
variables with sensible defaults.
"""

import os
from dataclasses import dataclass


def _get_bool_env(name: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable.

    Args:
        name: Environment variable name.
        default: Default value if not set.

    Returns:
        Boolean value from environment.
    """
    value = os.getenv(name, "").lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    return default


def _get_int_env(name: str, default: int) -> int:
    """Get an integer value from environment variable.

    Args:
        name: Environment variable name.
        default: Default value if not set or not a number.

    Returns:
        Integer value from environment.
    """
    value = os.getenv(name)
    if value is None or not value.strip().isdigit():
        return default
    return int(value)


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        SUBSCRIPTION_STORE: Store backend, "memory" or "sqlite".
        SUBSCRIPTION_DB_PATH: SQLite database path for the sqlite backend.
        SUBSCRIPTION_HISTORY_LIMIT: History entries returned with a subscription.
        LOG_LEVEL: Logging level.
        LOG_JSON: Render logs as JSON instead of console output.
    """

    # Persistence
    SUBSCRIPTION_STORE: str = "memory"
    SUBSCRIPTION_DB_PATH: str = "./data/subscriptions.db"

    # Delivery history
    SUBSCRIPTION_HISTORY_LIMIT: int = 100

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables.

        Returns:
            Settings instance populated from environment.
        """
        return cls(
            SUBSCRIPTION_STORE=os.getenv("SUBSCRIPTION_STORE", "memory").lower(),
            SUBSCRIPTION_DB_PATH=os.getenv("SUBSCRIPTION_DB_PATH", "./data/subscriptions.db"),
            SUBSCRIPTION_HISTORY_LIMIT=_get_int_env("SUBSCRIPTION_HISTORY_LIMIT", 100),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
            LOG_JSON=_get_bool_env("LOG_JSON", default=False),
        )


# Global settings instance
settings = Settings.from_env()
