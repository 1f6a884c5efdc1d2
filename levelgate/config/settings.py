"""
Runtime Configuration

Centralized settings for the level gate service.
All values are loaded from environment variables (a local .env is honoured).
"""
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


def get_int_env(key: str, default: int) -> int:
    """Get an integer value from environment variable, falling back on garbage."""
    raw: Optional[str] = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Settings:
    """
    Settings for the application.

    To add a new setting:
    1. Add it here as a class attribute
    2. Load it from an environment variable
    3. Read it through the `settings` instance
    """

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = get_int_env("PORT", 8000)

    # Persistence
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./levelgate.db")

    # Identity boundary (tokens are issued elsewhere)
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")

    # Level progression
    # "full" runs the qualification chain, "simplified" only compares current_level
    LEVEL_ACCESS_POLICY: str = os.getenv("LEVEL_ACCESS_POLICY", "full").lower()
    MAX_LEVEL: int = get_int_env("MAX_LEVEL", 2)

    # Read-through cache
    CACHE_SWEEP_INTERVAL_SECONDS: int = get_int_env("CACHE_SWEEP_INTERVAL_SECONDS", 30)
    FEATURE_LEADERBOARD_CACHE: bool = get_bool_env("FEATURE_LEADERBOARD_CACHE", True)

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


# Singleton instance for easy importing
settings = Settings()
