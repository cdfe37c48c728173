"""
Configuration management via environment variables.

This module loads configuration from .env file using python-dotenv.
All configuration values are accessed through the Settings class.

Every setting has a default, so the service starts with a local SQLite
database and no .env file at all.
"""
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# Load .env file from project root
# This must happen before accessing os.environ
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(env_path)

# Width of the user_id column; longer identities cannot be stored
USER_ID_COLUMN_LENGTH = 128


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    frozen=True makes the dataclass immutable, preventing accidental
    modification of settings at runtime.

    Attributes:
        app_name: Application identifier for logging
        app_env: Environment name (development, staging, production)
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for daily log files
        database_url: SQLAlchemy connection string for persistent memory
        memory_persistent: Store records in the database (False = process memory)
        max_user_id_length: Longest accepted user identity, capped at the column width
        insight_max_chars: Characters of a response kept as a key insight
        recent_questions_window: Questions returned in the context view
        enable_audit_logging: Log every HTTP request
    """
    # Application settings
    app_name: str
    app_env: str
    log_level: str
    log_dir: str

    # Storage settings
    database_url: str
    memory_persistent: bool

    # Memory shaping
    max_user_id_length: int
    insight_max_chars: int
    recent_questions_window: int

    # Observability
    enable_audit_logging: bool

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env.lower() == "development"

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"


def _get_env(key: str, default: Optional[str] = None) -> str:
    """
    Get environment variable with optional default.

    Args:
        key: Environment variable name
        default: Default value if not set

    Returns:
        Environment variable value

    Raises:
        ValueError: If required variable is not set and no default provided
    """
    value = os.environ.get(key, default)
    if value is None:
        raise ValueError(
            f"Required environment variable '{key}' is not set. "
            f"Please check your .env file."
        )
    return value


def normalize_database_url(database_url: str) -> str:
    """
    Rewrite provider-style URLs into SQLAlchemy dialect names.

    Hosted databases hand out postgres:// and mysql:// URLs, which
    SQLAlchemy does not resolve to an installed driver.
    """
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    if database_url.startswith("mysql://"):
        database_url = database_url.replace("mysql://", "mysql+pymysql://", 1)

    # ssl-mode is not understood by pymysql
    if "ssl-mode=" in database_url:
        database_url = re.sub(r"[?&]ssl-mode=[^&]+", "", database_url)
        if "?" not in database_url and "&" in database_url:
            database_url = database_url.replace("&", "?", 1)

    return database_url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are read once at startup; call get_settings.cache_clear()
    after changing the environment (tests do this).

    Returns:
        Settings instance with all configuration values
    """
    database_url = normalize_database_url(
        _get_env("DATABASE_URL", "sqlite:///./usercontext.db")
    )

    return Settings(
        # Application
        app_name=_get_env("APP_NAME", "UserContextService"),
        app_env=_get_env("APP_ENV", "development"),
        log_level=_get_env("LOG_LEVEL", "INFO"),
        log_dir=_get_env("LOG_DIR", str(Path(__file__).parent.parent.parent / "logs")),

        # Storage
        database_url=database_url,
        memory_persistent=_get_env("MEMORY_PERSISTENT", "true").lower() == "true",

        # Memory shaping
        max_user_id_length=min(
            int(_get_env("MAX_USER_ID_LENGTH", str(USER_ID_COLUMN_LENGTH))),
            USER_ID_COLUMN_LENGTH
        ),
        insight_max_chars=int(_get_env("INSIGHT_MAX_CHARS", "150")),
        recent_questions_window=int(_get_env("RECENT_QUESTIONS_WINDOW", "3")),

        # Observability
        enable_audit_logging=_get_env("ENABLE_AUDIT_LOGGING", "true").lower() == "true",
    )
