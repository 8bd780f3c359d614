"""
Storyline configuration: all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os


def _flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings from environment variables."""

    # Database
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "")
    DB_POOL_MIN_SIZE: int = int(os.environ.get("DB_POOL_MIN_SIZE", "2"))
    DB_POOL_MAX_SIZE: int = int(os.environ.get("DB_POOL_MAX_SIZE", "20"))

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # Story tree
    NEW_GROUPS_FIRST: bool = _flag("NEW_GROUPS_FIRST", True)  # prepend new groups to the order
    ALLOW_NESTED_GROUPS: bool = _flag("ALLOW_NESTED_GROUPS", False)
    SEED_PROJECTS: bool = _flag("SEED_PROJECTS", True)  # default + intro groups on project create


# Singleton instance
settings = Settings()

# Validate required settings (skip in test mode)
_testing = os.environ.get("TESTING", "").lower() == "true"

if not _testing and not settings.DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required")
