"""Application settings, loaded once from the environment and passed explicitly.

Every setting can be overridden with a ``LAUNCHTRACKER_``-prefixed environment
variable or an entry in ``.env``, e.g. ``LAUNCHTRACKER_DATABASE_URL``.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LAUNCHTRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: str = "dev"  # dev | prod
    database_url: str = "sqlite:///./data/launchtracker.db"
    sql_echo: bool = False

    jwt_secret: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 7 * 24 * 60
    cookie_name: str = "token"
    cookie_secure: bool = False

    cors_origins: list[str] = ["http://localhost:5173"]
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 3001

    # Fraction of the target that still counts as "yellow" on the KPI board
    kpi_warning_threshold: float = 0.10
    # Fraction beyond the target at which a KPI entry raises an alert
    alert_threshold: float = 0.10

    seed_admin_email: str = "admin@example.com"
    seed_admin_password: str = "admin123"
    seed_admin_name: str = "Admin User"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings for entry points; call ``get_settings.cache_clear()`` in tests."""
    return Settings()
