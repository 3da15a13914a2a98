"""Centralized application configuration using Pydantic settings."""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration for the lost & found service."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = Field(
        default="sqlite:///./lostfound.db",
        description="SQLAlchemy database URL. Defaults to local SQLite for development.",
    )
    run_db_migrations: bool = Field(
        default=False,
        description="Whether the service should create database tables on startup.",
    )
    bootstrap_sysadmin: bool = Field(
        default=True,
        description="Create the default system administrator on startup when none exists.",
    )
    default_sysadmin_username: str = Field(default="sysadmin")
    default_sysadmin_email: str = Field(default="sysadmin@example.com")
    default_sysadmin_password: str = Field(default="admin123")

    jwt_secret: str = Field(default="super-secret", description="JWT signing secret")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=60 * 24, description="Token lifetime in minutes")
    token_header: str = Field(default="Authorization", description="Request header carrying the token")
    token_prefix: str = Field(default="Bearer", description="Scheme prefix stripped from the token header")

    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    default_rate_limit: str = Field(default="60/minute", description="Global rate limiting rule")
    rate_limiting_enabled: bool = Field(default=True, description="Toggle to disable SlowAPI limits (useful in tests)")

    upload_dir: str = Field(default="uploads", description="Directory where uploaded files are stored")
    upload_base_url: Optional[str] = Field(
        default=None,
        description="Public URL prefix for uploaded files. Derived from the request when unset.",
    )
    allowed_extensions: List[str] = Field(
        default_factory=lambda: ["jpg", "jpeg", "png", "gif", "webp"],
        description="File extensions accepted by the generic upload endpoint",
    )
    max_file_size_mb: int = Field(default=5, description="Upper bound for generic uploads")
    avatar_max_size_mb: int = Field(default=2, description="Upper bound for avatar uploads")

    max_page_size: int = Field(default=100, description="Largest page size a listing may request")
    log_level: str = Field(default="INFO", description="Root logging level")
    log_dir: str = Field(default="logs", description="Directory for the request audit log")


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()
