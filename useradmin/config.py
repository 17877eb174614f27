"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # ==========================================================================
    # API Server
    # ==========================================================================

    api_host: str = "0.0.0.0"
    api_port: int = 3000
    cors_origins: str = "http://localhost:3000,http://localhost:5173"
    app_url: str = "http://localhost:3000"

    # ==========================================================================
    # Database
    # ==========================================================================

    # Any SQLAlchemy async URL (sqlite+aiosqlite, postgresql+asyncpg).
    # "memory://" selects the in-process store.
    database_url: str = "sqlite+aiosqlite:///./data/useradmin.db"
    database_echo: bool = False

    # ==========================================================================
    # Authentication
    # ==========================================================================

    jwt_secret_key: str = "dev-jwt-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60 * 24

    bcrypt_rounds: int = 10
    password_reset_expire_minutes: int = 60
    default_role: str = "USER"

    # ==========================================================================
    # Email (AWS SES)
    # ==========================================================================

    aws_region: str = "us-east-1"
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_ses_from_email: str = ""

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def use_aws(self) -> bool:
        """Whether AWS services should be used."""
        return bool(self.aws_access_key_id and self.aws_secret_access_key)

    @property
    def use_memory_store(self) -> bool:
        return self.database_url.startswith("memory://")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
