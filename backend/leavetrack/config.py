from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Leave Tracker"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "postgresql+asyncpg://leavetrack:leavetrack@db:5432/leavetrack"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]
    log_level: str = "INFO"
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Leave rules
    timezone: str = "UTC"
    max_span_days: int = 30
    reason_max_length: int = 500
    elevated_roles: list[str] = ["hr", "admin"]
    default_allocations: dict[str, int] = {"casual": 12, "sick": 10, "earned": 15}
    calendar_max_days: int = 92


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
