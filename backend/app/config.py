from datetime import timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from typing import List

from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    # Database configuration
    # Local dev falls back to SQLite; production points this at PostgreSQL
    DATABASE_URL: str = "sqlite:///./expense_tracker.db"

    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://localhost"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Identity is resolved upstream (gateway / auth proxy) and forwarded in this header
    USER_ID_HEADER: str = "X-User-Id"

    # Statement import
    IMPORT_TIMEZONE: str = "UTC"  # Calendar used when converting spreadsheet serial dates
    IMPORT_RATE_LIMIT: str = "30/minute"

    DEFAULT_CURRENCY: str = "EUR"

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalize_log_level(cls, value):
        level = (value or "INFO").strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported LOG_LEVEL '{value}'")
        return level

    @field_validator("IMPORT_TIMEZONE")
    @classmethod
    def _validate_import_timezone(cls, value):
        """
        Reject unknown zone names at startup instead of on the first import.
        """
        name = (value or "UTC").strip()
        if name.upper() == "UTC":
            return "UTC"
        try:
            ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown IMPORT_TIMEZONE '{value}'")
        return name

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def import_tzinfo(self) -> tzinfo:
        if self.IMPORT_TIMEZONE == "UTC":
            return timezone.utc
        return ZoneInfo(self.IMPORT_TIMEZONE)

    class Config:
        env_file = ".env"
        extra = "ignore"  # Ignore extra environment variables not defined in the model


settings = Settings()
