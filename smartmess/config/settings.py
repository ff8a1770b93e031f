"""
Environment configuration for the SmartMess ledger service.
Uses Pydantic's settings management to handle environment variables
with proper type validation and default values.
"""

import json
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Union

import pytz
from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file if it exists
env_path = Path('.') / '.env'
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application configuration
    APP_NAME: str = "SmartMess Ledger Service"
    API_VERSION: str = "1.0.0"
    API_V1_STR: str = "/api"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    TIMEZONE: str = Field(
        default="Asia/Kolkata",
        description="Wall-clock zone of the messes; decides what 'today' is",
    )

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: List[str] = Field(default=["*"])

    # Database configuration
    DATABASE_URL: Optional[str] = None
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 20
    DB_POOL_OVERFLOW: int = 10

    # Monitoring and logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    LOG_FILE: Optional[str] = None
    LOG_RETENTION: int = 7
    LOG_SQL_QUERIES: bool = False
    ENABLE_STRUCTURED_LOGGING: bool = True

    # Billing
    CURRENCY: str = "INR"
    GST_RATE: Decimal = Decimal("0.18")
    PAYMENT_DUE_DAYS: int = 7
    BILLING_CYCLE_DAYS: int = 30
    PAID_GRACE_DAYS: int = 30

    # Platform credits
    DEFAULT_TRIAL_DAYS: int = 7
    DEFAULT_TRIAL_CREDITS: int = 100
    DEFAULT_MAX_TRIALS_PER_MESS: int = 1
    LOW_CREDIT_THRESHOLD: int = 100
    PURCHASE_REDIRECT_PATH: str = "/mess-owner/platform-subscription"

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse CORS_ORIGINS from string to list"""
        if isinstance(v, str):
            if v.startswith('[') and v.endswith(']'):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator('LOG_FORMAT')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")
        return v

    @field_validator('TIMEZONE')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            pytz.timezone(v)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Invalid timezone: {v}")
        return v

    def get_database_url(self) -> str:
        """Return the configured database URL, falling back to a local SQLite file"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return "sqlite:///./smartmess.db"

    def is_sqlite(self) -> bool:
        return self.get_database_url().startswith("sqlite")

    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.ENVIRONMENT == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
