"""Configuration management and validation using Pydantic."""

import os
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator


class Settings(BaseSettings):
    """Application configuration settings loaded from environment variables or .env files.

    Built once by ``load_settings()`` and handed to every component that needs it.
    """

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # ==================== Application Settings ====================
    APP_NAME: str = "User Service"
    APP_ENV: str = "dev"
    API_PREFIX: str = "/api/v1"
    DOCS_URL: str = "/api/docs"

    # ==================== Database ====================
    DB_URL: str  # Required, defined in .env files
    DB_CREATE_TABLES: bool = True  # Create tables from ORM metadata at startup

    # ==================== Database Connection Pooling ====================
    DB_POOL_SIZE: int = 20  # Persistent connections in pool
    DB_MAX_OVERFLOW: int = 10  # Additional connections beyond pool size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for available connection
    DB_POOL_RECYCLE: int = 3600  # Recycle connections after 1 hour
    DB_QUERY_TIMEOUT: int = 60  # Query execution timeout (seconds)
    DB_CONNECT_TIMEOUT: int = 10  # Connection establishment timeout (seconds)

    # ==================== CORS Settings ====================
    CORS_ORIGINS: str = "http://localhost:3000"  # Comma-separated allowed origins

    # ==================== Field Validation ====================
    PHONE_REGION: str = "PE"  # Region used to validate phone numbers
    BCRYPT_ROUNDS: int = 12

    # ==================== Rate Limiting ====================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "10/minute"
    RATE_LIMIT_CREATE: str = "3/minute"
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # ==================== Logging ====================
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_FILE: str | None = "app.log"  # None to disable file logging
    LOG_FORMAT: str = "console"  # "console" for dev, "json" for production

    # ==================== Monitoring ====================
    ENABLE_METRICS: bool = True

    @field_validator('DB_URL')
    @classmethod
    def validate_db_url(cls, v: str) -> str:
        """Validate that DB_URL is provided and properly formatted."""
        if not v:
            raise ValueError("DB_URL is required but not provided in environment variables")
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError("DB_URL must be a PostgreSQL (asyncpg) or SQLite (aiosqlite) connection string")
        return v

    @field_validator('PHONE_REGION')
    @classmethod
    def validate_phone_region(cls, v: str) -> str:
        """Phone regions are two-letter ISO 3166 codes."""
        v = v.strip().upper()
        if len(v) != 2 or not v.isalpha():
            raise ValueError("PHONE_REGION must be a two-letter region code such as 'PE'")
        return v

    @field_validator('BCRYPT_ROUNDS')
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        """bcrypt accepts a cost between 4 and 31."""
        if not 4 <= v <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31")
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.DB_URL.startswith("sqlite")

    def get_cors_origins(self) -> list[str]:
        """Parse CORS_ORIGINS into a list of allowed origins."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


def get_env_file() -> str | None:
    """Determine which .env file to load based on environment variables.

    Returns:
        None if SKIP_ENV_FILE is set (Docker/direct env vars) or the file is missing
        .env.{APP_ENV} file path otherwise (defaults to .env.dev)
    """
    if os.getenv("SKIP_ENV_FILE"):
        return None
    env_file = f".env.{os.getenv('APP_ENV', 'dev')}"
    if not os.path.exists(env_file):
        return None
    return env_file


def load_settings() -> Settings:
    """Read settings from the environment and the matching .env file."""
    return Settings(_env_file=get_env_file())
