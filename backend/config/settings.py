"""
Application settings and configuration
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application settings
    APP_NAME: str = "Menu Price Monitor API"
    VERSION: str = "1.0.0"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"

    # Server settings
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CORS settings
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    # Config storage: "file" keeps JSON documents in CONFIG_DIR, "redis" uses REDIS_URL
    CONFIG_BACKEND: str = "file"
    CONFIG_DIR: str = "config"
    REDIS_URL: str = "redis://localhost:6379"

    # Scheduler settings
    SCHEDULER_TIMEZONE: str = "Asia/Tehran"
    PRICE_UPDATE_CONCURRENCY: int = Field(default=3, ge=1)
    SESSION_HISTORY_SIZE: int = Field(default=10, ge=1)
    SCHEDULER_INIT_ATTEMPTS: int = Field(default=3, ge=1)
    SCHEDULER_INIT_RETRY_DELAY: float = 5.0
    # How long shutdown waits for an in-flight run before closing the fetcher (seconds)
    SCHEDULER_SHUTDOWN_TIMEOUT: float = 30.0

    # Retry backoff between fetch attempts (seconds)
    RETRY_BACKOFF_BASE: float = 1.0
    RETRY_BACKOFF_MAX: float = 30.0

    # Browser automation service that performs the actual menu extraction
    AUTOMATION_SERVICE_URL: str = "http://localhost:3000"
    AUTOMATION_API_KEY: Optional[str] = None
    AUTOMATION_REQUEST_TIMEOUT: float = 120.0

    # Monitoring
    LOG_LEVEL: str = "info"

    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT.lower() in ["development", "dev"]

    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT.lower() in ["production", "prod"]

    def uses_redis_config(self) -> bool:
        """Check if configuration documents live in Redis."""
        return self.CONFIG_BACKEND.lower() == "redis"

    def get_log_config(self) -> dict:
        """Get logging configuration based on environment."""
        level = self.LOG_LEVEL.upper()

        config = {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                },
                "detailed": {
                    "format": "%(asctime)s - %(name)s - %(levelname)s - %(module)s - %(funcName)s - %(message)s",
                },
            },
            "handlers": {
                "default": {
                    "formatter": "default" if self.is_production() else "detailed",
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                },
            },
            "loggers": {
                # APScheduler logs every tick at INFO
                "apscheduler": {"level": "WARNING"},
            },
            "root": {
                "level": level,
                "handlers": ["default"],
            },
        }

        return config


# Create settings instance
settings = Settings()
