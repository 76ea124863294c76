"""Application configuration."""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings."""

    # App
    APP_NAME: str = "Dukcapil_Admin_Dashboard"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Storage
    # "memory" keeps everything in-process (dev/tests), "database" uses DATABASE_URL.
    STORAGE_BACKEND: str = "memory"
    SEED_SAMPLE_DATA: bool = True

    # Database
    DATABASE_URL: str = "sqlite:///./dukcapil_admin.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"
    AGREEMENT_SWEEP_INTERVAL_SECONDS: float = 6 * 60 * 60  # every 6 hours
    QUOTA_SWEEP_INTERVAL_SECONDS: float = 15 * 60

    # Identity: development requests run as this user (no identity provider locally).
    DEV_USER_ID: str = "admin-123"

    # Domain defaults
    LOCAL_TIMEZONE: str = "Asia/Jakarta"  # "logins today" is counted from local midnight
    ACTIVITY_DEFAULT_LIMIT: int = 50
    EXPIRING_AGREEMENT_DAYS: int = 30
    DEFAULT_USER_QUOTA: int = 100

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def uses_database(self) -> bool:
        """Whether the durable SQL repository is configured."""
        return self.STORAGE_BACKEND.strip().lower() == "database"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
