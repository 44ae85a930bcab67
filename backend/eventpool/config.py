"""Application configuration via environment variables."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from .env or environment."""

    DATABASE_URL: str = "sqlite:///./eventpool.db"
    STORE_BACKEND: str = "memory"  # memory | sql
    STORE_RETRY_ATTEMPTS: int = 3
    STORE_RETRY_BACKOFF_SECONDS: float = 0.05
    STORE_RETRY_MAX_BACKOFF_SECONDS: float = 1.0
    UNLIMITED_ENTRANTS: int = 999
    LOTTERY_SEED: Optional[int] = None
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000"

    class Config:
        env_file = ".env"


settings = Settings()
