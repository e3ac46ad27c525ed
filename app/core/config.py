from pydantic_settings import BaseSettings
from typing import List
from decimal import Decimal
from functools import lru_cache


class Settings(BaseSettings):
    # Project
    PROJECT_NAME: str = "Wound Care Commission API"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Security
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Database
    DATABASE_URL: str
    DB_ECHO: bool = False

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # Pagination
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # Commissions
    COMMISSION_DEFAULT_RATE: Decimal = Decimal("0.05")
    COMMISSION_PARENT_SHARE: Decimal = Decimal("0.20")
    COMMISSION_CALCULATION_TIMEOUT_SECONDS: float = 30.0
    COMMISSION_TRANSACTION_RETRIES: int = 3
    COMMISSION_RETRY_BACKOFF_SECONDS: float = 0.5

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
