"""Application configuration."""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://buyers:buyers123@db:5432/buyers"
    AUTO_CREATE_TABLES: bool = True

    # Security
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    # CSV import limits
    IMPORT_MAX_ROWS: int = 200
    IMPORT_MAX_BYTES: int = 5 * 1024 * 1024  # 5MB

    # Search / listing
    SEARCH_TIMEOUT_SECONDS: float = 10.0
    LIST_DEFAULT_LIMIT: int = 10
    SEARCH_DEFAULT_LIMIT: int = 20
    MAX_PAGE_LIMIT: int = 100

    # Buyer detail view
    HISTORY_PREVIEW_LIMIT: int = 10

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
