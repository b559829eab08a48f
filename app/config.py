"""Configuration settings for the Usuarios API."""

import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "3000"))

    # Database
    PRIMARY_DATABASE_URL: str = os.getenv(
        "PRIMARY_DATABASE_URL", "mysql+pymysql://root:@localhost:3306/boss_budget_db"
    )
    FALLBACK_DATABASE_PATH: str = os.getenv("FALLBACK_DATABASE_PATH", "products_local.db")
    DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "5"))
    DB_POOL_TIMEOUT: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    DB_POOL_RECYCLE: int = int(os.getenv("DB_POOL_RECYCLE", "3600"))
    DB_READY_ATTEMPTS: int = int(os.getenv("DB_READY_ATTEMPTS", "10"))
    DB_READY_INTERVAL: float = float(os.getenv("DB_READY_INTERVAL", "0.5"))

    # Security
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "10"))
    AUTH_RATE_LIMIT: str = os.getenv("AUTH_RATE_LIMIT", "10/minute")
    MAX_BODY_SIZE_MB: int = int(os.getenv("MAX_BODY_SIZE_MB", "10"))

    # Application
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    def validate(self) -> list[str]:
        """Validate settings and return list of warnings."""
        warnings = []
        if self.DB_POOL_SIZE < 1:
            warnings.append("DB_POOL_SIZE must be at least 1 - using 1")
        if self.APP_ENV == "production" and self.DEBUG:
            warnings.append("DEBUG is enabled in production - SQL statements will be logged")
        if self.BCRYPT_ROUNDS < 10:
            warnings.append(f"BCRYPT_ROUNDS={self.BCRYPT_ROUNDS} is below the recommended cost factor of 10")
        return warnings


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
