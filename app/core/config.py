# =====================================================
# FILE: app/core/config.py
# Application Settings (environment + .env)
# =====================================================

from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Client Delivery API"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database components (MySQL by default)
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "delivery"
    DB_PASSWORD: str = ""
    DB_NAME: str = "client_delivery"

    # Full URL override, e.g. "sqlite:///./delivery.db" for local runs
    DATABASE_URL: Optional[str] = None

    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_PRE_PING: bool = True
    AUTO_CREATE_TABLES: bool = False

    CORS_ORIGINS: List[str] = ["*"]

    # Set by the upstream identity provider
    SESSION_COOKIE_NAME: str = "delivery_user_email"

    # Lifecycle behaviour
    AUTO_START_NEXT_PHASE: bool = True
    PROJECT_CODE_LENGTH: int = 6

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
