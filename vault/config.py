# vault/config.py
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # App
    APP_ENV: Literal["dev", "prod", "staging"] = "dev"

    # Admin secret. Left unset, login fails closed with a CONFIG error.
    ADMIN_PASSWORD: Optional[str] = None

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # Sessions
    SESSION_TTL_SECONDS: int = 30 * 24 * 3600  # 30 days, never refreshed
    SESSION_COOKIE: str = "sess"
    COOKIE_SECURE: bool = True

    # Records
    SOON_THRESHOLD_DAYS: int = 7

    # Login throttling
    LOGIN_RATE_LIMIT: int = 10
    LOGIN_RATE_WINDOW_SECONDS: int = 60

    # read .env and ignore any extra keys so this doesn't break again
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

settings = Settings()
