from functools import lru_cache
from typing import Literal

from pydantic import computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Newsletter Delivery Service"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = True
    API_V1_PREFIX: str = "/api/v1"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Security (operator tokens)
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "newsletter"
    POSTGRES_PASSWORD: str = "newsletter"
    POSTGRES_DB: str = "newsletter"

    @computed_field
    @property
    def DATABASE_URL(self) -> str:
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Redis (Celery broker and result backend)
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str | None = None
    REDIS_DB: int = 0

    @computed_field
    @property
    def REDIS_URL(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # ===========================================
    # Email delivery
    # ===========================================
    # resend: Resend SDK, one message per call (~1.5 req/sec ceiling)
    # smtp: plain SMTP relay with STARTTLS
    EMAIL_PROVIDER: Literal["resend", "smtp"] = "resend"

    RESEND_API_KEY: str | None = None

    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None

    NEWSLETTER_FROM_EMAIL: str = "Newsletter <newsletter@example.com>"

    # Minimum pause before every outbound message, in milliseconds
    NEWSLETTER_SEND_INTERVAL_MS: int = 600

    # Segment assigned when a subscribe request names none
    DEFAULT_SEGMENT: str = "newsletter"

    # Public front-end site (unsubscribe pages)
    SITE_URL: str = "http://localhost:3000"
    # Public address of this API, used for the tracking beacon by default
    PUBLIC_API_URL: str = "http://localhost:8000"
    TRACKING_BASE_URL: str | None = None
    UNSUBSCRIBE_PATH: str = "/unsubscribe"
    UNSUBSCRIBED_PAGE_PATH: str = "/newsletter/unsubscribed"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    @field_validator("SITE_URL", "PUBLIC_API_URL", "TRACKING_BASE_URL")
    @classmethod
    def normalize_base_url(cls, value: str | None) -> str | None:
        if not value:
            return value
        trimmed = value.strip().rstrip("/")
        if trimmed.startswith("http://") or trimmed.startswith("https://"):
            return trimmed
        return f"https://{trimmed}"

    @property
    def send_interval_seconds(self) -> float:
        return max(self.NEWSLETTER_SEND_INTERVAL_MS, 0) / 1000


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
