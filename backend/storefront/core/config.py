"""Application configuration using Pydantic BaseSettings"""
from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Stripe (required)
    STRIPE_SECRET_KEY: str
    STRIPE_WEBHOOK_SECRET: str

    # Database (required)
    DATABASE_URL: str
    DATABASE_SERVICE_ROLE_KEY: str
    DATABASE_ANON_KEY: str

    # Site & service URLs
    ENVIRONMENT: str = "development"
    SITE_URL: str = "http://localhost:3000"
    FUNCTIONS_BASE_URL: str = "http://localhost:8000"
    CORS_ALLOWED_ORIGINS: str = "*"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Webhook processing
    # When true the event is processed before the acknowledgement is sent, so a
    # failure returns 500 and Stripe redelivers the event.
    WEBHOOK_PROCESS_INLINE: bool = False
    NOTIFICATION_TIMEOUT_SECONDS: float = 10.0

    # Email (Resend)
    RESEND_API_KEY: str = ""
    RESEND_FROM_EMAIL: str = "no-reply@storefront.local"

    # OpenTelemetry
    OTEL_EXPORTER_OTLP_ENDPOINT: str = ""
    OTEL_SERVICE_NAME: str = "storefront-backend"
    OTEL_ENVIRONMENT: str = "development"

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @field_validator(
        "STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET", "DATABASE_URL",
        "DATABASE_SERVICE_ROLE_KEY", "DATABASE_ANON_KEY"
    )
    @classmethod
    def check_required_secret(cls, v, info):
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} must not be empty")
        return v.strip()

    @field_validator("FUNCTIONS_BASE_URL", "SITE_URL")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def service_tokens(self) -> List[str]:
        """Bearer tokens accepted on the service-to-service notification endpoints"""
        return [self.DATABASE_ANON_KEY, self.DATABASE_SERVICE_ROLE_KEY]


@lru_cache
def get_settings() -> Settings:
    """Build settings once per process"""
    return Settings()
