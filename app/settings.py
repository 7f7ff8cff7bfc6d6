"""Application settings using Pydantic BaseSettings."""

import os
import re

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_async_database_url() -> str:
    """Get database URL converted for asyncpg driver."""
    url = os.environ.get("DATABASE_URL", "") or settings.database_url
    # Convert postgres:// to postgresql+asyncpg:// for SQLAlchemy async
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql://") and "+asyncpg" not in url:
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    # asyncpg doesn't support sslmode, it uses ssl parameter
    if "sslmode=" in url:
        url = re.sub(r'[?&]sslmode=[^&]*', '', url)
        url = url.rstrip('?&')
    return url


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./telephony.db"

    # Redis (optional)
    redis_url: str = "redis://localhost:6379/0"
    redis_enabled: bool = False  # Disable Redis by default for dev

    # JWT
    jwt_secret_key: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 30

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    api_v1_prefix: str = "/api/v1"
    frontend_url: str = "http://localhost:3000"

    # Field encryption (Fernet key for stored OAuth tokens)
    field_encryption_key: str | None = None

    # RingCentral
    ringcentral_server_url: str = "https://platform.ringcentral.com"
    ringcentral_client_id: str | None = None
    ringcentral_client_secret: str | None = None
    ringcentral_redirect_uri: str | None = None
    ringcentral_webhook_secret: str | None = None
    ringcentral_main_number: str | None = None  # Default ring-out "from" number
    ringcentral_oauth_scope: str = "ReadCallLog CallControl SMS"

    # Telephony behaviour
    telephony_default_region: str = "US"
    telephony_http_timeout_seconds: float = 10.0
    telephony_refresh_window_hours: int = 24
    telephony_oauth_state_ttl_seconds: int = 600
    telephony_retry_on_unauthorized: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


settings = Settings()
