"""
Application settings.
Loaded from environment variables (and an optional .env file).

Version: 1.0.0
"""
from functools import lru_cache
from typing import List
import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Core service configuration.

    Rate-limit policies are configured separately in RateLimitSettings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # ===========================
    # Application
    # ===========================

    app_name: str = Field(default="Support Gate", description="Service name")
    app_version: str = Field(default="1.0.0", description="Service version")
    environment: str = Field(default="development", description="Deployment environment")
    debug: bool = Field(default=False, description="Enable debug mode")

    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    trusted_proxies: List[str] = Field(
        default_factory=list,
        description="Peer addresses whose X-Forwarded-For / X-Real-IP headers are honoured"
    )

    # ===========================
    # Authentication
    # ===========================

    secret_key: str = Field(
        default="change-me-in-production",
        min_length=8,
        description="JWT signing secret"
    )

    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")

    jwt_expiration_hours: int = Field(
        default=24,
        ge=1,
        le=720,
        description="Access token lifetime in hours"
    )

    admin_emails: List[str] = Field(
        default_factory=list,
        description="Emails treated as administrators when no admin claim is present"
    )

    # ===========================
    # Document store
    # ===========================

    store_backend: str = Field(
        default="in_memory",
        description="Document store backend ('in_memory' or 'redis')"
    )

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )

    redis_key_prefix: str = Field(
        default="support:",
        description="Prefix for every Redis key written by the store"
    )

    store_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        le=60,
        description="Timeout applied to each store call"
    )

    # ===========================
    # Stats
    # ===========================

    stats_cache_ttl_ms: int = Field(
        default=30_000,
        ge=0,
        description="TTL of the cached stats snapshot in milliseconds"
    )

    stats_timezone: str = Field(
        default="UTC",
        description="Timezone used to find the start of 'today'"
    )

    stats_serve_stale_on_error: bool = Field(
        default=False,
        description="Serve the last snapshot when a recompute fails"
    )

    # ===========================
    # Background tasks & telemetry
    # ===========================

    limiter_purge_interval_seconds: int = Field(
        default=300,
        ge=1,
        description="Interval between purges of stale limiter records"
    )

    enable_telemetry: bool = Field(default=True, description="Expose Prometheus metrics")

    @field_validator('store_backend')
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        """Only known backends are accepted."""
        v = v.lower()
        if v not in ("in_memory", "redis"):
            raise ValueError(f"Unknown store backend: {v}")
        return v

    @field_validator('admin_emails')
    @classmethod
    def normalize_admin_emails(cls, v: List[str]) -> List[str]:
        return [email.strip().lower() for email in v if email.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
