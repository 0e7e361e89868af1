"""
Rate-limit policy configuration.
Each call site (login, signup, escalation, admin endpoints) gets its own
sliding-window policy, overridable through RATE_LIMIT_* environment variables.

Version: 1.0.0
"""
from typing import Dict
import logging

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..limiter.policy import LimiterPolicy

logger = logging.getLogger(__name__)


POLICY_NAMES = (
    "login",
    "signup",
    "password_reset",
    "chat_escalation",
    "admin_stats",
    "admin_data",
    "admin_actions",
)


class RateLimitSettings(BaseSettings):
    """
    Sliding-window policies per call site.

    Every policy is a (max_attempts, window_ms, lockout_ms) triple.
    """

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # ===========================
    # Authentication forms
    # ===========================

    login_max_attempts: int = Field(default=5, ge=1, le=100)
    login_window_ms: int = Field(default=60_000, gt=0)
    login_lockout_ms: int = Field(default=300_000, ge=0)

    signup_max_attempts: int = Field(default=5, ge=1, le=100)
    signup_window_ms: int = Field(default=60_000, gt=0)
    signup_lockout_ms: int = Field(default=300_000, ge=0)

    password_reset_max_attempts: int = Field(default=3, ge=1, le=100)
    password_reset_window_ms: int = Field(default=60_000, gt=0)
    password_reset_lockout_ms: int = Field(default=300_000, ge=0)

    # ===========================
    # Chat
    # ===========================

    chat_escalation_max_attempts: int = Field(default=5, ge=1, le=1000)
    chat_escalation_window_ms: int = Field(default=60_000, gt=0)
    chat_escalation_lockout_ms: int = Field(default=60_000, ge=0)

    # ===========================
    # Admin endpoints
    # ===========================

    admin_stats_max_attempts: int = Field(default=30, ge=1, le=1000)
    admin_stats_window_ms: int = Field(default=60_000, gt=0)
    admin_stats_lockout_ms: int = Field(default=60_000, ge=0)

    admin_data_max_attempts: int = Field(default=30, ge=1, le=1000)
    admin_data_window_ms: int = Field(default=60_000, gt=0)
    admin_data_lockout_ms: int = Field(default=60_000, ge=0)

    admin_actions_max_attempts: int = Field(default=10, ge=1, le=1000)
    admin_actions_window_ms: int = Field(default=60_000, gt=0)
    admin_actions_lockout_ms: int = Field(default=60_000, ge=0)

    @model_validator(mode='after')
    def warn_short_lockouts(self) -> 'RateLimitSettings':
        """A lockout shorter than its window pardons callers early."""
        for name in POLICY_NAMES:
            window_ms = getattr(self, f"{name}_window_ms")
            lockout_ms = getattr(self, f"{name}_lockout_ms")
            if lockout_ms < window_ms:
                logger.warning(
                    f"Rate limit policy '{name}' has lockout ({lockout_ms}ms) "
                    f"shorter than its window ({window_ms}ms)"
                )
        return self

    def policy(self, name: str) -> LimiterPolicy:
        """
        Build the policy for a call site.

        Args:
            name: One of POLICY_NAMES

        Returns:
            LimiterPolicy

        Raises:
            KeyError: If the name is unknown
        """
        if name not in POLICY_NAMES:
            raise KeyError(f"Unknown rate limit policy: {name}")

        return LimiterPolicy(
            max_attempts=getattr(self, f"{name}_max_attempts"),
            window_ms=getattr(self, f"{name}_window_ms"),
            lockout_ms=getattr(self, f"{name}_lockout_ms")
        )

    def all_policies(self) -> Dict[str, LimiterPolicy]:
        return {name: self.policy(name) for name in POLICY_NAMES}


rate_limit_settings = RateLimitSettings()
