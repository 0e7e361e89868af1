"""
Configuration package.
"""
from .settings import Settings, get_settings, settings
from .rate_limit_settings import RateLimitSettings, rate_limit_settings, POLICY_NAMES

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "RateLimitSettings",
    "rate_limit_settings",
    "POLICY_NAMES",
]
