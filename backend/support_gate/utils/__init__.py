"""
Utility modules for the application.
Provides the TTL cache, telemetry and middleware.
"""
from .ttl_cache import TTLCache
from .telemetry import (
    setup_telemetry,
    track_rate_limit,
    track_escalation,
    track_stats_cache,
    update_limiter_records,
)
from .middleware import (
    RequestIDMiddleware,
    TimingMiddleware,
    ErrorHandlingMiddleware,
)

__all__ = [
    # Cache
    'TTLCache',

    # Telemetry
    'setup_telemetry',
    'track_rate_limit',
    'track_escalation',
    'track_stats_cache',
    'update_limiter_records',

    # Middleware
    'RequestIDMiddleware',
    'TimingMiddleware',
    'ErrorHandlingMiddleware',
]
