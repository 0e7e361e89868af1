"""
Rate limiting package.
Sliding-window limiter, its storage backends, the server gate and the
advisory form limiter.

Version: 1.0.0
"""
from .policy import LimiterPolicy, LimiterRecord, LockStatus, AttemptResult
from .storage import LimiterStorage, InMemoryLimiterStorage, BoundedLimiterStorage
from .sliding_window import SlidingWindowLimiter, current_time_ms
from .rate_gate import RateGate, RateDecision, client_address
from .form_limiter import FormRateLimiter, DEFAULT_FORM_POLICY, policy_for_action, format_lockout_time

__all__ = [
    # Types
    'LimiterPolicy',
    'LimiterRecord',
    'LockStatus',
    'AttemptResult',

    # Storage
    'LimiterStorage',
    'InMemoryLimiterStorage',
    'BoundedLimiterStorage',

    # Limiters
    'SlidingWindowLimiter',
    'RateGate',
    'RateDecision',
    'FormRateLimiter',

    # Helpers
    'client_address',
    'current_time_ms',
    'format_lockout_time',
    'DEFAULT_FORM_POLICY',
    'policy_for_action',
]
