"""
Advisory limiter for a single form or UI action.

Mirrors what a login or signup form enforces locally before it ever
reaches the server gate: a handful of attempts per minute, then a lockout
with a visible countdown. Each instance owns its own storage, so its
records live exactly as long as the UI session that created it.
"""
import math
from typing import TYPE_CHECKING, Optional

from .policy import LimiterPolicy
from .sliding_window import SlidingWindowLimiter, current_time_ms
from .storage import InMemoryLimiterStorage

if TYPE_CHECKING:
    from ..config.rate_limit_settings import RateLimitSettings

DEFAULT_FORM_POLICY = LimiterPolicy(
    max_attempts=5,
    window_ms=60_000,
    lockout_ms=300_000
)


def policy_for_action(action: str, limits: Optional["RateLimitSettings"] = None) -> LimiterPolicy:
    """Configured policy named after the action, else DEFAULT_FORM_POLICY."""
    # config imports the limiter package, so resolve settings lazily
    from ..config.rate_limit_settings import POLICY_NAMES, rate_limit_settings

    if action not in POLICY_NAMES:
        return DEFAULT_FORM_POLICY
    return (limits if limits is not None else rate_limit_settings).policy(action)


class FormRateLimiter:
    """Per-form limiter with lockout countdown helpers."""

    def __init__(
        self,
        action: str,
        policy: Optional[LimiterPolicy] = None,
        limits: Optional["RateLimitSettings"] = None
    ):
        """
        Args:
            action: Form or action name (e.g. "login", "signup")
            policy: Explicit policy; overrides everything else
            limits: Configured policies (module rate_limit_settings by default),
                consulted when action names one of them
        """
        self.action = action
        self.policy = policy or policy_for_action(action, limits)
        self._limiter = SlidingWindowLimiter(self.policy, storage=InMemoryLimiterStorage())

    def is_locked(self, now: Optional[int] = None) -> bool:
        """True while the form is locked out."""
        return self._limiter.check_locked(self.action, now).locked

    def remaining_seconds(self, now: Optional[int] = None) -> int:
        """Lockout countdown, rounded up to whole seconds (0 when unlocked)."""
        status = self._limiter.check_locked(self.action, now)
        if not status.locked:
            return 0
        return int(math.ceil(status.remaining_ms / 1000))

    def attempts_remaining(self, now: Optional[int] = None) -> int:
        now = current_time_ms() if now is None else now
        record = self._limiter.snapshot(self.action)
        if record.is_locked(now):
            return 0
        if record.locked_until is not None or not record.window_open(now, self.policy.window_ms):
            return self.policy.max_attempts
        return max(0, self.policy.max_attempts - record.attempt_count)

    def record_attempt(self, now: Optional[int] = None) -> bool:
        """Record a submission. False means the form must not submit."""
        return self._limiter.record_attempt(self.action, now)

    def reset(self) -> None:
        """Call after a verified success."""
        self._limiter.reset(self.action)


def format_lockout_time(seconds: int) -> str:
    """Human-readable lockout countdown."""
    if seconds < 60:
        return f"{seconds} seconds" if seconds != 1 else "1 second"
    minutes = int(math.ceil(seconds / 60))
    return f"{minutes} minutes" if minutes != 1 else "1 minute"


__all__ = ['FormRateLimiter', 'DEFAULT_FORM_POLICY', 'policy_for_action', 'format_lockout_time']
