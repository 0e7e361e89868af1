"""
Limiter policy and per-key record types.
All timestamps and durations are integer milliseconds.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class LimiterPolicy:
    """Sliding-window configuration for one call site."""
    max_attempts: int
    window_ms: int
    lockout_ms: int

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.window_ms <= 0:
            raise ValueError("window_ms must be > 0")
        if self.lockout_ms < 0:
            raise ValueError("lockout_ms must be >= 0")


@dataclass
class LimiterRecord:
    """Mutable state tracked for a single limiter key."""
    attempt_count: int = 0
    window_started_at: Optional[int] = None
    locked_until: Optional[int] = None

    def is_locked(self, now: int) -> bool:
        return self.locked_until is not None and self.locked_until > now

    def window_open(self, now: int, window_ms: int) -> bool:
        """True while `now` falls in [window_started_at, window_started_at + window_ms)."""
        if self.window_started_at is None:
            return False
        return now - self.window_started_at < window_ms

    def is_stale(self, now: int, window_ms: int) -> bool:
        """Neither the window nor a lockout is active any more."""
        return not self.is_locked(now) and not self.window_open(now, window_ms)


@dataclass(frozen=True)
class LockStatus:
    """Result of a lock check."""
    locked: bool
    remaining_ms: int = 0


@dataclass(frozen=True)
class AttemptResult:
    """Outcome of a combined lock check and attempt, with a record snapshot."""
    allowed: bool
    locked: bool
    attempt_count: int
    window_started_at: Optional[int]
    locked_until: Optional[int]


__all__ = ['LimiterPolicy', 'LimiterRecord', 'LockStatus', 'AttemptResult']
