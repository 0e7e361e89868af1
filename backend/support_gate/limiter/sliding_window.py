"""
Sliding-window limiter with lockout.

One state machine serves both the advisory form limiter and the
authoritative server gate; they differ only in the storage backend.

Rules:
- A window is the half-open interval [start, start + window_ms).
- Reaching max_attempts inside a window locks the key for lockout_ms.
  The attempt that reaches the threshold is itself rejected.
- While locked, attempts are rejected and not counted.
- Once a lockout expires the key is fully pardoned.

Version: 1.0.0
"""
import logging
import threading
import time
from typing import Optional

from .policy import AttemptResult, LimiterPolicy, LimiterRecord, LockStatus
from .storage import InMemoryLimiterStorage, LimiterStorage

logger = logging.getLogger(__name__)


def current_time_ms() -> int:
    """Wall clock in integer milliseconds."""
    return int(time.time() * 1000)


class SlidingWindowLimiter:
    """
    Per-key sliding-window limiter.

    All operations on the same instance are serialized by a re-entrant
    mutex, so two concurrent attempts can never both slip under the
    threshold. Operations never block on I/O.
    """

    def __init__(
        self,
        policy: LimiterPolicy,
        storage: Optional[LimiterStorage] = None
    ):
        """
        Initialize limiter.

        Args:
            policy: Default policy, used when an operation gets no override
            storage: Record storage (defaults to an unbounded in-memory map)
        """
        self.policy = policy
        self.storage = storage if storage is not None else InMemoryLimiterStorage()
        self._lock = threading.RLock()

    def _resolve(self, policy: Optional[LimiterPolicy]) -> LimiterPolicy:
        return policy if policy is not None else self.policy

    def check_locked(self, key: str, now: Optional[int] = None) -> LockStatus:
        """
        Report whether key is locked out.

        An expired lockout clears the record entirely.
        """
        now = current_time_ms() if now is None else now

        with self._lock:
            record = self.storage.get(key)
            if record is None or record.locked_until is None:
                return LockStatus(locked=False)

            if record.locked_until > now:
                return LockStatus(locked=True, remaining_ms=record.locked_until - now)

            self.storage.delete(key)
            logger.debug(f"Lockout expired for {key}, record cleared")
            return LockStatus(locked=False)

    def record_attempt(
        self,
        key: str,
        now: Optional[int] = None,
        policy: Optional[LimiterPolicy] = None
    ) -> bool:
        """
        Record an attempt for key.

        Returns:
            True if the attempt is allowed
        """
        now = current_time_ms() if now is None else now
        policy = self._resolve(policy)

        with self._lock:
            record = self.storage.get(key)

            if record is not None and record.is_locked(now):
                return False

            pardoned = record is not None and record.locked_until is not None
            if record is None or pardoned or not record.window_open(now, policy.window_ms):
                self.storage.put(
                    key,
                    LimiterRecord(attempt_count=1, window_started_at=now, locked_until=None)
                )
                return True

            record.attempt_count += 1

            if record.attempt_count >= policy.max_attempts:
                record.locked_until = now + policy.lockout_ms
                logger.warning(
                    f"Limiter key {key} locked for {policy.lockout_ms}ms "
                    f"after {record.attempt_count} attempts"
                )
                return False

            return True

    def attempt(
        self,
        key: str,
        now: Optional[int] = None,
        policy: Optional[LimiterPolicy] = None
    ) -> AttemptResult:
        """
        Check the lock, then record an attempt, as one critical section.

        A locked key is reported without being counted again.
        """
        now = current_time_ms() if now is None else now

        with self._lock:
            status = self.check_locked(key, now)
            if status.locked:
                allowed = False
            else:
                allowed = self.record_attempt(key, now, policy)

            record = self.storage.get(key) or LimiterRecord()
            return AttemptResult(
                allowed=allowed,
                locked=record.is_locked(now),
                attempt_count=record.attempt_count,
                window_started_at=record.window_started_at,
                locked_until=record.locked_until
            )

    def snapshot(self, key: str) -> LimiterRecord:
        """Copy of the current record for key (empty if absent)."""
        with self._lock:
            record = self.storage.get(key)
            if record is None:
                return LimiterRecord()
            return LimiterRecord(
                attempt_count=record.attempt_count,
                window_started_at=record.window_started_at,
                locked_until=record.locked_until
            )

    def reset(self, key: str) -> None:
        """Forgive every prior attempt for key (e.g. after a successful login)."""
        with self._lock:
            self.storage.delete(key)

    def purge_expired(self, now: Optional[int] = None, window_ms: Optional[int] = None) -> int:
        """
        Drop records whose window and lockout have both passed.

        Args:
            now: Current time in ms
            window_ms: Window length to judge staleness by (defaults to the
                default policy's window)

        Returns:
            Number of records removed
        """
        now = current_time_ms() if now is None else now
        window_ms = window_ms if window_ms is not None else self.policy.window_ms

        with self._lock:
            stale = [
                key for key, record in self.storage.items()
                if record.is_stale(now, window_ms)
            ]
            for key in stale:
                self.storage.delete(key)

        if stale:
            logger.info(f"Purged {len(stale)} stale limiter records")

        return len(stale)

    def __len__(self) -> int:
        return len(self.storage)


__all__ = ['SlidingWindowLimiter', 'current_time_ms']
