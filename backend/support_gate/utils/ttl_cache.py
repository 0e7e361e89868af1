"""
Single-entry read-through cache with a time-to-live.

Backed by cachetools.TTLCache driven by the caller's clock, so expiry is
decided by the `now` passed in rather than by wall time. The most recent
value is kept after expiry for callers that may serve it stale.

Concurrent callers that find the entry expired may each recompute; the
last one to finish wins. No de-duplication is attempted.
"""
from typing import Awaitable, Callable, Generic, Optional, Tuple, TypeVar

from cachetools import TTLCache as ExpiringCache

T = TypeVar("T")

_ENTRY = "value"


class TTLCache(Generic[T]):
    """Holds one value and the instant (ms) it expires."""

    def __init__(self):
        self._now = 0
        self._ttl_ms: Optional[int] = None
        self._entries: Optional[ExpiringCache] = None
        self._last: Optional[T] = None
        self._expires_at: Optional[int] = None

    def _clock(self) -> int:
        return self._now

    def _at(self, now: int) -> None:
        # cachetools expects a non-decreasing timer
        self._now = max(self._now, now)

    def _cache_for(self, ttl_ms: int) -> ExpiringCache:
        """Expiring map for ttl_ms; a TTL change drops the cached entry."""
        if self._entries is None or self._ttl_ms != ttl_ms:
            self._entries = ExpiringCache(maxsize=1, ttl=ttl_ms, timer=self._clock)
            self._ttl_ms = ttl_ms
            self._expires_at = None
        return self._entries

    @property
    def expires_at(self) -> Optional[int]:
        return self._expires_at

    def has_value(self) -> bool:
        return self._expires_at is not None

    def is_fresh(self, now: int) -> bool:
        if self._entries is None:
            return False
        self._at(now)
        return _ENTRY in self._entries

    def peek(self, now: int) -> Optional[T]:
        """The cached value if still fresh, else None."""
        return self._entries[_ENTRY] if self.is_fresh(now) else None

    def last_value(self) -> Optional[T]:
        """The most recent value, fresh or not."""
        return self._last

    def store(self, value: T, ttl_ms: int, now: int) -> None:
        entries = self._cache_for(ttl_ms)
        self._at(now)
        entries[_ENTRY] = value
        self._last = value
        # cachetools times the entry from the clamped clock
        self._expires_at = self._now + ttl_ms

    def invalidate(self) -> None:
        if self._entries is not None:
            self._entries.clear()
        self._last = None
        self._expires_at = None

    async def get_or_compute_with_status(
        self,
        ttl_ms: int,
        now: int,
        compute_fn: Callable[[], Awaitable[T]]
    ) -> Tuple[T, bool]:
        """
        Return (value, hit).

        On a miss compute_fn is awaited and its result stored with
        expires_at = now + ttl_ms (now never runs behind an instant
        already seen). A failing compute_fn leaves the cache
        untouched and its error propagates.
        """
        if self._ttl_ms == ttl_ms and self.is_fresh(now):
            return self._entries[_ENTRY], True

        value = await compute_fn()
        self.store(value, ttl_ms, now)
        return value, False

    async def get_or_compute(
        self,
        ttl_ms: int,
        now: int,
        compute_fn: Callable[[], Awaitable[T]]
    ) -> T:
        value, _ = await self.get_or_compute_with_status(ttl_ms, now, compute_fn)
        return value


__all__ = ['TTLCache']
