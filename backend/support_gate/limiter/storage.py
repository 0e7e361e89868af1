"""
Storage backends for limiter records.

The sliding-window state machine is identical on every side; only the
lifetime of its records differs. A form limiter keeps records for the
lifetime of one UI session, the server gate keeps them for the lifetime of
the process.

Version: 1.0.0
"""
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Dict, Iterator, Optional, Tuple
import logging

from .policy import LimiterRecord

logger = logging.getLogger(__name__)


class LimiterStorage(ABC):
    """
    Abstract per-key record storage.

    Records handed out are live objects; only SlidingWindowLimiter may
    mutate them.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[LimiterRecord]:
        """Return the record for key, or None."""
        pass

    @abstractmethod
    def put(self, key: str, record: LimiterRecord) -> None:
        """Store the record for key."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove the record for key. Returns True if it existed."""
        pass

    @abstractmethod
    def items(self) -> Iterator[Tuple[str, LimiterRecord]]:
        """Iterate over a snapshot of (key, record) pairs."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass


class InMemoryLimiterStorage(LimiterStorage):
    """Unbounded dict storage. Suitable when the key space is small (one form, one tab)."""

    def __init__(self):
        self._records: Dict[str, LimiterRecord] = {}

    def get(self, key: str) -> Optional[LimiterRecord]:
        return self._records.get(key)

    def put(self, key: str, record: LimiterRecord) -> None:
        self._records[key] = record

    def delete(self, key: str) -> bool:
        return self._records.pop(key, None) is not None

    def items(self) -> Iterator[Tuple[str, LimiterRecord]]:
        return iter(list(self._records.items()))

    def __len__(self) -> int:
        return len(self._records)


class BoundedLimiterStorage(LimiterStorage):
    """
    LRU-bounded storage for process-wide limiters keyed by client address.

    When max_keys is reached the least recently touched record is evicted.
    """

    def __init__(self, max_keys: int = 100_000):
        if max_keys < 1:
            raise ValueError("max_keys must be >= 1")

        self._records: "OrderedDict[str, LimiterRecord]" = OrderedDict()
        self.max_keys = max_keys
        self.evictions = 0

        logger.info(f"BoundedLimiterStorage initialized (max_keys={max_keys})")

    def get(self, key: str) -> Optional[LimiterRecord]:
        record = self._records.get(key)
        if record is not None:
            self._records.move_to_end(key)
        return record

    def put(self, key: str, record: LimiterRecord) -> None:
        if key in self._records:
            self._records[key] = record
            self._records.move_to_end(key)
            return

        if len(self._records) >= self.max_keys:
            evicted_key, _ = self._records.popitem(last=False)
            self.evictions += 1
            logger.info(f"Evicted limiter record {evicted_key} (capacity {self.max_keys})")

        self._records[key] = record

    def delete(self, key: str) -> bool:
        return self._records.pop(key, None) is not None

    def items(self) -> Iterator[Tuple[str, LimiterRecord]]:
        return iter(list(self._records.items()))

    def __len__(self) -> int:
        return len(self._records)


__all__ = ['LimiterStorage', 'InMemoryLimiterStorage', 'BoundedLimiterStorage']
