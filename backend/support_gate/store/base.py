"""
Abstract support store interface.
Defines the contract for message, session-summary and escalation persistence.

Version: 1.0.0
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .models import (
    ChatMessage,
    ChatSessionSummary,
    EscalationRecord,
    EscalationStatus,
    ensure_aware,
)


class StoreError(Exception):
    """Raised when the backing store cannot serve a request."""
    pass


class InvalidStatusTransition(ValueError):
    """Raised when an escalation status would move backwards."""

    def __init__(self, current: EscalationStatus, target: EscalationStatus):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move escalation from {current.value} to {target.value}"
        )


def _listing_key(summary: ChatSessionSummary) -> Tuple[int, str]:
    """Order key: most recent activity first, then session id ascending."""
    last = summary.last_message_at
    last_ms = int(ensure_aware(last).timestamp() * 1000) if last else 0
    return -last_ms, summary.session_id


def encode_session_cursor(summary: ChatSessionSummary) -> str:
    """Cursor pointing just past summary: "<last_message_ms>_<session_id>"."""
    neg_ms, session_id = _listing_key(summary)
    return f"{-neg_ms}_{session_id}"


def decode_session_cursor(cursor: Optional[str]) -> Optional[Tuple[int, str]]:
    """Listing key encoded in cursor, or None when it is absent or malformed."""
    if not cursor:
        return None

    ts_part, _, session_id = cursor.partition("_")
    try:
        last_ms = int(ts_part)
    except ValueError:
        return None

    if not session_id:
        return None
    return -last_ms, session_id


def paginate_summaries(
    summaries: Iterable[ChatSessionSummary],
    limit: int,
    cursor: Optional[str] = None
) -> Tuple[List[ChatSessionSummary], Optional[str]]:
    """
    One page of summaries ordered by last activity (newest first).

    Returns:
        (page, next_cursor) where next_cursor is None on the last page
    """
    ordered = sorted(summaries, key=_listing_key)

    after = decode_session_cursor(cursor)
    if after is not None:
        ordered = [s for s in ordered if _listing_key(s) > after]

    page = ordered[:limit]
    has_more = len(ordered) > limit
    next_cursor = encode_session_cursor(page[-1]) if has_more and page else None
    return page, next_cursor


class SupportStore(ABC):
    """
    Abstract base class for the support document store.

    Implementations must provide async-safe operations for:
    - Appending and querying chat messages
    - Merge-writing denormalized session summaries
    - Create-once escalation records (insert-if-absent)
    - Count queries used by the stats aggregator
    """

    # ===========================
    # Messages
    # ===========================

    @abstractmethod
    async def add_message(self, message: ChatMessage) -> None:
        """Append a chat message."""
        pass

    @abstractmethod
    async def get_session_messages(self, session_id: str) -> List[ChatMessage]:
        """
        Get every message of a session.

        Args:
            session_id: Session identifier

        Returns:
            Messages in timestamp order (empty if the session is unknown)
        """
        pass

    @abstractmethod
    async def mark_message_escalated(self, message_id: str, escalated_at: datetime) -> bool:
        """
        Flag a message as escalated.

        Returns:
            True if the message exists
        """
        pass

    @abstractmethod
    async def count_messages_since(self, since: datetime) -> int:
        """Count messages with timestamp >= since."""
        pass

    @abstractmethod
    async def list_message_participants(self) -> List[Tuple[str, Optional[str]]]:
        """Project every message to (session_id, user_id)."""
        pass

    # ===========================
    # Session summaries
    # ===========================

    @abstractmethod
    async def merge_session_summary(self, session_id: str, fields: Dict[str, Any]) -> None:
        """
        Merge fields into a session summary, creating it if needed.
        Fields not named are left untouched.
        """
        pass

    @abstractmethod
    async def get_session_summary(self, session_id: str) -> Optional[ChatSessionSummary]:
        pass

    @abstractmethod
    async def count_sessions(self) -> int:
        """Count session summaries."""
        pass

    @abstractmethod
    async def list_session_owners(self) -> List[str]:
        """user_id of every session summary that has one."""
        pass

    @abstractmethod
    async def list_session_summaries(
        self,
        limit: int,
        cursor: Optional[str] = None
    ) -> Tuple[List[ChatSessionSummary], Optional[str]]:
        """
        Page through session summaries, most recent activity first.

        Args:
            limit: Page size
            cursor: next_cursor of the previous page (ignored if malformed)

        Returns:
            (summaries, next_cursor) where next_cursor is None on the last page
        """
        pass

    # ===========================
    # Escalations
    # ===========================

    @abstractmethod
    async def create_escalation_if_absent(
        self,
        record: EscalationRecord
    ) -> Tuple[EscalationRecord, bool]:
        """
        Atomically create the escalation unless one exists for its session.

        Returns:
            (stored record, created) where created is False if a record
            already existed; the existing record is returned untouched
        """
        pass

    @abstractmethod
    async def get_escalation(self, session_id: str) -> Optional[EscalationRecord]:
        pass

    @abstractmethod
    async def list_escalations(self) -> List[EscalationRecord]:
        """All escalations, newest first."""
        pass

    @abstractmethod
    async def count_escalations(self, status: Optional[EscalationStatus] = None) -> int:
        """Count escalations, optionally only those in one status."""
        pass

    @abstractmethod
    async def advance_escalation(
        self,
        session_id: str,
        status: EscalationStatus,
        resolved_by: Optional[str] = None,
        at: Optional[datetime] = None
    ) -> Optional[EscalationRecord]:
        """
        Move an escalation forward.

        Returns:
            The updated record, or None if no escalation exists

        Raises:
            InvalidStatusTransition: If status is not strictly later
        """
        pass

    # ===========================
    # Lifecycle
    # ===========================

    @abstractmethod
    async def ping(self) -> bool:
        pass

    @abstractmethod
    async def get_stats(self) -> Dict[str, Any]:
        """Store statistics for diagnostics."""
        pass

    async def close(self) -> None:
        """Release resources held by the store."""
        return None

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform health check on the store.

        Returns:
            Dictionary with health status
        """
        try:
            healthy = await self.ping()
            stats = await self.get_stats()
            return {"healthy": healthy, "stats": stats}
        except StoreError as e:
            return {"healthy": False, "error": str(e)}


__all__ = [
    'SupportStore',
    'StoreError',
    'InvalidStatusTransition',
    'paginate_summaries',
    'encode_session_cursor',
    'decode_session_cursor',
]
