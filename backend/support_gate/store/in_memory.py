"""
In-memory support store implementation.
Suitable for development, tests and single-instance deployments.

Version: 1.0.0
"""
import asyncio
import logging
from copy import deepcopy
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .base import InvalidStatusTransition, SupportStore, paginate_summaries
from .models import (
    ChatMessage,
    ChatSessionSummary,
    EscalationRecord,
    EscalationStatus,
    ensure_aware,
    utcnow,
)

logger = logging.getLogger(__name__)


class InMemorySupportStore(SupportStore):
    """
    In-memory implementation of SupportStore.

    Features:
    - Async-safe operations using a single asyncio lock
    - Insert-if-absent escalation creation under the lock
    - Deep copy returns to prevent external mutations

    Limitations:
    - Data lost on restart
    - Not shared across multiple instances
    """

    def __init__(self):
        self.messages: Dict[str, ChatMessage] = {}
        self.session_messages: Dict[str, List[str]] = {}
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.escalations: Dict[str, EscalationRecord] = {}
        self.lock = asyncio.Lock()

        logger.info("InMemorySupportStore initialized")

    # ===========================
    # Messages
    # ===========================

    async def add_message(self, message: ChatMessage) -> None:
        async with self.lock:
            self.messages[message.id] = deepcopy(message)
            self.session_messages.setdefault(message.session_id, []).append(message.id)
            logger.debug(f"Stored message {message.id} for session {message.session_id}")

    async def get_session_messages(self, session_id: str) -> List[ChatMessage]:
        async with self.lock:
            message_ids = self.session_messages.get(session_id, [])
            messages = [deepcopy(self.messages[mid]) for mid in message_ids]

        return sorted(messages, key=lambda m: m.timestamp)

    async def mark_message_escalated(self, message_id: str, escalated_at: datetime) -> bool:
        async with self.lock:
            message = self.messages.get(message_id)
            if message is None:
                logger.warning(f"Cannot flag non-existent message {message_id}")
                return False

            message.is_escalated = True
            message.escalated_at = ensure_aware(escalated_at)
            return True

    async def count_messages_since(self, since: datetime) -> int:
        since = ensure_aware(since)
        async with self.lock:
            return sum(1 for m in self.messages.values() if m.timestamp >= since)

    async def list_message_participants(self) -> List[Tuple[str, Optional[str]]]:
        async with self.lock:
            return [(m.session_id, m.user_id) for m in self.messages.values()]

    # ===========================
    # Session summaries
    # ===========================

    async def merge_session_summary(self, session_id: str, fields: Dict[str, Any]) -> None:
        async with self.lock:
            summary = self.sessions.setdefault(session_id, {"session_id": session_id})
            summary.update(deepcopy(fields))
            summary["session_id"] = session_id

            logger.debug(
                f"Merged session summary {session_id} (fields: {list(fields.keys())})"
            )

    async def get_session_summary(self, session_id: str) -> Optional[ChatSessionSummary]:
        async with self.lock:
            summary = self.sessions.get(session_id)
            if summary is None:
                return None
            return ChatSessionSummary(**deepcopy(summary))

    async def count_sessions(self) -> int:
        async with self.lock:
            return len(self.sessions)

    async def list_session_owners(self) -> List[str]:
        async with self.lock:
            return [
                summary["user_id"] for summary in self.sessions.values()
                if summary.get("user_id")
            ]

    async def list_session_summaries(
        self,
        limit: int,
        cursor: Optional[str] = None
    ) -> Tuple[List[ChatSessionSummary], Optional[str]]:
        async with self.lock:
            summaries = [ChatSessionSummary(**deepcopy(s)) for s in self.sessions.values()]
        return paginate_summaries(summaries, limit, cursor)

    # ===========================
    # Escalations
    # ===========================

    async def create_escalation_if_absent(
        self,
        record: EscalationRecord
    ) -> Tuple[EscalationRecord, bool]:
        async with self.lock:
            existing = self.escalations.get(record.session_id)
            if existing is not None:
                return deepcopy(existing), False

            self.escalations[record.session_id] = deepcopy(record)
            logger.info(f"Created escalation for session {record.session_id}")
            return deepcopy(record), True

    async def get_escalation(self, session_id: str) -> Optional[EscalationRecord]:
        async with self.lock:
            record = self.escalations.get(session_id)
            return deepcopy(record) if record else None

    async def list_escalations(self) -> List[EscalationRecord]:
        async with self.lock:
            records = [deepcopy(r) for r in self.escalations.values()]
        return sorted(records, key=lambda r: r.escalated_at, reverse=True)

    async def count_escalations(self, status: Optional[EscalationStatus] = None) -> int:
        async with self.lock:
            if status is None:
                return len(self.escalations)
            return sum(1 for r in self.escalations.values() if r.status == status)

    async def advance_escalation(
        self,
        session_id: str,
        status: EscalationStatus,
        resolved_by: Optional[str] = None,
        at: Optional[datetime] = None
    ) -> Optional[EscalationRecord]:
        async with self.lock:
            record = self.escalations.get(session_id)
            if record is None:
                return None

            if not record.status.can_advance_to(status):
                raise InvalidStatusTransition(record.status, status)

            updated = record.model_copy(deep=True)
            updated.status = status
            if status == EscalationStatus.RESOLVED:
                updated.resolved_at = ensure_aware(at) if at else utcnow()
                updated.resolved_by = resolved_by

            self.escalations[session_id] = updated
            logger.info(f"Escalation {session_id}: {record.status.value} -> {status.value}")
            return deepcopy(updated)

    # ===========================
    # Lifecycle
    # ===========================

    async def ping(self) -> bool:
        return True

    async def get_stats(self) -> Dict[str, Any]:
        async with self.lock:
            return {
                "store_type": "in_memory",
                "messages": len(self.messages),
                "sessions": len(self.sessions),
                "escalations": len(self.escalations),
            }


__all__ = ['InMemorySupportStore']
