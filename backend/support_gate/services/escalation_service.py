"""
Escalation workflow.
Promotes a chat session to "needs human attention" exactly once, and lets
back-office staff move the escalation forward.

Version: 1.0.0
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from ..config import settings
from ..exceptions import AccessDenied, EscalationNotFound, SessionNotFound, ValidationFailed
from ..store import (
    ChatSessionSummary,
    EscalationRecord,
    EscalationStatus,
    InvalidStatusTransition,
    SupportStore,
    utcnow,
)
from ..utils.telemetry import track_escalation
from .auth_service import Principal
from .store_calls import call_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EscalationOutcome:
    """Result of an escalation request."""
    session_id: str
    status: EscalationStatus
    already_escalated: bool
    escalated_at: datetime


class EscalationWorkflow:
    """
    Idempotent escalation of chat sessions.

    Steps for escalate():
    1. Read the session's messages (ownership and recency in one read)
    2. Reject callers who do not own the session
    3. Insert-if-absent the escalation record
    4. Merge-write the denormalized session summary
    5. Best effort: flag the latest message
    """

    def __init__(
        self,
        store: SupportStore,
        timeout: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize workflow.

        Args:
            store: Support store
            timeout: Per store-call timeout in seconds
            clock: Source of the current time (timezone-aware)
        """
        self.store = store
        self.timeout = timeout or settings.store_timeout_seconds
        self.clock = clock or utcnow

    async def escalate(self, session_id: str, principal: Principal) -> EscalationOutcome:
        """
        Escalate a session on behalf of its owner.

        Args:
            session_id: Chat session identifier
            principal: Verified caller

        Returns:
            EscalationOutcome (already_escalated=True on repeat calls)

        Raises:
            SessionNotFound: If the session has no messages
            AccessDenied: If the session belongs to another user
            ServiceUnavailable: On store timeout or failure
        """
        messages = await call_store(
            "get_session_messages",
            self.store.get_session_messages(session_id),
            self.timeout
        )

        if not messages:
            logger.info(f"Escalation requested for unknown session {session_id}")
            raise SessionNotFound(f"Session not found: {session_id}")

        owner = next((m.user_id for m in messages if m.user_id), None)
        latest = max(messages, key=lambda m: m.timestamp)

        if owner and owner != principal.user_id:
            logger.warning(
                f"User {principal.user_id} denied escalation of session {session_id} "
                f"owned by {owner}"
            )
            raise AccessDenied("Access denied")

        candidate = EscalationRecord(
            session_id=session_id,
            user_id=principal.user_id,
            user_email=principal.email or "Unknown",
            user_name=principal.name or principal.email or "Unknown User",
            escalated_at=self.clock(),
            status=EscalationStatus.PENDING
        )

        record, created = await call_store(
            "create_escalation_if_absent",
            self.store.create_escalation_if_absent(candidate),
            self.timeout
        )

        summary = {
            "escalation_status": record.status,
            "is_escalated": True,
            "escalated_at": record.escalated_at,
            "message_count": len(messages),
            "last_message_at": latest.timestamp,
        }
        if owner:
            summary["user_id"] = owner
            summary["user_email"] = record.user_email
            summary["user_name"] = record.user_name

        await call_store(
            "merge_session_summary",
            self.store.merge_session_summary(session_id, summary),
            self.timeout
        )

        await self._flag_latest_message(session_id, latest.id)

        track_escalation("created" if created else "existing")
        if created:
            logger.info(f"Session {session_id} escalated by {principal.user_id}")
        else:
            logger.info(f"Session {session_id} already escalated ({record.status.value})")

        return EscalationOutcome(
            session_id=session_id,
            status=record.status,
            already_escalated=not created,
            escalated_at=record.escalated_at
        )

    async def _flag_latest_message(self, session_id: str, message_id: str) -> None:
        """Display-only flag; failures are logged and dropped."""
        try:
            await call_store(
                "mark_message_escalated",
                self.store.mark_message_escalated(message_id, self.clock()),
                self.timeout
            )
        except Exception as e:
            logger.warning(
                f"Could not flag latest message {message_id} of session {session_id}: {e}"
            )

    async def advance(
        self,
        session_id: str,
        status: EscalationStatus,
        actor: Optional[str] = None
    ) -> EscalationRecord:
        """
        Move an escalation forward (back-office action).

        Repeating the current status is a no-op.

        Raises:
            EscalationNotFound: If the session was never escalated
            ValidationFailed: If the move would go backwards
        """
        now = self.clock()

        try:
            record = await call_store(
                "advance_escalation",
                self.store.advance_escalation(session_id, status, resolved_by=actor, at=now),
                self.timeout
            )
        except InvalidStatusTransition as e:
            if e.current == e.target:
                existing = await call_store(
                    "get_escalation", self.store.get_escalation(session_id), self.timeout
                )
                if existing is not None:
                    return existing
            raise ValidationFailed(str(e))

        if record is None:
            raise EscalationNotFound(f"Escalation not found: {session_id}")

        summary = {"escalation_status": record.status}
        if record.status == EscalationStatus.RESOLVED:
            summary["resolved_at"] = record.resolved_at
            summary["resolved_by"] = record.resolved_by

        await call_store(
            "merge_session_summary",
            self.store.merge_session_summary(session_id, summary),
            self.timeout
        )

        logger.info(f"Escalation {session_id} moved to {record.status.value} by {actor}")
        return record

    async def resolve(self, session_id: str, principal: Principal) -> EscalationRecord:
        """Mark an escalation resolved by an administrator."""
        return await self.advance(
            session_id,
            EscalationStatus.RESOLVED,
            actor=principal.email or principal.user_id
        )

    async def list_escalations(self) -> List[EscalationRecord]:
        """All escalations, newest first."""
        return await call_store("list_escalations", self.store.list_escalations(), self.timeout)

    async def list_sessions(
        self,
        limit: int,
        cursor: Optional[str] = None
    ) -> Tuple[List[ChatSessionSummary], Optional[str]]:
        """One page of session summaries for the back office, newest activity first."""
        return await call_store(
            "list_session_summaries",
            self.store.list_session_summaries(limit, cursor),
            self.timeout
        )


__all__ = ['EscalationWorkflow', 'EscalationOutcome']
