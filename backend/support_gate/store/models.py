"""
Store-level records for messages, session summaries and escalations.
Validated with Pydantic; serialized to JSON by the Redis store.

Version: 1.0.0
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class EscalationStatus(str, Enum):
    """Escalation lifecycle. Only ever advances forward."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    def can_advance_to(self, target: "EscalationStatus") -> bool:
        """True if target is strictly later in the lifecycle."""
        return target.rank > self.rank


_STATUS_ORDER = [
    EscalationStatus.PENDING,
    EscalationStatus.IN_PROGRESS,
    EscalationStatus.RESOLVED,
]


class ChatMessage(BaseModel):
    """A single chat message as stored."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), min_length=1, max_length=255)
    session_id: str = Field(..., min_length=1, max_length=255)
    user_id: Optional[str] = Field(None, max_length=255)
    role: str = Field(default="user", max_length=32)
    content: str = Field(default="", max_length=8000)
    timestamp: datetime = Field(default_factory=utcnow)
    is_escalated: bool = False
    escalated_at: Optional[datetime] = None

    @field_validator('timestamp')
    @classmethod
    def validate_timestamp(cls, v: datetime) -> datetime:
        return ensure_aware(v)


class EscalationRecord(BaseModel):
    """
    Request for human attention on a chat session.

    At most one exists per session_id.
    """

    model_config = ConfigDict(use_enum_values=False)

    session_id: str = Field(..., min_length=1, max_length=255)
    user_id: str = Field(..., min_length=1, max_length=255)
    user_email: str = Field(default="Unknown", max_length=320)
    user_name: str = Field(default="Unknown User", max_length=255)
    escalated_at: datetime = Field(default_factory=utcnow)
    status: EscalationStatus = EscalationStatus.PENDING
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = Field(None, max_length=320)

    @field_validator('escalated_at')
    @classmethod
    def validate_escalated_at(cls, v: datetime) -> datetime:
        return ensure_aware(v)


class ChatSessionSummary(BaseModel):
    """
    Denormalized projection of a chat session used for fast listings.

    Unknown fields are kept so merge-writes never lose data written by
    other producers.
    """

    model_config = ConfigDict(extra="allow")

    session_id: str = Field(..., min_length=1, max_length=255)
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    message_count: int = 0
    last_message_at: Optional[datetime] = None
    escalation_status: Optional[EscalationStatus] = None
    is_escalated: bool = False
    escalated_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None


__all__ = [
    'EscalationStatus',
    'ChatMessage',
    'EscalationRecord',
    'ChatSessionSummary',
    'utcnow',
    'ensure_aware',
]
