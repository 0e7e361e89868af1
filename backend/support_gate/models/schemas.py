"""
Pydantic schemas for request/response validation.
Wire format is camelCase.
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..store import ChatSessionSummary, EscalationRecord, EscalationStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Request Schemas

class SessionRequest(CamelModel):
    """Request naming a chat session."""
    session_id: str = Field(..., min_length=1, max_length=64)

    @field_validator('session_id')
    @classmethod
    def validate_session_id(cls, v: str) -> str:
        """Session ids are UUIDs."""
        v = v.strip()
        try:
            uuid.UUID(v)
        except ValueError:
            raise ValueError('sessionId must be a valid UUID')
        return v

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {"sessionId": "6f1c2d3e-4b5a-4c7d-8e9f-0a1b2c3d4e5f"}
        }
    )


class EscalateRequest(SessionRequest):
    """Request to escalate a chat session to human support."""


class ResolveEscalationRequest(SessionRequest):
    """Request to resolve an escalation."""


class AdvanceEscalationRequest(SessionRequest):
    """Request to move an escalation to a later status."""
    status: EscalationStatus


# Response Schemas

class EscalateResponse(CamelModel):
    """Escalation result."""
    success: bool = True
    status: EscalationStatus
    already_escalated: bool
    escalated_at: datetime


class EscalationView(CamelModel):
    """Escalation as listed for the back office."""
    session_id: str
    user_id: str
    user_email: str
    user_name: str
    escalated_at: datetime
    status: EscalationStatus
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None

    @classmethod
    def from_record(cls, record: EscalationRecord) -> "EscalationView":
        return cls(**record.model_dump())


class EscalationListResponse(CamelModel):
    escalations: List[EscalationView]
    total: int


class ChatSessionView(CamelModel):
    """Chat session as listed for the back office."""
    session_id: str
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    message_count: int = 0
    last_message: datetime
    is_escalated: bool
    escalation_status: Optional[EscalationStatus] = None

    @classmethod
    def from_summary(cls, summary: ChatSessionSummary) -> "ChatSessionView":
        return cls(
            session_id=summary.session_id,
            user_id=summary.user_id,
            user_email=summary.user_email,
            user_name=summary.user_name,
            message_count=summary.message_count,
            last_message=summary.last_message_at or datetime.fromtimestamp(0, tz=timezone.utc),
            is_escalated=summary.escalation_status is not None,
            escalation_status=summary.escalation_status
        )


class ChatSessionListResponse(CamelModel):
    sessions: List[ChatSessionView]
    next_cursor: Optional[str] = None


class ActionResponse(CamelModel):
    success: bool = True
    status: Optional[EscalationStatus] = None


class HealthResponse(CamelModel):
    """Health check response."""
    status: str
    timestamp: datetime
    version: str
    services: Dict[str, str] = {}


class ErrorResponse(BaseModel):
    """Error payload."""
    error: str
    message: str
