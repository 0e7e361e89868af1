"""
API request/response schemas.
"""
from .schemas import (
    EscalateRequest,
    EscalateResponse,
    ResolveEscalationRequest,
    AdvanceEscalationRequest,
    EscalationView,
    EscalationListResponse,
    ChatSessionView,
    ChatSessionListResponse,
    ActionResponse,
    HealthResponse,
    ErrorResponse,
)

__all__ = [
    "EscalateRequest",
    "EscalateResponse",
    "ResolveEscalationRequest",
    "AdvanceEscalationRequest",
    "EscalationView",
    "EscalationListResponse",
    "ChatSessionView",
    "ChatSessionListResponse",
    "ActionResponse",
    "HealthResponse",
    "ErrorResponse",
]
