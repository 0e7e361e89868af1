"""
Chat escalation API routes.
"""
from fastapi import APIRouter, Depends
import logging

from ...limiter import RateDecision
from ...models.schemas import EscalateRequest, EscalateResponse
from ...services import EscalationWorkflow, Principal
from ..dependencies import get_escalation_workflow, json_body, rate_limited, require_principal

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/escalate", response_model=EscalateResponse, response_model_by_alias=True)
async def escalate_session(
    _rate: RateDecision = Depends(rate_limited("chatEscalate", "chat_escalation")),
    principal: Principal = Depends(require_principal),
    request: EscalateRequest = Depends(json_body(EscalateRequest)),
    workflow: EscalationWorkflow = Depends(get_escalation_workflow)
):
    """
    Escalate a chat session to human support.

    Idempotent: repeat calls report alreadyEscalated=true and keep the
    original escalation.

    Returns:
        Escalation status
    """
    outcome = await workflow.escalate(request.session_id, principal)

    return EscalateResponse(
        success=True,
        status=outcome.status,
        already_escalated=outcome.already_escalated,
        escalated_at=outcome.escalated_at
    )
