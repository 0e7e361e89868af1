"""
Back-office API routes: statistics, session listing and escalation management.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
import logging

from ...limiter import RateDecision
from ...models.schemas import (
    ActionResponse,
    AdvanceEscalationRequest,
    ChatSessionListResponse,
    ChatSessionView,
    EscalationListResponse,
    EscalationView,
    ResolveEscalationRequest,
)
from ...services import EscalationWorkflow, Principal, StatsService, StatsSnapshot
from ..dependencies import (
    get_escalation_workflow,
    get_stats_service,
    json_body,
    rate_limited,
    require_admin,
)

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


@router.get("/stats", response_model=StatsSnapshot, response_model_by_alias=True)
async def get_stats(
    response: Response,
    _rate: RateDecision = Depends(rate_limited("adminStats", "admin_stats")),
    _admin: Principal = Depends(require_admin),
    stats: StatsService = Depends(get_stats_service)
):
    """
    Aggregate support statistics.

    Served from a short-lived cache; the X-Cache header tells whether the
    snapshot was cached (HIT), freshly computed (MISS) or a fallback after
    a failed recompute (STALE).
    """
    snapshot, cache_status = await stats.get_snapshot()
    response.headers["X-Cache"] = cache_status.value
    return snapshot


@router.get("/escalations", response_model=EscalationListResponse, response_model_by_alias=True)
async def list_escalations(
    _rate: RateDecision = Depends(rate_limited("adminEscalations", "admin_data")),
    _admin: Principal = Depends(require_admin),
    workflow: EscalationWorkflow = Depends(get_escalation_workflow)
):
    """All escalations, newest first."""
    records = await workflow.list_escalations()
    return EscalationListResponse(
        escalations=[EscalationView.from_record(record) for record in records],
        total=len(records)
    )


@router.get("/chats", response_model=ChatSessionListResponse, response_model_by_alias=True)
async def list_chats(
    limit: int = Query(DEFAULT_PAGE_SIZE),
    cursor: Optional[str] = Query(None),
    _rate: RateDecision = Depends(rate_limited("adminChats", "admin_data")),
    _admin: Principal = Depends(require_admin),
    workflow: EscalationWorkflow = Depends(get_escalation_workflow)
):
    """
    Chat sessions, most recent activity first.

    Pages are capped at MAX_PAGE_SIZE; pass nextCursor back as cursor to
    fetch the following page.
    """
    page_size = min(max(limit, 1), MAX_PAGE_SIZE)
    summaries, next_cursor = await workflow.list_sessions(page_size, cursor)
    return ChatSessionListResponse(
        sessions=[ChatSessionView.from_summary(summary) for summary in summaries],
        next_cursor=next_cursor
    )


@router.post("/escalations/resolve", response_model=ActionResponse, response_model_by_alias=True)
async def resolve_escalation(
    _rate: RateDecision = Depends(rate_limited("adminResolve", "admin_actions")),
    admin: Principal = Depends(require_admin),
    request: ResolveEscalationRequest = Depends(json_body(ResolveEscalationRequest)),
    workflow: EscalationWorkflow = Depends(get_escalation_workflow)
):
    """Mark an escalation resolved."""
    record = await workflow.resolve(request.session_id, admin)
    return ActionResponse(success=True, status=record.status)


@router.post("/escalations/advance", response_model=ActionResponse, response_model_by_alias=True)
async def advance_escalation(
    _rate: RateDecision = Depends(rate_limited("adminAdvance", "admin_actions")),
    admin: Principal = Depends(require_admin),
    request: AdvanceEscalationRequest = Depends(json_body(AdvanceEscalationRequest)),
    workflow: EscalationWorkflow = Depends(get_escalation_workflow)
):
    """Move an escalation forward (e.g. pending -> in_progress)."""
    record = await workflow.advance(
        request.session_id,
        request.status,
        actor=admin.email or admin.user_id
    )
    return ActionResponse(success=True, status=record.status)
