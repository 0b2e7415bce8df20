"""
Outlet Sessions API Router.

Thin HTTP layer over the session orchestrator. Every rule (ownership,
visibility, escalation grants, lifecycle) is enforced below this module;
routes only translate requests and responses. Domain errors are mapped to
status codes by the handlers in `core.exceptions`.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Security
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.security import OUTLET_READ, OUTLET_STAFF, OUTLET_WRITE, Principal, get_current_user
from backend.app.schemas.outlet import (
    AnalyticsSummary,
    EscalateRequest,
    EscalateResponse,
    EscalationHistoryResponse,
    EscalationResponse,
    ListScope,
    MessageCreate,
    MessageResponse,
    PostMessageResponse,
    ResolveRequest,
    SessionCreate,
    SessionDetailResponse,
    SessionListResponse,
    SessionResponse,
)
from backend.app.services import outlet_analytics
from backend.app.services.notification_sink import NotificationSink, get_notification_sink
from backend.app.services.outlet_service import OutletOrchestrator
from backend.app.services.reply_generator import ReplyGenerator, get_reply_generator

router = APIRouter()


def provide_reply_generator() -> ReplyGenerator:
    return get_reply_generator()


def get_orchestrator(
    db: AsyncSession = Depends(get_db),
    reply_generator: ReplyGenerator = Depends(provide_reply_generator),
    notification_sink: NotificationSink = Depends(get_notification_sink),
) -> OutletOrchestrator:
    return OutletOrchestrator(db, reply_generator, notification_sink)


@router.post("/sessions", response_model=SessionResponse, status_code=201)
async def create_session(
    payload: SessionCreate,
    orchestrator: OutletOrchestrator = Depends(get_orchestrator),
    current_user: Principal = Security(get_current_user, scopes=[OUTLET_WRITE]),
):
    """Open a new session owned by the caller. Confessional sessions are forced private."""
    outlet_session = await orchestrator.create_session(
        current_user,
        kind=payload.kind,
        visibility=payload.visibility,
        category=payload.category,
    )
    return SessionResponse.model_validate(outlet_session)


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    scope: ListScope = Query(ListScope.MINE),
    limit: Optional[int] = Query(None, ge=1),
    orchestrator: OutletOrchestrator = Depends(get_orchestrator),
    current_user: Principal = Security(get_current_user, scopes=[OUTLET_READ]),
):
    """`mine`: the caller's own sessions. `staff`: the triage inbox for managers and admins."""
    sessions = await orchestrator.list_sessions(current_user, scope, limit)
    return SessionListResponse(
        scope=scope,
        sessions=[SessionResponse.model_validate(s) for s in sessions],
    )


@router.get("/sessions/{session_id}", response_model=SessionDetailResponse)
async def get_session(
    session_id: str,
    orchestrator: OutletOrchestrator = Depends(get_orchestrator),
    current_user: Principal = Security(get_current_user, scopes=[OUTLET_READ]),
):
    outlet_session, messages = await orchestrator.get_session_detail(current_user, session_id)
    return SessionDetailResponse(
        session=SessionResponse.model_validate(outlet_session),
        messages=[MessageResponse.model_validate(m) for m in messages],
    )


@router.post("/sessions/{session_id}/messages", response_model=PostMessageResponse)
async def post_message(
    session_id: str,
    payload: MessageCreate,
    orchestrator: OutletOrchestrator = Depends(get_orchestrator),
    current_user: Principal = Security(get_current_user, scopes=[OUTLET_WRITE]),
):
    """
    Append the owner's message and the generated reply.
    Returns both messages, the message's risk score and whether it auto-escalated.
    """
    result = await orchestrator.post_message(
        current_user, session_id, payload.content, payload.client_message_id
    )
    return PostMessageResponse(
        user_message=MessageResponse.model_validate(result.user_message),
        ai_message=MessageResponse.model_validate(result.ai_message),
        risk_level=result.risk_level,
        escalated=result.escalated,
    )


@router.post("/sessions/{session_id}/escalate", response_model=EscalateResponse)
async def escalate_session(
    session_id: str,
    payload: EscalateRequest,
    orchestrator: OutletOrchestrator = Depends(get_orchestrator),
    current_user: Principal = Security(get_current_user, scopes=[OUTLET_WRITE]),
):
    entry, outlet_session = await orchestrator.escalate(
        current_user,
        session_id,
        to_role=payload.to_role,
        assigned_to_user_id=payload.assigned_to,
        reason=payload.reason,
    )
    return EscalateResponse(
        escalation=EscalationResponse.model_validate(entry),
        session=SessionResponse.model_validate(outlet_session),
    )


@router.post("/sessions/{session_id}/close", response_model=SessionResponse)
async def close_session(
    session_id: str,
    orchestrator: OutletOrchestrator = Depends(get_orchestrator),
    current_user: Principal = Security(get_current_user, scopes=[OUTLET_WRITE]),
):
    """Close a session. Closing a closed session is a no-op."""
    outlet_session = await orchestrator.close(current_user, session_id)
    return SessionResponse.model_validate(outlet_session)


@router.post("/sessions/{session_id}/resolve", response_model=SessionResponse)
async def resolve_session(
    session_id: str,
    payload: Optional[ResolveRequest] = None,
    orchestrator: OutletOrchestrator = Depends(get_orchestrator),
    current_user: Principal = Security(get_current_user, scopes=[OUTLET_WRITE]),
):
    """Staff resolution. Confessional sessions can never be resolved."""
    note = payload.resolution_note if payload else None
    outlet_session = await orchestrator.resolve(current_user, session_id, note)
    return SessionResponse.model_validate(outlet_session)


@router.get("/sessions/{session_id}/escalations", response_model=EscalationHistoryResponse)
async def list_escalations(
    session_id: str,
    orchestrator: OutletOrchestrator = Depends(get_orchestrator),
    current_user: Principal = Security(get_current_user, scopes=[OUTLET_READ]),
):
    entries = await orchestrator.list_escalations(current_user, session_id)
    return EscalationHistoryResponse(
        session_id=session_id,
        escalations=[EscalationResponse.model_validate(e) for e in entries],
    )


@router.get("/analytics/summary", response_model=AnalyticsSummary)
async def analytics_summary(
    days: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Security(get_current_user, scopes=[OUTLET_STAFF]),
):
    """Aggregates over the outlet sessions the caller may read, for the last `days` days."""
    return await outlet_analytics.summarize(db, current_user, days)
