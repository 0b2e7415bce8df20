"""
Outlet Session Store - database operations for sessions and their threads.

The store is the only writer of a session's status, risk level and thread
summary. It enforces storage-level invariants (monotonic risk, append-only
ordered messages); lifecycle rules live in `lifecycle.py` and the
orchestrator decides when to call each method.
"""
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.logging import get_logger
from backend.app.core.security import Principal
from backend.app.models.outlet_orm import OutletMessageORM, OutletSessionORM
from backend.app.schemas.outlet import Sender, SessionKind, SessionStatus, Visibility
from backend.app.services.visibility import VisibilityResolver

logger = get_logger(__name__)

OWNER_LIST_DEFAULT = 50
OWNER_LIST_MAX = 200
STAFF_LIST_DEFAULT = 100
STAFF_LIST_MAX = 300


def clamp_limit(limit: Optional[int], default: int, maximum: int) -> int:
    if limit is None:
        return default
    return max(1, min(int(limit), maximum))


class OutletSessionRepository:
    """Repository for outlet_sessions and outlet_messages."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        org_id: str,
        user_id: str,
        kind: SessionKind,
        visibility: Visibility,
        category: Optional[str] = None,
    ) -> OutletSessionORM:
        now = datetime.now(timezone.utc)
        kind = SessionKind(kind)
        # Confessional sessions are always private, whatever was requested
        if kind is SessionKind.CONFESSIONAL:
            visibility = Visibility.PRIVATE

        outlet_session = OutletSessionORM(
            org_id=org_id,
            user_id=user_id,
            kind=kind.value,
            category=category,
            visibility=Visibility(visibility).value,
            status=SessionStatus.OPEN.value,
            risk_level=0,
            last_message_at=None,
            last_sender=None,
            message_count=0,
            created_at=now,
            updated_at=now,
        )
        self.session.add(outlet_session)
        await self.session.flush()
        return outlet_session

    async def get(self, org_id: str, session_id: str, for_update: bool = False) -> Optional[OutletSessionORM]:
        """Fetch a session inside the caller's org. `for_update` takes the row lock."""
        query = select(OutletSessionORM).where(
            OutletSessionORM.id == session_id,
            OutletSessionORM.org_id == org_id,
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_for_owner(self, principal: Principal, limit: Optional[int] = None) -> List[OutletSessionORM]:
        limit = clamp_limit(limit, OWNER_LIST_DEFAULT, OWNER_LIST_MAX)
        result = await self.session.execute(
            select(OutletSessionORM)
            .where(
                OutletSessionORM.org_id == principal.org_id,
                OutletSessionORM.user_id == principal.user_id,
            )
            .order_by(OutletSessionORM.updated_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_for_staff(self, principal: Principal, limit: Optional[int] = None) -> List[OutletSessionORM]:
        """Triage inbox: one query evaluating both visibility and escalation grants."""
        limit = clamp_limit(limit, STAFF_LIST_DEFAULT, STAFF_LIST_MAX)
        result = await self.session.execute(
            select(OutletSessionORM)
            .where(VisibilityResolver.staff_read_condition(principal))
            .order_by(
                func.coalesce(OutletSessionORM.last_message_at, OutletSessionORM.updated_at).desc(),
                OutletSessionORM.risk_level.desc(),
                OutletSessionORM.updated_at.desc(),
            )
            .limit(limit)
        )
        return list(result.scalars().all())

    async def append_message(
        self,
        outlet_session: OutletSessionORM,
        sender: Sender,
        content: str,
        client_message_id: Optional[str] = None,
        risk_level: Optional[int] = None,
    ) -> OutletMessageORM:
        """
        Append one message and bump the thread summary. The caller must hold
        the session row lock; seq is derived from message_count.
        """
        now = datetime.now(timezone.utc)
        seq = (outlet_session.message_count or 0) + 1
        message = OutletMessageORM(
            org_id=outlet_session.org_id,
            session_id=outlet_session.id,
            seq=seq,
            sender=Sender(sender).value,
            content=content.strip(),
            client_message_id=client_message_id,
            risk_level=risk_level,
            created_at=now,
        )
        self.session.add(message)

        outlet_session.message_count = seq
        outlet_session.last_message_at = now
        outlet_session.last_sender = message.sender
        outlet_session.updated_at = now
        await self.session.flush()
        return message

    async def list_messages(self, session_id: str) -> List[OutletMessageORM]:
        result = await self.session.execute(
            select(OutletMessageORM)
            .where(OutletMessageORM.session_id == session_id)
            .order_by(OutletMessageORM.seq.asc())
        )
        return list(result.scalars().all())

    async def get_message_by_client_id(self, session_id: str, client_message_id: str) -> Optional[OutletMessageORM]:
        result = await self.session.execute(
            select(OutletMessageORM).where(
                OutletMessageORM.session_id == session_id,
                OutletMessageORM.client_message_id == client_message_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_message_by_seq(self, session_id: str, seq: int) -> Optional[OutletMessageORM]:
        result = await self.session.execute(
            select(OutletMessageORM).where(
                OutletMessageORM.session_id == session_id,
                OutletMessageORM.seq == seq,
            )
        )
        return result.scalar_one_or_none()

    def raise_risk(self, outlet_session: OutletSessionORM, risk_level: int) -> int:
        """Risk only ever goes up. Returns the resulting session risk level."""
        if risk_level > (outlet_session.risk_level or 0):
            logger.info(
                f"Risk level raised on session {outlet_session.id}",
                extra={"extra_data": {
                    "session_id": outlet_session.id,
                    "from": outlet_session.risk_level,
                    "to": risk_level,
                }},
            )
            outlet_session.risk_level = risk_level
            outlet_session.updated_at = datetime.now(timezone.utc)
        return outlet_session.risk_level

    def set_status(self, outlet_session: OutletSessionORM, status: SessionStatus) -> bool:
        """Persist a projected status. Returns False when nothing changed."""
        status = SessionStatus(status)
        if outlet_session.status == status.value:
            return False
        outlet_session.status = status.value
        outlet_session.updated_at = datetime.now(timezone.utc)
        return True

    def record_resolution(
        self,
        outlet_session: OutletSessionORM,
        resolved_by_user_id: str,
        resolution_note: Optional[str],
    ) -> None:
        now = datetime.now(timezone.utc)
        outlet_session.status = SessionStatus.RESOLVED.value
        outlet_session.resolution_note = resolution_note
        outlet_session.resolved_by_user_id = resolved_by_user_id
        outlet_session.resolved_at = now
        outlet_session.updated_at = now
