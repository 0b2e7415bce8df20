"""
Escalation Ledger - append-only audit of escalation requests.

Entries are never updated or deleted. A grant is "active" as soon as an entry
exists for the role/assignee pair; there is no expiry or revocation, so read
access granted by escalation survives later close/resolve.
"""
from typing import List, Optional

from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from backend.app.core.logging import get_logger
from backend.app.models.outlet_orm import OutletEscalationORM, OutletSessionORM
from backend.app.schemas.outlet import StaffRole

logger = get_logger(__name__)


def grant_condition(session_id_column, role: StaffRole, user_id: Optional[str]) -> ColumnElement:
    """
    SQL condition: some ledger entry for `session_id_column` targets `role`
    and is either unassigned or assigned to `user_id`.

    Shared by the single-session check and the staff listing query.
    """
    assignee = OutletEscalationORM.assigned_to_user_id.is_(None)
    if user_id:
        assignee = or_(assignee, OutletEscalationORM.assigned_to_user_id == user_id)
    return exists().where(
        and_(
            OutletEscalationORM.session_id == session_id_column,
            OutletEscalationORM.escalated_to_role == StaffRole(role).value,
            assignee,
        )
    )


class EscalationLedger:
    """Repository for the outlet_escalations table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        outlet_session: OutletSessionORM,
        to_role: StaffRole,
        assigned_to_user_id: Optional[str] = None,
        reason: Optional[str] = None,
        escalated_by_user_id: Optional[str] = None,
        automatic: bool = False,
    ) -> OutletEscalationORM:
        """Append one entry. Callers hold the session row lock."""
        last_seq = await self.session.scalar(
            select(func.max(OutletEscalationORM.seq)).where(
                OutletEscalationORM.session_id == outlet_session.id
            )
        )
        entry = OutletEscalationORM(
            org_id=outlet_session.org_id,
            session_id=outlet_session.id,
            seq=(last_seq or 0) + 1,
            escalated_to_role=StaffRole(to_role).value,
            assigned_to_user_id=assigned_to_user_id,
            reason=reason,
            escalated_by_user_id=escalated_by_user_id,
            automatic=automatic,
        )
        self.session.add(entry)
        await self.session.flush()
        logger.info(
            f"Escalation appended to ledger for session {outlet_session.id}",
            extra={
                "extra_data": {
                    "session_id": outlet_session.id,
                    "escalation_id": entry.id,
                    "seq": entry.seq,
                    "escalated_to_role": entry.escalated_to_role,
                    "assigned": assigned_to_user_id is not None,
                    "automatic": automatic,
                }
            },
        )
        return entry

    async def list_by_session(self, session_id: str) -> List[OutletEscalationORM]:
        result = await self.session.execute(
            select(OutletEscalationORM)
            .where(OutletEscalationORM.session_id == session_id)
            .order_by(OutletEscalationORM.seq.asc())
        )
        return list(result.scalars().all())

    async def has_active_grant(self, session_id: str, role: StaffRole, user_id: Optional[str]) -> bool:
        result = await self.session.execute(
            select(grant_condition(session_id, role, user_id))
        )
        return bool(result.scalar())
