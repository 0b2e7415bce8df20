"""
Visibility Resolver - who may read an outlet session.

Read access is granted if any of these holds:

1. the requester owns the session (any kind, any status);
2. the requester is staff, the session is kind=outlet, and its visibility
   ceiling admits the requester's role;
3. the requester is staff, the session is kind=outlet, and the escalation
   ledger holds an entry for a role the requester covers, unassigned or
   assigned to the requester.

Path 3 ignores the visibility field entirely: a private session that was
escalated is readable by the escalation's target role. Both the detail lookup
and the staff listing go through this module so they can never disagree.
"""
from typing import Optional, Tuple

from sqlalchemy import and_, false, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from backend.app.core.exceptions import ForbiddenError
from backend.app.core.security import Principal, Role
from backend.app.models.outlet_orm import OutletSessionORM
from backend.app.schemas.outlet import SessionKind, StaffRole, Visibility
from backend.app.services.escalation_ledger import EscalationLedger, grant_condition

# Visibility ceilings each staff role can read through
_VISIBILITY_READABLE_BY = {
    Role.MANAGER: (Visibility.MANAGER,),
    Role.ADMIN: (Visibility.MANAGER, Visibility.ADMIN),
}

# Escalation targets each staff role inherits; admin sits above manager
_ESCALATION_ROLES_COVERED = {
    Role.MANAGER: (StaffRole.MANAGER,),
    Role.ADMIN: (StaffRole.ADMIN, StaffRole.MANAGER),
}


def visibility_permits(visibility: Visibility, role: Role) -> bool:
    return Visibility(visibility) in _VISIBILITY_READABLE_BY.get(Role(role), ())


def escalation_roles_covered(role: Role) -> Tuple[StaffRole, ...]:
    return _ESCALATION_ROLES_COVERED.get(Role(role), ())


def is_owner(outlet_session: OutletSessionORM, principal: Principal) -> bool:
    return outlet_session.org_id == principal.org_id and outlet_session.user_id == principal.user_id


class VisibilityResolver:
    """Decides read access for a (session, requester) pair."""

    def __init__(self, session: AsyncSession, ledger: Optional[EscalationLedger] = None):
        self.session = session
        self.ledger = ledger or EscalationLedger(session)

    async def can_read(self, outlet_session: OutletSessionORM, principal: Principal) -> bool:
        if is_owner(outlet_session, principal):
            return True
        if outlet_session.org_id != principal.org_id or not principal.is_staff:
            return False
        if SessionKind(outlet_session.kind) is not SessionKind.OUTLET:
            return False
        if visibility_permits(outlet_session.visibility, principal.role):
            return True
        for role in escalation_roles_covered(principal.role):
            if await self.ledger.has_active_grant(outlet_session.id, role, principal.user_id):
                return True
        return False

    async def ensure_can_read(self, outlet_session: OutletSessionORM, principal: Principal) -> None:
        if not await self.can_read(outlet_session, principal):
            raise ForbiddenError("You do not have access to this session.")

    @staticmethod
    def staff_read_condition(principal: Principal) -> ColumnElement:
        """
        SQL form of paths 2 and 3 for listing queries. Owner access is served
        by the `mine` scope.
        """
        if not principal.is_staff:
            return false()

        readable = [Visibility(v).value for v in _VISIBILITY_READABLE_BY[principal.role]]
        grants = [
            grant_condition(OutletSessionORM.id, role, principal.user_id)
            for role in escalation_roles_covered(principal.role)
        ]
        return and_(
            OutletSessionORM.org_id == principal.org_id,
            OutletSessionORM.kind == SessionKind.OUTLET.value,
            or_(OutletSessionORM.visibility.in_(readable), *grants),
        )
