"""
Outlet Session Orchestrator.

Coordinates every state-changing outlet operation: create, post message,
escalate, close, resolve. It is the only caller of the session store's
mutators and of the escalation ledger's append, and it owns the unit of work:
each mutating operation commits once, after all of its writes, and only then
hands notifications to the sink.

Check order for every operation on an existing session:
NotFound -> confessional guard (InvalidOperation) -> actor (Forbidden)
-> lifecycle state (InvalidOperation).
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import (
    ForbiddenError,
    InvalidOperationError,
    NotFoundError,
    OutletValidationError,
)
from backend.app.core.logging import get_logger
from backend.app.core.security import Principal
from backend.app.models.outlet_orm import OutletEscalationORM, OutletMessageORM, OutletSessionORM
from backend.app.schemas.outlet import (
    ListScope,
    Sender,
    SessionKind,
    StaffRole,
    Visibility,
)
from backend.app.services.escalation_ledger import EscalationLedger
from backend.app.services.lifecycle import LifecycleAction, ensure_staff_workflow_allowed, next_status
from backend.app.services.notification_sink import OUTLET_ESCALATION, NotificationSink
from backend.app.services.reply_generator import ReplyGenerator, generate_reply
from backend.app.services.risk_classifier import classify_risk, should_escalate
from backend.app.services.session_store import OutletSessionRepository
from backend.app.services.visibility import VisibilityResolver, is_owner

logger = get_logger(__name__)

AUTO_FLAG_REASON = "auto-flag"
MAX_CONTENT_LENGTH = 4000


@dataclass
class PostMessageResult:
    user_message: OutletMessageORM
    ai_message: OutletMessageORM
    risk_level: int
    escalated: bool = False
    replayed: bool = False


@dataclass
class _PendingNotification:
    org_id: str
    user_id: str
    kind: str
    title: str
    body: str
    severity: int
    extra: Dict[str, Any] = field(default_factory=dict)


class OutletOrchestrator:
    """Workflow coordinator for outlet sessions."""

    def __init__(
        self,
        db: AsyncSession,
        reply_generator: ReplyGenerator,
        notification_sink: NotificationSink,
    ):
        self.db = db
        self.store = OutletSessionRepository(db)
        self.ledger = EscalationLedger(db)
        self.resolver = VisibilityResolver(db, self.ledger)
        self.reply_generator = reply_generator
        self.notification_sink = notification_sink
        self._pending: List[_PendingNotification] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_sessions(
        self,
        principal: Principal,
        scope: ListScope = ListScope.MINE,
        limit: Optional[int] = None,
    ) -> List[OutletSessionORM]:
        if ListScope(scope) is ListScope.STAFF:
            if not principal.is_staff:
                raise ForbiddenError("Only managers and admins can open the staff inbox.")
            return await self.store.list_for_staff(principal, limit)
        return await self.store.list_for_owner(principal, limit)

    async def get_session_detail(
        self, principal: Principal, session_id: str
    ) -> Tuple[OutletSessionORM, List[OutletMessageORM]]:
        outlet_session = await self._load(principal, session_id)
        await self.resolver.ensure_can_read(outlet_session, principal)
        if not is_owner(outlet_session, principal):
            logger.info(
                f"Staff read of outlet session {outlet_session.id}",
                extra={"extra_data": {
                    "session_id": outlet_session.id,
                    "reader_id": principal.user_id,
                    "reader_role": principal.role.value,
                }},
            )
        messages = await self.store.list_messages(outlet_session.id)
        return outlet_session, messages

    async def list_escalations(self, principal: Principal, session_id: str) -> List[OutletEscalationORM]:
        outlet_session = await self._load(principal, session_id)
        await self.resolver.ensure_can_read(outlet_session, principal)
        return await self.ledger.list_by_session(outlet_session.id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_session(
        self,
        principal: Principal,
        kind: SessionKind = SessionKind.OUTLET,
        visibility: Visibility = Visibility.PRIVATE,
        category: Optional[str] = None,
    ) -> OutletSessionORM:
        outlet_session = await self.store.create(
            org_id=principal.org_id,
            user_id=principal.user_id,
            kind=kind,
            visibility=visibility,
            category=category,
        )
        await self._commit()
        logger.info(
            f"Outlet session created: {outlet_session.id}",
            extra={"extra_data": {
                "session_id": outlet_session.id,
                "kind": outlet_session.kind,
                "visibility": outlet_session.visibility,
            }},
        )
        return outlet_session

    async def post_message(
        self,
        principal: Principal,
        session_id: str,
        content: str,
        client_message_id: Optional[str] = None,
    ) -> PostMessageResult:
        """
        Append the owner's message and the generated reply, classify the
        owner's text, and auto-escalate an outlet session when the score
        crosses the threshold. All of it commits together or not at all.
        """
        outlet_session = await self._load(principal, session_id, for_update=True)
        if not is_owner(outlet_session, principal):
            raise ForbiddenError("Only the session owner can post messages.")

        content = (content or "").strip()
        if not content:
            raise OutletValidationError("Message content must not be blank.")
        if len(content) > MAX_CONTENT_LENGTH:
            raise OutletValidationError(f"Message content exceeds {MAX_CONTENT_LENGTH} characters.")

        if client_message_id:
            replay = await self._replay(outlet_session, client_message_id)
            if replay is not None:
                return replay

        next_status(outlet_session.status, LifecycleAction.POST_MESSAGE, outlet_session.kind)

        # Generate before writing so a collaborator failure leaves nothing behind
        generated = await generate_reply(
            self.reply_generator,
            content,
            outlet_session.category,
            Visibility(outlet_session.visibility),
        )
        score = max(classify_risk(content), generated.risk_level)

        try:
            user_message = await self.store.append_message(
                outlet_session, Sender.USER, content,
                client_message_id=client_message_id, risk_level=score,
            )
            ai_message = await self.store.append_message(outlet_session, Sender.AI, generated.reply)
            self.store.raise_risk(outlet_session, score)

            escalated = False
            if should_escalate(score) and SessionKind(outlet_session.kind) is SessionKind.OUTLET:
                await self._append_escalation(
                    outlet_session,
                    to_role=StaffRole.ADMIN,
                    assigned_to_user_id=None,
                    reason=AUTO_FLAG_REASON,
                    escalated_by_user_id=None,
                    automatic=True,
                )
                escalated = True
        except IntegrityError as e:
            await self._abandon()
            raise InvalidOperationError(
                "The session was modified concurrently; retry the message."
            ) from e

        await self._commit()
        logger.info(
            f"Message pair appended to session {outlet_session.id}",
            extra={"extra_data": {
                "session_id": outlet_session.id,
                "message_count": outlet_session.message_count,
                "risk_level": score,
                "auto_escalated": escalated,
            }},
        )
        await self._dispatch_notifications()
        return PostMessageResult(
            user_message=user_message,
            ai_message=ai_message,
            risk_level=score,
            escalated=escalated,
        )

    async def escalate(
        self,
        principal: Principal,
        session_id: str,
        to_role: StaffRole,
        assigned_to_user_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Tuple[OutletEscalationORM, OutletSessionORM]:
        outlet_session = await self._load(principal, session_id, for_update=True)
        ensure_staff_workflow_allowed(outlet_session.kind, LifecycleAction.ESCALATE)
        # Any staff member may escalate; escalation is how a private session gets widened
        if not (is_owner(outlet_session, principal) or principal.is_staff):
            raise ForbiddenError("Only the session owner or staff can escalate.")

        try:
            entry = await self._append_escalation(
                outlet_session,
                to_role=to_role,
                assigned_to_user_id=assigned_to_user_id,
                reason=reason,
                escalated_by_user_id=principal.user_id,
                automatic=False,
            )
        except IntegrityError as e:
            await self._abandon()
            raise InvalidOperationError(
                "The session was escalated concurrently; retry the escalation."
            ) from e
        await self._commit()
        await self._dispatch_notifications()
        return entry, outlet_session

    async def close(self, principal: Principal, session_id: str) -> OutletSessionORM:
        outlet_session = await self._load(principal, session_id, for_update=True)
        if not is_owner(outlet_session, principal):
            if not principal.is_staff:
                raise ForbiddenError("Only the session owner or staff can close a session.")
            await self.resolver.ensure_can_read(outlet_session, principal)

        status = next_status(outlet_session.status, LifecycleAction.CLOSE, outlet_session.kind)
        if self.store.set_status(outlet_session, status):
            await self._commit()
            logger.info(
                f"Outlet session closed: {outlet_session.id}",
                extra={"extra_data": {"session_id": outlet_session.id, "closed_by": principal.user_id}},
            )
        return outlet_session

    async def resolve(
        self,
        principal: Principal,
        session_id: str,
        resolution_note: Optional[str] = None,
    ) -> OutletSessionORM:
        outlet_session = await self._load(principal, session_id, for_update=True)
        ensure_staff_workflow_allowed(outlet_session.kind, LifecycleAction.RESOLVE)
        if not principal.is_staff:
            raise ForbiddenError("Only managers and admins can resolve sessions.")
        await self.resolver.ensure_can_read(outlet_session, principal)

        next_status(outlet_session.status, LifecycleAction.RESOLVE, outlet_session.kind)
        self.store.record_resolution(outlet_session, principal.user_id, (resolution_note or "").strip() or None)
        await self._commit()
        logger.info(
            f"Outlet session resolved: {outlet_session.id}",
            extra={"extra_data": {"session_id": outlet_session.id, "resolved_by": principal.user_id}},
        )
        return outlet_session

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load(self, principal: Principal, session_id: str, for_update: bool = False) -> OutletSessionORM:
        outlet_session = await self.store.get(principal.org_id, session_id, for_update=for_update)
        if outlet_session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return outlet_session

    async def _replay(self, outlet_session: OutletSessionORM, client_message_id: str) -> Optional[PostMessageResult]:
        user_message = await self.store.get_message_by_client_id(outlet_session.id, client_message_id)
        if user_message is None:
            return None
        ai_message = await self.store.get_message_by_seq(outlet_session.id, user_message.seq + 1)
        if ai_message is None or ai_message.sender != Sender.AI.value:
            raise InvalidOperationError(
                f"Message {client_message_id} was stored without its reply; contact support."
            )
        logger.info(
            f"Replayed message {client_message_id} on session {outlet_session.id}",
            extra={"extra_data": {"session_id": outlet_session.id, "seq": user_message.seq}},
        )
        return PostMessageResult(
            user_message=user_message,
            ai_message=ai_message,
            risk_level=user_message.risk_level or 0,
            escalated=False,
            replayed=True,
        )

    async def _append_escalation(
        self,
        outlet_session: OutletSessionORM,
        to_role: StaffRole,
        assigned_to_user_id: Optional[str],
        reason: Optional[str],
        escalated_by_user_id: Optional[str],
        automatic: bool,
    ) -> OutletEscalationORM:
        """
        Ledger entry plus status projection. An already-escalated session
        gets a new entry but keeps its status.
        """
        status = next_status(outlet_session.status, LifecycleAction.ESCALATE, outlet_session.kind)
        entry = await self.ledger.append(
            outlet_session,
            to_role=to_role,
            assigned_to_user_id=assigned_to_user_id,
            reason=(reason or "").strip() or None,
            escalated_by_user_id=escalated_by_user_id,
            automatic=automatic,
        )
        self.store.set_status(outlet_session, status)

        self._pending.append(_PendingNotification(
            org_id=outlet_session.org_id,
            user_id=outlet_session.user_id,
            kind=OUTLET_ESCALATION,
            title="Your session was escalated",
            body=f"Reason: {entry.reason}" if entry.reason else "A staff member has been notified.",
            severity=2 if automatic else 1,
            extra={"session_id": outlet_session.id, "escalation_id": entry.id},
        ))
        return entry

    async def _commit(self) -> None:
        await self.db.commit()

    async def _abandon(self) -> None:
        """Roll back a conflicting write; nothing queued for it may be sent."""
        self._pending.clear()
        await self.db.rollback()

    async def _dispatch_notifications(self) -> None:
        pending, self._pending = self._pending, []
        for n in pending:
            await self.notification_sink.notify(n.org_id, n.user_id, n.kind, n.title, n.body, n.severity)
