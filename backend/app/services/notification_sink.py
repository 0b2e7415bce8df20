"""
Notification Sink - fire-and-forget notifications emitted by the outlet core.

The default sink writes an inbox item for the recipient in its own database
session, so a notification problem can neither roll back nor block the
escalation that triggered it. Failures are logged, not raised.
"""
from abc import ABC, abstractmethod

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.core.logging import get_logger
from backend.app.models.inbox_orm import InboxItemORM

logger = get_logger(__name__)

OUTLET_ESCALATION = "outlet_escalation"


class NotificationSink(ABC):
    @abstractmethod
    async def notify(self, org_id: str, user_id: str, kind: str, title: str, body: str, severity: int) -> None:
        ...


class InboxNotificationSink(NotificationSink):
    """Persists notifications as inbox_items rows."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def notify(self, org_id: str, user_id: str, kind: str, title: str, body: str, severity: int) -> None:
        item = InboxItemORM(
            org_id=org_id,
            user_id=user_id,
            type=kind,
            title=(title or "").strip() or "Message",
            body=(body or "").strip(),
            severity=max(0, min(int(severity), 3)),
        )
        try:
            async with self.session_factory() as session:
                session.add(item)
                await session.commit()
        except Exception as e:
            # Do not fail the caller's operation on notification errors; log and continue
            logger.exception(
                f"Inbox notification failed: {e}",
                extra={"extra_data": {"kind": kind, "recipient": user_id}},
            )
            return
        logger.info(
            "Inbox notification stored",
            extra={"extra_data": {"kind": kind, "recipient": user_id, "severity": item.severity}},
        )


def get_notification_sink() -> NotificationSink:
    from backend.app.core.database import async_session_maker
    return InboxNotificationSink(async_session_maker)
