"""Models package."""

from backend.app.models.outlet_orm import OutletSessionORM, OutletMessageORM, OutletEscalationORM
from backend.app.models.inbox_orm import InboxItemORM
from backend.app.models.user_orm import UserORM

__all__ = [
    "OutletSessionORM",
    "OutletMessageORM",
    "OutletEscalationORM",
    "InboxItemORM",
    "UserORM",
]
