"""
Outlet analytics for staff.

Aggregates are computed in Python over the sessions the caller may read, so
the same code serves SQLite and PostgreSQL. Confessional sessions never
contribute: the staff read condition excludes them.
"""
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ForbiddenError
from backend.app.core.logging import get_logger
from backend.app.core.security import Principal
from backend.app.models.outlet_orm import OutletSessionORM
from backend.app.schemas.outlet import (
    AnalyticsSummary,
    AnalyticsTotals,
    CategoryBreakdown,
    DayBucket,
    RiskTopEntry,
    SessionStatus,
)
from backend.app.services.visibility import VisibilityResolver

logger = get_logger(__name__)

DAYS_DEFAULT = 30
DAYS_MIN = 7
DAYS_MAX = 365
RISK_TOP_LIMIT = 15
UNCATEGORIZED = "uncategorized"


def clamp_days(days: Optional[int]) -> int:
    if days is None:
        return DAYS_DEFAULT
    return max(DAYS_MIN, min(int(days), DAYS_MAX))


def _avg(values: List[int]) -> Optional[float]:
    if not values:
        return None
    return round(sum(values) / len(values), 2)


async def summarize(db: AsyncSession, principal: Principal, days: Optional[int] = None) -> AnalyticsSummary:
    if not principal.is_staff:
        raise ForbiddenError("Only managers and admins can view outlet analytics.")

    days = clamp_days(days)
    since = datetime.now(timezone.utc) - timedelta(days=days)

    result = await db.execute(
        select(OutletSessionORM).where(
            VisibilityResolver.staff_read_condition(principal),
            OutletSessionORM.created_at >= since,
        )
    )
    sessions = list(result.scalars().all())

    totals = AnalyticsTotals(sessions_total=len(sessions), risk_avg=_avg([s.risk_level for s in sessions]))
    by_category: Dict[str, List[OutletSessionORM]] = defaultdict(list)
    by_day: Dict[str, List[int]] = defaultdict(list)

    for s in sessions:
        status = SessionStatus(s.status).value
        setattr(totals, status, getattr(totals, status) + 1)
        by_category[(s.category or "").strip() or UNCATEGORIZED].append(s)
        by_day[s.created_at.date().isoformat()].append(s.risk_level)

    categories = []
    for category, rows in by_category.items():
        entry = CategoryBreakdown(category=category, sessions=len(rows), risk_avg=_avg([r.risk_level for r in rows]))
        for r in rows:
            status = SessionStatus(r.status).value
            setattr(entry, status, getattr(entry, status) + 1)
        categories.append(entry)
    categories.sort(key=lambda c: (-c.sessions, c.category))

    day_buckets = [
        DayBucket(day_key=day, sessions=len(risks), risk_avg=_avg(risks))
        for day, risks in sorted(by_day.items())
    ]

    ranked = sorted(
        sessions,
        key=lambda s: (s.risk_level, s.last_message_at or s.updated_at),
        reverse=True,
    )[:RISK_TOP_LIMIT]
    risk_top = [
        RiskTopEntry(
            session_id=s.id,
            user_id=s.user_id,
            status=s.status,
            visibility=s.visibility,
            category=s.category,
            risk_level=s.risk_level,
            last_message_at=s.last_message_at,
            created_at=s.created_at,
            updated_at=s.updated_at,
        )
        for s in ranked
    ]

    logger.info(
        "Outlet analytics computed",
        extra={"extra_data": {"days": days, "sessions": len(sessions), "role": principal.role.value}},
    )
    return AnalyticsSummary(
        days=days,
        totals=totals,
        by_category=categories,
        by_day=day_buckets,
        risk_top=risk_top,
    )
