"""
Outlet Session Schemas and Enums.

Closed value sets for session kind, visibility, status and sender, plus the
request/response contracts of the outlet API. JSON uses camelCase keys.
"""
from datetime import datetime
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SessionKind(str, Enum):
    """Structural variant of a session. Confessional is a private journal."""
    OUTLET = "outlet"
    CONFESSIONAL = "confessional"


class Visibility(str, Enum):
    """Owner-chosen ceiling on staff read access."""
    PRIVATE = "private"
    MANAGER = "manager"
    ADMIN = "admin"


class SessionStatus(str, Enum):
    OPEN = "open"
    ESCALATED = "escalated"
    CLOSED = "closed"
    RESOLVED = "resolved"


class Sender(str, Enum):
    USER = "user"
    AI = "ai"
    STAFF = "staff"


class StaffRole(str, Enum):
    """Roles an escalation can target."""
    MANAGER = "manager"
    ADMIN = "admin"


class ListScope(str, Enum):
    MINE = "mine"
    STAFF = "staff"


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def _strip_or_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class SessionCreate(CamelModel):
    category: Optional[str] = Field(None, max_length=80)
    visibility: Visibility = Visibility.PRIVATE
    kind: SessionKind = SessionKind.OUTLET

    strip_category = field_validator("category", mode="after")(_strip_or_none)


class MessageCreate(CamelModel):
    content: str = Field(..., min_length=1, max_length=4000)
    # Retrying with the same id returns the stored pair instead of a duplicate
    client_message_id: Optional[str] = Field(None, min_length=1, max_length=64)

    @field_validator("content", mode="after")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("content must not be blank")
        return value


class EscalateRequest(CamelModel):
    to_role: StaffRole
    assigned_to: Optional[str] = Field(None, min_length=3)
    reason: Optional[str] = Field(None, max_length=500)

    strip_reason = field_validator("reason", mode="after")(_strip_or_none)


class ResolveRequest(CamelModel):
    resolution_note: Optional[str] = Field(None, max_length=2000)

    strip_note = field_validator("resolution_note", mode="after")(_strip_or_none)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class SessionResponse(CamelModel):
    id: str
    org_id: str
    user_id: str
    kind: SessionKind
    category: Optional[str] = None
    visibility: Visibility
    status: SessionStatus
    risk_level: int
    last_message_at: Optional[datetime] = None
    last_sender: Optional[Sender] = None
    message_count: int
    resolution_note: Optional[str] = None
    resolved_by_user_id: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class MessageResponse(CamelModel):
    id: str
    session_id: str
    seq: int
    sender: Sender
    content: str
    created_at: datetime


class EscalationResponse(CamelModel):
    id: str
    session_id: str
    seq: int
    escalated_to_role: StaffRole
    assigned_to_user_id: Optional[str] = None
    reason: Optional[str] = None
    escalated_by_user_id: Optional[str] = None
    automatic: bool = False
    created_at: datetime


class SessionDetailResponse(CamelModel):
    session: SessionResponse
    messages: List[MessageResponse]


class SessionListResponse(CamelModel):
    scope: ListScope
    sessions: List[SessionResponse]


class PostMessageResponse(CamelModel):
    user_message: MessageResponse
    ai_message: MessageResponse
    risk_level: int
    escalated: bool = False


class EscalateResponse(CamelModel):
    escalation: EscalationResponse
    session: SessionResponse


class EscalationHistoryResponse(CamelModel):
    session_id: str
    escalations: List[EscalationResponse]


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

class AnalyticsTotals(CamelModel):
    sessions_total: int = 0
    open: int = 0
    escalated: int = 0
    closed: int = 0
    resolved: int = 0
    risk_avg: Optional[float] = None


class CategoryBreakdown(CamelModel):
    category: str
    sessions: int
    risk_avg: Optional[float] = None
    open: int = 0
    escalated: int = 0
    closed: int = 0
    resolved: int = 0


class DayBucket(CamelModel):
    day_key: str
    sessions: int
    risk_avg: Optional[float] = None


class RiskTopEntry(CamelModel):
    session_id: str
    user_id: str
    status: SessionStatus
    visibility: Visibility
    category: Optional[str] = None
    risk_level: int
    last_message_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class AnalyticsSummary(CamelModel):
    days: int
    totals: AnalyticsTotals
    by_category: List[CategoryBreakdown]
    by_day: List[DayBucket]
    risk_top: List[RiskTopEntry]
