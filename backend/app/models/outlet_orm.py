"""
ORM Models for Outlet sessions, their messages and the escalation ledger.

SQLite-compatible: UUIDs stored as String, enums stored as their string value.
Messages and escalations are append-only; nothing in the codebase updates or
deletes their rows.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, UniqueConstraint, Index

from backend.app.core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OutletSessionORM(Base):
    __tablename__ = "outlet_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Ownership (immutable after creation)
    org_id = Column(String(50), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)

    kind = Column(String(20), nullable=False, default="outlet")  # SessionKind values
    category = Column(String(80), nullable=True)
    visibility = Column(String(20), nullable=False, default="private")  # Visibility values
    status = Column(String(20), nullable=False, default="open", index=True)  # SessionStatus values
    risk_level = Column(Integer, nullable=False, default=0)

    # Denormalized thread summary, updated with every appended message
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    last_sender = Column(String(10), nullable=True)
    message_count = Column(Integer, nullable=False, default=0)

    # Resolution (staff only, outlet kind only)
    resolution_note = Column(Text, nullable=True)
    resolved_by_user_id = Column(String(36), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_outlet_sessions_org_visibility", "org_id", "visibility"),
        Index("ix_outlet_sessions_org_last_message", "org_id", "last_message_at"),
    )

    def __repr__(self):
        return f"<OutletSession {self.id} kind={self.kind} status={self.status}>"


class OutletMessageORM(Base):
    __tablename__ = "outlet_messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    org_id = Column(String(50), nullable=False, index=True)
    session_id = Column(String(36), nullable=False, index=True)

    # 1-based position in the thread; the unique constraint rejects interleaved appends
    seq = Column(Integer, nullable=False)
    sender = Column(String(10), nullable=False)  # Sender values
    content = Column(Text, nullable=False)

    # Set on user messages only: idempotency key and the classifier's verdict
    client_message_id = Column(String(64), nullable=True)
    risk_level = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("session_id", "seq", name="uq_outlet_messages_session_seq"),
        UniqueConstraint("session_id", "client_message_id", name="uq_outlet_messages_client_id"),
    )


class OutletEscalationORM(Base):
    """
    Escalation ledger entry. The authoritative history of who was asked to
    look at a session; the session's status is only the latest projection.
    """
    __tablename__ = "outlet_escalations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    org_id = Column(String(50), nullable=False, index=True)
    session_id = Column(String(36), nullable=False)
    # 1-based position in the session's ledger
    seq = Column(Integer, nullable=False)

    escalated_to_role = Column(String(20), nullable=False)  # StaffRole values
    assigned_to_user_id = Column(String(36), nullable=True)  # NULL = any staff of that role
    reason = Column(Text, nullable=True)

    escalated_by_user_id = Column(String(36), nullable=True)
    automatic = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("session_id", "seq", name="uq_outlet_escalations_session_seq"),
        Index("ix_outlet_escalations_session_created", "session_id", "created_at"),
        Index("ix_outlet_escalations_role_assignee", "escalated_to_role", "assigned_to_user_id"),
    )

    def __repr__(self):
        return f"<OutletEscalation {self.escalated_to_role} for {self.session_id}>"
