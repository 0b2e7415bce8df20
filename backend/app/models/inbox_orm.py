"""
Inbox items: user-facing notifications written by the notification sink.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, DateTime, Integer

from backend.app.core.database import Base


class InboxItemORM(Base):
    __tablename__ = "inbox_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    org_id = Column(String(50), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)  # recipient

    type = Column(String(40), nullable=False)  # outlet_escalation, ...
    title = Column(String(200), nullable=False)
    body = Column(Text, nullable=False)
    severity = Column(Integer, nullable=False, default=0)  # 0..3

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    read_at = Column(DateTime(timezone=True), nullable=True)
    ack_at = Column(DateTime(timezone=True), nullable=True)
