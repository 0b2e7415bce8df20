"""Services package."""

from backend.app.services.outlet_service import OutletOrchestrator
from backend.app.services.reply_generator import ReplyGenerator, get_reply_generator
from backend.app.services.notification_sink import NotificationSink, get_notification_sink

__all__ = [
    "OutletOrchestrator",
    "ReplyGenerator",
    "get_reply_generator",
    "NotificationSink",
    "get_notification_sink",
]
