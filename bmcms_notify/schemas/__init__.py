"""Pydantic schemas for request/response validation."""

from bmcms_notify.schemas.notifications import (
    Notification,
    NotificationListResponse,
    NotificationResponse,
    PublishNotificationRequest,
)

__all__ = [
    "Notification",
    "NotificationListResponse",
    "NotificationResponse",
    "PublishNotificationRequest",
]
