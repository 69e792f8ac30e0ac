"""Notification wire schemas."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Notification(BaseModel):
    """
    A server-originated notification for a single user.

    Attributes are snake_case in Python and camelCase on the wire.
    Only ``is_read`` ever changes; use ``model_copy`` to change it.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    title: str
    content: str
    link: str | None = None
    is_read: bool = Field(default=False, alias="isRead")
    created_at: datetime = Field(alias="createdAt")

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        """Timestamps without an offset are UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def as_read(self) -> "Notification":
        """Return a copy with ``is_read`` set."""
        if self.is_read:
            return self
        return self.model_copy(update={"is_read": True})


class NotificationListResponse(BaseModel):
    """Envelope for endpoints returning several notifications."""

    data: list[Notification]


class NotificationResponse(BaseModel):
    """Envelope for endpoints returning a single notification."""

    data: Notification


class PublishNotificationRequest(BaseModel):
    """Request to create and push a notification (reference service)."""

    title: str = Field(min_length=1)
    content: str
    link: str | None = None
