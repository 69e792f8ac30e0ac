"""Notification endpoints of the BMCMS REST API."""

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import httpx
from httpx_sse import ServerSentEvent, aconnect_sse
from pydantic import ValidationError

from bmcms_notify.clients.http import ApiError, build_timeout, request_json
from bmcms_notify.config import Settings, settings as default_settings
from bmcms_notify.schemas.notifications import (
    Notification,
    NotificationListResponse,
    NotificationResponse,
)

# Shown when the server gives no message of its own
FETCH_FAILED = "Failed to fetch notifications"
MARK_READ_FAILED = "Failed to mark notification as read"
MARK_ALL_READ_FAILED = "Failed to mark all notifications as read"


class NotificationApi:
    """Typed wrapper over the notification endpoints."""

    def __init__(self, client: httpx.AsyncClient, config: Settings | None = None) -> None:
        self.client = client
        self.config = config or default_settings

    async def get_notifications(self, user_id: str) -> list[Notification]:
        body = await request_json(
            self.client, "GET", f"/notifications/user/{user_id}", fallback_message=FETCH_FAILED
        )
        return self._parse(NotificationListResponse, body, FETCH_FAILED).data

    async def mark_notification_as_read(self, notification_id: str) -> Notification:
        body = await request_json(
            self.client,
            "PUT",
            f"/notifications/read/{notification_id}",
            fallback_message=MARK_READ_FAILED,
        )
        return self._parse(NotificationResponse, body, MARK_READ_FAILED).data

    async def mark_all_as_read(self, user_id: str) -> list[Notification]:
        body = await request_json(
            self.client,
            "PUT",
            f"/notifications/mark-all-read/{user_id}",
            fallback_message=MARK_ALL_READ_FAILED,
        )
        return self._parse(NotificationListResponse, body, MARK_ALL_READ_FAILED).data

    @asynccontextmanager
    async def open_stream(self, user_id: str) -> AsyncIterator[AsyncIterator[ServerSentEvent]]:
        """
        Open the event stream of a user.

        Yields an async iterator of events once the server accepted the
        connection; leaving the block closes it.

        Raises:
            ApiError: when the server refuses the stream
        """
        async with aconnect_sse(
            self.client,
            "GET",
            f"/notifications/stream/{user_id}",
            timeout=build_timeout(self.config, streaming=True),
        ) as event_source:
            response = event_source.response
            if not response.is_success:
                await response.aread()
                raise ApiError(
                    f"Notification stream refused with status {response.status_code}",
                    response.status_code,
                )
            yield event_source.aiter_sse()

    @staticmethod
    def _parse(model, body, fallback: str):
        try:
            return model.model_validate(body)
        except ValidationError as exc:
            raise ApiError(fallback) from exc
