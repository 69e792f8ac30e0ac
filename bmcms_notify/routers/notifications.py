"""Notifications router: REST collection, read-state updates and the event stream."""

import asyncio
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from loguru import logger

from bmcms_notify.auth.dependencies import (
    ensure_same_user,
    get_current_user_id,
    get_stream_user_id,
)
from bmcms_notify.schemas.notifications import (
    NotificationListResponse,
    NotificationResponse,
    PublishNotificationRequest,
)
from bmcms_notify.services.broker import NotificationBroker, get_broker

router = APIRouter(prefix="/notifications", tags=["Notifications"])

# Comment line sent while idle so proxies keep the connection open
HEARTBEAT_INTERVAL_SECONDS = 15.0


def _not_found(notification_id: str) -> HTTPException:
    message = f"Notification '{notification_id}' not found"
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "message": message,
            "error": {
                "code": "NOT_FOUND",
                "message": message,
            },
        },
    )


# --- Collection ---


@router.get(
    "/user/{user_id}",
    response_model=NotificationListResponse,
    status_code=status.HTTP_200_OK,
)
async def list_user_notifications(
    user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    broker: NotificationBroker = Depends(get_broker),
) -> NotificationListResponse:
    """
    List every notification of a user, newest first.

    Only the owner of the token may read its own notifications.
    """
    ensure_same_user(current_user_id, user_id)
    return NotificationListResponse(data=broker.list_for_user(user_id))


@router.post(
    "/user/{user_id}",
    response_model=NotificationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def publish_notification(
    user_id: str,
    data: PublishNotificationRequest,
    current_user_id: str = Depends(get_current_user_id),
    broker: NotificationBroker = Depends(get_broker),
) -> NotificationResponse:
    """Create a notification and push it to the user's open streams."""
    ensure_same_user(current_user_id, user_id)
    notification = await broker.publish(
        user_id,
        title=data.title,
        content=data.content,
        link=data.link,
    )
    return NotificationResponse(data=notification)


# --- Read State ---


@router.put(
    "/read/{notification_id}",
    response_model=NotificationResponse,
    status_code=status.HTTP_200_OK,
)
async def mark_notification_read(
    notification_id: str,
    current_user_id: str = Depends(get_current_user_id),
    broker: NotificationBroker = Depends(get_broker),
) -> NotificationResponse:
    """Mark a single notification as read. Re-marking returns it unchanged."""
    owner = broker.owner_of(notification_id)
    # Other users' ids are reported as missing
    if owner is None or owner != current_user_id:
        raise _not_found(notification_id)

    notification = broker.mark_read(notification_id)
    return NotificationResponse(data=notification)


@router.put(
    "/mark-all-read/{user_id}",
    response_model=NotificationListResponse,
    status_code=status.HTTP_200_OK,
)
async def mark_all_notifications_read(
    user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    broker: NotificationBroker = Depends(get_broker),
) -> NotificationListResponse:
    """Mark every notification of the user as read."""
    ensure_same_user(current_user_id, user_id)
    return NotificationListResponse(data=broker.mark_all_read(user_id))


# --- Stream ---


async def _event_stream(
    request: Request,
    broker: NotificationBroker,
    user_id: str,
) -> AsyncIterator[str]:
    queue = broker.subscribe(user_id)
    try:
        yield ": connected\n\n"
        while True:
            if await request.is_disconnected():
                break
            try:
                notification = await asyncio.wait_for(
                    queue.get(), timeout=HEARTBEAT_INTERVAL_SECONDS
                )
            except asyncio.TimeoutError:
                yield ": heartbeat\n\n"
                continue
            payload = notification.model_dump_json(by_alias=True, exclude_none=True)
            yield f"id: {notification.id}\nevent: message\ndata: {payload}\n\n"
    finally:
        broker.unsubscribe(user_id, queue)


@router.get("/stream/{user_id}")
async def stream_notifications(
    request: Request,
    user_id: str,
    current_user_id: str = Depends(get_stream_user_id),
    broker: NotificationBroker = Depends(get_broker),
) -> StreamingResponse:
    """
    Server-sent events carrying one JSON notification per message.

    The connection stays open until either side closes it.
    """
    ensure_same_user(current_user_id, user_id)
    logger.info("Notification stream opened", user_id=user_id)
    return StreamingResponse(
        _event_stream(request, broker, user_id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
