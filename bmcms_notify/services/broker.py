"""In-memory notification repository and push fan-out for the reference service."""

import asyncio
import uuid
from collections import defaultdict
from datetime import datetime, timezone

from loguru import logger

from bmcms_notify.schemas.notifications import Notification


class NotificationBroker:
    """
    Holds notifications per user and fans new ones out to open streams.

    user_id -> {notification_id: Notification}
    user_id -> set(asyncio.Queue)
    """

    def __init__(self, queue_size: int = 100) -> None:
        self.queue_size = queue_size
        self._notifications: dict[str, dict[str, Notification]] = defaultdict(dict)
        self._owners: dict[str, str] = {}
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)

    # --- Repository ---

    def list_for_user(self, user_id: str) -> list[Notification]:
        """Return a user's notifications, newest first."""
        items = self._notifications.get(user_id, {}).values()
        return sorted(items, key=lambda n: n.created_at, reverse=True)

    def owner_of(self, notification_id: str) -> str | None:
        return self._owners.get(notification_id)

    def add(self, user_id: str, notification: Notification) -> Notification:
        self._notifications[user_id][notification.id] = notification
        self._owners[notification.id] = user_id
        return notification

    def mark_read(self, notification_id: str) -> Notification | None:
        """Mark one notification read; re-marking returns it unchanged."""
        user_id = self._owners.get(notification_id)
        if user_id is None:
            return None
        updated = self._notifications[user_id][notification_id].as_read()
        self._notifications[user_id][notification_id] = updated
        return updated

    def mark_all_read(self, user_id: str) -> list[Notification]:
        items = self._notifications.get(user_id, {})
        for notification_id, notification in list(items.items()):
            items[notification_id] = notification.as_read()
        return self.list_for_user(user_id)

    def clear(self) -> None:
        self._notifications.clear()
        self._owners.clear()

    # --- Push ---

    async def publish(
        self,
        user_id: str,
        *,
        title: str,
        content: str,
        link: str | None = None,
    ) -> Notification:
        """Create a notification and push it to every open stream of the user."""
        notification = self.add(
            user_id,
            Notification(
                id=str(uuid.uuid4()),
                title=title,
                content=content,
                link=link,
                is_read=False,
                created_at=datetime.now(timezone.utc),
            ),
        )
        for queue in list(self._subscribers.get(user_id, ())):
            try:
                queue.put_nowait(notification)
            except asyncio.QueueFull:
                logger.warning(
                    "Dropping push for slow stream subscriber",
                    user_id=user_id,
                    notification_id=notification.id,
                )
        return notification

    def subscribe(self, user_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers[user_id].add(queue)
        logger.info("Stream subscriber registered", user_id=user_id)
        return queue

    def unsubscribe(self, user_id: str, queue: asyncio.Queue) -> None:
        if user_id in self._subscribers:
            self._subscribers[user_id].discard(queue)
            if not self._subscribers[user_id]:
                del self._subscribers[user_id]
        logger.info("Stream subscriber removed", user_id=user_id)

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscribers.get(user_id, ()))


# global instance
broker = NotificationBroker()


def get_broker() -> NotificationBroker:
    """Dependency returning the process-wide broker."""
    return broker
