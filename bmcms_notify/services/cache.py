"""Per-user notification cache shared by every surface that shows notifications."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from bmcms_notify.services.feed import NotificationFeed

FeedFactory = Callable[[str], NotificationFeed]


@dataclass
class _Entry:
    feed: NotificationFeed
    holders: int = 0


class NotificationCache:
    """
    One ``NotificationFeed`` per user id.

    The first ``acquire`` creates the feed and starts it; later
    acquires for the same user share it, so there is one poll loop and
    one stream per user. ``evict`` drops a user on logout or user switch.
    """

    def __init__(self, feed_factory: FeedFactory) -> None:
        self._feed_factory = feed_factory
        self._entries: dict[str, _Entry] = {}
        self._lock = asyncio.Lock()

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._entries

    def get(self, user_id: str) -> NotificationFeed | None:
        entry = self._entries.get(user_id)
        return entry.feed if entry else None

    async def acquire(self, user_id: str) -> NotificationFeed:
        async with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                entry = _Entry(feed=self._feed_factory(user_id))
                self._entries[user_id] = entry
                logger.info("Notification cache entry created", user_id=user_id)
            if entry.holders == 0:
                entry.feed.start()
            entry.holders += 1
            return entry.feed

    async def release(self, user_id: str) -> None:
        """
        Drop one holder. The entry stays cached, stopped, once
        nobody holds it, so the next acquire starts from warm data.
        """
        async with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                return
            entry.holders = max(0, entry.holders - 1)
            if entry.holders == 0:
                await entry.feed.stop()

    async def evict(self, user_id: str) -> None:
        async with self._lock:
            entry = self._entries.pop(user_id, None)
            if entry is None:
                return
            await entry.feed.stop()
            entry.feed.store.clear()
            logger.info("Notification cache entry evicted", user_id=user_id)

    async def clear(self) -> None:
        for user_id in list(self._entries):
            await self.evict(user_id)
