"""Wiring of client, cache, poller and push stream for a signed-in user."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from bmcms_notify.auth.token_store import TokenStore
from bmcms_notify.clients.http import create_async_client
from bmcms_notify.clients.notifications import NotificationApi
from bmcms_notify.config import Settings, settings as default_settings
from bmcms_notify.services.cache import NotificationCache
from bmcms_notify.services.feed import NotificationFeed


class NotificationCenter:
    """
    Owns the HTTP client and the per-user cache for one application.

    ``session(user_id)`` is what a screen uses: it yields the shared feed
    for the user (or None when nobody is signed in) and releases it on exit.
    """

    def __init__(
        self,
        config: Settings | None = None,
        token_store: TokenStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        *,
        push: bool = True,
    ) -> None:
        self.config = config or default_settings
        self.client = create_async_client(self.config, token_store, transport)
        self.api = NotificationApi(self.client, self.config)
        self.push = push
        self.cache = NotificationCache(self._create_feed)

    def _create_feed(self, user_id: str) -> NotificationFeed:
        return NotificationFeed(
            user_id,
            self.api,
            refresh_interval=self.config.refresh_interval_seconds,
            open_channel=self.api.open_stream if self.push else None,
            max_reconnect_attempts=self.config.stream_max_reconnect_attempts,
            reconnect_delay=self.config.stream_reconnect_delay_seconds,
        )

    async def __aenter__(self) -> "NotificationCenter":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.cache.clear()
        await self.client.aclose()

    @asynccontextmanager
    async def session(self, user_id: str | None) -> AsyncIterator[NotificationFeed | None]:
        if not user_id:
            yield None
            return
        feed = await self.cache.acquire(user_id)
        try:
            yield feed
        finally:
            await self.cache.release(user_id)

    async def switch_user(self, previous_user_id: str | None) -> None:
        """Forget everything cached for a user who signed out or was switched away from."""
        if previous_user_id:
            await self.cache.evict(previous_user_id)
