"""Polling reconciler and read-state synchronizer for one user's notifications."""

import asyncio
import contextlib

from loguru import logger

from bmcms_notify.clients.http import ApiError
from bmcms_notify.clients.notifications import (
    FETCH_FAILED,
    MARK_ALL_READ_FAILED,
    MARK_READ_FAILED,
    NotificationApi,
)
from bmcms_notify.config import settings
from bmcms_notify.schemas.notifications import Notification
from bmcms_notify.services.store import NotificationStore
from bmcms_notify.services.stream import ChannelOpener, StreamState, StreamSubscriber


class NotificationFeed:
    """
    Keeps a ``NotificationStore`` in step with the server.

    Two sources feed the store: a periodic full refetch and pushed
    notifications. Failures never propagate out of this class; they are
    recorded on ``error`` and the previous store contents stay in place.
    """

    def __init__(
        self,
        user_id: str,
        api: NotificationApi,
        store: NotificationStore | None = None,
        *,
        refresh_interval: float | None = None,
        open_channel: ChannelOpener | None = None,
        max_reconnect_attempts: int | None = None,
        reconnect_delay: float | None = None,
    ) -> None:
        self.user_id = user_id
        self.api = api
        self.store = store if store is not None else NotificationStore()
        self.refresh_interval = (
            settings.refresh_interval_seconds if refresh_interval is None else refresh_interval
        )
        self.has_loaded = False
        self.error: str | None = None
        # Set to False once the push stream gives up reconnecting
        self.live_updates_available = True
        self.open_channel = open_channel
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.stream: StreamSubscriber | None = None
        self._poll_task: asyncio.Task | None = None
        # Refreshes in flight; the poll and a post-mark refetch can overlap
        self._refreshing = 0

    # --- Read side ---

    @property
    def is_loading(self) -> bool:
        return self._refreshing > 0

    @property
    def notifications(self) -> list[Notification]:
        return self.store.notifications

    def unread_count(self) -> int:
        return self.store.unread_count()

    # --- Reconciliation ---

    async def refresh(self) -> bool:
        """
        Refetch the full collection and replace the store contents.

        Returns False on failure, leaving the store untouched.
        """
        self._refreshing += 1
        try:
            notifications = await self.api.get_notifications(self.user_id)
        except ApiError as exc:
            self.error = exc.message
            logger.warning(
                "Notification refresh failed",
                user_id=self.user_id,
                error=exc.message,
                status_code=exc.status_code,
            )
            return False
        except Exception:
            self.error = FETCH_FAILED
            logger.exception("Unexpected error refreshing notifications", user_id=self.user_id)
            return False
        finally:
            self._refreshing -= 1

        self.store.replace(notifications)
        self.error = None
        self.has_loaded = True
        return True

    def ingest_pushed(self, notification: Notification) -> bool:
        """Add a pushed notification; duplicates of a held id are collapsed."""
        added = self.store.ingest_pushed(notification)
        if added:
            logger.debug(
                "Pushed notification received",
                user_id=self.user_id,
                notification_id=notification.id,
            )
        return added

    def mark_live_updates_unavailable(self) -> None:
        self.live_updates_available = False

    # --- Read state ---

    async def mark_as_read(self, notification_id: str) -> bool:
        """
        Mark one notification read on the server, then refetch.

        Unknown ids are ignored. On failure nothing is assumed to have
        changed and the caller may retry.
        """
        if notification_id not in self.store:
            logger.debug(
                "Ignoring mark-as-read for unknown notification",
                user_id=self.user_id,
                notification_id=notification_id,
            )
            return False

        try:
            await self.api.mark_notification_as_read(notification_id)
        except ApiError as exc:
            self.error = exc.message
            logger.warning(
                "Mark as read failed",
                user_id=self.user_id,
                notification_id=notification_id,
                error=exc.message,
            )
            return False
        except Exception:
            self.error = MARK_READ_FAILED
            logger.exception(
                "Unexpected error marking notification as read",
                user_id=self.user_id,
                notification_id=notification_id,
            )
            return False

        await self.refresh()
        return True

    async def mark_all_as_read(self) -> bool:
        """Mark every notification of the user read on the server, then refetch."""
        try:
            await self.api.mark_all_as_read(self.user_id)
        except ApiError as exc:
            self.error = exc.message
            logger.warning("Mark all as read failed", user_id=self.user_id, error=exc.message)
            return False
        except Exception:
            self.error = MARK_ALL_READ_FAILED
            logger.exception("Unexpected error marking all notifications as read", user_id=self.user_id)
            return False

        await self.refresh()
        return True

    # --- Lifecycle ---

    @property
    def is_running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def stream_state(self) -> StreamState:
        return self.stream.state if self.stream is not None else StreamState.DISCONNECTED

    def start(self) -> None:
        """
        Refresh now and then every ``refresh_interval`` seconds, and open
        the push stream when a channel opener was given.
        """
        if self.is_running:
            return
        self._poll_task = asyncio.create_task(
            self._poll(), name=f"notification-poll-{self.user_id}"
        )
        if self.open_channel is not None:
            self.live_updates_available = True
            self.stream = StreamSubscriber(
                self.user_id,
                self.open_channel,
                self.ingest_pushed,
                on_exhausted=self.mark_live_updates_unavailable,
                max_reconnect_attempts=self.max_reconnect_attempts,
                reconnect_delay=self.reconnect_delay,
            )
            self.stream.start()

    async def stop(self) -> None:
        """Close the stream and cancel the poll loop."""
        stream, self.stream = self.stream, None
        if stream is not None:
            await stream.close()
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _poll(self) -> None:
        while True:
            try:
                await self.refresh()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Notification poll iteration failed", user_id=self.user_id)
            await asyncio.sleep(self.refresh_interval)
