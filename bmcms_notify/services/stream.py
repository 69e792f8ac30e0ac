"""
Push channel subscriber with a capped, fixed-delay reconnect policy.

The connection lifecycle is a small state machine:

    DISCONNECTED -> CONNECTING -> CONNECTED -> ERROR -> CONNECTING ...
                                               ERROR -> DISCONNECTED (exhausted)

``StreamStatus`` is an immutable value and the module-level functions are
its only transitions, so the attempt cap can be tested without any I/O.
``StreamSubscriber`` drives those transitions against a real channel.
"""

import asyncio
import contextlib
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, replace
from enum import Enum

from httpx_sse import ServerSentEvent
from loguru import logger
from pydantic import ValidationError

from bmcms_notify.config import settings
from bmcms_notify.schemas.notifications import Notification


class StreamState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class StreamTransitionError(ValueError):
    """A transition was requested from a state that does not allow it."""


@dataclass(frozen=True)
class StreamStatus:
    state: StreamState = StreamState.DISCONNECTED
    attempts: int = 0
    exhausted: bool = False


def begin(status: StreamStatus, *, has_identity: bool) -> StreamStatus:
    """Begin connecting. Without a user identity nothing happens."""
    if not has_identity:
        return status
    if status.state is not StreamState.DISCONNECTED:
        raise StreamTransitionError(f"cannot start from {status.state.value}")
    return StreamStatus(state=StreamState.CONNECTING)


def opened(status: StreamStatus) -> StreamStatus:
    """Channel is open; the attempt counter resets."""
    if status.state is not StreamState.CONNECTING:
        raise StreamTransitionError(f"cannot open from {status.state.value}")
    return replace(status, state=StreamState.CONNECTED, attempts=0)


def failed(status: StreamStatus) -> StreamStatus:
    """Channel dropped, was closed by the server, or never opened."""
    if status.state not in (StreamState.CONNECTING, StreamState.CONNECTED):
        raise StreamTransitionError(f"cannot fail from {status.state.value}")
    return replace(status, state=StreamState.ERROR)


def retry(status: StreamStatus, max_attempts: int) -> StreamStatus:
    """
    Leave ERROR: reconnect while under the cap, otherwise stop for good.

    Each reconnect increments ``attempts``.
    """
    if status.state is not StreamState.ERROR:
        raise StreamTransitionError(f"cannot retry from {status.state.value}")
    if status.attempts < max_attempts:
        return replace(status, state=StreamState.CONNECTING, attempts=status.attempts + 1)
    return replace(status, state=StreamState.DISCONNECTED, exhausted=True)


def closed(status: StreamStatus) -> StreamStatus:
    """Explicit teardown from any state."""
    return replace(status, state=StreamState.DISCONNECTED)


ChannelOpener = Callable[[str], AbstractAsyncContextManager[AsyncIterator[ServerSentEvent]]]


class StreamSubscriber:
    """
    Long-lived subscription to a user's notification stream.

    Use as an async context manager; leaving the block closes the channel
    and cancels a pending reconnect delay, whatever state it is in.
    """

    def __init__(
        self,
        user_id: str | None,
        open_channel: ChannelOpener,
        on_message: Callable[[Notification], None],
        *,
        on_exhausted: Callable[[], None] | None = None,
        max_reconnect_attempts: int | None = None,
        reconnect_delay: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.user_id = user_id
        self.open_channel = open_channel
        self.on_message = on_message
        self.on_exhausted = on_exhausted
        self.max_reconnect_attempts = (
            settings.stream_max_reconnect_attempts
            if max_reconnect_attempts is None
            else max_reconnect_attempts
        )
        self.reconnect_delay = (
            settings.stream_reconnect_delay_seconds if reconnect_delay is None else reconnect_delay
        )
        self._sleep = sleep
        self._status = StreamStatus()
        self._task: asyncio.Task | None = None

    @property
    def status(self) -> StreamStatus:
        return self._status

    @property
    def state(self) -> StreamState:
        return self._status.state

    async def __aenter__(self) -> "StreamSubscriber":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def start(self) -> bool:
        """Start connecting in the background. Returns False when no identity is known."""
        if self._task is not None:
            return True
        status = begin(self._status, has_identity=bool(self.user_id))
        if status is self._status:
            logger.debug("No user identity, notification stream not started")
            return False
        self._set(status)
        self._task = asyncio.create_task(self._run(), name=f"notification-stream-{self.user_id}")
        return True

    async def wait(self) -> None:
        """Wait for the subscriber to stop by itself after exhausting its reconnects."""
        if self._task is not None:
            await self._task

    async def close(self) -> None:
        """Close the channel and cancel any pending reconnect."""
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._status.state is not StreamState.DISCONNECTED:
            self._set(closed(self._status))

    async def _run(self) -> None:
        while True:
            try:
                async with self.open_channel(self.user_id) as events:
                    self._set(opened(self._status))
                    logger.info("Notification stream connected", user_id=self.user_id)
                    async for event in events:
                        self._dispatch(event)
                logger.warning("Notification stream closed by server", user_id=self.user_id)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning(
                    "Notification stream error",
                    user_id=self.user_id,
                    error=str(exc) or type(exc).__name__,
                )

            self._set(failed(self._status))
            next_status = retry(self._status, self.max_reconnect_attempts)
            if next_status.exhausted:
                self._set(next_status)
                logger.error(
                    "Max reconnection attempts reached, live updates stopped",
                    user_id=self.user_id,
                    attempts=self.max_reconnect_attempts,
                )
                if self.on_exhausted is not None:
                    self.on_exhausted()
                return

            logger.info(
                "Attempting to reconnect",
                user_id=self.user_id,
                attempt=next_status.attempts,
                max_attempts=self.max_reconnect_attempts,
            )
            await self._sleep(self.reconnect_delay)
            self._set(next_status)

    def _dispatch(self, event: ServerSentEvent) -> None:
        if event.event != "message" or not event.data:
            return
        try:
            notification = Notification.model_validate_json(event.data)
        except ValidationError as exc:
            logger.warning(
                "Discarding malformed notification message",
                user_id=self.user_id,
                error=str(exc),
            )
            return
        try:
            self.on_message(notification)
        except Exception:
            logger.exception("Notification handler failed", user_id=self.user_id)

    def _set(self, status: StreamStatus) -> None:
        if status.state is not self._status.state:
            logger.debug(
                "Notification stream state changed",
                user_id=self.user_id,
                state=status.state.value,
                attempts=status.attempts,
            )
        self._status = status
