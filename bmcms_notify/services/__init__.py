"""Services for BMCMS notifications."""

from bmcms_notify.services.broker import NotificationBroker, broker
from bmcms_notify.services.cache import NotificationCache
from bmcms_notify.services.feed import NotificationFeed
from bmcms_notify.services.live import NotificationCenter
from bmcms_notify.services.store import NotificationStore
from bmcms_notify.services.stream import StreamState, StreamStatus, StreamSubscriber

__all__ = [
    "NotificationBroker",
    "broker",
    "NotificationCache",
    "NotificationFeed",
    "NotificationCenter",
    "NotificationStore",
    "StreamState",
    "StreamStatus",
    "StreamSubscriber",
]
