"""Client-side notification store and its reconciliation rules."""

from collections.abc import Callable, Iterable

from bmcms_notify.schemas.notifications import Notification

Listener = Callable[["NotificationStore"], None]


class NotificationStore:
    """
    The client-visible collection of one user's notifications.

    Records are unique by ``id``. Read state only moves forward: when the
    same id is seen twice in a reconciliation, a read copy beats an unread
    one regardless of which arrived first.
    """

    def __init__(self, notifications: Iterable[Notification] = ()) -> None:
        self._by_id: dict[str, Notification] = {}
        # Insertion order, used as the tie-breaker for equal timestamps
        self._order: list[str] = []
        self._listeners: list[Listener] = []
        for notification in notifications:
            if notification.id not in self._by_id:
                self._order.append(notification.id)
            self._by_id[notification.id] = _merge(self._by_id.get(notification.id), notification)

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, notification_id: object) -> bool:
        return notification_id in self._by_id

    def get(self, notification_id: str) -> Notification | None:
        return self._by_id.get(notification_id)

    @property
    def notifications(self) -> list[Notification]:
        """Newest-created first."""
        ordered = [self._by_id[notification_id] for notification_id in self._order]
        return sorted(ordered, key=lambda n: n.created_at, reverse=True)

    def unread_count(self) -> int:
        return sum(1 for n in self._by_id.values() if not n.is_read)

    # --- Mutations ---

    def replace(self, notifications: Iterable[Notification]) -> None:
        """
        Apply a full refetch.

        Membership becomes exactly the fetched set; ids no longer present
        are evicted. For ids already held, read state merges "true wins".
        """
        by_id: dict[str, Notification] = {}
        order: list[str] = []
        for notification in notifications:
            if notification.id not in by_id:
                order.append(notification.id)
            known = by_id.get(notification.id) or self._by_id.get(notification.id)
            by_id[notification.id] = _refetched(known, notification)
        self._by_id = by_id
        self._order = order
        self._notify()

    def ingest_pushed(self, notification: Notification) -> bool:
        """
        Insert a pushed notification at the head.

        Returns True when it was new. An id already held keeps its entry;
        only a read flag can be carried over from the pushed copy.
        """
        existing = self._by_id.get(notification.id)
        if existing is not None:
            merged = _merge(existing, notification)
            if merged is not existing:
                self._by_id[notification.id] = merged
                self._notify()
            return False

        self._by_id[notification.id] = notification
        self._order.insert(0, notification.id)
        self._notify()
        return True

    def clear(self) -> None:
        self._by_id.clear()
        self._order.clear()
        self._notify()

    # --- Listeners ---

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(store)`` after every change; returns a remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)


def _merge(known: Notification | None, incoming: Notification) -> Notification:
    """Merge two copies of the same id: keep ``known``, read state true wins."""
    if known is None:
        return incoming
    if incoming.is_read and not known.is_read:
        return known.as_read()
    return known


def _refetched(known: Notification | None, incoming: Notification) -> Notification:
    """Server copy wins, except that a known read flag is never dropped."""
    if known is not None and known.is_read and not incoming.is_read:
        return incoming.as_read()
    return incoming
