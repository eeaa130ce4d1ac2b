"""
In-process notification stream.

Open client connections subscribe with a predicate and receive newly created
notifications through their own asyncio.Queue. Delivery is best-effort and
process-local: a client that is not connected misses the event and re-syncs
through the unread-count endpoint. Running several server processes needs a
shared backplane implementing NotificationBackplane.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Callable, Dict, Protocol

from config import config
from exceptions import StreamDeliveryWarning
from logging_config import get_logger
from models.notification import NotificationModel
from models.user import CurrentUser
from constants import RecipientKinds

logger = get_logger("notification_stream")

NotificationFilter = Callable[[NotificationModel], bool]


class Subscription:
    """One connected client: a filter plus the queue it drains."""

    def __init__(self, predicate: NotificationFilter, max_queue: int):
        self.predicate = predicate
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)

    async def get(self) -> NotificationModel:
        return await self.queue.get()


class NotificationBackplane(Protocol):
    def publish(self, notification: NotificationModel) -> int: ...

    def subscribe(self, predicate: NotificationFilter, max_queue: int = ...) -> Subscription: ...

    def unsubscribe(self, subscription: Subscription) -> None: ...


class NotificationStream:
    """Single-process publish/subscribe hub.

    The registry is only touched from the event loop thread, so it needs no lock.
    """

    def __init__(self):
        self._subscribers: Dict[int, Subscription] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, predicate: NotificationFilter, max_queue: int = config.STREAM_QUEUE_SIZE) -> Subscription:
        subscription = Subscription(predicate, max_queue)
        self._subscribers[id(subscription)] = subscription
        logger.debug(f"Stream subscriber added (total={len(self._subscribers)})")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if self._subscribers.pop(id(subscription), None) is not None:
            logger.debug(f"Stream subscriber removed (total={len(self._subscribers)})")

    @asynccontextmanager
    async def subscription(self, predicate: NotificationFilter, max_queue: int = config.STREAM_QUEUE_SIZE):
        """Subscribe for the lifetime of a connection; always deregisters on exit."""
        subscription = self.subscribe(predicate, max_queue)
        try:
            yield subscription
        finally:
            self.unsubscribe(subscription)

    def publish(self, notification: NotificationModel) -> int:
        """Push to every matching subscriber. Returns the number of queues reached."""
        delivered = 0
        # Copy: a subscriber may disconnect while we iterate
        for subscription in list(self._subscribers.values()):
            try:
                matches = subscription.predicate(notification)
            except Exception as exc:
                warning = StreamDeliveryWarning(f"Subscriber filter failed for notification {notification.id}: {exc}")
                logger.warning(str(warning), extra={"data": {"recipient": notification.recipient}})
                continue
            if not matches:
                continue
            try:
                subscription.queue.put_nowait(notification)
                delivered += 1
            except asyncio.QueueFull:
                warning = StreamDeliveryWarning(f"Subscriber queue full, dropped notification {notification.id}")
                logger.warning(str(warning), extra={"data": {"recipient": notification.recipient}})
        return delivered


def recipient_filter(user: CurrentUser) -> NotificationFilter:
    """Match notifications addressed to this account (and to its role, for company/school accounts)."""
    def matches(notification: NotificationModel) -> bool:
        if notification.recipient != user.id or notification.recipient_kind != user.kind:
            return False
        if user.kind in RecipientKinds.ROLE_SCOPED:
            return notification.recipient_role == user.role
        return True
    return matches


# Process-wide hub
notification_stream = NotificationStream()
