"""In-process publish/subscribe relay for transaction status events.

Each connected client holds a ``Subscription``: a bounded queue the
transport (see ``exchange.api.v1.notifications``) drains and forwards.
Publishing is fire-and-forget. A full or broken subscription loses the
event and the publisher carries on; clients recover by re-fetching.
"""

import asyncio
import enum
import itertools
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, field_serializer

from exchange.models.transaction import Transaction, TransactionStatus, TransactionType
from exchange.models.wallet import Currency


class EventType(str, enum.Enum):
    """Events pushed to connected clients."""

    AUTHENTICATED = "authenticated"
    PING = "ping"
    TRANSACTION_UPDATE = "transaction:update"
    NEW_PENDING_TRANSACTION = "admin:new-pending-transaction"


class TransactionEvent(BaseModel):
    """Payload describing a transaction at the moment of a status change.

    Events are published after the change commits, from the request that
    made it. Two requests committing close together may publish in either
    order, so clients keep, per ``transaction_id``, the event with the
    latest ``updated_at`` and drop older ones.
    """

    model_config = ConfigDict(from_attributes=True)

    transaction_id: uuid.UUID
    user_id: uuid.UUID
    status: TransactionStatus
    type: TransactionType
    amount: Decimal
    currency: Currency
    updated_at: datetime
    rejection_reason: Optional[str] = None

    @field_serializer("amount")
    def serialize_amount(self, amount: Decimal) -> str:
        """Serialize amount as decimal string to preserve precision."""
        return str(amount)

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "TransactionEvent":
        return cls(
            transaction_id=transaction.id,
            user_id=transaction.user_id,
            status=transaction.status,
            type=transaction.type,
            amount=transaction.amount,
            currency=transaction.currency,
            updated_at=transaction.updated_at,
            rejection_reason=transaction.rejection_reason,
        )


class Notification(BaseModel):
    """Envelope sent over the wire."""

    event: EventType
    data: dict[str, Any]


_subscription_ids = itertools.count(1)


class Subscription:
    """A single client's view of the relay."""

    def __init__(self, user_id: uuid.UUID, is_admin: bool, max_size: int) -> None:
        self.id = next(_subscription_ids)
        self.user_id = user_id
        self.is_admin = is_admin
        self.queue: asyncio.Queue[Notification] = asyncio.Queue(maxsize=max_size)

    async def get(self) -> Notification:
        return await self.queue.get()

    def __repr__(self) -> str:
        return f"Subscription(id={self.id}, user_id={self.user_id}, is_admin={self.is_admin})"


class NotificationRelay:
    """Routes transaction events to the owning user and to admins.

    Events for one user are enqueued in publish order, so a subscriber
    sees status changes in the order they were published. There is no
    ordering between different users' events.
    """

    def __init__(self, max_queue_size: int = 100) -> None:
        self.max_queue_size = max_queue_size
        self._user_subscriptions: dict[uuid.UUID, set[Subscription]] = {}
        self._admin_subscriptions: set[Subscription] = set()

    def subscribe(self, user_id: uuid.UUID, is_admin: bool = False) -> Subscription:
        subscription = Subscription(user_id, is_admin, self.max_queue_size)
        self._user_subscriptions.setdefault(user_id, set()).add(subscription)
        if is_admin:
            self._admin_subscriptions.add(subscription)
        logger.info(f"Subscribed {subscription}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscriptions = self._user_subscriptions.get(subscription.user_id)
        if subscriptions is not None:
            subscriptions.discard(subscription)
            if not subscriptions:
                del self._user_subscriptions[subscription.user_id]
        self._admin_subscriptions.discard(subscription)
        logger.info(f"Unsubscribed {subscription}")

    def subscriber_count(self, user_id: uuid.UUID | None = None) -> int:
        if user_id is None:
            return sum(len(subs) for subs in self._user_subscriptions.values())
        return len(self._user_subscriptions.get(user_id, ()))

    @property
    def admin_count(self) -> int:
        return len(self._admin_subscriptions)

    def notify_status_change(self, user_id: uuid.UUID, payload: TransactionEvent) -> int:
        """Send a ``transaction:update`` event to every session of ``user_id``.

        Returns:
            int: Number of subscriptions the event was queued on
        """
        notification = Notification(
            event=EventType.TRANSACTION_UPDATE,
            data=payload.model_dump(mode="json"),
        )
        subscriptions = list(self._user_subscriptions.get(user_id, ()))
        delivered = self._deliver(subscriptions, notification)
        logger.debug(
            f"Transaction update {payload.transaction_id} ({payload.status.value}) "
            f"queued for {delivered} session(s) of user {user_id}"
        )
        return delivered

    def notify_new_pending_transaction(self, payload: TransactionEvent) -> int:
        """Broadcast a newly created pending transaction to admin sessions."""
        notification = Notification(
            event=EventType.NEW_PENDING_TRANSACTION,
            data=payload.model_dump(mode="json"),
        )
        delivered = self._deliver(list(self._admin_subscriptions), notification)
        logger.debug(
            f"New pending {payload.type.value} {payload.transaction_id} "
            f"queued for {delivered} admin session(s)"
        )
        return delivered

    def _deliver(self, subscriptions: list[Subscription], notification: Notification) -> int:
        delivered = 0
        for subscription in subscriptions:
            try:
                subscription.queue.put_nowait(notification)
            except asyncio.QueueFull:
                logger.warning(
                    f"Dropping {notification.event.value} event for {subscription}: queue full"
                )
            except Exception:
                logger.exception(
                    f"Failed to queue {notification.event.value} event for {subscription}"
                )
            else:
                delivered += 1
        return delivered
