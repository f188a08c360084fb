"""
Fire-and-forget notification fan-out.

Business operations hand a NotificationMessage to a NotificationChannel and
move on. Delivery (persisting the row the user later reads) happens in the
RQ worker. Nothing raised here may reach the caller: every failure is logged
and swallowed by NotificationDispatcher.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol

from trademart.core.config import settings
from trademart.core.logging import get_logger

logger = get_logger(__name__)


# Notification types
QUOTE_RECEIVED = "quote_received"
QUOTE_ACCEPTED = "quote_accepted"
QUOTE_REJECTED = "quote_rejected"
PAYMENT_RELEASED = "payment_released"
DISPUTE_CREATED = "dispute_created"
QC_COMPLETED = "qc_completed"
ESCROW_FUNDED = "escrow_funded"
ESCROW_REFUNDED = "escrow_refunded"
PRODUCT_QUOTE_REQUESTED = "product_quote_requested"
SUPPLIER_VERIFIED = "supplier_verified"


@dataclass
class NotificationMessage:
    user_id: int
    type: str
    title: str
    message: str
    data: Dict = field(default_factory=dict)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        return asdict(self)


class NotificationChannel(Protocol):
    def publish(self, notification: NotificationMessage) -> None:
        ...


class LogNotificationChannel:
    """Writes the notification to the log only. Used when Redis is not available."""

    def publish(self, notification: NotificationMessage) -> None:
        logger.info(
            f"Notification [{notification.type}] to user {notification.user_id}: {notification.title}",
            extra={"user_id": notification.user_id, "action": "notify"},
        )


class QueueNotificationChannel:
    """Enqueues delivery onto an RQ queue; the worker persists the notification."""

    def __init__(self, queue=None):
        self._queue = queue

    @property
    def queue(self):
        if self._queue is None:
            from trademart.workers.jobs import get_queue
            self._queue = get_queue(settings.NOTIFICATION_QUEUE)
        return self._queue

    def publish(self, notification: NotificationMessage) -> None:
        from trademart.workers.jobs import deliver_notification_job
        self.queue.enqueue(deliver_notification_job, notification.to_dict())


class RecordingNotificationChannel:
    """Keeps published notifications in memory."""

    def __init__(self):
        self.sent: List[NotificationMessage] = []

    def publish(self, notification: NotificationMessage) -> None:
        self.sent.append(notification)

    def for_user(self, user_id: int) -> List[NotificationMessage]:
        return [n for n in self.sent if n.user_id == user_id]

    def types(self) -> List[str]:
        return [n.type for n in self.sent]


class NotificationDispatcher:
    """Best-effort notifier used by the services."""

    def __init__(self, channel: NotificationChannel):
        self.channel = channel

    def notify(
        self,
        user_id: Optional[int],
        type: str,
        title: str,
        message: str,
        data: Optional[dict] = None,
    ) -> bool:
        """Publish one notification. Returns False if publishing failed."""
        if user_id is None:
            logger.warning(f"Skipping {type} notification without a recipient")
            return False
        try:
            self.channel.publish(NotificationMessage(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                data=data or {},
            ))
            return True
        except Exception:
            logger.exception(
                f"Failed to publish {type} notification to user {user_id}",
                extra={"user_id": user_id, "action": "notify_failed"},
            )
            return False

    def notify_many(
        self,
        user_ids: Iterable[int],
        type: str,
        title: str,
        message: str,
        data: Optional[dict] = None,
    ) -> int:
        """Publish to several recipients; returns how many were handed off."""
        sent = 0
        for user_id in dict.fromkeys(user_ids):
            if self.notify(user_id, type, title, message, data):
                sent += 1
        return sent


def build_channel(backend: str = None) -> NotificationChannel:
    backend = backend or settings.NOTIFICATION_BACKEND
    if backend == "log":
        return LogNotificationChannel()
    return QueueNotificationChannel()


_dispatcher: Optional[NotificationDispatcher] = None


def get_notifier() -> NotificationDispatcher:
    """FastAPI dependency returning the process-wide dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher(build_channel())
    return _dispatcher
