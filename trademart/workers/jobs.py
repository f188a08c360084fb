"""
Background job definitions.
"""
from redis import Redis
from redis.backoff import NoBackoff
from redis.retry import Retry
from rq import Queue

from trademart.core.config import settings
from trademart.core.logging import get_logger

logger = get_logger(__name__)


def get_redis(blocking: bool = False) -> Redis:
    """
    Redis connection for enqueueing from requests, bounded by REDIS_SOCKET_TIMEOUT
    with a single immediate retry.

    The worker passes blocking=True: its dequeue waits on BLPOP, so only the
    connect step is bounded there.
    """
    timeout = settings.REDIS_SOCKET_TIMEOUT
    if blocking:
        return Redis.from_url(settings.REDIS_URL, socket_connect_timeout=timeout)
    return Redis.from_url(
        settings.REDIS_URL,
        socket_connect_timeout=timeout,
        socket_timeout=timeout,
        retry=Retry(NoBackoff(), 1),
    )


def get_queue(name: str = "default") -> Queue:
    """Get RQ queue."""
    return Queue(name, connection=get_redis())


# ============= JOB FUNCTIONS =============

def deliver_notification_job(payload: dict) -> int:
    """Persist a notification for its recipient. Returns the notification id."""
    from trademart.db.session import get_db_context
    from trademart.db.models import Notification

    with get_db_context() as db:
        notification = Notification(
            user_id=payload["user_id"],
            type=payload["type"],
            title=payload["title"],
            message=payload["message"],
            data=payload.get("data") or {},
            read=False,
        )
        db.add(notification)
        db.flush()
        notification_id = notification.id

    logger.info(
        f"Delivered {payload['type']} notification {notification_id}",
        extra={"user_id": payload["user_id"], "action": "notification_delivered"},
    )
    return notification_id


def purge_read_notifications_job(older_than_days: int = 30) -> int:
    """Delete read notifications older than the given age."""
    from datetime import datetime, timedelta, timezone
    from trademart.db.session import get_db_context
    from trademart.db.models import Notification

    cutoff = datetime.now(timezone.utc) - timedelta(days=older_than_days)
    with get_db_context() as db:
        deleted = db.query(Notification).filter(
            Notification.read.is_(True),
            Notification.created_at < cutoff,
        ).delete(synchronize_session=False)

    logger.info(f"Purged {deleted} read notifications older than {older_than_days} days")
    return deleted
