"""
Notification inbox routes.

Rows are written by the notification worker; these routes only read and
acknowledge them.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc
from sqlalchemy.orm import Session

from trademart.api.serializers import notification_to_dict, ok
from trademart.core.errors import NotFoundError
from trademart.core.security import get_current_user_id
from trademart.db.models import Notification
from trademart.db.session import get_db

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


def _get_own(db: Session, user_id: int, notification_id: int) -> Notification:
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id,
    ).first()
    if not notification:
        raise NotFoundError("Notification not found")
    return notification


@router.get("")
async def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))

    total = query.count()
    notifications = query.order_by(
        desc(Notification.created_at), desc(Notification.id)
    ).offset(offset).limit(limit).all()

    unread_count = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read.is_(False),
    ).count()

    return ok(
        [notification_to_dict(n) for n in notifications],
        total=total,
        unreadCount=unread_count,
    )


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    notification = _get_own(db, user_id, notification_id)
    notification.read = True
    db.commit()
    db.refresh(notification)
    return ok(notification_to_dict(notification))


@router.post("/read-all")
async def mark_all_read(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    updated = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read.is_(False),
    ).update({Notification.read: True}, synchronize_session=False)
    db.commit()
    return ok({"updated": updated})


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    notification = _get_own(db, user_id, notification_id)
    db.delete(notification)
    db.commit()
    return ok({"id": notification_id})
