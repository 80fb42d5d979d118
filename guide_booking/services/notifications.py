"""Notification dispatch and inbox queries.

Services build ``NotificationRequest`` objects while they work and hand them
to ``NotificationDispatcher.dispatch`` only after their own transaction has
committed. A failed notification is rolled back and logged on its own and
never reverts the booking or review that triggered it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy.orm import Session

from guide_booking.db.base import get_db
from guide_booking.db.models.notification import Notification, NotificationType
from guide_booking.db.models.user import User, UserRole

logger = logging.getLogger(__name__)


@dataclass
class NotificationRequest:
    title: str
    description: str
    recipient_id: int
    type: str = NotificationType.info.value
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[int] = None
    related_entity_name: Optional[str] = None
    action_url: Optional[str] = None
    action_label: Optional[str] = None


def find_admin_users(db: Session) -> List[User]:
    return (
        db.query(User)
        .filter(User.role == UserRole.admin.value, User.is_active.is_(True))
        .order_by(User.id)
        .all()
    )


def find_user_by_email(db: Session, email: Optional[str]) -> Optional[User]:
    if not email:
        return None
    return db.query(User).filter(User.email == email).first()


def for_recipients(recipients: Iterable[User], **fields) -> List[NotificationRequest]:
    """Fan one message out to several accounts, skipping duplicates."""
    requests = []
    seen = set()
    for user in recipients:
        if user is None or user.id in seen:
            continue
        seen.add(user.id)
        requests.append(NotificationRequest(recipient_id=user.id, **fields))
    return requests


class NotificationDispatcher:
    def __init__(self, db: Session):
        self.db = db

    def notify(self, request: NotificationRequest) -> Optional[Notification]:
        try:
            notification = Notification(
                recipient_id=request.recipient_id,
                title=request.title,
                description=request.description,
                type=request.type,
                related_entity_type=request.related_entity_type,
                related_entity_id=request.related_entity_id,
                related_entity_name=request.related_entity_name,
                action_url=request.action_url,
                action_label=request.action_label,
            )
            self.db.add(notification)
            self.db.commit()
            return notification
        except Exception:
            self.db.rollback()
            logger.exception(
                "Failed to deliver notification %r to user %s", request.title, request.recipient_id
            )
            return None

    def dispatch(self, requests: Iterable[NotificationRequest]) -> int:
        """Deliver each request independently; returns how many were stored."""
        delivered = 0
        for request in requests:
            if self.notify(request) is not None:
                delivered += 1
        return delivered


def get_notifier(db: Session = Depends(get_db)) -> NotificationDispatcher:
    return NotificationDispatcher(db)


# --------------------------------------------------
# Inbox
# --------------------------------------------------

def list_notifications(
    db: Session,
    recipient_id: int,
    *,
    type: Optional[str] = None,
    read: Optional[bool] = None,
    search: Optional[str] = None,
    limit: int = 10,
    offset: int = 0,
) -> Tuple[List[Notification], int]:
    q = db.query(Notification).filter(Notification.recipient_id == recipient_id)
    if type and type != "all":
        q = q.filter(Notification.type == type)
    if read is not None:
        q = q.filter(Notification.read.is_(read))
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(
            Notification.title.ilike(like)
            | Notification.description.ilike(like)
            | Notification.related_entity_name.ilike(like)
        )
    total = q.count()
    rows = (
        q.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total


def unread_count(db: Session, recipient_id: int) -> int:
    return (
        db.query(Notification)
        .filter(Notification.recipient_id == recipient_id, Notification.read.is_(False))
        .count()
    )


def mark_read(db: Session, notification_id: int, recipient_id: int, read: bool = True) -> Optional[Notification]:
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.recipient_id == recipient_id)
        .first()
    )
    if not notification:
        return None
    notification.read = read
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, recipient_id: int) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.recipient_id == recipient_id, Notification.read.is_(False))
        .update({Notification.read: True}, synchronize_session=False)
    )
    db.commit()
    return updated
