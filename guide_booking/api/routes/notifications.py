from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from guide_booking.core.security import get_current_user
from guide_booking.db.base import get_db
from guide_booking.db.models.user import User
from guide_booking.schemas.notification import (
    NotificationListResponse,
    NotificationResponse,
    ReadUpdate,
    UnreadCount,
)
from guide_booking.services import notifications as inbox

router = APIRouter(prefix="/notifications", tags=["notifications"])


# The caller's own inbox only
@router.get("", response_model=NotificationListResponse)
def list_notifications(
    type: Optional[str] = Query(None, description="info/success/warning/error/all"),
    read: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = inbox.list_notifications(
        db, current_user.id, type=type, read=read, search=search, limit=limit, offset=offset
    )
    return {"items": items, "total": total, "unread": inbox.unread_count(db, current_user.id)}


@router.get("/unread-count", response_model=UnreadCount)
def unread_count(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return {"count": inbox.unread_count(db, current_user.id)}


@router.put("/read-all")
def mark_all_read(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    updated = inbox.mark_all_read(db, current_user.id)
    return {"ok": True, "updated": updated}


@router.put("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(
    notification_id: int,
    read_in: Optional[ReadUpdate] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    read = read_in.read if read_in is not None else True
    notification = inbox.mark_read(db, notification_id, current_user.id, read)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification
