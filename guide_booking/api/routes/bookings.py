from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from guide_booking.core.security import get_current_user, require_admin
from guide_booking.db.base import get_db
from guide_booking.db.models.customer import Customer
from guide_booking.db.models.guide import Guide
from guide_booking.db.models.user import User, UserRole
from guide_booking.schemas.booking import (
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatsResponse,
    BookingUpdate,
)
from guide_booking.services import booking_service
from guide_booking.services.notifications import NotificationDispatcher, get_notifier

router = APIRouter(prefix="/bookings", tags=["bookings"])


# List bookings; non-admins only see their own
@router.get("", response_model=BookingListResponse)
def list_bookings(
    customer_id: Optional[int] = Query(None),
    destination_id: Optional[int] = Query(None),
    guide_id: Optional[int] = Query(None),
    status_: Optional[str] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    search: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not current_user.is_admin:
        if current_user.role == UserRole.guide.value:
            guide = db.query(Guide).filter(Guide.email == current_user.email).first()
            if not guide:
                return {"items": [], "total": 0}
            guide_id = guide.id
        else:
            customer = db.query(Customer).filter(Customer.email == current_user.email).first()
            if not customer:
                return {"items": [], "total": 0}
            customer_id = customer.id

    items, total = booking_service.list_bookings(
        db,
        customer_id=customer_id,
        destination_id=destination_id,
        guide_id=guide_id,
        status=status_,
        start_date=start_date,
        end_date=end_date,
        search=search,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {"items": items, "total": total}


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    booking_in: BookingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    # customers book for themselves; admins may book on anyone's behalf
    if not current_user.is_admin and booking_in.customer.email != current_user.email:
        raise HTTPException(status_code=403, detail="You can only create bookings for yourself")
    return booking_service.create_booking(db, booking_in, notifier)


# Admin: platform booking statistics
@router.get("/stats", response_model=BookingStatsResponse)
def booking_stats(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return booking_service.get_booking_stats(db)


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    booking = booking_service.get_booking(db, booking_id)
    if not booking_service.can_manage_booking(booking, current_user):
        raise HTTPException(status_code=403, detail="You do not have permission to view this booking")
    return booking


@router.put("/{booking_id}", response_model=BookingResponse)
def update_booking(
    booking_id: int,
    booking_in: BookingUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    return booking_service.update_booking(db, booking_id, booking_in, current_user, notifier)


@router.delete("/{booking_id}")
def delete_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    booking_service.delete_booking(db, booking_id, current_user)
    return {"success": True, "deleted_booking_id": booking_id}
