"""Booking lifecycle: listing, creation, partial updates, deletion and stats.

Creation runs the availability check and every insert in one transaction,
after locking the destination (and guide) row, so two concurrent requests for
the same target and overlapping dates cannot both commit. Notifications go out
only after the commit.
"""

from __future__ import annotations

import enum
import logging
import secrets
import time
from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlalchemy import extract, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from guide_booking.core.config import settings
from guide_booking.db.models.booking import (
    PROTECTED_BOOKING_STATUSES,
    Accommodation,
    Booking,
    BookingActivity,
    BookingStatus,
    Document,
    EmergencyContact,
    EquipmentRental,
    Note,
    PaymentStatus,
    PaymentTransaction,
    Transportation,
)
from guide_booking.db.models.customer import Customer
from guide_booking.db.models.destination import Destination
from guide_booking.db.models.guide import Guide
from guide_booking.db.models.notification import NotificationType
from guide_booking.db.models.user import User
from guide_booking.schemas.booking import BookingCreate, BookingUpdate, CustomerIn
from guide_booking.services.availability import AvailabilityTarget, has_conflict
from guide_booking.services.exceptions import (
    BookingStateError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from guide_booking.services.notifications import (
    NotificationDispatcher,
    NotificationRequest,
    find_admin_users,
    find_user_by_email,
    for_recipients,
)

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "created_at": Booking.created_at,
    "start_date": Booking.start_date,
    "end_date": Booking.end_date,
    "total_amount": Booking.total_amount,
    "status": Booking.status,
    "booking_number": Booking.booking_number,
}

# child tables, in the order they are cleared before the booking row goes
CHILD_MODELS = (
    Accommodation,
    Transportation,
    BookingActivity,
    EquipmentRental,
    PaymentTransaction,
    EmergencyContact,
    Document,
    Note,
)


def _value(v):
    return v.value if isinstance(v, enum.Enum) else v


def _with_relations(q):
    return q.options(
        joinedload(Booking.customer),
        joinedload(Booking.destination),
        joinedload(Booking.guide),
        selectinload(Booking.accommodations),
        selectinload(Booking.transportation),
        selectinload(Booking.activities),
        selectinload(Booking.equipment_rentals),
        selectinload(Booking.transactions),
        selectinload(Booking.documents),
        selectinload(Booking.notes),
        selectinload(Booking.emergency_contact),
    )


def trip_duration(start_date: date, end_date: date) -> int:
    """Number of days the trip covers, counting both ends."""
    return (end_date - start_date).days + 1


def generate_booking_number(customer_name: Optional[str]) -> str:
    timestamp = str(int(time.time() * 1000))[-8:]
    initials = "".join(part[0] for part in (customer_name or "").split() if part).upper() or "XX"
    return f"B{timestamp}{initials}-{secrets.token_hex(2).upper()}"


def can_manage_booking(booking: Booking, actor: User) -> bool:
    if actor.is_admin:
        return True
    if booking.customer is not None and booking.customer.email == actor.email:
        return True
    return actor.is_guide and booking.guide is not None and booking.guide.email == actor.email


# --------------------------------------------------
# Queries
# --------------------------------------------------

def list_bookings(
    db: Session,
    *,
    customer_id: Optional[int] = None,
    destination_id: Optional[int] = None,
    guide_id: Optional[int] = None,
    status: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> Tuple[List[Booking], int]:
    if sort_by not in SORTABLE_FIELDS:
        raise ValidationFailedError(f"Cannot sort bookings by '{sort_by}'")
    if sort_order not in ("asc", "desc"):
        raise ValidationFailedError("sort_order must be 'asc' or 'desc'")

    q = db.query(Booking)
    if customer_id:
        q = q.filter(Booking.customer_id == customer_id)
    if destination_id:
        q = q.filter(Booking.destination_id == destination_id)
    if guide_id:
        q = q.filter(Booking.guide_id == guide_id)
    if status:
        q = q.filter(Booking.status == _value(status))

    if start_date and end_date:
        q = q.filter(
            or_(
                Booking.start_date.between(start_date, end_date),   # starts in range
                Booking.end_date.between(start_date, end_date),     # ends in range
                (Booking.start_date <= start_date) & (Booking.end_date >= end_date),  # spans range
            )
        )
    elif start_date:
        q = q.filter(Booking.start_date >= start_date)
    elif end_date:
        q = q.filter(Booking.end_date <= end_date)

    if search:
        like = f"%{search.strip()}%"
        q = (
            q.join(Customer, Booking.customer_id == Customer.id)
            .join(Destination, Booking.destination_id == Destination.id)
            .filter(
                Booking.booking_number.ilike(like)
                | Customer.name.ilike(like)
                | Destination.name.ilike(like)
            )
        )

    total = q.count()

    column = SORTABLE_FIELDS[sort_by]
    if sort_order == "asc":
        q = q.order_by(column.asc(), Booking.id.asc())
    else:
        q = q.order_by(column.desc(), Booking.id.desc())
    if offset:
        q = q.offset(offset)
    if limit:
        q = q.limit(limit)

    return _with_relations(q).all(), int(total)


def get_booking(db: Session, booking_id: int) -> Booking:
    booking = _with_relations(db.query(Booking)).filter(Booking.id == booking_id).first()
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


# --------------------------------------------------
# Create
# --------------------------------------------------

def _lock(db: Session, model, entity_id: int):
    # FOR UPDATE is a no-op on SQLite; on Postgres it serializes creators per target
    return db.query(model).filter(model.id == entity_id).with_for_update().first()


def upsert_customer(db: Session, data: CustomerIn) -> Customer:
    """Find the customer by email and refresh supplied contact fields, or create one."""
    fields = {
        "name": data.name,
        "phone": data.phone,
        "avatar": data.avatar,
        "nationality": data.nationality,
    }
    if data.address:
        fields.update(
            street=data.address.street,
            city=data.address.city,
            state=data.address.state,
            postal_code=data.address.postal_code,
            country=data.address.country,
        )

    customer = db.query(Customer).filter(Customer.email == data.email).first()
    if customer is None:
        customer = Customer(email=data.email, **fields)
        db.add(customer)
    else:
        for field, value in fields.items():
            if value is not None:
                setattr(customer, field, value)
    db.flush()
    return customer


def _child_rows(payload) -> dict:
    rows = {}
    if payload.accommodations is not None:
        rows["accommodations"] = [Accommodation(**a.dict()) for a in payload.accommodations]
    if payload.transportation is not None:
        rows["transportation"] = [Transportation(**t.dict()) for t in payload.transportation]
    if payload.activities is not None:
        rows["activities"] = [BookingActivity(**a.dict()) for a in payload.activities]
    if payload.equipment_rental is not None:
        rows["equipment_rentals"] = [EquipmentRental(**e.dict()) for e in payload.equipment_rental]
    if payload.documents is not None:
        rows["documents"] = [Document(**d.dict()) for d in payload.documents]
    if payload.notes is not None:
        rows["notes"] = [Note(**n.dict()) for n in payload.notes]
    return rows


def _insert_with_unique_number(db: Session, booking: Booking, customer_name: str) -> None:
    attempts = max(1, settings.booking_number_attempts)
    for attempt in range(1, attempts + 1):
        booking.booking_number = generate_booking_number(customer_name)
        try:
            with db.begin_nested():
                db.add(booking)
            return
        except IntegrityError:
            taken = (
                db.query(Booking.id)
                .filter(Booking.booking_number == booking.booking_number)
                .first()
            )
            if taken is None:
                raise
            logger.warning(
                "Booking number %s already taken (attempt %d/%d)",
                booking.booking_number,
                attempt,
                attempts,
            )
    raise ConflictError("Could not allocate a unique booking number, please retry")


def create_booking(
    db: Session,
    payload: BookingCreate,
    notifier: Optional[NotificationDispatcher] = None,
) -> Booking:
    start, end = payload.dates.start_date, payload.dates.end_date
    travelers = payload.travelers
    total_travelers = travelers.adults + travelers.children + travelers.infants

    try:
        destination = _lock(db, Destination, payload.destination.id)
        if not destination:
            raise NotFoundError("Destination not found")

        guide = None
        if payload.guide:
            guide = _lock(db, Guide, payload.guide.id)
            if not guide:
                raise NotFoundError("Guide not found")

        if has_conflict(db, AvailabilityTarget.destination, destination.id, start, end):
            raise ConflictError("Selected dates are not available for this destination")
        if guide and has_conflict(db, AvailabilityTarget.guide, guide.id, start, end):
            raise ConflictError("Selected guide is not available for these dates")

        customer = upsert_customer(db, payload.customer)

        payment = payload.payment
        booking = Booking(
            status=_value(payload.status),
            customer_id=customer.id,
            destination_id=destination.id,
            guide_id=guide.id if guide else None,
            start_date=start,
            end_date=end,
            duration=payload.duration or trip_duration(start, end),
            adults_count=travelers.adults,
            children_count=travelers.children,
            infants_count=travelers.infants,
            total_travelers=total_travelers,
            total_amount=payment.total_amount,
            currency=payment.currency,
            payment_status=_value(payment.status),
            deposit_amount=payment.deposit_amount,
            deposit_paid=payment.deposit_paid,
            balance_due_date=payment.balance_due_date,
            special_requests=list(payload.special_requests),
        )
        for attr, rows in _child_rows(payload).items():
            setattr(booking, attr, rows)
        booking.transactions = [
            PaymentTransaction(amount=t.amount, method=t.method, status=_value(t.status), date=t.date)
            for t in payment.transactions
        ]
        if payload.emergency:
            booking.emergency_contact = EmergencyContact(**payload.emergency.dict())

        _insert_with_unique_number(db, booking, customer.name)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Created booking %s (%s) for destination %s, %s to %s",
        booking.id,
        booking.booking_number,
        destination.id,
        start,
        end,
    )

    booking = get_booking(db, booking.id)
    if notifier is not None:
        notifier.dispatch(_creation_notifications(db, booking))
    return booking


def _booking_fields(booking: Booking) -> dict:
    return {
        "related_entity_type": "booking",
        "related_entity_id": booking.id,
        "related_entity_name": booking.booking_number,
        "action_url": f"/dashboard/bookings/{booking.id}",
        "action_label": "View booking",
    }


def _creation_notifications(db: Session, booking: Booking) -> List[NotificationRequest]:
    dates = f"{booking.start_date.isoformat()} to {booking.end_date.isoformat()}"
    requests = for_recipients(
        find_admin_users(db),
        title="New booking received",
        description=f"{booking.customer.name} booked {booking.destination.name} from {dates}.",
        type=NotificationType.info.value,
        **_booking_fields(booking),
    )
    if booking.guide is not None:
        requests += for_recipients(
            [find_user_by_email(db, booking.guide.email)],
            title="New booking assigned",
            description=f"You have been assigned to booking {booking.booking_number} for {booking.destination.name} ({dates}).",
            type=NotificationType.success.value,
            **_booking_fields(booking),
        )
    requests += for_recipients(
        [find_user_by_email(db, booking.customer.email)],
        title="Booking created",
        description=f"Your booking {booking.booking_number} for {booking.destination.name} ({dates}) has been created.",
        type=NotificationType.success.value,
        **_booking_fields(booking),
    )
    return requests


# --------------------------------------------------
# Update
# --------------------------------------------------

def update_booking(
    db: Session,
    booking_id: int,
    payload: BookingUpdate,
    actor: User,
    notifier: Optional[NotificationDispatcher] = None,
) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        raise NotFoundError("Booking not found")
    if not can_manage_booking(booking, actor):
        raise PermissionDeniedError("You do not have permission to update this booking")

    previous_status = booking.status
    previous_guide = booking.guide

    try:
        if payload.status is not None:
            booking.status = _value(payload.status)

        if payload.guide is not None:
            # availability is deliberately not re-checked on reassignment
            guide = db.query(Guide).filter(Guide.id == payload.guide.id).first()
            if not guide:
                raise NotFoundError("Guide not found")
            booking.guide = guide

        if payload.duration is not None:
            booking.duration = payload.duration

        if payload.dates is not None:
            new_start = payload.dates.start_date or booking.start_date
            new_end = payload.dates.end_date or booking.end_date
            if new_end < new_start:
                raise ValidationFailedError("end_date must be on or after start_date")
            booking.start_date, booking.end_date = new_start, new_end
            if payload.dates.start_date and payload.dates.end_date:
                booking.duration = trip_duration(new_start, new_end)

        t = payload.travelers
        if t is not None and any(v is not None for v in (t.adults, t.children, t.infants)):
            adults = t.adults if t.adults is not None else booking.adults_count
            children = t.children if t.children is not None else booking.children_count
            infants = t.infants if t.infants is not None else booking.infants_count
            if adults + children + infants < 1:
                raise ValidationFailedError("At least one traveler is required")
            booking.adults_count, booking.children_count, booking.infants_count = adults, children, infants
            booking.total_travelers = adults + children + infants

        if payload.payment is not None:
            for field, value in payload.payment.dict(exclude_unset=True).items():
                if value is None:
                    continue
                column = "payment_status" if field == "status" else field
                setattr(booking, column, _value(value))

        if payload.special_requests is not None:
            booking.special_requests = list(payload.special_requests)

        for attr, rows in _child_rows(payload).items():
            setattr(booking, attr, rows)

        if payload.emergency is not None:
            if booking.emergency_contact is not None:
                for field, value in payload.emergency.dict().items():
                    setattr(booking.emergency_contact, field, value)
            else:
                booking.emergency_contact = EmergencyContact(**payload.emergency.dict())

        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Updated booking %s", booking_id)

    booking = get_booking(db, booking_id)
    if notifier is not None:
        notifier.dispatch(_update_notifications(db, booking, previous_status, previous_guide))
    return booking


_STATUS_TONES = {
    BookingStatus.confirmed.value: NotificationType.success.value,
    BookingStatus.completed.value: NotificationType.success.value,
    BookingStatus.cancelled.value: NotificationType.warning.value,
}


def _update_notifications(
    db: Session,
    booking: Booking,
    previous_status: str,
    previous_guide: Optional[Guide],
) -> List[NotificationRequest]:
    requests: List[NotificationRequest] = []

    if booking.status != previous_status:
        requests += for_recipients(
            find_admin_users(db) + [find_user_by_email(db, booking.customer.email)],
            title="Booking status updated",
            description=f"Booking {booking.booking_number} changed from {previous_status} to {booking.status}.",
            type=_STATUS_TONES.get(booking.status, NotificationType.info.value),
            **_booking_fields(booking),
        )

    previous_guide_id = previous_guide.id if previous_guide is not None else None
    if booking.guide is not None and booking.guide_id != previous_guide_id:
        requests += for_recipients(
            [find_user_by_email(db, booking.guide.email)],
            title="New booking assigned",
            description=f"You have been assigned to booking {booking.booking_number} for {booking.destination.name}.",
            type=NotificationType.success.value,
            **_booking_fields(booking),
        )
        if previous_guide is not None:
            requests += for_recipients(
                [find_user_by_email(db, previous_guide.email)],
                title="Booking reassigned",
                description=f"Booking {booking.booking_number} has been reassigned to another guide.",
                type=NotificationType.warning.value,
                **_booking_fields(booking),
            )
    return requests


# --------------------------------------------------
# Delete
# --------------------------------------------------

def delete_booking(db: Session, booking_id: int, actor: User) -> None:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        raise NotFoundError("Booking not found")

    is_owner = booking.customer is not None and booking.customer.email == actor.email
    if not (is_owner or actor.is_admin):
        raise PermissionDeniedError("You do not have permission to delete this booking")
    if booking.status in PROTECTED_BOOKING_STATUSES and not actor.is_admin:
        raise BookingStateError("Confirmed or in-progress bookings cannot be deleted")

    try:
        for model in CHILD_MODELS:
            db.query(model).filter(model.booking_id == booking_id).delete(synchronize_session=False)
        db.query(Booking).filter(Booking.id == booking_id).delete(synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Deleted booking %s by user %s", booking_id, actor.id)


# --------------------------------------------------
# Stats
# --------------------------------------------------

def get_booking_stats(db: Session, today: Optional[date] = None) -> dict:
    today = today or date.today()

    total_bookings = db.query(func.count(Booking.id)).scalar() or 0

    by_status = {s.value: 0 for s in BookingStatus}
    for status, count in db.query(Booking.status, func.count(Booking.id)).group_by(Booking.status).all():
        by_status[status] = int(count)

    total_revenue = (
        db.query(func.coalesce(func.sum(Booking.total_amount), 0))
        .filter(
            Booking.status.in_([BookingStatus.confirmed.value, BookingStatus.completed.value]),
            Booking.payment_status == PaymentStatus.paid.value,
        )
        .scalar()
        or 0.0
    )

    # month buckets for the current calendar year
    start_of_year = datetime(today.year, 1, 1)
    start_of_next_year = datetime(today.year + 1, 1, 1)
    month = extract("month", Booking.created_at)
    month_rows = (
        db.query(month.label("month"), func.count(Booking.id))
        .filter(Booking.created_at >= start_of_year, Booking.created_at < start_of_next_year)
        .group_by(month)
        .order_by(month)
        .all()
    )
    bookings_by_month = [{"month": int(m), "count": int(c)} for m, c in month_rows]

    start_of_month = datetime(today.year, today.month, 1)
    if today.month == 1:
        start_of_prev_month = datetime(today.year - 1, 12, 1)
    else:
        start_of_prev_month = datetime(today.year, today.month - 1, 1)
    this_month = db.query(func.count(Booking.id)).filter(Booking.created_at >= start_of_month).scalar() or 0
    last_month = (
        db.query(func.count(Booking.id))
        .filter(Booking.created_at >= start_of_prev_month, Booking.created_at < start_of_month)
        .scalar()
        or 0
    )
    if last_month > 0:
        growth = (this_month - last_month) / last_month * 100
    else:
        growth = 100.0 if this_month else 0.0

    gross = db.query(func.coalesce(func.sum(Booking.total_amount), 0)).scalar() or 0.0
    average_value = float(gross) / total_bookings if total_bookings else 0.0

    top_rows = (
        db.query(Destination.id, Destination.name, Destination.country, func.count(Booking.id).label("cnt"))
        .join(Booking, Booking.destination_id == Destination.id)
        .group_by(Destination.id, Destination.name, Destination.country)
        .order_by(func.count(Booking.id).desc(), Destination.id)
        .limit(5)
        .all()
    )
    top_destinations = [
        {"id": d_id, "name": name, "country": country, "bookings": int(cnt)}
        for d_id, name, country, cnt in top_rows
    ]

    return {
        "total_bookings": int(total_bookings),
        "bookings_by_status": by_status,
        "total_revenue": float(total_revenue),
        "bookings_by_month": bookings_by_month,
        "bookings_this_month": int(this_month),
        "bookings_last_month": int(last_month),
        "monthly_growth_rate": round(growth, 2),
        "average_booking_value": round(average_value, 2),
        "top_destinations": top_destinations,
    }
