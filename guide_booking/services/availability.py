# guide_booking/services/availability.py
import enum
import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from guide_booking.db.models.booking import ACTIVE_BOOKING_STATUSES, Booking

logger = logging.getLogger(__name__)


class AvailabilityTarget(str, enum.Enum):
    destination = "destination"
    guide = "guide"


_TARGET_COLUMNS = {
    AvailabilityTarget.destination: Booking.destination_id,
    AvailabilityTarget.guide: Booking.guide_id,
}


def overlaps(start1: date, end1: date, start2: date, end2: date) -> bool:
    """Inclusive overlap: ranges sharing a single day overlap."""
    return start1 <= end2 and start2 <= end1


def has_conflict(
    db: Session,
    target: AvailabilityTarget,
    target_id: int,
    start_date: date,
    end_date: date,
    exclude_booking_id: Optional[int] = None,
) -> bool:
    """
    True when an active (pending/confirmed) booking for the same destination
    or guide overlaps [start_date, end_date], bounds inclusive.
    """
    column = _TARGET_COLUMNS[AvailabilityTarget(target)]
    q = (
        db.query(Booking.id)
        .filter(
            column == target_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            Booking.start_date <= end_date,
            Booking.end_date >= start_date,
        )
    )
    if exclude_booking_id is not None:
        q = q.filter(Booking.id != exclude_booking_id)

    conflict = q.first() is not None
    if conflict:
        logger.info(
            "Availability conflict for %s %s between %s and %s",
            target.value if isinstance(target, AvailabilityTarget) else target,
            target_id,
            start_date,
            end_date,
        )
    return conflict
