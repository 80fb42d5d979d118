from datetime import date

from guide_booking.db.models.booking import Booking
from guide_booking.services.availability import AvailabilityTarget, has_conflict, overlaps


def _booking(db, customer, destination, start, end, status="pending", guide=None, number="B1"):
    b = Booking(
        booking_number=number,
        status=status,
        customer_id=customer.id,
        destination_id=destination.id,
        guide_id=guide.id if guide else None,
        start_date=start,
        end_date=end,
        duration=(end - start).days + 1,
        adults_count=1,
        children_count=0,
        infants_count=0,
        total_travelers=1,
        total_amount=100.0,
    )
    db.add(b)
    db.commit()
    return b


def test_overlaps_is_inclusive_and_symmetric():
    a = (date(2024, 3, 1), date(2024, 3, 10))
    assert overlaps(*a, date(2024, 3, 10), date(2024, 3, 12))
    assert overlaps(date(2024, 3, 10), date(2024, 3, 12), *a)
    assert overlaps(*a, date(2024, 3, 5), date(2024, 3, 8))
    assert overlaps(date(2024, 2, 1), date(2024, 4, 1), *a)
    assert not overlaps(*a, date(2024, 3, 11), date(2024, 3, 12))


def test_conflict_with_active_booking(db, customer, destination):
    _booking(db, customer, destination, date(2024, 3, 1), date(2024, 3, 10))
    target = AvailabilityTarget.destination

    assert has_conflict(db, target, destination.id, date(2024, 3, 5), date(2024, 3, 8))
    assert has_conflict(db, target, destination.id, date(2024, 2, 20), date(2024, 3, 1))
    assert has_conflict(db, target, destination.id, date(2024, 2, 1), date(2024, 4, 1))
    assert not has_conflict(db, target, destination.id, date(2024, 3, 11), date(2024, 3, 20))


def test_cancelled_and_completed_bookings_do_not_block(db, customer, destination):
    _booking(db, customer, destination, date(2024, 3, 1), date(2024, 3, 10), status="cancelled", number="B1")
    _booking(db, customer, destination, date(2024, 3, 1), date(2024, 3, 10), status="completed", number="B2")

    assert not has_conflict(db, AvailabilityTarget.destination, destination.id, date(2024, 3, 5), date(2024, 3, 8))


def test_guide_conflict_and_exclusion(db, customer, destination, guide):
    existing = _booking(db, customer, destination, date(2024, 5, 1), date(2024, 5, 3), status="confirmed", guide=guide)

    assert has_conflict(db, AvailabilityTarget.guide, guide.id, date(2024, 5, 3), date(2024, 5, 4))
    assert not has_conflict(
        db, AvailabilityTarget.guide, guide.id, date(2024, 5, 3), date(2024, 5, 4),
        exclude_booking_id=existing.id,
    )
