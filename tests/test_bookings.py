import re
from datetime import date, datetime
from types import SimpleNamespace

import pytest

from conftest import booking_payload, make_user
from guide_booking.db.models.booking import (
    Accommodation,
    Booking,
    BookingActivity,
    Document,
    EmergencyContact,
    EquipmentRental,
    Note,
    PaymentTransaction,
    Transportation,
)
from guide_booking.db.models.customer import Customer
from guide_booking.db.models.guide import Guide
from guide_booking.db.models.notification import Notification
from guide_booking.db.models.user import User
from guide_booking.schemas.booking import BookingCreate, BookingUpdate
from guide_booking.services import booking_service
from guide_booking.services.exceptions import (
    BookingStateError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from guide_booking.services.notifications import NotificationDispatcher

CHILD_TABLES = (
    Accommodation,
    Transportation,
    BookingActivity,
    EquipmentRental,
    PaymentTransaction,
    EmergencyContact,
    Document,
    Note,
)


def _create(db, destination, **kwargs):
    payload = BookingCreate(**booking_payload(destination.id, **kwargs))
    return booking_service.create_booking(db, payload, NotificationDispatcher(db))


def _full_payload(destination_id):
    return booking_payload(
        destination_id,
        special_requests=["vegetarian meals"],
        accommodations=[{"type": "hotel", "name": "Lodge", "check_in": "2024-03-01", "check_out": "2024-03-10"}],
        transportation=[{"type": "flight", "departure_date": "2024-03-01T08:00:00", "departure_location": "EZE"}],
        activities=[{"name": "Glacier walk", "date": "2024-03-03", "duration": "4h"}],
        equipment_rental=[{"item": "crampons", "quantity": 2, "price_per_unit": 15.0}],
        documents=[{"type": "passport", "name": "passport.pdf", "url": "https://files.example.com/p.pdf",
                    "upload_date": "2024-01-10T10:00:00"}],
        notes=[{"content": "Late arrival", "date": "2024-01-11T09:00:00", "author": "Carol"}],
        emergency={"contact_name": "Dan", "relationship": "brother", "phone": "+1 555 0100"},
        payment={"total_amount": 1200.0, "transactions": [
            {"amount": 300.0, "method": "card", "status": "completed", "date": "2024-01-10T10:00:00"},
        ]},
    )


# --------------------------------------------------
# Create
# --------------------------------------------------

def test_create_booking_computes_derived_fields(db, destination):
    booking = _create(db, destination, travelers={"adults": 2, "children": 1, "infants": 0})

    assert booking.total_travelers == 3
    assert booking.duration == 10
    assert booking.status == "pending"
    assert re.match(r"^B\d{8}CT-[0-9A-F]{4}$", booking.booking_number)
    assert booking.customer.email == "carol@example.com"


def test_create_booking_upserts_customer_by_email(db, destination, customer):
    payload = booking_payload(destination.id, name="Carol T. Traveler")
    payload["customer"]["phone"] = "+54 11 5555"
    booking_service.create_booking(db, BookingCreate(**payload))

    db.expire_all()
    assert db.query(Customer).count() == 1
    stored = db.query(Customer).one()
    assert stored.name == "Carol T. Traveler"
    assert stored.phone == "+54 11 5555"


def test_overlapping_booking_is_rejected(db, destination):
    _create(db, destination, start="2024-03-01", end="2024-03-10")

    with pytest.raises(ConflictError) as exc:
        _create(db, destination, start="2024-03-05", end="2024-03-08")

    assert "not available for this destination" in exc.value.message
    assert db.query(Booking).count() == 1


def test_shared_boundary_day_conflicts(db, destination):
    _create(db, destination, start="2024-03-01", end="2024-03-10")
    with pytest.raises(ConflictError):
        _create(db, destination, start="2024-03-10", end="2024-03-12")


def test_cancelled_booking_frees_dates(db, destination):
    first = _create(db, destination)
    db.query(Booking).filter(Booking.id == first.id).update({Booking.status: "cancelled"})
    db.commit()

    second = _create(db, destination, start="2024-03-05", end="2024-03-08")
    assert second.id != first.id


def test_guide_double_booking_rejected(db, destination, guide):
    from guide_booking.db.models.destination import Destination

    other = Destination(name="Iguazu", country="Argentina")
    db.add(other)
    db.commit()

    _create(db, destination, guide_id=guide.id)
    with pytest.raises(ConflictError) as exc:
        _create(db, other, guide_id=guide.id, start="2024-03-09", end="2024-03-12")
    assert exc.value.message == "Selected guide is not available for these dates"


def test_unknown_destination_raises_not_found(db):
    with pytest.raises(NotFoundError):
        booking_service.create_booking(db, BookingCreate(**booking_payload(999)))


def test_create_stores_children(db, destination):
    booking = booking_service.create_booking(db, BookingCreate(**_full_payload(destination.id)))

    assert len(booking.accommodations) == 1
    assert booking.transportation[0].departure_location == "EZE"
    assert booking.activities[0].name == "Glacier walk"
    assert booking.equipment_rentals[0].quantity == 2
    assert booking.transactions[0].status == "completed"
    assert booking.documents[0].name == "passport.pdf"
    assert booking.notes[0].author == "Carol"
    assert booking.emergency_contact.contact_name == "Dan"
    assert booking.special_requests == ["vegetarian meals"]


def test_create_notifies_admins_guide_and_customer(db, destination, guide, admin, customer_user, guide_user):
    booking = _create(db, destination, guide_id=guide.id)

    by_recipient = {n.recipient_id: n for n in db.query(Notification).all()}
    assert set(by_recipient) == {admin.id, customer_user.id, guide_user.id}
    assert by_recipient[admin.id].related_entity_id == booking.id
    assert by_recipient[guide_user.id].title == "New booking assigned"


def test_notification_failure_keeps_booking(db, destination, monkeypatch):
    # a recipient without an id violates NOT NULL on the notification row
    monkeypatch.setattr(booking_service, "find_admin_users", lambda db: [SimpleNamespace(id=None)])

    booking = _create(db, destination)

    db.expire_all()
    assert db.query(Booking).filter(Booking.id == booking.id).count() == 1
    assert db.query(Notification).count() == 0


def test_booking_number_collision_is_retried(db, destination, monkeypatch):
    numbers = iter(["BTAKEN", "BTAKEN", "BFRESH"])
    monkeypatch.setattr(booking_service, "generate_booking_number", lambda name: next(numbers))

    first = _create(db, destination, start="2024-03-01", end="2024-03-02")
    second = _create(db, destination, start="2024-04-01", end="2024-04-02")

    assert first.booking_number == "BTAKEN"
    assert second.booking_number == "BFRESH"
    assert db.query(Booking).count() == 2


# --------------------------------------------------
# Update
# --------------------------------------------------

def test_partial_traveler_update_falls_back_to_stored_counts(db, destination, customer_user):
    booking = _create(db, destination, travelers={"adults": 2, "children": 1, "infants": 0})

    updated = booking_service.update_booking(
        db, booking.id, BookingUpdate(travelers={"infants": 2}), customer_user
    )

    assert (updated.adults_count, updated.children_count, updated.infants_count) == (2, 1, 2)
    assert updated.total_travelers == 5


def test_update_dates_recomputes_duration(db, destination, customer_user):
    booking = _create(db, destination)

    updated = booking_service.update_booking(
        db, booking.id,
        BookingUpdate(dates={"start_date": "2024-06-01", "end_date": "2024-06-03"}),
        customer_user,
    )

    assert updated.start_date == date(2024, 6, 1)
    assert updated.duration == 3


def test_update_rejects_inverted_merged_dates(db, destination, customer_user):
    booking = _create(db, destination, start="2024-03-01", end="2024-03-10")

    with pytest.raises(ValidationFailedError):
        booking_service.update_booking(
            db, booking.id, BookingUpdate(dates={"start_date": "2024-03-20"}), customer_user
        )
    db.expire_all()
    assert db.query(Booking).one().start_date == date(2024, 3, 1)


def test_update_rejects_zero_travelers(db, destination, customer_user):
    booking = _create(db, destination, travelers={"adults": 1, "children": 0, "infants": 0})
    with pytest.raises(ValidationFailedError):
        booking_service.update_booking(db, booking.id, BookingUpdate(travelers={"adults": 0}), customer_user)


def test_update_by_stranger_is_denied(db, destination):
    booking = _create(db, destination)
    stranger = make_user(db, "eve@example.com", "Eve")

    with pytest.raises(PermissionDeniedError):
        booking_service.update_booking(db, booking.id, BookingUpdate(status="cancelled"), stranger)


def test_guide_access_needs_guide_role(db, destination, guide, guide_user):
    booking = _create(db, destination, guide_id=guide.id)
    assert booking_service.can_manage_booking(booking, guide_user)

    impostor = User(email=guide.email, name="Gus Impostor", role="customer")
    assert not booking_service.can_manage_booking(booking, impostor)


def test_update_replaces_children_and_upserts_emergency(db, destination, customer_user):
    booking = booking_service.create_booking(db, BookingCreate(**_full_payload(destination.id)))

    updated = booking_service.update_booking(
        db,
        booking.id,
        BookingUpdate(
            notes=[{"content": "Changed flight", "date": "2024-02-01T12:00:00", "author": "Carol"}],
            emergency={"contact_name": "Erin", "relationship": "sister", "phone": "+1 555 0101"},
        ),
        customer_user,
    )

    assert [n.content for n in updated.notes] == ["Changed flight"]
    assert db.query(Note).count() == 1
    assert db.query(EmergencyContact).count() == 1
    assert updated.emergency_contact.contact_name == "Erin"
    assert len(updated.accommodations) == 1


def test_status_change_notifies_admins_and_customer(db, destination, admin, customer_user):
    booking = _create(db, destination)
    db.query(Notification).delete()
    db.commit()

    booking_service.update_booking(
        db, booking.id, BookingUpdate(status="confirmed"), admin, NotificationDispatcher(db)
    )

    notes = db.query(Notification).all()
    assert {n.recipient_id for n in notes} == {admin.id, customer_user.id}
    assert all(n.type == "success" for n in notes)


def test_guide_reassignment_notifies_both_guides(db, destination, guide, admin, guide_user):
    booking = _create(db, destination, guide_id=guide.id)
    new_user = make_user(db, "nina@example.com", "Nina Guide", role="guide")
    new_guide = Guide(name="Nina Guide", email=new_user.email)
    db.add(new_guide)
    db.query(Notification).delete()
    db.commit()

    updated = booking_service.update_booking(
        db, booking.id, BookingUpdate(guide={"id": new_guide.id}), admin, NotificationDispatcher(db)
    )

    assert updated.guide_id == new_guide.id
    titles = {n.recipient_id: n.title for n in db.query(Notification).all()}
    assert titles == {new_user.id: "New booking assigned", guide_user.id: "Booking reassigned"}


# --------------------------------------------------
# Delete
# --------------------------------------------------

def test_owner_deletes_pending_booking_with_children(db, destination, customer_user):
    booking = booking_service.create_booking(db, BookingCreate(**_full_payload(destination.id)))
    for model in CHILD_TABLES:
        assert db.query(model).count() >= 1

    booking_service.delete_booking(db, booking.id, customer_user)

    assert db.query(Booking).count() == 0
    for model in CHILD_TABLES:
        assert db.query(model).count() == 0, model.__tablename__


def test_confirmed_booking_cannot_be_deleted_by_customer(db, destination, customer_user):
    booking = booking_service.create_booking(
        db, BookingCreate(**_full_payload(destination.id), status="confirmed")
    )

    with pytest.raises(BookingStateError):
        booking_service.delete_booking(db, booking.id, customer_user)

    db.expire_all()
    assert db.query(Booking).count() == 1
    for model in CHILD_TABLES:
        assert db.query(model).count() == 1


def test_admin_deletes_confirmed_booking(db, destination, admin):
    booking = _create(db, destination, status="confirmed")
    booking_service.delete_booking(db, booking.id, admin)
    assert db.query(Booking).count() == 0


def test_stranger_cannot_delete(db, destination):
    booking = _create(db, destination)
    stranger = make_user(db, "eve@example.com", "Eve")
    with pytest.raises(PermissionDeniedError):
        booking_service.delete_booking(db, booking.id, stranger)


# --------------------------------------------------
# List and stats
# --------------------------------------------------

def test_list_date_range_filter(db, destination):
    from guide_booking.db.models.destination import Destination

    second = Destination(name="Bariloche", country="Argentina")
    third = Destination(name="Salta", country="Argentina")
    db.add_all([second, third])
    db.commit()

    _create(db, destination, start="2024-03-01", end="2024-03-10")      # ends in range
    _create(db, second, start="2024-02-20", end="2024-04-20")           # spans range
    _create(db, third, start="2024-05-01", end="2024-05-05")            # outside

    items, total = booking_service.list_bookings(db, start_date=date(2024, 3, 5), end_date=date(2024, 3, 31))
    assert total == 2
    assert {b.destination_id for b in items} == {destination.id, second.id}


def test_list_search_and_sort(db, destination):
    _create(db, destination, start="2024-03-01", end="2024-03-02")
    _create(db, destination, start="2024-04-01", end="2024-04-02", email="zed@example.com", name="Zed Zulu")

    items, total = booking_service.list_bookings(db, search="zulu")
    assert total == 1
    assert items[0].customer.name == "Zed Zulu"

    items, _ = booking_service.list_bookings(db, sort_by="start_date", sort_order="asc")
    assert [b.start_date for b in items] == [date(2024, 3, 1), date(2024, 4, 1)]

    with pytest.raises(ValidationFailedError):
        booking_service.list_bookings(db, sort_by="password")


def test_booking_stats(db, destination):
    paid = _create(db, destination, start="2024-03-01", end="2024-03-02", status="confirmed",
                   payment={"total_amount": 500.0, "status": "paid"})
    unpaid = _create(db, destination, start="2024-04-01", end="2024-04-02",
                     payment={"total_amount": 300.0})
    db.query(Booking).filter(Booking.id == paid.id).update({Booking.created_at: datetime(2024, 5, 3)})
    db.query(Booking).filter(Booking.id == unpaid.id).update({Booking.created_at: datetime(2024, 6, 2)})
    db.commit()

    stats = booking_service.get_booking_stats(db, today=date(2024, 6, 15))

    assert stats["total_bookings"] == 2
    assert stats["bookings_by_status"]["confirmed"] == 1
    assert stats["bookings_by_status"]["pending"] == 1
    assert stats["bookings_by_status"]["inProgress"] == 0
    assert stats["total_revenue"] == 500.0
    assert stats["bookings_by_month"] == [{"month": 5, "count": 1}, {"month": 6, "count": 1}]
    assert stats["bookings_this_month"] == 1
    assert stats["bookings_last_month"] == 1
    assert stats["monthly_growth_rate"] == 0.0
    assert stats["average_booking_value"] == 400.0
    assert stats["top_destinations"][0]["bookings"] == 2
