# guide_booking/db/models/booking.py
import enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from guide_booking.db.base import Base


class BookingStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"
    in_progress = "inProgress"


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    partial = "partial"
    paid = "paid"
    refunded = "refunded"


class TransactionStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    refunded = "refunded"


# bookings in these states hold their destination/guide for the date range
ACTIVE_BOOKING_STATUSES = (BookingStatus.pending.value, BookingStatus.confirmed.value)

# only administrators may delete bookings in these states
PROTECTED_BOOKING_STATUSES = (BookingStatus.confirmed.value, BookingStatus.in_progress.value)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_bookings_date_range"),
        CheckConstraint("total_travelers >= 1", name="ck_bookings_travelers"),
        CheckConstraint(
            "total_travelers = adults_count + children_count + infants_count",
            name="ck_bookings_traveler_sum",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    booking_number = Column(String, unique=True, index=True, nullable=False)
    status = Column(String, nullable=False, default=BookingStatus.pending.value, index=True)

    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    destination_id = Column(Integer, ForeignKey("destinations.id"), nullable=False, index=True)
    guide_id = Column(Integer, ForeignKey("guides.id"), nullable=True, index=True)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    duration = Column(Integer, nullable=False)

    adults_count = Column(Integer, nullable=False, default=1)
    children_count = Column(Integer, nullable=False, default=0)
    infants_count = Column(Integer, nullable=False, default=0)
    total_travelers = Column(Integer, nullable=False)

    # payment
    total_amount = Column(Float, nullable=False)
    currency = Column(String, nullable=False, default="USD")
    payment_status = Column(String, nullable=False, default=PaymentStatus.pending.value)
    deposit_amount = Column(Float, nullable=True)
    deposit_paid = Column(Boolean, nullable=False, default=False)
    balance_due_date = Column(Date, nullable=True)

    special_requests = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # relationships
    customer = relationship("Customer", back_populates="bookings")
    destination = relationship("Destination", back_populates="bookings")
    guide = relationship("Guide", back_populates="bookings")

    accommodations = relationship("Accommodation", cascade="all, delete-orphan", order_by="Accommodation.id")
    transportation = relationship("Transportation", cascade="all, delete-orphan", order_by="Transportation.id")
    activities = relationship("BookingActivity", cascade="all, delete-orphan", order_by="BookingActivity.id")
    equipment_rentals = relationship("EquipmentRental", cascade="all, delete-orphan", order_by="EquipmentRental.id")
    transactions = relationship("PaymentTransaction", cascade="all, delete-orphan", order_by="PaymentTransaction.id")
    documents = relationship("Document", cascade="all, delete-orphan", order_by="Document.id")
    notes = relationship("Note", cascade="all, delete-orphan", order_by="Note.id")
    emergency_contact = relationship("EmergencyContact", cascade="all, delete-orphan", uselist=False)


class Accommodation(Base):
    __tablename__ = "accommodations"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String, nullable=False)
    name = Column(String, nullable=True)
    location = Column(String, nullable=True)
    check_in = Column(Date, nullable=True)
    check_out = Column(Date, nullable=True)


class Transportation(Base):
    __tablename__ = "transportation"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String, nullable=False)
    details = Column(String, nullable=True)
    departure_date = Column(DateTime, nullable=True)
    departure_location = Column(String, nullable=True)
    arrival_date = Column(DateTime, nullable=True)
    arrival_location = Column(String, nullable=True)


class BookingActivity(Base):
    __tablename__ = "booking_activities"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    date = Column(Date, nullable=True)
    duration = Column(String, nullable=True)
    included = Column(Boolean, nullable=False, default=True)


class EquipmentRental(Base):
    __tablename__ = "equipment_rentals"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    item = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    price_per_unit = Column(Float, nullable=False)


class PaymentTransaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    method = Column(String, nullable=False)
    status = Column(String, nullable=False, default=TransactionStatus.pending.value)
    date = Column(DateTime, nullable=False)


class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String, nullable=False)
    name = Column(String, nullable=False)
    url = Column(String, nullable=False)
    upload_date = Column(DateTime, nullable=False)


class Note(Base):
    __tablename__ = "notes"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    date = Column(DateTime, nullable=False)
    author = Column(String, nullable=False)


class EmergencyContact(Base):
    __tablename__ = "emergency_contacts"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True)
    contact_name = Column(String, nullable=False)
    relationship = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    email = Column(String, nullable=True)
