# guide_booking/db/models/customer.py
from sqlalchemy import Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from guide_booking.db.base import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, nullable=True)
    avatar = Column(String, nullable=True)
    nationality = Column(String, nullable=True)

    # address
    street = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    postal_code = Column(String, nullable=True)
    country = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    bookings = relationship("Booking", back_populates="customer")
    reviews = relationship("Review", back_populates="author")
