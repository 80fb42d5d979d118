# guide_booking/db/models/user.py
import enum

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, func, true
from sqlalchemy.orm import relationship

from guide_booking.db.base import Base


class UserRole(str, enum.Enum):
    customer = "customer"
    guide = "guide"
    admin = "admin"


class User(Base):
    """
    Login account. Customer and Guide records are linked to an account
    by matching email; the role decides what the account may do.
    """
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('customer', 'guide', 'admin')", name="ck_users_role"),
    )

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default=UserRole.customer.value, server_default="customer")
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    notifications = relationship(
        "Notification",
        back_populates="recipient",
        cascade="all, delete-orphan",
        lazy="select",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin.value

    @property
    def is_guide(self) -> bool:
        return self.role == UserRole.guide.value
