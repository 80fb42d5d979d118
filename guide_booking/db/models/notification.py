# guide_booking/db/models/notification.py
import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from guide_booking.db.base import Base


class NotificationType(str, enum.Enum):
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    type = Column(String, nullable=False, default=NotificationType.info.value)
    read = Column(Boolean, nullable=False, default=False)

    related_entity_type = Column(String, nullable=True)
    related_entity_id = Column(Integer, nullable=True)
    related_entity_name = Column(String, nullable=True)
    action_url = Column(String, nullable=True)
    action_label = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    recipient = relationship("User", back_populates="notifications")
