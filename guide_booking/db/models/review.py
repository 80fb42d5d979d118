# guide_booking/db/models/review.py
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from guide_booking.db.base import Base

FLAGGED_TAG = "flagged"


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),
        UniqueConstraint("author_id", "destination_id", name="uq_reviews_author_destination"),
        UniqueConstraint("author_id", "guide_id", name="uq_reviews_author_guide"),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    rating = Column(Integer, nullable=False)   # 1..5
    date = Column(DateTime(timezone=True), server_default=func.now())

    author_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    destination_id = Column(Integer, ForeignKey("destinations.id", ondelete="CASCADE"), nullable=True, index=True)
    guide_id = Column(Integer, ForeignKey("guides.id", ondelete="CASCADE"), nullable=True, index=True)

    # trip
    trip_start_date = Column(Date, nullable=True)
    trip_end_date = Column(Date, nullable=True)
    trip_duration = Column(Integer, nullable=True)
    trip_type = Column(String, nullable=True)

    photos = Column(JSON, nullable=False, default=list)
    highlights = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)

    # moderation
    verified = Column(Boolean, nullable=False, default=False)
    featured = Column(Boolean, nullable=False, default=False)
    helpful_count = Column(Integer, nullable=False, default=0)
    unhelpful_count = Column(Integer, nullable=False, default=0)
    report_count = Column(Integer, nullable=False, default=0)

    # management response
    response_content = Column(Text, nullable=True)
    response_date = Column(DateTime(timezone=True), nullable=True)
    responder_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    responder_name = Column(String, nullable=True)
    responder_role = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    author = relationship("Customer", back_populates="reviews")
    destination = relationship("Destination", back_populates="reviews")
    guide = relationship("Guide", back_populates="reviews")

    @property
    def moderation_status(self) -> str:
        if self.verified:
            return "approved"
        if FLAGGED_TAG in (self.tags or []):
            return "flagged"
        return "pending"


class ReviewHelpful(Base):
    __tablename__ = "review_helpful"

    review_id = Column(Integer, ForeignKey("reviews.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ReviewReport(Base):
    __tablename__ = "review_reports"

    review_id = Column(Integer, ForeignKey("reviews.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    reason = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
