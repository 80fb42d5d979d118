# guide_booking/services/ratings.py
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from guide_booking.db.models.destination import Destination
from guide_booking.db.models.guide import Guide
from guide_booking.db.models.review import Review

logger = logging.getLogger(__name__)


def average_rating(ratings: Iterable[int]) -> float:
    """Mean of the ratings rounded half-up to one decimal; 0 when empty."""
    ratings = list(ratings)
    if not ratings:
        return 0.0
    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _recalculate(db: Session, entity, review_column) -> None:
    # every review counts, verified or not
    db.flush()
    rows = db.query(Review.rating).filter(review_column == entity.id).all()
    entity.review_count = len(rows)
    entity.rating = average_rating(r[0] for r in rows)
    db.add(entity)
    db.flush()
    logger.info(
        "Recomputed rating for %s %s: %.1f (%d reviews)",
        type(entity).__name__.lower(),
        entity.id,
        entity.rating,
        entity.review_count,
    )


def recalculate_destination_rating(db: Session, destination_id: int) -> None:
    destination = db.query(Destination).filter(Destination.id == destination_id).first()
    if destination:
        _recalculate(db, destination, Review.destination_id)


def recalculate_guide_rating(db: Session, guide_id: int) -> None:
    guide = db.query(Guide).filter(Guide.id == guide_id).first()
    if guide:
        _recalculate(db, guide, Review.guide_id)


def recalculate_review_targets(db: Session, destination_id=None, guide_id=None) -> None:
    """Recompute whichever entities a review points at. Does not commit."""
    if destination_id:
        recalculate_destination_rating(db, destination_id)
    if guide_id:
        recalculate_guide_rating(db, guide_id)
