"""Reviews of destinations and guides, their votes, reports and moderation.

Every mutation that can change a rating recomputes it through
``services.ratings`` inside the same transaction as the change itself.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import String, cast
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from guide_booking.core.config import settings
from guide_booking.db.models.customer import Customer
from guide_booking.db.models.destination import Destination
from guide_booking.db.models.guide import Guide
from guide_booking.db.models.notification import NotificationType
from guide_booking.db.models.review import FLAGGED_TAG, Review, ReviewHelpful, ReviewReport
from guide_booking.db.models.user import User
from guide_booking.schemas.review import MODERATION_FIELDS, ModerationAction, ReviewCreate, ReviewUpdate
from guide_booking.services.exceptions import (
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
from guide_booking.services.ratings import recalculate_review_targets

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "date": Review.date,
    "rating": Review.rating,
    "helpful_count": Review.helpful_count,
}

_FLAGGED_LIKE = f'%"{FLAGGED_TAG}"%'


def _is_author(review: Review, user: User) -> bool:
    return review.author is not None and review.author.email == user.email


def rating_tone(rating: int) -> str:
    if rating >= 4:
        return NotificationType.success.value
    if rating == 3:
        return NotificationType.info.value
    return NotificationType.warning.value


# --------------------------------------------------
# Queries
# --------------------------------------------------

def list_reviews(
    db: Session,
    *,
    destination_id: Optional[int] = None,
    guide_id: Optional[int] = None,
    author_id: Optional[int] = None,
    min_rating: Optional[int] = None,
    moderation_status: Optional[str] = None,
    limit: int = 10,
    offset: int = 0,
    sort_by: str = "date",
    sort_order: str = "desc",
) -> Tuple[List[Review], int]:
    if sort_by not in SORTABLE_FIELDS:
        raise ValidationFailedError(f"Cannot sort reviews by '{sort_by}'")
    if sort_order not in ("asc", "desc"):
        raise ValidationFailedError("sort_order must be 'asc' or 'desc'")

    q = db.query(Review)
    if destination_id:
        q = q.filter(Review.destination_id == destination_id)
    if guide_id:
        q = q.filter(Review.guide_id == guide_id)
    if author_id:
        q = q.filter(Review.author_id == author_id)
    if min_rating:
        q = q.filter(Review.rating >= min_rating)

    # tags is a JSON list; its text form is matched for the flagged marker
    flagged = cast(Review.tags, String).like(_FLAGGED_LIKE)
    if moderation_status == "approved":
        q = q.filter(Review.verified.is_(True))
    elif moderation_status == "flagged":
        q = q.filter(Review.verified.is_(False), flagged)
    elif moderation_status == "pending":
        q = q.filter(Review.verified.is_(False), ~flagged)
    elif moderation_status not in (None, "all"):
        raise ValidationFailedError(f"Unknown moderation status '{moderation_status}'")

    total = q.count()

    column = SORTABLE_FIELDS[sort_by]
    if sort_order == "asc":
        q = q.order_by(column.asc(), Review.id.asc())
    else:
        q = q.order_by(column.desc(), Review.id.desc())

    items = q.options(joinedload(Review.author)).offset(offset).limit(limit).all()
    return items, int(total)


def get_review(db: Session, review_id: int) -> Review:
    review = (
        db.query(Review)
        .options(joinedload(Review.author), joinedload(Review.guide), joinedload(Review.destination))
        .filter(Review.id == review_id)
        .first()
    )
    if not review:
        raise NotFoundError("Review not found")
    return review


# --------------------------------------------------
# Create / update / delete
# --------------------------------------------------

def create_review(
    db: Session,
    payload: ReviewCreate,
    actor: Optional[User] = None,
    notifier: Optional[NotificationDispatcher] = None,
) -> Review:
    author = db.query(Customer).filter(Customer.id == payload.author_id).first()
    if not author:
        raise NotFoundError("Author not found")
    if actor is not None and not actor.is_admin and author.email != actor.email:
        raise PermissionDeniedError("You can only post reviews as yourself")
    if actor is not None and not actor.is_admin and (payload.verified or payload.featured):
        raise PermissionDeniedError("Only administrators can change moderation fields")

    if payload.destination_id is not None:
        target = db.query(Destination).filter(Destination.id == payload.destination_id).first()
        if not target:
            raise NotFoundError("Destination not found")
        duplicate = Review.destination_id == target.id
        duplicate_message = "You have already reviewed this destination"
    else:
        target = db.query(Guide).filter(Guide.id == payload.guide_id).first()
        if not target:
            raise NotFoundError("Guide not found")
        duplicate = Review.guide_id == target.id
        duplicate_message = "You have already reviewed this guide"

    if db.query(Review.id).filter(Review.author_id == author.id, duplicate).first():
        raise ConflictError(duplicate_message)

    trip = payload.trip
    review = Review(
        title=payload.title,
        content=payload.content,
        rating=payload.rating,
        author_id=author.id,
        destination_id=payload.destination_id,
        guide_id=payload.guide_id,
        trip_start_date=trip.start_date if trip else None,
        trip_end_date=trip.end_date if trip else None,
        trip_duration=trip.duration if trip else None,
        trip_type=trip.type if trip else None,
        photos=list(payload.photos),
        highlights=list(payload.highlights),
        tags=list(payload.tags),
        verified=payload.verified,
        featured=payload.featured,
    )
    if payload.date is not None:
        review.date = payload.date

    try:
        db.add(review)
        db.flush()
        recalculate_review_targets(db, payload.destination_id, payload.guide_id)
        db.commit()
    except IntegrityError:
        # lost a race with a concurrent review by the same author
        db.rollback()
        raise ConflictError(duplicate_message)
    except Exception:
        db.rollback()
        raise

    logger.info("Created review %s by customer %s (rating %s)", review.id, author.id, review.rating)

    review = get_review(db, review.id)
    if notifier is not None:
        notifier.dispatch(_creation_notifications(db, review, target.name))
    return review


def _review_fields(review: Review) -> dict:
    return {
        "related_entity_type": "review",
        "related_entity_id": review.id,
        "related_entity_name": review.title,
        "action_url": f"/dashboard/reviews/{review.id}",
        "action_label": "View review",
    }


def _creation_notifications(db: Session, review: Review, target_name: str) -> List[NotificationRequest]:
    recipients = find_admin_users(db)
    if review.guide is not None:
        recipients.append(find_user_by_email(db, review.guide.email))
    return for_recipients(
        recipients,
        title="New review posted",
        description=f"{review.author.name} rated {target_name} {review.rating}/5: {review.title}",
        type=rating_tone(review.rating),
        **_review_fields(review),
    )


def update_review(db: Session, review_id: int, payload: ReviewUpdate, actor: User) -> Review:
    review = get_review(db, review_id)

    if payload.author_id is not None and payload.author_id != review.author_id:
        raise PermissionDeniedError("Only the original author can update this review")
    if not (actor.is_admin or _is_author(review, actor)):
        raise PermissionDeniedError("Only the original author can update this review")

    data = payload.dict(exclude_unset=True)
    data.pop("author_id", None)
    if not actor.is_admin and any(data.get(f) is not None for f in MODERATION_FIELDS):
        raise PermissionDeniedError("Only administrators can change moderation fields")
    if not actor.is_admin and data.get("tags") is not None:
        # the flag marker is owned by moderation and survives author edits
        tags = [t for t in data["tags"] if t != FLAGGED_TAG]
        if FLAGGED_TAG in (review.tags or []):
            tags.append(FLAGGED_TAG)
        data["tags"] = tags

    trip = data.pop("trip", None)
    if trip:
        for key, value in trip.items():
            setattr(review, f"trip_{key}", value)
    for field, value in data.items():
        if value is not None:
            setattr(review, field, value)

    try:
        recalculate_review_targets(db, review.destination_id, review.guide_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Updated review %s", review_id)
    return get_review(db, review_id)


def _remove_review(db: Session, review: Review) -> None:
    destination_id, guide_id = review.destination_id, review.guide_id
    try:
        if settings.review_votes_enabled:
            db.query(ReviewHelpful).filter(ReviewHelpful.review_id == review.id).delete(synchronize_session=False)
        if settings.review_reports_enabled:
            db.query(ReviewReport).filter(ReviewReport.review_id == review.id).delete(synchronize_session=False)
        db.delete(review)
        db.flush()
        recalculate_review_targets(db, destination_id, guide_id)
        db.commit()
    except Exception:
        db.rollback()
        raise


def delete_review(db: Session, review_id: int, actor: User) -> None:
    review = get_review(db, review_id)
    if not _is_author(review, actor):
        raise PermissionDeniedError("Only the original author can delete this review")
    _remove_review(db, review)
    logger.info("Deleted review %s by user %s", review_id, actor.id)


# --------------------------------------------------
# Votes and reports
# --------------------------------------------------

def mark_helpful(db: Session, review_id: int, user: User) -> dict:
    """Toggle the user's helpful vote; returns ``{"helpful": <new state>}``."""
    if not settings.review_votes_enabled:
        return {"helpful": None, "error": "Could not update helpful status"}

    review = get_review(db, review_id)
    vote = (
        db.query(ReviewHelpful)
        .filter(ReviewHelpful.review_id == review.id, ReviewHelpful.user_id == user.id)
        .first()
    )
    try:
        if vote:
            db.delete(vote)
            review.helpful_count = Review.helpful_count - 1
            helpful = False
        else:
            db.add(ReviewHelpful(review_id=review.id, user_id=user.id))
            review.helpful_count = Review.helpful_count + 1
            helpful = True
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"helpful": helpful}


def report_review(db: Session, review_id: int, user: User, reason: str) -> dict:
    if not settings.review_reports_enabled:
        return {"success": False, "error": "Could not report review"}

    review = get_review(db, review_id)
    already = (
        db.query(ReviewReport)
        .filter(ReviewReport.review_id == review.id, ReviewReport.user_id == user.id)
        .first()
    )
    if already:
        raise ConflictError("You have already reported this review")

    try:
        db.add(ReviewReport(review_id=review.id, user_id=user.id, reason=reason))
        review.report_count = Review.report_count + 1
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("You have already reported this review")
    except Exception:
        db.rollback()
        raise

    logger.info("Review %s reported by user %s", review_id, user.id)
    return {"success": True}


# --------------------------------------------------
# Moderation and management responses
# --------------------------------------------------

def moderate_review(db: Session, review_id: int, action: ModerationAction, actor: User) -> Optional[Review]:
    """Approve, flag or reject a review. Rejection deletes it and returns None."""
    if not actor.is_admin:
        raise PermissionDeniedError("Only administrators can moderate reviews")

    review = get_review(db, review_id)
    action = ModerationAction(action)

    if action == ModerationAction.reject:
        _remove_review(db, review)
        logger.info("Rejected review %s", review_id)
        return None

    if action == ModerationAction.approve:
        review.verified = True
    else:
        tags = list(review.tags or [])
        if FLAGGED_TAG not in tags:
            tags.append(FLAGGED_TAG)
        review.tags = tags
        review.verified = False
    db.commit()

    logger.info("Moderated review %s: %s", review_id, action.value)
    return get_review(db, review_id)


def respond_to_review(
    db: Session,
    review_id: int,
    content: str,
    actor: User,
    notifier: Optional[NotificationDispatcher] = None,
) -> Review:
    review = get_review(db, review_id)
    is_reviewed_guide = actor.is_guide and review.guide is not None and review.guide.email == actor.email
    if not (actor.is_admin or is_reviewed_guide):
        raise PermissionDeniedError("You cannot respond to this review")

    review.response_content = content
    review.response_date = datetime.now(timezone.utc)
    review.responder_id = actor.id
    review.responder_name = actor.name
    review.responder_role = actor.role
    db.commit()

    review = get_review(db, review_id)
    if notifier is not None:
        notifier.dispatch(
            for_recipients(
                [find_user_by_email(db, review.author.email)],
                title="Response to your review",
                description=f"{actor.name} responded to your review \"{review.title}\".",
                type=NotificationType.info.value,
                **_review_fields(review),
            )
        )
    return review
