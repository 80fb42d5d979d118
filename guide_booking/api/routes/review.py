# guide_booking/api/routes/review.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from guide_booking.core.security import get_current_user, require_admin
from guide_booking.db.base import get_db
from guide_booking.db.models.user import User
from guide_booking.schemas.review import (
    HelpfulVoteResponse,
    ModerationResult,
    ReportIn,
    ReportResponse,
    ReviewCreate,
    ReviewListResponse,
    ReviewModeration,
    ReviewResponse,
    ReviewResponseIn,
    ReviewUpdate,
)
from guide_booking.services import review_service
from guide_booking.services.notifications import NotificationDispatcher, get_notifier

router = APIRouter(prefix="/reviews", tags=["reviews"])


# Public listing, filterable by target, author, rating and moderation state
@router.get("", response_model=ReviewListResponse)
def list_reviews(
    destination_id: Optional[int] = Query(None),
    guide_id: Optional[int] = Query(None),
    author_id: Optional[int] = Query(None),
    min_rating: Optional[int] = Query(None, ge=1, le=5),
    moderation_status: Optional[str] = Query(None, description="approved/flagged/pending/all"),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sort_by: str = Query("date"),
    sort_order: str = Query("desc"),
    db: Session = Depends(get_db),
):
    items, total = review_service.list_reviews(
        db,
        destination_id=destination_id,
        guide_id=guide_id,
        author_id=author_id,
        min_rating=min_rating,
        moderation_status=moderation_status,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {"items": items, "total": total}


@router.post("", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
def create_review(
    review_in: ReviewCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    return review_service.create_review(db, review_in, current_user, notifier)


@router.get("/{review_id}", response_model=ReviewResponse)
def get_review(review_id: int, db: Session = Depends(get_db)):
    return review_service.get_review(db, review_id)


@router.put("/{review_id}", response_model=ReviewResponse)
def update_review(
    review_id: int,
    review_in: ReviewUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return review_service.update_review(db, review_id, review_in, current_user)


@router.delete("/{review_id}")
def delete_review(
    review_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    review_service.delete_review(db, review_id, current_user)
    return {"success": True, "deleted_review_id": review_id}


@router.post("/{review_id}/helpful", response_model=HelpfulVoteResponse)
def mark_helpful(
    review_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return review_service.mark_helpful(db, review_id, current_user)


@router.post("/{review_id}/report", response_model=ReportResponse)
def report_review(
    review_id: int,
    report_in: ReportIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return review_service.report_review(db, review_id, current_user, report_in.reason)


# Admin: approve / flag / reject
@router.post("/{review_id}/moderate", response_model=ModerationResult)
def moderate_review(
    review_id: int,
    moderation: ReviewModeration,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    review = review_service.moderate_review(db, review_id, moderation.action, admin)
    return {"action": moderation.action, "review": review}


# Management response, by an admin or the reviewed guide
@router.post("/{review_id}/response", response_model=ReviewResponse)
def respond_to_review(
    review_id: int,
    response_in: ReviewResponseIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    return review_service.respond_to_review(db, review_id, response_in.content, current_user, notifier)
