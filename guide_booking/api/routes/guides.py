import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from guide_booking.core.security import require_admin
from guide_booking.db.base import get_db
from guide_booking.db.models.booking import Booking
from guide_booking.db.models.guide import Guide
from guide_booking.db.models.review import Review
from guide_booking.db.models.user import User
from guide_booking.schemas.guide import GuideCreate, GuideListResponse, GuideResponse, GuideUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/guides", tags=["guides"])


@router.get("", response_model=GuideListResponse)
def list_guides(
    q: Optional[str] = Query(None, description="search name or bio"),
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    query = db.query(Guide)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(Guide.name.ilike(like) | Guide.bio.ilike(like))
    if min_rating is not None:
        query = query.filter(Guide.rating >= min_rating)

    total = query.count()
    items = query.order_by(Guide.rating.desc(), Guide.id).offset(offset).limit(limit).all()
    return {"items": items, "total": total}


@router.get("/{guide_id}", response_model=GuideResponse)
def get_guide(guide_id: int, db: Session = Depends(get_db)):
    g = db.query(Guide).filter(Guide.id == guide_id).first()
    if not g:
        raise HTTPException(status_code=404, detail="Guide not found")
    return g


@router.post("", response_model=GuideResponse, status_code=status.HTTP_201_CREATED)
def create_guide(
    guide_in: GuideCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    g = Guide(**guide_in.dict())
    db.add(g)
    db.commit()
    db.refresh(g)
    logger.info("Created guide %s (%s)", g.id, g.email)
    return g


@router.put("/{guide_id}", response_model=GuideResponse)
def update_guide(
    guide_id: int,
    guide_in: GuideUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    g = db.query(Guide).filter(Guide.id == guide_id).first()
    if not g:
        raise HTTPException(status_code=404, detail="Guide not found")

    for field, value in guide_in.dict(exclude_unset=True).items():
        setattr(g, field, value)

    db.commit()
    db.refresh(g)
    return g


@router.delete("/{guide_id}")
def delete_guide(
    guide_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    g = db.query(Guide).filter(Guide.id == guide_id).first()
    if not g:
        raise HTTPException(status_code=404, detail="Guide not found")

    in_use = (
        db.query(Booking.id).filter(Booking.guide_id == guide_id).first()
        or db.query(Review.id).filter(Review.guide_id == guide_id).first()
    )
    if in_use:
        raise HTTPException(status_code=409, detail="Guide has bookings or reviews")

    db.delete(g)
    db.commit()
    logger.info("Deleted guide %s", guide_id)
    return {"success": True, "deleted_guide_id": guide_id}
