import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from guide_booking.core.security import require_admin
from guide_booking.db.base import get_db
from guide_booking.db.models.booking import Booking
from guide_booking.db.models.destination import Destination
from guide_booking.db.models.review import Review
from guide_booking.db.models.user import User
from guide_booking.schemas.destination import (
    DestinationCreate,
    DestinationListResponse,
    DestinationResponse,
    DestinationUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/destinations", tags=["destinations"])


@router.get("", response_model=DestinationListResponse)
def list_destinations(
    q: Optional[str] = Query(None, description="search name, country or region"),
    country: Optional[str] = Query(None),
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    query = db.query(Destination)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(
            Destination.name.ilike(like) | Destination.country.ilike(like) | Destination.region.ilike(like)
        )
    if country:
        query = query.filter(Destination.country.ilike(country))
    if min_rating is not None:
        query = query.filter(Destination.rating >= min_rating)

    total = query.count()
    items = query.order_by(Destination.rating.desc(), Destination.id).offset(offset).limit(limit).all()
    return {"items": items, "total": total}


@router.get("/{destination_id}", response_model=DestinationResponse)
def get_destination(destination_id: int, db: Session = Depends(get_db)):
    d = db.query(Destination).filter(Destination.id == destination_id).first()
    if not d:
        raise HTTPException(status_code=404, detail="Destination not found")
    return d


@router.post("", response_model=DestinationResponse, status_code=status.HTTP_201_CREATED)
def create_destination(
    destination_in: DestinationCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    d = Destination(**destination_in.dict())
    db.add(d)
    db.commit()
    db.refresh(d)
    logger.info("Created destination %s (%s)", d.id, d.name)
    return d


@router.put("/{destination_id}", response_model=DestinationResponse)
def update_destination(
    destination_id: int,
    destination_in: DestinationUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    d = db.query(Destination).filter(Destination.id == destination_id).first()
    if not d:
        raise HTTPException(status_code=404, detail="Destination not found")

    # rating and review_count are not part of the schema; reviews own them
    for field, value in destination_in.dict(exclude_unset=True).items():
        setattr(d, field, value)

    db.commit()
    db.refresh(d)
    return d


@router.delete("/{destination_id}")
def delete_destination(
    destination_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    d = db.query(Destination).filter(Destination.id == destination_id).first()
    if not d:
        raise HTTPException(status_code=404, detail="Destination not found")

    in_use = (
        db.query(Booking.id).filter(Booking.destination_id == destination_id).first()
        or db.query(Review.id).filter(Review.destination_id == destination_id).first()
    )
    if in_use:
        raise HTTPException(status_code=409, detail="Destination has bookings or reviews")

    db.delete(d)
    db.commit()
    logger.info("Deleted destination %s", destination_id)
    return {"success": True, "deleted_destination_id": destination_id}
