# guide_booking/api/routes/admin.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from guide_booking.core.security import require_admin
from guide_booking.db.base import get_db
from guide_booking.db.models.user import User
from guide_booking.schemas.admin import ActiveUpdate, RoleUpdate, UserListItem

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# -------------------------
# 1. List users (filterable)
# -------------------------
@router.get("/users", response_model=List[UserListItem])
def list_users(
    role: Optional[str] = Query(None, description="customer/guide/admin"),
    active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    q = db.query(User)
    if role:
        q = q.filter(User.role == role)
    if active is not None:
        q = q.filter(User.is_active == active)

    offset = (page - 1) * per_page
    return q.order_by(User.id).offset(offset).limit(per_page).all()


def _get_user(db: Session, user_id: int) -> User:
    u = db.query(User).filter(User.id == user_id).first()
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    return u


# --------------------------------------------------
# 2. Change a user's role
# --------------------------------------------------
@router.put("/users/{user_id}/role", response_model=UserListItem)
def set_user_role(
    user_id: int,
    role_in: RoleUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    u = _get_user(db, user_id)
    if u.id == admin.id and role_in.role.value != u.role:
        raise HTTPException(status_code=403, detail="Admins cannot change their own role")
    u.role = role_in.role.value
    db.commit()
    db.refresh(u)
    logger.info("User %s role set to %s by admin %s", u.id, u.role, admin.id)
    return u


# --------------------------------------------------
# 3. Activate / Deactivate a user (soft)
# --------------------------------------------------
@router.put("/users/{user_id}/activate")
def set_user_active(
    user_id: int,
    active_in: ActiveUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    u = _get_user(db, user_id)
    u.is_active = active_in.active
    db.commit()
    db.refresh(u)
    logger.info("User %s active=%s by admin %s", u.id, u.is_active, admin.id)
    return {"ok": True, "user_id": u.id, "is_active": u.is_active}
