# guide_booking/schemas/admin.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from guide_booking.db.models.user import UserRole


class UserListItem(BaseModel):
    id: int
    email: str
    name: str
    role: str
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RoleUpdate(BaseModel):
    role: UserRole


class ActiveUpdate(BaseModel):
    active: bool
