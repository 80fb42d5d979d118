from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class GuideCreate(BaseModel):
    name: str = Field(..., min_length=2)
    email: EmailStr
    bio: Optional[str] = None


class GuideUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2)
    email: Optional[EmailStr] = None
    bio: Optional[str] = None


class GuideResponse(BaseModel):
    id: int
    name: str
    email: str
    bio: Optional[str] = None
    rating: float
    review_count: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GuideListResponse(BaseModel):
    items: List[GuideResponse]
    total: int
