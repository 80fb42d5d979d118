from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class DestinationCreate(BaseModel):
    name: str = Field(..., min_length=2)
    country: str = Field(..., min_length=2)
    region: Optional[str] = None
    description: Optional[str] = None


class DestinationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2)
    country: Optional[str] = Field(None, min_length=2)
    region: Optional[str] = None
    description: Optional[str] = None


class DestinationResponse(BaseModel):
    id: int
    name: str
    country: str
    region: Optional[str] = None
    description: Optional[str] = None
    rating: float
    review_count: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DestinationListResponse(BaseModel):
    items: List[DestinationResponse]
    total: int
