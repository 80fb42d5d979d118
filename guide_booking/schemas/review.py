# guide_booking/schemas/review.py
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, conint, model_validator

# ReviewResponse has a field called "date"
Day = date


class TripIn(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    duration: Optional[conint(gt=0)] = None
    type: Optional[str] = None


class ReviewCreate(BaseModel):
    title: str = Field(..., min_length=3)
    content: str = Field(..., min_length=20)
    rating: conint(ge=1, le=5) = Field(..., description="Rating 1-5")
    date: Optional[datetime] = None
    author_id: int
    destination_id: Optional[int] = None
    guide_id: Optional[int] = None
    trip: Optional[TripIn] = None
    photos: List[str] = []
    highlights: List[str] = []
    tags: List[str] = []
    verified: bool = False
    featured: bool = False

    @model_validator(mode="after")
    def check_single_target(self):
        if (self.destination_id is None) == (self.guide_id is None):
            raise ValueError("exactly one of destination_id or guide_id is required")
        return self


class ReviewUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3)
    content: Optional[str] = Field(None, min_length=20)
    rating: Optional[conint(ge=1, le=5)] = None
    author_id: Optional[int] = None
    trip: Optional[TripIn] = None
    photos: Optional[List[str]] = None
    highlights: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    verified: Optional[bool] = None
    featured: Optional[bool] = None
    helpful_count: Optional[conint(ge=0)] = None
    unhelpful_count: Optional[conint(ge=0)] = None


# fields only an admin may send through the API
MODERATION_FIELDS = ("verified", "featured", "helpful_count", "unhelpful_count")


class AuthorSummary(BaseModel):
    id: int
    name: str
    avatar: Optional[str] = None
    nationality: Optional[str] = None

    class Config:
        from_attributes = True


class ReviewResponse(BaseModel):
    id: int
    title: str
    content: str
    rating: int
    date: Optional[datetime] = None
    author_id: int
    author: Optional[AuthorSummary] = None
    destination_id: Optional[int] = None
    guide_id: Optional[int] = None

    trip_start_date: Optional[Day] = None
    trip_end_date: Optional[Day] = None
    trip_duration: Optional[int] = None
    trip_type: Optional[str] = None

    photos: List[str] = []
    highlights: List[str] = []
    tags: List[str] = []

    verified: bool
    featured: bool
    helpful_count: int
    unhelpful_count: int
    report_count: int
    moderation_status: str

    response_content: Optional[str] = None
    response_date: Optional[datetime] = None
    responder_name: Optional[str] = None
    responder_role: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReviewListResponse(BaseModel):
    items: List[ReviewResponse]
    total: int


class HelpfulVoteResponse(BaseModel):
    helpful: Optional[bool] = None
    error: Optional[str] = None


class ReportIn(BaseModel):
    reason: str = Field(..., min_length=1)


class ReportResponse(BaseModel):
    success: bool
    error: Optional[str] = None


class ModerationAction(str, Enum):
    approve = "approve"
    flag = "flag"
    reject = "reject"


class ReviewModeration(BaseModel):
    action: ModerationAction


class ModerationResult(BaseModel):
    action: ModerationAction
    review: Optional[ReviewResponse] = None


class ReviewResponseIn(BaseModel):
    content: str = Field(..., min_length=1)
