from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: int
    title: str
    description: str
    type: str
    read: bool
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[int] = None
    related_entity_name: Optional[str] = None
    action_url: Optional[str] = None
    action_label: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    items: List[NotificationResponse]
    total: int
    unread: int


class UnreadCount(BaseModel):
    count: int


class ReadUpdate(BaseModel):
    read: bool = True
