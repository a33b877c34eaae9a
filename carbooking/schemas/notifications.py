import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    booking_id: Optional[uuid.UUID] = None
    type: str
    title: str
    message: str
    is_read: bool
    created_at: datetime


class MarkReadRequest(BaseModel):
    ids: List[uuid.UUID] = Field(min_length=1)


class UnreadCountResponse(BaseModel):
    count: int
