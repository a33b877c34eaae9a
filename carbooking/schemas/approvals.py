import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .bookings import BookingResponse, Pagination


class ApprovalLevel(str, Enum):
    manager = "manager"
    hr = "hr"


class ApprovalStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ApproveRequest(BaseModel):
    booking_id: uuid.UUID
    comments: Optional[str] = Field(default=None, max_length=500)


class RejectRequest(BaseModel):
    booking_id: uuid.UUID
    # Empty comments are refused by the approval service with a specific message
    comments: str = Field(default="", max_length=500)


class ApprovalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    booking_id: uuid.UUID
    approver_id: uuid.UUID
    approval_level: ApprovalLevel
    status: ApprovalStatus
    comments: Optional[str] = None
    created_at: datetime
    decided_at: Optional[datetime] = None
    booking: Optional[BookingResponse] = None


class ApprovalHistoryResponse(BaseModel):
    approvals: List[ApprovalResponse]
    pagination: Pagination
