import uuid
from datetime import datetime, date, time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from ..errors import FormatError
from ..services.datetime_rules import DATE_PATTERN, TIME_PATTERN, validate_booking_window


# Enums
class BookingStatus(str, Enum):
    draft = "draft"
    pending_manager = "pending_manager"
    pending_hr = "pending_hr"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"
    completed = "completed"


class BookingReason(str, Enum):
    client_meeting = "client-meeting"
    business_trip = "business-trip"
    airport_transfer = "airport-transfer"
    site_visit = "site-visit"
    conference = "conference"
    training = "training"
    official_duty = "official-duty"
    emergency = "emergency"
    other = "other"


class TravelerType(str, Enum):
    driver = "driver"
    companion = "companion"


class TravelerInput(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    type: TravelerType
    is_primary: bool = False


class BookingCreate(BaseModel):
    vehicle_id: uuid.UUID
    departure_date: str = Field(pattern=DATE_PATTERN)
    departure_time: str = Field(pattern=TIME_PATTERN)
    return_date: Optional[str] = Field(default=None, pattern=DATE_PATTERN)
    return_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    destination: str = Field(min_length=1, max_length=500)
    reason: BookingReason
    reason_details: Optional[str] = Field(default=None, max_length=1000)
    number_of_drivers: int = Field(default=1, ge=1, le=4)
    number_of_companions: int = Field(default=0, ge=0, le=10)
    travelers: List[TravelerInput] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_window(self):
        try:
            check = validate_booking_window(
                self.departure_date, self.departure_time, self.return_date, self.return_time
            )
        except FormatError as exc:
            raise ValueError(exc.message)
        if not check.valid:
            raise ValueError(check.error)
        return self


class ConflictCheckRequest(BaseModel):
    vehicle_id: uuid.UUID
    departure_date: str = Field(pattern=DATE_PATTERN)
    departure_time: str = Field(pattern=TIME_PATTERN)
    return_date: str = Field(pattern=DATE_PATTERN)
    return_time: str = Field(pattern=TIME_PATTERN)
    exclude_booking_id: Optional[uuid.UUID] = None


class TravelerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    type: TravelerType
    is_primary: bool


class ApprovalSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    approver_id: uuid.UUID
    approval_level: str
    status: str
    comments: Optional[str] = None
    created_at: datetime
    decided_at: Optional[datetime] = None


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    vehicle_id: uuid.UUID
    departure_date: date
    departure_time: time
    return_date: Optional[date] = None
    return_time: Optional[time] = None
    destination: str
    reason: BookingReason
    reason_details: Optional[str] = None
    status: BookingStatus
    number_of_drivers: int
    number_of_companions: int
    created_at: datetime
    updated_at: datetime
    travelers: List[TravelerResponse] = []
    approvals: List[ApprovalSummary] = []

    @field_serializer("departure_time", "return_time")
    def _hhmm(self, value: Optional[time]) -> Optional[str]:
        return value.strftime("%H:%M") if value else None


class ConflictSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    status: BookingStatus
    departure_date: date
    departure_time: time
    return_date: Optional[date] = None
    return_time: Optional[time] = None

    @field_serializer("departure_time", "return_time")
    def _hhmm(self, value: Optional[time]) -> Optional[str]:
        return value.strftime("%H:%M") if value else None


class ConflictCheckResponse(BaseModel):
    has_conflicts: bool
    conflicts: List[ConflictSummary]


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class BookingListResponse(BaseModel):
    bookings: List[BookingResponse]
    pagination: Pagination
