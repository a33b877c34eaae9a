import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class VehicleType(str, Enum):
    sedan = "sedan"
    suv = "suv"
    compact = "compact"
    large_suv = "large-suv"
    van = "van"


class VehicleStatus(str, Enum):
    available = "available"
    booked = "booked"
    maintenance = "maintenance"


class VehicleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    type: VehicleType
    seats: int
    license_plate: str
    status: VehicleStatus
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class MaintenanceRequest(BaseModel):
    in_maintenance: bool


class VehicleUtilizationResponse(BaseModel):
    vehicle: VehicleResponse
    bookings_count: int
    total_hours: float
    utilization_rate: float
