import uuid
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db
from ..models.models import User
from ..schemas.vehicles import MaintenanceRequest, VehicleResponse, VehicleUtilizationResponse
from ..services.container import Services, get_services
from ..services.datetime_rules import DATE_PATTERN, TIME_PATTERN

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


@router.get("", response_model=List[VehicleResponse])
def list_vehicles(db: Session = Depends(get_db), services: Services = Depends(get_services)):
    return services.vehicles.list_vehicles(db)


@router.get("/availability", response_model=List[VehicleResponse])
def vehicle_availability(
    date: str = Query(..., pattern=DATE_PATTERN),
    start_time: str = Query(..., pattern=TIME_PATTERN),
    end_time: str = Query(..., pattern=TIME_PATTERN),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.vehicles.available_vehicles(db, date, start_time, end_time)


@router.get("/utilization", response_model=List[VehicleUtilizationResponse])
def vehicle_utilization(
    start_date: str = Query(..., pattern=DATE_PATTERN),
    end_date: str = Query(..., pattern=DATE_PATTERN),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("admin")),
    services: Services = Depends(get_services),
):
    return services.vehicles.utilization(db, start_date, end_date)


@router.post("/{vehicle_id}/maintenance", response_model=VehicleResponse)
def set_maintenance(
    vehicle_id: uuid.UUID,
    payload: MaintenanceRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("admin")),
    services: Services = Depends(get_services),
):
    return services.vehicles.set_maintenance(db, vehicle_id, payload.in_maintenance, user)
