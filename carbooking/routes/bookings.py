import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..config import settings
from ..db import get_db
from ..models.models import User
from ..rate_limit import limiter
from ..schemas.bookings import (
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatus,
    ConflictCheckRequest,
    ConflictCheckResponse,
)
from ..services.container import Services, get_services

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingResponse, status_code=201)
@limiter.limit(settings.booking_rate_limit)
def create_booking(
    request: Request,
    payload: BookingCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.bookings.create_booking(db, payload, user)


@router.get("", response_model=BookingListResponse)
def list_bookings(
    status: Optional[BookingStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    rows, pagination = services.bookings.list_bookings(
        db, user, status=status.value if status else None, page=page, limit=limit, user_id=user_id
    )
    return {"bookings": rows, "pagination": pagination}


@router.post("/check-conflicts", response_model=ConflictCheckResponse)
def check_conflicts(
    payload: ConflictCheckRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    conflicts = services.bookings.check_conflicts(
        db,
        payload.vehicle_id,
        payload.departure_date,
        payload.departure_time,
        payload.return_date,
        payload.return_time,
        exclude_booking_id=payload.exclude_booking_id,
    )
    return {"has_conflicts": bool(conflicts), "conflicts": conflicts}


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.bookings.get_booking(db, booking_id, user)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.bookings.cancel_booking(db, booking_id, user)
