from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..config import settings
from ..db import get_db
from ..models.models import User
from ..rate_limit import limiter
from ..schemas.approvals import (
    ApprovalHistoryResponse,
    ApprovalLevel,
    ApprovalResponse,
    ApproveRequest,
    RejectRequest,
)
from ..schemas.bookings import BookingResponse
from ..services.container import Services, get_services

router = APIRouter(prefix="/approvals", tags=["approvals"])


@router.get("/pending", response_model=List[ApprovalResponse])
def pending_approvals(
    approval_level: Optional[ApprovalLevel] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Approvals waiting on the current user, each with its booking."""
    level = approval_level.value if approval_level else None
    return services.approvals.pending_approvals(db, user, approval_level=level)


@router.post("/approve", response_model=BookingResponse)
@limiter.limit(settings.approval_rate_limit)
def approve_booking(
    request: Request,
    payload: ApproveRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.approvals.approve(db, payload.booking_id, user, payload.comments)


@router.post("/reject", response_model=BookingResponse)
@limiter.limit(settings.approval_rate_limit)
def reject_booking(
    request: Request,
    payload: RejectRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.approvals.reject(db, payload.booking_id, user, payload.comments)


@router.get("/history", response_model=ApprovalHistoryResponse)
def approval_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    rows, pagination = services.approvals.history(db, user, page=page, limit=limit)
    return {"approvals": rows, "pagination": pagination}
