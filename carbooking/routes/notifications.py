from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..db import get_db
from ..models.models import User
from ..schemas.notifications import MarkReadRequest, NotificationResponse, UnreadCountResponse
from ..services.container import Services, get_services

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.notifications.list_for_user(db, user.id, limit=limit, unread_only=unread_only)


@router.get("/unread-count", response_model=UnreadCountResponse)
def unread_count(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return {"count": services.notifications.unread_count(db, user.id)}


@router.post("/mark-read", response_model=List[NotificationResponse])
def mark_read(
    payload: MarkReadRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    # Only the caller's own notifications are touched
    return services.notifications.mark_read(db, payload.ids, user.id)
