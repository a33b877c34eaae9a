from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from fastapi import Request

from .approvals import ApprovalService
from .bookings import BookingService
from .notifications import NotificationService
from .vehicles import VehicleService


@dataclass
class Services:
    notifications: NotificationService
    bookings: BookingService
    approvals: ApprovalService
    vehicles: VehicleService


def build_services(clock: Optional[Callable[[], datetime]] = None, enable_email: Optional[bool] = None) -> Services:
    """Construct the service graph once; the app keeps it on ``app.state.services``."""
    notifications = NotificationService(enable_email=enable_email)
    return Services(
        notifications=notifications,
        bookings=BookingService(notifications, clock=clock),
        approvals=ApprovalService(notifications, clock=clock),
        vehicles=VehicleService(),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
