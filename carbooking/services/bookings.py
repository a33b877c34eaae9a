"""
Booking lifecycle: creation under a vehicle lock, listing, cancellation.
"""
import uuid
from datetime import datetime
from typing import Callable, List, Optional, Tuple

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import (
    AuthorizationError,
    BookingError,
    ConflictError,
    InternalError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ..models.models import CANCELLABLE_STATUSES, Approval, Booking, BookingTraveler, User
from .audit import create_audit_log
from .booking_conflict import find_conflicts, find_conflicts_locked
from .datetime_rules import ensure_booking_window, local_now, resolve_window
from .hierarchy import is_direct_manager
from .notifications import NotificationService, send_safely
from .pagination import paginate

logger = structlog.get_logger(__name__)

NO_MANAGER_MESSAGE = "No manager assigned to your account. Please contact HR."
CONFLICT_MESSAGE = "Vehicle is already booked for the selected time period"


def _value(field):
    return getattr(field, "value", field)


class BookingService:
    def __init__(self, notifications: NotificationService, clock: Optional[Callable[[], datetime]] = None):
        self.notifications = notifications
        self.clock = clock or local_now

    def create_booking(self, db: Session, details, requester: User) -> Booking:
        """
        Create a booking in ``pending_manager`` with its travelers and the
        manager's pending approval, all in one transaction.

        The vehicle row stays locked from the conflict check until commit, so
        two concurrent requests for the same window cannot both succeed.
        """
        if not requester.manager_id:
            raise ValidationError(NO_MANAGER_MESSAGE)

        departure, return_at = ensure_booking_window(
            details.departure_date,
            details.departure_time,
            details.return_date,
            details.return_time,
            now=self.clock(),
        )

        try:
            conflicts = find_conflicts_locked(db, details.vehicle_id, departure, return_at)
            if conflicts:
                raise ConflictError(
                    CONFLICT_MESSAGE,
                    details={"conflicting_booking_ids": [str(b.id) for b in conflicts]},
                )

            now = datetime.utcnow()
            booking = Booking(
                user_id=requester.id,
                vehicle_id=details.vehicle_id,
                departure_date=departure.date(),
                departure_time=departure.time(),
                return_date=return_at.date(),
                return_time=return_at.time(),
                destination=details.destination,
                reason=_value(details.reason),
                reason_details=details.reason_details,
                status="pending_manager",
                number_of_drivers=details.number_of_drivers,
                number_of_companions=details.number_of_companions,
                created_at=now,
                updated_at=now,
            )
            db.add(booking)
            db.flush()

            for traveler in details.travelers:
                db.add(BookingTraveler(
                    booking_id=booking.id,
                    name=traveler.name,
                    type=_value(traveler.type),
                    is_primary=bool(traveler.is_primary),
                ))

            db.add(Approval(
                booking_id=booking.id,
                approver_id=requester.manager_id,
                approval_level="manager",
                status="pending",
            ))

            create_audit_log(
                db,
                entity_type="booking",
                entity_id=booking.id,
                action="CREATE",
                actor_id=requester.id,
                actor_role=requester.role,
                source="api",
                changes_json={"after": {"status": "pending_manager"}},
                context={
                    "vehicle_id": str(details.vehicle_id),
                    "departure": departure.isoformat(),
                    "return": return_at.isoformat(),
                },
            )
            db.commit()
        except BookingError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(
                "booking_create_failed",
                user_id=str(requester.id),
                vehicle_id=str(details.vehicle_id),
                error=str(exc),
            )
            raise InternalError("Failed to create booking. Please try again.")

        db.refresh(booking)
        logger.info(
            "booking_created",
            booking_id=str(booking.id),
            user_id=str(requester.id),
            vehicle_id=str(booking.vehicle_id),
        )
        send_safely(db, "booking_created", self.notifications.booking_created,
                    booking, requester.manager_id, requester.name)
        return booking

    def check_conflicts(
        self,
        db: Session,
        vehicle_id: uuid.UUID,
        departure_date: str,
        departure_time: str,
        return_date: str,
        return_time: str,
        exclude_booking_id: Optional[uuid.UUID] = None,
    ) -> List[Booking]:
        departure, return_at = resolve_window(departure_date, departure_time, return_date, return_time)
        if return_at < departure:
            raise ValidationError("Return must not be before departure")
        return find_conflicts(db, vehicle_id, departure, return_at, exclude_booking_id)

    def list_bookings(
        self,
        db: Session,
        viewer: User,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        user_id: Optional[uuid.UUID] = None,
    ) -> Tuple[List[Booking], dict]:
        """
        Page through bookings visible to ``viewer``.

        Employees see their own; managers may ask for a direct report's;
        hr/admin may ask for anyone's or, with no ``user_id``, for all.
        """
        query = db.query(Booking)
        privileged = viewer.role in ("hr", "admin")

        if user_id and user_id != viewer.id:
            allowed = privileged or (
                viewer.role == "manager" and is_direct_manager(viewer.id, user_id, db)
            )
            if not allowed:
                raise AuthorizationError("You cannot view bookings of this user")
            query = query.filter(Booking.user_id == user_id)
        elif user_id or not privileged:
            query = query.filter(Booking.user_id == viewer.id)

        if status:
            query = query.filter(Booking.status == status)

        return paginate(query.order_by(Booking.created_at.desc()), page, limit)

    def get_booking(self, db: Session, booking_id: uuid.UUID, viewer: User) -> Booking:
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if booking is None:
            raise NotFoundError("Booking not found")

        if booking.user_id == viewer.id or viewer.role in ("hr", "admin"):
            return booking
        if booking.user is not None and booking.user.manager_id == viewer.id:
            return booking
        raise AuthorizationError("You cannot view this booking")

    def cancel_booking(self, db: Session, booking_id: uuid.UUID, requester: User) -> Booking:
        """Requester withdraws a pending or approved booking."""
        try:
            booking = db.query(Booking).filter(Booking.id == booking_id).with_for_update().first()
            if booking is None:
                raise NotFoundError("Booking not found")
            if booking.user_id != requester.id:
                raise AuthorizationError("Only the requester can cancel this booking")
            if booking.status not in CANCELLABLE_STATUSES:
                raise InvalidStateError(f"Booking cannot be cancelled in status {booking.status}")

            before = booking.status
            booking.status = "cancelled"
            booking.updated_at = datetime.utcnow()
            create_audit_log(
                db,
                entity_type="booking",
                entity_id=booking.id,
                action="CANCEL",
                actor_id=requester.id,
                actor_role=requester.role,
                source="api",
                changes_json={"before": {"status": before}, "after": {"status": "cancelled"}},
            )
            db.commit()
        except BookingError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("booking_cancel_failed", booking_id=str(booking_id), user_id=str(requester.id), error=str(exc))
            raise InternalError("Failed to cancel booking. Please try again.")

        logger.info("booking_cancelled", booking_id=str(booking.id), user_id=str(requester.id))
        send_safely(db, "booking_cancelled", self.notifications.booking_cancelled, booking)
        return booking
