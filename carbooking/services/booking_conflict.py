"""
Vehicle booking conflict detection.
HARD STOP rule: a vehicle cannot carry two active bookings over overlapping windows.
"""
import uuid
from datetime import datetime
from typing import List, Optional, Set

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import NotFoundError
from ..models.models import ACTIVE_BOOKING_STATUSES, Booking, Vehicle
from .datetime_rules import booking_bounds, intervals_overlap


def _candidates(db: Session, start: datetime, end: datetime):
    """Active bookings whose date span touches [start.date(), end.date()]."""
    return db.query(Booking).filter(
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        Booking.departure_date <= end.date(),
        func.coalesce(Booking.return_date, Booking.departure_date) >= start.date(),
    )


def find_conflicts(
    db: Session,
    vehicle_id: uuid.UUID,
    departure: datetime,
    return_at: datetime,
    exclude_booking_id: Optional[uuid.UUID] = None,
) -> List[Booking]:
    """
    Get active bookings of a vehicle overlapping the closed window [departure, return_at].

    Args:
        db: Database session
        vehicle_id: Vehicle to check
        departure: Window start (local)
        return_at: Window end (local)
        exclude_booking_id: Optional booking to ignore (re-checking an existing booking)

    Returns:
        List of conflicting Booking objects, earliest first
    """
    query = _candidates(db, departure, return_at).filter(Booking.vehicle_id == vehicle_id)
    if exclude_booking_id:
        query = query.filter(Booking.id != exclude_booking_id)

    conflicts = []
    for booking in query.order_by(Booking.departure_date, Booking.departure_time).all():
        start, end = booking_bounds(booking)
        if intervals_overlap(departure, return_at, start, end):
            conflicts.append(booking)
    return conflicts


def lock_vehicle(db: Session, vehicle_id: uuid.UUID) -> Vehicle:
    """SELECT ... FOR UPDATE on the vehicle row; held until the transaction ends."""
    vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id).with_for_update().first()
    if vehicle is None:
        raise NotFoundError("Vehicle not found")
    return vehicle


def find_conflicts_locked(
    db: Session,
    vehicle_id: uuid.UUID,
    departure: datetime,
    return_at: datetime,
    exclude_booking_id: Optional[uuid.UUID] = None,
) -> List[Booking]:
    lock_vehicle(db, vehicle_id)
    return find_conflicts(db, vehicle_id, departure, return_at, exclude_booking_id)


def booked_vehicle_ids(db: Session, start: datetime, end: datetime) -> Set[uuid.UUID]:
    """Vehicles holding an active booking that overlaps the window."""
    booked = set()
    for booking in _candidates(db, start, end).all():
        b_start, b_end = booking_bounds(booking)
        if intervals_overlap(start, end, b_start, b_end):
            booked.add(booking.vehicle_id)
    return booked
