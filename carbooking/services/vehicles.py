import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..models.models import Booking, User, Vehicle
from .audit import create_audit_log
from .booking_conflict import booked_vehicle_ids
from .datetime_rules import booking_bounds, combine_date_time, parse_date

WORKING_HOURS_PER_DAY = 8


def working_days(start, end) -> int:
    """Weekdays between two dates, both ends included."""
    count = 0
    current = start
    while current <= end:
        if current.weekday() < 5:
            count += 1
        current += timedelta(days=1)
    return count


class VehicleService:
    def list_vehicles(self, db: Session) -> List[Vehicle]:
        return db.query(Vehicle).order_by(Vehicle.name.asc()).all()

    def available_vehicles(self, db: Session, date: str, start_time: str, end_time: str) -> List[Vehicle]:
        """Vehicles free over [date start_time, date end_time], maintenance excluded."""
        start = combine_date_time(date, start_time)
        end = combine_date_time(date, end_time)
        if end < start:
            raise ValidationError("End time must not be before start time")
        booked = booked_vehicle_ids(db, start, end)
        return [
            v for v in self.list_vehicles(db)
            if v.id not in booked and v.status != "maintenance"
        ]

    def set_maintenance(self, db: Session, vehicle_id: uuid.UUID, in_maintenance: bool, actor: User) -> Vehicle:
        vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
        if vehicle is None:
            raise NotFoundError("Vehicle not found")

        before = vehicle.status
        vehicle.status = "maintenance" if in_maintenance else "available"
        vehicle.updated_at = datetime.utcnow()
        create_audit_log(
            db,
            entity_type="vehicle",
            entity_id=vehicle.id,
            action="MAINTENANCE",
            actor_id=actor.id,
            actor_role=actor.role,
            source="api",
            changes_json={"before": {"status": before}, "after": {"status": vehicle.status}},
        )
        db.commit()
        return vehicle

    def utilization(self, db: Session, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        """
        Approved or completed bookings departing in [start_date, end_date] per
        vehicle, with hours booked against 8 working hours per weekday.
        """
        start = parse_date(start_date)
        end = parse_date(end_date)
        if end < start:
            raise ValidationError("End date must not be before start date")

        bookings = db.query(Booking).filter(
            Booking.status.in_(["approved", "completed"]),
            Booking.departure_date >= start,
            Booking.departure_date <= end,
        ).all()

        available_hours = working_days(start, end) * WORKING_HOURS_PER_DAY
        result = []
        for vehicle in self.list_vehicles(db):
            own = [b for b in bookings if b.vehicle_id == vehicle.id]
            total_hours = 0.0
            for booking in own:
                b_start, b_end = booking_bounds(booking)
                total_hours += (b_end - b_start).total_seconds() / 3600
            rate = (total_hours / available_hours) * 100 if available_hours > 0 else 0.0
            result.append({
                "vehicle": vehicle,
                "bookings_count": len(own),
                "total_hours": round(total_hours, 1),
                "utilization_rate": round(rate, 1),
            })
        return result
