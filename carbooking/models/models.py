import uuid
from datetime import datetime, date, time
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Time,
    Boolean,
    ForeignKey,
    Integer,
    JSON,
    Text,
    Index,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


# Statuses that hold a vehicle for their time window
ACTIVE_BOOKING_STATUSES = ("approved", "pending_manager", "pending_hr")
CANCELLABLE_STATUSES = ("pending_manager", "pending_hr", "approved")


class Department(Base):
    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    users = relationship("User", back_populates="department")


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    # Null for accounts provisioned from an external directory
    password_hash: Mapped[Optional[str]] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="employee", index=True)  # employee|manager|hr|admin
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("departments.id", ondelete="SET NULL"))
    manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    department = relationship("Department", back_populates="users")
    manager = relationship("User", remote_side="User.id", foreign_keys=[manager_id])


class Vehicle(Base):
    """Pool vehicles that employees can book"""
    __tablename__ = "vehicles"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # sedan|suv|compact|large-suv|van
    seats: Mapped[int] = mapped_column(Integer, nullable=False)
    license_plate: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    # Only available|maintenance are written; occupancy is derived from active bookings
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="available", index=True)  # available|booked|maintenance
    image_url: Mapped[Optional[str]] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    bookings = relationship("Booking", back_populates="vehicle")


class Booking(Base):
    """A single vehicle-trip request and its lifecycle status"""
    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    vehicle_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("vehicles.id"), nullable=False)
    departure_date: Mapped[date] = mapped_column(Date, nullable=False)  # Local date
    departure_time: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)  # Local time
    return_date: Mapped[Optional[date]] = mapped_column(Date)
    return_time: Mapped[Optional[time]] = mapped_column(Time(timezone=False))
    destination: Mapped[str] = mapped_column(Text, nullable=False)
    reason: Mapped[str] = mapped_column(String(50), nullable=False)
    reason_details: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    number_of_drivers: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    number_of_companions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    user = relationship("User", foreign_keys=[user_id])
    vehicle = relationship("Vehicle", back_populates="bookings")
    travelers = relationship("BookingTraveler", back_populates="booking", cascade="all, delete-orphan", order_by="BookingTraveler.created_at")
    approvals = relationship("Approval", back_populates="booking", cascade="all, delete-orphan", order_by="Approval.created_at")

    # Indexes for conflict checking and listing
    __table_args__ = (
        Index("idx_bookings_user_id", "user_id"),
        Index("idx_bookings_vehicle_date", "vehicle_id", "departure_date"),
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_status_date", "status", "departure_date"),
        Index("idx_bookings_created_at", "created_at"),
    )


class BookingTraveler(Base):
    __tablename__ = "booking_travelers"

    id: Mapped[uuid.UUID] = uuid_pk()
    booking_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # driver|companion
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    booking = relationship("Booking", back_populates="travelers")


class Approval(Base):
    """Append-only approval decisions, one level (manager|hr) per row"""
    __tablename__ = "approvals"

    id: Mapped[uuid.UUID] = uuid_pk()
    booking_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    approver_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    approval_level: Mapped[str] = mapped_column(String(20), nullable=False)  # manager|hr
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")  # pending|approved|rejected
    comments: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    booking = relationship("Booking", back_populates="approvals")
    approver = relationship("User", foreign_keys=[approver_id])

    __table_args__ = (
        Index("idx_approvals_booking_status", "booking_id", "status"),
        # At most one pending approval per booking
        Index(
            "uq_approvals_one_pending",
            "booking_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )


class AuditLog(Base):
    """Append-only audit log for booking lifecycle actions"""
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # booking|vehicle
    entity_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # CREATE|APPROVE|REJECT|CANCEL|MAINTENANCE
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    actor_role: Mapped[Optional[str]] = mapped_column(String(50))
    source: Mapped[Optional[str]] = mapped_column(String(50))  # api|system
    changes_json: Mapped[Optional[dict]] = mapped_column(JSON)  # Before/after diff
    timestamp_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    context: Mapped[Optional[dict]] = mapped_column(JSON)
    integrity_hash: Mapped[Optional[str]] = mapped_column(String(64))  # SHA256 hash for integrity verification

    __table_args__ = (
        Index('idx_audit_entity', 'entity_type', 'entity_id'),
        Index('idx_audit_actor', 'actor_id', 'timestamp_utc'),
    )


class Notification(Base):
    """In-app notifications; email delivery is queued to the log"""
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    booking_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("bookings.id", ondelete="CASCADE"))
    type: Mapped[str] = mapped_column(String(50), nullable=False)  # new_booking_request|booking_submitted|booking_approved|...
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payload_json: Mapped[Optional[dict]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        Index('idx_notifications_user_read', 'user_id', 'is_read'),
        Index('idx_notifications_created', 'created_at'),
    )
