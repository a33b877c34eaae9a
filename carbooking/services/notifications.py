"""
Notification fan-out for booking lifecycle events.
Rows are stored for the in-app inbox; email delivery is queued to the log.
"""
import uuid
from typing import Any, Dict, Iterable, List, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import Approval, Booking, Notification
from .hierarchy import list_hr_users

logger = structlog.get_logger(__name__)


def booking_snapshot(booking: Booking) -> Dict[str, Any]:
    return {
        "id": str(booking.id),
        "user_id": str(booking.user_id),
        "vehicle_id": str(booking.vehicle_id),
        "status": booking.status,
        "departure_date": booking.departure_date.isoformat(),
        "departure_time": booking.departure_time.strftime("%H:%M"),
        "return_date": booking.return_date.isoformat() if booking.return_date else None,
        "return_time": booking.return_time.strftime("%H:%M") if booking.return_time else None,
        "destination": booking.destination,
    }


class NotificationService:
    def __init__(self, enable_email: Optional[bool] = None):
        self.enable_email = settings.enable_email if enable_email is None else enable_email

    def notify(self, db: Session, event: str, recipient_id: uuid.UUID, payload: Dict[str, Any]) -> Notification:
        """
        Store a notification for one recipient and queue its email.

        Args:
            db: Database session
            event: Notification type (new_booking_request|booking_approved|...)
            recipient_id: User to notify
            payload: ``title``, ``message`` and optional ``booking`` snapshot / extra data
        """
        booking = payload.get("booking") or {}
        notification = Notification(
            user_id=recipient_id,
            booking_id=uuid.UUID(booking["id"]) if booking.get("id") else None,
            type=event,
            title=payload.get("title") or event.replace("_", " ").capitalize(),
            message=payload.get("message", ""),
            payload_json=payload,
        )
        db.add(notification)
        db.flush()
        if self.enable_email:
            self._queue_email(notification)
        db.commit()
        return notification

    def _queue_email(self, notification: Notification) -> None:
        # No mail transport: the queue is the structured log
        logger.info(
            "email_queued",
            notification_id=str(notification.id),
            user_id=str(notification.user_id),
            type=notification.type,
        )
        notification.email_sent = True

    # ---------- lifecycle events ----------

    def booking_created(self, db: Session, booking: Booking, manager_id: uuid.UUID, requester_name: str) -> None:
        snapshot = booking_snapshot(booking)
        when = snapshot["departure_date"]
        self.notify(db, "new_booking_request", manager_id, {
            "title": "New Booking Request",
            "message": f"{requester_name} has submitted a booking request for {when}",
            "booking": snapshot,
        })
        self.notify(db, "booking_submitted", booking.user_id, {
            "title": "Booking Request Submitted",
            "message": f"Your booking request for {when} has been submitted for approval",
            "booking": snapshot,
        })

    def booking_approved(self, db: Session, booking: Booking, level: str) -> None:
        """level: manager (forwarded to HR) or final."""
        snapshot = booking_snapshot(booking)
        when = snapshot["departure_date"]
        if level == "final":
            self.notify(db, "booking_approved", booking.user_id, {
                "title": "Booking Approved",
                "message": f"Your booking for {when} has been fully approved",
                "booking": snapshot,
            })
        else:
            self.notify(db, "booking_approved_manager", booking.user_id, {
                "title": "Booking Approved by Manager",
                "message": f"Your booking for {when} has been approved by your manager and sent to HR",
                "booking": snapshot,
            })

    def hr_approval_required(self, db: Session, booking: Booking) -> None:
        snapshot = booking_snapshot(booking)
        for hr_user in list_hr_users(db):
            self.notify(db, "hr_approval_required", hr_user.id, {
                "title": "Booking Requires HR Approval",
                "message": f"A booking for {snapshot['departure_date']} requires HR approval",
                "booking": snapshot,
            })

    def booking_rejected(self, db: Session, booking: Booking, reason: str) -> None:
        snapshot = booking_snapshot(booking)
        self.notify(db, "booking_rejected", booking.user_id, {
            "title": "Booking Rejected",
            "message": f"Your booking for {snapshot['departure_date']} has been rejected. Reason: {reason}",
            "booking": snapshot,
            "reason": reason,
        })

    def booking_cancelled(self, db: Session, booking: Booking) -> None:
        snapshot = booking_snapshot(booking)
        approver_ids = {
            row[0]
            for row in db.query(Approval.approver_id).filter(
                Approval.booking_id == booking.id,
                Approval.status.in_(["approved", "pending"]),
            ).all()
        }
        for approver_id in approver_ids:
            self.notify(db, "booking_cancelled", approver_id, {
                "title": "Booking Cancelled",
                "message": f"A booking for {snapshot['departure_date']} has been cancelled by the requester",
                "booking": snapshot,
            })

    # ---------- read side ----------

    def list_for_user(self, db: Session, user_id: uuid.UUID, limit: int = 20, unread_only: bool = False) -> List[Notification]:
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc()).limit(limit).all()

    def unread_count(self, db: Session, user_id: uuid.UUID) -> int:
        return (
            db.query(func.count(Notification.id))
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .scalar()
            or 0
        )

    def mark_read(self, db: Session, notification_ids: Iterable[uuid.UUID], user_id: uuid.UUID) -> List[Notification]:
        rows = db.query(Notification).filter(
            Notification.id.in_(list(notification_ids)),
            Notification.user_id == user_id,
        ).all()
        for row in rows:
            row.is_read = True
        db.commit()
        return rows


def send_safely(db: Session, event: str, send, *args, **kwargs) -> None:
    """Run a notification helper after commit; failures are logged, never raised."""
    try:
        send(db, *args, **kwargs)
    except Exception as exc:
        db.rollback()
        logger.warning("notification_failed", notification_event=event, error=str(exc))
