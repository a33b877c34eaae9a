"""
Approval ledger: manager then HR sign-off on a booking.
"""
import uuid
from datetime import datetime
from typing import Callable, List, NamedTuple, Optional, Tuple

import structlog
from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import (
    AuthorizationError,
    BookingError,
    InternalError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ..models.models import Approval, Booking, User
from .audit import create_audit_log
from .datetime_rules import local_now
from .hierarchy import find_hr_approver
from .notifications import NotificationService, send_safely
from .pagination import paginate

logger = structlog.get_logger(__name__)


class WorkflowStep(NamedTuple):
    level: str
    next: str


# Booking status awaiting a decision -> level that decides it and the status an approval leads to
WORKFLOW = {
    "pending_manager": WorkflowStep(level="manager", next="pending_hr"),
    "pending_hr": WorkflowStep(level="hr", next="approved"),
}

DECISIONS = ("approved", "rejected")


def can_decide(approval: Approval, approver: User) -> bool:
    return (
        approval.approver_id == approver.id
        or (approval.approval_level == "hr" and approver.role == "hr")
        or approver.role == "admin"
    )


class ApprovalService:
    def __init__(self, notifications: NotificationService, clock: Optional[Callable[[], datetime]] = None):
        self.notifications = notifications
        self.clock = clock or local_now

    def pending_approvals(self, db: Session, viewer: User, approval_level: Optional[str] = None) -> List[Approval]:
        """
        Pending rows the viewer can act on.

        Everyone sees rows assigned to them; hr and admin also see every
        HR-level row. Rows whose booking has moved on (for example a
        cancelled booking) are left out.
        """
        visible = [Approval.approver_id == viewer.id]
        if viewer.role in ("hr", "admin"):
            visible.append(Approval.approval_level == "hr")

        query = (
            db.query(Approval)
            .join(Booking, Booking.id == Approval.booking_id)
            .filter(
                Approval.status == "pending",
                or_(*visible),
                or_(
                    and_(Approval.approval_level == "manager", Booking.status == "pending_manager"),
                    and_(Approval.approval_level == "hr", Booking.status == "pending_hr"),
                ),
            )
        )
        if approval_level:
            query = query.filter(Approval.approval_level == approval_level)
        return query.order_by(Approval.created_at.desc()).all()

    def approve(self, db: Session, booking_id: uuid.UUID, approver: User, comments: Optional[str] = None) -> Booking:
        return self.decide(db, booking_id, approver, "approved", comments)

    def reject(self, db: Session, booking_id: uuid.UUID, approver: User, comments: str) -> Booking:
        return self.decide(db, booking_id, approver, "rejected", comments)

    def decide(
        self,
        db: Session,
        booking_id: uuid.UUID,
        approver: User,
        decision: str,
        comments: Optional[str] = None,
    ) -> Booking:
        """
        Resolve the booking's pending approval and advance its status.

        Args:
            db: Database session
            booking_id: Booking awaiting a decision
            approver: Acting user (assigned approver, any hr user for HR rows, or admin)
            decision: approved|rejected
            comments: Required (non-empty) when rejecting

        Returns:
            The updated Booking
        """
        if decision not in DECISIONS:
            raise ValidationError(f"Unknown decision: {decision}")
        if decision == "rejected" and not comments:
            raise ValidationError("Comments are required when rejecting a booking")

        try:
            booking = db.query(Booking).filter(Booking.id == booking_id).with_for_update().first()
            if booking is None:
                raise NotFoundError("Booking not found")

            step = WORKFLOW.get(booking.status)
            if step is None:
                raise InvalidStateError(f"Booking is not awaiting approval (status {booking.status})")

            pending = db.query(Approval).filter(
                Approval.booking_id == booking.id,
                Approval.status == "pending",
            ).first()
            if pending is None:
                raise InvalidStateError("No pending approval found for this booking")
            if pending.approval_level != step.level:
                raise InvalidStateError("Pending approval does not match the booking status")
            if not can_decide(pending, approver):
                raise AuthorizationError("You do not have permission to approve this booking")

            pending.status = decision
            pending.comments = comments
            pending.approver_id = approver.id
            pending.decided_at = datetime.utcnow()
            # resolve the old row before a new pending one can exist
            db.flush()

            before = booking.status
            if decision == "approved":
                booking.status = step.next
                if step.next == "pending_hr":
                    hr_user = find_hr_approver(db)
                    if hr_user is not None:
                        db.add(Approval(
                            booking_id=booking.id,
                            approver_id=hr_user.id,
                            approval_level="hr",
                            status="pending",
                        ))
                    else:
                        logger.warning("hr_approver_missing", booking_id=str(booking.id))
            else:
                booking.status = "rejected"
            booking.updated_at = datetime.utcnow()

            create_audit_log(
                db,
                entity_type="booking",
                entity_id=booking.id,
                action="APPROVE" if decision == "approved" else "REJECT",
                actor_id=approver.id,
                actor_role=approver.role,
                source="api",
                changes_json={"before": {"status": before}, "after": {"status": booking.status}},
                context={"approval_level": step.level, "comments": comments},
            )
            db.commit()
        except BookingError:
            db.rollback()
            raise
        except IntegrityError:
            db.rollback()
            raise InvalidStateError("Another approval is already pending for this booking")
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(
                "approval_failed",
                booking_id=str(booking_id),
                approver_id=str(approver.id),
                decision=decision,
                error=str(exc),
            )
            raise InternalError("Failed to process approval. Please try again.")

        logger.info(
            "booking_decided",
            booking_id=str(booking.id),
            approver_id=str(approver.id),
            decision=decision,
            status=booking.status,
        )
        if decision == "rejected":
            send_safely(db, "booking_rejected", self.notifications.booking_rejected, booking, comments)
        elif booking.status == "approved":
            send_safely(db, "booking_approved", self.notifications.booking_approved, booking, "final")
        else:
            send_safely(db, "booking_approved", self.notifications.booking_approved, booking, "manager")
            send_safely(db, "hr_approval_required", self.notifications.hr_approval_required, booking)
        return booking

    def history(self, db: Session, viewer: User, page: int = 1, limit: int = 20) -> Tuple[List[Approval], dict]:
        query = db.query(Approval).filter(Approval.approver_id == viewer.id).order_by(Approval.created_at.desc())
        return paginate(query, page, limit)
