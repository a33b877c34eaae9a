from __future__ import annotations

import uuid
from typing import List, Optional
from sqlalchemy.orm import Session

from ..models.models import User


def is_direct_manager(manager_id: uuid.UUID, user_id: uuid.UUID, db: Session) -> bool:
    return db.query(User.id).filter(User.id == user_id, User.manager_id == manager_id).first() is not None


def find_hr_approver(db: Session) -> Optional[User]:
    # No routing to specific HR staff: the longest-standing active HR user takes it
    return (
        db.query(User)
        .filter(User.role == "hr", User.is_active.is_(True))
        .order_by(User.created_at.asc(), User.email.asc())
        .first()
    )


def list_hr_users(db: Session) -> List[User]:
    return db.query(User).filter(User.role == "hr", User.is_active.is_(True)).all()
