"""
Audit logging service.
Append-only audit log with integrity hashing.
"""
import hashlib
import json
from datetime import datetime
from typing import Optional, Dict
from sqlalchemy.orm import Session

from ..models.models import AuditLog
from ..config import settings


def compute_integrity_hash(canonical_data: Dict, secret: str) -> str:
    # Remove None values and sort keys for consistency
    canonical_data = {k: v for k, v in canonical_data.items() if v is not None}
    canonical_json = json.dumps(canonical_data, sort_keys=True, default=str)
    return hashlib.sha256(f"{canonical_json}:{secret}".encode()).hexdigest()


def create_audit_log(
    db: Session,
    entity_type: str,
    entity_id,
    action: str,
    actor_id=None,
    actor_role: Optional[str] = None,
    source: Optional[str] = None,
    changes_json: Optional[Dict] = None,
    context: Optional[Dict] = None,
    integrity_secret: Optional[str] = None
) -> AuditLog:
    """
    Add an audit log entry to the current transaction.

    The caller owns the commit, so the entry lands (or rolls back) together
    with the change it describes.

    Args:
        db: Database session
        entity_type: Type of entity (booking|vehicle)
        entity_id: Entity ID
        action: Action performed (CREATE|APPROVE|REJECT|CANCEL|MAINTENANCE)
        actor_id: User ID who performed the action
        actor_role: Role of the actor (employee|manager|hr|admin|system)
        source: Source of the action (api|system)
        changes_json: Before/after diff
        context: Additional context (vehicle_id, comments, etc.)
        integrity_secret: Secret for integrity hash (defaults to JWT_SECRET)

    Returns:
        Created AuditLog object
    """
    timestamp_utc = datetime.utcnow().replace(tzinfo=None)

    if integrity_secret is None:
        integrity_secret = settings.jwt_secret

    integrity_hash = None
    if integrity_secret:
        integrity_hash = compute_integrity_hash(
            {
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action,
                "actor_id": str(actor_id) if actor_id else None,
                "actor_role": actor_role,
                "source": source,
                "timestamp_utc": timestamp_utc.isoformat(),
                "changes": changes_json,
                "context": context,
            },
            integrity_secret,
        )

    audit_log = AuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        actor_role=actor_role,
        source=source or "system",
        changes_json=changes_json,
        timestamp_utc=timestamp_utc,
        context=context,
        integrity_hash=integrity_hash,
    )

    db.add(audit_log)
    db.flush()

    return audit_log
