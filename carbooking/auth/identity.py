"""
Identity providers.

Every backend answers the same question: who is this person, and which
groups do they belong to. The groups are mapped to a single local role in
one place (``map_groups_to_role``) and the local user row is provisioned
from the result.
"""
import json
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import User
from .security import ROLES, verify_password

logger = structlog.get_logger(__name__)

# Highest privilege wins when a person sits in several mapped groups
ROLE_PRECEDENCE = ("admin", "hr", "manager")


class InvalidCredentials(Exception):
    pass


@dataclass
class Credentials:
    identifier: str
    password: str


@dataclass
class ExternalIdentity:
    email: str
    display_name: str
    groups: List[str] = field(default_factory=list)
    # Set when the backend already knows the local role
    role: Optional[str] = None


def load_role_group_map(raw: Optional[str] = None) -> Dict[str, List[str]]:
    data = json.loads(raw if raw is not None else settings.role_group_map_json)
    return {str(role): [str(g).lower() for g in groups] for role, groups in data.items()}


def map_groups_to_role(groups: List[str], group_map: Optional[Dict[str, List[str]]] = None) -> str:
    group_map = group_map if group_map is not None else load_role_group_map()
    member_of = {g.lower() for g in groups}
    for role in ROLE_PRECEDENCE:
        if member_of.intersection(group_map.get(role, [])):
            return role
    return "employee"


class IdentityProvider:
    name = "base"

    def authenticate(self, db: Session, credentials: Credentials) -> ExternalIdentity:
        raise NotImplementedError


class LocalPasswordProvider(IdentityProvider):
    """Users with a password hash stored in the local users table."""

    name = "local"

    def authenticate(self, db: Session, credentials: Credentials) -> ExternalIdentity:
        email = credentials.identifier.strip().lower()
        user = db.query(User).filter(func.lower(User.email) == email).first()
        if not user or not verify_password(credentials.password, user.password_hash):
            raise InvalidCredentials()
        return ExternalIdentity(email=user.email, display_name=user.name, role=user.role)


class DirectoryProvider(IdentityProvider):
    """
    Static corporate directory loaded from configuration.

    Stands in for the LDAP/Azure/SAML directories in development; entries are
    ``{"email", "display_name", "password", "groups"}``.
    """

    name = "directory"

    def __init__(self, entries: Optional[List[dict]] = None, group_map: Optional[Dict[str, List[str]]] = None):
        if entries is None:
            entries = json.loads(settings.directory_users_json)
        self.entries = {str(e["email"]).lower(): e for e in entries}
        self.group_map = group_map if group_map is not None else load_role_group_map()

    def authenticate(self, db: Session, credentials: Credentials) -> ExternalIdentity:
        entry = self.entries.get(credentials.identifier.strip().lower())
        if not entry or not secrets.compare_digest(str(entry.get("password", "")), credentials.password):
            raise InvalidCredentials()
        groups = list(entry.get("groups") or [])
        return ExternalIdentity(
            email=str(entry["email"]).lower(),
            display_name=entry.get("display_name") or entry["email"],
            groups=groups,
            role=map_groups_to_role(groups, self.group_map),
        )


IDENTITY_PROVIDERS = {
    LocalPasswordProvider.name: LocalPasswordProvider,
    DirectoryProvider.name: DirectoryProvider,
}


def get_identity_provider(name: Optional[str] = None) -> IdentityProvider:
    name = (name or settings.identity_provider or "local").lower()
    if name not in IDENTITY_PROVIDERS:
        raise ValueError(f"Unknown identity provider: {name}")
    return IDENTITY_PROVIDERS[name]()


def provision_user(db: Session, identity: ExternalIdentity) -> User:
    """Find or create the local user for an authenticated identity."""
    role = identity.role if identity.role in ROLES else map_groups_to_role(identity.groups)
    user = db.query(User).filter(func.lower(User.email) == identity.email.lower()).first()
    if user is None:
        user = User(email=identity.email.lower(), name=identity.display_name, role=role)
        db.add(user)
        logger.info("user_provisioned", email=user.email, role=role)
    elif user.role != role:
        logger.info("user_role_synced", user_id=str(user.id), before=user.role, after=role)
        user.role = role
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    return user
