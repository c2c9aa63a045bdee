"""
Access evaluator.

Two independent decision functions, applied at different call sites:

- evaluate_access: fine-grained (resource, action) check against the
  principal's role permissions.
- authorize_by_role_name: coarse gate on role-name membership.

Neither raises; both return an AccessDecision. The HTTP seams in
core.auth turn a denial into ForbiddenError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from core.config import settings
from models import Role, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str
    resource: Optional[str] = None
    action: Optional[str] = None
    role_name: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


def resolve_role(db: Session, principal: User) -> Optional[Role]:
    """
    Role for the principal: its explicit role, else the current default role.

    A dangling role reference resolves to None (no access), never to the default.
    """
    if principal is None:
        return None
    if principal.role_id is not None:
        return db.get(Role, principal.role_id)
    return db.query(Role).filter(Role.is_default.is_(True)).first()


def has_bypass(role: Role) -> bool:
    if role.bypass_all_checks:
        return True
    # Literal, case-sensitive compatibility path for seeded data.
    return settings.SUPERADMIN_NAME_BYPASS and role.name == settings.SUPERADMIN_ROLE_NAME


def evaluate_access(db: Session, principal: User, resource: str, action: str) -> AccessDecision:
    role = resolve_role(db, principal)
    if role is None:
        logger.info(
            f"Access denied: role not resolved for {action} {resource}",
            extra={"extra_fields": {"resource": resource, "action": action,
                                    "principal_id": str(getattr(principal, "id", None))}},
        )
        return AccessDecision(
            allowed=False,
            reason=f"User role not found; cannot {action} {resource}",
            resource=resource,
            action=action,
        )

    if has_bypass(role):
        return AccessDecision(True, "bypass", resource, action, role.name)

    for permission in role.permissions:
        if permission.resource == resource and permission.allows(action):
            return AccessDecision(True, "permission", resource, action, role.name)

    logger.info(
        f"Access denied: role {role.name} lacks {action} on {resource}",
        extra={"extra_fields": {"resource": resource, "action": action, "role": role.name}},
    )
    return AccessDecision(
        allowed=False,
        reason=f"Not authorized to {action} {resource}",
        resource=resource,
        action=action,
        role_name=role.name,
    )


def authorize_by_role_name(db: Session, principal: User, allowed_names: Iterable[str]) -> AccessDecision:
    allowed = list(allowed_names)
    role = resolve_role(db, principal)
    if role is None:
        return AccessDecision(allowed=False, reason="User role not found")
    if role.name not in allowed:
        return AccessDecision(
            allowed=False,
            reason=f"User role {role.name} is not authorized to access this route",
            role_name=role.name,
        )
    return AccessDecision(True, "role", role_name=role.name)


def is_administrator(db: Session, principal: User) -> bool:
    """Admin for ownership-gated operations: an admin role name or a bypass role."""
    role = resolve_role(db, principal)
    if role is None:
        return False
    return has_bypass(role) or role.name in settings.admin_role_names
