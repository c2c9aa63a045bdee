"""
Permission catalog.

One entry per protectable resource. System entries (seeded at bootstrap)
keep their resource name and system flag for life, and no entry can be
retired while a role still references it.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import ConflictError, ImmutableError, NotFoundError, ReferentialError, ValidationError
from models import PERMISSION_ACTIONS, Permission, role_permission

logger = logging.getLogger(__name__)


def validate_actions(actions: Iterable[str]) -> List[str]:
    actions = list(actions or [])
    invalid = [a for a in actions if a not in PERMISSION_ACTIONS]
    if invalid:
        raise ValidationError(f"Invalid actions: {', '.join(invalid)}", field="actions")
    # Keep caller order, drop duplicates.
    return list(dict.fromkeys(actions))


def get_permission(db: Session, permission_id: UUID) -> Permission:
    permission = db.get(Permission, permission_id)
    if not permission:
        raise NotFoundError("Permission", permission_id)
    return permission


def list_permissions(db: Session) -> List[Permission]:
    return db.query(Permission).order_by(Permission.resource).all()


def find_by_resource(db: Session, resource: str) -> Optional[Permission]:
    return db.query(Permission).filter(Permission.resource == resource).first()


def get_by_resource(db: Session, resource: str) -> Permission:
    permission = find_by_resource(db, resource)
    if not permission:
        raise NotFoundError("Permission for resource", resource)
    return permission


def count_referencing_roles(db: Session, permission_id: UUID) -> int:
    return (
        db.query(func.count())
        .select_from(role_permission)
        .filter(role_permission.c.permission_id == permission_id)
        .scalar()
    ) or 0


def define_permission(
    db: Session,
    *,
    resource: str,
    actions: Iterable[str],
    is_system: bool = False,
    description: Optional[str] = None,
) -> Permission:
    actions = validate_actions(actions)
    resource = (resource or "").strip()
    if not resource:
        raise ValidationError("Resource name is required", field="resource")

    if find_by_resource(db, resource):
        raise ConflictError(f"Permission already exists for resource {resource}")

    permission = Permission(resource=resource, description=description, actions=actions, is_system=bool(is_system))
    try:
        with db.begin_nested():
            db.add(permission)
    except IntegrityError:
        # Lost a race against a concurrent define of the same resource.
        raise ConflictError(f"Permission already exists for resource {resource}")

    logger.info(f"Permission defined: {resource} {actions}")
    return permission


def modify_permission(db: Session, permission_id: UUID, patch: dict) -> Permission:
    """
    Apply a partial update. Keys absent from `patch` are left untouched.
    """
    permission = get_permission(db, permission_id)
    new_resource = patch.get("resource")
    if new_resource is not None:
        new_resource = new_resource.strip()

    if permission.is_system:
        renames = new_resource is not None and new_resource != permission.resource
        if renames or patch.get("is_system") is False:
            raise ImmutableError("Cannot modify system permission resource or system status")

    if patch.get("actions") is not None:
        permission.actions = validate_actions(patch["actions"])

    if new_resource and new_resource != permission.resource:
        if find_by_resource(db, new_resource):
            raise ConflictError(f"Permission already exists for resource {new_resource}")
        permission.resource = new_resource

    if "description" in patch:
        permission.description = patch["description"]
    if patch.get("is_system") is not None:
        permission.is_system = bool(patch["is_system"])

    try:
        with db.begin_nested():
            db.flush()
    except IntegrityError:
        raise ConflictError(f"Permission already exists for resource {new_resource}")
    return permission


def retire_permission(db: Session, permission_id: UUID) -> None:
    permission = get_permission(db, permission_id)
    if permission.is_system:
        raise ImmutableError("Cannot delete system permissions")

    referencing = count_referencing_roles(db, permission.id)
    if referencing > 0:
        raise ReferentialError(
            f"This permission is assigned to {referencing} roles and cannot be deleted",
            dependents=referencing,
        )

    db.delete(permission)
    db.flush()
    logger.info(f"Permission retired: {permission.resource}")
