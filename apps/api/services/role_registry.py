"""
Role registry.

Roles bundle permission references. Registry-wide invariants:
- every referenced permission exists (checked all-or-nothing before any write)
- at most one role carries is_default (partial unique index + locked claim)
- system roles keep their name, system flag and permission set
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import ConflictError, ImmutableError, NotFoundError, ReferentialError, ValidationError
from models import Permission, Role, User

logger = logging.getLogger(__name__)


def get_role(db: Session, role_id: UUID) -> Role:
    role = db.get(Role, role_id)
    if not role:
        raise NotFoundError("Role", role_id)
    return role


def list_roles(db: Session) -> List[Role]:
    return db.query(Role).order_by(Role.name).all()


def find_by_name(db: Session, name: str) -> Optional[Role]:
    return db.query(Role).filter(Role.name == name).first()


def get_default_role(db: Session) -> Optional[Role]:
    return db.query(Role).filter(Role.is_default.is_(True)).first()


def get_role_permissions(db: Session, role_id: UUID) -> List[Permission]:
    return list(get_role(db, role_id).permissions)


def count_role_users(db: Session, role_id: UUID) -> int:
    return db.query(User).filter(User.role_id == role_id).count()


def resolve_permissions(db: Session, permission_ids: Iterable[UUID]) -> List[Permission]:
    """
    Load every referenced permission or fail naming the missing ones.

    Nothing is written here; callers only mutate after this returns.
    """
    wanted = list(dict.fromkeys(permission_ids or []))
    if not wanted:
        return []
    found = db.query(Permission).filter(Permission.id.in_(wanted)).all()
    found_ids = {p.id for p in found}
    missing = [pid for pid in wanted if pid not in found_ids]
    if missing:
        raise NotFoundError("Permission", missing)
    by_id = {p.id: p for p in found}
    return [by_id[pid] for pid in wanted]


def claim_default(db: Session, role: Role) -> Role:
    """
    Make `role` the only default role.

    Current default rows are locked first so concurrent claimers serialize on
    them; the partial unique index catches the case where no default existed
    to lock, and the claim is retried inside a fresh savepoint.
    """
    attempts = settings.DEFAULT_ROLE_CLAIM_RETRIES
    for attempt in range(attempts):
        try:
            with db.begin_nested():
                db.query(Role.id).filter(Role.is_default.is_(True)).with_for_update().all()
                db.query(Role).filter(
                    Role.id != role.id,
                    Role.is_default.is_(True),
                ).update({Role.is_default: False}, synchronize_session="fetch")
                db.flush()
                role.is_default = True
                db.flush()
            return role
        except IntegrityError:
            logger.warning(
                f"Default role claim for {role.name} collided (attempt {attempt + 1}/{attempts})",
                extra={"extra_fields": {"role_id": str(role.id), "attempt": attempt + 1}},
            )
    raise ConflictError("Another role is concurrently being set as default; retry the request")


def create_role(
    db: Session,
    *,
    name: str,
    permission_ids: Iterable[UUID] = (),
    is_default: bool = False,
    description: Optional[str] = None,
    created_by: Optional[UUID] = None,
    is_system_role: bool = False,
    bypass_all_checks: bool = False,
) -> Role:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Role name is required", field="name")

    permissions = resolve_permissions(db, permission_ids)

    if find_by_name(db, name):
        raise ConflictError(f"Role already exists with name {name}")

    role = Role(
        name=name,
        description=description,
        permissions=permissions,
        is_default=False,
        is_system_role=is_system_role,
        bypass_all_checks=bypass_all_checks,
        created_by=created_by,
    )
    try:
        with db.begin_nested():
            db.add(role)
    except IntegrityError:
        raise ConflictError(f"Role already exists with name {name}")

    if is_default:
        claim_default(db, role)

    logger.info(f"Role created: {name}", extra={"extra_fields": {"role_id": str(role.id), "is_default": bool(is_default)}})
    return role


def update_role(db: Session, role_id: UUID, patch: dict) -> Role:
    """
    Apply a partial update. Keys absent from `patch` are left untouched.
    """
    role = get_role(db, role_id)
    new_name = patch.get("name")
    if new_name is not None:
        new_name = new_name.strip()

    if role.is_system_role:
        renames = new_name is not None and new_name != role.name
        if renames or patch.get("is_system_role") is False:
            raise ImmutableError("Cannot modify system role name or system status")

    permissions = None
    if patch.get("permissions") is not None:
        permissions = resolve_permissions(db, patch["permissions"])
        if role.is_system_role and {p.id for p in permissions} != {p.id for p in role.permissions}:
            raise ImmutableError("Cannot modify system role permissions")

    if new_name and new_name != role.name:
        if find_by_name(db, new_name):
            raise ConflictError(f"Role already exists with name {new_name}")
        role.name = new_name

    if "description" in patch:
        role.description = patch["description"]
    if permissions is not None:
        role.permissions = permissions
    if patch.get("is_system_role") is True:
        role.is_system_role = True

    try:
        with db.begin_nested():
            db.flush()
    except IntegrityError:
        raise ConflictError(f"Role already exists with name {new_name}")

    if patch.get("is_default") is True:
        claim_default(db, role)
    elif patch.get("is_default") is False and role.is_default:
        role.is_default = False
        db.flush()

    return role


def set_role_permissions(db: Session, role_id: UUID, permission_ids: Iterable[UUID]) -> Role:
    """Replace the role's permission set wholesale."""
    role = get_role(db, role_id)
    if role.is_system_role:
        raise ImmutableError("Cannot modify system role permissions")

    role.permissions = resolve_permissions(db, permission_ids)
    db.flush()
    return role


def retire_role(db: Session, role_id: UUID) -> None:
    role = get_role(db, role_id)
    if role.is_system_role:
        raise ImmutableError("Cannot delete system roles")

    holders = count_role_users(db, role.id)
    if holders > 0:
        raise ReferentialError(
            f"This role is assigned to {holders} users and cannot be deleted",
            dependents=holders,
        )

    db.delete(role)
    db.flush()
    logger.info(f"Role retired: {role.name}")
