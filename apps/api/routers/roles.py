"""
Roles API Router

Role registry management, gated by ("roles", <action>) permission checks.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from uuid import UUID
from typing import List

from core.database import get_db
from core.auth import require_permission
from models import User
from schemas import (
    PermissionResponse,
    RoleCreate,
    RolePermissionsUpdate,
    RoleResponse,
    RoleUpdate,
)
from services import role_registry

router = APIRouter(prefix="/v1/roles", tags=["roles"])


@router.get("", response_model=List[RoleResponse])
def list_roles(
    _: User = Depends(require_permission("roles", "list")),
    db: Session = Depends(get_db),
):
    return role_registry.list_roles(db)


@router.get("/{role_id}", response_model=RoleResponse)
def get_role(
    role_id: UUID,
    _: User = Depends(require_permission("roles", "read")),
    db: Session = Depends(get_db),
):
    return role_registry.get_role(db, role_id)


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
def create_role(
    payload: RoleCreate,
    current_user: User = Depends(require_permission("roles", "create")),
    db: Session = Depends(get_db),
):
    """
    Create a role.

    Every permission id must exist or nothing is created (404 lists the
    missing ids). Setting is_default moves the default flag to this role.
    """
    return role_registry.create_role(
        db,
        name=payload.name,
        description=payload.description,
        permission_ids=payload.permissions,
        is_default=payload.is_default,
        created_by=current_user.id,
    )


@router.put("/{role_id}", response_model=RoleResponse)
def update_role(
    role_id: UUID,
    payload: RoleUpdate,
    _: User = Depends(require_permission("roles", "update")),
    db: Session = Depends(get_db),
):
    return role_registry.update_role(db, role_id, payload.model_dump(exclude_unset=True))


@router.delete("/{role_id}")
def delete_role(
    role_id: UUID,
    _: User = Depends(require_permission("roles", "delete")),
    db: Session = Depends(get_db),
):
    role_registry.retire_role(db, role_id)
    return {"success": True}


@router.get("/{role_id}/permissions", response_model=List[PermissionResponse])
def get_role_permissions(
    role_id: UUID,
    _: User = Depends(require_permission("roles", "read")),
    db: Session = Depends(get_db),
):
    return role_registry.get_role_permissions(db, role_id)


@router.put("/{role_id}/permissions", response_model=RoleResponse)
def set_role_permissions(
    role_id: UUID,
    payload: RolePermissionsUpdate,
    _: User = Depends(require_permission("roles", "update")),
    db: Session = Depends(get_db),
):
    """Replace the role's permission set (not a merge)."""
    return role_registry.set_role_permissions(db, role_id, payload.permissions)
