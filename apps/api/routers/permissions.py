"""
Permissions API Router

Permission catalog management. Every route is gated by the fine-grained
("permissions", <action>) check.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from uuid import UUID
from typing import List

from core.database import get_db
from core.auth import require_permission
from models import User
from schemas import PermissionCreate, PermissionUpdate, PermissionResponse
from services import permission_catalog

router = APIRouter(prefix="/v1/permissions", tags=["permissions"])


@router.get("", response_model=List[PermissionResponse])
def list_permissions(
    _: User = Depends(require_permission("permissions", "list")),
    db: Session = Depends(get_db),
):
    return permission_catalog.list_permissions(db)


# NOTE: /resource/{resource} must be defined BEFORE /{permission_id}
@router.get("/resource/{resource}", response_model=PermissionResponse)
def get_permission_by_resource(
    resource: str,
    _: User = Depends(require_permission("permissions", "read")),
    db: Session = Depends(get_db),
):
    return permission_catalog.get_by_resource(db, resource)


@router.get("/{permission_id}", response_model=PermissionResponse)
def get_permission(
    permission_id: UUID,
    _: User = Depends(require_permission("permissions", "read")),
    db: Session = Depends(get_db),
):
    return permission_catalog.get_permission(db, permission_id)


@router.post("", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
def create_permission(
    payload: PermissionCreate,
    _: User = Depends(require_permission("permissions", "create")),
    db: Session = Depends(get_db),
):
    """
    Define a permission for a new resource.

    Fails with 409 if the resource already has an entry, 422 on unknown actions.
    """
    return permission_catalog.define_permission(
        db,
        resource=payload.resource,
        actions=payload.actions,
        is_system=payload.is_system,
        description=payload.description,
    )


@router.put("/{permission_id}", response_model=PermissionResponse)
def update_permission(
    permission_id: UUID,
    payload: PermissionUpdate,
    _: User = Depends(require_permission("permissions", "update")),
    db: Session = Depends(get_db),
):
    return permission_catalog.modify_permission(db, permission_id, payload.model_dump(exclude_unset=True))


@router.delete("/{permission_id}")
def delete_permission(
    permission_id: UUID,
    _: User = Depends(require_permission("permissions", "delete")),
    db: Session = Depends(get_db),
):
    """Blocked for system permissions and while any role references the permission."""
    permission_catalog.retire_permission(db, permission_id)
    return {"success": True}
