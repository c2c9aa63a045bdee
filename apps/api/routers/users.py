"""
Users API Router

Account administration. CRUD routes use ("users", <action>) permission
checks; role assignment is gated by role name instead.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from uuid import UUID
from typing import Optional

from core.database import get_db
from core.auth import require_permission, require_role
from models import User
from schemas import PasswordChange, UserCreate, UserPage, UserResponse, UserRoleAssign, UserUpdate
from services import users as user_service

router = APIRouter(prefix="/v1/users", tags=["users"])


@router.get("", response_model=UserPage)
def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=25, ge=1, le=100),
    role_id: Optional[UUID] = Query(default=None),
    _: User = Depends(require_permission("users", "list")),
    db: Session = Depends(get_db),
):
    users, total = user_service.list_users(db, page=page, limit=limit, role_id=role_id)
    return {"total": total, "page": page, "limit": limit, "data": users}


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: UUID,
    _: User = Depends(require_permission("users", "read")),
    db: Session = Depends(get_db),
):
    return user_service.get_user(db, user_id)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    _: User = Depends(require_permission("users", "create")),
    db: Session = Depends(get_db),
):
    return user_service.create_user(
        db,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        password=payload.password,
        phone_number=payload.phone_number,
        role_id=payload.role_id,
    )


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: UUID,
    payload: UserUpdate,
    _: User = Depends(require_permission("users", "update")),
    db: Session = Depends(get_db),
):
    return user_service.update_user(db, user_id, payload.model_dump(exclude_unset=True))


@router.delete("/{user_id}")
def delete_user(
    user_id: UUID,
    _: User = Depends(require_permission("users", "delete")),
    db: Session = Depends(get_db),
):
    user_service.delete_user(db, user_id)
    return {"success": True}


@router.put("/{user_id}/password")
def change_password(
    user_id: UUID,
    payload: PasswordChange,
    _: User = Depends(require_permission("users", "update")),
    db: Session = Depends(get_db),
):
    user_service.change_password(db, user_id, payload.password)
    return {"success": True, "message": "Password updated successfully"}


@router.put("/{user_id}/role", response_model=UserResponse)
def assign_role(
    user_id: UUID,
    payload: UserRoleAssign,
    _: User = Depends(require_role(["superadmin", "admin"])),
    db: Session = Depends(get_db),
):
    """Move a user to another role. Coarse gate: caller's role name must be superadmin or admin."""
    return user_service.assign_role(db, user_id, payload.role_id)
