"""
User accounts.

Account CRUD plus role linkage. Passwords are stored as bcrypt hashes
(core.security); plain passwords never leave this module.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import ConflictError, NotFoundError, UnauthenticatedError
from core.security import get_password_hash, verify_password
from models import User
from services.role_registry import get_default_role, get_role

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def get_user(db: Session, user_id: UUID) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    return user


def find_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def list_users(db: Session, *, page: int = 1, limit: int = 25, role_id: Optional[UUID] = None) -> Tuple[List[User], int]:
    query = db.query(User)
    if role_id is not None:
        query = query.filter(User.role_id == role_id)
    total = query.count()
    users = query.order_by(User.created_at.desc(), User.email).offset((page - 1) * limit).limit(limit).all()
    return users, total


def _insert(db: Session, user: User) -> User:
    try:
        with db.begin_nested():
            db.add(user)
    except IntegrityError:
        raise ConflictError(f"User already exists with email {user.email}")
    db.refresh(user)
    return user


def create_user(
    db: Session,
    *,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    role_id: UUID,
    phone_number: Optional[str] = None,
) -> User:
    role = get_role(db, role_id)
    email = normalize_email(email)
    if find_by_email(db, email):
        raise ConflictError(f"User already exists with email {email}")

    user = _insert(db, User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        password_hash=get_password_hash(password),
        phone_number=phone_number,
        role_id=role.id,
    ))
    logger.info(f"User created with role {role.name}", extra={"extra_fields": {"user_id": str(user.id)}})
    return user


def register_user(
    db: Session,
    *,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    phone_number: Optional[str] = None,
) -> User:
    """Self-service sign-up. The account gets whatever role is default right now."""
    email = normalize_email(email)
    if find_by_email(db, email):
        raise ConflictError(f"User already exists with email {email}")

    default_role = get_default_role(db)
    return _insert(db, User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        password_hash=get_password_hash(password),
        phone_number=phone_number,
        role_id=default_role.id if default_role else None,
    ))


def authenticate(db: Session, email: str, password: str) -> User:
    user = find_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        raise UnauthenticatedError("Invalid credentials")
    if not user.active:
        raise UnauthenticatedError("Account is deactivated")
    return user


def update_user(db: Session, user_id: UUID, patch: dict) -> User:
    user = get_user(db, user_id)

    if patch.get("role_id") is not None:
        user.role_id = get_role(db, patch["role_id"]).id

    if patch.get("email") is not None:
        email = normalize_email(patch["email"])
        if email != user.email:
            if find_by_email(db, email):
                raise ConflictError(f"User already exists with email {email}")
            user.email = email

    for field in ("first_name", "last_name", "phone_number", "active"):
        if field in patch and (patch[field] is not None or field == "phone_number"):
            setattr(user, field, patch[field])

    try:
        with db.begin_nested():
            db.flush()
    except IntegrityError:
        raise ConflictError(f"User already exists with email {user.email}")
    db.refresh(user)
    return user


def assign_role(db: Session, user_id: UUID, role_id: UUID) -> User:
    user = get_user(db, user_id)
    user.role_id = get_role(db, role_id).id
    db.flush()
    db.refresh(user)
    return user


def change_password(db: Session, user_id: UUID, password: str) -> User:
    user = get_user(db, user_id)
    user.password_hash = get_password_hash(password)
    db.flush()
    return user


def delete_user(db: Session, user_id: UUID) -> None:
    user = get_user(db, user_id)
    db.delete(user)
    db.flush()
