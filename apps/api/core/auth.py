"""
Authentication and authorization dependencies.

Provides FastAPI dependencies for:
- Resolving the authenticated principal from a bearer token
- Fine-grained permission checks (resource + action)
- Coarse role-name gating

The two authorization dependencies are separate policies used at
different routes; neither is a shortcut for the other.
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from core.database import get_db
from core.exceptions import ForbiddenError, UnauthenticatedError
from core.security import decode_access_token
from models import User
from services.access_control import authorize_by_role_name, evaluate_access

# Use auto_error=False to handle missing credentials manually and return 401 (not 403)
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Get the current authenticated user from JWT token.

    Raises UnauthenticatedError if the token is missing or invalid, or the
    user no longer exists or is deactivated.
    """
    if not credentials:
        raise UnauthenticatedError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise UnauthenticatedError("Invalid authentication credentials")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthenticatedError("Invalid token payload")

    try:
        user_id_uuid = UUID(user_id)
    except ValueError:
        raise UnauthenticatedError("Invalid user ID format")

    user = db.get(User, user_id_uuid)
    if not user:
        raise UnauthenticatedError("User not found")
    if not user.active:
        raise UnauthenticatedError("Account is deactivated")

    return user


def require_permission(resource: str, action: str):
    """
    Dependency factory for resource/action permission checks.

    Usage:
        @router.get("/roles")
        def list_roles(user: User = Depends(require_permission("roles", "list"))):
            ...
    """
    def permission_checker(
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> User:
        decision = evaluate_access(db, current_user, resource, action)
        if not decision.allowed:
            raise ForbiddenError(decision.reason, resource=resource, action=action)
        return current_user

    return permission_checker


def require_role(allowed_roles: List[str]):
    """
    Dependency factory for role-name gating.

    Usage:
        @router.put("/users/{user_id}/role")
        def assign(user: User = Depends(require_role(["superadmin", "admin"]))):
            ...
    """
    def role_checker(
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> User:
        decision = authorize_by_role_name(db, current_user, allowed_roles)
        if not decision.allowed:
            raise ForbiddenError(decision.reason, roles=allowed_roles)
        return current_user

    return role_checker
