"""
Custom exception classes and error handling.

Provides consistent error responses across the API. Every error carries an
error_code and a context dict naming what failed (resource/action, field,
dependents) so callers can act on it.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.context = context or {}


class UnauthenticatedError(APIException):
    """Missing or invalid credential."""

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHENTICATED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class ForbiddenError(APIException):
    """Authenticated but not allowed."""

    def __init__(
        self,
        detail: str = "Access denied",
        resource: Optional[str] = None,
        action: Optional[str] = None,
        roles: Optional[list] = None,
    ):
        context: Dict[str, Any] = {}
        if resource is not None:
            context["resource"] = resource
        if action is not None:
            context["action"] = action
        if roles is not None:
            context["roles"] = list(roles)
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="FORBIDDEN",
            context=context,
        )


class NotFoundError(APIException):
    """Entity or referenced entity not found."""

    def __init__(self, resource: str, identifier: Any):
        if isinstance(identifier, (list, tuple, set)):
            identifier = [str(i) for i in identifier]
            shown = ", ".join(identifier)
        else:
            identifier = str(identifier)
            shown = identifier
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {shown}",
            error_code="NOT_FOUND",
            context={"resource": resource, "identifier": identifier},
        )


class ValidationError(APIException):
    """Validation error."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code,
            context={"field": field} if field else None,
        )


class ConflictError(APIException):
    """Resource conflict (e.g., duplicate entry)."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code="CONFLICT"
        )


class ImmutableError(APIException):
    """Attempted mutation of a system-flagged entity."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code="IMMUTABLE"
        )


class ReferentialError(APIException):
    """Deletion blocked by dependents."""

    def __init__(self, detail: str, dependents: int):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code="REFERENTIAL",
            context={"dependents": dependents},
        )


class UnavailableError(APIException):
    """Storage temporarily unreachable. Transient, unlike the errors above."""

    def __init__(self, detail: str = "Service temporarily unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            error_code="UNAVAILABLE"
        )
