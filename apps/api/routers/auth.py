"""
Authentication API endpoints.

Provides:
- Self-service registration (assigned the current default role)
- Login (bearer token)
- Current user and access diagnostics
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
import logging

from core.database import get_db
from core.security import create_access_token
from core.auth import get_current_user
from models import PERMISSION_ACTIONS, User
from schemas import AccessCheckResponse, TokenResponse, UserLogin, UserRegister, UserResponse
from services import users as user_service
from services.access_control import evaluate_access

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/auth", tags=["auth"])


def _token_for(user: User) -> dict:
    return {"access_token": create_access_token({"sub": str(user.id)}), "token_type": "bearer", "user": user}


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(payload: UserRegister, db: Session = Depends(get_db)):
    user = user_service.register_user(
        db,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        password=payload.password,
        phone_number=payload.phone_number,
    )
    logger.info("User registered", extra={"extra_fields": {"user_id": str(user.id)}})
    return _token_for(user)


@router.post("/login", response_model=TokenResponse)
def login(payload: UserLogin, db: Session = Depends(get_db)):
    user = user_service.authenticate(db, payload.email, payload.password)
    return _token_for(user)


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.get("/me/access", response_model=AccessCheckResponse)
def check_my_access(
    resource: str = Query(..., min_length=1),
    action: str = Query(..., pattern="^(" + "|".join(PERMISSION_ACTIONS) + ")$"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Report whether the caller may perform `action` on `resource`, and why."""
    decision = evaluate_access(db, current_user, resource, action)
    return {
        "allowed": decision.allowed,
        "resource": resource,
        "action": action,
        "role": decision.role_name,
        "reason": decision.reason,
    }
