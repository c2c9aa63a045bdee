"""
Coaching API Router

Coaching sessions (public browse, coach-owned edits) and the application
workflow (apply, review, status changes).
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from uuid import UUID
from typing import List, Optional

from core.database import get_db
from core.auth import get_current_user
from models import User
from schemas import (
    ApplicationCreate,
    ApplicationDetailResponse,
    ApplicationResponse,
    ApplicationStatusUpdate,
    CoachingCategory,
    CoachingSessionCreate,
    CoachingSessionPage,
    CoachingSessionResponse,
    CoachingSessionUpdate,
)
from services import booking

router = APIRouter(prefix="/v1/coaching", tags=["coaching"])


@router.get("", response_model=CoachingSessionPage)
def list_coaching_sessions(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=25, ge=1, le=100),
    category: Optional[CoachingCategory] = Query(default=None),
    is_free: Optional[bool] = Query(default=None),
    db: Session = Depends(get_db),
):
    """Public listing of active coaching sessions."""
    sessions, total = booking.list_sessions(db, page=page, limit=limit, category=category, is_free=is_free)
    return {"total": total, "page": page, "limit": limit, "data": sessions}


@router.post("", response_model=CoachingSessionResponse, status_code=status.HTTP_201_CREATED)
def create_coaching_session(
    payload: CoachingSessionCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Publish a session. The caller becomes its coach."""
    return booking.create_session(db, current_user, payload.model_dump())


# NOTE: fixed paths must be defined BEFORE /{session_id} to prevent route matching issues
@router.get("/applications", response_model=List[ApplicationDetailResponse])
def get_my_applications(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return booking.list_applications_for_user(db, current_user.id)


@router.get("/applications/received", response_model=List[ApplicationDetailResponse])
def get_received_applications(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Applications made to any session the caller coaches."""
    return booking.list_received_applications(db, current_user.id)


@router.put("/applications/{application_id}", response_model=ApplicationResponse)
def update_application_status(
    application_id: UUID,
    payload: ApplicationStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Change an application's status.

    Only the session's coach or an administrator may do this.
    """
    return booking.transition_application(db, current_user, application_id, payload.status)


@router.get("/mysessions", response_model=List[CoachingSessionResponse])
def get_my_coaching_sessions(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return booking.list_sessions_for_coach(db, current_user.id)


@router.get("/{session_id}", response_model=CoachingSessionResponse)
def get_coaching_session(session_id: UUID, db: Session = Depends(get_db)):
    return booking.get_session(db, session_id)


@router.put("/{session_id}", response_model=CoachingSessionResponse)
def update_coaching_session(
    session_id: UUID,
    payload: CoachingSessionUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return booking.update_session(db, current_user, session_id, payload.model_dump(exclude_unset=True))


@router.delete("/{session_id}")
def delete_coaching_session(
    session_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    booking.delete_session(db, current_user, session_id)
    return {"success": True}


@router.post("/{session_id}/apply", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
def apply_for_coaching(
    session_id: UUID,
    payload: ApplicationCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Apply for a coaching session.

    Payment amount/status come from the session's pricing, not the request.
    """
    return booking.create_application(
        db,
        current_user,
        session_id,
        scheduled_date=payload.scheduled_date,
        scheduled_time=payload.scheduled_time,
        notes=payload.notes,
    )
