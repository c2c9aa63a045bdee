"""
Coaching booking workflow.

Sessions are published by coaches; applicants book them through
applications that move through:

    pending  -> approved | rejected | cancelled
    approved -> completed | cancelled
    completed, rejected, cancelled are terminal

Only the session's coach or an administrator changes an application's
status. By default any enum value may follow any other (the legacy
behaviour); STRICT_APPLICATION_TRANSITIONS enforces the graph above.

At most one pending/approved application may exist per (session, applicant).
The read check below only gives a friendly error; the partial unique index
uq_coaching_application_active is what holds under concurrent requests.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, FrozenSet, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from models import (
    ACTIVE_APPLICATION_STATUSES,
    APPLICATION_STATUSES,
    CoachingApplication,
    CoachingSession,
    User,
)
from services.access_control import is_administrator

logger = logging.getLogger(__name__)


# Columns a session update may leave out but never clear.
REQUIRED_SESSION_FIELDS = frozenset({
    "title", "description", "category", "is_free", "sessions", "location",
    "specialties", "availability", "max_participants", "active",
})

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"approved", "rejected", "cancelled"}),
    "approved": frozenset({"completed", "cancelled"}),
    "completed": frozenset(),
    "rejected": frozenset(),
    "cancelled": frozenset(),
}


def derive_payment(session: CoachingSession) -> Tuple[float, str]:
    """(payment_amount, payment_status) for a new application on `session`."""
    if session.is_free:
        return 0.0, "not_applicable"
    return float(session.price), "pending"


def _check_pricing(is_free: bool, price: Optional[float]) -> None:
    if not is_free and price is None:
        raise ValidationError("Price is required for paid coaching sessions", field="price")
    if price is not None and price < 0:
        raise ValidationError("Price cannot be negative", field="price")


def _can_manage(db: Session, principal: User, session: CoachingSession) -> bool:
    return session.coach_id == principal.id or is_administrator(db, principal)


# --- Coaching sessions ---

def get_session(db: Session, session_id: UUID) -> CoachingSession:
    session = db.get(CoachingSession, session_id)
    if not session:
        raise NotFoundError("Coaching session", session_id)
    return session


def list_sessions(
    db: Session,
    *,
    page: int = 1,
    limit: int = 25,
    category: Optional[str] = None,
    is_free: Optional[bool] = None,
    active: Optional[bool] = True,
) -> Tuple[List[CoachingSession], int]:
    query = db.query(CoachingSession)
    if category is not None:
        query = query.filter(CoachingSession.category == category)
    if is_free is not None:
        query = query.filter(CoachingSession.is_free.is_(is_free))
    if active is not None:
        query = query.filter(CoachingSession.active.is_(active))
    total = query.count()
    sessions = (
        query.order_by(CoachingSession.created_at.desc(), CoachingSession.title)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return sessions, total


def list_sessions_for_coach(db: Session, coach_id: UUID) -> List[CoachingSession]:
    return (
        db.query(CoachingSession)
        .filter(CoachingSession.coach_id == coach_id)
        .order_by(CoachingSession.created_at.desc())
        .all()
    )


def create_session(db: Session, principal: User, data: dict) -> CoachingSession:
    """The caller becomes the coach; any coach_id in `data` is ignored."""
    data = dict(data)
    data.pop("coach_id", None)
    _check_pricing(bool(data.get("is_free", False)), data.get("price"))

    session = CoachingSession(coach_id=principal.id, **data)
    db.add(session)
    db.flush()
    db.refresh(session)
    logger.info(
        f"Coaching session created: {session.title}",
        extra={"extra_fields": {"session_id": str(session.id), "coach_id": str(principal.id)}},
    )
    return session


def update_session(db: Session, principal: User, session_id: UUID, patch: dict) -> CoachingSession:
    session = get_session(db, session_id)
    if not _can_manage(db, principal, session):
        raise ForbiddenError(
            f"User {principal.id} is not authorized to update this coaching session",
            resource="coaching",
            action="update",
        )

    patch = {k: v for k, v in patch.items() if k != "coach_id"}
    for field in sorted(REQUIRED_SESSION_FIELDS & patch.keys()):
        if patch[field] is None:
            raise ValidationError(f"{field} cannot be null", field=field)
    # Pricing rule applies to the merged state, not just the patch.
    is_free = patch.get("is_free", session.is_free)
    price = patch["price"] if "price" in patch else session.price
    _check_pricing(bool(is_free), price)

    for field, value in patch.items():
        setattr(session, field, value)
    db.flush()
    db.refresh(session)
    return session


def delete_session(db: Session, principal: User, session_id: UUID) -> None:
    session = get_session(db, session_id)
    if not _can_manage(db, principal, session):
        raise ForbiddenError(
            f"User {principal.id} is not authorized to delete this coaching session",
            resource="coaching",
            action="delete",
        )
    db.delete(session)
    db.flush()


# --- Applications ---

def get_application(db: Session, application_id: UUID) -> CoachingApplication:
    application = db.get(CoachingApplication, application_id)
    if not application:
        raise NotFoundError("Application", application_id)
    return application


def find_active_application(db: Session, session_id: UUID, applicant_id: UUID) -> Optional[CoachingApplication]:
    return (
        db.query(CoachingApplication)
        .filter(
            CoachingApplication.session_id == session_id,
            CoachingApplication.applicant_id == applicant_id,
            CoachingApplication.status.in_(ACTIVE_APPLICATION_STATUSES),
        )
        .first()
    )


def create_application(
    db: Session,
    principal: User,
    session_id: UUID,
    scheduled_date: date,
    scheduled_time: str,
    notes: Optional[str] = None,
) -> CoachingApplication:
    session = get_session(db, session_id)

    if session.coach_id == principal.id:
        raise ValidationError("You cannot apply to your own coaching session", field="session_id")

    if find_active_application(db, session.id, principal.id):
        raise ConflictError("You have already applied for this coaching session")

    amount, payment_status = derive_payment(session)
    application = CoachingApplication(
        session_id=session.id,
        applicant_id=principal.id,
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
        notes=notes,
        status="pending",
        payment_amount=amount,
        payment_status=payment_status,
    )
    try:
        with db.begin_nested():
            db.add(application)
    except IntegrityError:
        # A concurrent identical request won the race past the read check.
        raise ConflictError("You have already applied for this coaching session")

    db.refresh(application)
    logger.info(
        "Coaching application created",
        extra={"extra_fields": {
            "application_id": str(application.id),
            "session_id": str(session.id),
            "applicant_id": str(principal.id),
            "payment_status": payment_status,
        }},
    )
    return application


def transition_application(
    db: Session,
    principal: User,
    application_id: UUID,
    target_status: str,
) -> CoachingApplication:
    if target_status not in APPLICATION_STATUSES:
        raise ValidationError(
            f"Please provide a valid status: {target_status!r} is not one of {', '.join(APPLICATION_STATUSES)}",
            field="status",
        )

    application = get_application(db, application_id)
    if not _can_manage(db, principal, application.session):
        raise ForbiddenError(
            "Not authorized to update this application",
            resource="coaching_application",
            action="update",
        )

    current = application.status
    if settings.STRICT_APPLICATION_TRANSITIONS and target_status != current:
        if target_status not in ALLOWED_TRANSITIONS.get(current, frozenset()):
            raise ValidationError(f"Cannot move application from {current} to {target_status}", field="status")

    try:
        with db.begin_nested():
            application.status = target_status
            db.flush()
    except IntegrityError:
        # Reopening a terminal application while another one is active.
        raise ConflictError("Applicant already has an active application for this coaching session")

    logger.info(
        f"Application {application.id} moved {current} -> {target_status}",
        extra={"extra_fields": {"application_id": str(application.id), "by": str(principal.id)}},
    )
    return application


def list_applications_for_user(db: Session, user_id: UUID) -> List[CoachingApplication]:
    return (
        db.query(CoachingApplication)
        .filter(CoachingApplication.applicant_id == user_id)
        .order_by(CoachingApplication.created_at.desc())
        .all()
    )


def list_received_applications(db: Session, coach_id: UUID) -> List[CoachingApplication]:
    return (
        db.query(CoachingApplication)
        .join(CoachingSession, CoachingApplication.session_id == CoachingSession.id)
        .filter(CoachingSession.coach_id == coach_id)
        .order_by(CoachingApplication.created_at.desc())
        .all()
    )
