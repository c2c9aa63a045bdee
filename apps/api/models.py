from sqlalchemy import (
    Column,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Table,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from core.database import Base
import uuid


# JSONB on Postgres, plain JSON elsewhere (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")

# --- Access control vocabulary ---
PERMISSION_ACTIONS = ("create", "read", "update", "delete", "list")

# --- Booking vocabulary ---
APPLICATION_STATUSES = ("pending", "approved", "rejected", "completed", "cancelled")
# Only these block a re-application for the same (session, applicant) pair.
ACTIVE_APPLICATION_STATUSES = ("pending", "approved")
TERMINAL_APPLICATION_STATUSES = ("rejected", "completed", "cancelled")
PAYMENT_STATUSES = ("not_applicable", "pending", "completed", "refunded")
COACHING_CATEGORIES = ("Career", "Business", "Lifestyle", "Health", "Technology", "Other")
WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def _sql_in(values) -> str:
    return ", ".join(f"'{v}'" for v in values)


role_permission = Table(
    "role_permission",
    Base.metadata,
    Column("role_id", Uuid, ForeignKey("role.id", ondelete="CASCADE"), primary_key=True),
    # No cascade: a permission cannot be retired while any role still references it.
    Column("permission_id", Uuid, ForeignKey("permission.id"), primary_key=True),
    Index("ix_role_permission_permission_id", "permission_id"),
)


class Permission(Base):
    """
    A protectable resource and the actions allowed on it.

    One row per resource. System permissions are seeded at bootstrap and
    cannot be renamed or deleted.
    """
    __tablename__ = "permission"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    resource = Column(String(100), unique=True, nullable=False)
    description = Column(String(200), nullable=True)
    actions = Column(JSONType, nullable=False, default=list)  # subset of PERMISSION_ACTIONS
    is_system = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def allows(self, action: str) -> bool:
        return action in (self.actions or [])


class Role(Base):
    """
    A named bundle of permissions.

    Invariants enforced at the storage boundary:
    - name is unique
    - at most one row has is_default = true (partial unique index)
    """
    __tablename__ = "role"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(50), unique=True, nullable=False)
    description = Column(String(200), nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    is_system_role = Column(Boolean, default=False, nullable=False)
    # Explicit capability: evaluated before any permission lookup.
    bypass_all_checks = Column(Boolean, default=False, nullable=False)
    created_by = Column(Uuid, nullable=True)  # user id; not a FK so user deletion never touches roles
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    permissions = relationship("Permission", secondary=role_permission, lazy="selectin", order_by="Permission.resource")

    __table_args__ = (
        Index(
            "uq_role_single_default",
            "is_default",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )

    @property
    def permission_ids(self):
        return [p.id for p in self.permissions]


class User(Base):
    """
    An account that can authenticate. Holds exactly one role reference;
    a null role resolves to the current default role at authorization time.
    """
    __tablename__ = "app_user"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(Text, unique=True, nullable=False)
    password_hash = Column(Text, nullable=True)
    phone_number = Column(String(32), nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    role_id = Column(Uuid, ForeignKey("role.id"), nullable=True)

    role = relationship("Role", foreign_keys=[role_id], lazy="joined")

    __table_args__ = (
        Index("ix_app_user_role_id", "role_id"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class CoachingSession(Base):
    """A coaching offer published by a coach. Applicants book it via CoachingApplication."""
    __tablename__ = "coaching_session"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    coach_id = Column(Uuid, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(100), nullable=False)
    description = Column(String(1000), nullable=False)
    category = Column(Text, nullable=False)  # COACHING_CATEGORIES
    is_free = Column(Boolean, default=False, nullable=False)
    price = Column(Float, nullable=True)  # required (>= 0) unless is_free
    duration = Column(Integer, nullable=True)  # minutes, >= 15
    sessions = Column(Integer, nullable=False, default=1)
    location = Column(Text, nullable=False)
    is_online = Column(Boolean, nullable=True)
    specialties = Column(JSONType, nullable=False, default=list)
    years_of_experience = Column(Integer, nullable=True)
    professional_bio = Column(String(2000), nullable=True)
    # [{"day": "Monday", "slots": [{"start": "09:00", "end": "10:00"}]}]
    availability = Column(JSONType, nullable=False, default=list)
    max_participants = Column(Integer, nullable=False, default=1)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    coach = relationship("User", lazy="joined")
    applications = relationship(
        "CoachingApplication",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("is_free OR price IS NOT NULL", name="ck_coaching_session_price_required"),
        CheckConstraint("price IS NULL OR price >= 0", name="ck_coaching_session_price_non_negative"),
        CheckConstraint("max_participants >= 1", name="ck_coaching_session_max_participants"),
        CheckConstraint(f"category IN ({_sql_in(COACHING_CATEGORIES)})", name="ck_coaching_session_category"),
        Index("ix_coaching_session_coach_id", "coach_id"),
    )


class CoachingApplication(Base):
    """
    An applicant's booking of a CoachingSession.

    payment_status/payment_amount are derived from the session's pricing mode
    when the application is created, never supplied by the caller.
    """
    __tablename__ = "coaching_application"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(Uuid, ForeignKey("coaching_session.id", ondelete="CASCADE"), nullable=False)
    applicant_id = Column(Uuid, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False)
    scheduled_date = Column(Date, nullable=False)
    scheduled_time = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="pending")
    notes = Column(String(500), nullable=True)
    payment_status = Column(Text, nullable=False, default="pending")
    payment_amount = Column(Float, nullable=False, default=0)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    session = relationship("CoachingSession", back_populates="applications", lazy="joined")
    applicant = relationship("User", lazy="joined")

    __table_args__ = (
        CheckConstraint(f"status IN ({_sql_in(APPLICATION_STATUSES)})", name="ck_coaching_application_status"),
        CheckConstraint(f"payment_status IN ({_sql_in(PAYMENT_STATUSES)})", name="ck_coaching_application_payment_status"),
        Index("ix_coaching_application_applicant_id", "applicant_id"),
        Index("ix_coaching_application_session_id", "session_id"),
        # At most one non-terminal application per (session, applicant).
        Index(
            "uq_coaching_application_active",
            "session_id",
            "applicant_id",
            unique=True,
            postgresql_where=text(f"status IN ({_sql_in(ACTIVE_APPLICATION_STATUSES)})"),
            sqlite_where=text(f"status IN ({_sql_in(ACTIVE_APPLICATION_STATUSES)})"),
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_APPLICATION_STATUSES
