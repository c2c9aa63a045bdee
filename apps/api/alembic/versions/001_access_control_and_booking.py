"""access_control_and_booking

Revision ID: 001_access_control_and_booking
Revises:
Create Date: 2026-10-17

Creates the permission/role registry, user accounts and the coaching
booking tables.

Two invariants live in partial unique indexes because application-level
check-then-write is not safe under concurrent requests:
- uq_role_single_default: at most one role with is_default
- uq_coaching_application_active: at most one pending/approved application
  per (session, applicant)
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


revision = "001_access_control_and_booking"
down_revision = None
branch_labels = None
depends_on = None


JSONType = sa.JSON().with_variant(JSONB(), "postgresql")
ACTIVE_STATUSES = "'pending', 'approved'"


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "permission",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("resource", sa.String(100), nullable=False),
        sa.Column("description", sa.String(200), nullable=True),
        sa.Column("actions", JSONType, nullable=False),
        sa.Column("is_system", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("resource", name="uq_permission_resource"),
    )

    op.create_table(
        "role",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("description", sa.String(200), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.Column("is_system_role", sa.Boolean(), nullable=False),
        sa.Column("bypass_all_checks", sa.Boolean(), nullable=False),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_role_name"),
    )
    op.create_index(
        "uq_role_single_default",
        "role",
        ["is_default"],
        unique=True,
        postgresql_where=sa.text("is_default"),
        sqlite_where=sa.text("is_default = 1"),
    )

    op.create_table(
        "role_permission",
        sa.Column("role_id", sa.Uuid(), nullable=False),
        sa.Column("permission_id", sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(["role_id"], ["role.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["permission_id"], ["permission.id"]),
        sa.PrimaryKeyConstraint("role_id", "permission_id"),
    )
    op.create_index("ix_role_permission_permission_id", "role_permission", ["permission_id"], unique=False)

    op.create_table(
        "app_user",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("role_id", sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["role_id"], ["role.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_app_user_email"),
    )
    op.create_index("ix_app_user_role_id", "app_user", ["role_id"], unique=False)

    op.create_table(
        "coaching_session",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("coach_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.String(1000), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("is_free", sa.Boolean(), nullable=False),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("sessions", sa.Integer(), nullable=False),
        sa.Column("location", sa.Text(), nullable=False),
        sa.Column("is_online", sa.Boolean(), nullable=True),
        sa.Column("specialties", JSONType, nullable=False),
        sa.Column("years_of_experience", sa.Integer(), nullable=True),
        sa.Column("professional_bio", sa.String(2000), nullable=True),
        sa.Column("availability", JSONType, nullable=False),
        sa.Column("max_participants", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["coach_id"], ["app_user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("is_free OR price IS NOT NULL", name="ck_coaching_session_price_required"),
        sa.CheckConstraint("price IS NULL OR price >= 0", name="ck_coaching_session_price_non_negative"),
        sa.CheckConstraint("max_participants >= 1", name="ck_coaching_session_max_participants"),
        sa.CheckConstraint(
            "category IN ('Career', 'Business', 'Lifestyle', 'Health', 'Technology', 'Other')",
            name="ck_coaching_session_category",
        ),
    )
    op.create_index("ix_coaching_session_coach_id", "coaching_session", ["coach_id"], unique=False)

    op.create_table(
        "coaching_application",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("session_id", sa.Uuid(), nullable=False),
        sa.Column("applicant_id", sa.Uuid(), nullable=False),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("scheduled_time", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("notes", sa.String(500), nullable=True),
        sa.Column("payment_status", sa.Text(), nullable=False),
        sa.Column("payment_amount", sa.Float(), nullable=False),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["session_id"], ["coaching_session.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["applicant_id"], ["app_user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'completed', 'cancelled')",
            name="ck_coaching_application_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('not_applicable', 'pending', 'completed', 'refunded')",
            name="ck_coaching_application_payment_status",
        ),
    )
    op.create_index("ix_coaching_application_applicant_id", "coaching_application", ["applicant_id"], unique=False)
    op.create_index("ix_coaching_application_session_id", "coaching_application", ["session_id"], unique=False)
    op.create_index(
        "uq_coaching_application_active",
        "coaching_application",
        ["session_id", "applicant_id"],
        unique=True,
        postgresql_where=sa.text(f"status IN ({ACTIVE_STATUSES})"),
        sqlite_where=sa.text(f"status IN ({ACTIVE_STATUSES})"),
    )


def downgrade() -> None:
    op.drop_index("uq_coaching_application_active", table_name="coaching_application")
    op.drop_index("ix_coaching_application_session_id", table_name="coaching_application")
    op.drop_index("ix_coaching_application_applicant_id", table_name="coaching_application")
    op.drop_table("coaching_application")
    op.drop_index("ix_coaching_session_coach_id", table_name="coaching_session")
    op.drop_table("coaching_session")
    op.drop_index("ix_app_user_role_id", table_name="app_user")
    op.drop_table("app_user")
    op.drop_index("ix_role_permission_permission_id", table_name="role_permission")
    op.drop_table("role_permission")
    op.drop_index("uq_role_single_default", table_name="role")
    op.drop_table("role")
    op.drop_table("permission")
