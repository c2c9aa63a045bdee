"""
Tests for the role registry.

Focus: all-or-nothing permission references, the single-default rule
(including the storage-level guard), and system-role protections.
"""
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from core.exceptions import ConflictError, ImmutableError, NotFoundError, ReferentialError
from models import Role
from services import permission_catalog, role_registry, users


@pytest.fixture
def reports(db_session):
    return permission_catalog.define_permission(db_session, resource="reports", actions=["read", "list"])


@pytest.fixture
def invoices(db_session):
    return permission_catalog.define_permission(db_session, resource="invoices", actions=["read"])


def _defaults(db_session):
    return db_session.query(Role).filter(Role.is_default.is_(True)).all()


class TestCreateRole:
    def test_create_with_permissions(self, db_session, reports, invoices):
        creator = uuid4()
        role = role_registry.create_role(
            db_session, name="analyst", permission_ids=[reports.id, invoices.id], created_by=creator
        )
        assert {p.resource for p in role.permissions} == {"reports", "invoices"}
        assert role.created_by == creator
        assert role.is_default is False
        assert role.is_system_role is False

    def test_missing_permission_reference_creates_nothing(self, db_session, reports):
        missing = uuid4()
        with pytest.raises(NotFoundError) as exc:
            role_registry.create_role(db_session, name="analyst", permission_ids=[reports.id, missing])

        assert exc.value.context["identifier"] == [str(missing)]
        assert role_registry.find_by_name(db_session, "analyst") is None

    def test_duplicate_name_conflicts(self, db_session):
        role_registry.create_role(db_session, name="analyst")
        with pytest.raises(ConflictError):
            role_registry.create_role(db_session, name="analyst")

    def test_new_default_clears_previous(self, db_session):
        first = role_registry.create_role(db_session, name="member", is_default=True)
        second = role_registry.create_role(db_session, name="guest", is_default=True)

        defaults = _defaults(db_session)
        assert [r.id for r in defaults] == [second.id]
        db_session.refresh(first)
        assert first.is_default is False


class TestUpdateRole:
    def test_update_moves_default(self, db_session):
        member = role_registry.create_role(db_session, name="member", is_default=True)
        guest = role_registry.create_role(db_session, name="guest")

        role_registry.update_role(db_session, guest.id, {"is_default": True})
        assert [r.id for r in _defaults(db_session)] == [guest.id]

        role_registry.update_role(db_session, member.id, {"is_default": True})
        assert [r.id for r in _defaults(db_session)] == [member.id]

    def test_clearing_default_leaves_no_default(self, db_session):
        member = role_registry.create_role(db_session, name="member", is_default=True)
        role_registry.update_role(db_session, member.id, {"is_default": False})
        assert _defaults(db_session) == []

    def test_missing_permission_leaves_role_untouched(self, db_session, reports):
        role = role_registry.create_role(db_session, name="analyst", permission_ids=[reports.id])
        with pytest.raises(NotFoundError):
            role_registry.update_role(db_session, role.id, {"name": "renamed", "permissions": [uuid4()]})

        db_session.refresh(role)
        assert role.name == "analyst"
        assert role.permission_ids == [reports.id]

    def test_rename_conflict(self, db_session):
        role_registry.create_role(db_session, name="analyst")
        other = role_registry.create_role(db_session, name="auditor")
        with pytest.raises(ConflictError):
            role_registry.update_role(db_session, other.id, {"name": "analyst"})

    def test_system_role_protections(self, db_session, system_roles, system_permissions):
        admin = system_roles["admin"]
        with pytest.raises(ImmutableError):
            role_registry.update_role(db_session, admin.id, {"name": "administrator"})
        with pytest.raises(ImmutableError):
            role_registry.update_role(db_session, admin.id, {"is_system_role": False})
        with pytest.raises(ImmutableError):
            role_registry.update_role(db_session, admin.id, {"permissions": [system_permissions["roles"].id]})

    def test_system_role_description_and_same_name_allowed(self, db_session, system_roles):
        admin = system_roles["admin"]
        updated = role_registry.update_role(db_session, admin.id, {"name": "admin", "description": "Ops team"})
        assert updated.name == "admin"
        assert updated.description == "Ops team"


class TestRolePermissions:
    def test_set_replaces_wholesale(self, db_session, reports, invoices):
        role = role_registry.create_role(db_session, name="analyst", permission_ids=[reports.id])
        role_registry.set_role_permissions(db_session, role.id, [invoices.id])
        assert [p.resource for p in role_registry.get_role_permissions(db_session, role.id)] == ["invoices"]

    def test_set_on_system_role_is_immutable(self, db_session, system_roles, system_permissions):
        with pytest.raises(ImmutableError):
            role_registry.set_role_permissions(db_session, system_roles["user"].id, [system_permissions["users"].id])


class TestRetireRole:
    def test_system_role_cannot_be_deleted(self, db_session, system_roles):
        with pytest.raises(ImmutableError):
            role_registry.retire_role(db_session, system_roles["user"].id)

    def test_role_in_use_blocked(self, db_session):
        role = role_registry.create_role(db_session, name="analyst")
        users.create_user(
            db_session, first_name="A", last_name="B", email="analyst@example.com", password="secret123", role_id=role.id
        )
        with pytest.raises(ReferentialError) as exc:
            role_registry.retire_role(db_session, role.id)
        assert exc.value.context == {"dependents": 1}

    def test_unused_role_deleted(self, db_session, reports):
        role = role_registry.create_role(db_session, name="analyst", permission_ids=[reports.id])
        role_registry.retire_role(db_session, role.id)
        assert role_registry.find_by_name(db_session, "analyst") is None
        # The permission itself survives.
        assert permission_catalog.find_by_resource(db_session, "reports") is not None


def test_storage_rejects_second_default(db_session):
    """The partial unique index holds even if the claim logic is bypassed."""
    role_registry.create_role(db_session, name="member", is_default=True)
    db_session.add(Role(name="intruder", is_default=True))
    with pytest.raises(IntegrityError):
        db_session.flush()


def test_claim_gives_up_after_retries(db_session, monkeypatch):
    from core.config import settings

    role = role_registry.create_role(db_session, name="member")
    attempts = []

    class _AlwaysCollides:
        def __init__(self, *args, **kwargs):
            pass

        def __enter__(self):
            attempts.append(1)
            raise IntegrityError("UPDATE role", {}, Exception("uq_role_single_default"))

        def __exit__(self, *exc):
            return False

    monkeypatch.setattr(settings, "DEFAULT_ROLE_CLAIM_RETRIES", 2)
    monkeypatch.setattr(db_session, "begin_nested", _AlwaysCollides)
    with pytest.raises(ConflictError):
        role_registry.claim_default(db_session, role)
    assert len(attempts) == 2
