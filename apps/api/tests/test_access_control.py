"""
Tests for the access evaluator (services/access_control.py).

Covers bypass roles, per-resource action checks, default-role fallback,
unresolvable roles, and role-name gating.
"""
from uuid import uuid4

import pytest

from core.config import settings
from models import User
from services import permission_catalog, role_registry
from services.access_control import (
    authorize_by_role_name,
    evaluate_access,
    is_administrator,
    resolve_role,
)


def _principal(role_id=None):
    # Unsaved user: the evaluator only reads id and role_id.
    return User(id=uuid4(), first_name="P", last_name="Q", email=f"{uuid4().hex}@example.com", role_id=role_id)


@pytest.fixture
def users_rw_role(db_session):
    users_rw = permission_catalog.define_permission(db_session, resource="users", actions=["read", "update"])
    role = role_registry.create_role(db_session, name="analyst", permission_ids=[users_rw.id])
    db_session.commit()
    return role


class TestEvaluateAccess:
    def test_superadmin_allowed_everything(self, db_session, system_roles):
        principal = _principal(system_roles["superadmin"].id)
        for resource, action in [("roles", "delete"), ("users", "create"), ("billing", "read")]:
            decision = evaluate_access(db_session, principal, resource, action)
            assert decision.allowed, (resource, action)
            assert decision.reason == "bypass"

    def test_granted_actions_only(self, db_session, users_rw_role):
        principal = _principal(users_rw_role.id)
        assert evaluate_access(db_session, principal, "users", "read").allowed
        assert evaluate_access(db_session, principal, "users", "update").allowed

        denied = evaluate_access(db_session, principal, "users", "delete")
        assert not denied.allowed
        assert denied.reason == "Not authorized to delete users"
        assert denied.role_name == "analyst"

    def test_unknown_resource_denied(self, db_session, users_rw_role):
        decision = evaluate_access(db_session, _principal(users_rw_role.id), "billing", "read")
        assert not decision
        assert decision.resource == "billing"
        assert decision.action == "read"

    def test_admin_has_users_and_coaching_but_not_roles(self, db_session, system_roles):
        principal = _principal(system_roles["admin"].id)
        assert evaluate_access(db_session, principal, "users", "delete").allowed
        assert evaluate_access(db_session, principal, "coaching", "update").allowed
        assert not evaluate_access(db_session, principal, "roles", "list").allowed
        assert not evaluate_access(db_session, principal, "permissions", "create").allowed

    def test_dangling_role_denied(self, db_session, system_roles):
        decision = evaluate_access(db_session, _principal(uuid4()), "users", "read")
        assert not decision.allowed
        assert "role not found" in decision.reason

    def test_dangling_role_does_not_fall_back_to_default(self, db_session, users_rw_role):
        role_registry.update_role(db_session, users_rw_role.id, {"is_default": True})
        db_session.commit()

        assert resolve_role(db_session, _principal(uuid4())) is None
        assert not evaluate_access(db_session, _principal(uuid4()), "users", "read").allowed

    def test_null_role_uses_current_default(self, db_session, users_rw_role):
        principal = _principal(None)
        assert not evaluate_access(db_session, principal, "users", "read").allowed

        role_registry.update_role(db_session, users_rw_role.id, {"is_default": True})
        db_session.commit()

        assert resolve_role(db_session, principal).id == users_rw_role.id
        assert evaluate_access(db_session, principal, "users", "read").allowed

    def test_bypass_flag_is_independent_of_name(self, db_session):
        role = role_registry.create_role(db_session, name="root", bypass_all_checks=True)
        db_session.commit()

        assert evaluate_access(db_session, _principal(role.id), "anything", "delete").allowed

    def test_superadmin_name_bypass(self, db_session, monkeypatch):
        by_name = role_registry.create_role(db_session, name="superadmin")
        wrong_case = role_registry.create_role(db_session, name="SuperAdmin")
        db_session.commit()

        assert evaluate_access(db_session, _principal(by_name.id), "billing", "read").allowed
        assert not evaluate_access(db_session, _principal(wrong_case.id), "billing", "read").allowed

        monkeypatch.setattr(settings, "SUPERADMIN_NAME_BYPASS", False)
        assert not evaluate_access(db_session, _principal(by_name.id), "billing", "read").allowed


class TestAuthorizeByRoleName:
    def test_listed_role_allowed(self, db_session, system_roles):
        decision = authorize_by_role_name(db_session, _principal(system_roles["admin"].id), ["superadmin", "admin"])
        assert decision.allowed
        assert decision.role_name == "admin"

    def test_unlisted_role_denied(self, db_session, system_roles):
        decision = authorize_by_role_name(db_session, _principal(system_roles["user"].id), ["superadmin", "admin"])
        assert not decision.allowed
        assert decision.reason == "User role user is not authorized to access this route"

    def test_role_name_gate_ignores_bypass(self, db_session, system_roles):
        # A bypass role still needs its name listed for a role-name gate.
        decision = authorize_by_role_name(db_session, _principal(system_roles["superadmin"].id), ["admin"])
        assert not decision.allowed

    def test_unresolved_role_denied(self, db_session):
        decision = authorize_by_role_name(db_session, _principal(uuid4()), ["admin"])
        assert not decision.allowed
        assert decision.reason == "User role not found"


def test_is_administrator(db_session, system_roles):
    assert is_administrator(db_session, _principal(system_roles["admin"].id))
    assert is_administrator(db_session, _principal(system_roles["superadmin"].id))
    assert not is_administrator(db_session, _principal(system_roles["user"].id))
    assert not is_administrator(db_session, _principal(uuid4()))


def test_bypass_role_counts_as_administrator(db_session):
    ops = role_registry.create_role(db_session, name="ops", bypass_all_checks=True)
    db_session.commit()
    assert is_administrator(db_session, _principal(ops.id))


def test_superadmin_name_is_administrator_without_name_bypass(db_session, system_roles, monkeypatch):
    monkeypatch.setattr(settings, "SUPERADMIN_NAME_BYPASS", False)
    system_roles["superadmin"].bypass_all_checks = False
    db_session.commit()
    assert is_administrator(db_session, _principal(system_roles["superadmin"].id))
