"""
Access-control bootstrap.

Seeds the system permissions and system roles the API depends on, plus
optional starter accounts. Safe to run repeatedly: existing rows are left
alone and only missing ones are created.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from models import PERMISSION_ACTIONS, Permission, Role, User
from services import permission_catalog, role_registry, users

logger = logging.getLogger(__name__)


SYSTEM_RESOURCES = ("users", "roles", "permissions", "coaching")

# Permissions are one row per resource, so a role is granted a resource
# wholesale. None means every system resource.
SYSTEM_ROLES = {
    "superadmin": {
        "description": "Super Administrator with all permissions",
        "resources": None,
        "bypass_all_checks": True,
        "is_default": False,
    },
    "admin": {
        "description": "Administrator without role or permission management",
        "resources": ("users", "coaching"),
        "bypass_all_checks": False,
        "is_default": False,
    },
    "user": {
        "description": "Regular user with minimal permissions",
        "resources": (),
        "bypass_all_checks": False,
        "is_default": True,
    },
}


STARTER_ACCOUNTS = (
    {"first_name": "Super", "last_name": "Admin", "email": "superadmin@example.com", "role": "superadmin"},
    {"first_name": "Admin", "last_name": "User", "email": "admin@example.com", "role": "admin"},
    {"first_name": "Regular", "last_name": "User", "email": "user@example.com", "role": "user"},
)


def seed_permissions(db: Session) -> Dict[str, Permission]:
    seeded: Dict[str, Permission] = {}
    for resource in SYSTEM_RESOURCES:
        permission = permission_catalog.find_by_resource(db, resource)
        if permission is None:
            permission = permission_catalog.define_permission(
                db,
                resource=resource,
                actions=PERMISSION_ACTIONS,
                is_system=True,
                description=f"Permissions for {resource}",
            )
        seeded[resource] = permission
    return seeded


def seed_roles(db: Session, permissions: Dict[str, Permission]) -> Dict[str, Role]:
    seeded: Dict[str, Role] = {}
    for name, definition in SYSTEM_ROLES.items():
        role = role_registry.find_by_name(db, name)
        if role is None:
            resources = definition["resources"]
            granted = list(permissions.values()) if resources is None else [permissions[r] for r in resources]
            role = role_registry.create_role(
                db,
                name=name,
                description=definition["description"],
                permission_ids=[p.id for p in granted],
                is_default=definition["is_default"],
                is_system_role=True,
                bypass_all_checks=definition["bypass_all_checks"],
            )
            logger.info(f"Seeded role {name}")
        seeded[name] = role
    return seeded


def seed_accounts(db: Session, roles: Dict[str, Role], password: str) -> List[User]:
    created = []
    for account in STARTER_ACCOUNTS:
        if users.find_by_email(db, account["email"]):
            continue
        created.append(users.create_user(
            db,
            first_name=account["first_name"],
            last_name=account["last_name"],
            email=account["email"],
            password=password,
            role_id=roles[account["role"]].id,
        ))
    return created


def run_bootstrap(db: Session, *, with_accounts: bool = False, password: Optional[str] = None) -> Dict[str, int]:
    permissions = seed_permissions(db)
    roles = seed_roles(db, permissions)
    accounts = []
    if with_accounts:
        if not password:
            raise ValueError("A password is required to seed starter accounts")
        accounts = seed_accounts(db, roles, password)
    db.flush()
    return {"permissions": len(permissions), "roles": len(roles), "accounts": len(accounts)}
