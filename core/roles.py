"""
Role catalogue and role membership helpers.

Roles gate menus and routes coarsely; the row-level rules of each workflow
live in the workflow modules themselves.
"""

import logging
from typing import Iterable

from fastapi import HTTPException
from sqlalchemy.orm import Session, joinedload

from core.config import settings
from db.models import Role, UserRole

logger = logging.getLogger(__name__)

DEVELOPER = "developer"
OWNER_PLATFORM = "owner_platform"
ADMIN_PLATFORM = "admin_platform"
KONSULTAN = "konsultan"
MITRA_TOKO = "mitra_toko"
PEMILIK_KEBUN = "pemilik_kebun"
SUPIR = "supir"

ROLE_CATALOGUE = [
    (DEVELOPER, "Developer", {"*": ["read", "create", "update", "delete"]}),
    (OWNER_PLATFORM, "Owner Platform", {"*": ["read", "create", "update", "delete"]}),
    (ADMIN_PLATFORM, "Admin Platform", {"*": ["read", "create", "update", "delete"]}),
    (KONSULTAN, "Konsultan", {
        "konsultasi": ["read", "create", "update"],
        "tender": ["read", "create"],
    }),
    (MITRA_TOKO, "Mitra Toko", {
        "produk": ["read", "create", "update", "delete"],
        "tender": ["read", "create", "update"],
    }),
    (PEMILIK_KEBUN, "Pemilik Kebun", {"konsultasi": ["read"]}),
    (SUPIR, "Supir", {"distribusi": ["read"]}),
]

# menu -> resource it needs read access to
MENUS = {
    "konsultasi": "konsultasi",
    "tender": "tender",
    "produk-mitra": "produk",
    "distribusi": "distribusi",
    "user-roles": "roles",
}


def seed_roles(db: Session) -> list[Role]:
    """Insert any missing catalogue roles. Safe to call repeatedly."""
    existing = {r.name for r in db.query(Role).all()}
    created = []
    for name, display_name, permissions in ROLE_CATALOGUE:
        if name in existing:
            continue
        role = Role(name=name, display_name=display_name, permissions=permissions, is_active=True)
        db.add(role)
        created.append(role)
    db.flush()
    return created


def list_roles(db: Session) -> list[Role]:
    return db.query(Role).filter(Role.is_active.is_(True)).order_by(Role.name).all()


def get_role_by_name(db: Session, name: str) -> Role | None:
    return db.query(Role).filter(Role.name == name).first()


def get_user_roles(db: Session, user_id: str) -> list[UserRole]:
    return (
        db.query(UserRole)
        .options(joinedload(UserRole.role))
        .filter(UserRole.user_id == user_id)
        .all()
    )


def get_role_names(db: Session, user_id: str) -> list[str]:
    return sorted(ur.role.name for ur in get_user_roles(db, user_id) if ur.role and ur.role.is_active)


def user_has_any_role(db: Session, user_id: str, role_names: Iterable[str]) -> bool:
    wanted = set(role_names)
    return any(name in wanted for name in get_role_names(db, user_id))


def is_admin(role_names: Iterable[str]) -> bool:
    return any(name in settings.ADMIN_ROLES for name in role_names)


def user_has_permission(db: Session, user_id: str, resource: str, action: str) -> bool:
    for user_role in get_user_roles(db, user_id):
        permissions = (user_role.role.permissions or {}) if user_role.role else {}
        for key in (resource, "*"):
            if action in permissions.get(key, []):
                return True
    return False


def allowed_menus(db: Session, user_id: str) -> list[str]:
    return [menu for menu, resource in MENUS.items() if user_has_permission(db, user_id, resource, "read")]


def assign_role(db: Session, user_id: str, role_name: str, assigned_by: str | None = None) -> UserRole:
    """
    Grant a role to a user. Flushes but does not commit, so callers can
    bundle the grant with other writes.
    """
    role = get_role_by_name(db, role_name)
    if not role:
        raise HTTPException(status_code=404, detail=f"Role '{role_name}' tidak ditemukan")

    existing = (
        db.query(UserRole)
        .filter(UserRole.user_id == user_id, UserRole.role_id == role.id)
        .first()
    )
    if existing:
        return existing

    user_role = UserRole(user_id=user_id, role_id=role.id, assigned_by=assigned_by)
    db.add(user_role)
    db.flush()
    return user_role


def remove_role(db: Session, user_id: str, role_name: str) -> bool:
    role = get_role_by_name(db, role_name)
    if not role:
        raise HTTPException(status_code=404, detail=f"Role '{role_name}' tidak ditemukan")
    deleted = (
        db.query(UserRole)
        .filter(UserRole.user_id == user_id, UserRole.role_id == role.id)
        .delete(synchronize_session=False)
    )
    return deleted > 0


def get_users_by_role(db: Session, role_name: str) -> list[str]:
    rows = (
        db.query(UserRole.user_id)
        .join(Role, Role.id == UserRole.role_id)
        .filter(Role.name == role_name)
        .all()
    )
    return [row[0] for row in rows]
