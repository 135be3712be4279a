# Overview: Service-layer operations for admin accounts and profiles.

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Admin, ADMIN_ROLES, ADMIN_STATUSES
from ..models.auth import STATUS_ACTIVE, STATUS_INACTIVE
from ..validation import ValidationError, ConflictError, NotFoundError, require_choice
from . import session_service
from .auth_service import hash_password

logger = logging.getLogger(__name__)


def _clean(value, field: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"{field} is required")
    return text


def _ensure_unique(username: str | None = None, email: str | None = None, exclude_id: int | None = None) -> None:
    if username is not None:
        q = db.session.query(Admin).filter(db.func.lower(Admin.username) == username.lower())
        if exclude_id is not None:
            q = q.filter(Admin.id != exclude_id)
        if q.first():
            raise ConflictError("Username already taken")
    if email is not None:
        q = db.session.query(Admin).filter(db.func.lower(Admin.email) == email.lower())
        if exclude_id is not None:
            q = q.filter(Admin.id != exclude_id)
        if q.first():
            raise ConflictError("Email already registered")


def list_admins() -> list[dict]:
    admins = db.session.query(Admin).order_by(Admin.username.asc()).all()
    return [a.to_dict() for a in admins]


def create_admin(*, username: str, email: str, password: str, role: str) -> Admin:
    """
    Create an admin account.

    Raises ValidationError / ConflictError, or PasswordValidationError for
    short passwords.
    """
    username = _clean(username, "username")
    email = _clean(email, "email").lower()
    require_choice("role", role, ADMIN_ROLES)
    _ensure_unique(username=username, email=email)

    admin = Admin(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
        status=STATUS_ACTIVE,
    )
    db.session.add(admin)
    db.session.commit()
    logger.info("Created admin %s with role %s", admin.username, admin.role)
    return admin


def update_admin(*, admin_id: int, patch: dict, actor: Admin) -> Admin:
    """
    Change another admin's role and/or status (Super Admin only, enforced by route).

    Deactivating an admin revokes their live sessions. An admin cannot
    deactivate or demote themselves.
    """
    admin = db.session.get(Admin, admin_id)
    if not admin:
        raise NotFoundError("Admin not found")

    unknown = set(patch) - {"role", "status"}
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")

    if admin.id == actor.id:
        if patch.get("status") == STATUS_INACTIVE:
            raise ConflictError("You cannot deactivate your own account")
        if "role" in patch and patch["role"] != admin.role:
            raise ConflictError("You cannot change your own role")

    if "role" in patch:
        admin.role = require_choice("role", patch["role"], ADMIN_ROLES)
    if "status" in patch:
        admin.status = require_choice("status", patch["status"], ADMIN_STATUSES)

    db.session.commit()

    if admin.status == STATUS_INACTIVE:
        session_service.revoke_all_sessions(admin.id, "Admin account deactivated")

    return admin


def update_profile(admin: Admin, *, username) -> Admin:
    """Update the display name (username) of the signed-in admin."""
    username = _clean(username, "username")
    if len(username) > 120:
        raise ValidationError("username exceeds max length 120")
    _ensure_unique(username=username, exclude_id=admin.id)
    admin.username = username
    db.session.commit()
    return admin
