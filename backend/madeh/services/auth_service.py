# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Every purchase is attributable to the admin who rang it up, so every
request is bound to an Admin row through a session token.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 6 characters required
- Session tokens managed separately (see session_service.py)
- Inactive admins cannot authenticate
"""

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import Admin
from ..models.auth import STATUS_ACTIVE
from madeh.time_utils import utcnow


MIN_PASSWORD_LENGTH = 6


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """Raises PasswordValidationError if the password is too short."""
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )


def _bcrypt_rounds() -> int:
    try:
        return int(current_app.config.get("BCRYPT_ROUNDS", 12))
    except RuntimeError:
        # Outside an application context (e.g. scripts)
        return 12


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. Malformed hashes verify as False.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def authenticate(identifier: str, password: str) -> Admin | None:
    """
    Authenticate an admin by email or username.

    Returns the Admin if credentials are valid and the account is active,
    None otherwise. Updates last_login_at on success.
    """
    identifier = (identifier or "").strip()
    admin = db.session.query(Admin).filter(
        db.or_(Admin.email == identifier.lower(), Admin.username == identifier),
        Admin.status == STATUS_ACTIVE,
    ).first()

    if not admin:
        return None

    if not verify_password(password, admin.password_hash):
        return None

    admin.last_login_at = utcnow()
    db.session.commit()
    return admin


def change_password(admin: Admin, new_password: str, confirm_password: str | None = None) -> None:
    """
    Set a new password for an admin.

    Raises PasswordValidationError if too short or confirmation doesn't match.
    """
    if confirm_password is not None and new_password != confirm_password:
        raise PasswordValidationError("Passwords do not match")

    admin.password_hash = hash_password(new_password)
    db.session.commit()
