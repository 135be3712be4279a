# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

Maps a bearer token to the Admin profile record behind it.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 2-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revocable on logout or when the admin is deactivated
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta
from ..extensions import db
from ..models import SessionToken, Admin
from ..permissions import get_role_permissions
from madeh.time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)  # Maximum session length
SESSION_IDLE_TIMEOUT = timedelta(hours=2)        # Activity timeout


@dataclass
class SessionContext:
    """
    Per-request session context returned by validate_session.

    Bound to flask.g by @require_auth and handed to the views explicitly.
    """
    admin: Admin
    session: SessionToken

    @property
    def permissions(self) -> frozenset[str]:
        return get_role_permissions(self.admin.role)


def generate_token() -> str:
    """Returns 64-character hex string (32 bytes of entropy)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy (unlike passwords), so SHA-256 is enough.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    admin_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for an admin.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    admin = db.session.get(Admin, admin_id)
    if not admin:
        raise ValueError("Admin not found")
    if not admin.is_active:
        raise ValueError("Admin account is inactive")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        admin_id=admin_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if:
    - Token is invalid, expired, or revoked
    - Admin account is inactive

    Updates last_used_at on successful validation (activity tracking).
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        _revoke(session, "Idle timeout")
        return None

    admin = session.admin
    if not admin or not admin.is_active:
        _revoke(session, "Admin account deactivated")
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(admin=admin, session=session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke a session by plaintext token. Returns False if no live session matched."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()
    if not session:
        return False
    _revoke(session, reason)
    return True


def revoke_all_sessions(admin_id: int, reason: str) -> int:
    """Revoke every live session of an admin. Returns count revoked."""
    now = utcnow()
    sessions = db.session.query(SessionToken).filter_by(admin_id=admin_id, is_revoked=False).all()
    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason
    db.session.commit()
    return len(sessions)
