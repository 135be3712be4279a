# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/madeh/routes/auth.py
"""
Authentication API routes

- Login by email or username, returns a bearer token
- Logout revokes the presented token
- /me, profile (display name) and password changes for the signed-in admin
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import admin_service
from ..services import session_service
from ..services.auth_service import PasswordValidationError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _admin_payload(context) -> dict:
    return {
        "admin": context.admin.to_dict(),
        "permissions": sorted(context.permissions),
    }


@auth_bp.post("/login")
def login_route():
    """
    Authenticate an admin and create a session token.

    Token must be included in the Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        identifier = data.get("email") or data.get("username") or data.get("identifier")
        password = data.get("password")

        if not all([identifier, password]):
            return jsonify({"error": "email/username and password required"}), 400

        admin = auth_service.authenticate(identifier, password)
        if not admin:
            current_app.logger.info("Failed login for %s", identifier)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            admin_id=admin.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        context = session_service.SessionContext(admin=admin, session=session)

        return jsonify({
            **_admin_payload(context),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login admin")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke the presented session token."""
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout admin")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Signed-in admin with their permission codes (for UI feature gating)."""
    return jsonify(_admin_payload(g.session_context)), 200


@auth_bp.put("/profile")
@require_auth
def update_profile_route():
    data = request.get_json(silent=True) or {}
    try:
        admin = admin_service.update_profile(g.current_admin, username=data.get("username"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"admin": admin.to_dict(), "message": "Profile updated"}), 200


@auth_bp.put("/password")
@require_auth
def change_password_route():
    """
    Change the signed-in admin's password.

    Body: {"new_password": str, "confirm_password": str}
    """
    data = request.get_json(silent=True) or {}
    new_password = data.get("new_password")
    confirm_password = data.get("confirm_password")

    if confirm_password is None:
        return jsonify({"error": "confirm_password required"}), 400

    try:
        auth_service.change_password(g.current_admin, new_password, confirm_password)
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Admin %s changed password", g.current_admin.id)
    return jsonify({"message": "Password updated"}), 200
