# Overview: Flask API routes for admin account management (Super Admin only).

# backend/madeh/routes/admins.py
"""
Admin account routes.

Provides endpoints for:
- Listing admin accounts
- Creating an admin (username, email, password, role)
- Changing an admin's role or status

All endpoints require the MANAGE_ADMINS permission.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import admin_service
from ..services.auth_service import PasswordValidationError
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth, require_permission
from ..permissions import PERMISSION_DEFINITIONS, get_role_permissions
from ..models import ADMIN_ROLES

admins_bp = Blueprint("admins", __name__, url_prefix="/api/admins")


@admins_bp.get("")
@require_auth
@require_permission("MANAGE_ADMINS")
def list_admins():
    admins = admin_service.list_admins()
    return jsonify({"admins": admins, "count": len(admins)})


@admins_bp.get("/roles")
@require_auth
@require_permission("MANAGE_ADMINS")
def list_roles():
    """Roles with their permission codes, for the role picker."""
    return jsonify({
        "roles": [
            {"name": role, "permissions": sorted(get_role_permissions(role))}
            for role in ADMIN_ROLES
        ],
        "permissions": [
            {"code": code, "name": name, "description": description}
            for code, name, description in PERMISSION_DEFINITIONS
        ],
    })


@admins_bp.post("")
@require_auth
@require_permission("MANAGE_ADMINS")
def create_admin():
    """
    Create a new admin.

    Request body:
    - username: str (required)
    - email: str (required)
    - password: str (required, min 6 characters)
    - role: "Super Admin" | "Admin" | "Cashier" (required)
    """
    data = request.get_json(silent=True) or {}
    try:
        admin = admin_service.create_admin(
            username=data.get("username"),
            email=data.get("email"),
            password=data.get("password"),
            role=data.get("role"),
        )
    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create admin")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Admin %s created admin %s", g.current_admin.id, admin.id)
    return jsonify({"admin": admin.to_dict()}), 201


@admins_bp.put("/<int:admin_id>")
@require_auth
@require_permission("MANAGE_ADMINS")
def update_admin(admin_id: int):
    """Request body: any of role, status."""
    data = request.get_json(silent=True) or {}
    try:
        admin = admin_service.update_admin(admin_id=admin_id, patch=data, actor=g.current_admin)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update admin")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"admin": admin.to_dict()})
