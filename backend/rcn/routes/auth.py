"""
Authentication Routes.

Endpoints:
- POST /api/v1/auth/login - Login with email/password
- GET /api/v1/auth/me - Get current staff member
"""

from flask import Blueprint, jsonify

from rcn.api.common import current_actor, get_services, json_body


bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


# =============================================================================
# Login
# =============================================================================

@bp.route("/login", methods=["POST"])
def login():
    """Login with email/password."""
    data = json_body()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not email:
        return jsonify({"ok": False, "error": {"code": "validation_error", "message": "Email is required"}}), 400
    if not password:
        return jsonify({"ok": False, "error": {"code": "validation_error", "message": "Password is required"}}), 400

    auth_response, error = get_services().auth.authenticate_email(email, password)
    if error:
        return jsonify({"ok": False, "error": {"code": "authentication_required", "message": error}}), 401

    return jsonify({
        "ok": True,
        **auth_response,
    })


# =============================================================================
# Current User
# =============================================================================

@bp.route("/me", methods=["GET"])
def me():
    """Get the signed-in staff member."""
    actor = current_actor()
    return jsonify({
        "ok": True,
        "user": {
            "user_id": actor.user_id,
            "organization_id": actor.organization_id,
            "organization_name": actor.organization_name,
            "department_id": actor.department_id,
            "display_name": actor.display_name,
            "role": actor.role,
        },
    })
