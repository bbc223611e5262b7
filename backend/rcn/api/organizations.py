"""
Organization API endpoints.

Provides endpoints for:
- Registering an organization with its first administrator
- Managing branches, departments and staff users (list, get, create,
  update, deactivate; nothing is hard-deleted)
- Listing the departments a sender can refer to
- Reading the credit wallet and topping it up
"""

from flask import Blueprint, jsonify, request

from rcn.api.common import current_actor, get_services, json_body
from rcn.services.inbox import MAX_PAGE_SIZE, parse_positive_int


bp = Blueprint("organizations", __name__, url_prefix="/api/v1/organizations")


@bp.route("", methods=["POST"])
def register():
    """Register an organization (public)."""
    result = get_services().organizations.register_organization(json_body())
    return jsonify({"ok": True, **result}), 201


# =============================================================================
# Branches
# =============================================================================

@bp.route("/<organization_id>/branches", methods=["GET"])
def list_branches(organization_id):
    branches = get_services().organizations.list_branches(
        current_actor(), organization_id, search=request.args.get("search", "")
    )
    return jsonify({"ok": True, "branches": branches})


@bp.route("/<organization_id>/branches", methods=["POST"])
def create_branch(organization_id):
    branch = get_services().organizations.create_branch(current_actor(), organization_id, json_body())
    return jsonify({"ok": True, "branch": branch.to_dict()}), 201


@bp.route("/<organization_id>/branches/<branch_id>", methods=["GET"])
def get_branch(organization_id, branch_id):
    branch = get_services().organizations.get_branch(current_actor(), organization_id, branch_id)
    return jsonify({"ok": True, "branch": branch})


@bp.route("/<organization_id>/branches/<branch_id>", methods=["PUT"])
def update_branch(organization_id, branch_id):
    branch = get_services().organizations.update_branch(
        current_actor(), organization_id, branch_id, json_body()
    )
    return jsonify({"ok": True, "branch": branch.to_dict()})


@bp.route("/<organization_id>/branches/<branch_id>", methods=["DELETE"])
def deactivate_branch(organization_id, branch_id):
    branch = get_services().organizations.deactivate_branch(current_actor(), organization_id, branch_id)
    return jsonify({"ok": True, "branch": branch.to_dict()})


# =============================================================================
# Departments
# =============================================================================

@bp.route("/<organization_id>/departments", methods=["GET"])
def list_departments(organization_id):
    departments = get_services().organizations.list_departments(
        current_actor(),
        organization_id,
        branch_id=request.args.get("branch_id") or None,
        search=request.args.get("search", ""),
    )
    return jsonify({"ok": True, "departments": [d.to_dict() for d in departments]})


@bp.route("/<organization_id>/departments", methods=["POST"])
def create_department(organization_id):
    department = get_services().organizations.create_department(
        current_actor(), organization_id, json_body()
    )
    return jsonify({"ok": True, "department": department.to_dict()}), 201


@bp.route("/<organization_id>/departments/<department_id>", methods=["GET"])
def get_department(organization_id, department_id):
    department = get_services().organizations.get_department(current_actor(), organization_id, department_id)
    return jsonify({"ok": True, "department": department.to_dict()})


@bp.route("/<organization_id>/departments/<department_id>", methods=["PUT"])
def update_department(organization_id, department_id):
    department = get_services().organizations.update_department(
        current_actor(), organization_id, department_id, json_body()
    )
    return jsonify({"ok": True, "department": department.to_dict()})


@bp.route("/<organization_id>/departments/<department_id>", methods=["DELETE"])
def deactivate_department(organization_id, department_id):
    department = get_services().organizations.deactivate_department(
        current_actor(), organization_id, department_id
    )
    return jsonify({"ok": True, "department": department.to_dict()})


# =============================================================================
# Users
# =============================================================================

@bp.route("/<organization_id>/users", methods=["GET"])
def list_users(organization_id):
    users = get_services().organizations.list_users(
        current_actor(), organization_id, search=request.args.get("search", "")
    )
    return jsonify({"ok": True, "users": [u.to_dict() for u in users]})


@bp.route("/<organization_id>/users", methods=["POST"])
def create_user(organization_id):
    user = get_services().organizations.create_user(current_actor(), organization_id, json_body())
    return jsonify({"ok": True, "user": user.to_dict()}), 201


@bp.route("/<organization_id>/users/<user_id>", methods=["GET"])
def get_user(organization_id, user_id):
    user = get_services().organizations.get_user(current_actor(), organization_id, user_id)
    return jsonify({"ok": True, "user": user.to_dict()})


@bp.route("/<organization_id>/users/<user_id>", methods=["PUT"])
def update_user(organization_id, user_id):
    user = get_services().organizations.update_user(current_actor(), organization_id, user_id, json_body())
    return jsonify({"ok": True, "user": user.to_dict()})


@bp.route("/<organization_id>/users/<user_id>", methods=["DELETE"])
def deactivate_user(organization_id, user_id):
    user = get_services().organizations.deactivate_user(current_actor(), organization_id, user_id)
    return jsonify({"ok": True, "user": user.to_dict()})


# =============================================================================
# Credits
# =============================================================================

@bp.route("/<organization_id>/credits", methods=["GET"])
def get_credits(organization_id):
    actor = current_actor()
    page = parse_positive_int(request.args.get("page"), 1, "page")
    limit = parse_positive_int(request.args.get("limit"), 10, "limit", maximum=MAX_PAGE_SIZE)
    credits = get_services().organizations.get_credits(actor, organization_id, page=page, limit=limit)
    return jsonify({"ok": True, **credits})


@bp.route("/<organization_id>/wallet/topup", methods=["POST"])
def top_up(organization_id):
    actor = current_actor()
    data = json_body()
    result = get_services().organizations.top_up_credits(
        actor, organization_id, data.get("amount"), description=data.get("description") or ""
    )
    return jsonify({"ok": True, **result})
