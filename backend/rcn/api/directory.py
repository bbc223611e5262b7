"""
Receiver directory endpoint.

Lists the departments of other organizations that the signed-in sender can
refer to.
"""

from flask import Blueprint, jsonify, request

from rcn.api.common import current_actor, get_services


bp = Blueprint("directory", __name__, url_prefix="/api/v1/directory")


@bp.route("/departments", methods=["GET"])
def receiver_departments():
    departments = get_services().organizations.receiver_directory(
        current_actor(), search=request.args.get("search", "")
    )
    return jsonify({"ok": True, "departments": departments})
