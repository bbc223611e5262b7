"""
Referral API endpoints.

Provides endpoints for:
- Creating, editing, sending and forwarding referrals (sender)
- Sent / received inboxes
- Accepting, rejecting and paying for a referral (receiving department)
- The activity log and per-department chat
"""

from flask import Blueprint, jsonify, request

from rcn.api.common import current_actor, expected_version, get_services, json_body
from rcn.services.inbox import RECEIVED, SENT, InboxQuery


bp = Blueprint("referrals", __name__, url_prefix="/api/v1/referrals")


def _sender_view(actor, referral_id: str) -> dict:
    return get_services().referrals.get_referral(actor, referral_id)


# =============================================================================
# Sender: create, edit, send, forward
# =============================================================================

@bp.route("", methods=["POST"])
def create_referral():
    """Create a draft, or create and send when ``is_draft`` is false."""
    actor = current_actor()
    referral = get_services().referrals.create_referral(actor, json_body())
    return jsonify({"ok": True, "referral": _sender_view(actor, referral.referral_id)}), 201


@bp.route("/<referral_id>", methods=["PUT"])
def update_referral(referral_id):
    actor = current_actor()
    get_services().referrals.update_draft(actor, referral_id, json_body())
    return jsonify({"ok": True, "referral": _sender_view(actor, referral_id)})


@bp.route("/<referral_id>/payment-summary", methods=["POST"])
def send_payment_summary(referral_id):
    """Quote for the sender paying on behalf of every receiver."""
    actor = current_actor()
    summary = get_services().referrals.quote_send(actor, referral_id, json_body())
    return jsonify({"ok": True, "summary": summary.to_dict()})


@bp.route("/<referral_id>/send", methods=["POST"])
def send_referral(referral_id):
    actor = current_actor()
    get_services().referrals.send_referral(actor, referral_id, json_body())
    return jsonify({"ok": True, "referral": _sender_view(actor, referral_id)})


@bp.route("/<referral_id>/receivers", methods=["POST"])
def add_receivers(referral_id):
    """Forward to more departments; new rows are paid for by the receiver."""
    actor = current_actor()
    data = json_body()
    get_services().referrals.add_receivers(
        actor,
        referral_id,
        data.get("department_ids") or [],
        services_override=data.get("services_requested"),
    )
    return jsonify({"ok": True, "referral": _sender_view(actor, referral_id)})


# =============================================================================
# Inboxes
# =============================================================================

@bp.route("/sent", methods=["GET"])
def list_sent():
    actor = current_actor()
    query = InboxQuery.from_args(actor.organization_id, SENT, request.args)
    page = get_services().inbox.list(actor, query)
    return jsonify({"ok": True, "referrals": page["items"], "meta": page["meta"]})


@bp.route("/received", methods=["GET"])
def list_received():
    actor = current_actor()
    query = InboxQuery.from_args(actor.organization_id, RECEIVED, request.args)
    page = get_services().inbox.list(actor, query)
    return jsonify({"ok": True, "referrals": page["items"], "meta": page["meta"]})


# =============================================================================
# Detail and activity
# =============================================================================

@bp.route("/<referral_id>", methods=["GET"])
def get_referral(referral_id):
    """Referral as the caller may see it. ``department_id`` selects the receiver view."""
    actor = current_actor()
    department_id = request.args.get("department_id") or None
    referral = get_services().referrals.get_referral(actor, referral_id, department_id)
    return jsonify({"ok": True, "referral": referral})


@bp.route("/<referral_id>/activity", methods=["GET"])
def list_activity(referral_id):
    actor = current_actor()
    department_id = request.args.get("department_id") or None
    entries = get_services().referrals.list_activity(actor, referral_id, department_id)
    return jsonify({"ok": True, "activity": [e.to_dict() for e in entries]})


# =============================================================================
# Receiving department actions
# =============================================================================

@bp.route("/<referral_id>/departments/<department_id>/accept", methods=["POST"])
def accept(referral_id, department_id):
    actor = current_actor()
    data = json_body()
    result = get_services().referrals.accept(
        actor, referral_id, department_id, expected_version=expected_version(data)
    )
    return jsonify({"ok": True, **result.to_dict()})


@bp.route("/<referral_id>/departments/<department_id>/reject", methods=["POST"])
def reject(referral_id, department_id):
    actor = current_actor()
    data = json_body()
    result = get_services().referrals.reject(
        actor,
        referral_id,
        department_id,
        reason=data.get("reason") or "",
        expected_version=expected_version(data),
    )
    return jsonify({"ok": True, **result.to_dict()})


@bp.route("/<referral_id>/departments/<department_id>/payment-summary", methods=["POST"])
def payment_summary(referral_id, department_id):
    """Advisory unlock quote. Nothing is charged or marked paid."""
    actor = current_actor()
    data = json_body()
    summary = get_services().referrals.quote(
        actor,
        referral_id,
        department_id,
        source=data.get("source") or "payment",
        payment_method_id=data.get("payment_method_id"),
    )
    return jsonify({"ok": True, "summary": summary.to_dict()})


@bp.route("/<referral_id>/departments/<department_id>/pay", methods=["POST"])
def pay(referral_id, department_id):
    """Pay to unlock. Credits settle now; card payments return a client secret to confirm."""
    actor = current_actor()
    data = json_body()
    outcome = get_services().referrals.initiate_payment(
        actor,
        referral_id,
        department_id,
        source=data.get("source") or "payment",
        payment_method_id=data.get("payment_method_id"),
        expected_version=expected_version(data),
    )
    status = 202 if outcome.requires_confirmation else 200
    return jsonify({"ok": True, **outcome.to_dict()}), status


# =============================================================================
# Chat
# =============================================================================

@bp.route("/<referral_id>/departments/<department_id>/chat", methods=["GET"])
def list_chat(referral_id, department_id):
    actor = current_actor()
    chat = get_services().referrals.list_chat(actor, referral_id, department_id)
    return jsonify({"ok": True, **chat})


@bp.route("/<referral_id>/departments/<department_id>/chat", methods=["POST"])
def post_chat(referral_id, department_id):
    actor = current_actor()
    data = json_body()
    message = get_services().referrals.post_chat_message(
        actor, referral_id, department_id, data.get("text") or ""
    )
    return jsonify({"ok": True, "message": message.to_dict()}), 201
