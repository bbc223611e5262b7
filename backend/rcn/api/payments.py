"""
Payment API endpoints.

- POST /api/v1/payments/<payment_id>/confirm - charge a pending card payment
- POST /api/v1/payments/<payment_id>/cancel - abandon a pending card payment
"""

from flask import Blueprint, jsonify

from rcn.api.common import current_actor, get_services, json_body


bp = Blueprint("payments", __name__, url_prefix="/api/v1/payments")


@bp.route("/<payment_id>/confirm", methods=["POST"])
def confirm(payment_id):
    actor = current_actor()
    data = json_body()
    outcome = get_services().referrals.confirm_payment(
        actor, payment_id, payment_method_id=data.get("payment_method_id")
    )
    return jsonify({"ok": True, **outcome.to_dict()})


@bp.route("/<payment_id>/cancel", methods=["POST"])
def cancel(payment_id):
    actor = current_actor()
    payment = get_services().referrals.cancel_payment(actor, payment_id)
    return jsonify({"ok": True, "payment": payment.to_dict()})
