"""
Unit tests for the JSON API blueprints (Flask test client over the demo store).
"""

import pytest

from rcn.api.common import EXTENSION_KEY
from server import create_app


GREEN_VALLEY = "DEP-greenvalley-intake"
SUNRISE = "DEP-sunrise-intake"


@pytest.fixture
def app(store, processor):
    app = create_app(
        config_overrides={"TESTING": True, "STORAGE_BACKEND": "demo", "JWT_SECRET": "test-secret"},
        referral_repository=store,
        directory_repository=store,
        payment_processor=processor,
    )
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def headers_for(app, store):
    def build(user_id):
        auth = app.extensions[EXTENSION_KEY].auth
        token = auth.create_access_token(store.find_user(user_id))
        return {"Authorization": f"Bearer {token}"}
    return build


# =============================================================================
# Auth
# =============================================================================

class TestAuthRoutes:

    def test_login_and_me(self, client):
        response = client.post("/api/v1/auth/login", json={
            "email": "CaseManager@lakeshoregeneral.org", "password": "demo1234",
        })
        assert response.status_code == 200
        token = response.get_json()["access_token"]

        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.get_json()["user"]["organization_name"] == "Lakeshore General Hospital"

    def test_login_requires_password(self, client):
        response = client.post("/api/v1/auth/login", json={"email": "casemanager@lakeshoregeneral.org"})
        assert response.status_code == 400
        assert response.get_json()["error"]["message"] == "Password is required"

    def test_login_bad_password(self, client):
        response = client.post("/api/v1/auth/login", json={
            "email": "casemanager@lakeshoregeneral.org", "password": "wrong-password",
        })
        assert response.status_code == 401

    def test_missing_token(self, client):
        response = client.get("/api/v1/referrals/sent")
        assert response.status_code == 401
        assert response.get_json()["error"]["code"] == "authentication_required"

    def test_garbage_token(self, client):
        response = client.get("/api/v1/referrals/sent", headers={"Authorization": "Bearer nonsense"})
        assert response.status_code == 401
        assert "expired" in response.get_json()["error"]["message"]


# =============================================================================
# Referrals
# =============================================================================

class TestReferralRoutes:

    def test_create_draft(self, client, headers_for, referral_data):
        response = client.post("/api/v1/referrals", json=referral_data, headers=headers_for("USR-lakeshore-cm"))
        assert response.status_code == 201
        referral = response.get_json()["referral"]
        assert referral["is_draft"] is True
        assert referral["viewer"]["role"] == "sender"

    def test_validation_error_envelope(self, client, headers_for, referral_data):
        referral_data["patient"]["first_name"] = ""
        body = dict(referral_data, is_draft=False, department_ids=[GREEN_VALLEY])
        response = client.post("/api/v1/referrals", json=body, headers=headers_for("USR-lakeshore-cm"))
        assert response.status_code == 400
        error = response.get_json()["error"]
        assert error["code"] == "validation_error"
        assert error["message"] == "Patient first name is required."

    def test_non_object_body(self, client, headers_for):
        response = client.post("/api/v1/referrals", json=["x"], headers=headers_for("USR-lakeshore-cm"))
        assert response.status_code == 400

    def test_sent_inbox(self, client, headers_for):
        response = client.get("/api/v1/referrals/sent?status=PENDING", headers=headers_for("USR-lakeshore-cm"))
        body = response.get_json()
        assert response.status_code == 200
        assert [r["referral_id"] for r in body["referrals"]] == ["REF-10291"]
        assert body["meta"]["total"] == 1

    def test_received_inbox(self, client, headers_for):
        response = client.get("/api/v1/referrals/received", headers=headers_for("USR-greenvalley-intake"))
        item = response.get_json()["referrals"][0]
        assert item["label"] == "Pending"
        assert item["unlocked"] is False

    def test_bad_page_param(self, client, headers_for):
        response = client.get("/api/v1/referrals/sent?page=0", headers=headers_for("USR-lakeshore-cm"))
        assert response.status_code == 400

    def test_receiver_view_is_locked(self, client, headers_for):
        response = client.get("/api/v1/referrals/REF-10291", headers=headers_for("USR-greenvalley-intake"))
        referral = response.get_json()["referral"]
        assert referral["additional_patient"]["locked"] is True
        assert referral["additional_patient"]["fields"]["social_security_number"] is None
        assert [r["department_id"] for r in referral["department_statuses"]] == [GREEN_VALLEY]

    def test_outsider_denied(self, client, headers_for):
        response = client.get("/api/v1/referrals/REF-10291", headers=headers_for("USR-citywide-intake"))
        assert response.status_code == 403

    def test_unknown_referral(self, client, headers_for):
        response = client.get("/api/v1/referrals/REF-nope", headers=headers_for("USR-lakeshore-cm"))
        assert response.status_code == 404
        assert response.get_json()["error"]["code"] == "referral_not_found"


# =============================================================================
# Receiver actions and payments
# =============================================================================

class TestReceiverRoutes:

    def test_accept_with_stale_version(self, client, headers_for):
        response = client.post(
            f"/api/v1/referrals/REF-10291/departments/{GREEN_VALLEY}/accept",
            json={"version": 7},
            headers=headers_for("USR-greenvalley-intake"),
        )
        assert response.status_code == 409
        assert response.get_json()["error"]["code"] == "conflict"

    def test_reject_then_pay_refused(self, client, headers_for):
        headers = headers_for("USR-greenvalley-intake")
        base = f"/api/v1/referrals/REF-10291/departments/{GREEN_VALLEY}"
        rejected = client.post(f"{base}/reject", json={"reason": "No capacity"}, headers=headers)
        assert rejected.status_code == 200
        assert rejected.get_json()["new_state"] == "REJECTED"

        pay = client.post(f"{base}/pay", json={"source": "credit"}, headers=headers)
        assert pay.status_code == 409
        assert pay.get_json()["error"]["code"] == "invalid_transition"

    def test_card_payment_flow(self, client, headers_for):
        headers = headers_for("USR-sunrise-intake")
        base = f"/api/v1/referrals/REF-10291/departments/{SUNRISE}"

        quote = client.post(f"{base}/payment-summary", json={"source": "payment"}, headers=headers)
        assert quote.get_json()["summary"]["amount"] == "10.30"

        pending = client.post(f"{base}/pay", json={"payment_method_id": "pm_card_visa"}, headers=headers)
        assert pending.status_code == 202
        body = pending.get_json()
        assert body["requires_confirmation"] is True
        assert body["client_secret"]

        still_locked = client.get(f"{base}/chat", headers=headers)
        assert still_locked.get_json()["locked"] is True

        payment_id = body["payment"]["payment_id"]
        confirmed = client.post(f"/api/v1/payments/{payment_id}/confirm", json={}, headers=headers)
        assert confirmed.status_code == 200
        assert confirmed.get_json()["department_status"]["payment_status"] == "paid"

        posted = client.post(f"{base}/chat", json={"text": "Hello"}, headers=headers)
        assert posted.status_code == 201
        chat = client.get(f"{base}/chat", headers=headers).get_json()
        assert [m["text"] for m in chat["messages"]] == ["Hello"]

    def test_missing_card_method(self, client, headers_for):
        response = client.post(
            f"/api/v1/referrals/REF-10291/departments/{SUNRISE}/pay",
            json={"source": "payment"},
            headers=headers_for("USR-sunrise-intake"),
        )
        assert response.status_code == 400
        assert response.get_json()["error"]["code"] == "payment_method_required"

    def test_cancel_payment(self, client, headers_for):
        headers = headers_for("USR-sunrise-intake")
        pending = client.post(
            f"/api/v1/referrals/REF-10291/departments/{SUNRISE}/pay",
            json={"payment_method_id": "pm_card_visa"},
            headers=headers,
        ).get_json()
        payment_id = pending["payment"]["payment_id"]
        cancelled = client.post(f"/api/v1/payments/{payment_id}/cancel", headers=headers)
        assert cancelled.get_json()["payment"]["status"] == "cancelled"
        again = client.post(f"/api/v1/payments/{payment_id}/confirm", json={}, headers=headers)
        assert again.status_code == 409


# =============================================================================
# Organizations
# =============================================================================

class TestOrganizationRoutes:

    def test_register_is_public(self, client):
        response = client.post("/api/v1/organizations", json={
            "name": "Riverbend Home Care", "admin_email": "admin@riverbend.org", "admin_password": "riverbend-pass",
        })
        assert response.status_code == 201

    def test_credits_and_top_up(self, client, headers_for):
        headers = headers_for("USR-lakeshore-admin")
        topped = client.post("/api/v1/organizations/ORG-lakeshore/wallet/topup", json={"amount": "15"}, headers=headers)
        assert topped.status_code == 200
        credits = client.get("/api/v1/organizations/ORG-lakeshore/credits?limit=1", headers=headers).get_json()
        assert credits["credit_balance"] == "115.00"
        assert credits["meta"]["hasNextPage"] is True

    def test_branch_listing_and_update(self, client, headers_for):
        headers = headers_for("USR-lakeshore-admin")
        listed = client.get("/api/v1/organizations/ORG-lakeshore/branches", headers=headers).get_json()
        assert [b["branch_id"] for b in listed["branches"]] == ["BR-lakeshore-main"]

        updated = client.put(
            "/api/v1/organizations/ORG-lakeshore/branches/BR-lakeshore-main",
            json={"name": "North Campus"},
            headers=headers,
        )
        assert updated.status_code == 200
        assert updated.get_json()["branch"]["name"] == "North Campus"

    def test_foreign_branch_is_404(self, client, headers_for):
        response = client.get(
            "/api/v1/organizations/ORG-lakeshore/branches/BR-sunrise-main", headers=headers_for("USR-lakeshore-admin"),
        )
        assert response.status_code == 404

    def test_delete_department_deactivates(self, client, headers_for):
        headers = headers_for("USR-citywide-intake")
        response = client.delete(
            "/api/v1/organizations/ORG-citywide/departments/DEP-citywide-orders", headers=headers,
        )
        assert response.status_code == 200
        assert response.get_json()["department"]["status"] == "inactive"

        listed = client.get("/api/v1/organizations/ORG-citywide/departments", headers=headers).get_json()
        assert [d["status"] for d in listed["departments"]] == ["inactive"]

    def test_staff_cannot_edit_users(self, client, headers_for):
        response = client.put(
            "/api/v1/organizations/ORG-lakeshore/users/USR-lakeshore-admin",
            json={"role": "staff"},
            headers=headers_for("USR-lakeshore-cm"),
        )
        assert response.status_code == 403

    def test_deactivated_user_token_stops_working(self, client, headers_for):
        staff_headers = headers_for("USR-lakeshore-cm")
        response = client.delete(
            "/api/v1/organizations/ORG-lakeshore/users/USR-lakeshore-cm", headers=headers_for("USR-lakeshore-admin"),
        )
        assert response.get_json()["user"]["status"] == "inactive"
        assert client.get("/api/v1/referrals/sent", headers=staff_headers).status_code == 401

    def test_user_listing_hides_password_hash(self, client, headers_for):
        body = client.get(
            "/api/v1/organizations/ORG-lakeshore/users?search=jordan", headers=headers_for("USR-lakeshore-cm"),
        ).get_json()
        assert [u["user_id"] for u in body["users"]] == ["USR-lakeshore-cm"]
        assert "password_hash" not in body["users"][0]

    def test_receiver_directory(self, client, headers_for):
        response = client.get("/api/v1/directory/departments?search=hospice", headers=headers_for("USR-lakeshore-cm"))
        body = response.get_json()
        assert body["departments"] == [{
            "department_id": "DEP-lakeview-intake",
            "name": "Intake",
            "organization_id": "ORG-lakeview",
            "organization_name": "Lakeview Hospice",
            "state": "IL",
        }]

    def test_health(self, client):
        body = client.get("/health").get_json()
        assert body["status"] == "ok"
        assert body["payment_processor"] == "DemoPaymentProcessor"
