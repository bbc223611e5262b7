"""
Integration tests for the referral workflow endpoints
Tests the full request/response cycle from sending a referral through
receiver decisions, credit payment and the unlocked chat.
"""

import json
import os
import shutil
import tempfile
import unittest

from server import create_app


DEMO_PASSWORD = "demo1234"
SUNRISE = "DEP-sunrise-intake"
GREEN_VALLEY = "DEP-greenvalley-intake"


class TestReferralWorkflowEndpoint(unittest.TestCase):
    """
    Integration tests for the referral workflow
    Runs against the JSON demo store in a temporary directory
    """

    def setUp(self):
        """Set up test client"""
        self.tmp_dir = tempfile.mkdtemp()
        self.app = create_app({
            "TESTING": True,
            "STORAGE_BACKEND": "demo",
            "DEMO_STORE_PATH": os.path.join(self.tmp_dir, "state.json"),
            "DEMO_SEED_ON_FIRST_LOAD": True,
            "STRIPE_SECRET_KEY": "",
            "JWT_SECRET": "integration-secret",
        })
        self.client = self.app.test_client()

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def login(self, email):
        response = self.client.post(
            "/api/v1/auth/login",
            data=json.dumps({"email": email, "password": DEMO_PASSWORD}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 200)
        token = json.loads(response.data)["access_token"]
        return {"Authorization": f"Bearer {token}"}

    def post(self, url, headers, body=None):
        return self.client.post(url, data=json.dumps(body or {}), content_type="application/json", headers=headers)

    def send_referral(self, sender):
        body = {
            "is_draft": False,
            "department_ids": [SUNRISE, GREEN_VALLEY],
            "patient": {"first_name": "Ruth", "last_name": "Okafor", "dob": "1948-09-30", "gender": "F"},
            "speciality_ids": ["Skilled Nursing"],
            "insurance": [{"payer": "Medicare", "policy": "2AB3-CD4-EF56", "plan_group": "PART-A"}],
            "additional_patient": {"phone_number": "(773) 555-0144", "social_security_number": "XXX-XX-9876"},
        }
        response = self.post("/api/v1/referrals", sender, body)
        self.assertEqual(response.status_code, 201)
        return json.loads(response.data)["referral"]["referral_id"]

    def test_full_workflow(self):
        """Send, reject at one department, pay with credits at the other"""
        sender = self.login("casemanager@lakeshoregeneral.org")
        sunrise = self.login("intake@sunrisehh.com")
        green_valley = self.login("referrals@greenvalleypt.com")
        referral_id = self.send_referral(sender)

        rejected = self.post(
            f"/api/v1/referrals/{referral_id}/departments/{SUNRISE}/reject",
            sunrise,
            {"reason": "No capacity", "version": 1},
        )
        self.assertEqual(rejected.status_code, 200)

        locked = json.loads(self.client.get(
            f"/api/v1/referrals/{referral_id}?department_id={GREEN_VALLEY}", headers=green_valley
        ).data)["referral"]
        self.assertTrue(locked["additional_patient"]["locked"])

        paid = self.post(
            f"/api/v1/referrals/{referral_id}/departments/{GREEN_VALLEY}/pay",
            green_valley,
            {"source": "credit"},
        )
        self.assertEqual(paid.status_code, 200)
        result = json.loads(paid.data)
        self.assertEqual(result["payment"]["status"], "succeeded")
        self.assertFalse(result["requires_confirmation"])

        unlocked = json.loads(self.client.get(
            f"/api/v1/referrals/{referral_id}?department_id={GREEN_VALLEY}", headers=green_valley
        ).data)["referral"]
        self.assertFalse(unlocked["additional_patient"]["locked"])
        self.assertEqual(unlocked["additional_patient"]["fields"]["social_security_number"], "XXX-XX-9876")

        credits = json.loads(self.client.get(
            "/api/v1/organizations/ORG-greenvalley/credits", headers=green_valley
        ).data)
        self.assertEqual(credits["credit_balance"], "40.00")

        sender_view = json.loads(self.client.get(f"/api/v1/referrals/{referral_id}", headers=sender).data)["referral"]
        self.assertEqual(
            [r["state"] for r in sender_view["department_statuses"]],
            ["REJECTED", "PAID"],
        )
        self.assertEqual(sender_view["overall_status"], "PAID")

    def test_rejected_department_cannot_pay(self):
        """Pay after reject is refused and no credits move"""
        sender = self.login("casemanager@lakeshoregeneral.org")
        sunrise = self.login("intake@sunrisehh.com")
        referral_id = self.send_referral(sender)
        self.post(f"/api/v1/referrals/{referral_id}/departments/{SUNRISE}/reject", sunrise)

        response = self.post(
            f"/api/v1/referrals/{referral_id}/departments/{SUNRISE}/pay",
            sunrise,
            {"source": "credit"},
        )
        self.assertEqual(response.status_code, 409)

        credits = json.loads(self.client.get("/api/v1/organizations/ORG-sunrise/credits", headers=sunrise).data)
        self.assertEqual(credits["credit_balance"], "50.00")

    def test_chat_unlocks_after_payment(self):
        """Chat stays locked until the department has paid"""
        sender = self.login("casemanager@lakeshoregeneral.org")
        green_valley = self.login("referrals@greenvalleypt.com")
        referral_id = self.send_referral(sender)
        chat_url = f"/api/v1/referrals/{referral_id}/departments/{GREEN_VALLEY}/chat"

        blocked = self.post(chat_url, sender, {"text": "Any questions?"})
        self.assertEqual(blocked.status_code, 403)

        self.post(f"/api/v1/referrals/{referral_id}/departments/{GREEN_VALLEY}/pay", green_valley, {"source": "credit"})
        sent = self.post(chat_url, sender, {"text": "Any questions?"})
        self.assertEqual(sent.status_code, 201)

        messages = json.loads(self.client.get(chat_url, headers=green_valley).data)["messages"]
        self.assertEqual([m["text"] for m in messages], ["Any questions?"])
        self.assertEqual(messages[0]["from_role"], "sender")

    def test_forward_to_new_department(self):
        """Forwarded departments get their own pending, receiver-paid rows"""
        sender = self.login("casemanager@lakeshoregeneral.org")
        referral_id = self.send_referral(sender)
        response = self.post(
            f"/api/v1/referrals/{referral_id}/receivers",
            sender,
            {"department_ids": ["DEP-lakeview-intake"], "services_requested": ["Hospice eval"]},
        )
        self.assertEqual(response.status_code, 200)
        rows = json.loads(response.data)["referral"]["department_statuses"]
        forwarded = [r for r in rows if r["department_id"] == "DEP-lakeview-intake"][0]
        self.assertEqual(forwarded["state"], "PENDING")
        self.assertFalse(forwarded["is_paid_by_sender"])


if __name__ == "__main__":
    unittest.main()
