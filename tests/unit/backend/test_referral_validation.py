"""
Unit tests for referral payload parsing and send validation.
"""

from unittest.mock import MagicMock

import pytest

from rcn.errors import ValidationError
from rcn.services.referral_validation import (
    PRIMARY_INSURANCE_REQUIRED,
    build_referral,
    parse_referral_payload,
    validate_for_send,
)


def directory_with(*department_ids):
    directory = MagicMock()
    directory.find_department.side_effect = lambda d: object() if d in department_ids else None
    return directory


# =============================================================================
# Payload parsing
# =============================================================================

class TestParseReferralPayload:

    def test_strings_are_stripped(self):
        payload = parse_referral_payload({"patient": {"first_name": "  Ann ", "last_name": None}})
        assert payload.patient.first_name == "Ann"
        assert payload.patient.last_name == ""

    def test_defaults_to_draft(self):
        payload = parse_referral_payload({})
        assert payload.is_draft is True
        assert payload.payment_type == "free"

    def test_department_ids_deduplicated(self):
        payload = parse_referral_payload({"department_ids": ["D1", " D1", "D2", ""]})
        assert payload.department_ids == ["D1", "D2"]

    def test_unknown_payment_type_rejected(self):
        with pytest.raises(ValidationError) as exc:
            parse_referral_payload({"payment_type": "barter"})
        assert exc.value.field == "payment_type"

    def test_wound_photos_accept_single_url(self):
        payload = parse_referral_payload({"documents": {"wound_photos": "https://x/1.jpg"}})
        assert payload.documents.wound_photos == ["https://x/1.jpg"]


# =============================================================================
# Insurance entries
# =============================================================================

class TestInsuranceEntries:
    """First entry is primary; every non-blank entry must be complete."""

    def test_incomplete_primary_rejected(self):
        with pytest.raises(ValidationError) as exc:
            parse_referral_payload({"insurance": [{"payer": "Medicare", "policy": "X1"}]})
        assert exc.value.message == PRIMARY_INSURANCE_REQUIRED

    def test_incomplete_secondary_rejected(self):
        with pytest.raises(ValidationError) as exc:
            parse_referral_payload({"insurance": [
                {"payer": "Medicare", "policy": "X1", "plan_group": "A"},
                {"payer": "Aetna"},
            ]})
        assert exc.value.message.startswith("Insurance 2:")

    def test_blank_later_entries_dropped(self):
        payload = parse_referral_payload({"insurance": [
            {"payer": "Medicare", "policy": "X1", "plan_group": "A"},
            {"payer": " ", "policy": "", "plan_group": ""},
            {"payer": "Aetna", "policy": "AE-1", "plan_group": "PPO"},
        ]})
        assert [e.payer for e in payload.insurance] == ["Medicare", "Aetna"]

    def test_blank_primary_alone_dropped(self):
        payload = parse_referral_payload({"insurance": [{"payer": ""}]})
        assert payload.insurance == []

    def test_order_preserved(self):
        payload = parse_referral_payload({"insurance": [
            {"payer": "CountyCare", "policy": "CC-1", "plan_group": "MCD"},
            {"payer": "Medicare", "policy": "MC-1", "plan_group": "A"},
        ]})
        referral = build_referral(payload, "ORG-1")
        assert referral.primary_insurance.payer == "CountyCare"
        assert referral.insurance[1].payer == "Medicare"


# =============================================================================
# validate_for_send
# =============================================================================

class TestValidateForSend:

    def _referral(self, data):
        return build_referral(parse_referral_payload(data), "ORG-1")

    def test_complete_referral_passes(self, referral_data):
        validate_for_send(self._referral(referral_data), ["D1"], directory_with("D1"))

    def test_missing_first_name(self, referral_data):
        referral_data["patient"]["first_name"] = ""
        with pytest.raises(ValidationError) as exc:
            validate_for_send(self._referral(referral_data), ["D1"], directory_with("D1"))
        assert exc.value.message == "Patient first name is required."

    def test_missing_primary_insurance(self, referral_data):
        referral_data["insurance"] = []
        with pytest.raises(ValidationError) as exc:
            validate_for_send(self._referral(referral_data), ["D1"], directory_with("D1"))
        assert exc.value.message == PRIMARY_INSURANCE_REQUIRED

    def test_requires_department(self, referral_data):
        with pytest.raises(ValidationError) as exc:
            validate_for_send(self._referral(referral_data), [], directory_with("D1"))
        assert exc.value.field == "department_ids"

    def test_unknown_department(self, referral_data):
        with pytest.raises(ValidationError) as exc:
            validate_for_send(self._referral(referral_data), ["D9"], directory_with("D1"))
        assert exc.value.message == "Unknown department: D9."
