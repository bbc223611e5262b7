"""
Unit tests for the append-only referral activity log.
"""

from datetime import timedelta
from unittest.mock import MagicMock

from rcn.domain.referral import ActivityEntry, Referral, utcnow
from rcn.services.activity_log import ActivityLogService


class TestActivityLogService:

    def test_append_redacts_phi_metadata(self, sender):
        repository = MagicMock()
        service = ActivityLogService(repository)

        entry = service.append(
            "REF-1",
            "Payment initiated.",
            ActivityLogService.PAYMENT_INITIATED,
            actor=sender,
            metadata={"payment_id": "PAY-1", "patient": {"dob": "1950-02-01", "ssn": "123"}},
        )

        assert entry.actor == "Lakeshore General Hospital"
        assert entry.actor_user_id == "USR-lakeshore-cm"
        assert entry.metadata == {"payment_id": "PAY-1", "patient": {"dob": "[REDACTED]", "ssn": "[REDACTED]"}}
        repository.append_activity.assert_called_once_with("REF-1", entry)

    def test_system_actor_without_user(self):
        entry = ActivityLogService(MagicMock()).append("REF-1", "Sent.", ActivityLogService.REFERRAL_SENT)
        assert entry.actor == "System"
        assert entry.actor_user_id is None

    def test_entries_are_chronological_and_scoped(self):
        now = utcnow()
        repository = MagicMock()
        repository.get_referral.return_value = Referral(
            sender_organization_id="ORG-S",
            activity_log=[
                ActivityEntry(actor="B", message="second", department_id="D1", at=now),
                ActivityEntry(actor="System", message="first", at=now - timedelta(minutes=1)),
                ActivityEntry(actor="C", message="other", department_id="D2", at=now + timedelta(minutes=1)),
            ],
        )
        service = ActivityLogService(repository)

        assert [e.message for e in service.entries("REF-1")] == ["first", "second", "other"]
        assert [e.message for e in service.entries("REF-1", "D1")] == ["first", "second"]
