"""
Unit tests for the Referral Status Engine.

Tests the core logic for:
- The per-department transition table
- Idempotent repeats and terminal states
- The sender-paid guard on Pay
- Visibility of the payment-gated sections
"""

import pytest

from rcn.domain.referral import (
    AdditionalPatientInfo,
    DepartmentStatus,
    DepartmentStatusValue,
    PaymentStatus,
    Patient,
    ReceiverEvent,
    ReceiverState,
    Referral,
    ViewerRole,
    overall_status,
)
from rcn.errors import InvalidTransition
from rcn.services.status_engine import ReferralStatusEngine


def make_row(status=DepartmentStatusValue.PENDING, paid=False, by_sender=False, department_id="DEP-1"):
    return DepartmentStatus(
        department_id=department_id,
        status=status,
        payment_status=PaymentStatus.PAID if paid else PaymentStatus.NOT_PAID,
        is_paid_by_sender=by_sender,
    )


@pytest.fixture
def engine():
    return ReferralStatusEngine()


# =============================================================================
# Transition table
# =============================================================================

class TestTransitions:
    """Tests for allowed transitions."""

    def test_pending_accept(self, engine):
        result = engine.apply(make_row(), ReceiverEvent.ACCEPT)
        assert result.changed
        assert result.new_state == ReceiverState.ACCEPTED
        assert result.row.status == DepartmentStatusValue.ACTIVE

    def test_pending_reject_records_reason(self, engine):
        result = engine.apply(make_row(), ReceiverEvent.REJECT, reason="  Out of area ")
        assert result.new_state == ReceiverState.REJECTED
        assert result.row.rejection_reason == "Out of area"
        assert result.message == "Rejected: Out of area."

    def test_pending_pay_unlocks(self, engine):
        result = engine.apply(make_row(), ReceiverEvent.PAY, actor_user_id="USR-1")
        assert result.new_state == ReceiverState.PAID
        assert result.row.payment_status == PaymentStatus.PAID
        assert result.row.paid_by_user_id == "USR-1"

    def test_accepted_pay_unlocks(self, engine):
        result = engine.apply(make_row(DepartmentStatusValue.ACTIVE), ReceiverEvent.PAY)
        assert result.new_state == ReceiverState.PAID

    def test_accepted_reject(self, engine):
        result = engine.apply(make_row(DepartmentStatusValue.ACTIVE), ReceiverEvent.REJECT)
        assert result.new_state == ReceiverState.REJECTED
        assert result.message == "Rejected."

    def test_input_row_not_mutated(self, engine):
        row = make_row()
        engine.apply(row, ReceiverEvent.ACCEPT)
        assert row.status == DepartmentStatusValue.PENDING

    def test_accept_message_mentions_pending_payment(self, engine):
        result = engine.apply(make_row(), ReceiverEvent.ACCEPT)
        assert "pending payment" in result.message

    def test_accept_sender_paid_message(self, engine):
        result = engine.apply(make_row(by_sender=True), ReceiverEvent.ACCEPT)
        assert result.message == "Accepted."


# =============================================================================
# No-ops and refusals
# =============================================================================

class TestNoOpsAndRefusals:
    """Repeated actions change nothing; terminal states refuse everything."""

    def test_accept_twice_is_noop(self, engine):
        row = make_row(DepartmentStatusValue.ACTIVE)
        result = engine.apply(row, ReceiverEvent.ACCEPT)
        assert not result.changed
        assert result.row is row

    def test_reject_twice_is_noop(self, engine):
        row = make_row(DepartmentStatusValue.REJECTED)
        result = engine.apply(row, ReceiverEvent.REJECT)
        assert not result.changed

    @pytest.mark.parametrize("event", [ReceiverEvent.ACCEPT, ReceiverEvent.PAY])
    def test_rejected_is_terminal(self, engine, event):
        with pytest.raises(InvalidTransition) as exc:
            engine.apply(make_row(DepartmentStatusValue.REJECTED), event)
        assert "rejected" in exc.value.message

    def test_pay_twice_refused(self, engine):
        with pytest.raises(InvalidTransition) as exc:
            engine.apply(make_row(DepartmentStatusValue.ACTIVE, paid=True), ReceiverEvent.PAY)
        assert exc.value.message == "This referral is already paid."

    @pytest.mark.parametrize("event", [ReceiverEvent.ACCEPT, ReceiverEvent.REJECT])
    def test_paid_refuses_accept_and_reject(self, engine, event):
        with pytest.raises(InvalidTransition):
            engine.check(make_row(DepartmentStatusValue.ACTIVE, paid=True), event)

    def test_completed_refuses_everything(self, engine):
        row = make_row(DepartmentStatusValue.COMPLETED, paid=True)
        for event in ReceiverEvent:
            assert not engine.is_allowed(row, event)

    def test_sender_paid_row_cannot_pay(self, engine):
        with pytest.raises(InvalidTransition) as exc:
            engine.check(make_row(by_sender=True), ReceiverEvent.PAY)
        assert "paid by the sender" in exc.value.message
        assert exc.value.details["is_paid_by_sender"] is True

    def test_rejected_sender_paid_reports_rejection_first(self, engine):
        with pytest.raises(InvalidTransition) as exc:
            engine.check(make_row(DepartmentStatusValue.REJECTED, by_sender=True), ReceiverEvent.PAY)
        assert "rejected" in exc.value.message


# =============================================================================
# Available actions
# =============================================================================

class TestAvailableActions:

    def test_pending_offers_all_three(self, engine):
        assert engine.available_actions(make_row()) == [
            ReceiverEvent.ACCEPT, ReceiverEvent.PAY, ReceiverEvent.REJECT,
        ]

    def test_pending_sender_paid_has_no_pay(self, engine):
        assert engine.available_actions(make_row(by_sender=True)) == [
            ReceiverEvent.ACCEPT, ReceiverEvent.REJECT,
        ]

    def test_accepted_offers_pay_and_reject(self, engine):
        assert engine.available_actions(make_row(DepartmentStatusValue.ACTIVE)) == [
            ReceiverEvent.PAY, ReceiverEvent.REJECT,
        ]

    def test_rejected_offers_nothing(self, engine):
        assert engine.available_actions(make_row(DepartmentStatusValue.REJECTED)) == []


# =============================================================================
# Visibility
# =============================================================================

class TestVisibility:
    """Additional info and chat unlock only for paid / sender-paid-accepted rows."""

    @pytest.mark.parametrize("row,unlocked", [
        (make_row(), False),
        (make_row(DepartmentStatusValue.ACTIVE), False),
        (make_row(DepartmentStatusValue.REJECTED), False),
        (make_row(DepartmentStatusValue.ACTIVE, paid=True), True),
        (make_row(DepartmentStatusValue.COMPLETED, paid=True), True),
        (make_row(by_sender=True), False),
        (make_row(DepartmentStatusValue.ACTIVE, by_sender=True), True),
        (make_row(DepartmentStatusValue.REJECTED, by_sender=True), False),
    ])
    def test_is_unlocked(self, engine, row, unlocked):
        assert engine.is_unlocked(row) is unlocked

    def test_sender_always_sees_additional_info(self, engine):
        policy = engine.visibility(make_row(), ViewerRole.SENDER)
        assert policy.additional_info is True
        assert policy.chat is False
        assert policy.available_actions == []

    def test_receiver_policy_lists_actions(self, engine):
        policy = engine.visibility(make_row(), ViewerRole.RECEIVER)
        assert policy.additional_info is False
        assert policy.available_actions == ["accept", "pay", "reject"]

    def test_render_locks_block_for_receiver(self, engine):
        referral = Referral(
            sender_organization_id="ORG-S",
            patient=Patient(first_name="Ann", last_name="Lee"),
            additional_patient=AdditionalPatientInfo(social_security_number="XXX-XX-0001"),
            department_statuses=[make_row(department_id="D1"), make_row(department_id="D2", paid=True)],
        )

        locked = engine.render_for_viewer(referral, ViewerRole.RECEIVER, "D1")
        assert locked["additional_patient"]["locked"] is True
        assert locked["additional_patient"]["fields"]["social_security_number"] is None
        assert [r["department_id"] for r in locked["department_statuses"]] == ["D1"]

        unlocked = engine.render_for_viewer(referral, ViewerRole.RECEIVER, "D2")
        assert unlocked["additional_patient"]["locked"] is False
        assert unlocked["additional_patient"]["fields"]["social_security_number"] == "XXX-XX-0001"

        sender_view = engine.render_for_viewer(referral, ViewerRole.SENDER)
        assert sender_view["additional_patient"]["locked"] is False
        assert len(sender_view["department_statuses"]) == 2


# =============================================================================
# Overall status
# =============================================================================

class TestOverallStatus:

    def _referral(self, *rows):
        return Referral(sender_organization_id="ORG-S", department_statuses=list(rows))

    def test_any_paid_wins(self):
        referral = self._referral(make_row(), make_row(DepartmentStatusValue.ACTIVE, paid=True))
        assert overall_status(referral) == ReceiverState.PAID

    def test_all_rejected(self):
        referral = self._referral(make_row(DepartmentStatusValue.REJECTED), make_row(DepartmentStatusValue.REJECTED))
        assert overall_status(referral) == ReceiverState.REJECTED

    def test_pending_while_any_pending(self):
        referral = self._referral(make_row(DepartmentStatusValue.REJECTED), make_row())
        assert overall_status(referral) == ReceiverState.PENDING
