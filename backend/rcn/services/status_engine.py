"""
Referral Status Engine

Single authority for a receiving department's status transitions and for
which parts of a referral a viewer may see.

Transition table (per DepartmentStatus):

    PENDING  --accept-->  ACCEPTED
    PENDING  --reject-->  REJECTED
    PENDING  --pay----->  PAID        (only when not paid by sender)
    ACCEPTED --pay----->  PAID        (only when not paid by sender)
    ACCEPTED --reject-->  REJECTED

REJECTED is terminal. PAID is terminal for payment (COMPLETED is applied
externally). Accept on ACCEPTED and Reject on REJECTED are no-ops.

The engine never writes: ``apply`` returns a new row which the caller
persists, so a failed guard leaves stored state untouched.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
import logging
from typing import Any, Dict, List, Optional

from rcn.domain.referral import (
    AdditionalPatientInfo,
    DepartmentStatus,
    DepartmentStatusValue,
    PaymentStatus,
    ReceiverEvent,
    ReceiverState,
    Referral,
    ViewerRole,
    overall_status,
    utcnow,
)
from rcn.errors import InvalidTransition


TRANSITIONS = {
    (ReceiverState.PENDING, ReceiverEvent.ACCEPT): ReceiverState.ACCEPTED,
    (ReceiverState.PENDING, ReceiverEvent.REJECT): ReceiverState.REJECTED,
    (ReceiverState.PENDING, ReceiverEvent.PAY): ReceiverState.PAID,
    (ReceiverState.ACCEPTED, ReceiverEvent.PAY): ReceiverState.PAID,
    (ReceiverState.ACCEPTED, ReceiverEvent.REJECT): ReceiverState.REJECTED,
}

# Repeating the action that produced the current state changes nothing
NO_OP_TRANSITIONS = {
    (ReceiverState.ACCEPTED, ReceiverEvent.ACCEPT),
    (ReceiverState.REJECTED, ReceiverEvent.REJECT),
}

# Unlocked states for payment-gated sections
UNLOCKED_STATES = {ReceiverState.PAID, ReceiverState.COMPLETED}

EVENT_VERBS = {
    ReceiverEvent.ACCEPT: "accept",
    ReceiverEvent.REJECT: "reject",
    ReceiverEvent.PAY: "pay for",
}


@dataclass
class TransitionResult:
    """Outcome of applying an event to a department row."""
    event: ReceiverEvent
    previous_state: ReceiverState
    new_state: ReceiverState
    row: DepartmentStatus
    changed: bool
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event.value,
            "previous_state": self.previous_state.value,
            "new_state": self.new_state.value,
            "changed": self.changed,
            "message": self.message,
            "department_status": self.row.to_dict(),
        }


@dataclass
class VisibilityPolicy:
    """What a viewer may see of a referral, for one department row."""
    role: ViewerRole
    state: ReceiverState
    additional_info: bool
    chat: bool
    basic_info: bool = True
    documents: bool = True
    available_actions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "state": self.state.value,
            "label": self.state.label,
            "basic_info": self.basic_info,
            "documents": self.documents,
            "additional_info": self.additional_info,
            "chat": self.chat,
            "available_actions": list(self.available_actions),
        }


class ReferralStatusEngine:
    """Transition function and visibility function for department rows."""

    def __init__(self):
        self.logger = logging.getLogger("service.StatusEngine")

    # =========================================================================
    # Transitions
    # =========================================================================

    def check(self, row: DepartmentStatus, event: ReceiverEvent) -> ReceiverState:
        """Return the target state for ``event`` or raise InvalidTransition."""
        state = row.state

        if (state, event) in NO_OP_TRANSITIONS:
            return state

        target = TRANSITIONS.get((state, event))
        if target is None:
            raise InvalidTransition(self._invalid_message(state, event), details=self._details(row, event))

        if event == ReceiverEvent.PAY and row.is_paid_by_sender:
            raise InvalidTransition(
                "This referral was already paid by the sender. You can only accept or reject it.",
                details=self._details(row, event),
            )
        return target

    def is_allowed(self, row: DepartmentStatus, event: ReceiverEvent) -> bool:
        try:
            self.check(row, event)
        except InvalidTransition:
            return False
        return True

    def available_actions(self, row: DepartmentStatus) -> List[ReceiverEvent]:
        """Events that would change the row (no-ops excluded)."""
        actions = []
        for event in (ReceiverEvent.ACCEPT, ReceiverEvent.PAY, ReceiverEvent.REJECT):
            if (row.state, event) in NO_OP_TRANSITIONS:
                continue
            if self.is_allowed(row, event):
                actions.append(event)
        return actions

    def apply(
        self,
        row: DepartmentStatus,
        event: ReceiverEvent,
        reason: str = "",
        actor_user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TransitionResult:
        """
        Validate ``event`` against ``row`` and return the resulting row.

        The input row is never mutated.
        """
        previous = row.state
        target = self.check(row, event)

        if (previous, event) in NO_OP_TRANSITIONS:
            self.logger.info(
                "no-op %s on department %s (already %s)",
                event.value, row.department_id, previous.value,
            )
            return TransitionResult(
                event=event,
                previous_state=previous,
                new_state=previous,
                row=row,
                changed=False,
                message=f"Already {previous.label.lower()}.",
            )

        now = now or utcnow()
        if event == ReceiverEvent.ACCEPT:
            new_row = replace(row, status=DepartmentStatusValue.ACTIVE, updated_at=now)
            message = "Accepted."
            if not row.is_paid_by_sender:
                message = "Accepted (pending payment to unlock additional info)."
        elif event == ReceiverEvent.REJECT:
            reason = (reason or "").strip()
            new_row = replace(
                row,
                status=DepartmentStatusValue.REJECTED,
                rejection_reason=reason,
                updated_at=now,
            )
            message = f"Rejected: {reason}." if reason else "Rejected."
        else:
            new_row = replace(
                row,
                status=DepartmentStatusValue.ACTIVE,
                payment_status=PaymentStatus.PAID,
                paid_by_user_id=actor_user_id,
                updated_at=now,
            )
            message = "Payment confirmed. Additional information unlocked."

        self.logger.info(
            "department %s: %s -> %s via %s",
            row.department_id, previous.value, target.value, event.value,
        )
        return TransitionResult(
            event=event,
            previous_state=previous,
            new_state=new_row.state,
            row=new_row,
            changed=True,
            message=message,
        )

    def _invalid_message(self, state: ReceiverState, event: ReceiverEvent) -> str:
        if state == ReceiverState.REJECTED:
            return "This referral was rejected; no further actions are allowed."
        if state in UNLOCKED_STATES and event == ReceiverEvent.PAY:
            return "This referral is already paid."
        return f"Cannot {EVENT_VERBS[event]} a referral that is {state.label}."

    @staticmethod
    def _details(row: DepartmentStatus, event: ReceiverEvent) -> Dict[str, Any]:
        return {
            "department_id": row.department_id,
            "state": row.state.value,
            "event": event.value,
            "is_paid_by_sender": row.is_paid_by_sender,
        }

    # =========================================================================
    # Visibility
    # =========================================================================

    def is_unlocked(self, row: DepartmentStatus) -> bool:
        """Additional patient info and chat are unlocked for this department."""
        state = row.state
        if state == ReceiverState.REJECTED:
            return False
        if state in UNLOCKED_STATES:
            return True
        return row.is_paid_by_sender and row.status != DepartmentStatusValue.PENDING

    def visibility(self, row: DepartmentStatus, role: ViewerRole) -> VisibilityPolicy:
        unlocked = self.is_unlocked(row)
        if role == ViewerRole.SENDER:
            return VisibilityPolicy(
                role=role,
                state=row.state,
                additional_info=True,
                chat=unlocked,
            )
        return VisibilityPolicy(
            role=role,
            state=row.state,
            additional_info=unlocked,
            chat=unlocked,
            available_actions=[e.value for e in self.available_actions(row)],
        )

    def render_for_viewer(
        self,
        referral: Referral,
        role: ViewerRole,
        department_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Referral as a viewer may see it.

        Locked sections are present with ``locked: true`` and null fields.
        Receivers see only their own department row and log entries.
        """
        data = referral.to_dict()
        additional = referral.additional_patient.to_dict()
        locked_fields = {key: None for key in AdditionalPatientInfo.__dataclass_fields__}

        data["documents_list"] = referral.documents.to_list()
        data["primary_insurance"] = data["insurance"][0] if data["insurance"] else None

        if role == ViewerRole.SENDER:
            data["additional_patient"] = {"locked": False, "fields": additional}
            data["overall_status"] = overall_status(referral).value
            receivers = []
            for row in referral.department_statuses:
                policy = self.visibility(row, role)
                item = row.to_dict()
                item["state"] = policy.state.value
                item["label"] = policy.state.label
                item["chat_unlocked"] = policy.chat
                receivers.append(item)
            data["department_statuses"] = receivers
            data["services_requested"] = referral.services_requested
            data["viewer"] = {"role": role.value, "department_id": None}
            return data

        row = referral.department_status(department_id)
        policy = self.visibility(row, role)
        data["department_statuses"] = [row.to_dict()]
        data["visibility"] = policy.to_dict()
        data["additional_patient"] = (
            {"locked": False, "fields": additional}
            if policy.additional_info
            else {"locked": True, "fields": locked_fields}
        )
        data["services_requested"] = (
            list(row.services_override) if row.services_override else referral.services_requested
        )
        data["activity_log"] = [
            entry for entry in data["activity_log"]
            if entry["department_id"] in (None, department_id)
        ]
        data["viewer"] = {"role": role.value, "department_id": department_id}
        return data
