"""
Referral Service

Orchestrates the referral lifecycle on top of the status engine:

    create / update draft -> send (free, credits or card) -> forward
    receiver: accept / reject / quote / pay (credits now, card via confirm)
    chat per receiving department, unlocked with the additional info block

Every operation validates before it writes. Department rows are written with
the last-seen version; a stale version raises ConflictError and the client
re-fetches.
"""

from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional, Tuple

from rcn.domain.billing import (
    PayerRole,
    PaymentRecord,
    PaymentRecordStatus,
    PaymentSource,
    PaymentSummary,
)
from rcn.domain.directory import Actor
from rcn.domain.referral import (
    ActivityEntry,
    ChatMessage,
    DepartmentStatus,
    PaymentType,
    ReceiverEvent,
    Referral,
    ViewerRole,
    utcnow,
)
from rcn.errors import (
    ConflictError,
    InsufficientCredits,
    InvalidTransition,
    NetworkError,
    PaymentFailed,
    PaymentMethodRequired,
    PermissionDenied,
    ValidationError,
)
from rcn.services.activity_log import ActivityLogService
from rcn.services.referral_validation import (
    apply_payload,
    build_referral,
    parse_referral_payload,
    validate_for_send,
)
from rcn.services.status_engine import ReferralStatusEngine, TransitionResult


@dataclass
class PaymentOutcome:
    """Result of initiating or confirming a receiver payment."""
    payment: PaymentRecord
    summary: Optional[PaymentSummary] = None
    department_status: Optional[DepartmentStatus] = None
    requires_confirmation: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payment": self.payment.to_dict(include_secret=self.requires_confirmation),
            "client_secret": self.payment.client_secret if self.requires_confirmation else None,
            "requires_confirmation": self.requires_confirmation,
            "summary": self.summary.to_dict() if self.summary else None,
            "department_status": self.department_status.to_dict() if self.department_status else None,
        }


def _parse_source(value) -> PaymentSource:
    try:
        return PaymentSource(value)
    except ValueError as e:
        raise ValidationError("Payment source must be 'credit' or 'payment'.", field="source") from e


def _parse_payment_type(value) -> PaymentType:
    try:
        return PaymentType(value or PaymentType.FREE.value)
    except ValueError as e:
        raise ValidationError("Payment type must be 'free', 'credit' or 'payment'.", field="payment_type") from e


class ReferralService:
    """Referral lifecycle, receiver actions, payments and chat."""

    def __init__(
        self,
        referrals,
        directory,
        processor,
        engine: Optional[ReferralStatusEngine] = None,
        activity: Optional[ActivityLogService] = None,
    ):
        self.referrals = referrals
        self.directory = directory
        self.processor = processor
        self.engine = engine or ReferralStatusEngine()
        self.activity = activity or ActivityLogService(referrals)
        self.logger = logging.getLogger("service.ReferralService")

    # =========================================================================
    # Access
    # =========================================================================

    def _require_sender(self, actor: Actor, referral: Referral) -> None:
        if actor.organization_id != referral.sender_organization_id:
            raise PermissionDenied("Only the sending organization can do this.")

    def _can_act_for(self, actor: Actor, row: DepartmentStatus) -> bool:
        if row.organization_id != actor.organization_id:
            return False
        return actor.is_admin or actor.department_id in (None, row.department_id)

    def _require_receiver(self, actor: Actor, referral: Referral, department_id: str) -> DepartmentStatus:
        if referral.is_draft:
            raise PermissionDenied("This referral has not been sent.")
        row = referral.department_status(department_id)
        if not self._can_act_for(actor, row):
            raise PermissionDenied("You can only act for your own department.")
        return row

    def _resolve_viewer(
        self, actor: Actor, referral: Referral, department_id: Optional[str] = None
    ) -> Tuple[ViewerRole, Optional[str]]:
        """Sender organization sees the whole referral; receivers see one row."""
        is_sender = actor.organization_id == referral.sender_organization_id
        if department_id is not None:
            row = referral.department_status(department_id)
            if not referral.is_draft and self._can_act_for(actor, row):
                return ViewerRole.RECEIVER, department_id
            if is_sender:
                return ViewerRole.SENDER, None
            raise PermissionDenied("You can only act for your own department.")
        if is_sender:
            return ViewerRole.SENDER, None
        if not referral.is_draft:
            for row in referral.department_statuses:
                if self._can_act_for(actor, row):
                    return ViewerRole.RECEIVER, row.department_id
        raise PermissionDenied("You do not have access to this referral.")

    @staticmethod
    def _check_version(row: DepartmentStatus, expected_version: Optional[int]) -> None:
        if expected_version is not None and int(expected_version) != row.version:
            raise ConflictError(details={
                "department_id": row.department_id,
                "expected_version": int(expected_version),
                "current_version": row.version,
            })

    # =========================================================================
    # Reads
    # =========================================================================

    def get_referral(self, actor: Actor, referral_id: str, department_id: Optional[str] = None) -> Dict[str, Any]:
        """Referral as the actor may see it (locked sections redacted)."""
        referral = self.referrals.get_referral(referral_id)
        role, viewer_department = self._resolve_viewer(actor, referral, department_id)
        return self.engine.render_for_viewer(referral, role, viewer_department)

    def list_activity(
        self, actor: Actor, referral_id: str, department_id: Optional[str] = None
    ) -> List[ActivityEntry]:
        referral = self.referrals.get_referral(referral_id)
        role, viewer_department = self._resolve_viewer(actor, referral, department_id)
        scope = viewer_department if role == ViewerRole.RECEIVER else department_id
        return self.activity.entries(referral_id, scope)

    # =========================================================================
    # Sender: create, draft, send, forward
    # =========================================================================

    def create_referral(self, actor: Actor, data: Optional[Dict[str, Any]]) -> Referral:
        """Create a draft, or create and send in one step when is_draft is false."""
        payload = parse_referral_payload(data)
        referral = build_referral(payload, actor.organization_id, actor.user_id)

        if payload.is_draft:
            self.referrals.create_referral(referral)
            self.logger.info("Draft %s created by %s", referral.referral_id, actor.user_id)
            return referral

        payment_type = _parse_payment_type(payload.payment_type)
        validate_for_send(referral, payload.department_ids, self.directory)
        payment = self._collect_sender_payment(
            actor, referral, len(payload.department_ids), payment_type, payload.payment_method_id
        )

        now = utcnow()
        referral.is_draft = False
        referral.payment_type = payment_type
        referral.sent_at = now
        referral.updated_at = now
        referral.department_statuses = self._new_rows(
            payload.department_ids, is_paid_by_sender=payment is not None, now=now
        )
        referral.activity_log = [self._sent_entry(len(payload.department_ids), now)]
        self.referrals.create_referral(referral)
        if payment is not None:
            self.referrals.record_payment(payment)

        self.logger.info(
            "Referral %s sent to %d receiver(s) (%s)",
            referral.referral_id, len(payload.department_ids), payment_type.value,
        )
        return referral

    def update_draft(self, actor: Actor, referral_id: str, data: Optional[Dict[str, Any]]) -> Referral:
        referral = self.referrals.get_referral(referral_id)
        self._require_sender(actor, referral)
        if not referral.is_draft:
            raise InvalidTransition("Only draft referrals can be edited.")
        payload = parse_referral_payload(data)
        apply_payload(referral, payload)
        return self.referrals.update_referral(referral)

    def send_referral(self, actor: Actor, referral_id: str, data: Optional[Dict[str, Any]]) -> Referral:
        """Dispatch a draft to the selected departments."""
        data = data or {}
        referral = self.referrals.get_referral(referral_id)
        self._require_sender(actor, referral)
        if not referral.is_draft:
            raise InvalidTransition("This referral has already been sent.")

        department_ids = parse_referral_payload({"department_ids": data.get("department_ids")}).department_ids
        payment_type = _parse_payment_type(data.get("payment_type"))
        validate_for_send(referral, department_ids, self.directory)
        payment = self._collect_sender_payment(
            actor, referral, len(department_ids), payment_type, data.get("payment_method_id")
        )

        now = utcnow()
        rows = self._new_rows(department_ids, is_paid_by_sender=payment is not None, now=now)
        self.referrals.send_referral(referral_id, rows, payment_type, now)
        self.referrals.append_activity(referral_id, self._sent_entry(len(department_ids), now))
        if payment is not None:
            self.referrals.record_payment(payment)

        self.logger.info("Referral %s sent to %d receiver(s) (%s)", referral_id, len(department_ids), payment_type.value)
        return self.referrals.get_referral(referral_id)

    def quote_send(self, actor: Actor, referral_id: str, data: Optional[Dict[str, Any]]) -> PaymentSummary:
        """Sender quote for paying on behalf of every selected receiver."""
        data = data or {}
        referral = self.referrals.get_referral(referral_id)
        self._require_sender(actor, referral)
        source = _parse_source(data.get("source") or data.get("payment_type"))
        department_ids = parse_referral_payload({"department_ids": data.get("department_ids")}).department_ids
        recipients = len(department_ids) or len(referral.department_statuses)
        if recipients == 0:
            raise ValidationError("Select at least one receiving department.", field="department_ids")
        return self.processor.quote(
            referral_id, None, data.get("payment_method_id"), source=source, recipients=recipients
        )

    def add_receivers(
        self,
        actor: Actor,
        referral_id: str,
        department_ids: List[str],
        services_override: Optional[List[str]] = None,
    ) -> Referral:
        """Forward a sent referral to more departments. New rows are receiver-paid."""
        referral = self.referrals.get_referral(referral_id)
        self._require_sender(actor, referral)
        if referral.is_draft:
            raise InvalidTransition("Send the referral before forwarding it.")

        department_ids = parse_referral_payload({"department_ids": department_ids}).department_ids
        if not department_ids:
            raise ValidationError("Select at least one receiving department.", field="department_ids")
        for department_id in department_ids:
            department = self.directory.find_department(department_id)
            if department is None:
                raise ValidationError(f"Unknown department: {department_id}.", field="department_ids")
            if not department.is_active and not referral.has_department(department_id):
                raise ValidationError(f"{department.name} is not accepting referrals.", field="department_ids")

        new_ids = [d for d in department_ids if not referral.has_department(d)]
        if not new_ids:
            self.logger.info("Forward of %s: all departments already receive it", referral_id)
            return referral

        services = [s.strip() for s in services_override or [] if s and s.strip()] or None
        rows = self._new_rows(new_ids, is_paid_by_sender=False, services_override=services)
        self.referrals.add_department_statuses(referral_id, rows)
        self.activity.append(
            referral_id,
            f"Referral forwarded to {len(new_ids)} receiver(s).",
            ActivityLogService.REFERRAL_FORWARDED,
            actor=actor,
            metadata={"department_ids": new_ids},
        )
        return self.referrals.get_referral(referral_id)

    def _new_rows(
        self,
        department_ids: List[str],
        is_paid_by_sender: bool,
        services_override: Optional[List[str]] = None,
        now=None,
    ) -> List[DepartmentStatus]:
        now = now or utcnow()
        rows = []
        for department_id in department_ids:
            department = self.directory.find_department(department_id)
            organization = self.directory.get_organization(department.organization_id)
            rows.append(
                DepartmentStatus(
                    department_id=department_id,
                    department_name=department.name,
                    organization_id=organization.organization_id,
                    organization_name=organization.name,
                    is_paid_by_sender=is_paid_by_sender,
                    services_override=list(services_override) if services_override else None,
                    created_at=now,
                    updated_at=now,
                )
            )
        return rows

    @staticmethod
    def _sent_entry(recipients: int, at) -> ActivityEntry:
        return ActivityEntry(
            actor="System",
            message=f"Referral sent to {recipients} receiver(s).",
            event_type=ActivityLogService.REFERRAL_SENT,
            at=at,
        )

    def _collect_sender_payment(
        self,
        actor: Actor,
        referral: Referral,
        recipients: int,
        payment_type: PaymentType,
        payment_method_id: Optional[str],
    ) -> Optional[PaymentRecord]:
        """Charge the sender for every receiver. Nothing is sent if this fails."""
        if payment_type == PaymentType.FREE:
            return None

        source = PaymentSource(payment_type.value)
        if source == PaymentSource.PAYMENT and not payment_method_id:
            raise PaymentMethodRequired()

        summary = self.processor.quote(
            referral.referral_id, None, payment_method_id, source=source, recipients=recipients
        )
        payment = self._payment_from_summary(actor, summary, PayerRole.SENDER, None, payment_method_id)

        if source == PaymentSource.CREDIT:
            self._require_balance(actor.organization_id, summary)
            if not self.processor.debit_credits(
                actor.organization_id,
                summary.total,
                reference_id=referral.referral_id,
                user_id=actor.user_id,
                description=f"Referral {referral.referral_id} sent to {recipients} receiver(s)",
            ):
                raise InsufficientCredits()
        else:
            payment.client_secret = self.processor.create_intent(payment)
            result = self.processor.charge(payment_method_id, payment.client_secret)
            if not result.success:
                self.logger.warning("Sender payment for %s declined: %s", referral.referral_id, result.message)
                raise PaymentFailed(result.message or None)
            payment.provider_reference = result.provider_reference

        payment.status = PaymentRecordStatus.SUCCEEDED
        payment.completed_at = utcnow()
        return payment

    # =========================================================================
    # Receiver: accept / reject
    # =========================================================================

    def accept(
        self,
        actor: Actor,
        referral_id: str,
        department_id: str,
        expected_version: Optional[int] = None,
    ) -> TransitionResult:
        return self._transition(actor, referral_id, department_id, ReceiverEvent.ACCEPT, expected_version)

    def reject(
        self,
        actor: Actor,
        referral_id: str,
        department_id: str,
        reason: str = "",
        expected_version: Optional[int] = None,
    ) -> TransitionResult:
        return self._transition(
            actor, referral_id, department_id, ReceiverEvent.REJECT, expected_version, reason=reason
        )

    def _transition(
        self,
        actor: Actor,
        referral_id: str,
        department_id: str,
        event: ReceiverEvent,
        expected_version: Optional[int],
        reason: str = "",
    ) -> TransitionResult:
        referral = self.referrals.get_referral(referral_id)
        row = self._require_receiver(actor, referral, department_id)
        self._check_version(row, expected_version)

        try:
            result = self.engine.apply(row, event, reason=reason, actor_user_id=actor.user_id)
        except InvalidTransition as e:
            self.logger.warning("%s on %s/%s refused: %s", event.value, referral_id, department_id, e.message)
            raise
        if not result.changed:
            return result

        event_type = (
            ActivityLogService.REFERRAL_ACCEPTED
            if event == ReceiverEvent.ACCEPT
            else ActivityLogService.REFERRAL_REJECTED
        )
        entry = self.activity.build(result.message, event_type, actor=actor, department_id=department_id)
        result.row = self.referrals.update_department_status(referral_id, result.row, row.version, entry=entry)
        return result

    # =========================================================================
    # Receiver: quote and pay
    # =========================================================================

    def quote(
        self,
        actor: Actor,
        referral_id: str,
        department_id: str,
        source="payment",
        payment_method_id: Optional[str] = None,
    ) -> PaymentSummary:
        """Advisory unlock quote for one department. Marks nothing paid."""
        referral = self.referrals.get_referral(referral_id)
        row = self._require_receiver(actor, referral, department_id)
        self.engine.check(row, ReceiverEvent.PAY)
        return self.processor.quote(
            referral_id, department_id, payment_method_id, source=_parse_source(source), recipients=1
        )

    def initiate_payment(
        self,
        actor: Actor,
        referral_id: str,
        department_id: str,
        source="payment",
        payment_method_id: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> PaymentOutcome:
        """
        Start a receiver payment.

        Credits are debited and the department unlocked immediately. Card
        payments return a client secret and stay unpaid until confirmed.
        """
        referral = self.referrals.get_referral(referral_id)
        row = self._require_receiver(actor, referral, department_id)
        self._check_version(row, expected_version)
        self.engine.check(row, ReceiverEvent.PAY)

        source = _parse_source(source)
        if source == PaymentSource.PAYMENT and not payment_method_id:
            raise PaymentMethodRequired()

        summary = self.processor.quote(referral_id, department_id, payment_method_id, source=source, recipients=1)
        payment = self._payment_from_summary(actor, summary, PayerRole.RECEIVER, department_id, payment_method_id)

        if source == PaymentSource.CREDIT:
            self._require_balance(actor.organization_id, summary)
            self.activity.append(
                referral_id,
                f"Payment initiated: {summary.total} credits.",
                ActivityLogService.PAYMENT_INITIATED,
                actor=actor,
                department_id=department_id,
                metadata={"payment_id": payment.payment_id, "source": source.value},
            )
            if not self.processor.debit_credits(
                actor.organization_id,
                summary.total,
                reference_id=payment.payment_id,
                user_id=actor.user_id,
                description=f"Unlock referral {referral_id}",
            ):
                payment.status = PaymentRecordStatus.FAILED
                payment.failure_reason = InsufficientCredits.default_message
                self.referrals.record_payment(payment)
                raise InsufficientCredits()

            payment.status = PaymentRecordStatus.SUCCEEDED
            payment.completed_at = utcnow()
            self.referrals.record_payment(payment)
            try:
                stored = self._mark_paid(actor, referral_id, row)
            except ConflictError:
                self.directory.add_credits(
                    actor.organization_id,
                    summary.total,
                    transaction_type="refund",
                    reference_id=payment.payment_id,
                    user_id=actor.user_id,
                    description=f"Refund: referral {referral_id} changed before unlock",
                )
                raise
            return PaymentOutcome(payment=payment, summary=summary, department_status=stored)

        payment.client_secret = self.processor.create_intent(payment)
        self.referrals.record_payment(payment)
        self.activity.append(
            referral_id,
            f"Payment initiated: ${summary.total} by card.",
            ActivityLogService.PAYMENT_INITIATED,
            actor=actor,
            department_id=department_id,
            metadata={"payment_id": payment.payment_id, "source": source.value},
        )
        return PaymentOutcome(payment=payment, summary=summary, department_status=row, requires_confirmation=True)

    def confirm_payment(
        self,
        actor: Actor,
        payment_id: str,
        payment_method_id: Optional[str] = None,
    ) -> PaymentOutcome:
        """Charge a pending card payment; only success marks the department paid."""
        payment = self.referrals.get_payment(payment_id)
        if payment.organization_id != actor.organization_id:
            raise PermissionDenied("This payment belongs to another organization.")
        if not payment.is_open:
            raise InvalidTransition(f"This payment is already {payment.status.value}.")

        referral = self.referrals.get_referral(payment.referral_id)
        row = self._require_receiver(actor, referral, payment.department_id)
        try:
            self.engine.check(row, ReceiverEvent.PAY)
        except InvalidTransition as e:
            self._close_payment(payment, PaymentRecordStatus.FAILED, e.message)
            raise

        method = payment_method_id or payment.payment_method_id
        if not method:
            raise PaymentMethodRequired()

        try:
            result = self.processor.charge(method, payment.client_secret)
        except NetworkError as e:
            self.logger.error("Charge for %s did not complete: %s", payment_id, e.message)
            self._close_payment(payment, PaymentRecordStatus.FAILED, e.message)
            raise

        if not result.success:
            self.logger.warning("Charge for %s declined: %s", payment_id, result.message)
            self._close_payment(payment, PaymentRecordStatus.FAILED, result.message)
            raise PaymentFailed(result.message or None, details={"payment_id": payment_id})

        payment.payment_method_id = method
        payment.provider_reference = result.provider_reference
        stored = self._mark_paid_after_charge(actor, payment, row)
        self._close_payment(payment, PaymentRecordStatus.SUCCEEDED)
        return PaymentOutcome(payment=payment, department_status=stored)

    def cancel_payment(self, actor: Actor, payment_id: str) -> PaymentRecord:
        """Abandon a pending card payment. The department row is not touched."""
        payment = self.referrals.get_payment(payment_id)
        if payment.organization_id != actor.organization_id:
            raise PermissionDenied("This payment belongs to another organization.")
        if not payment.is_open:
            raise InvalidTransition(f"This payment is already {payment.status.value}.")
        self._close_payment(payment, PaymentRecordStatus.CANCELLED)
        self.logger.info("Payment %s cancelled by %s", payment_id, actor.user_id)
        return payment

    def _mark_paid(self, actor: Actor, referral_id: str, row: DepartmentStatus) -> DepartmentStatus:
        result = self.engine.apply(row, ReceiverEvent.PAY, actor_user_id=actor.user_id)
        entry = self.activity.build(
            result.message,
            ActivityLogService.PAYMENT_CONFIRMED,
            actor=actor,
            department_id=row.department_id,
        )
        return self.referrals.update_department_status(referral_id, result.row, row.version, entry=entry)

    def _mark_paid_after_charge(self, actor: Actor, payment: PaymentRecord, row: DepartmentStatus) -> DepartmentStatus:
        """
        Unlock the department for a card that has already been charged.

        A colleague may have written the row while the charge was running.
        The payment is reapplied to the fresh row when it still accepts one;
        otherwise the charge is refunded and the conflict reported.
        """
        try:
            return self._mark_paid(actor, payment.referral_id, row)
        except ConflictError:
            fresh = self.referrals.get_referral(payment.referral_id).department_status(row.department_id)
            try:
                self.engine.check(fresh, ReceiverEvent.PAY)
            except InvalidTransition as e:
                self._refund_charge(payment, e.message)
                raise ConflictError(
                    "This referral changed during payment; the charge was refunded.",
                    details={"payment_id": payment.payment_id, "refunded": True},
                ) from e
            self.logger.info("Row %s/%s moved during charge; reapplying payment",
                             payment.referral_id, row.department_id)
            try:
                return self._mark_paid(actor, payment.referral_id, fresh)
            except ConflictError:
                self._refund_charge(payment, "Referral changed during payment.")
                raise

    def _refund_charge(self, payment: PaymentRecord, reason: str) -> None:
        result = self.processor.refund(payment.provider_reference)
        if not result.success:
            self.logger.error("Refund of %s failed: %s", payment.payment_id, result.message)
            self._close_payment(payment, PaymentRecordStatus.SUCCEEDED, f"Refund pending: {result.message}")
            return
        self.logger.warning("Payment %s refunded: %s", payment.payment_id, reason)
        self._close_payment(payment, PaymentRecordStatus.REFUNDED, reason)

    def _close_payment(self, payment: PaymentRecord, status: PaymentRecordStatus, reason: str = "") -> None:
        payment.status = status
        payment.failure_reason = reason or ""
        payment.completed_at = utcnow()
        self.referrals.update_payment(payment)

    def _payment_from_summary(
        self,
        actor: Actor,
        summary: PaymentSummary,
        payer_role: PayerRole,
        department_id: Optional[str],
        payment_method_id: Optional[str],
    ) -> PaymentRecord:
        return PaymentRecord(
            referral_id=summary.referral_id,
            department_id=department_id,
            organization_id=actor.organization_id,
            payer_role=payer_role,
            source=summary.source,
            payment_method_id=payment_method_id,
            amount=summary.base_amount,
            fee=summary.fee,
            total=summary.total,
            currency=summary.currency,
            initiated_by_user_id=actor.user_id,
        )

    def _require_balance(self, organization_id: str, summary: PaymentSummary) -> None:
        organization = self.directory.get_organization(organization_id)
        if organization.credit_balance < summary.total:
            raise InsufficientCredits(details={
                "required": str(summary.total),
                "balance": str(organization.credit_balance),
            })

    # =========================================================================
    # Chat
    # =========================================================================

    def _chat_access(self, actor: Actor, referral_id: str, department_id: str):
        referral = self.referrals.get_referral(referral_id)
        role, _ = self._resolve_viewer(actor, referral, department_id)
        row = referral.department_status(department_id)
        return role, self.engine.visibility(row, role)

    def list_chat(self, actor: Actor, referral_id: str, department_id: str) -> Dict[str, Any]:
        """Messages between the sender and one department; empty while locked."""
        _, policy = self._chat_access(actor, referral_id, department_id)
        if not policy.chat:
            return {"locked": True, "messages": []}
        messages = self.referrals.list_chat_messages(referral_id, department_id)
        return {"locked": False, "messages": [m.to_dict() for m in messages]}

    def post_chat_message(self, actor: Actor, referral_id: str, department_id: str, text: str) -> ChatMessage:
        role, policy = self._chat_access(actor, referral_id, department_id)
        if not policy.chat:
            raise PermissionDenied("Chat is locked until this referral is unlocked for the department.")
        text = (text or "").strip()
        if not text:
            raise ValidationError("Message text is required.", field="text")
        message = ChatMessage(
            referral_id=referral_id,
            department_id=department_id,
            from_role=role,
            from_name=actor.label,
            sender_user_id=actor.user_id,
            text=text,
        )
        return self.referrals.add_chat_message(message)
