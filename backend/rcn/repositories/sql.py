"""
SQLAlchemy repositories (PostgreSQL in production, SQLite in tests).

Department status writes are conditional on the stored version:

    UPDATE department_status SET ..., version = :expected + 1
     WHERE referral_id = :rid AND department_id = :did AND version = :expected

Zero affected rows means someone else wrote first (ConflictError).
"""

from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
import logging
from typing import Callable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from rcn.db.postgres import get_db_session
from rcn.domain.billing import (
    CreditTransaction,
    PayerRole,
    PaymentRecord,
    PaymentRecordStatus,
    PaymentSource,
)
from rcn.domain.directory import Branch, Department, Organization, StaffUser
from rcn.domain.referral import (
    ActivityEntry,
    AdditionalPatientInfo,
    ChatMessage,
    DepartmentStatus,
    DepartmentStatusValue,
    Documents,
    InsuranceEntry,
    Patient,
    PaymentStatus,
    PaymentType,
    PrimaryCare,
    Referral,
    SenderInfo,
    ViewerRole,
    utcnow,
)
from rcn.errors import (
    ConflictError,
    DepartmentNotFound,
    NetworkError,
    NotFound,
    PaymentNotFound,
    ReferralNotFound,
    ValidationError,
)
from rcn.models import (
    BranchRecord,
    CreditTransactionRecord,
    DepartmentRecord,
    DepartmentStatusRecord,
    OrganizationRecord,
    ReferralActivityRecord,
    ReferralChatMessageRecord,
    ReferralInsuranceRecord,
    ReferralPaymentRecord,
    ReferralRecord,
    StaffUserRecord,
)
from rcn.repositories.base import DirectoryRepository, ReferralRepository


class _SqlRepository:
    """Session handling shared by the SQL repositories."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self.session_factory = session_factory or get_db_session
        self.logger = logging.getLogger(f"repository.{self.__class__.__name__}")

    @contextmanager
    def _transaction(self):
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except OperationalError as e:
            session.rollback()
            self.logger.error("Database unreachable: %s", e)
            raise NetworkError("The database is temporarily unreachable. Please try again.") from e
        except Exception:
            session.rollback()
            raise
        finally:
            # Callers only receive domain copies
            session.close()


# =============================================================================
# Row <-> domain mapping
# =============================================================================

def _status_to_domain(record: DepartmentStatusRecord) -> DepartmentStatus:
    return DepartmentStatus(
        department_id=record.department_id,
        status=DepartmentStatusValue(record.status),
        payment_status=PaymentStatus(record.payment_status),
        is_paid_by_sender=bool(record.is_paid_by_sender),
        rejection_reason=record.rejection_reason or "",
        version=record.version,
        department_name=record.department_name or "",
        organization_id=record.organization_id,
        organization_name=record.organization_name or "",
        services_override=list(record.services_override) if record.services_override is not None else None,
        paid_by_user_id=record.paid_by_user_id,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _status_values(row: DepartmentStatus) -> dict:
    return {
        "status": row.status.value,
        "payment_status": row.payment_status.value,
        "is_paid_by_sender": row.is_paid_by_sender,
        "rejection_reason": row.rejection_reason or None,
        "department_name": row.department_name,
        "organization_id": row.organization_id,
        "organization_name": row.organization_name,
        "services_override": list(row.services_override) if row.services_override is not None else None,
        "paid_by_user_id": row.paid_by_user_id,
        "updated_at": row.updated_at,
    }


def _status_record(referral_id: str, row: DepartmentStatus) -> DepartmentStatusRecord:
    return DepartmentStatusRecord(
        referral_id=referral_id,
        department_id=row.department_id,
        version=row.version,
        created_at=row.created_at,
        **_status_values(row),
    )


def _activity_to_domain(record: ReferralActivityRecord) -> ActivityEntry:
    return ActivityEntry(
        entry_id=record.entry_id,
        at=record.at,
        actor=record.actor,
        actor_user_id=record.actor_user_id,
        message=record.message,
        event_type=record.event_type,
        department_id=record.department_id,
        metadata=dict(record.metadata_json or {}),
    )


def _activity_record(referral_id: str, entry: ActivityEntry) -> ReferralActivityRecord:
    return ReferralActivityRecord(
        entry_id=entry.entry_id,
        referral_id=referral_id,
        department_id=entry.department_id,
        at=entry.at,
        actor=entry.actor,
        actor_user_id=entry.actor_user_id,
        event_type=entry.event_type,
        message=entry.message,
        metadata_json=entry.metadata or None,
    )


def _insurance_records(referral: Referral) -> List[ReferralInsuranceRecord]:
    return [
        ReferralInsuranceRecord(
            position=position,
            payer=entry.payer,
            policy=entry.policy,
            plan_group=entry.plan_group,
            document=entry.document or None,
        )
        for position, entry in enumerate(referral.insurance)
    ]


def _write_content(record: ReferralRecord, referral: Referral) -> None:
    record.sender_user_id = referral.sender_user_id
    record.sender_json = referral.sender.to_dict()
    record.patient_first_name = referral.patient.first_name
    record.patient_last_name = referral.patient.last_name
    record.patient_dob = referral.patient.dob
    record.patient_gender = referral.patient.gender
    record.address_of_care = referral.patient.address_of_care
    record.speciality_ids = list(referral.speciality_ids)
    record.additional_speciality = referral.additional_speciality
    record.additional_notes = referral.additional_notes
    record.additional_patient_json = referral.additional_patient.to_dict()
    record.documents_json = referral.documents.to_dict()
    record.primary_care_json = referral.primary_care.to_dict()
    record.is_draft = referral.is_draft
    record.payment_type = referral.payment_type.value
    record.updated_at = referral.updated_at
    record.sent_at = referral.sent_at
    record.insurance = _insurance_records(referral)


def _referral_to_domain(record: ReferralRecord) -> Referral:
    return Referral(
        referral_id=record.referral_id,
        sender_organization_id=record.sender_organization_id,
        sender_user_id=record.sender_user_id,
        sender=SenderInfo.from_dict(record.sender_json),
        patient=Patient(
            first_name=record.patient_first_name or "",
            last_name=record.patient_last_name or "",
            dob=record.patient_dob or "",
            gender=record.patient_gender or "",
            address_of_care=record.address_of_care or "",
        ),
        speciality_ids=list(record.speciality_ids or []),
        additional_speciality=record.additional_speciality or "",
        additional_notes=record.additional_notes or "",
        insurance=[
            InsuranceEntry(
                payer=i.payer,
                policy=i.policy,
                plan_group=i.plan_group,
                document=i.document or "",
            )
            for i in record.insurance
        ],
        additional_patient=AdditionalPatientInfo.from_dict(record.additional_patient_json),
        documents=Documents.from_dict(record.documents_json),
        primary_care=PrimaryCare.from_dict(record.primary_care_json),
        is_draft=bool(record.is_draft),
        payment_type=PaymentType(record.payment_type),
        created_at=record.created_at,
        updated_at=record.updated_at,
        sent_at=record.sent_at,
        department_statuses=[_status_to_domain(r) for r in record.department_statuses],
        activity_log=[_activity_to_domain(a) for a in record.activity],
    )


def _payment_to_domain(record: ReferralPaymentRecord) -> PaymentRecord:
    return PaymentRecord(
        payment_id=record.payment_id,
        referral_id=record.referral_id,
        department_id=record.department_id,
        organization_id=record.organization_id,
        payer_role=PayerRole(record.payer_role),
        source=PaymentSource(record.source),
        payment_method_id=record.payment_method_id,
        amount=Decimal(record.amount),
        fee=Decimal(record.fee),
        total=Decimal(record.total),
        currency=record.currency,
        status=PaymentRecordStatus(record.status),
        client_secret=record.client_secret,
        provider_reference=record.provider_reference,
        failure_reason=record.failure_reason or "",
        initiated_by_user_id=record.initiated_by_user_id,
        created_at=record.created_at,
        completed_at=record.completed_at,
    )


def _write_payment(record: ReferralPaymentRecord, payment: PaymentRecord) -> None:
    record.referral_id = payment.referral_id
    record.department_id = payment.department_id
    record.organization_id = payment.organization_id
    record.payer_role = payment.payer_role.value
    record.source = payment.source.value
    record.payment_method_id = payment.payment_method_id
    record.amount = payment.amount
    record.fee = payment.fee
    record.total = payment.total
    record.currency = payment.currency
    record.status = payment.status.value
    record.client_secret = payment.client_secret
    record.provider_reference = payment.provider_reference
    record.failure_reason = payment.failure_reason or None
    record.initiated_by_user_id = payment.initiated_by_user_id
    record.created_at = payment.created_at
    record.completed_at = payment.completed_at


def _transaction_to_domain(record: CreditTransactionRecord) -> CreditTransaction:
    return CreditTransaction(
        transaction_id=record.transaction_id,
        organization_id=record.organization_id,
        direction=record.direction,
        amount=Decimal(record.amount),
        transaction_type=record.transaction_type,
        description=record.description or "",
        reference_id=record.reference_id,
        created_by_user_id=record.created_by_user_id,
        created_at=record.created_at,
    )


def _transaction_record(transaction: CreditTransaction) -> CreditTransactionRecord:
    return CreditTransactionRecord(
        transaction_id=transaction.transaction_id,
        organization_id=transaction.organization_id,
        direction=transaction.direction,
        amount=transaction.amount,
        transaction_type=transaction.transaction_type,
        description=transaction.description,
        reference_id=transaction.reference_id,
        created_by_user_id=transaction.created_by_user_id,
        created_at=transaction.created_at,
    )


def _organization_to_domain(record: OrganizationRecord) -> Organization:
    return Organization(
        organization_id=record.organization_id,
        name=record.name,
        email=record.email or "",
        state=record.state or "",
        credit_balance=Decimal(record.credit_balance or 0).quantize(Decimal("0.01")),
        created_at=record.created_at,
    )


def _branch_to_domain(record: BranchRecord) -> Branch:
    return Branch(
        branch_id=record.branch_id,
        organization_id=record.organization_id,
        name=record.name,
        address=record.address or "",
        status=record.status,
        created_at=record.created_at,
    )


def _department_to_domain(record: DepartmentRecord) -> Department:
    return Department(
        department_id=record.department_id,
        organization_id=record.organization_id,
        branch_id=record.branch_id,
        name=record.name,
        status=record.status,
        created_at=record.created_at,
    )


def _user_to_domain(record: StaffUserRecord) -> StaffUser:
    return StaffUser(
        user_id=record.user_id,
        organization_id=record.organization_id,
        department_id=record.department_id,
        email=record.email,
        display_name=record.display_name or "",
        role=record.role,
        password_hash=record.password_hash,
        status=record.status,
        created_at=record.created_at,
        last_login_at=record.last_login_at,
    )


# =============================================================================
# Referral repository
# =============================================================================

class SqlReferralRepository(_SqlRepository, ReferralRepository):
    """Referrals, department rows, payments, activity and chat in SQL."""

    def _get_record(self, session: Session, referral_id: str) -> ReferralRecord:
        record = session.get(ReferralRecord, referral_id)
        if record is None:
            raise ReferralNotFound(f"Referral {referral_id} not found.", details={"referral_id": referral_id})
        return record

    def create_referral(self, referral: Referral) -> Referral:
        with self._transaction() as session:
            record = ReferralRecord(
                referral_id=referral.referral_id,
                sender_organization_id=referral.sender_organization_id,
                created_at=referral.created_at,
            )
            _write_content(record, referral)
            record.department_statuses = [_status_record(referral.referral_id, r) for r in referral.department_statuses]
            record.activity = [_activity_record(referral.referral_id, e) for e in referral.activity_log]
            session.add(record)
        return referral

    def get_referral(self, referral_id: str) -> Referral:
        with self._transaction() as session:
            return _referral_to_domain(self._get_record(session, referral_id))

    def update_referral(self, referral: Referral) -> Referral:
        with self._transaction() as session:
            record = self._get_record(session, referral.referral_id)
            _write_content(record, referral)
            session.flush()
            return _referral_to_domain(record)

    def send_referral(
        self,
        referral_id: str,
        rows: List[DepartmentStatus],
        payment_type: PaymentType,
        sent_at: datetime,
    ) -> Referral:
        with self._transaction() as session:
            record = self._get_record(session, referral_id)
            record.is_draft = False
            record.payment_type = payment_type.value
            record.sent_at = sent_at
            record.updated_at = sent_at
            for row in rows:
                record.department_statuses.append(_status_record(referral_id, row))
            session.flush()
            return _referral_to_domain(record)

    def add_department_statuses(self, referral_id: str, rows: List[DepartmentStatus]) -> Referral:
        with self._transaction() as session:
            record = self._get_record(session, referral_id)
            existing = {r.department_id for r in record.department_statuses}
            for row in rows:
                if row.department_id not in existing:
                    record.department_statuses.append(_status_record(referral_id, row))
            record.updated_at = utcnow()
            session.flush()
            return _referral_to_domain(record)

    def update_department_status(
        self,
        referral_id: str,
        row: DepartmentStatus,
        expected_version: int,
        entry: Optional[ActivityEntry] = None,
    ) -> DepartmentStatus:
        with self._transaction() as session:
            values = _status_values(row)
            values["version"] = expected_version + 1
            result = session.execute(
                update(DepartmentStatusRecord)
                .where(
                    DepartmentStatusRecord.referral_id == referral_id,
                    DepartmentStatusRecord.department_id == row.department_id,
                    DepartmentStatusRecord.version == expected_version,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                current = session.execute(
                    select(DepartmentStatusRecord.version).where(
                        DepartmentStatusRecord.referral_id == referral_id,
                        DepartmentStatusRecord.department_id == row.department_id,
                    )
                ).scalar_one_or_none()
                if current is None:
                    raise DepartmentNotFound(
                        f"Department {row.department_id} is not a receiver of referral {referral_id}.",
                        details={"referral_id": referral_id, "department_id": row.department_id},
                    )
                self.logger.warning(
                    "Stale write on %s/%s: expected v%s, stored v%s",
                    referral_id, row.department_id, expected_version, current,
                )
                raise ConflictError(details={
                    "referral_id": referral_id,
                    "department_id": row.department_id,
                    "expected_version": expected_version,
                    "current_version": current,
                })
            session.execute(
                update(ReferralRecord)
                .where(ReferralRecord.referral_id == referral_id)
                .values(updated_at=row.updated_at)
                .execution_options(synchronize_session=False)
            )
            if entry is not None:
                session.add(_activity_record(referral_id, entry))
            stored = session.execute(
                select(DepartmentStatusRecord).where(
                    DepartmentStatusRecord.referral_id == referral_id,
                    DepartmentStatusRecord.department_id == row.department_id,
                ).execution_options(populate_existing=True)
            ).scalar_one()
            return _status_to_domain(stored)

    def append_activity(self, referral_id: str, entry: ActivityEntry) -> ActivityEntry:
        with self._transaction() as session:
            self._get_record(session, referral_id)
            session.add(_activity_record(referral_id, entry))
        return entry

    def list_sent(self, organization_id: str) -> List[Referral]:
        with self._transaction() as session:
            records = session.execute(
                select(ReferralRecord).where(ReferralRecord.sender_organization_id == organization_id)
            ).scalars().all()
            return [_referral_to_domain(r) for r in records]

    def list_received(self, department_ids: List[str]) -> List[Referral]:
        if not department_ids:
            return []
        with self._transaction() as session:
            ids = select(DepartmentStatusRecord.referral_id).where(
                DepartmentStatusRecord.department_id.in_(department_ids)
            )
            records = session.execute(
                select(ReferralRecord).where(
                    ReferralRecord.referral_id.in_(ids),
                    ReferralRecord.is_draft.is_(False),
                )
            ).scalars().all()
            return [_referral_to_domain(r) for r in records]

    # Payments

    def record_payment(self, payment: PaymentRecord) -> PaymentRecord:
        with self._transaction() as session:
            record = ReferralPaymentRecord(payment_id=payment.payment_id)
            _write_payment(record, payment)
            session.add(record)
        return payment

    def update_payment(self, payment: PaymentRecord) -> PaymentRecord:
        with self._transaction() as session:
            record = session.get(ReferralPaymentRecord, payment.payment_id)
            if record is None:
                raise PaymentNotFound(details={"payment_id": payment.payment_id})
            _write_payment(record, payment)
        return payment

    def get_payment(self, payment_id: str) -> PaymentRecord:
        with self._transaction() as session:
            record = session.get(ReferralPaymentRecord, payment_id)
            if record is None:
                raise PaymentNotFound(details={"payment_id": payment_id})
            return _payment_to_domain(record)

    def list_payments(self, referral_id: str) -> List[PaymentRecord]:
        with self._transaction() as session:
            records = session.execute(
                select(ReferralPaymentRecord)
                .where(ReferralPaymentRecord.referral_id == referral_id)
                .order_by(ReferralPaymentRecord.created_at)
            ).scalars().all()
            return [_payment_to_domain(r) for r in records]

    # Chat

    def add_chat_message(self, message: ChatMessage) -> ChatMessage:
        with self._transaction() as session:
            session.add(
                ReferralChatMessageRecord(
                    message_id=message.message_id,
                    referral_id=message.referral_id,
                    department_id=message.department_id,
                    from_role=message.from_role.value,
                    from_name=message.from_name,
                    sender_user_id=message.sender_user_id,
                    text=message.text,
                    at=message.at,
                )
            )
        return message

    def list_chat_messages(self, referral_id: str, department_id: str) -> List[ChatMessage]:
        with self._transaction() as session:
            records = session.execute(
                select(ReferralChatMessageRecord)
                .where(
                    ReferralChatMessageRecord.referral_id == referral_id,
                    ReferralChatMessageRecord.department_id == department_id,
                )
                .order_by(ReferralChatMessageRecord.at)
            ).scalars().all()
            return [
                ChatMessage(
                    message_id=r.message_id,
                    referral_id=r.referral_id,
                    department_id=r.department_id,
                    from_role=ViewerRole(r.from_role),
                    from_name=r.from_name or "",
                    sender_user_id=r.sender_user_id,
                    text=r.text,
                    at=r.at,
                )
                for r in records
            ]


# =============================================================================
# Directory repository
# =============================================================================

class SqlDirectoryRepository(_SqlRepository, DirectoryRepository):
    """Organizations, branches, departments, users and wallet in SQL."""

    def create_organization(self, organization: Organization) -> Organization:
        with self._transaction() as session:
            session.add(
                OrganizationRecord(
                    organization_id=organization.organization_id,
                    name=organization.name,
                    email=organization.email,
                    state=organization.state,
                    credit_balance=organization.credit_balance,
                    created_at=organization.created_at,
                )
            )
        return organization

    def get_organization(self, organization_id: str) -> Organization:
        with self._transaction() as session:
            record = session.get(OrganizationRecord, organization_id)
            if record is None:
                raise NotFound(f"Organization {organization_id} not found.")
            return _organization_to_domain(record)

    def create_branch(self, branch: Branch) -> Branch:
        with self._transaction() as session:
            session.add(
                BranchRecord(
                    branch_id=branch.branch_id,
                    organization_id=branch.organization_id,
                    name=branch.name,
                    address=branch.address,
                    status=branch.status,
                    created_at=branch.created_at,
                )
            )
        return branch

    def find_branch(self, branch_id: str) -> Optional[Branch]:
        with self._transaction() as session:
            record = session.get(BranchRecord, branch_id)
            return _branch_to_domain(record) if record else None

    def list_branches(self, organization_id: str) -> List[Branch]:
        with self._transaction() as session:
            records = session.execute(
                select(BranchRecord)
                .where(BranchRecord.organization_id == organization_id)
                .order_by(BranchRecord.created_at)
            ).scalars().all()
            return [_branch_to_domain(r) for r in records]

    def update_branch(self, branch: Branch) -> Branch:
        with self._transaction() as session:
            record = session.get(BranchRecord, branch.branch_id)
            if record is None:
                raise NotFound(f"Branch {branch.branch_id} not found.")
            record.name = branch.name
            record.address = branch.address
            record.status = branch.status
            session.flush()
            return _branch_to_domain(record)

    def create_department(self, department: Department) -> Department:
        with self._transaction() as session:
            session.add(
                DepartmentRecord(
                    department_id=department.department_id,
                    organization_id=department.organization_id,
                    branch_id=department.branch_id,
                    name=department.name,
                    status=department.status,
                    created_at=department.created_at,
                )
            )
        return department

    def find_department(self, department_id: str) -> Optional[Department]:
        with self._transaction() as session:
            record = session.get(DepartmentRecord, department_id)
            return _department_to_domain(record) if record else None

    def list_departments(self, organization_id: Optional[str] = None) -> List[Department]:
        with self._transaction() as session:
            query = select(DepartmentRecord).order_by(DepartmentRecord.created_at)
            if organization_id is not None:
                query = query.where(DepartmentRecord.organization_id == organization_id)
            return [_department_to_domain(r) for r in session.execute(query).scalars().all()]

    def update_department(self, department: Department) -> Department:
        with self._transaction() as session:
            record = session.get(DepartmentRecord, department.department_id)
            if record is None:
                raise NotFound(f"Department {department.department_id} not found.")
            record.name = department.name
            record.branch_id = department.branch_id
            record.status = department.status
            session.flush()
            return _department_to_domain(record)

    def create_user(self, user: StaffUser) -> StaffUser:
        try:
            with self._transaction() as session:
                session.add(
                    StaffUserRecord(
                        user_id=user.user_id,
                        organization_id=user.organization_id,
                        department_id=user.department_id,
                        email=user.email,
                        display_name=user.display_name,
                        role=user.role,
                        password_hash=user.password_hash,
                        status=user.status,
                        created_at=user.created_at,
                    )
                )
        except IntegrityError as e:
            raise ValidationError("A user with this email already exists.", field="email") from e
        return user

    def find_user(self, user_id: str) -> Optional[StaffUser]:
        with self._transaction() as session:
            record = session.get(StaffUserRecord, user_id)
            return _user_to_domain(record) if record else None

    def list_users(self, organization_id: str) -> List[StaffUser]:
        with self._transaction() as session:
            records = session.execute(
                select(StaffUserRecord)
                .where(StaffUserRecord.organization_id == organization_id)
                .order_by(StaffUserRecord.created_at)
            ).scalars().all()
            return [_user_to_domain(r) for r in records]

    def update_user(self, user: StaffUser) -> StaffUser:
        try:
            with self._transaction() as session:
                record = session.get(StaffUserRecord, user.user_id)
                if record is None:
                    raise NotFound(f"User {user.user_id} not found.")
                record.email = user.email
                record.display_name = user.display_name
                record.role = user.role
                record.department_id = user.department_id
                record.status = user.status
                session.flush()
                return _user_to_domain(record)
        except IntegrityError as e:
            raise ValidationError("A user with this email already exists.", field="email") from e

    def find_user_by_email(self, email: str) -> Optional[StaffUser]:
        with self._transaction() as session:
            record = session.execute(
                select(StaffUserRecord).where(func.lower(StaffUserRecord.email) == email.strip().lower())
            ).scalar_one_or_none()
            return _user_to_domain(record) if record else None

    def record_login(self, user_id: str, at: datetime) -> None:
        with self._transaction() as session:
            record = session.get(StaffUserRecord, user_id)
            if record is None:
                raise NotFound(f"User {user_id} not found.")
            record.last_login_at = at

    def debit_credits(
        self,
        organization_id: str,
        amount: Decimal,
        reference_id: Optional[str] = None,
        user_id: Optional[str] = None,
        description: str = "",
    ) -> Optional[CreditTransaction]:
        with self._transaction() as session:
            result = session.execute(
                update(OrganizationRecord)
                .where(
                    OrganizationRecord.organization_id == organization_id,
                    OrganizationRecord.credit_balance >= amount,
                )
                .values(credit_balance=OrganizationRecord.credit_balance - amount)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                if session.get(OrganizationRecord, organization_id) is None:
                    raise NotFound(f"Organization {organization_id} not found.")
                return None
            transaction = CreditTransaction(
                organization_id=organization_id,
                direction="out",
                amount=amount,
                transaction_type="referral_payment",
                description=description,
                reference_id=reference_id,
                created_by_user_id=user_id,
            )
            session.add(_transaction_record(transaction))
            return transaction

    def add_credits(
        self,
        organization_id: str,
        amount: Decimal,
        transaction_type: str = "top_up",
        reference_id: Optional[str] = None,
        user_id: Optional[str] = None,
        description: str = "",
    ) -> CreditTransaction:
        with self._transaction() as session:
            result = session.execute(
                update(OrganizationRecord)
                .where(OrganizationRecord.organization_id == organization_id)
                .values(credit_balance=OrganizationRecord.credit_balance + amount)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFound(f"Organization {organization_id} not found.")
            transaction = CreditTransaction(
                organization_id=organization_id,
                direction="in",
                amount=amount,
                transaction_type=transaction_type,
                description=description,
                reference_id=reference_id,
                created_by_user_id=user_id,
            )
            session.add(_transaction_record(transaction))
            return transaction

    def list_credit_transactions(self, organization_id: str) -> List[CreditTransaction]:
        with self._transaction() as session:
            records = session.execute(
                select(CreditTransactionRecord)
                .where(CreditTransactionRecord.organization_id == organization_id)
                .order_by(CreditTransactionRecord.created_at.desc())
            ).scalars().all()
            return [_transaction_to_domain(r) for r in records]
