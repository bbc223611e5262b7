"""
Unit tests for the SQLAlchemy repositories, run against in-memory SQLite.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rcn.db.demo_seed import SENDER_ORG_ID, build_demo_directory, build_demo_referral
from rcn.db.postgres import init_db
from rcn.domain.billing import PaymentRecord, PaymentRecordStatus, PaymentSource
from rcn.domain.referral import ActivityEntry, ChatMessage, DepartmentStatus, ReceiverState, ViewerRole, utcnow
from rcn.errors import (
    ConflictError,
    DepartmentNotFound,
    NotFound,
    PaymentNotFound,
    ReferralNotFound,
    ValidationError,
)
from rcn.repositories.sql import SqlDirectoryRepository, SqlReferralRepository


GREEN_VALLEY = "DEP-greenvalley-intake"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def directory(session_factory):
    repository = SqlDirectoryRepository(session_factory)
    seeded = build_demo_directory("not-a-real-hash")
    for org in seeded["organizations"]:
        repository.create_organization(org)
    for branch in seeded["branches"]:
        repository.create_branch(branch)
    for department in seeded["departments"]:
        repository.create_department(department)
    for user in seeded["users"]:
        repository.create_user(user)
    return repository


@pytest.fixture
def referrals(session_factory, directory):
    repository = SqlReferralRepository(session_factory)
    repository.create_referral(build_demo_referral())
    return repository


# =============================================================================
# Referrals
# =============================================================================

class TestSqlReferralRepository:

    def test_round_trip(self, referrals):
        referral = referrals.get_referral("REF-10291")
        assert referral.patient.first_name == "Maria"
        assert [e.payer for e in referral.insurance] == ["CountyCare", "Medicare Part A"]
        assert [r.state for r in referral.department_statuses] == [
            ReceiverState.ACCEPTED, ReceiverState.PENDING, ReceiverState.REJECTED,
        ]
        assert len(referral.activity_log) == 3
        assert referral.documents.wound_photos == ["https://files.example.org/REF-10291/wound-1.jpg"]

    def test_missing_referral(self, referrals):
        with pytest.raises(ReferralNotFound):
            referrals.get_referral("REF-missing")

    def test_conditional_status_write(self, referrals):
        row = referrals.get_referral("REF-10291").department_status(GREEN_VALLEY)
        stored = referrals.update_department_status("REF-10291", row, row.version)
        assert stored.version == row.version + 1

        with pytest.raises(ConflictError) as exc:
            referrals.update_department_status("REF-10291", row, row.version)
        assert exc.value.details["current_version"] == row.version + 1

    def test_status_write_and_log_entry_share_a_transaction(self, referrals):
        row = referrals.get_referral("REF-10291").department_status(GREEN_VALLEY)
        entry = ActivityEntry(actor="Green Valley PT", message="Accepted", department_id=GREEN_VALLEY)
        referrals.update_department_status("REF-10291", row, row.version, entry=entry)
        assert referrals.get_referral("REF-10291").activity_log[-1].message == "Accepted"

        with pytest.raises(ConflictError):
            referrals.update_department_status(
                "REF-10291", row, row.version, entry=ActivityEntry(actor="Green Valley PT", message="Stale"),
            )
        assert [e.message for e in referrals.get_referral("REF-10291").activity_log].count("Stale") == 0

    def test_unknown_department_row(self, referrals):
        with pytest.raises(DepartmentNotFound):
            referrals.update_department_status("REF-10291", DepartmentStatus(department_id="DEP-x"), 1)

    def test_add_department_statuses_skips_existing(self, referrals):
        referral = referrals.add_department_statuses("REF-10291", [
            DepartmentStatus(department_id=GREEN_VALLEY),
            DepartmentStatus(department_id="DEP-lakeview-intake"),
        ])
        assert len(referral.department_statuses) == 4

    def test_list_received(self, referrals):
        assert [r.referral_id for r in referrals.list_received([GREEN_VALLEY])] == ["REF-10291"]
        assert referrals.list_received(["DEP-citywide-orders"]) == []
        assert referrals.list_received([]) == []

    def test_list_sent(self, referrals):
        assert [r.referral_id for r in referrals.list_sent(SENDER_ORG_ID)] == ["REF-10291"]

    def test_payment_lifecycle(self, referrals):
        payment = PaymentRecord(
            referral_id="REF-10291", organization_id="ORG-greenvalley", source=PaymentSource.PAYMENT,
            amount=Decimal("10.00"), fee=Decimal("0.30"), total=Decimal("10.30"), currency="USD",
            department_id=GREEN_VALLEY,
        )
        referrals.record_payment(payment)
        payment.status = PaymentRecordStatus.SUCCEEDED
        referrals.update_payment(payment)

        stored = referrals.get_payment(payment.payment_id)
        assert stored.status == PaymentRecordStatus.SUCCEEDED
        assert stored.total == Decimal("10.30")
        assert [p.payment_id for p in referrals.list_payments("REF-10291")] == [payment.payment_id]

        with pytest.raises(PaymentNotFound):
            referrals.get_payment("PAY-missing")

    def test_chat_messages_in_order(self, referrals):
        now = utcnow()
        referrals.add_chat_message(ChatMessage(
            referral_id="REF-10291", department_id=GREEN_VALLEY, from_role=ViewerRole.RECEIVER,
            from_name="Green Valley PT", text="Second", at=now,
        ))
        referrals.add_chat_message(ChatMessage(
            referral_id="REF-10291", department_id=GREEN_VALLEY, from_role=ViewerRole.SENDER,
            from_name="Jordan Reyes", text="First", at=now - timedelta(minutes=5),
        ))
        messages = referrals.list_chat_messages("REF-10291", GREEN_VALLEY)
        assert [m.text for m in messages] == ["First", "Second"]
        assert referrals.list_chat_messages("REF-10291", "DEP-sunrise-intake") == []


# =============================================================================
# Directory and wallet
# =============================================================================

class TestSqlDirectoryRepository:

    def test_debit_is_conditional(self, directory):
        assert directory.debit_credits("ORG-sunrise", Decimal("60.00")) is None
        transaction = directory.debit_credits("ORG-sunrise", Decimal("20.00"), reference_id="PAY-1")
        assert transaction.direction == "out"
        assert directory.get_organization("ORG-sunrise").credit_balance == Decimal("30.00")

    def test_add_credits(self, directory):
        directory.add_credits("ORG-sunrise", Decimal("5.00"), description="Top-up")
        assert directory.get_organization("ORG-sunrise").credit_balance == Decimal("55.00")
        transactions = directory.list_credit_transactions("ORG-sunrise")
        assert [t.amount for t in transactions] == [Decimal("5.00")]

    def test_email_lookup_is_case_insensitive(self, directory):
        user = directory.find_user_by_email("  CaseManager@LakeshoreGeneral.org ")
        assert user.user_id == "USR-lakeshore-cm"

    def test_duplicate_email_rejected(self, directory):
        user = directory.find_user("USR-lakeshore-cm")
        user.user_id = "USR-copy"
        with pytest.raises(ValidationError):
            directory.create_user(user)

    def test_departments_by_organization(self, directory):
        departments = directory.list_departments(SENDER_ORG_ID)
        assert [d.department_id for d in departments] == ["DEP-lakeshore-cm"]

    def test_list_and_update_branches(self, directory):
        branch = directory.list_branches("ORG-sunrise")[0]
        branch.name = "Downtown Office"
        branch.status = "inactive"
        directory.update_branch(branch)

        stored = directory.find_branch("BR-sunrise-main")
        assert stored.name == "Downtown Office"
        assert not stored.is_active

    def test_update_department(self, directory):
        department = directory.find_department("DEP-northside-intake")
        department.name = "Admissions"
        department.status = "inactive"
        directory.update_department(department)

        stored = directory.find_department("DEP-northside-intake")
        assert stored.name == "Admissions"
        assert not stored.is_active
        assert len(directory.list_departments()) == 6

    def test_update_missing_department(self, directory):
        department = directory.find_department("DEP-northside-intake")
        department.department_id = "DEP-missing"
        with pytest.raises(NotFound):
            directory.update_department(department)

    def test_update_user_keeps_password_hash(self, directory):
        user = directory.find_user("USR-lakeshore-cm")
        user.password_hash = None
        user.role = "org_admin"
        directory.update_user(user)

        stored = directory.find_user("USR-lakeshore-cm")
        assert stored.role == "org_admin"
        assert stored.password_hash == "not-a-real-hash"
        users = directory.list_users(SENDER_ORG_ID)
        assert {u.user_id for u in users} == {"USR-lakeshore-admin", "USR-lakeshore-cm"}

    def test_update_user_rejects_taken_email(self, directory):
        user = directory.find_user("USR-lakeshore-cm")
        user.email = "admin@lakeshoregeneral.org"
        with pytest.raises(ValidationError):
            directory.update_user(user)
