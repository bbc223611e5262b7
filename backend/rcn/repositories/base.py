"""
Repository interfaces.

Two implementations exist: ``SqlReferralRepository`` / ``SqlDirectoryRepository``
(PostgreSQL via SQLAlchemy) and ``DemoStore`` (one JSON document on disk).
Services depend only on these interfaces and receive an instance at
construction time.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from rcn.domain.billing import CreditTransaction, PaymentRecord
from rcn.domain.directory import Branch, Department, Organization, StaffUser
from rcn.domain.referral import ActivityEntry, ChatMessage, DepartmentStatus, PaymentType, Referral


class ReferralRepository(ABC):
    """Persistence of referrals, department rows, payments, activity and chat."""

    @abstractmethod
    def create_referral(self, referral: Referral) -> Referral:
        """Insert a new referral (draft or sent, with its rows and log)."""

    @abstractmethod
    def get_referral(self, referral_id: str) -> Referral:
        """Load a referral with rows and activity. Raises ReferralNotFound."""

    @abstractmethod
    def update_referral(self, referral: Referral) -> Referral:
        """Rewrite draft content. Department rows and the log are untouched."""

    @abstractmethod
    def send_referral(
        self,
        referral_id: str,
        rows: List[DepartmentStatus],
        payment_type: PaymentType,
        sent_at: datetime,
    ) -> Referral:
        """Clear the draft flag and create one row per receiving department."""

    @abstractmethod
    def add_department_statuses(self, referral_id: str, rows: List[DepartmentStatus]) -> Referral:
        """Attach additional receiving departments to a sent referral."""

    @abstractmethod
    def update_department_status(
        self,
        referral_id: str,
        row: DepartmentStatus,
        expected_version: int,
        entry: Optional[ActivityEntry] = None,
    ) -> DepartmentStatus:
        """
        Persist ``row`` if the stored version equals ``expected_version``.

        ``entry``, when given, is appended to the log in the same write; the
        row never changes without it. Returns the stored row (version
        incremented). Raises ConflictError on a stale version,
        DepartmentNotFound when no such row exists.
        """

    @abstractmethod
    def append_activity(self, referral_id: str, entry: ActivityEntry) -> ActivityEntry:
        """Append one log entry. Entries are never updated or deleted."""

    @abstractmethod
    def record_payment(self, payment: PaymentRecord) -> PaymentRecord:
        """Insert a payment record."""

    @abstractmethod
    def update_payment(self, payment: PaymentRecord) -> PaymentRecord:
        """Persist a payment record's status change."""

    @abstractmethod
    def get_payment(self, payment_id: str) -> PaymentRecord:
        """Raises PaymentNotFound."""

    @abstractmethod
    def list_payments(self, referral_id: str) -> List[PaymentRecord]:
        """Payments for a referral, oldest first."""

    @abstractmethod
    def list_sent(self, organization_id: str) -> List[Referral]:
        """Referrals (drafts included) owned by a sending organization."""

    @abstractmethod
    def list_received(self, department_ids: List[str]) -> List[Referral]:
        """Sent referrals with a row for any of ``department_ids``."""

    @abstractmethod
    def add_chat_message(self, message: ChatMessage) -> ChatMessage:
        """Append one chat message."""

    @abstractmethod
    def list_chat_messages(self, referral_id: str, department_id: str) -> List[ChatMessage]:
        """Chronological chat between the sender and one department."""


class DirectoryRepository(ABC):
    """Organizations, branches, departments, staff users and credit balances."""

    @abstractmethod
    def create_organization(self, organization: Organization) -> Organization:
        pass

    @abstractmethod
    def get_organization(self, organization_id: str) -> Organization:
        """Raises NotFound."""

    @abstractmethod
    def create_branch(self, branch: Branch) -> Branch:
        pass

    @abstractmethod
    def find_branch(self, branch_id: str) -> Optional[Branch]:
        pass

    @abstractmethod
    def list_branches(self, organization_id: str) -> List[Branch]:
        pass

    @abstractmethod
    def update_branch(self, branch: Branch) -> Branch:
        """Rewrite name, address and status. Raises NotFound."""

    @abstractmethod
    def create_department(self, department: Department) -> Department:
        pass

    @abstractmethod
    def find_department(self, department_id: str) -> Optional[Department]:
        pass

    @abstractmethod
    def list_departments(self, organization_id: Optional[str] = None) -> List[Department]:
        """Departments of one organization, or of every organization when None."""

    @abstractmethod
    def update_department(self, department: Department) -> Department:
        """Rewrite name, branch and status. Raises NotFound."""

    @abstractmethod
    def create_user(self, user: StaffUser) -> StaffUser:
        pass

    @abstractmethod
    def find_user(self, user_id: str) -> Optional[StaffUser]:
        pass

    @abstractmethod
    def list_users(self, organization_id: str) -> List[StaffUser]:
        pass

    @abstractmethod
    def update_user(self, user: StaffUser) -> StaffUser:
        """Rewrite profile, role, department and status. The password hash is kept. Raises NotFound."""

    @abstractmethod
    def find_user_by_email(self, email: str) -> Optional[StaffUser]:
        pass

    @abstractmethod
    def record_login(self, user_id: str, at: datetime) -> None:
        pass

    @abstractmethod
    def debit_credits(
        self,
        organization_id: str,
        amount: Decimal,
        reference_id: Optional[str] = None,
        user_id: Optional[str] = None,
        description: str = "",
    ) -> Optional[CreditTransaction]:
        """
        Atomically subtract ``amount`` if the balance covers it and record an
        ``out`` transaction. Returns None when the balance is insufficient.
        """

    @abstractmethod
    def add_credits(
        self,
        organization_id: str,
        amount: Decimal,
        transaction_type: str = "top_up",
        reference_id: Optional[str] = None,
        user_id: Optional[str] = None,
        description: str = "",
    ) -> CreditTransaction:
        """Add ``amount`` to the balance and record an ``in`` transaction."""

    @abstractmethod
    def list_credit_transactions(self, organization_id: str) -> List[CreditTransaction]:
        """Wallet history, newest first."""
