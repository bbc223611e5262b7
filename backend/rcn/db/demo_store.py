"""
Local demo mode storage.

The whole state lives in one JSON document on disk, stored under a fixed
storage key:

    {"rcn_demo_state_v1": {"organizations": {...}, "branches": {...},
                           "departments": {...}, "users": {...},
                           "referrals": {...}, "payments": {...},
                           "credit_transactions": [...], "chat_messages": [...]}}

Every mutation rewrites the document wholesale (temp file + atomic replace).
The store is an explicit object handed to the services, never a module-level
singleton.
"""

import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from rcn.db.demo_seed import build_demo_state, empty_state
from rcn.domain.billing import CreditTransaction, PaymentRecord
from rcn.domain.directory import Branch, Department, Organization, StaffUser
from rcn.domain.referral import (
    ActivityEntry,
    ChatMessage,
    DepartmentStatus,
    PaymentType,
    Referral,
    _iso,
    utcnow,
)
from rcn.errors import (
    ConflictError,
    NetworkError,
    NotFound,
    PaymentNotFound,
    ReferralNotFound,
    ValidationError,
)
from rcn.repositories.base import DirectoryRepository, ReferralRepository


class DemoStore(ReferralRepository, DirectoryRepository):
    """Both repositories over a single JSON document."""

    def __init__(
        self,
        path: str,
        storage_key: str = "rcn_demo_state_v1",
        seed_on_first_load: bool = True,
        seed: Optional[Callable[[], Dict[str, Any]]] = None,
    ):
        self.path = Path(path)
        self.storage_key = storage_key
        self.seed_on_first_load = seed_on_first_load
        self._seed = seed or build_demo_state
        self._state: Optional[Dict[str, Any]] = None
        self._lock = threading.RLock()
        self.logger = logging.getLogger("repository.DemoStore")

    # =========================================================================
    # Document lifecycle
    # =========================================================================

    @property
    def state(self) -> Dict[str, Any]:
        if self._state is None:
            self._state = self._load()
        return self._state

    def _load(self) -> Dict[str, Any]:
        if self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    document = json.load(f)
            except OSError as e:
                raise NetworkError("Demo storage could not be read.") from e
            except ValueError as e:
                self.logger.error("Demo state at %s is not valid JSON: %s", self.path, e)
                raise NetworkError("Demo storage is unreadable. Reset the demo data.") from e
            state = empty_state()
            state.update(document.get(self.storage_key) or {})
            self.logger.info("Loaded demo state from %s", self.path)
            return state

        if self.seed_on_first_load:
            state = empty_state()
            state.update(self._seed())
            self.logger.info("Seeded demo state at %s", self.path)
        else:
            state = empty_state()
        self._write(state)
        return state

    def _write(self, state: Dict[str, Any]) -> None:
        """Rewrite the whole document atomically."""
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".rcn-demo-", suffix=".json", dir=str(directory))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({self.storage_key: state}, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise NetworkError("Demo storage could not be written.") from e

    def _commit(self) -> None:
        try:
            self._write(self.state)
        except NetworkError:
            # Drop unsaved edits; the next read reloads the last written document
            self._state = None
            raise

    def reset(self, state: Optional[Dict[str, Any]] = None) -> None:
        """Replace the document (tests and the demo "reset" action)."""
        with self._lock:
            self._state = empty_state()
            self._state.update(state or {})
            self._commit()

    # =========================================================================
    # Referrals
    # =========================================================================

    def _referral_data(self, referral_id: str) -> Dict[str, Any]:
        data = self.state["referrals"].get(referral_id)
        if data is None:
            raise ReferralNotFound(f"Referral {referral_id} not found.", details={"referral_id": referral_id})
        return data

    def create_referral(self, referral: Referral) -> Referral:
        with self._lock:
            self.state["referrals"][referral.referral_id] = referral.to_dict()
            self._commit()
        return referral

    def get_referral(self, referral_id: str) -> Referral:
        with self._lock:
            return Referral.from_dict(self._referral_data(referral_id))

    def update_referral(self, referral: Referral) -> Referral:
        with self._lock:
            stored = self._referral_data(referral.referral_id)
            data = referral.to_dict()
            # Rows and the log are owned by their own operations
            data["department_statuses"] = stored["department_statuses"]
            data["activity_log"] = stored["activity_log"]
            self.state["referrals"][referral.referral_id] = data
            self._commit()
            return Referral.from_dict(data)

    def send_referral(
        self,
        referral_id: str,
        rows: List[DepartmentStatus],
        payment_type: PaymentType,
        sent_at: datetime,
    ) -> Referral:
        with self._lock:
            data = self._referral_data(referral_id)
            data["is_draft"] = False
            data["payment_type"] = payment_type.value
            data["sent_at"] = _iso(sent_at)
            data["updated_at"] = _iso(sent_at)
            data["department_statuses"] = [row.to_dict() for row in rows]
            self._commit()
            return Referral.from_dict(data)

    def add_department_statuses(self, referral_id: str, rows: List[DepartmentStatus]) -> Referral:
        with self._lock:
            data = self._referral_data(referral_id)
            existing = {r["department_id"] for r in data["department_statuses"]}
            for row in rows:
                if row.department_id not in existing:
                    data["department_statuses"].append(row.to_dict())
            data["updated_at"] = _iso(utcnow())
            self._commit()
            return Referral.from_dict(data)

    def update_department_status(
        self,
        referral_id: str,
        row: DepartmentStatus,
        expected_version: int,
        entry: Optional[ActivityEntry] = None,
    ) -> DepartmentStatus:
        with self._lock:
            data = self._referral_data(referral_id)
            referral = Referral.from_dict(data)
            current = referral.department_status(row.department_id)
            if current.version != expected_version:
                self.logger.warning(
                    "Stale write on %s/%s: expected v%s, stored v%s",
                    referral_id, row.department_id, expected_version, current.version,
                )
                raise ConflictError(details={
                    "referral_id": referral_id,
                    "department_id": row.department_id,
                    "expected_version": expected_version,
                    "current_version": current.version,
                })
            stored = row.to_dict()
            stored["version"] = expected_version + 1
            data["department_statuses"] = [
                stored if r["department_id"] == row.department_id else r
                for r in data["department_statuses"]
            ]
            data["updated_at"] = stored["updated_at"]
            if entry is not None:
                data["activity_log"].append(entry.to_dict())
            self._commit()
            return DepartmentStatus.from_dict(stored)

    def append_activity(self, referral_id: str, entry: ActivityEntry) -> ActivityEntry:
        with self._lock:
            data = self._referral_data(referral_id)
            data["activity_log"].append(entry.to_dict())
            self._commit()
        return entry

    def list_sent(self, organization_id: str) -> List[Referral]:
        with self._lock:
            return [
                Referral.from_dict(data)
                for data in self.state["referrals"].values()
                if data["sender_organization_id"] == organization_id
            ]

    def list_received(self, department_ids: List[str]) -> List[Referral]:
        wanted = set(department_ids)
        with self._lock:
            return [
                Referral.from_dict(data)
                for data in self.state["referrals"].values()
                if not data.get("is_draft", True)
                and any(r["department_id"] in wanted for r in data.get("department_statuses") or [])
            ]

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(self, payment: PaymentRecord) -> PaymentRecord:
        with self._lock:
            self.state["payments"][payment.payment_id] = payment.to_dict(include_secret=True)
            self._commit()
        return payment

    def update_payment(self, payment: PaymentRecord) -> PaymentRecord:
        with self._lock:
            if payment.payment_id not in self.state["payments"]:
                raise PaymentNotFound(details={"payment_id": payment.payment_id})
            self.state["payments"][payment.payment_id] = payment.to_dict(include_secret=True)
            self._commit()
        return payment

    def get_payment(self, payment_id: str) -> PaymentRecord:
        with self._lock:
            data = self.state["payments"].get(payment_id)
            if data is None:
                raise PaymentNotFound(details={"payment_id": payment_id})
            return PaymentRecord.from_dict(data)

    def list_payments(self, referral_id: str) -> List[PaymentRecord]:
        with self._lock:
            payments = [
                PaymentRecord.from_dict(p)
                for p in self.state["payments"].values()
                if p["referral_id"] == referral_id
            ]
        return sorted(payments, key=lambda p: p.created_at)

    # =========================================================================
    # Chat
    # =========================================================================

    def add_chat_message(self, message: ChatMessage) -> ChatMessage:
        with self._lock:
            self.state["chat_messages"].append(message.to_dict())
            self._commit()
        return message

    def list_chat_messages(self, referral_id: str, department_id: str) -> List[ChatMessage]:
        with self._lock:
            messages = [
                ChatMessage.from_dict(m)
                for m in self.state["chat_messages"]
                if m["referral_id"] == referral_id and m["department_id"] == department_id
            ]
        return sorted(messages, key=lambda m: m.at)

    # =========================================================================
    # Directory
    # =========================================================================

    def create_organization(self, organization: Organization) -> Organization:
        with self._lock:
            self.state["organizations"][organization.organization_id] = organization.to_dict()
            self._commit()
        return organization

    def get_organization(self, organization_id: str) -> Organization:
        with self._lock:
            data = self.state["organizations"].get(organization_id)
            if data is None:
                raise NotFound(f"Organization {organization_id} not found.")
            return Organization.from_dict(data)

    def create_branch(self, branch: Branch) -> Branch:
        with self._lock:
            self.state["branches"][branch.branch_id] = branch.to_dict()
            self._commit()
        return branch

    def find_branch(self, branch_id: str) -> Optional[Branch]:
        with self._lock:
            data = self.state["branches"].get(branch_id)
            return Branch.from_dict(data) if data else None

    def list_branches(self, organization_id: str) -> List[Branch]:
        with self._lock:
            return [
                Branch.from_dict(b)
                for b in self.state["branches"].values()
                if b["organization_id"] == organization_id
            ]

    def update_branch(self, branch: Branch) -> Branch:
        with self._lock:
            if branch.branch_id not in self.state["branches"]:
                raise NotFound(f"Branch {branch.branch_id} not found.")
            self.state["branches"][branch.branch_id] = branch.to_dict()
            self._commit()
        return branch

    def create_department(self, department: Department) -> Department:
        with self._lock:
            self.state["departments"][department.department_id] = department.to_dict()
            self._commit()
        return department

    def find_department(self, department_id: str) -> Optional[Department]:
        with self._lock:
            data = self.state["departments"].get(department_id)
            return Department.from_dict(data) if data else None

    def list_departments(self, organization_id: Optional[str] = None) -> List[Department]:
        with self._lock:
            return [
                Department.from_dict(d)
                for d in self.state["departments"].values()
                if organization_id is None or d["organization_id"] == organization_id
            ]

    def update_department(self, department: Department) -> Department:
        with self._lock:
            if department.department_id not in self.state["departments"]:
                raise NotFound(f"Department {department.department_id} not found.")
            self.state["departments"][department.department_id] = department.to_dict()
            self._commit()
        return department

    def create_user(self, user: StaffUser) -> StaffUser:
        with self._lock:
            if self.find_user_by_email(user.email) is not None:
                raise ValidationError("A user with this email already exists.", field="email")
            self.state["users"][user.user_id] = user.to_dict(include_secret=True)
            self._commit()
        return user

    def find_user(self, user_id: str) -> Optional[StaffUser]:
        with self._lock:
            data = self.state["users"].get(user_id)
            return StaffUser.from_dict(data) if data else None

    def list_users(self, organization_id: str) -> List[StaffUser]:
        with self._lock:
            return [
                StaffUser.from_dict(u)
                for u in self.state["users"].values()
                if u["organization_id"] == organization_id
            ]

    def update_user(self, user: StaffUser) -> StaffUser:
        with self._lock:
            stored = self.state["users"].get(user.user_id)
            if stored is None:
                raise NotFound(f"User {user.user_id} not found.")
            other = self.find_user_by_email(user.email)
            if other is not None and other.user_id != user.user_id:
                raise ValidationError("A user with this email already exists.", field="email")
            data = user.to_dict(include_secret=True)
            data["password_hash"] = stored.get("password_hash")
            self.state["users"][user.user_id] = data
            self._commit()
            return StaffUser.from_dict(data)

    def find_user_by_email(self, email: str) -> Optional[StaffUser]:
        email = email.strip().lower()
        with self._lock:
            for data in self.state["users"].values():
                if data["email"].lower() == email:
                    return StaffUser.from_dict(data)
        return None

    def record_login(self, user_id: str, at: datetime) -> None:
        with self._lock:
            data = self.state["users"].get(user_id)
            if data is None:
                raise NotFound(f"User {user_id} not found.")
            data["last_login_at"] = _iso(at)
            self._commit()

    # =========================================================================
    # Credits
    # =========================================================================

    def debit_credits(
        self,
        organization_id: str,
        amount: Decimal,
        reference_id: Optional[str] = None,
        user_id: Optional[str] = None,
        description: str = "",
    ) -> Optional[CreditTransaction]:
        with self._lock:
            org = self.get_organization(organization_id)
            if org.credit_balance < amount:
                return None
            org.credit_balance -= amount
            transaction = CreditTransaction(
                organization_id=organization_id,
                direction="out",
                amount=amount,
                transaction_type="referral_payment",
                description=description,
                reference_id=reference_id,
                created_by_user_id=user_id,
            )
            self.state["organizations"][organization_id] = org.to_dict()
            self.state["credit_transactions"].append(transaction.to_dict())
            self._commit()
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
        with self._lock:
            org = self.get_organization(organization_id)
            org.credit_balance += amount
            transaction = CreditTransaction(
                organization_id=organization_id,
                direction="in",
                amount=amount,
                transaction_type=transaction_type,
                description=description,
                reference_id=reference_id,
                created_by_user_id=user_id,
            )
            self.state["organizations"][organization_id] = org.to_dict()
            self.state["credit_transactions"].append(transaction.to_dict())
            self._commit()
            return transaction

    def list_credit_transactions(self, organization_id: str) -> List[CreditTransaction]:
        with self._lock:
            transactions = [
                CreditTransaction.from_dict(t)
                for t in self.state["credit_transactions"]
                if t["organization_id"] == organization_id
            ]
        return sorted(transactions, key=lambda t: t.created_at, reverse=True)
