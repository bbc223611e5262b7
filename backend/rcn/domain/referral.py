"""
Referral aggregate: the referral record, its per-department status rows,
and the append-only activity log.

These are plain dataclasses shared by both storage backends (SQL and the
JSON demo document). Presence checks happen in the constructors/parsers,
not at read sites.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid

from rcn.errors import DepartmentNotFound


def utcnow() -> datetime:
    """Naive UTC timestamp (the convention for every stored datetime)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id(prefix: str) -> str:
    """Short, prefixed identifier, e.g. ``REF-3f9a1c0b2d4e``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


# =============================================================================
# Enums
# =============================================================================

class DepartmentStatusValue(str, Enum):
    """Stored status of a receiving department."""
    PENDING = "pending"
    ACTIVE = "active"          # accepted
    REJECTED = "rejected"
    COMPLETED = "completed"    # set externally after service delivery


class PaymentStatus(str, Enum):
    NOT_PAID = "not_paid"
    PAID = "paid"


class ReceiverState(str, Enum):
    """Derived display state of a department row."""
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    PAID = "PAID"
    COMPLETED = "COMPLETED"

    @property
    def label(self) -> str:
        return RECEIVER_STATE_LABELS[self]


RECEIVER_STATE_LABELS = {
    ReceiverState.PENDING: "Pending",
    ReceiverState.ACCEPTED: "Accepted",
    ReceiverState.REJECTED: "Rejected",
    ReceiverState.PAID: "Paid/Unlocked",
    ReceiverState.COMPLETED: "Completed",
}


class ReceiverEvent(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    PAY = "pay"


class ViewerRole(str, Enum):
    SENDER = "sender"
    RECEIVER = "receiver"


class PaymentType(str, Enum):
    """Who pays to unlock the referral."""
    FREE = "free"          # sent for free, each receiver pays
    CREDIT = "credit"      # sender paid with organization credits
    PAYMENT = "payment"    # sender paid with a payment method


# =============================================================================
# Value blocks
# =============================================================================

@dataclass
class SenderInfo:
    sender_name: str = ""
    facility_name: str = ""
    facility_address: str = ""
    sender_email: str = ""
    sender_phone_number: str = ""
    sender_fax_number: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SenderInfo":
        data = data or {}
        return cls(**{k: data.get(k) or "" for k in cls.__dataclass_fields__})


@dataclass
class Patient:
    """Demographics. Always visible to every party."""
    first_name: str = ""
    last_name: str = ""
    dob: str = ""
    gender: str = ""
    address_of_care: str = ""

    @property
    def display_name(self) -> str:
        if not (self.last_name or self.first_name):
            return ""
        return f"{self.last_name}, {self.first_name}".strip(", ")

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Patient":
        data = data or {}
        return cls(**{k: data.get(k) or "" for k in cls.__dataclass_fields__})


@dataclass
class InsuranceEntry:
    """One insurance entry. The first entry of a referral is the primary."""
    payer: str = ""
    policy: str = ""
    plan_group: str = ""
    document: str = ""

    REQUIRED_FIELDS = ("payer", "policy", "plan_group")

    def is_blank(self) -> bool:
        return not any((self.payer, self.policy, self.plan_group, self.document))

    def is_complete(self) -> bool:
        return all(getattr(self, name) for name in self.REQUIRED_FIELDS)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payer": self.payer,
            "policy": self.policy,
            "plan_group": self.plan_group,
            "document": self.document,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "InsuranceEntry":
        data = data or {}
        return cls(
            payer=(data.get("payer") or "").strip(),
            policy=(data.get("policy") or "").strip(),
            plan_group=(data.get("plan_group") or "").strip(),
            document=(data.get("document") or "").strip(),
        )


@dataclass
class AdditionalPatientInfo:
    """Payment-gated block."""
    phone_number: str = ""
    dial_code: str = "+1"
    primary_language: str = ""
    power_of_attorney: str = ""
    social_security_number: str = ""
    other_information: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AdditionalPatientInfo":
        data = data or {}
        values = {k: data.get(k) or "" for k in cls.__dataclass_fields__}
        values["dial_code"] = values["dial_code"] or "+1"
        return cls(**values)


@dataclass
class PrimaryCare:
    name: str = ""
    address: str = ""
    phone_number: str = ""
    dial_code: str = "+1"
    fax: str = ""
    email: str = ""
    npi: str = ""

    def is_set(self) -> bool:
        return any((self.name, self.address, self.phone_number, self.fax, self.email, self.npi))

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PrimaryCare":
        data = data or {}
        values = {k: data.get(k) or "" for k in cls.__dataclass_fields__}
        values["dial_code"] = values["dial_code"] or "+1"
        return cls(**values)


# Named document slots, in display order
DOCUMENT_SLOTS = [
    ("Face Sheet", "face_sheet"),
    ("Medication List", "medication_list"),
    ("Discharge Summary", "discharge_summary"),
    ("Signed Order", "signed_order"),
    ("History & Physical", "history_or_physical"),
    ("Progress Notes", "progress_notes"),
]


@dataclass
class Documents:
    """Attachment URLs. Opaque blobs, always downloadable once attached."""
    face_sheet: str = ""
    medication_list: str = ""
    discharge_summary: str = ""
    signed_order: str = ""
    history_or_physical: str = ""
    progress_notes: str = ""
    wound_photos: List[str] = field(default_factory=list)
    other_documents: List[str] = field(default_factory=list)

    def to_list(self) -> List[Dict[str, str]]:
        """Flatten to labelled entries for display."""
        out = []
        for label, key in DOCUMENT_SLOTS:
            url = getattr(self, key)
            if url:
                out.append({"label": label, "url": url})
        for i, url in enumerate(self.wound_photos, start=1):
            out.append({"label": f"Wound Photo {i}", "url": url})
        for i, url in enumerate(self.other_documents, start=1):
            out.append({"label": f"Other Document {i}", "url": url})
        return out

    def to_dict(self) -> Dict[str, Any]:
        data = {key: getattr(self, key) for _, key in DOCUMENT_SLOTS}
        data["wound_photos"] = list(self.wound_photos)
        data["other_documents"] = list(self.other_documents)
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Documents":
        data = data or {}
        values = {key: data.get(key) or "" for _, key in DOCUMENT_SLOTS}

        def _urls(raw):
            if isinstance(raw, str):
                return [raw] if raw else []
            return [u for u in (raw or []) if u]

        values["wound_photos"] = _urls(data.get("wound_photos"))
        values["other_documents"] = _urls(data.get("other_documents"))
        return cls(**values)


# =============================================================================
# Department status + activity log
# =============================================================================

@dataclass
class DepartmentStatus:
    """Per-receiving-department record. Belongs to exactly one referral."""

    department_id: str
    status: DepartmentStatusValue = DepartmentStatusValue.PENDING
    payment_status: PaymentStatus = PaymentStatus.NOT_PAID
    is_paid_by_sender: bool = False
    rejection_reason: str = ""
    version: int = 1
    department_name: str = ""
    organization_id: Optional[str] = None
    organization_name: str = ""
    services_override: Optional[List[str]] = None
    paid_by_user_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def state(self) -> ReceiverState:
        if self.status == DepartmentStatusValue.REJECTED:
            return ReceiverState.REJECTED
        if self.status == DepartmentStatusValue.COMPLETED:
            return ReceiverState.COMPLETED
        if self.payment_status == PaymentStatus.PAID:
            return ReceiverState.PAID
        if self.status == DepartmentStatusValue.ACTIVE:
            return ReceiverState.ACCEPTED
        return ReceiverState.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "department_id": self.department_id,
            "department_name": self.department_name,
            "organization_id": self.organization_id,
            "organization_name": self.organization_name,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "is_paid_by_sender": self.is_paid_by_sender,
            "rejection_reason": self.rejection_reason,
            "version": self.version,
            "services_override": list(self.services_override) if self.services_override is not None else None,
            "paid_by_user_id": self.paid_by_user_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DepartmentStatus":
        return cls(
            department_id=data["department_id"],
            status=DepartmentStatusValue(data.get("status") or "pending"),
            payment_status=PaymentStatus(data.get("payment_status") or "not_paid"),
            is_paid_by_sender=bool(data.get("is_paid_by_sender")),
            rejection_reason=data.get("rejection_reason") or "",
            version=int(data.get("version") or 1),
            department_name=data.get("department_name") or "",
            organization_id=data.get("organization_id"),
            organization_name=data.get("organization_name") or "",
            services_override=data.get("services_override"),
            paid_by_user_id=data.get("paid_by_user_id"),
            created_at=_parse_dt(data.get("created_at")) or utcnow(),
            updated_at=_parse_dt(data.get("updated_at")) or utcnow(),
        )


@dataclass
class ActivityEntry:
    """One line of a referral's communication log. Never rewritten."""

    actor: str
    message: str
    event_type: str = "system"
    department_id: Optional[str] = None
    actor_user_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    at: datetime = field(default_factory=utcnow)
    entry_id: str = field(default_factory=lambda: new_id("ACT"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "at": _iso(self.at),
            "actor": self.actor,
            "message": self.message,
            "event_type": self.event_type,
            "department_id": self.department_id,
            "actor_user_id": self.actor_user_id,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActivityEntry":
        return cls(
            entry_id=data.get("entry_id") or new_id("ACT"),
            at=_parse_dt(data.get("at")) or utcnow(),
            actor=data.get("actor") or "System",
            message=data.get("message") or "",
            event_type=data.get("event_type") or "system",
            department_id=data.get("department_id"),
            actor_user_id=data.get("actor_user_id"),
            metadata=data.get("metadata") or {},
        )


@dataclass
class ChatMessage:
    referral_id: str
    department_id: str
    from_role: ViewerRole
    from_name: str
    text: str
    sender_user_id: Optional[str] = None
    at: datetime = field(default_factory=utcnow)
    message_id: str = field(default_factory=lambda: new_id("MSG"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message_id": self.message_id,
            "referral_id": self.referral_id,
            "department_id": self.department_id,
            "from_role": self.from_role.value,
            "from_name": self.from_name,
            "text": self.text,
            "sender_user_id": self.sender_user_id,
            "at": _iso(self.at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        return cls(
            message_id=data["message_id"],
            referral_id=data["referral_id"],
            department_id=data["department_id"],
            from_role=ViewerRole(data["from_role"]),
            from_name=data.get("from_name") or "",
            text=data.get("text") or "",
            sender_user_id=data.get("sender_user_id"),
            at=_parse_dt(data.get("at")) or utcnow(),
        )


# =============================================================================
# Referral
# =============================================================================

@dataclass
class Referral:
    """A patient-care request owned by the sending organization."""

    sender_organization_id: str
    referral_id: str = field(default_factory=lambda: new_id("REF"))
    sender_user_id: Optional[str] = None
    sender: SenderInfo = field(default_factory=SenderInfo)
    patient: Patient = field(default_factory=Patient)
    speciality_ids: List[str] = field(default_factory=list)
    additional_speciality: str = ""
    additional_notes: str = ""
    insurance: List[InsuranceEntry] = field(default_factory=list)
    additional_patient: AdditionalPatientInfo = field(default_factory=AdditionalPatientInfo)
    documents: Documents = field(default_factory=Documents)
    primary_care: PrimaryCare = field(default_factory=PrimaryCare)
    is_draft: bool = True
    payment_type: PaymentType = PaymentType.FREE
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    sent_at: Optional[datetime] = None
    department_statuses: List[DepartmentStatus] = field(default_factory=list)
    activity_log: List[ActivityEntry] = field(default_factory=list)

    @property
    def primary_insurance(self) -> Optional[InsuranceEntry]:
        return self.insurance[0] if self.insurance else None

    @property
    def services_requested(self) -> List[str]:
        services = list(self.speciality_ids)
        if self.additional_speciality:
            services.append(self.additional_speciality)
        return services

    def department_status(self, department_id: str) -> DepartmentStatus:
        for row in self.department_statuses:
            if row.department_id == department_id:
                return row
        raise DepartmentNotFound(
            f"Department {department_id} is not a receiver of referral {self.referral_id}.",
            details={"referral_id": self.referral_id, "department_id": department_id},
        )

    def has_department(self, department_id: str) -> bool:
        return any(row.department_id == department_id for row in self.department_statuses)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "referral_id": self.referral_id,
            "sender_organization_id": self.sender_organization_id,
            "sender_user_id": self.sender_user_id,
            "sender": self.sender.to_dict(),
            "patient": self.patient.to_dict(),
            "speciality_ids": list(self.speciality_ids),
            "additional_speciality": self.additional_speciality,
            "additional_notes": self.additional_notes,
            "insurance": [entry.to_dict() for entry in self.insurance],
            "additional_patient": self.additional_patient.to_dict(),
            "documents": self.documents.to_dict(),
            "primary_care": self.primary_care.to_dict(),
            "is_draft": self.is_draft,
            "payment_type": self.payment_type.value,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "sent_at": _iso(self.sent_at),
            "department_statuses": [row.to_dict() for row in self.department_statuses],
            "activity_log": [entry.to_dict() for entry in self.activity_log],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Referral":
        return cls(
            referral_id=data["referral_id"],
            sender_organization_id=data["sender_organization_id"],
            sender_user_id=data.get("sender_user_id"),
            sender=SenderInfo.from_dict(data.get("sender")),
            patient=Patient.from_dict(data.get("patient")),
            speciality_ids=list(data.get("speciality_ids") or []),
            additional_speciality=data.get("additional_speciality") or "",
            additional_notes=data.get("additional_notes") or "",
            insurance=[InsuranceEntry.from_dict(e) for e in data.get("insurance") or []],
            additional_patient=AdditionalPatientInfo.from_dict(data.get("additional_patient")),
            documents=Documents.from_dict(data.get("documents")),
            primary_care=PrimaryCare.from_dict(data.get("primary_care")),
            is_draft=bool(data.get("is_draft", True)),
            payment_type=PaymentType(data.get("payment_type") or "free"),
            created_at=_parse_dt(data.get("created_at")) or utcnow(),
            updated_at=_parse_dt(data.get("updated_at")) or utcnow(),
            sent_at=_parse_dt(data.get("sent_at")),
            department_statuses=[DepartmentStatus.from_dict(r) for r in data.get("department_statuses") or []],
            activity_log=[ActivityEntry.from_dict(e) for e in data.get("activity_log") or []],
        )


def overall_status(referral: Referral) -> ReceiverState:
    """Sender-inbox label summarizing all receiving departments."""
    states = [row.state for row in referral.department_statuses]
    if not states:
        return ReceiverState.PENDING
    if all(s == ReceiverState.COMPLETED for s in states):
        return ReceiverState.COMPLETED
    if any(s == ReceiverState.PAID for s in states):
        return ReceiverState.PAID
    if all(s == ReceiverState.REJECTED for s in states):
        return ReceiverState.REJECTED
    if all(s == ReceiverState.ACCEPTED for s in states):
        return ReceiverState.ACCEPTED
    if any(s == ReceiverState.PENDING for s in states):
        return ReceiverState.PENDING
    if any(s == ReceiverState.ACCEPTED for s in states):
        return ReceiverState.ACCEPTED
    return ReceiverState.PENDING
