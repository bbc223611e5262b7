"""
Typed domain entities shared by services and both storage backends.
"""

from .referral import (
    DepartmentStatusValue,
    PaymentStatus,
    ReceiverState,
    ReceiverEvent,
    ViewerRole,
    PaymentType,
    SenderInfo,
    Patient,
    InsuranceEntry,
    AdditionalPatientInfo,
    PrimaryCare,
    Documents,
    DepartmentStatus,
    ActivityEntry,
    ChatMessage,
    Referral,
    overall_status,
    utcnow,
    new_id,
)
from .directory import UserRole, RecordStatus, Organization, Branch, Department, StaffUser, Actor
from .billing import (
    PaymentSource,
    PaymentRecordStatus,
    PayerRole,
    PaymentSummary,
    ChargeResult,
    PaymentRecord,
    CreditTransaction,
)

__all__ = [
    # Referral
    "DepartmentStatusValue",
    "PaymentStatus",
    "ReceiverState",
    "ReceiverEvent",
    "ViewerRole",
    "PaymentType",
    "SenderInfo",
    "Patient",
    "InsuranceEntry",
    "AdditionalPatientInfo",
    "PrimaryCare",
    "Documents",
    "DepartmentStatus",
    "ActivityEntry",
    "ChatMessage",
    "Referral",
    "overall_status",
    "utcnow",
    "new_id",
    # Directory
    "UserRole",
    "RecordStatus",
    "Organization",
    "Branch",
    "Department",
    "StaffUser",
    "Actor",
    # Billing
    "PaymentSource",
    "PaymentRecordStatus",
    "PayerRole",
    "PaymentSummary",
    "ChargeResult",
    "PaymentRecord",
    "CreditTransaction",
]
