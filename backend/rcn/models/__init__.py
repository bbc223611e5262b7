"""
SQLAlchemy models for the referral coordination network.

These are the PostgreSQL tables used when STORAGE_BACKEND=sql.
"""

from .organization import OrganizationRecord, BranchRecord, DepartmentRecord, StaffUserRecord
from .referral import (
    ReferralRecord,
    ReferralInsuranceRecord,
    DepartmentStatusRecord,
    ReferralActivityRecord,
    ReferralChatMessageRecord,
)
from .billing import ReferralPaymentRecord, CreditTransactionRecord

__all__ = [
    # Directory
    "OrganizationRecord",
    "BranchRecord",
    "DepartmentRecord",
    "StaffUserRecord",
    # Referral
    "ReferralRecord",
    "ReferralInsuranceRecord",
    "DepartmentStatusRecord",
    "ReferralActivityRecord",
    "ReferralChatMessageRecord",
    # Billing
    "ReferralPaymentRecord",
    "CreditTransactionRecord",
]
