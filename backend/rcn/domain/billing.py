"""
Billing entities: payment quotes, payment records and wallet transactions.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from rcn.domain.referral import new_id, utcnow, _iso, _parse_dt


class PaymentSource(str, Enum):
    CREDIT = "credit"      # organization credit balance
    PAYMENT = "payment"    # external payment method (card)


class PaymentRecordStatus(str, Enum):
    INITIATED = "initiated"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PayerRole(str, Enum):
    SENDER = "sender"
    RECEIVER = "receiver"


@dataclass
class PaymentSummary:
    """Advisory quote shown before charging. Never marks anything paid."""

    referral_id: str
    source: PaymentSource
    base_amount: Decimal
    fee_percent: Decimal
    fee: Decimal
    total: Decimal
    currency: Optional[str]
    message: str
    calculation: str = ""
    department_id: Optional[str] = None
    recipients: int = 1
    price_per_referral: Decimal = Decimal("0.00")
    payment_method_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "referral_id": self.referral_id,
            "department_id": self.department_id,
            "source": self.source.value,
            "total_recipients": self.recipients,
            "amount": str(self.total),
            "currency": self.currency,
            "payment_method_id": self.payment_method_id,
            "breakdown": {
                "message": self.message,
                "calculation": self.calculation,
                "price_per_referral": str(self.price_per_referral),
                "base_amount": str(self.base_amount),
                "processing_fee_percent": str(self.fee_percent),
                "processing_fee": str(self.fee),
                "total_amount": str(self.total),
            },
        }


@dataclass
class ChargeResult:
    success: bool
    message: str = ""
    provider_reference: Optional[str] = None


@dataclass
class PaymentRecord:
    referral_id: str
    organization_id: str
    source: PaymentSource
    amount: Decimal
    fee: Decimal
    total: Decimal
    currency: Optional[str]
    payer_role: PayerRole = PayerRole.RECEIVER
    department_id: Optional[str] = None
    payment_method_id: Optional[str] = None
    status: PaymentRecordStatus = PaymentRecordStatus.INITIATED
    client_secret: Optional[str] = None
    provider_reference: Optional[str] = None
    failure_reason: str = ""
    initiated_by_user_id: Optional[str] = None
    payment_id: str = field(default_factory=lambda: new_id("PAY"))
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status == PaymentRecordStatus.INITIATED

    def to_dict(self, include_secret: bool = False) -> Dict[str, Any]:
        data = {
            "payment_id": self.payment_id,
            "referral_id": self.referral_id,
            "department_id": self.department_id,
            "organization_id": self.organization_id,
            "payer_role": self.payer_role.value,
            "source": self.source.value,
            "payment_method_id": self.payment_method_id,
            "amount": str(self.amount),
            "fee": str(self.fee),
            "total": str(self.total),
            "currency": self.currency,
            "status": self.status.value,
            "provider_reference": self.provider_reference,
            "failure_reason": self.failure_reason,
            "initiated_by_user_id": self.initiated_by_user_id,
            "created_at": _iso(self.created_at),
            "completed_at": _iso(self.completed_at),
        }
        if include_secret:
            data["client_secret"] = self.client_secret
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaymentRecord":
        return cls(
            payment_id=data["payment_id"],
            referral_id=data["referral_id"],
            department_id=data.get("department_id"),
            organization_id=data["organization_id"],
            payer_role=PayerRole(data.get("payer_role") or "receiver"),
            source=PaymentSource(data["source"]),
            payment_method_id=data.get("payment_method_id"),
            amount=Decimal(str(data["amount"])),
            fee=Decimal(str(data["fee"])),
            total=Decimal(str(data["total"])),
            currency=data.get("currency"),
            status=PaymentRecordStatus(data.get("status") or "initiated"),
            client_secret=data.get("client_secret"),
            provider_reference=data.get("provider_reference"),
            failure_reason=data.get("failure_reason") or "",
            initiated_by_user_id=data.get("initiated_by_user_id"),
            created_at=_parse_dt(data.get("created_at")) or utcnow(),
            completed_at=_parse_dt(data.get("completed_at")),
        )


@dataclass
class CreditTransaction:
    """Wallet ledger line. ``direction`` is "in" (top-up) or "out" (spend)."""

    organization_id: str
    direction: str
    amount: Decimal
    transaction_type: str
    description: str = ""
    reference_id: Optional[str] = None
    created_by_user_id: Optional[str] = None
    transaction_id: str = field(default_factory=lambda: new_id("TXN"))
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "organization_id": self.organization_id,
            "direction": self.direction,
            "amount": str(self.amount),
            "transaction_type": self.transaction_type,
            "description": self.description,
            "reference_id": self.reference_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CreditTransaction":
        return cls(
            transaction_id=data["transaction_id"],
            organization_id=data["organization_id"],
            direction=data["direction"],
            amount=Decimal(str(data["amount"])),
            transaction_type=data["transaction_type"],
            description=data.get("description") or "",
            reference_id=data.get("reference_id"),
            created_by_user_id=data.get("created_by_user_id"),
            created_at=_parse_dt(data.get("created_at")) or utcnow(),
        )
