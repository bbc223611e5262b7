"""
Billing tables: referral unlock payments and the organization wallet ledger.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Text

from rcn.db.postgres import Base
from rcn.domain.referral import utcnow


class ReferralPaymentRecord(Base):
    """
    A payment to unlock a referral, by the sender (department_id is null)
    or by one receiving department.
    """

    __tablename__ = "referral_payment"

    payment_id = Column(String(32), primary_key=True)
    referral_id = Column(
        String(32), ForeignKey("referral.referral_id", ondelete="CASCADE"), nullable=False, index=True
    )
    department_id = Column(String(32), nullable=True)
    organization_id = Column(
        String(32), ForeignKey("organization.organization_id"), nullable=False
    )
    payer_role = Column(String(20), nullable=False)  # sender, receiver
    source = Column(String(20), nullable=False)  # credit, payment
    payment_method_id = Column(String(255), nullable=True)

    amount = Column(Numeric(12, 2), nullable=False)
    fee = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=True)  # null for credits

    status = Column(String(20), default="initiated", nullable=False)  # initiated, succeeded, failed, cancelled
    client_secret = Column(String(255), nullable=True)
    provider_reference = Column(String(255), nullable=True)
    failure_reason = Column(Text, nullable=True)

    initiated_by_user_id = Column(String(32), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)


class CreditTransactionRecord(Base):
    """Wallet ledger line."""

    __tablename__ = "credit_transaction"

    transaction_id = Column(String(32), primary_key=True)
    organization_id = Column(
        String(32), ForeignKey("organization.organization_id"), nullable=False, index=True
    )
    direction = Column(String(3), nullable=False)  # in, out
    amount = Column(Numeric(12, 2), nullable=False)
    transaction_type = Column(String(50), nullable=False)  # top_up, referral_payment, refund
    description = Column(Text, nullable=True)
    reference_id = Column(String(32), nullable=True)
    created_by_user_id = Column(String(32), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
