"""
Referral tables: the referral, its insurance entries, per-department status
rows, the activity log and department chat.

Rows of referral_activity and referral_chat_message are INSERT-only.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from rcn.db.postgres import Base, JSONType
from rcn.domain.referral import utcnow


class ReferralRecord(Base):
    """Referral table. Owned by the sending organization."""

    __tablename__ = "referral"

    referral_id = Column(String(32), primary_key=True)
    sender_organization_id = Column(
        String(32), ForeignKey("organization.organization_id"), nullable=False, index=True
    )
    sender_user_id = Column(String(32), ForeignKey("staff_user.user_id"), nullable=True)

    # Sender block (name, facility, contact numbers)
    sender_json = Column(JSONType, nullable=True)

    # Patient demographics
    patient_first_name = Column(String(100), nullable=True)
    patient_last_name = Column(String(100), nullable=True)
    patient_dob = Column(String(20), nullable=True)
    patient_gender = Column(String(20), nullable=True)
    address_of_care = Column(String(500), nullable=True)

    # Services
    speciality_ids = Column(JSONType, nullable=True)
    additional_speciality = Column(String(255), nullable=True)
    additional_notes = Column(Text, nullable=True)

    # Payment-gated block, attachments and PCP
    additional_patient_json = Column(JSONType, nullable=True)
    documents_json = Column(JSONType, nullable=True)
    primary_care_json = Column(JSONType, nullable=True)

    is_draft = Column(Boolean, default=True, nullable=False)
    payment_type = Column(String(20), default="free", nullable=False)  # free, credit, payment

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
    sent_at = Column(DateTime, nullable=True)

    # Relationships
    insurance = relationship(
        "ReferralInsuranceRecord",
        order_by="ReferralInsuranceRecord.position",
        cascade="all, delete-orphan",
    )
    department_statuses = relationship(
        "DepartmentStatusRecord",
        order_by="DepartmentStatusRecord.id",
        cascade="all, delete-orphan",
    )
    activity = relationship(
        "ReferralActivityRecord",
        order_by="ReferralActivityRecord.id",
        cascade="all, delete-orphan",
    )


class ReferralInsuranceRecord(Base):
    """Insurance entry. position 0 is the primary."""

    __tablename__ = "referral_insurance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    referral_id = Column(
        String(32), ForeignKey("referral.referral_id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False, default=0)
    payer = Column(String(255), nullable=False)
    policy = Column(String(100), nullable=False)
    plan_group = Column(String(100), nullable=False)
    document = Column(String(1000), nullable=True)


class DepartmentStatusRecord(Base):
    """
    One row per receiving department.

    ``version`` is the optimistic concurrency token; updates are issued as
    ``UPDATE ... WHERE version = :expected``.
    """

    __tablename__ = "department_status"
    __table_args__ = (
        UniqueConstraint("referral_id", "department_id", name="uq_department_status_referral_department"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    referral_id = Column(
        String(32), ForeignKey("referral.referral_id", ondelete="CASCADE"), nullable=False, index=True
    )
    department_id = Column(
        String(32), ForeignKey("department.department_id"), nullable=False, index=True
    )
    status = Column(String(20), default="pending", nullable=False)  # pending, active, rejected, completed
    payment_status = Column(String(20), default="not_paid", nullable=False)  # not_paid, paid
    is_paid_by_sender = Column(Boolean, default=False, nullable=False)
    rejection_reason = Column(Text, nullable=True)
    version = Column(Integer, default=1, nullable=False)

    # Denormalized for inbox display
    department_name = Column(String(255), nullable=True)
    organization_id = Column(String(32), nullable=True)
    organization_name = Column(String(255), nullable=True)

    services_override = Column(JSONType, nullable=True)
    paid_by_user_id = Column(String(32), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)


class ReferralActivityRecord(Base):
    """Append-only communication log entry."""

    __tablename__ = "referral_activity"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entry_id = Column(String(32), nullable=False, unique=True)
    referral_id = Column(
        String(32), ForeignKey("referral.referral_id", ondelete="CASCADE"), nullable=False, index=True
    )
    department_id = Column(String(32), nullable=True)
    at = Column(DateTime, default=utcnow, nullable=False)
    actor = Column(String(255), nullable=False)
    actor_user_id = Column(String(32), nullable=True)
    event_type = Column(String(50), nullable=False)
    message = Column(Text, nullable=False)
    metadata_json = Column(JSONType, nullable=True)


class ReferralChatMessageRecord(Base):
    """Chat between the sender and one receiving department."""

    __tablename__ = "referral_chat_message"

    message_id = Column(String(32), primary_key=True)
    referral_id = Column(
        String(32), ForeignKey("referral.referral_id", ondelete="CASCADE"), nullable=False, index=True
    )
    department_id = Column(String(32), nullable=False, index=True)
    from_role = Column(String(20), nullable=False)  # sender, receiver
    from_name = Column(String(255), nullable=True)
    sender_user_id = Column(String(32), nullable=True)
    text = Column(Text, nullable=False)
    at = Column(DateTime, default=utcnow, nullable=False)
