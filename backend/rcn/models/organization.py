"""
Organization, Branch, Department and StaffUser tables.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship

from rcn.db.postgres import Base
from rcn.domain.referral import utcnow


class OrganizationRecord(Base):
    """Organization table. Holds the prepaid credit balance."""

    __tablename__ = "organization"

    organization_id = Column(String(32), primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    state = Column(String(50), nullable=True)
    credit_balance = Column(Numeric(12, 2), nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    branches = relationship("BranchRecord", back_populates="organization")
    departments = relationship("DepartmentRecord", back_populates="organization")
    users = relationship("StaffUserRecord", back_populates="organization")


class BranchRecord(Base):
    """Branch table."""

    __tablename__ = "branch"

    branch_id = Column(String(32), primary_key=True)
    organization_id = Column(
        String(32), ForeignKey("organization.organization_id"), nullable=False
    )
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    status = Column(String(50), default="active", nullable=False)  # active, inactive
    created_at = Column(DateTime, default=utcnow, nullable=False)

    organization = relationship("OrganizationRecord", back_populates="branches")


class DepartmentRecord(Base):
    """Department table. Departments are the receivers of referrals."""

    __tablename__ = "department"

    department_id = Column(String(32), primary_key=True)
    organization_id = Column(
        String(32), ForeignKey("organization.organization_id"), nullable=False
    )
    branch_id = Column(String(32), ForeignKey("branch.branch_id"), nullable=False)
    name = Column(String(255), nullable=False)
    status = Column(String(50), default="active", nullable=False, index=True)  # active, inactive
    created_at = Column(DateTime, default=utcnow, nullable=False)

    organization = relationship("OrganizationRecord", back_populates="departments")


class StaffUserRecord(Base):
    """Staff user table (org admins and department staff)."""

    __tablename__ = "staff_user"

    user_id = Column(String(32), primary_key=True)
    organization_id = Column(
        String(32), ForeignKey("organization.organization_id"), nullable=False
    )
    department_id = Column(String(32), ForeignKey("department.department_id"), nullable=True)
    email = Column(String(255), nullable=False, unique=True)
    display_name = Column(String(255), nullable=True)
    role = Column(String(50), default="staff", nullable=False)  # org_admin, staff
    password_hash = Column(String(255), nullable=True)
    status = Column(String(50), default="active", nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    organization = relationship("OrganizationRecord", back_populates="users")
