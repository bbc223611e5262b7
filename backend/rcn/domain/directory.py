"""
Directory entities: organizations, branches, departments and staff users.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from rcn.domain.referral import new_id, utcnow, _iso, _parse_dt


class UserRole:
    """Staff user roles."""
    ORG_ADMIN = "org_admin"
    STAFF = "staff"

    ALL = (ORG_ADMIN, STAFF)


class RecordStatus:
    """Lifecycle of branches, departments and staff users. Nothing is hard-deleted."""
    ACTIVE = "active"
    INACTIVE = "inactive"

    ALL = (ACTIVE, INACTIVE)


@dataclass
class Organization:
    name: str
    email: str = ""
    state: str = ""
    credit_balance: Decimal = Decimal("0.00")
    organization_id: str = field(default_factory=lambda: new_id("ORG"))
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "organization_id": self.organization_id,
            "name": self.name,
            "email": self.email,
            "state": self.state,
            "credit_balance": str(self.credit_balance),
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Organization":
        return cls(
            organization_id=data["organization_id"],
            name=data["name"],
            email=data.get("email") or "",
            state=data.get("state") or "",
            credit_balance=Decimal(str(data.get("credit_balance") or "0.00")),
            created_at=_parse_dt(data.get("created_at")) or utcnow(),
        )


@dataclass
class Branch:
    organization_id: str
    name: str
    address: str = ""
    branch_id: str = field(default_factory=lambda: new_id("BR"))
    status: str = RecordStatus.ACTIVE
    created_at: datetime = field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == RecordStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "branch_id": self.branch_id,
            "organization_id": self.organization_id,
            "name": self.name,
            "address": self.address,
            "status": self.status,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Branch":
        return cls(
            branch_id=data["branch_id"],
            organization_id=data["organization_id"],
            name=data["name"],
            address=data.get("address") or "",
            status=data.get("status") or RecordStatus.ACTIVE,
            created_at=_parse_dt(data.get("created_at")) or utcnow(),
        )


@dataclass
class Department:
    organization_id: str
    branch_id: str
    name: str
    department_id: str = field(default_factory=lambda: new_id("DEP"))
    status: str = RecordStatus.ACTIVE
    created_at: datetime = field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == RecordStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "department_id": self.department_id,
            "organization_id": self.organization_id,
            "branch_id": self.branch_id,
            "name": self.name,
            "status": self.status,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Department":
        return cls(
            department_id=data["department_id"],
            organization_id=data["organization_id"],
            branch_id=data["branch_id"],
            name=data["name"],
            status=data.get("status") or RecordStatus.ACTIVE,
            created_at=_parse_dt(data.get("created_at")) or utcnow(),
        )


@dataclass
class StaffUser:
    organization_id: str
    email: str
    display_name: str = ""
    role: str = UserRole.STAFF
    department_id: Optional[str] = None
    password_hash: Optional[str] = None
    status: str = RecordStatus.ACTIVE
    user_id: str = field(default_factory=lambda: new_id("USR"))
    created_at: datetime = field(default_factory=utcnow)
    last_login_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ORG_ADMIN

    def to_dict(self, include_secret: bool = False) -> Dict[str, Any]:
        data = {
            "user_id": self.user_id,
            "organization_id": self.organization_id,
            "department_id": self.department_id,
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "last_login_at": _iso(self.last_login_at),
        }
        if include_secret:
            data["password_hash"] = self.password_hash
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StaffUser":
        return cls(
            user_id=data["user_id"],
            organization_id=data["organization_id"],
            department_id=data.get("department_id"),
            email=data["email"],
            display_name=data.get("display_name") or "",
            role=data.get("role") or UserRole.STAFF,
            password_hash=data.get("password_hash"),
            status=data.get("status") or RecordStatus.ACTIVE,
            created_at=_parse_dt(data.get("created_at")) or utcnow(),
            last_login_at=_parse_dt(data.get("last_login_at")),
        )


@dataclass
class Actor:
    """The authenticated staff member performing an action."""
    user_id: str
    organization_id: str
    display_name: str
    role: str = UserRole.STAFF
    department_id: Optional[str] = None
    organization_name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ORG_ADMIN

    @property
    def label(self) -> str:
        """Name written into activity entries."""
        return self.organization_name or self.display_name or "Staff"

    @classmethod
    def from_user(cls, user: StaffUser, organization: Optional[Organization] = None) -> "Actor":
        return cls(
            user_id=user.user_id,
            organization_id=user.organization_id,
            display_name=user.display_name or user.email,
            role=user.role,
            department_id=user.department_id,
            organization_name=organization.name if organization else "",
        )
