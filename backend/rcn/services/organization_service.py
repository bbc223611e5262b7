"""
Organization management: registration, branches, departments, staff users
and the credit wallet.
"""

from decimal import Decimal, InvalidOperation
import logging
from typing import Any, Dict, List, Optional

from rcn.domain.directory import Actor, Branch, Department, Organization, RecordStatus, StaffUser, UserRole
from rcn.errors import NotFound, PermissionDenied, ValidationError
from rcn.services.inbox import paginate
from rcn.services.pricing import to_money


MIN_PASSWORD_LENGTH = 8


def _required(data: Dict[str, Any], key: str, label: str) -> str:
    value = (data.get(key) or "").strip()
    if not value:
        raise ValidationError(f"{label} is required.", field=key)
    return value


def _parse_amount(value) -> Decimal:
    try:
        amount = to_money(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValidationError("Amount must be a number.", field="amount") from e
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero.", field="amount")
    return amount


def _parse_status(value) -> str:
    status = str(value or "").strip().lower()
    if status not in RecordStatus.ALL:
        raise ValidationError(f"Status must be one of: {', '.join(RecordStatus.ALL)}.", field="status")
    return status


class OrganizationService:
    """Directory and wallet operations. Mutations require an org admin."""

    def __init__(self, directory, auth):
        self.directory = directory
        self.auth = auth
        self.logger = logging.getLogger("service.OrganizationService")

    def _require_admin(self, actor: Actor, organization_id: str) -> Organization:
        organization = self.directory.get_organization(organization_id)
        if actor.organization_id != organization_id or not actor.is_admin:
            raise PermissionDenied("Only an administrator of this organization can do this.")
        return organization

    def _require_member(self, actor: Actor, organization_id: str) -> Organization:
        organization = self.directory.get_organization(organization_id)
        if actor.organization_id != organization_id:
            raise PermissionDenied()
        return organization

    def _password(self, data: Dict[str, Any], key: str) -> str:
        password = data.get(key) or ""
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters.", field=key
            )
        return password

    # =========================================================================
    # Registration and directory
    # =========================================================================

    def register_organization(self, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Create an organization and its first org admin."""
        data = data or {}
        name = _required(data, "name", "Organization name")
        admin_email = _required(data, "admin_email", "Admin email").lower()
        password = self._password(data, "admin_password")
        if self.directory.find_user_by_email(admin_email) is not None:
            raise ValidationError("A user with this email already exists.", field="admin_email")

        organization = self.directory.create_organization(
            Organization(
                name=name,
                email=(data.get("email") or admin_email).strip(),
                state=(data.get("state") or "").strip(),
            )
        )
        admin = self.directory.create_user(
            StaffUser(
                organization_id=organization.organization_id,
                email=admin_email,
                display_name=(data.get("admin_name") or "").strip() or admin_email,
                role=UserRole.ORG_ADMIN,
                password_hash=self.auth.hash_password(password),
            )
        )
        self.logger.info("Registered organization %s", organization.organization_id)
        return {"organization": organization.to_dict(), "admin": admin.to_dict()}

    def create_branch(self, actor: Actor, organization_id: str, data: Optional[Dict[str, Any]]) -> Branch:
        data = data or {}
        self._require_admin(actor, organization_id)
        branch = Branch(
            organization_id=organization_id,
            name=_required(data, "name", "Branch name"),
            address=(data.get("address") or "").strip(),
        )
        return self.directory.create_branch(branch)

    def create_department(self, actor: Actor, organization_id: str, data: Optional[Dict[str, Any]]) -> Department:
        data = data or {}
        self._require_admin(actor, organization_id)
        branch_id = _required(data, "branch_id", "Branch")
        branch = self.directory.find_branch(branch_id)
        if branch is None or branch.organization_id != organization_id:
            raise ValidationError(f"Unknown branch: {branch_id}.", field="branch_id")
        if not branch.is_active:
            raise ValidationError(f"Branch {branch.name} is inactive.", field="branch_id")
        department = Department(
            organization_id=organization_id,
            branch_id=branch_id,
            name=_required(data, "name", "Department name"),
        )
        return self.directory.create_department(department)

    def create_user(self, actor: Actor, organization_id: str, data: Optional[Dict[str, Any]]) -> StaffUser:
        data = data or {}
        self._require_admin(actor, organization_id)
        email = _required(data, "email", "Email").lower()
        user = StaffUser(
            organization_id=organization_id,
            email=email,
            display_name=(data.get("display_name") or "").strip() or email,
            role=self._role(data),
            department_id=self._department_for_user(organization_id, data),
            password_hash=self.auth.hash_password(self._password(data, "password")),
        )
        return self.directory.create_user(user)

    # =========================================================================
    # Users
    # =========================================================================

    @staticmethod
    def _role(data: Dict[str, Any]) -> str:
        role = (data.get("role") or UserRole.STAFF).strip()
        if role not in UserRole.ALL:
            raise ValidationError(f"Role must be one of: {', '.join(UserRole.ALL)}.", field="role")
        return role

    def _department_for_user(self, organization_id: str, data: Dict[str, Any]) -> Optional[str]:
        department_id = (data.get("department_id") or "").strip() or None
        if department_id:
            department = self.directory.find_department(department_id)
            if department is None or department.organization_id != organization_id:
                raise ValidationError(f"Unknown department: {department_id}.", field="department_id")
        return department_id

    def _user(self, organization_id: str, user_id: str) -> StaffUser:
        user = self.directory.find_user(user_id)
        if user is None or user.organization_id != organization_id:
            raise NotFound(f"User {user_id} not found.")
        return user

    def list_users(self, actor: Actor, organization_id: str, search: str = "") -> List[StaffUser]:
        """Staff of the organization, matched on name or email."""
        self._require_member(actor, organization_id)
        needle = (search or "").strip().lower()
        users = [
            u for u in self.directory.list_users(organization_id)
            if not needle or needle in u.email.lower() or needle in (u.display_name or "").lower()
        ]
        return sorted(users, key=lambda u: (u.display_name or u.email).lower())

    def get_user(self, actor: Actor, organization_id: str, user_id: str) -> StaffUser:
        self._require_member(actor, organization_id)
        return self._user(organization_id, user_id)

    def update_user(
        self, actor: Actor, organization_id: str, user_id: str, data: Optional[Dict[str, Any]]
    ) -> StaffUser:
        """Edit profile, role, department or status. Passwords are not changed here."""
        data = data or {}
        self._require_admin(actor, organization_id)
        user = self._user(organization_id, user_id)
        if "email" in data:
            user.email = _required(data, "email", "Email").lower()
        if "display_name" in data:
            user.display_name = (data.get("display_name") or "").strip() or user.email
        if "role" in data:
            user.role = self._role(data)
        if "department_id" in data:
            user.department_id = self._department_for_user(organization_id, data)
        if "status" in data:
            user.status = _parse_status(data.get("status"))
        if user.user_id == actor.user_id and (not user.is_admin or user.status != RecordStatus.ACTIVE):
            raise ValidationError("You cannot remove your own administrator access.", field="role")
        return self.directory.update_user(user)

    def deactivate_user(self, actor: Actor, organization_id: str, user_id: str) -> StaffUser:
        """Deactivated users can no longer sign in or use existing tokens."""
        return self.update_user(actor, organization_id, user_id, {"status": RecordStatus.INACTIVE})

    # =========================================================================
    # Branches
    # =========================================================================

    def _branch(self, organization_id: str, branch_id: str) -> Branch:
        branch = self.directory.find_branch(branch_id)
        if branch is None or branch.organization_id != organization_id:
            raise NotFound(f"Branch {branch_id} not found.")
        return branch

    def list_branches(self, actor: Actor, organization_id: str, search: str = "") -> List[Dict[str, Any]]:
        """Branches with their departments, filtered by name or id."""
        self._require_member(actor, organization_id)
        departments = self.directory.list_departments(organization_id)
        needle = (search or "").strip().lower()
        result = []
        for branch in sorted(self.directory.list_branches(organization_id), key=lambda b: b.name.lower()):
            if needle and needle not in branch.name.lower() and needle not in branch.branch_id.lower():
                continue
            data = branch.to_dict()
            data["departments"] = [d.to_dict() for d in departments if d.branch_id == branch.branch_id]
            result.append(data)
        return result

    def get_branch(self, actor: Actor, organization_id: str, branch_id: str) -> Dict[str, Any]:
        self._require_member(actor, organization_id)
        branch = self._branch(organization_id, branch_id)
        data = branch.to_dict()
        data["departments"] = [
            d.to_dict() for d in self.directory.list_departments(organization_id) if d.branch_id == branch_id
        ]
        return data

    def update_branch(
        self, actor: Actor, organization_id: str, branch_id: str, data: Optional[Dict[str, Any]]
    ) -> Branch:
        """Rename, re-address or (de)activate a branch."""
        data = data or {}
        self._require_admin(actor, organization_id)
        branch = self._branch(organization_id, branch_id)
        if "name" in data:
            branch.name = _required(data, "name", "Branch name")
        if "address" in data:
            branch.address = (data.get("address") or "").strip()
        if "status" in data:
            branch.status = _parse_status(data.get("status"))
        return self.directory.update_branch(branch)

    def deactivate_branch(self, actor: Actor, organization_id: str, branch_id: str) -> Branch:
        """Branch and its departments stop receiving referrals. Existing rows are untouched."""
        self._require_admin(actor, organization_id)
        branch = self._branch(organization_id, branch_id)
        branch.status = RecordStatus.INACTIVE
        branch = self.directory.update_branch(branch)
        for department in self.directory.list_departments(organization_id):
            if department.branch_id == branch_id and department.is_active:
                department.status = RecordStatus.INACTIVE
                self.directory.update_department(department)
        self.logger.info("Branch %s deactivated by %s", branch_id, actor.user_id)
        return branch

    # =========================================================================
    # Departments
    # =========================================================================

    def _department(self, organization_id: str, department_id: str) -> Department:
        department = self.directory.find_department(department_id)
        if department is None or department.organization_id != organization_id:
            raise NotFound(f"Department {department_id} not found.")
        return department

    def list_departments(
        self, actor: Actor, organization_id: str, branch_id: Optional[str] = None, search: str = ""
    ) -> List[Department]:
        self._require_member(actor, organization_id)
        needle = (search or "").strip().lower()
        departments = [
            d for d in self.directory.list_departments(organization_id)
            if (not branch_id or d.branch_id == branch_id)
            and (not needle or needle in d.name.lower() or needle in d.department_id.lower())
        ]
        return sorted(departments, key=lambda d: d.name.lower())

    def get_department(self, actor: Actor, organization_id: str, department_id: str) -> Department:
        self._require_member(actor, organization_id)
        return self._department(organization_id, department_id)

    def update_department(
        self, actor: Actor, organization_id: str, department_id: str, data: Optional[Dict[str, Any]]
    ) -> Department:
        """Rename, move to another branch of the organization, or (de)activate."""
        data = data or {}
        self._require_admin(actor, organization_id)
        department = self._department(organization_id, department_id)
        if "name" in data:
            department.name = _required(data, "name", "Department name")
        if "branch_id" in data:
            branch_id = _required(data, "branch_id", "Branch")
            branch = self.directory.find_branch(branch_id)
            if branch is None or branch.organization_id != organization_id:
                raise ValidationError(f"Unknown branch: {branch_id}.", field="branch_id")
            if not branch.is_active:
                raise ValidationError(f"Branch {branch.name} is inactive.", field="branch_id")
            department.branch_id = branch_id
        if "status" in data:
            department.status = _parse_status(data.get("status"))
        return self.directory.update_department(department)

    def deactivate_department(self, actor: Actor, organization_id: str, department_id: str) -> Department:
        self._require_admin(actor, organization_id)
        department = self._department(organization_id, department_id)
        department.status = RecordStatus.INACTIVE
        self.logger.info("Department %s deactivated by %s", department_id, actor.user_id)
        return self.directory.update_department(department)

    def receiver_directory(self, actor: Actor, search: str = "") -> List[Dict[str, Any]]:
        """
        Departments a sender can pick as receivers.

        Active departments of other organizations, labelled with their
        organization, matched case-insensitively on either name.
        """
        needle = (search or "").strip().lower()
        organizations: Dict[str, Organization] = {}
        result = []
        for department in self.directory.list_departments():
            if department.organization_id == actor.organization_id or not department.is_active:
                continue
            if department.organization_id not in organizations:
                organizations[department.organization_id] = self.directory.get_organization(
                    department.organization_id
                )
            organization = organizations[department.organization_id]
            if needle and needle not in department.name.lower() and needle not in organization.name.lower():
                continue
            result.append({
                "department_id": department.department_id,
                "name": department.name,
                "organization_id": organization.organization_id,
                "organization_name": organization.name,
                "state": organization.state,
            })
        return sorted(result, key=lambda r: (r["organization_name"].lower(), r["name"].lower()))

    # =========================================================================
    # Credits
    # =========================================================================

    def get_credits(self, actor: Actor, organization_id: str, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        """Balance plus paginated wallet history (newest first)."""
        organization = self._require_member(actor, organization_id)
        transactions = self.directory.list_credit_transactions(organization_id)
        history = paginate([t.to_dict() for t in transactions], page, limit)
        return {
            "organization_id": organization_id,
            "credit_balance": str(organization.credit_balance),
            "transactions": history["items"],
            "meta": history["meta"],
        }

    def top_up_credits(
        self,
        actor: Actor,
        organization_id: str,
        amount,
        description: str = "",
    ) -> Dict[str, Any]:
        self._require_admin(actor, organization_id)
        amount = _parse_amount(amount)
        transaction = self.directory.add_credits(
            organization_id,
            amount,
            transaction_type="top_up",
            user_id=actor.user_id,
            description=(description or "").strip() or "Wallet top-up",
        )
        organization = self.directory.get_organization(organization_id)
        self.logger.info("Topped up %s credits for %s", amount, organization_id)
        return {"transaction": transaction.to_dict(), "credit_balance": str(organization.credit_balance)}
