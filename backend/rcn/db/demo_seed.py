"""
Demo seed data: one sending hospital, five receiving agencies and one sent
referral (REF-10291) in mixed states.

Used by the JSON demo store on first load and by scripts/seed_demo.py for
the SQL database.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List

import bcrypt

from rcn.domain.billing import CreditTransaction
from rcn.domain.directory import Branch, Department, Organization, StaffUser, UserRole
from rcn.domain.referral import (
    ActivityEntry,
    AdditionalPatientInfo,
    DepartmentStatus,
    DepartmentStatusValue,
    Documents,
    InsuranceEntry,
    Patient,
    PaymentType,
    Referral,
    SenderInfo,
    utcnow,
)

DEMO_PASSWORD = "demo1234"

SENDER_ORG_ID = "ORG-lakeshore"
SENDER_DEPARTMENT_ID = "DEP-lakeshore-cm"

# (org id, name, email, department id)
RECEIVING_AGENCIES = [
    ("ORG-sunrise", "Sunrise Home Health", "intake@sunrisehh.com", "DEP-sunrise-intake"),
    ("ORG-greenvalley", "Green Valley PT", "referrals@greenvalleypt.com", "DEP-greenvalley-intake"),
    ("ORG-northside", "Northside Nursing", "intake@northsidenursing.com", "DEP-northside-intake"),
    ("ORG-lakeview", "Lakeview Hospice", "intake@lakeviewhospice.com", "DEP-lakeview-intake"),
    ("ORG-citywide", "Citywide Imaging", "orders@citywideimaging.com", "DEP-citywide-orders"),
]


def build_demo_directory(password_hash: str, now=None) -> Dict[str, List[Any]]:
    """Organizations, branches, departments and one user per department."""
    now = now or utcnow()
    organizations = [
        Organization(
            organization_id=SENDER_ORG_ID,
            name="Lakeshore General Hospital",
            email="referrals@lakeshoregeneral.org",
            state="IL",
            credit_balance=Decimal("100.00"),
            created_at=now,
        )
    ]
    branches = [
        Branch(
            branch_id="BR-lakeshore-main",
            organization_id=SENDER_ORG_ID,
            name="Main Campus",
            address="820 N Michigan Ave, Chicago, IL",
            created_at=now,
        )
    ]
    departments = [
        Department(
            department_id=SENDER_DEPARTMENT_ID,
            organization_id=SENDER_ORG_ID,
            branch_id="BR-lakeshore-main",
            name="Case Management",
            created_at=now,
        )
    ]
    users = [
        StaffUser(
            user_id="USR-lakeshore-admin",
            organization_id=SENDER_ORG_ID,
            email="admin@lakeshoregeneral.org",
            display_name="Lakeshore Admin",
            role=UserRole.ORG_ADMIN,
            password_hash=password_hash,
            created_at=now,
        ),
        StaffUser(
            user_id="USR-lakeshore-cm",
            organization_id=SENDER_ORG_ID,
            department_id=SENDER_DEPARTMENT_ID,
            email="casemanager@lakeshoregeneral.org",
            display_name="Jordan Reyes",
            role=UserRole.STAFF,
            password_hash=password_hash,
            created_at=now,
        ),
    ]

    for org_id, name, email, department_id in RECEIVING_AGENCIES:
        slug = org_id.split("-", 1)[1]
        branch_id = f"BR-{slug}-main"
        organizations.append(
            Organization(
                organization_id=org_id,
                name=name,
                email=email,
                state="IL",
                credit_balance=Decimal("50.00"),
                created_at=now,
            )
        )
        branches.append(Branch(branch_id=branch_id, organization_id=org_id, name="Main Office", created_at=now))
        departments.append(
            Department(
                department_id=department_id,
                organization_id=org_id,
                branch_id=branch_id,
                name="Intake",
                created_at=now,
            )
        )
        users.append(
            StaffUser(
                user_id=f"USR-{slug}-intake",
                organization_id=org_id,
                department_id=department_id,
                email=email,
                display_name=f"{name} Intake",
                role=UserRole.ORG_ADMIN,
                password_hash=password_hash,
                created_at=now,
            )
        )

    return {
        "organizations": organizations,
        "branches": branches,
        "departments": departments,
        "users": users,
    }


def build_demo_referral(now=None) -> Referral:
    """REF-10291: accepted by Sunrise, pending at Green Valley, rejected by Northside."""
    now = now or utcnow()
    sent_at = now - timedelta(days=3)
    decided_at = now - timedelta(days=2)

    def row(index: int, status: DepartmentStatusValue, reason: str = "", updated=None) -> DepartmentStatus:
        org_id, name, _, department_id = RECEIVING_AGENCIES[index]
        return DepartmentStatus(
            department_id=department_id,
            department_name="Intake",
            organization_id=org_id,
            organization_name=name,
            status=status,
            rejection_reason=reason,
            version=1 if status == DepartmentStatusValue.PENDING else 2,
            created_at=sent_at,
            updated_at=updated or sent_at,
        )

    return Referral(
        referral_id="REF-10291",
        sender_organization_id=SENDER_ORG_ID,
        sender_user_id="USR-lakeshore-cm",
        sender=SenderInfo(
            sender_name="Jordan Reyes",
            facility_name="Lakeshore General Hospital",
            facility_address="820 N Michigan Ave, Chicago, IL",
            sender_email="casemanager@lakeshoregeneral.org",
            sender_phone_number="(312) 555-0100",
            sender_fax_number="(312) 555-0101",
        ),
        patient=Patient(
            first_name="Maria",
            last_name="Williams",
            dob="1969-04-12",
            gender="F",
            address_of_care="Home - 1550 W Lake St, Chicago, IL",
        ),
        speciality_ids=["PT eval", "Skilled Nursing", "Wound Care"],
        insurance=[
            InsuranceEntry(payer="CountyCare", policy="CC-7788129", plan_group="MCD-IL"),
            InsuranceEntry(payer="Medicare Part A", policy="1EG4-XX9-XX11", plan_group="PART-A"),
        ],
        additional_patient=AdditionalPatientInfo(
            phone_number="(312) 555-0912",
            primary_language="Spanish",
            power_of_attorney="Daughter: Ana Williams",
            social_security_number="XXX-XX-2388",
            other_information="Prefers afternoon calls; wheelchair at baseline",
        ),
        documents=Documents(
            discharge_summary="https://files.example.org/REF-10291/discharge-summary.pdf",
            medication_list="https://files.example.org/REF-10291/medication-list.pdf",
            wound_photos=["https://files.example.org/REF-10291/wound-1.jpg"],
        ),
        is_draft=False,
        payment_type=PaymentType.FREE,
        created_at=sent_at,
        updated_at=decided_at,
        sent_at=sent_at,
        department_statuses=[
            row(0, DepartmentStatusValue.ACTIVE, updated=decided_at),
            row(1, DepartmentStatusValue.PENDING),
            row(2, DepartmentStatusValue.REJECTED, reason="Out of service area", updated=decided_at),
        ],
        activity_log=[
            ActivityEntry(
                at=sent_at,
                actor="System",
                message="Referral sent to 3 receiver(s).",
                event_type="Referral.Sent",
            ),
            ActivityEntry(
                at=decided_at,
                actor="Sunrise Home Health",
                message="Accepted (pending payment to unlock additional info).",
                event_type="Referral.Accepted",
                department_id=RECEIVING_AGENCIES[0][3],
            ),
            ActivityEntry(
                at=decided_at,
                actor="Northside Nursing",
                message="Rejected: Out of service area.",
                event_type="Referral.Rejected",
                department_id=RECEIVING_AGENCIES[2][3],
            ),
        ],
    )


def build_demo_state(password: str = DEMO_PASSWORD, now=None) -> Dict[str, Any]:
    """
    Complete demo document body (the value stored under the storage key).
    """
    now = now or utcnow()
    password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
    directory = build_demo_directory(password_hash, now=now)
    referral = build_demo_referral(now=now)
    opening = [
        CreditTransaction(
            transaction_id=f"TXN-{org.organization_id.split('-', 1)[1]}-open",
            organization_id=org.organization_id,
            direction="in",
            amount=org.credit_balance,
            transaction_type="top_up",
            description="Opening balance",
            created_at=now - timedelta(days=7),
        )
        for org in directory["organizations"]
    ]

    return {
        "organizations": {o.organization_id: o.to_dict() for o in directory["organizations"]},
        "branches": {b.branch_id: b.to_dict() for b in directory["branches"]},
        "departments": {d.department_id: d.to_dict() for d in directory["departments"]},
        "users": {u.user_id: u.to_dict(include_secret=True) for u in directory["users"]},
        "referrals": {referral.referral_id: referral.to_dict()},
        "payments": {},
        "credit_transactions": [t.to_dict() for t in opening],
        "chat_messages": [],
    }


def empty_state() -> Dict[str, Any]:
    return {
        "organizations": {},
        "branches": {},
        "departments": {},
        "users": {},
        "referrals": {},
        "payments": {},
        "credit_transactions": [],
        "chat_messages": [],
    }
