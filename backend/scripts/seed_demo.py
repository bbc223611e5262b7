#!/usr/bin/env python3
"""
DEMO SEED SCRIPT
================

Loads the demo network into the SQL database:
- Lakeshore General Hospital (sender) and five receiving agencies
- One department and one staff user per organization
- Referral REF-10291 in mixed states (accepted / pending / rejected)

RE-RUN ANYTIME: python scripts/seed_demo.py

Existing demo rows (same ids) are cleared and replaced. Local demo mode
(STORAGE_BACKEND=demo) seeds itself and does not need this script.
"""

import sys
import os
from decimal import Decimal

import bcrypt
from sqlalchemy import delete

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rcn.db.demo_seed import DEMO_PASSWORD, build_demo_directory, build_demo_referral
from rcn.db.postgres import get_db_session, init_db
from rcn.models import (
    BranchRecord,
    CreditTransactionRecord,
    DepartmentRecord,
    DepartmentStatusRecord,
    OrganizationRecord,
    ReferralActivityRecord,
    ReferralChatMessageRecord,
    ReferralInsuranceRecord,
    ReferralPaymentRecord,
    ReferralRecord,
    StaffUserRecord,
)
from rcn.repositories.sql import SqlDirectoryRepository, SqlReferralRepository


def clear_demo_data(session, directory, referral_ids):
    """Remove rows belonging to the demo organizations and referrals."""
    org_ids = [o.organization_id for o in directory["organizations"]]

    referral_tables = [
        ReferralChatMessageRecord,
        ReferralPaymentRecord,
        ReferralActivityRecord,
        DepartmentStatusRecord,
        ReferralInsuranceRecord,
    ]
    for table in referral_tables:
        session.execute(delete(table).where(table.referral_id.in_(referral_ids)))
    session.execute(delete(ReferralRecord).where(ReferralRecord.referral_id.in_(referral_ids)))

    session.execute(delete(CreditTransactionRecord).where(CreditTransactionRecord.organization_id.in_(org_ids)))
    session.execute(delete(StaffUserRecord).where(StaffUserRecord.organization_id.in_(org_ids)))
    session.execute(delete(DepartmentRecord).where(DepartmentRecord.organization_id.in_(org_ids)))
    session.execute(delete(BranchRecord).where(BranchRecord.organization_id.in_(org_ids)))
    session.execute(delete(OrganizationRecord).where(OrganizationRecord.organization_id.in_(org_ids)))
    session.commit()
    print(f"  Cleared {len(org_ids)} demo organizations and {len(referral_ids)} referral(s)")


def seed_directory(repository, directory):
    for organization in directory["organizations"]:
        opening_balance = organization.credit_balance
        organization.credit_balance = Decimal("0.00")
        repository.create_organization(organization)
        repository.add_credits(
            organization.organization_id,
            opening_balance,
            transaction_type="top_up",
            description="Opening balance",
        )
    for branch in directory["branches"]:
        repository.create_branch(branch)
    for department in directory["departments"]:
        repository.create_department(department)
    for user in directory["users"]:
        repository.create_user(user)
    print(f"  Seeded {len(directory['organizations'])} organizations, {len(directory['users'])} users")


def print_demo_summary(directory, referral):
    print("\nDEMO LOGINS (password: %s)" % DEMO_PASSWORD)
    print("-" * 50)
    for user in directory["users"]:
        print(f"  {user.email:<40} {user.role}")

    print(f"\nREFERRAL {referral.referral_id}")
    print("-" * 50)
    for row in referral.department_statuses:
        print(f"  {row.organization_name:<28} {row.state.label}")
    print()


# =============================================================================
# MAIN
# =============================================================================

def main():
    print("=" * 60)
    print("REFERRAL NETWORK - DEMO DATA SEED")
    print("=" * 60)

    init_db()

    password_hash = bcrypt.hashpw(DEMO_PASSWORD.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
    directory = build_demo_directory(password_hash)
    referral = build_demo_referral()

    clear_demo_data(get_db_session(), directory, [referral.referral_id])
    seed_directory(SqlDirectoryRepository(), directory)
    SqlReferralRepository().create_referral(referral)

    print_demo_summary(directory, referral)
    print("Demo seed complete.\n")


if __name__ == "__main__":
    main()
