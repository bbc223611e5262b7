"""
Pytest configuration for all tests.
Sets up Python path to find the backend rcn package and shared fixtures.
"""

import sys
import os
from decimal import Decimal

import pytest

# Add backend directory to Python path
backend_path = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'backend'))
if backend_path not in sys.path:
    sys.path.insert(0, backend_path)

from rcn.db.demo_store import DemoStore  # noqa: E402
from rcn.domain.directory import Actor, UserRole  # noqa: E402
from rcn.services.payment_processor import DemoPaymentProcessor  # noqa: E402
from rcn.services.referral_service import ReferralService  # noqa: E402


SUNRISE = "DEP-sunrise-intake"
GREEN_VALLEY = "DEP-greenvalley-intake"
NORTHSIDE = "DEP-northside-intake"
LAKEVIEW = "DEP-lakeview-intake"
CITYWIDE = "DEP-citywide-orders"


def _receiver(slug: str, name: str, department_id: str) -> Actor:
    return Actor(
        user_id=f"USR-{slug}-intake",
        organization_id=f"ORG-{slug}",
        display_name=f"{name} Intake",
        role=UserRole.ORG_ADMIN,
        department_id=department_id,
        organization_name=name,
    )


@pytest.fixture
def store(tmp_path):
    """Demo document store seeded with the demo network."""
    return DemoStore(str(tmp_path / "rcn-demo-state.json"))


@pytest.fixture
def processor(store):
    return DemoPaymentProcessor(store, price_per_referral=Decimal("10.00"), fee_percent=Decimal("3.0"))


@pytest.fixture
def service(store, processor):
    return ReferralService(store, store, processor)


@pytest.fixture
def sender():
    return Actor(
        user_id="USR-lakeshore-cm",
        organization_id="ORG-lakeshore",
        display_name="Jordan Reyes",
        role=UserRole.STAFF,
        department_id="DEP-lakeshore-cm",
        organization_name="Lakeshore General Hospital",
    )


@pytest.fixture
def sunrise():
    return _receiver("sunrise", "Sunrise Home Health", SUNRISE)


@pytest.fixture
def green_valley():
    return _receiver("greenvalley", "Green Valley PT", GREEN_VALLEY)


@pytest.fixture
def northside():
    return _receiver("northside", "Northside Nursing", NORTHSIDE)


@pytest.fixture
def lakeview():
    return _receiver("lakeview", "Lakeview Hospice", LAKEVIEW)


@pytest.fixture
def citywide():
    return _receiver("citywide", "Citywide Imaging", CITYWIDE)


@pytest.fixture
def referral_data():
    """A complete referral body; callers set department_ids / is_draft."""
    return {
        "sender": {
            "sender_name": "Jordan Reyes",
            "facility_name": "Lakeshore General Hospital",
            "sender_email": "casemanager@lakeshoregeneral.org",
        },
        "patient": {
            "first_name": "John",
            "last_name": "Doe",
            "dob": "1950-02-01",
            "gender": "M",
            "address_of_care": "Home",
        },
        "speciality_ids": ["Skilled Nursing", "PT eval"],
        "insurance": [
            {"payer": "Medicare", "policy": "1EG4-TE5-MK72", "plan_group": "PART-A"},
        ],
        "additional_patient": {
            "phone_number": "(312) 555-0199",
            "primary_language": "English",
            "social_security_number": "XXX-XX-1234",
        },
        "documents": {"discharge_summary": "https://files.example.org/ds.pdf"},
    }
