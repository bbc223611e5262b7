"""
Backend services for the referral coordination network.

- ReferralStatusEngine: per-department transitions and visibility policy
- ActivityLogService: append-only referral activity
- ReferralService: referral lifecycle, receiver payments and chat
- InboxService: sent / received listings
- AuthService: staff login and access tokens
- OrganizationService: organizations, departments, users and credits
- PaymentProcessor: quotes and charges (Stripe or demo)
"""

from .status_engine import ReferralStatusEngine, TransitionResult, VisibilityPolicy
from .pricing import build_payment_summary
from .payment_processor import PaymentProcessor, StripePaymentProcessor, DemoPaymentProcessor
from .activity_log import ActivityLogService
from .referral_service import ReferralService, PaymentOutcome
from .inbox import InboxService, InboxQuery
from .auth_service import AuthService
from .organization_service import OrganizationService

__all__ = [
    "ReferralStatusEngine",
    "TransitionResult",
    "VisibilityPolicy",
    "build_payment_summary",
    # Payments
    "PaymentProcessor",
    "StripePaymentProcessor",
    "DemoPaymentProcessor",
    "ActivityLogService",
    "ReferralService",
    "PaymentOutcome",
    "InboxService",
    "InboxQuery",
    "AuthService",
    "OrganizationService",
]
