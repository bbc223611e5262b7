"""
JSON API blueprints.

- referrals.py: referral lifecycle, inboxes, receiver actions and chat
- payments.py: card payment confirmation and cancellation
- organizations.py: registration, directory and credits
- directory.py: departments a sender can refer to
"""

from .referrals import bp as referrals_bp
from .payments import bp as payments_bp
from .organizations import bp as organizations_bp
from .directory import bp as directory_bp

__all__ = ["referrals_bp", "payments_bp", "organizations_bp", "directory_bp"]
