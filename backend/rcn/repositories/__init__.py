"""
Storage backends for referrals and the organization directory.
"""

from .base import ReferralRepository, DirectoryRepository

__all__ = [
    "ReferralRepository",
    "DirectoryRepository",
]
