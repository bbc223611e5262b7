"""
Referral coordination network backend.

Senders route a patient referral to receiving departments; each department
accepts, rejects or pays to unlock the full referral independently.
"""

__version__ = "0.1.0"
