"""
ActivityLogService: append-only referral communication log.

PHI-safe metadata only - no SSN, DOB, address or phone numbers.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from rcn.domain.directory import Actor
from rcn.domain.referral import ActivityEntry, utcnow


SYSTEM_ACTOR = "System"


class ActivityLogService:
    """
    Append-only activity logging for referrals.

    Event types:
    - Referral.Created / Referral.Sent / Referral.Forwarded: sender actions
    - Referral.Accepted / Referral.Rejected: receiver decisions
    - Payment.Initiated / Payment.Confirmed: unlock payments
    """

    REFERRAL_CREATED = "Referral.Created"
    REFERRAL_SENT = "Referral.Sent"
    REFERRAL_FORWARDED = "Referral.Forwarded"
    REFERRAL_ACCEPTED = "Referral.Accepted"
    REFERRAL_REJECTED = "Referral.Rejected"
    PAYMENT_INITIATED = "Payment.Initiated"
    PAYMENT_CONFIRMED = "Payment.Confirmed"

    PHI_KEYS = {
        "ssn",
        "social_security",
        "social_security_number",
        "dob",
        "date_of_birth",
        "address",
        "address_of_care",
        "phone",
        "phone_number",
    }

    def __init__(self, repository):
        self.repository = repository
        self.logger = logging.getLogger("service.ActivityLog")

    def append(
        self,
        referral_id: str,
        message: str,
        event_type: str,
        actor: Optional[Actor] = None,
        department_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        at: Optional[datetime] = None,
    ) -> ActivityEntry:
        """
        Append an entry to the referral's log.

        This is INSERT-only; entries are never updated or deleted.
        """
        entry = self.build(message, event_type, actor, department_id, metadata, at)
        self.repository.append_activity(referral_id, entry)
        self.logger.debug("%s %s: %s", referral_id, event_type, message)
        return entry

    def build(
        self,
        message: str,
        event_type: str,
        actor: Optional[Actor] = None,
        department_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        at: Optional[datetime] = None,
    ) -> ActivityEntry:
        """Sanitized entry for a repository write that carries its own log line."""
        return ActivityEntry(
            actor=actor.label if actor else SYSTEM_ACTOR,
            actor_user_id=actor.user_id if actor else None,
            message=message,
            event_type=event_type,
            department_id=department_id,
            metadata=self._sanitize_payload(metadata) if metadata else {},
            at=at or utcnow(),
        )

    def entries(self, referral_id: str, department_id: Optional[str] = None) -> List[ActivityEntry]:
        """Chronological entries; with ``department_id``, that department's plus referral-wide ones."""
        referral = self.repository.get_referral(referral_id)
        entries = sorted(referral.activity_log, key=lambda e: e.at)
        if department_id is None:
            return entries
        return [e for e in entries if e.department_id in (None, department_id)]

    def _sanitize_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Redact PHI keys, recursively."""
        sanitized = {}
        for key, value in payload.items():
            if key.lower() in self.PHI_KEYS:
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_payload(value)
            else:
                sanitized[key] = value
        return sanitized
