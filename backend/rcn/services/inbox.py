"""
Inbox read-model.

Sent and received listings are plain predicate composition over the
referrals a repository returns: box membership, status label, text search
and an inclusive date range, newest first, then paginated.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
import logging
import math
from typing import Any, Callable, Dict, List, Optional

from rcn.domain.directory import Actor
from rcn.domain.referral import ReceiverState, Referral, ViewerRole, overall_status
from rcn.errors import ValidationError


SENT = "sent"
RECEIVED = "received"
MAX_PAGE_SIZE = 100

Predicate = Callable[[Referral], bool]


@dataclass
class InboxQuery:
    organization_id: str
    box: str = SENT
    department_id: Optional[str] = None
    status: Optional[str] = None
    search: str = ""
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    page: int = 1
    limit: int = 10

    @classmethod
    def from_args(cls, organization_id: str, box: str, args) -> "InboxQuery":
        """Build from request query args (``status``, ``search``, ``from``, ``to``, ``page``, ``limit``)."""
        return cls(
            organization_id=organization_id,
            box=box,
            department_id=args.get("department_id") or None,
            status=(args.get("status") or "").strip().upper() or None,
            search=(args.get("search") or "").strip(),
            date_from=_parse_date(args.get("from") or args.get("date_from"), "from"),
            date_to=_parse_date(args.get("to") or args.get("date_to"), "to"),
            page=parse_positive_int(args.get("page"), 1, "page"),
            limit=parse_positive_int(args.get("limit"), 10, "limit", maximum=MAX_PAGE_SIZE),
        )


def _parse_date(value: Optional[str], field: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value}.", field=field) from e


def parse_positive_int(value, default: int, field: str, maximum: Optional[int] = None) -> int:
    """Positive integer query arg; values above ``maximum`` are clamped to it."""
    if value in (None, ""):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field} must be a number.", field=field) from e
    if number < 1:
        raise ValidationError(f"{field} must be at least 1.", field=field)
    if maximum is not None:
        return min(number, maximum)
    return number


# =============================================================================
# Predicates
# =============================================================================

def belongs_to_sent(organization_id: str) -> Predicate:
    return lambda r: r.sender_organization_id == organization_id


def belongs_to_received(department_ids: List[str]) -> Predicate:
    wanted = set(department_ids)
    return lambda r: not r.is_draft and any(row.department_id in wanted for row in r.department_statuses)


def status_is(label: str, department_ids: Optional[List[str]] = None) -> Predicate:
    """Overall label for the sent box, the department row's label for received."""
    if label == "DRAFT":
        return lambda r: r.is_draft
    try:
        wanted = ReceiverState(label)
    except ValueError as e:
        raise ValidationError(f"Unknown status: {label}.", field="status") from e

    if department_ids is None:
        return lambda r: not r.is_draft and overall_status(r) == wanted

    ids = set(department_ids)
    return lambda r: any(row.state == wanted for row in r.department_statuses if row.department_id in ids)


def matches_search(text: str) -> Predicate:
    """Case-insensitive match on referral id, patient name or services."""
    needle = text.lower()

    def predicate(r: Referral) -> bool:
        haystack = [
            r.referral_id,
            r.patient.first_name,
            r.patient.last_name,
            r.patient.display_name,
            f"{r.patient.first_name} {r.patient.last_name}",
        ] + r.services_requested
        return any(needle in (value or "").lower() for value in haystack)

    return predicate


def _listed_at(r: Referral) -> datetime:
    return r.sent_at or r.created_at


def within_dates(date_from: Optional[date], date_to: Optional[date]) -> Predicate:
    start = datetime.combine(date_from, time.min) if date_from else None
    end = datetime.combine(date_to, time.max) if date_to else None

    def predicate(r: Referral) -> bool:
        at = _listed_at(r)
        if start and at < start:
            return False
        if end and at > end:
            return False
        return True

    return predicate


def paginate(items: List[Any], page: int, limit: int) -> Dict[str, Any]:
    total = len(items)
    total_pages = max(1, math.ceil(total / limit)) if limit else 1
    start = (page - 1) * limit
    return {
        "items": items[start:start + limit],
        "meta": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
    }


class InboxService:
    """Sent / received listings for the staff inbox."""

    def __init__(self, referrals, directory, engine):
        self.referrals = referrals
        self.directory = directory
        self.engine = engine
        self.logger = logging.getLogger("service.Inbox")

    def _receiving_departments(self, actor: Actor, department_id: Optional[str]) -> List[str]:
        if actor.department_id and not actor.is_admin:
            return [actor.department_id]
        own = [d.department_id for d in self.directory.list_departments(actor.organization_id)]
        if department_id:
            if department_id not in own:
                raise ValidationError(f"Unknown department: {department_id}.", field="department_id")
            return [department_id]
        return own

    def list(self, actor: Actor, query: InboxQuery) -> Dict[str, Any]:
        if query.box == SENT:
            candidates = self.referrals.list_sent(actor.organization_id)
            predicates = [belongs_to_sent(actor.organization_id)]
            department_ids = None
        elif query.box == RECEIVED:
            department_ids = self._receiving_departments(actor, query.department_id)
            candidates = self.referrals.list_received(department_ids)
            predicates = [belongs_to_received(department_ids)]
        else:
            raise ValidationError(f"Unknown inbox: {query.box}.", field="box")

        if query.status:
            predicates.append(status_is(query.status, department_ids))
        if query.search:
            predicates.append(matches_search(query.search))
        if query.date_from or query.date_to:
            predicates.append(within_dates(query.date_from, query.date_to))

        matched = [r for r in candidates if all(p(r) for p in predicates)]
        matched.sort(key=_listed_at, reverse=True)
        page = paginate(matched, query.page, query.limit)
        page["items"] = [self._summary(r, department_ids) for r in page["items"]]
        return page

    def _summary(self, referral: Referral, department_ids: Optional[List[str]]) -> Dict[str, Any]:
        """Inbox row. Never includes the payment-gated block."""
        item = {
            "referral_id": referral.referral_id,
            "patient_name": referral.patient.display_name,
            "services_requested": referral.services_requested,
            "is_draft": referral.is_draft,
            "payment_type": referral.payment_type.value,
            "created_at": referral.created_at.isoformat(),
            "sent_at": referral.sent_at.isoformat() if referral.sent_at else None,
        }
        if department_ids is None:
            item["status"] = "DRAFT" if referral.is_draft else overall_status(referral).value
            item["receivers"] = [
                {
                    "department_id": row.department_id,
                    "organization_name": row.organization_name,
                    "department_name": row.department_name,
                    "state": row.state.value,
                    "label": row.state.label,
                    "rejection_reason": row.rejection_reason,
                }
                for row in referral.department_statuses
            ]
            return item

        row = next(r for r in referral.department_statuses if r.department_id in department_ids)
        policy = self.engine.visibility(row, ViewerRole.RECEIVER)
        item["sender_organization_id"] = referral.sender_organization_id
        item["sender_facility"] = referral.sender.facility_name
        item["department_id"] = row.department_id
        item["status"] = row.state.value
        item["label"] = row.state.label
        item["version"] = row.version
        item["is_paid_by_sender"] = row.is_paid_by_sender
        item["unlocked"] = policy.additional_info
        item["available_actions"] = policy.available_actions
        return item
