"""
Unit tests for the sent / received inbox listings.
"""

from datetime import timedelta

import pytest
from werkzeug.datastructures import MultiDict

from rcn.domain.referral import utcnow
from rcn.errors import ValidationError
from rcn.services.inbox import MAX_PAGE_SIZE, RECEIVED, SENT, InboxQuery, InboxService, paginate


GREEN_VALLEY = "DEP-greenvalley-intake"
LAKEVIEW = "DEP-lakeview-intake"


@pytest.fixture
def inbox(store, service):
    return InboxService(store, store, service.engine)


@pytest.fixture
def seeded(service, sender, referral_data):
    """One draft and one fresh referral next to the seeded REF-10291."""
    draft = service.create_referral(sender, dict(referral_data, patient={"first_name": "Dora", "last_name": "Draft"}))
    sent = service.create_referral(sender, dict(referral_data, department_ids=[LAKEVIEW], is_draft=False))
    return draft, sent


def ids(page):
    return [item["referral_id"] for item in page["items"]]


# =============================================================================
# Sent box
# =============================================================================

class TestSentBox:

    def test_newest_first(self, inbox, sender, seeded):
        draft, sent = seeded
        page = inbox.list(sender, InboxQuery(sender.organization_id, SENT))
        assert set(ids(page)[:2]) == {draft.referral_id, sent.referral_id}
        assert ids(page)[-1] == "REF-10291"
        assert page["meta"]["total"] == 3

    def test_draft_filter(self, inbox, sender, seeded):
        draft, _ = seeded
        page = inbox.list(sender, InboxQuery(sender.organization_id, SENT, status="DRAFT"))
        assert ids(page) == [draft.referral_id]
        assert page["items"][0]["status"] == "DRAFT"

    def test_overall_status_filter(self, inbox, sender, seeded):
        page = inbox.list(sender, InboxQuery(sender.organization_id, SENT, status="PENDING"))
        assert "REF-10291" in ids(page)
        assert all(item["status"] == "PENDING" for item in page["items"])

    def test_receivers_summarized(self, inbox, sender):
        item = inbox.list(sender, InboxQuery(sender.organization_id, SENT))["items"][0]
        assert [r["label"] for r in item["receivers"]] == ["Accepted", "Pending", "Rejected"]
        assert item["receivers"][2]["rejection_reason"] == "Out of service area"

    def test_search_is_case_insensitive(self, inbox, sender, seeded):
        page = inbox.list(sender, InboxQuery(sender.organization_id, SENT, search="WILLIAMS"))
        assert ids(page) == ["REF-10291"]
        page = inbox.list(sender, InboxQuery(sender.organization_id, SENT, search="wound"))
        assert ids(page) == ["REF-10291"]

    def test_date_range(self, inbox, sender, seeded):
        yesterday = (utcnow() - timedelta(days=1)).date()
        page = inbox.list(sender, InboxQuery(sender.organization_id, SENT, date_from=yesterday))
        assert "REF-10291" not in ids(page)
        page = inbox.list(sender, InboxQuery(sender.organization_id, SENT, date_to=yesterday))
        assert ids(page) == ["REF-10291"]

    def test_unknown_status(self, inbox, sender):
        with pytest.raises(ValidationError):
            inbox.list(sender, InboxQuery(sender.organization_id, SENT, status="LOST"))


# =============================================================================
# Received box
# =============================================================================

class TestReceivedBox:

    def test_department_row_view(self, inbox, green_valley):
        page = inbox.list(green_valley, InboxQuery(green_valley.organization_id, RECEIVED))
        item = page["items"][0]
        assert item["department_id"] == GREEN_VALLEY
        assert item["status"] == "PENDING"
        assert item["unlocked"] is False
        assert item["available_actions"] == ["accept", "pay", "reject"]
        assert "additional_patient" not in item

    def test_drafts_never_received(self, inbox, lakeview, seeded):
        page = inbox.list(lakeview, InboxQuery(lakeview.organization_id, RECEIVED))
        assert ids(page) == [seeded[1].referral_id]

    def test_status_uses_own_row(self, inbox, northside):
        page = inbox.list(northside, InboxQuery(northside.organization_id, RECEIVED, status="REJECTED"))
        assert ids(page) == ["REF-10291"]
        page = inbox.list(northside, InboxQuery(northside.organization_id, RECEIVED, status="PENDING"))
        assert ids(page) == []

    def test_admin_cannot_pick_foreign_department(self, inbox, green_valley):
        with pytest.raises(ValidationError):
            inbox.list(green_valley, InboxQuery(green_valley.organization_id, RECEIVED, department_id="DEP-sunrise-intake"))


# =============================================================================
# Query parsing and pagination
# =============================================================================

class TestInboxQuery:

    def test_from_args(self):
        query = InboxQuery.from_args("ORG-1", SENT, MultiDict({
            "status": " pending ", "search": " doe ", "from": "2026-01-05", "page": "2", "limit": "5",
        }))
        assert query.status == "PENDING"
        assert query.search == "doe"
        assert query.date_from.isoformat() == "2026-01-05"
        assert (query.page, query.limit) == (2, 5)

    @pytest.mark.parametrize("args", [{"page": "0"}, {"limit": "abc"}, {"from": "yesterday"}])
    def test_bad_args(self, args):
        with pytest.raises(ValidationError):
            InboxQuery.from_args("ORG-1", SENT, MultiDict(args))

    def test_paginate_meta(self):
        page = paginate(list(range(25)), 3, 10)
        assert page["items"] == list(range(20, 25))
        assert page["meta"] == {
            "page": 3, "limit": 10, "total": 25, "totalPages": 3, "hasNextPage": False, "hasPrevPage": True,
        }

    def test_paginate_empty(self):
        assert paginate([], 1, 10)["meta"]["totalPages"] == 1

    def test_limit_is_capped(self):
        query = InboxQuery.from_args("ORG-1", SENT, MultiDict({"limit": "1000000"}))
        assert query.limit == MAX_PAGE_SIZE == 100
