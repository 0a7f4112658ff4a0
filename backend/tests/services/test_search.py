# tests/services/test_search.py
"""
Tests for the search/filter query builder

Coverage:
- Filter object parsing (unknown values dropped, dates, clamping)
- AND-of-ORs semantics across filter dimensions
- Pagination math
- Budget window containment
- Tag has-any matching
- Free-text search
- Sort whitelist and stable tie-break
- Timeout handling

Run with: pytest tests/services/test_search.py -v
"""

import asyncio
import pytest
from datetime import datetime, timezone
from unittest.mock import patch

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import update

from buyer_intake.errors import SearchTimeoutError
from buyer_intake.models import Buyer
from buyer_intake.schemas import BuyerSearchFilters
from buyer_intake.schemas.buyer import MAX_PAGE
from buyer_intake.services.buyer_store import BuyerStore
from buyer_intake.services.search import BuyerSearchService, build_query, total_pages


@pytest.fixture
def make_many(make_buyer):
    """Create `count` buyers with distinct contact details."""
    async def _make(owner, count, **overrides):
        buyers = []
        for idx in range(count):
            buyers.append(await make_buyer(
                owner,
                email=f"buyer{idx}@example.com",
                phone=f"98{idx:08d}",
                **overrides,
            ))
        return buyers
    return _make


async def set_status(db, buyer, status):
    await db.execute(update(Buyer).where(Buyer.id == buyer.id).values(status=status))
    await db.commit()


async def run(db, **filters):
    return await BuyerSearchService(db).search(BuyerSearchFilters(**filters))


# ============================================================================
# FILTER OBJECT
# ============================================================================

@pytest.mark.unit
class TestFilterParsing:

    def test_defaults(self):
        filters = BuyerSearchFilters()

        assert filters.page == 1
        assert filters.limit == 20
        assert filters.sort_by == "updatedAt"
        assert filters.sort_order == "desc"
        assert filters.status == []

    def test_unknown_values_silently_dropped(self):
        filters = BuyerSearchFilters.model_validate({"status": ["New", "Bogus"], "city": "Mohali,Atlantis"})

        assert filters.status == ["New"]
        assert filters.city == ["Mohali"]

    def test_page_and_limit_clamped(self):
        filters = BuyerSearchFilters.model_validate({"page": 0, "limit": 1000})

        assert filters.page == 1
        assert filters.limit == 100

    def test_huge_page_keeps_offset_in_int64(self):
        filters = BuyerSearchFilters.model_validate({"page": 10 ** 20, "limit": 100})

        assert filters.page == MAX_PAGE
        assert filters.offset < 2 ** 63

    def test_non_numeric_page_rejected(self):
        with pytest.raises(PydanticValidationError):
            BuyerSearchFilters.model_validate({"page": float("inf")})

    def test_date_only_upper_bound_covers_whole_day(self):
        filters = BuyerSearchFilters.model_validate({"dateFrom": "2025-01-15", "dateTo": "2025-01-15"})

        assert filters.date_from == datetime(2025, 1, 15, tzinfo=timezone.utc)
        assert filters.date_to == datetime(2025, 1, 15, 23, 59, 59, 999999, tzinfo=timezone.utc)

    def test_filters_are_immutable(self):
        filters = BuyerSearchFilters()
        with pytest.raises(Exception):
            filters.page = 2

    def test_unsupported_sort_falls_back(self):
        plan = build_query(BuyerSearchFilters(sort_by="password_hash"))
        assert "updated_at" in str(plan.order_by[0])

    def test_total_pages(self):
        assert total_pages(0, 10) == 1
        assert total_pages(25, 10) == 3
        assert total_pages(30, 10) == 3


# ============================================================================
# QUERY EXECUTION
# ============================================================================

class TestSearch:

    @pytest.mark.asyncio
    async def test_and_of_ors(self, db, make_buyer, owner):
        new_mohali = await make_buyer(owner, email="a@example.com", city="Mohali")
        qualified_mohali = await make_buyer(owner, email="b@example.com", city="Mohali")
        visited_mohali = await make_buyer(owner, email="c@example.com", city="Mohali")
        await make_buyer(owner, email="d@example.com", city="Panchkula")
        await set_status(db, qualified_mohali, "Qualified")
        await set_status(db, visited_mohali, "Visited")

        buyers, total = await run(db, status=["New", "Qualified"], city=["Mohali"])

        assert total == 2
        assert {b.id for b in buyers} == {new_mohali.id, qualified_mohali.id}

    @pytest.mark.asyncio
    async def test_empty_lists_do_not_constrain(self, db, make_many, owner):
        await make_many(owner, 3)

        _, total = await run(db, status=[], city=[])

        assert total == 3

    @pytest.mark.asyncio
    async def test_page_three_of_twenty_five(self, db, make_many, owner):
        await make_many(owner, 25)

        buyers, total = await run(db, page=3, limit=10)

        assert total == 25
        assert len(buyers) == 5
        assert total_pages(total, 10) == 3

    @pytest.mark.asyncio
    async def test_pages_do_not_overlap(self, db, make_many, owner):
        await make_many(owner, 12)

        first, _ = await run(db, page=1, limit=5, sort_by="fullName")
        second, _ = await run(db, page=2, limit=5, sort_by="fullName")
        third, _ = await run(db, page=3, limit=5, sort_by="fullName")

        ids = [b.id for b in first + second + third]
        assert len(ids) == len(set(ids)) == 12

    @pytest.mark.asyncio
    async def test_budget_window_containment(self, db, make_buyer, owner):
        inside = await make_buyer(owner, email="in@example.com", budgetMin=3000000, budgetMax=4000000)
        await make_buyer(owner, email="wide@example.com", budgetMin=1000000, budgetMax=9000000)
        await make_buyer(owner, email="open@example.com", budgetMin=3000000, budgetMax=None)

        buyers, total = await run(db, budget_min=2000000, budget_max=5000000)

        assert total == 1
        assert buyers[0].id == inside.id

    @pytest.mark.asyncio
    async def test_single_budget_bound_requires_both_budgets(self, db, make_buyer, owner):
        both = await make_buyer(owner, email="both@example.com", budgetMin=3000000, budgetMax=4000000)
        await make_buyer(owner, email="min-only@example.com", budgetMin=3000000, budgetMax=None)

        buyers, _ = await run(db, budget_min=2000000)

        assert [b.id for b in buyers] == [both.id]

    @pytest.mark.asyncio
    async def test_tags_match_any(self, db, make_buyer, owner):
        hot = await make_buyer(owner, email="hot@example.com", tags=["hot"])
        vip = await make_buyer(owner, email="vip@example.com", tags=["vip", "nri"])
        await make_buyer(owner, email="cold@example.com", tags=["cold"])

        buyers, total = await run(db, tags=["hot", "nri"])

        assert total == 2
        assert {b.id for b in buyers} == {hot.id, vip.id}

    @pytest.mark.asyncio
    async def test_text_search_is_case_insensitive_across_fields(self, db, make_buyer, owner):
        by_name = await make_buyer(owner, email="x@example.com", fullName="Kiran Bedi")
        by_notes = await make_buyer(owner, email="y@example.com", notes="Referred by KIRAN")
        await make_buyer(owner, email="z@example.com", fullName="Someone Else", notes=None)

        buyers, _ = await run(db, query="kiran")

        assert {b.id for b in buyers} == {by_name.id, by_notes.id}

    @pytest.mark.asyncio
    async def test_text_search_treats_wildcards_literally(self, db, make_buyer, owner):
        await make_buyer(owner, email="p@example.com", notes="wants 100% loan")
        await make_buyer(owner, email="q@example.com", notes="wants 1000 sqft")

        _, total = await run(db, query="100%")

        assert total == 1

    @pytest.mark.asyncio
    async def test_soft_deleted_excluded(self, db, make_buyer, owner):
        kept = await make_buyer(owner, email="kept@example.com")
        gone = await make_buyer(owner, email="gone@example.com")
        await BuyerStore(db).delete(gone.id, owner)

        buyers, total = await run(db)

        assert total == 1
        assert buyers[0].id == kept.id

    @pytest.mark.asyncio
    async def test_sort_by_budget_ascending(self, db, make_buyer, owner):
        await make_buyer(owner, email="m@example.com", budgetMin=200, budgetMax=300)
        await make_buyer(owner, email="n@example.com", budgetMin=100, budgetMax=300)

        buyers, _ = await run(db, sort_by="budgetMin", sort_order="asc")

        assert [b.budget_min for b in buyers] == [100, 200]

    @pytest.mark.asyncio
    async def test_search_all_ignores_pagination(self, db, make_many, owner):
        await make_many(owner, 7)

        buyers = await BuyerSearchService(db).search_all(BuyerSearchFilters(limit=2))

        assert len(buyers) == 7

    @pytest.mark.asyncio
    async def test_timeout_raises(self, db):
        async def slow_page(self, plan):
            await asyncio.sleep(1)

        with patch.object(BuyerSearchService, "_page", new=slow_page):
            with pytest.raises(SearchTimeoutError):
                await BuyerSearchService(db, timeout=0.01).search(BuyerSearchFilters())
