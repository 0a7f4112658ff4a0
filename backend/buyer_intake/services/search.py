"""
Search/filter query builder for buyers.

build_query() turns an immutable BuyerSearchFilters into a QueryPlan (pure,
no I/O); BuyerSearchService executes the plan with a bounded timeout.

Budget range policy: when either budget bound is requested, only buyers with
both budgetMin and budgetMax set can match, and their window must lie inside
the requested one (budgetMin >= requested min, budgetMax <= requested max).
Buyers with an open-ended budget therefore drop out of budget-filtered
results. The same rule applies to listing, search and export.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from buyer_intake.config import settings
from buyer_intake.errors import SearchTimeoutError
from buyer_intake.models import Buyer, BuyerTag
from buyer_intake.schemas import BuyerSearchFilters

logger = logging.getLogger(__name__)

# Client sort keys never reach the query directly
SORTABLE_FIELDS = {
    "updatedAt": Buyer.updated_at,
    "createdAt": Buyer.created_at,
    "fullName": Buyer.full_name,
    "budgetMin": Buyer.budget_min,
    "budgetMax": Buyer.budget_max,
    "status": Buyer.status,
    "city": Buyer.city,
}
DEFAULT_SORT = "updatedAt"


@dataclass(frozen=True)
class QueryPlan:
    conditions: Tuple
    order_by: Tuple
    offset: int
    limit: int
    page: int


def _text_condition(text: str):
    return or_(
        Buyer.full_name.icontains(text, autoescape=True),
        Buyer.email.icontains(text, autoescape=True),
        Buyer.phone.icontains(text, autoescape=True),
        Buyer.notes.icontains(text, autoescape=True),
    )


def _budget_conditions(budget_min: Optional[int], budget_max: Optional[int]) -> List:
    if budget_min is None and budget_max is None:
        return []

    conditions = [Buyer.budget_min.isnot(None), Buyer.budget_max.isnot(None)]
    if budget_min is not None:
        conditions.append(Buyer.budget_min >= budget_min)
    if budget_max is not None:
        conditions.append(Buyer.budget_max <= budget_max)
    return conditions


def _tag_condition(tags: List[str]):
    return exists(
        select(BuyerTag.id).where(BuyerTag.buyer_id == Buyer.id, BuyerTag.tag.in_(tags))
    )


def build_query(filters: BuyerSearchFilters) -> QueryPlan:
    """Translate a filter object into where/order/pagination clauses."""
    conditions = [Buyer.is_active == True]

    if filters.query:
        conditions.append(_text_condition(filters.query))

    # Multi-value filters: OR within a dimension, AND across dimensions
    if filters.status:
        conditions.append(Buyer.status.in_(filters.status))
    if filters.city:
        conditions.append(Buyer.city.in_(filters.city))
    if filters.property_type:
        conditions.append(Buyer.property_type.in_(filters.property_type))
    if filters.purpose:
        conditions.append(Buyer.purpose.in_(filters.purpose))

    conditions.extend(_budget_conditions(filters.budget_min, filters.budget_max))

    if filters.date_from:
        conditions.append(Buyer.updated_at >= filters.date_from)
    if filters.date_to:
        conditions.append(Buyer.updated_at <= filters.date_to)

    if filters.tags:
        conditions.append(_tag_condition(filters.tags))

    sort_column = SORTABLE_FIELDS.get(filters.sort_by)
    if sort_column is None:
        logger.debug(f"Ignoring unsupported sort field: {filters.sort_by!r}")
        sort_column = SORTABLE_FIELDS[DEFAULT_SORT]
    primary = sort_column.asc() if filters.sort_order == "asc" else sort_column.desc()

    return QueryPlan(
        conditions=tuple(conditions),
        # id breaks ties so equal sort keys paginate stably
        order_by=(primary, Buyer.id.asc()),
        offset=filters.offset,
        limit=filters.limit,
        page=filters.page,
    )


def total_pages(total: int, limit: int) -> int:
    return max(1, math.ceil(total / limit))


class BuyerSearchService:
    """Runs search plans against the store."""

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        self.db = db
        self.timeout = timeout if timeout is not None else settings.SEARCH_TIMEOUT_SECONDS

    async def _bounded(self, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Buyer search exceeded {self.timeout}s and was abandoned")
            raise SearchTimeoutError()

    async def _page(self, plan: QueryPlan) -> Tuple[List[Buyer], int]:
        where = and_(*plan.conditions)

        total_result = await self.db.execute(select(func.count(Buyer.id)).where(where))
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(Buyer)
            .where(where)
            .order_by(*plan.order_by)
            .offset(plan.offset)
            .limit(plan.limit)
        )
        return list(result.scalars().all()), total

    async def _all(self, plan: QueryPlan) -> List[Buyer]:
        result = await self.db.execute(
            select(Buyer).where(and_(*plan.conditions)).order_by(*plan.order_by)
        )
        return list(result.scalars().all())

    async def search(self, filters: BuyerSearchFilters) -> Tuple[List[Buyer], int]:
        """Return one page of matching buyers and the total match count."""
        plan = build_query(filters)
        buyers, total = await self._bounded(self._page(plan))

        logger.debug(f"Buyer search matched {total} records (page {plan.page}, limit {plan.limit})")
        return buyers, total

    async def search_all(self, filters: BuyerSearchFilters) -> List[Buyer]:
        """Every matching buyer, ignoring pagination (used by export)."""
        plan = build_query(filters)
        return await self._bounded(self._all(plan))
