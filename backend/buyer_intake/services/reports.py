"""Dashboard reporting and filter option lookups over active buyers."""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from buyer_intake.models import Buyer
from buyer_intake.schemas import CountBucket, FilterOptions, MonthlyCount, ReportSummary
from buyer_intake.schemas.enums import BuyerStatus

logger = logging.getLogger(__name__)

MONTHS_IN_TREND = 6


def month_start(year: int, month: int) -> datetime:
    """First instant of a month; `month` may run past either end of the year."""
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return datetime(year, month, 1, tzinfo=timezone.utc)


def month_windows(now: datetime, count: int) -> List[Tuple[datetime, datetime]]:
    """[start, end) windows for the last `count` calendar months, oldest first."""
    windows = []
    for offset in range(count - 1, -1, -1):
        start = month_start(now.year, now.month - offset)
        end = month_start(now.year, now.month - offset + 1)
        windows.append((start, end))
    return windows


def conversion_rate(converted: int, total: int) -> float:
    return round(converted / total * 100, 1) if total else 0.0


class ReportService:
    """Aggregate counts for the reports dashboard."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _count(self, *conditions) -> int:
        result = await self.db.execute(
            select(func.count(Buyer.id)).where(Buyer.is_active == True, *conditions)
        )
        return result.scalar() or 0

    async def _group_counts(self, column) -> List[CountBucket]:
        result = await self.db.execute(
            select(column, func.count(Buyer.id))
            .where(Buyer.is_active == True)
            .group_by(column)
            .order_by(func.count(Buyer.id).desc(), column)
        )
        return [CountBucket(label=label, count=count) for label, count in result.all()]

    async def summary(self, now: Optional[datetime] = None) -> ReportSummary:
        now = now or datetime.now(timezone.utc)

        this_month = month_start(now.year, now.month)
        last_month = month_start(now.year, now.month - 1)

        total = await self._count()
        converted = await self._count(Buyer.status == BuyerStatus.CONVERTED.value)
        new_this_month = await self._count(Buyer.created_at >= this_month)
        new_last_month = await self._count(
            and_(Buyer.created_at >= last_month, Buyer.created_at < this_month)
        )

        monthly = []
        for start, end in month_windows(now, MONTHS_IN_TREND):
            count = await self._count(and_(Buyer.created_at >= start, Buyer.created_at < end))
            monthly.append(MonthlyCount(month=start.strftime("%Y-%m"), count=count))

        logger.debug(f"Report summary computed: {total} active buyers, {converted} converted")

        return ReportSummary(
            total_leads=total,
            new_this_month=new_this_month,
            new_last_month=new_last_month,
            converted_leads=converted,
            conversion_rate=conversion_rate(converted, total),
            by_status=await self._group_counts(Buyer.status),
            by_source=await self._group_counts(Buyer.source),
            by_property_type=await self._group_counts(Buyer.property_type),
            monthly_new=monthly,
        )

    async def filter_options(self) -> FilterOptions:
        """Distinct stored values per filterable field."""
        columns: Dict[str, object] = {
            "cities": Buyer.city,
            "property_types": Buyer.property_type,
            "purposes": Buyer.purpose,
            "timelines": Buyer.timeline,
            "sources": Buyer.source,
            "statuses": Buyer.status,
        }
        options = {}
        for key, column in columns.items():
            result = await self.db.execute(
                select(column).where(Buyer.is_active == True).distinct().order_by(column)
            )
            options[key] = [value for value in result.scalars().all() if value]
        return FilterOptions(**options)
