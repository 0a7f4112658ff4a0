"""Reporting API endpoints for dashboard metrics."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from buyer_intake.auth import get_current_user
from buyer_intake.database import get_db
from buyer_intake.models import User
from buyer_intake.schemas import ReportSummary
from buyer_intake.services.reports import ReportService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=ReportSummary)
async def get_report_summary(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Lead totals, monthly intake and conversion rate.

    Returns counts grouped by status, source and property type, plus new
    buyers for each of the last six calendar months.
    """
    summary = await ReportService(db).summary()
    logger.info(f"Report summary requested by {current_user.email}")
    return summary
