"""Filter option endpoint for the buyer list UI."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from buyer_intake.auth import get_current_user
from buyer_intake.database import get_db
from buyer_intake.models import User
from buyer_intake.schemas import FilterOptions
from buyer_intake.services.reports import ReportService

router = APIRouter()


@router.get("", response_model=FilterOptions)
async def get_filter_options(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Distinct values currently stored for each filterable field."""
    return await ReportService(db).filter_options()
