"""
Buyer API routes.

Static paths (/search, /export, /import) are declared before /{buyer_id} so
they are never captured as an id.
"""

import io
import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, File, Query, Response, UploadFile, status
from fastapi.responses import StreamingResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from buyer_intake.auth import get_current_user
from buyer_intake.config import settings
from buyer_intake.database import get_db
from buyer_intake.errors import NotFoundError, StructuralImportError, ValidationError
from buyer_intake.models import User
from buyer_intake.schemas import (
    BuyerDetailResponse,
    BuyerListResponse,
    BuyerResponse,
    BuyerSearchFilters,
    BuyerSearchResponse,
    HistoryEntryResponse,
    ImportSummary,
    SearchMeta,
)
from buyer_intake.services.buyer_store import BuyerStore
from buyer_intake.services.csv_import import BuyerImporter
from buyer_intake.services.export_service import MEDIA_TYPES, export_filename, render_export
from buyer_intake.services.search import BuyerSearchService, total_pages
from buyer_intake.services.validation import ValidationMode, validate_buyer

logger = logging.getLogger(__name__)
router = APIRouter()


def parse_filters(data: Dict[str, Any]) -> BuyerSearchFilters:
    try:
        return BuyerSearchFilters.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e.errors())


def filter_params(
    search: Optional[str] = Query(None),
    status: Optional[List[str]] = Query(None),
    city: Optional[List[str]] = Query(None),
    property_type: Optional[List[str]] = Query(None, alias="propertyType"),
    purpose: Optional[List[str]] = Query(None),
    budget_min: Optional[str] = Query(None, alias="budgetMin"),
    budget_max: Optional[str] = Query(None, alias="budgetMax"),
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
    tags: Optional[List[str]] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
) -> Dict[str, Any]:
    """Query-string filters shared by listing and export (repeated or comma-separated values)."""
    return {
        "query": search,
        "status": status,
        "city": city,
        "propertyType": property_type,
        "purpose": purpose,
        "budgetMin": budget_min,
        "budgetMax": budget_max,
        "dateFrom": date_from,
        "dateTo": date_to,
        "tags": tags,
        "sortBy": sort_by,
        "sortOrder": sort_order,
    }


def buyer_detail(buyer, history) -> BuyerDetailResponse:
    detail = BuyerDetailResponse.model_validate(buyer)
    return detail.model_copy(
        update={"history": [HistoryEntryResponse.model_validate(entry) for entry in history]}
    )


# ============================================================================
# COLLECTION
# ============================================================================

@router.post("", response_model=BuyerResponse, status_code=status.HTTP_201_CREATED)
async def create_buyer(
    payload: Dict[str, Any] = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a buyer owned by the current user; status always starts as New."""
    validation = validate_buyer(payload, ValidationMode.CREATE)
    if not validation.ok:
        raise ValidationError.from_field_errors(validation.errors)

    buyer = await BuyerStore(db).create(validation.values, current_user)
    return BuyerResponse.model_validate(buyer)


@router.get("", response_model=BuyerListResponse)
async def list_buyers(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    filters: Dict[str, Any] = Depends(filter_params),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Paginated buyer list.

    - **page**: 1-based page number (default 1)
    - **limit**: page size (default 10, max 100)
    - **search**: matches name, email, phone or notes
    - **city / propertyType / status / purpose**: repeat or comma-separate for OR
    """
    search_filters = parse_filters(
        {**filters, "page": page, "limit": limit or settings.LIST_DEFAULT_LIMIT}
    )
    buyers, total = await BuyerSearchService(db).search(search_filters)

    return BuyerListResponse(
        data=[BuyerResponse.model_validate(b) for b in buyers],
        total=total,
        page=search_filters.page,
        total_pages=total_pages(total, search_filters.limit),
    )


@router.post("/search", response_model=BuyerSearchResponse)
async def search_buyers(
    payload: Dict[str, Any] = Body(default={}),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Advanced search; the body carries the complete filter state."""
    search_filters = parse_filters(payload)
    buyers, total = await BuyerSearchService(db).search(search_filters)

    return BuyerSearchResponse(
        data=[BuyerResponse.model_validate(b) for b in buyers],
        meta=SearchMeta(
            total=total,
            page=search_filters.page,
            limit=search_filters.limit,
            total_pages=total_pages(total, search_filters.limit),
        ),
    )


@router.get("/export")
async def export_buyers(
    format: str = Query("csv", pattern="^(csv|xlsx)$"),
    filters: Dict[str, Any] = Depends(filter_params),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Export every buyer matching the listing filters as CSV or Excel."""
    search_filters = parse_filters(filters)
    buyers = await BuyerSearchService(db).search_all(search_filters)
    if not buyers:
        raise NotFoundError("No buyers found matching the current filters")

    content = render_export(buyers, format)
    filename = export_filename(format)
    logger.info(f"{current_user.email} exported {len(buyers)} buyers as {format}")

    return StreamingResponse(
        io.BytesIO(content),
        media_type=MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import", response_model=ImportSummary)
async def import_buyers(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Bulk import buyers from a CSV file.

    Valid rows are created, invalid rows are reported with their line number;
    one bad row never blocks the rest. Files over the size or row limit are
    rejected as a whole.
    """
    if file.filename and not file.filename.lower().endswith(".csv"):
        raise StructuralImportError("File must be a CSV file")

    content = await file.read(settings.IMPORT_MAX_BYTES + 1)
    if len(content) > settings.IMPORT_MAX_BYTES:
        raise StructuralImportError(
            f"File size exceeds the {settings.IMPORT_MAX_BYTES // (1024 * 1024)}MB limit"
        )
    if not content:
        raise StructuralImportError("File is empty")

    return await BuyerImporter(db).import_csv(content, current_user)


# ============================================================================
# SINGLE BUYER
# ============================================================================

@router.get("/{buyer_id}", response_model=BuyerDetailResponse)
async def get_buyer(
    buyer_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Buyer with owner and the most recent history entries."""
    store = BuyerStore(db)
    buyer = await store.get(buyer_id)
    history = await store.history.list_for_buyer(buyer_id, limit=settings.HISTORY_PREVIEW_LIMIT)
    return buyer_detail(buyer, history)


@router.get("/{buyer_id}/history", response_model=List[HistoryEntryResponse])
async def get_buyer_history(
    buyer_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Full change history, newest first."""
    store = BuyerStore(db)
    await store.get(buyer_id)
    history = await store.history.list_for_buyer(buyer_id)
    return [HistoryEntryResponse.model_validate(entry) for entry in history]


@router.patch("/{buyer_id}", response_model=BuyerResponse)
async def update_buyer(
    buyer_id: UUID,
    payload: Dict[str, Any] = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Partially update a buyer.

    The body must echo the buyer's `updatedAt` as last read; a stale value is
    rejected with 409 and nothing is written.
    """
    patch = dict(payload)
    expected_updated_at = patch.pop("updatedAt", None)

    buyer = await BuyerStore(db).update(buyer_id, patch, expected_updated_at, current_user)
    return BuyerResponse.model_validate(buyer)


@router.delete("/{buyer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_buyer(
    buyer_id: UUID,
    hard: bool = Query(False),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete by default; `?hard=true` removes the row (history is kept)."""
    await BuyerStore(db).delete(buyer_id, current_user, hard=hard)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
