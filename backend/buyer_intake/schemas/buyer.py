"""Pydantic schemas for buyer requests and responses."""

from datetime import datetime, time, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from buyer_intake.config import settings
from buyer_intake.schemas.enums import City, PropertyType, Purpose, BuyerStatus, enum_values


class CamelModel(BaseModel):
    """Base for models exchanged as camelCase JSON."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ============================================================================
# RESPONSES
# ============================================================================

class OwnerResponse(CamelModel):
    id: UUID
    name: Optional[str] = None
    email: str


class BuyerResponse(CamelModel):
    """Buyer record as returned by the API."""
    id: UUID
    full_name: str
    email: Optional[str] = None
    phone: str
    city: str
    property_type: str
    bhk: Optional[str] = None
    purpose: str
    budget_min: Optional[int] = None
    budget_max: Optional[int] = None
    timeline: str
    source: str
    status: str
    notes: Optional[str] = None
    tags: List[str] = []
    owner_id: UUID
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v):
        # Clients echo updatedAt back as the concurrency token; always send it zoned
        return _utc(v)


class HistoryEntryResponse(CamelModel):
    id: UUID
    buyer_id: UUID
    changed_by: UUID
    changed_at: datetime
    diff: Dict[str, Any]

    @field_validator("changed_at")
    @classmethod
    def ensure_utc(cls, v):
        return _utc(v)


class BuyerDetailResponse(BuyerResponse):
    owner: Optional[OwnerResponse] = None
    history: List[HistoryEntryResponse] = []


class BuyerListResponse(CamelModel):
    data: List[BuyerResponse]
    total: int
    page: int
    total_pages: int


class SearchMeta(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int


class BuyerSearchResponse(CamelModel):
    data: List[BuyerResponse]
    meta: SearchMeta


class FieldErrorResponse(CamelModel):
    field: str
    message: str


class ImportRowError(CamelModel):
    row: int
    message: str
    errors: List[FieldErrorResponse] = []
    data: Dict[str, Any] = {}


class ImportSummary(CamelModel):
    total: int
    success_count: int
    error_count: int
    errors: List[ImportRowError] = []
    message: str = ""


class FilterOptions(CamelModel):
    cities: List[str]
    property_types: List[str]
    purposes: List[str]
    timelines: List[str]
    sources: List[str]
    statuses: List[str]


class CountBucket(CamelModel):
    label: str
    count: int


class MonthlyCount(CamelModel):
    month: str
    count: int


class ReportSummary(CamelModel):
    total_leads: int
    new_this_month: int
    new_last_month: int
    converted_leads: int
    conversion_rate: float
    by_status: List[CountBucket]
    by_source: List[CountBucket]
    by_property_type: List[CountBucket]
    monthly_new: List[MonthlyCount]


# ============================================================================
# SEARCH FILTERS
# ============================================================================

def _as_list(value: Any) -> List[str]:
    """Accept a list, a single value or a comma-separated string."""
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple, set)):
        items = []
        for item in value:
            if item is not None:
                items.extend(_as_list(str(item)))
        return items
    raise ValueError("must be a list of strings")


# Largest page whose row offset still fits a signed 64-bit integer
MAX_PAGE = (2 ** 63 - 1) // settings.MAX_PAGE_LIMIT


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValueError("must be an integer")


def _keep_known(values: List[str], allowed: List[str]) -> List[str]:
    # Stale client filter state is tolerated: unknown values are dropped, not rejected
    return [value for value in values if value in allowed]


def _parse_moment(value: Any, end_of_day: bool) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _utc(value).astimezone(timezone.utc)
    if not isinstance(value, str):
        raise ValueError("must be an ISO-8601 date or datetime")

    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError("must be an ISO-8601 date or datetime")

    if end_of_day and len(text) == 10:
        # A bare date as upper bound covers that whole day
        parsed = datetime.combine(parsed.date(), time.max)
    return _utc(parsed).astimezone(timezone.utc)


class BuyerSearchFilters(CamelModel):
    """
    Immutable filter object describing one search request.

    Every request carries its complete filter state; nothing is remembered
    server-side between requests.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    query: Optional[str] = None
    status: List[str] = []
    city: List[str] = []
    property_type: List[str] = []
    purpose: List[str] = []
    budget_min: Optional[int] = Field(default=None, ge=0)
    budget_max: Optional[int] = Field(default=None, ge=0)
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    tags: List[str] = []
    sort_by: str = "updatedAt"
    sort_order: str = "desc"
    page: int = 1
    limit: int = settings.SEARCH_DEFAULT_LIMIT

    @field_validator("query", mode="before")
    @classmethod
    def blank_query(cls, v):
        if isinstance(v, str):
            v = v.strip()
        return v or None

    @field_validator("status", mode="before")
    @classmethod
    def known_statuses(cls, v):
        return _keep_known(_as_list(v), enum_values(BuyerStatus))

    @field_validator("city", mode="before")
    @classmethod
    def known_cities(cls, v):
        return _keep_known(_as_list(v), enum_values(City))

    @field_validator("property_type", mode="before")
    @classmethod
    def known_property_types(cls, v):
        return _keep_known(_as_list(v), enum_values(PropertyType))

    @field_validator("purpose", mode="before")
    @classmethod
    def known_purposes(cls, v):
        return _keep_known(_as_list(v), enum_values(Purpose))

    @field_validator("tags", mode="before")
    @classmethod
    def tag_list(cls, v):
        return _as_list(v)

    @field_validator("budget_min", "budget_max", mode="before")
    @classmethod
    def blank_budget(cls, v):
        return None if v == "" else v

    @field_validator("date_from", mode="before")
    @classmethod
    def parse_date_from(cls, v):
        return _parse_moment(v, end_of_day=False)

    @field_validator("date_to", mode="before")
    @classmethod
    def parse_date_to(cls, v):
        return _parse_moment(v, end_of_day=True)

    @field_validator("sort_by", mode="before")
    @classmethod
    def default_sort_by(cls, v):
        return v or "updatedAt"

    @field_validator("sort_order", mode="before")
    @classmethod
    def normalize_sort_order(cls, v):
        return "asc" if isinstance(v, str) and v.lower() == "asc" else "desc"

    @field_validator("page", mode="before")
    @classmethod
    def clamp_page(cls, v):
        if v is None or v == "":
            return 1
        return min(MAX_PAGE, max(1, _as_int(v)))

    @field_validator("limit", mode="before")
    @classmethod
    def clamp_limit(cls, v):
        if v is None or v == "":
            return settings.SEARCH_DEFAULT_LIMIT
        return min(settings.MAX_PAGE_LIMIT, max(1, _as_int(v)))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit
