"""Pydantic schemas for request/response validation."""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from uuid import UUID

from buyer_intake.schemas.buyer import (
    CamelModel,
    OwnerResponse,
    BuyerResponse,
    BuyerDetailResponse,
    BuyerListResponse,
    BuyerSearchFilters,
    BuyerSearchResponse,
    SearchMeta,
    HistoryEntryResponse,
    FieldErrorResponse,
    ImportRowError,
    ImportSummary,
    FilterOptions,
    CountBucket,
    MonthlyCount,
    ReportSummary,
)


# Authentication Schemas
class LoginRequest(BaseModel):
    """Login request with email and password."""
    email: EmailStr
    password: str = Field(..., min_length=8)


class TokenResponse(BaseModel):
    """JWT token response."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserResponse(CamelModel):
    """User information response."""
    id: UUID
    name: Optional[str]
    email: str
    role: str
    is_active: bool
