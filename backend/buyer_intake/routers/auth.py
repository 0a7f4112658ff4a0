"""Authentication API endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import timedelta
import logging

from buyer_intake.database import get_db
from buyer_intake.auth import authenticate_user, create_access_token, get_current_user
from buyer_intake.errors import AuthenticationError
from buyer_intake.models import User
from buyer_intake.schemas import LoginRequest, TokenResponse, UserResponse
from buyer_intake.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Authenticate user and return JWT token.

    - **email**: User email address
    - **password**: User password
    """
    user = await authenticate_user(db, credentials.email, credentials.password)
    if user is None:
        raise AuthenticationError("Incorrect email or password")

    access_token = create_access_token(
        data={"sub": user.email, "role": user.role},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    logger.info(f"User logged in: {user.email}")

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current authenticated user information."""
    return UserResponse.model_validate(current_user)
