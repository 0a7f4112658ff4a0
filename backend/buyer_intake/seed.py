"""
Seed operator accounts.

Usage:
    python -m buyer_intake.seed
"""

import asyncio
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from buyer_intake.auth import hash_password
from buyer_intake.database import AsyncSessionLocal, create_tables
from buyer_intake.models import User
from buyer_intake.schemas.enums import UserRole

logger = logging.getLogger(__name__)

DEFAULT_USERS = [
    {"email": "admin@example.com", "name": "Admin User", "password": "AdminPassword123!", "role": UserRole.ADMIN.value},
    {"email": "agent@example.com", "name": "Sales Agent", "password": "AgentPassword123!", "role": UserRole.USER.value},
]


async def create_user(
    db: AsyncSession,
    email: str,
    password: str,
    name: Optional[str] = None,
    role: str = UserRole.USER.value,
) -> User:
    """Create a user account, or reset an existing one with the same email, and commit."""
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()
    if user is None:
        user = User(email=email.lower())
        db.add(user)

    user.name = name
    user.password_hash = hash_password(password)
    user.role = role
    user.is_active = True
    await db.commit()
    await db.refresh(user)

    logger.info(f"User created: {user.email} ({user.role})")
    return user


async def seed_users():
    await create_tables()
    async with AsyncSessionLocal() as db:
        for spec in DEFAULT_USERS:
            await create_user(db, spec["email"], spec["password"], spec["name"], spec["role"])


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed_users())
