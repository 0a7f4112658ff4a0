# tests/conftest.py
"""
Shared fixtures: a fresh in-memory SQLite database per test, seeded users,
and an HTTP client wired to the app with get_db pointed at the test database.
"""

import os

# Must be set before buyer_intake is imported: the module-level engine reads it
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("SEARCH_TIMEOUT_SECONDS", "5")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from buyer_intake.auth import create_access_token, hash_password
from buyer_intake.database import Base, build_engine, build_session_factory, get_db
from buyer_intake.main import app
from buyer_intake.models import User
from buyer_intake.schemas.enums import UserRole
from buyer_intake.services.buyer_store import BuyerStore
from buyer_intake.services.validation import ValidationMode, validate_buyer

TEST_PASSWORD = "Password123!"


# ============================================================================
# DATABASE
# ============================================================================

@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database with all tables."""
    test_engine = build_engine("sqlite+aiosqlite://")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ============================================================================
# USERS
# ============================================================================

@pytest.fixture(scope="session")
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


async def _make_user(db, email, name, role, password_hash):
    user = User(email=email, name=name, role=role, password_hash=password_hash, is_active=True)
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def owner(db, password_hash):
    return await _make_user(db, "agent@example.com", "Agent One", UserRole.USER.value, password_hash)


@pytest_asyncio.fixture
async def other_user(db, password_hash):
    return await _make_user(db, "agent2@example.com", "Agent Two", UserRole.USER.value, password_hash)


@pytest_asyncio.fixture
async def admin(db, password_hash):
    return await _make_user(db, "admin@example.com", "Admin", UserRole.ADMIN.value, password_hash)


# ============================================================================
# BUYERS
# ============================================================================

def _buyer_payload(**overrides):
    payload = {
        "fullName": "Rahul Sharma",
        "email": "rahul@example.com",
        "phone": "9876543210",
        "city": "Mohali",
        "propertyType": "Apartment",
        "bhk": "Two",
        "purpose": "Buy",
        "budgetMin": 5000000,
        "budgetMax": 7500000,
        "timeline": "ZeroToThree",
        "source": "Website",
        "notes": "Prefers a corner unit",
        "tags": ["hot"],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def buyer_payload():
    """Factory for a valid create payload in wire (camelCase) form."""
    return _buyer_payload


@pytest.fixture
def make_buyer(db):
    """Create a buyer through the store, returning the persisted record."""
    async def _make(owner, **overrides):
        result = validate_buyer(_buyer_payload(**overrides), ValidationMode.CREATE)
        assert result.ok, result.errors
        return await BuyerStore(db).create(result.values, owner)
    return _make


# ============================================================================
# HTTP
# ============================================================================

@pytest_asyncio.fixture
async def client(session_factory):
    """HTTP client against the app, each request on its own test-database session."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Bearer headers for a user."""
    def _headers(user):
        token = create_access_token({"sub": user.email})
        return {"Authorization": f"Bearer {token}"}
    return _headers


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: unit tests")
    config.addinivalue_line("markers", "integration: HTTP tests against the app")
