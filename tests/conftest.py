"""
Pytest configuration and fixtures for AI Studio API tests.

Every test gets a fresh file-backed SQLite database and a scripted
generative service injected through FastAPI dependency overrides, so
the suite never touches the network.
"""
import sys
from decimal import Decimal
from pathlib import Path
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

# Add app to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.auth.passwords import hash_password
from app.config import get_settings
from app.database import close_db, get_session, init_db
from app.ledger.credits import set_balance
from app.main import app
from app.models import UserRole, UserStatus
from app.services.genai import get_generation_service
from app.users.repository import SQLUserRepository, UserRecord
from tests.fixtures.mock_responses import FakeGenerationService
from tests.utils.test_helpers import TEST_PASSWORD


# ============================================
# Environment & Database
# ============================================

@pytest.fixture(autouse=True)
async def database(tmp_path, monkeypatch) -> AsyncGenerator[None, None]:
    """Point the app at a throwaway SQLite file and create the schema."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("JWT_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
    monkeypatch.setenv("PASSWORD_HASH_ROUNDS", "4")
    monkeypatch.setenv("GOOGLE_API_KEY", "test-google-key")
    monkeypatch.delenv("API_KEY", raising=False)
    monkeypatch.delenv("ADMIN_EMAIL", raising=False)
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
    monkeypatch.delenv("SEED_DEMO_USERS", raising=False)

    get_settings.cache_clear()
    await close_db()
    await init_db()

    yield

    await close_db()
    get_settings.cache_clear()


@pytest.fixture
async def db_session():
    """A committed-on-exit session for direct store/ledger calls."""
    async with get_session() as session:
        yield session


# ============================================
# Users
# ============================================

@pytest.fixture
def make_user():
    """Factory creating a user with the given status, role and balance."""

    async def _make_user(
        email: str = "user@example.com",
        password: str = TEST_PASSWORD,
        status: UserStatus = UserStatus.APPROVED,
        role: UserRole = UserRole.USER,
        credits: Decimal | int | str = 0,
    ) -> UserRecord:
        async with get_session() as session:
            repo = SQLUserRepository(session)
            user = await repo.create(email, hash_password(password), status=status, role=role)
            if Decimal(str(credits)):
                await set_balance(session, user.id, Decimal(str(credits)), description="Test setup")
            return await repo.find_by_id(user.id)

    return _make_user


@pytest.fixture
async def approved_user(make_user) -> UserRecord:
    return await make_user("approved@example.com", credits=10)


@pytest.fixture
async def admin_user(make_user) -> UserRecord:
    return await make_user("admin@example.com", role=UserRole.ADMIN, credits=99999)


# ============================================
# Application
# ============================================

@pytest.fixture
def fake_service() -> FakeGenerationService:
    return FakeGenerationService(get_settings())


@pytest.fixture
async def test_client(fake_service) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with the scripted generative service."""
    app.dependency_overrides[get_generation_service] = lambda: fake_service
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
    ) as client:
        yield client
    app.dependency_overrides.clear()


# ============================================
# Pytest Configuration
# ============================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "fast: Fast unit tests (no external API calls)"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end scenarios through the HTTP API"
    )
