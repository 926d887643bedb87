"""
Nexus Compliance - Test Configuration

Pytest fixtures and configuration.
"""

from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  registers every table on Base.metadata
from app.config import settings
from app.database import Base, get_async_session
from app.models.client import Client, ClientState
from app.models.organization import Organization
from app.models.user import User, UserRole
from app.routers.dashboards import get_dashboard_generator
from app.services.dashboard_generation_service import DashboardGenerationService
from app.utils.error_handling import OpenAIAPIException
from app.utils.security import create_access_token, get_password_hash
from main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"

TEST_PASSWORD = "TestPassword123!"


async def offline_llm(prompt: str):
    """Stand-in model that is never reachable, so every section falls back."""
    raise OpenAIAPIException("LLM disabled in tests")


@pytest.fixture(autouse=True)
def memo_storage(tmp_path, monkeypatch):
    """Keep sealed memo PDFs inside the test's temp directory."""
    path = tmp_path / "memos"
    monkeypatch.setattr(settings, "memo_pdf_storage_path", str(path))
    return path


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh in-memory database for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session
    app.dependency_overrides[get_dashboard_generator] = lambda: DashboardGenerationService(llm=offline_llm)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATA FIXTURES
# ===========================================

async def _make_user(
    db: AsyncSession,
    organization: Organization,
    email: str,
    role: UserRole,
) -> User:
    user = User(
        id=uuid4(),
        email=email,
        hashed_password=get_password_hash(TEST_PASSWORD),
        first_name="Test",
        last_name=role.value.replace("_", " ").title(),
        organization_id=organization.id,
        role=role,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def _headers(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_organization(db_session: AsyncSession) -> Organization:
    """Create a test organization."""
    org = Organization(
        id=uuid4(),
        name="Test CPA Firm",
        slug="test-cpa-firm",
    )
    db_session.add(org)
    await db_session.commit()
    await db_session.refresh(org)
    return org


@pytest_asyncio.fixture
async def other_organization(db_session: AsyncSession) -> Organization:
    """A second firm, for tenant isolation checks."""
    org = Organization(id=uuid4(), name="Other Firm", slug="other-firm")
    db_session.add(org)
    await db_session.commit()
    await db_session.refresh(org)
    return org


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession, test_organization: Organization) -> User:
    """Create a managing partner."""
    return await _make_user(
        db_session, test_organization, "testuser@example.com", UserRole.MANAGING_PARTNER
    )


@pytest_asyncio.fixture
async def tax_manager(db_session: AsyncSession, test_organization: Organization) -> User:
    return await _make_user(
        db_session, test_organization, "manager@example.com", UserRole.TAX_MANAGER
    )


@pytest_asyncio.fixture
async def staff_user(db_session: AsyncSession, test_organization: Organization) -> User:
    return await _make_user(
        db_session, test_organization, "staff@example.com", UserRole.STAFF_ACCOUNTANT
    )


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession, other_organization: Organization) -> User:
    return await _make_user(
        db_session, other_organization, "admin@example.com", UserRole.SYSTEM_ADMIN
    )


@pytest_asyncio.fixture
async def outsider_headers(db_session: AsyncSession, other_organization: Organization) -> dict:
    """A managing partner at a different firm."""
    outsider = await _make_user(
        db_session, other_organization, "outsider@example.com", UserRole.MANAGING_PARTNER
    )
    return _headers(outsider)


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    """Generate authorization headers for test user."""
    return _headers(test_user)


@pytest_asyncio.fixture
async def manager_headers(tax_manager: User) -> dict:
    return _headers(tax_manager)


@pytest_asyncio.fixture
async def staff_headers(staff_user: User) -> dict:
    return _headers(staff_user)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return _headers(admin_user)


@pytest_asyncio.fixture
async def test_client(db_session: AsyncSession, test_organization: Organization) -> Client:
    """Create a client with two tracked states."""
    record = Client(
        id=uuid4(),
        organization_id=test_organization.id,
        name="Acme Retail",
        legal_name="Acme Retail LLC",
        industry="Retail",
        annual_revenue=Decimal("2500000.00"),
        risk_level="high",
        penalty_exposure=Decimal("45000.00"),
        quality_score=82,
    )
    db_session.add(record)
    await db_session.flush()

    db_session.add_all([
        ClientState(
            client_id=record.id,
            organization_id=test_organization.id,
            state_code="CA",
            state_name="California",
            status="critical",
            threshold_amount=Decimal("500000.00"),
            current_amount=Decimal("620000.00"),
            registration_required=True,
        ),
        ClientState(
            client_id=record.id,
            organization_id=test_organization.id,
            state_code="TX",
            state_name="Texas",
            status="warning",
            threshold_amount=Decimal("500000.00"),
            current_amount=Decimal("430000.00"),
        ),
    ])
    await db_session.commit()
    await db_session.refresh(record)
    return record
