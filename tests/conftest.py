import os
import tempfile
from datetime import date, datetime
from typing import AsyncGenerator, Optional

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("PUBLIC_BASE_URL", "http://test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ["STORAGE_PATH"] = tempfile.mkdtemp(prefix="admission-portal-tests-")

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from admission_portal.api.v1.contact import service as contact_service
from admission_portal.auth.models import User
from admission_portal.auth.security import create_access_token
from admission_portal.auth.services import create_user
from admission_portal.client.http import PortalApiClient
from admission_portal.core.models import ApplicationDocument, StudentApplication
from admission_portal.db.session import Base, get_db
from admission_portal.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; overrides the FastAPI dependency."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture(autouse=True)
def reset_contact_rate_limit():
    contact_service.rate_limiter.reset()
    yield
    contact_service.rate_limiter.reset()


def auth_headers(user: User) -> dict:
    token = create_access_token(user.id, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
async def super_admin(db_session: AsyncSession) -> User:
    return await create_user(
        db_session,
        full_name="Portal Owner",
        email="owner@portal.edu.in",
        password="OwnerPass123",
        role="super_admin",
    )


@pytest.fixture()
async def staff(db_session: AsyncSession) -> User:
    return await create_user(
        db_session,
        full_name="Review Staff",
        email="staff@portal.edu.in",
        password="StaffPass123",
        role="staff",
    )


@pytest.fixture()
async def agent(db_session: AsyncSession) -> User:
    return await create_user(
        db_session,
        full_name="Field Agent",
        email="agent@portal.edu.in",
        password="AgentPass123",
        role="agent",
    )


async def make_application(
    db: AsyncSession,
    submitted_by: User,
    *,
    application_id: str,
    full_name: str,
    status: str = "SUBMITTED",
    registration_date: Optional[date] = date(2024, 6, 15),
    created_at: Optional[datetime] = None,
    documents: Optional[list] = None,
    **fields,
) -> StudentApplication:
    """Insert an application directly, bypassing the API."""
    app_row = StudentApplication(
        application_id=application_id,
        full_name=full_name,
        status=status,
        registration_date=registration_date,
        submitted_by=submitted_by.id,
        submitter_role=submitted_by.role,
        resubmission_count=0,
        **fields,
    )
    if created_at is not None:
        app_row.created_at = created_at
    for doc in documents or []:
        app_row.documents.append(ApplicationDocument(**doc))
    db.add(app_row)
    await db.commit()
    return app_row


def mock_api(handler) -> PortalApiClient:
    """Admin API client whose requests are answered by `handler` instead of the network."""
    return PortalApiClient("http://portal.test", "test-token", transport=httpx.MockTransport(handler))
