"""
Claims Desk - Test Configuration and Fixtures

Provides async database sessions, test client, and helper fixtures
for all tests.
"""

import os
from datetime import timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment BEFORE importing app code
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEBUG"] = "true"
os.environ["UPLOAD_DIR"] = str(Path(__file__).parent / "test_uploads")
os.environ["BASE_URL"] = "http://test"
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASSWORD"] = ""
os.environ["BREVO_API_KEY"] = ""
os.environ["JOTFORM_API_KEY"] = ""
os.environ["JOTFORM_WEBHOOK_SECRET"] = ""

from claimsdesk.database import Base, get_db
from claimsdesk.main import app
from claimsdesk.jotform import JotFormClient, get_jotform_client
from claimsdesk.models import Case, SignatureToken, TokenStatus
from claimsdesk.rate_limit import rate_limit_store
from claimsdesk.timestamps import now_utc
from claimsdesk.token_store import generate_signature_token


# Test database engine (in-memory SQLite shared across the session's connections)
test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest_asyncio.fixture
async def db():
    """Provide a test database session with fresh tables for each test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def client(db):
    """Provide an async HTTP test client bound to the test database."""
    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    # No JotForm API key: static field mapping, no PDF download
    app.dependency_overrides[get_jotform_client] = lambda: JotFormClient(api_key="")
    rate_limit_store.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    rate_limit_store.reset()


@pytest_asyncio.fixture
async def test_case(db):
    """Create a claim case in the database."""
    case = Case(
        case_number="WP-2024-0001",
        client_name="John Smith",
        client_email="john.smith@example.com",
        client_phone="0412345678",
    )
    db.add(case)
    await db.commit()
    await db.refresh(case)
    return case


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    """Point signed document storage at a temporary directory."""
    from claimsdesk.config import settings

    upload_path = tmp_path / "uploads"
    upload_path.mkdir()
    monkeypatch.setattr(settings, "UPLOAD_DIR", upload_path)
    return upload_path


async def _insert_token(
    db,
    case_id="case-1",
    document_type="claims",
    status=TokenStatus.PENDING,
    age_hours=0,
    valid_hours=72,
    form_data=None,
    form_link="https://form.jotform.com/232543267390861?signature_token=x",
    client_email="john.smith@example.com",
):
    """Insert a token directly, backdating it by age_hours."""
    created_at = now_utc() - timedelta(hours=age_hours)
    signature_token = SignatureToken(
        token=generate_signature_token(),
        case_id=case_id,
        client_email=client_email,
        document_type=document_type,
        form_data=form_data or {"clientName": "John Smith", "caseNumber": "WP-2024-0001"},
        form_link=form_link,
        status=TokenStatus(status).value,
        expires_at=created_at + timedelta(hours=valid_hours),
        created_at=created_at,
        updated_at=created_at,
    )
    db.add(signature_token)
    await db.commit()
    await db.refresh(signature_token)
    return signature_token


@pytest.fixture
def make_token(db):
    """Factory for signature tokens inserted straight into the database."""
    async def factory(**kwargs):
        return await _insert_token(db, **kwargs)
    return factory
