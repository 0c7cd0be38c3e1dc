"""Test configuration and fixtures"""

import pytest
import httpx
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from uuid import uuid4

from callsync.main import app
from callsync.database import Base, get_db, get_session_factory
from callsync.models.organization import Organization, Contact
from callsync.models.provider import ProviderSettings
from callsync.providers.exotel import ExotelClient, get_exotel_client_factory


class FakeExotel:
    """
    In-process stand-in for the Exotel REST API.

    ``calls`` maps an account sid to the call objects its Calls.json returns,
    ``failures`` maps an account sid to an HTTP status to answer with instead.
    """

    def __init__(self, page_size: int = 2):
        self.page_size = page_size
        self.calls = {}
        self.failures = {}
        self.recordings = {}
        self.connected = []
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        parts = path.split("/")
        account_sid = parts[3] if len(parts) > 3 else None

        if account_sid in self.failures:
            return httpx.Response(self.failures[account_sid], text="Authentication failed")

        if path in self.recordings:
            return httpx.Response(
                200,
                content=self.recordings[path],
                headers={"content-type": "audio/mpeg"},
            )

        if path.endswith("/Calls/connect.json"):
            form = dict(httpx.QueryParams(request.content.decode()))
            self.connected.append(form)
            sid = f"out-{len(self.connected)}"
            return httpx.Response(200, json={"Call": {"Sid": sid, "Status": "in-progress", "From": form["From"], "To": form["To"]}})

        if path.endswith("/Calls.json"):
            calls = self.calls.get(account_sid, [])
            page = int(request.url.params.get("Page", "0"))
            chunk = calls[page * self.page_size:(page + 1) * self.page_size]
            next_page = None
            if (page + 1) * self.page_size < len(calls):
                next_page = f"/v1/Accounts/{account_sid}/Calls.json?Page={page + 1}&PageSize={self.page_size}"
            return httpx.Response(200, json={"Metadata": {"NextPageUri": next_page}, "Calls": chunk})

        return httpx.Response(404, text="Not found")

    def client_factory(self, provider_settings):
        return ExotelClient(provider_settings, transport=httpx.MockTransport(self.handler))


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite so several sessions see the same data"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory):
    """Create test database session"""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def test_org(test_db):
    """Create a test organization"""
    org = Organization(id=uuid4(), name="Acme Realty")
    test_db.add(org)
    await test_db.commit()
    return org


@pytest.fixture
async def test_contact(test_db, test_org):
    """Contact whose number appears on test calls"""
    contact = Contact(
        id=uuid4(),
        org_id=test_org.id,
        first_name="Priya",
        last_name="Sharma",
        phone="+919876543210",
    )
    test_db.add(contact)
    await test_db.commit()
    return contact


@pytest.fixture
async def test_provider_settings(test_db, test_org):
    """Active Exotel configuration for the test organization"""
    provider_settings = ProviderSettings(
        id=uuid4(),
        org_id=test_org.id,
        api_key="key",
        api_token="token",
        subdomain="api.exotel.com",
        account_sid="acme1",
        caller_id="08047112233",
        is_active=True,
    )
    test_db.add(provider_settings)
    await test_db.commit()
    return provider_settings


@pytest.fixture
def fake_exotel():
    return FakeExotel()


@pytest.fixture
async def client(test_db, session_factory, fake_exotel):
    """Create test client with overridden database and provider"""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_exotel_client_factory] = lambda: fake_exotel.client_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
