"""Shared test fixtures and configuration."""
import os
from datetime import datetime
from typing import List, Optional

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TWILIO_ACCOUNT_SID", "ACtest")
os.environ.setdefault("TWILIO_AUTH_TOKEN", "test-token")
os.environ.setdefault("TWILIO_PHONE_NUMBER", "+13015550100")
os.environ.setdefault("BUSINESS_NAME", "Test Wraps")

from app.main import app
from app.core.config import Settings
from app.core.dependencies import get_db, get_notifier, get_sms_client, get_transcriber
from app.core.errors import ProviderError
from app.db.models import Base, Message, TeamPhone
from app.services.messaging.sms_client import SendResult
from app.services.realtime.notifier import RealtimeNotifier


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeSmsClient:
    """Stands in for TwilioSmsClient; records what would have been sent."""

    def __init__(self):
        self.sent: List[dict] = []
        self.error: Optional[ProviderError] = None
        self._counter = 0

    async def send_sms(self, to: str, body: str, media_urls=None) -> SendResult:
        if self.error is not None:
            raise self.error
        self._counter += 1
        self.sent.append({"to": to, "body": body, "media_urls": media_urls})
        return SendResult(success=True, sid=f"SM{self._counter:032d}", status="queued")


@pytest.fixture
def test_settings():
    """Settings for code that takes them explicitly."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        twilio_account_sid="ACtest",
        twilio_auth_token="test-token",
        twilio_phone_number="+13015550100",
        business_name="Test Wraps",
        dial_timeout_seconds=12,
        timezone="America/New_York",
    )


@pytest.fixture
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def test_db(test_db_engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def notifier():
    return RealtimeNotifier(queue_size=100)


@pytest.fixture
def fake_sms_client():
    return FakeSmsClient()


@pytest.fixture
async def client(test_db, notifier, fake_sms_client):
    """HTTP client against the app with test collaborators injected."""

    async def _override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_sms_client] = lambda: fake_sms_client
    app.dependency_overrides[get_transcriber] = lambda: None

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client

    # Clear overrides
    app.dependency_overrides.clear()


@pytest.fixture
def add_team_phones(test_db):
    """Insert team phones: add_team_phones(("Alex", "+12405550001"), ...)."""

    async def _add(*entries, enabled: bool = True) -> List[TeamPhone]:
        phones = []
        for index, (name, phone) in enumerate(entries):
            team_phone = TeamPhone(name=name, phone=phone, enabled=enabled, ring_order=index)
            test_db.add(team_phone)
            phones.append(team_phone)
        await test_db.commit()
        return phones

    return _add


@pytest.fixture
def add_message(test_db):
    """Insert a message row with an explicit timestamp."""

    async def _add(
        phone: str,
        body: str = "hello",
        direction: str = "inbound",
        created_at: Optional[datetime] = None,
        read: bool = False,
        archived: bool = False,
        customer_name: Optional[str] = None,
    ) -> Message:
        message = Message(
            direction=direction,
            channel="sms",
            customer_phone=phone,
            customer_name=customer_name,
            body=body,
            status="received" if direction == "inbound" else "sent",
            read=read,
            archived=archived,
            created_at=created_at or datetime(2026, 3, 2, 15, 0),
        )
        test_db.add(message)
        await test_db.commit()
        await test_db.refresh(message)
        return message

    return _add
