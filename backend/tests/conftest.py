"""
Pytest configuration and fixtures for the backend tests.
"""
import os
import tempfile

# Settings are read at import time; point them at throwaway resources first
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["USE_MONGO"] = "false"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(tempfile.mkdtemp(prefix="otp-auth-db-"), "app.db")
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="otp-auth-logs-")
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["BCRYPT_ROUNDS"] = "4"

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, List, Optional

import pytest
from faker import Faker
from httpx import ASGITransport, AsyncClient

from main import app
from api.dependencies import get_account_manager
from core.config import AccountLifecycleConfig
from core.security import TokenIssuer
from db.base import initialize_database
from db.session import build_engine, build_session_factory
from db.sql_account_store import SqlAccountStore
from services.account_service import AccountLifecycleManager
from services.notification_service import NotificationPurpose, NotificationSink

# Initialize Faker for test data generation
fake = Faker()

TEST_SECRET = "unit-test-signing-secret"


@dataclass
class SentNotification:
    recipient: str
    purpose: NotificationPurpose
    code: str
    display_name: str


class RecordingNotificationSink(NotificationSink):
    """Keeps every notification in memory; raises ``fail_with`` when set."""

    def __init__(self):
        self.sent: List[SentNotification] = []
        self.fail_with: Optional[Exception] = None

    async def send(self, recipient, purpose, code, display_name):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(SentNotification(recipient, purpose, code, display_name))

    def last_code(self, recipient: str) -> str:
        for item in reversed(self.sent):
            if item.recipient == recipient:
                return item.code
        raise AssertionError(f"nothing sent to {recipient}")


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
async def sql_store(tmp_path) -> AsyncGenerator[SqlAccountStore, None]:
    """Account store backed by a fresh SQLite database per test."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'accounts.db'}")
    await initialize_database(bind=engine)
    yield SqlAccountStore(build_session_factory(engine))
    await engine.dispose()


@pytest.fixture
def notifier() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def token_issuer() -> TokenIssuer:
    return TokenIssuer(TEST_SECRET, expire_minutes=30)


@pytest.fixture
def manager(sql_store, notifier, token_issuer, clock) -> AccountLifecycleManager:
    return AccountLifecycleManager(
        store=sql_store,
        notifier=notifier,
        token_issuer=token_issuer,
        config=AccountLifecycleConfig(otp_validity_minutes=10, token_validity_minutes=30, sender_identity="Test App"),
        clock=clock,
    )


@pytest.fixture
async def async_client(manager) -> AsyncGenerator[AsyncClient, None]:
    """Async test client wired to the per-test manager."""
    app.dependency_overrides[get_account_manager] = lambda: manager

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def sample_account_data():
    """Sample registration data for testing."""
    return {
        "name": fake.name(),
        "email": fake.email(),
        "password": fake.password(length=12),
    }


@pytest.fixture
async def verified_account(manager, notifier, sample_account_data):
    """A registered account that has completed OTP verification."""
    await manager.register(**sample_account_data)
    email = sample_account_data["email"]
    await manager.verify_otp(email, notifier.last_code(email))
    return sample_account_data
