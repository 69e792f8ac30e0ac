"""
Shared test fixtures for BMCMS notification tests.

Provides the reference app client, authenticated API clients and
notification factories.
"""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient, MockTransport

from bmcms_notify.auth.jwt import create_access_token
from bmcms_notify.auth.token_store import TokenStore
from bmcms_notify.clients.http import create_async_client
from bmcms_notify.clients.notifications import NotificationApi
from bmcms_notify.config import Settings
from bmcms_notify.main import app
from bmcms_notify.schemas.notifications import Notification
from bmcms_notify.services.broker import broker

TEST_USER_ID = "user-1"

BASE_TIME = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)


# --- Broker Reset Fixture ---


@pytest.fixture(autouse=True)
def reset_broker():
    """Start every test with an empty in-memory notification broker."""
    broker.clear()
    yield
    broker.clear()


# --- Settings Fixtures ---


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointed at the in-process app with a temporary token file."""
    return Settings(
        api_base_url="http://test",
        token_file=tmp_path / "storage.json",
        refresh_interval_seconds=30.0,
        stream_max_reconnect_attempts=5,
        stream_reconnect_delay_seconds=5.0,
    )


# --- HTTP Client Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client talking to the reference app in-process."""
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=True,
    ) as client:
        yield client


@pytest.fixture
def token_store(test_settings: Settings) -> TokenStore:
    """Token storage holding a valid token for the test user."""
    store = TokenStore(test_settings.token_file)
    store.set(create_access_token(TEST_USER_ID))
    return store


@pytest_asyncio.fixture(scope="function")
async def notification_api(
    test_settings: Settings, token_store: TokenStore
) -> AsyncGenerator[NotificationApi, None]:
    """NotificationApi wired to the reference app, authenticated as the test user."""
    client = create_async_client(test_settings, token_store, ASGITransport(app=app))
    async with client:
        yield NotificationApi(client, test_settings)


@pytest_asyncio.fixture(scope="function")
async def mock_api(test_settings: Settings, token_store: TokenStore):
    """
    Factory for a NotificationApi backed by an httpx.MockTransport handler.

    The handler receives every request; returned clients are closed on teardown.
    """
    clients: list[AsyncClient] = []

    def _mock_api(handler) -> NotificationApi:
        client = create_async_client(test_settings, token_store, MockTransport(handler))
        clients.append(client)
        return NotificationApi(client, test_settings)

    yield _mock_api

    for client in clients:
        await client.aclose()


# --- Authentication Helper Fixtures ---


@pytest.fixture
def auth_headers():
    """Factory fixture for creating bearer Authorization headers."""

    def _auth_headers(user_id: str = TEST_USER_ID) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _auth_headers


# --- Notification Fixtures ---


@pytest.fixture
def make_notification():
    """Factory for Notification instances; ``minutes`` offsets ``createdAt``."""

    def _make_notification(
        notification_id: str,
        *,
        is_read: bool = False,
        minutes: int = 0,
        **overrides: Any,
    ) -> Notification:
        fields = {
            "id": notification_id,
            "title": f"Crack report {notification_id}",
            "content": "A new crack was reported in Building A",
            "link": f"/cracks/{notification_id}",
            "is_read": is_read,
            "created_at": BASE_TIME + timedelta(minutes=minutes),
        }
        fields.update(overrides)
        return Notification(**fields)

    return _make_notification


@pytest.fixture
def seed_notifications():
    """Put notifications for a user straight into the broker."""

    def _seed(*notifications: Notification, user_id: str = TEST_USER_ID) -> list[Notification]:
        for notification in notifications:
            broker.add(user_id, notification)
        return list(notifications)

    return _seed
