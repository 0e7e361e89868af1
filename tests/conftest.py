"""
Pytest configuration and shared fixtures for testing.
Provides settings overrides, stores, auth tokens and an app client.
"""
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import pytest

# Set testing environment before importing the package
os.environ["ENVIRONMENT"] = "testing"
os.environ["SECRET_KEY"] = "test-secret-key-for-jwt"
os.environ["STORE_BACKEND"] = "in_memory"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"  # Test DB
os.environ["ENABLE_TELEMETRY"] = "false"

from support_gate.config import RateLimitSettings, Settings
from support_gate.limiter import LimiterPolicy, RateGate
from support_gate.services import AuthService, Principal
from support_gate.store import ChatMessage, InMemorySupportStore

TEST_SECRET = "test-secret-key-for-jwt"
ADMIN_EMAIL = "admin@example.com"


# ===========================
# Settings Fixtures
# ===========================

@pytest.fixture
def test_settings() -> Settings:
    """Settings for the test environment."""
    return Settings(
        environment="testing",
        debug=True,
        secret_key=TEST_SECRET,
        admin_emails=[ADMIN_EMAIL],
        store_backend="in_memory",
        stats_cache_ttl_ms=30_000,
        enable_telemetry=False,
        limiter_purge_interval_seconds=3600
    )


@pytest.fixture
def rate_limits() -> RateLimitSettings:
    """Default policies with a tight escalation budget."""
    return RateLimitSettings(
        chat_escalation_max_attempts=3,
        chat_escalation_window_ms=60_000,
        chat_escalation_lockout_ms=60_000
    )


# ===========================
# Limiter Fixtures
# ===========================

@pytest.fixture
def login_policy() -> LimiterPolicy:
    return LimiterPolicy(max_attempts=5, window_ms=60_000, lockout_ms=300_000)


@pytest.fixture
def rate_gate(login_policy: LimiterPolicy) -> RateGate:
    return RateGate(login_policy, max_keys=1000)


# ===========================
# Store Fixtures
# ===========================

@pytest.fixture
def store() -> InMemorySupportStore:
    return InMemorySupportStore()


@pytest.fixture
def make_message() -> Callable[..., ChatMessage]:
    """Factory for chat messages."""
    def _make(
        session_id: str,
        user_id: Optional[str] = "user-1",
        content: str = "Hello",
        timestamp: Optional[datetime] = None,
        role: str = "user"
    ) -> ChatMessage:
        return ChatMessage(
            session_id=session_id,
            user_id=user_id,
            role=role,
            content=content,
            timestamp=timestamp or datetime.now(timezone.utc)
        )
    return _make


@pytest.fixture
async def chat_session(store: InMemorySupportStore, make_message) -> str:
    """A session owned by user-1 with a short conversation."""
    session_id = str(uuid.uuid4())
    start = datetime.now(timezone.utc) - timedelta(minutes=5)

    messages: List[ChatMessage] = [
        make_message(session_id, content="My order never arrived", timestamp=start),
        make_message(
            session_id,
            user_id=None,
            role="assistant",
            content="Sorry to hear that. Let me check.",
            timestamp=start + timedelta(seconds=10)
        ),
        make_message(session_id, content="I want a human", timestamp=start + timedelta(seconds=30)),
    ]
    for message in messages:
        await store.add_message(message)

    return session_id


# ===========================
# Auth Fixtures
# ===========================

@pytest.fixture
def auth_service() -> AuthService:
    return AuthService(secret_key=TEST_SECRET, admin_emails=[ADMIN_EMAIL])


@pytest.fixture
def user_principal() -> Principal:
    return Principal(user_id="user-1", email="user1@example.com", name="User One")


@pytest.fixture
def other_principal() -> Principal:
    return Principal(user_id="user-2", email="user2@example.com")


@pytest.fixture
def user_token(auth_service: AuthService) -> str:
    return auth_service.create_token("user-1", email="user1@example.com", name="User One")


@pytest.fixture
def other_token(auth_service: AuthService) -> str:
    return auth_service.create_token("user-2", email="user2@example.com")


@pytest.fixture
def admin_token(auth_service: AuthService) -> str:
    return auth_service.create_token("admin-1", email=ADMIN_EMAIL, name="Admin")


# ===========================
# App Fixtures
# ===========================

@pytest.fixture
def app(test_settings: Settings, rate_limits: RateLimitSettings, store: InMemorySupportStore):
    from support_gate.main import create_app
    return create_app(config=test_settings, limits=rate_limits, store=store)


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient
    with TestClient(app) as test_client:
        yield test_client
