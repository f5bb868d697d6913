"""
Shared fixtures: in-memory SQLite database, seeded org/users, and an app
wired with fake collaborators.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401
from app.core.auth import create_jwt
from app.core.database import get_session
from app.core.errors import SmtpNotEnabledError
from app.core.metrics import MetricsCollector
from app.main import create_app
from app.models.organization import Organization
from app.models.user import User
from app.models.user_org import UserOrg
from app.services.notifications import EmailService, SendEmailCommand


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeEmailService(EmailService):
    """Records commands instead of talking to SMTP."""

    def __init__(self, fail_with: Exception | None = None):
        self.sent: list[SendEmailCommand] = []
        self.fail_with = fail_with

    async def send_email(self, cmd: SendEmailCommand) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(cmd)


class FakeEventPublisher:
    def __init__(self):
        self.published: list[tuple[str, dict]] = []

    async def publish(self, event_type, payload, org_id=None):
        self.published.append((event_type, payload))
        return {"type": event_type, "payload": payload}


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
async def seed(session_factory):
    """One org with an administrator, a contributor and a viewer, plus an outsider."""
    org = Organization(name="Main Org.", slug="main")
    admin = User(email="admin@example.com", login="admin", name="Ada Admin")
    contributor = User(email="carl@example.com", login="carl", name="Carl")
    viewer = User(email="vera@example.com", login="vera", name="")
    outsider = User(email="otto@example.com", login="otto", name="Otto")

    async with session_factory() as s:
        s.add(org)
        s.add_all([admin, contributor, viewer, outsider])
        await s.flush()
        s.add_all([
            UserOrg(user_id=admin.id, org_id=org.id, role="administrator"),
            UserOrg(user_id=contributor.id, org_id=org.id, role="contributor"),
            UserOrg(user_id=viewer.id, org_id=org.id, role="viewer"),
        ])
        await s.commit()

    return {
        "org": org,
        "admin": admin,
        "contributor": contributor,
        "viewer": viewer,
        "outsider": outsider,
    }


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

@pytest.fixture
def email_service():
    return FakeEmailService()


@pytest.fixture
def events():
    return FakeEventPublisher()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def make_app(session_factory, email_service, events, metrics):
    """Build an app on the SQLite database; keyword args override collaborators."""

    async def _override_session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    def _make(**overrides):
        kwargs = {"email": email_service, "events": events, "metrics": metrics}
        kwargs.update(overrides)
        test_app = create_app(**kwargs)
        test_app.dependency_overrides[get_session] = _override_session
        return test_app

    return _make


@pytest.fixture
def test_app(make_app):
    return make_app()


@pytest.fixture
async def client(test_app):
    with patch("app.core.auth.is_jwt_revoked", AsyncMock(return_value=False)):
        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as ac:
            yield ac


@pytest.fixture
def client_for(make_app):
    """Client factory for an app with some collaborators swapped out."""

    @asynccontextmanager
    async def _client(**overrides):
        app = make_app(**overrides)
        with patch("app.core.auth.is_jwt_revoked", AsyncMock(return_value=False)):
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
                yield ac

    return _client


def bearer(user: User, org: Organization, role: str = "viewer") -> dict[str, str]:
    """Authorization header carrying a session JWT for `user` in `org`."""
    token, _ = create_jwt(
        user_id=user.id,
        org_ids=[str(org.id)],
        active_org=str(org.id),
        role=role,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def smtp_disabled():
    return FakeEmailService(fail_with=SmtpNotEnabledError())
