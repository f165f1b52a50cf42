"""
Pytest configuration for userhub backend tests.

Provides an in-memory SQLite database built from the ORM metadata, a fake
identity provider, identity factories and an in-process HTTP client.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

import httpx
import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from userhub.auth.identity import (
    IdentityClient,
    SessionCheck,
    SessionOutcome,
    SubjectIdentity,
)
from userhub.core.database import get_db, session_scope
from userhub.core.dependencies import get_identity_client
from userhub.models import Base


def pytest_configure(config):
    """Configure pytest-asyncio mode."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------

def make_identity(
    user_id: str,
    email: str | None = None,
    first_name: str = "",
    last_name: str = "",
    verified: bool = True,
) -> SubjectIdentity:
    email = email or f"{user_id}@example.com"
    return SubjectIdentity(
        id=user_id,
        email=email,
        first_name=first_name,
        last_name=last_name,
        verified_addresses=[email] if verified else [],
        session_id=f"session-{user_id}",
        traits={"email": email, "name": {"first": first_name, "last": last_name}},
    )


def identity_document(identity: SubjectIdentity) -> dict[str, Any]:
    """Provider-shaped identity document, as posted by webhooks."""
    return {
        "id": identity.id,
        "schema_id": "default",
        "traits": {
            "email": identity.email,
            "name": {"first": identity.first_name, "last": identity.last_name},
        },
        "verifiable_addresses": [
            {"value": address, "verified": True, "via": "email"}
            for address in identity.verified_addresses
        ],
    }


class FakeIdentityClient(IdentityClient):
    """In-memory identity provider: a directory plus token -> identity sessions."""

    def __init__(self) -> None:
        super().__init__("http://kratos.test", "http://kratos-admin.test")
        self.directory: dict[str, SubjectIdentity] = {}
        self.sessions: dict[str, SubjectIdentity] = {}
        self.disabled_sessions: list[str] = []

    def register(self, identity: SubjectIdentity, token: str | None = None) -> SubjectIdentity:
        self.directory[identity.email.lower()] = identity
        if token is not None:
            self.sessions[token] = identity
        return identity

    async def to_session(
        self,
        *,
        token: str | None = None,
        cookie: str | None = None,
        timeout: float | None = None,
    ) -> SessionCheck:
        identity = self.sessions.get(token if token is not None else cookie or "")
        if identity is None:
            return SessionCheck(SessionOutcome.REJECTED, detail="401")
        return SessionCheck(SessionOutcome.VALID, identity=identity)

    async def disable_session(self, session_id: str) -> None:
        self.disabled_sessions.append(session_id)

    async def find_identity_by_email(self, email: str) -> SubjectIdentity | None:
        return self.directory.get(email.strip().lower())

    async def get_identity(self, identity_id: str) -> SubjectIdentity | None:
        return next((i for i in self.directory.values() if i.id == identity_id), None)

    async def list_identities(self, page_size: int = 250) -> list[SubjectIdentity]:
        return list(self.directory.values())


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

async def build_engine(url: str, **kwargs: Any) -> AsyncEngine:
    """SQLite engine with foreign keys enforced and the schema created."""
    engine = create_async_engine(url, **kwargs)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):  # type: ignore[no-untyped-def]
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine


@pytest.fixture
async def engine():
    engine = await build_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def file_session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Sessions on a file database, each with its own connection.

    Used to interleave two units of work: one can commit while the other is
    still open.
    """
    engine = await build_engine(f"sqlite+aiosqlite:///{tmp_path / 'userhub.db'}")
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """One unit of work spanning the test body; committed at the end."""
    async with session_scope(session_factory) as session:
        yield session


# ---------------------------------------------------------------------------
# Identity provider + HTTP client
# ---------------------------------------------------------------------------

@pytest.fixture
def identity_client() -> FakeIdentityClient:
    return FakeIdentityClient()


@pytest.fixture
async def client(session_factory, identity_client) -> AsyncGenerator[httpx.AsyncClient, None]:
    from userhub.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_scope(session_factory) as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_client] = lambda: identity_client
    try:
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        ) as http:
            yield http
    finally:
        app.dependency_overrides.clear()
