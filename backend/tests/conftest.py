"""
Pytest configuration for Parley backend tests.

Provides:
- In-memory SQLite database (aiosqlite, StaticPool), recreated per test
- fakeredis in place of Redis
- In-process blob store
- Helpers to sign users in without going through OTP
- HTTPX AsyncClient wired to the app with dependency overrides
"""

import os

# Cheap bcrypt for tests; must be set before settings are loaded
os.environ.setdefault("OTP_HASH_ROUNDS", "4")
os.environ.setdefault("ENVIRONMENT", "development")

from typing import AsyncGenerator

import fakeredis
import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from parley.core.database import get_db
from parley.core.dependencies import get_blob_store, get_redis
from parley.core.storage import LocalBlobStore
from parley.main import app
from parley.models import Base, OrgRole, User, WorkspaceRole
from parley.schemas.organization import MemberAddRequest, OrganizationCreateRequest
from parley.schemas.workspace import WorkspaceCreateRequest, WorkspaceMemberAddRequest
from parley.services.organization_service import OrganizationService
from parley.services.session_service import SessionStore
from parley.services.workspace_service import WorkspaceService
from parley.workers.email_tasks import send_invitation_email


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def redis():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def blob_store() -> LocalBlobStore:
    return LocalBlobStore(base_url="http://blobs.test")


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch) -> list[dict]:
    """Capture invitation e-mails instead of queueing them on Celery."""
    sent: list[dict] = []
    monkeypatch.setattr(send_invitation_email, "delay", lambda **kwargs: sent.append(kwargs))
    return sent


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class SignedInUser:
    def __init__(self, user: User, token: str) -> None:
        self.user = user
        self.token = token

    @property
    def id(self):
        return self.user.id


@pytest.fixture
def sign_in(db):
    """Create a user and open a session for them, bypassing OTP."""
    counter = {"n": 0}

    async def _sign_in(
        email: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> SignedInUser:
        counter["n"] += 1
        user = User(
            phone=f"+1555000{counter['n']:04d}",
            email=email or f"user{counter['n']}@example.com",
            first_name=first_name,
            last_name=last_name,
        )
        db.add(user)
        await db.flush()
        session = await SessionStore(db).issue(user.id)
        await db.commit()
        return SignedInUser(user, session.token)

    return _sign_in


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

@pytest.fixture
async def client(session_factory, redis, blob_store) -> AsyncGenerator[httpx.AsyncClient, None]:

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_redis():
        return redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test", timeout=30.0) as client:
        yield client

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Tenancy
# ---------------------------------------------------------------------------

@pytest.fixture
def create_org(db, redis):
    """Create an organization owned by the given signed-in user."""
    counter = {"n": 0}

    async def _create_org(owner: SignedInUser, slug: str | None = None, **fields):
        counter["n"] += 1
        data = OrganizationCreateRequest(
            name=fields.pop("name", f"Org {counter['n']}"),
            slug=slug or f"org-{counter['n']}",
            **fields,
        )
        return await OrganizationService(db=db, redis=redis).create_organization(owner.token, data)

    return _create_org


@pytest.fixture
def add_org_member(db, redis):
    """Add a signed-in user to an organization on behalf of an admin."""
    async def _add(admin: SignedInUser, org_id, user: SignedInUser, role=OrgRole.member, **flags):
        data = MemberAddRequest(email=user.user.email, role=role, **flags)
        return await OrganizationService(db=db, redis=redis).add_member(admin.token, org_id, data)

    return _add


@pytest.fixture
def create_workspace(db, redis):
    """Create a workspace; the creator becomes its admin."""
    counter = {"n": 0}

    async def _create_workspace(creator: SignedInUser, org_id, **fields):
        counter["n"] += 1
        fields.setdefault("name", f"workspace-{counter['n']}")
        data = WorkspaceCreateRequest(**fields)
        return await WorkspaceService(db=db, redis=redis).create_workspace(creator.token, org_id, data)

    return _create_workspace


@pytest.fixture
def add_workspace_member(db, redis):
    async def _add(admin: SignedInUser, workspace_id, user: SignedInUser, role=WorkspaceRole.member):
        data = WorkspaceMemberAddRequest(user_id=user.id, role=role)
        return await WorkspaceService(db=db, redis=redis).add_member(admin.token, workspace_id, data)

    return _add
