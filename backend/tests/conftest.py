"""Master test fixtures.

Environment variables are set BEFORE any application imports so that
``config.Settings()`` initialises with test-safe values and never
touches Docker secrets or a production database.
"""

import os
import uuid

# ── Set test env vars before any app import ──────────────────────────
os.environ.update({
    "DATABASE_URL": "sqlite+aiosqlite://",
    "POSTGRES_PASSWORD": "testpassword",
    "LLM_API_KEY": "test-llm-key",
    "MAX_VERSIONS": "10",
})

import pytest

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Now safe to import application code
from models.base import Base, get_db
from document import store
from document.versions import Snapshot


# ── SQLite async engine shared by every session in a test ────────────
_test_engine = create_async_engine("sqlite+aiosqlite://", echo=False, poolclass=StaticPool)
_TestSession = async_sessionmaker(_test_engine, class_=AsyncSession, expire_on_commit=False)


class InMemoryPersistence:
    """DocumentPersistence that keeps snapshots in a dict, for endpoint tests."""

    def __init__(self):
        self.records: dict[uuid.UUID, dict[str, Snapshot]] = {}

    async def load_snapshots(self, document_id):
        snapshots = self.records.get(document_id, {}).values()
        return sorted(snapshots, key=lambda s: s.sequence_index)

    async def save_snapshot(self, document_id, snapshot):
        self.records.setdefault(document_id, {})[snapshot.id] = snapshot
        return snapshot.id

    async def snapshot_exists(self, document_id, fingerprint):
        return any(s.fingerprint == fingerprint for s in self.records.get(document_id, {}).values())

    async def delete_snapshots(self, document_id, ids):
        stored = self.records.get(document_id, {})
        for snapshot_id in ids:
            stored.pop(snapshot_id, None)


@pytest.fixture(autouse=True)
async def _create_tables():
    """Create and drop SQLite tables around every test."""
    async with _test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with _test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_document_sessions():
    """Every test starts with an empty session registry."""
    store._sessions.clear()
    yield
    store._sessions.clear()


@pytest.fixture
def session_factory():
    return _TestSession


@pytest.fixture
async def db_session():
    """Yield a test DB session."""
    async with _TestSession() as session:
        yield session


@pytest.fixture
def memory_persistence(monkeypatch) -> InMemoryPersistence:
    """Back every registry-created document session with one in-memory store."""
    persistence = InMemoryPersistence()
    monkeypatch.setattr(store, "_make_persistence", lambda: persistence)
    return persistence


@pytest.fixture
async def test_client(db_session: AsyncSession, memory_persistence):
    """HTTPX async client wired to the FastAPI app, with DB override.

    The startup event is NOT run; tables come from ``_create_tables``.
    """
    from main import app

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def session_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def session_headers(session_id: uuid.UUID) -> dict[str, str]:
    """X-Session-Id header for one anonymous test session."""
    return {"X-Session-Id": str(session_id)}
