"""In-memory registry of live document sessions with idle expiry."""

import uuid
import logging
import threading
from datetime import datetime, timezone, timedelta
from dataclasses import dataclass

from config import settings
from document.persistence import SqlDocumentPersistence
from document.session import DocumentSession
from models.base import async_session_factory

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    session: DocumentSession
    expires_at: datetime


_sessions: dict[uuid.UUID, _Entry] = {}
_lock = threading.Lock()


def _make_persistence() -> SqlDocumentPersistence:
    return SqlDocumentPersistence(async_session_factory)


def _expiry() -> datetime:
    return datetime.now(timezone.utc) + timedelta(seconds=settings.session_ttl_seconds)


def get_session(session_id: uuid.UUID) -> DocumentSession | None:
    """Return the live session for ``session_id`` and refresh its expiry."""
    with _lock:
        _cleanup()
        entry = _sessions.get(session_id)
        if entry is None:
            return None
        entry.expires_at = _expiry()
        return entry.session


async def get_or_load(session_id: uuid.UUID) -> DocumentSession:
    """Return the live session, loading its history from the database if needed.

    Two concurrent first requests may both load; the first to register wins
    and the other's copy is discarded before it is ever mutated.
    """
    existing = get_session(session_id)
    if existing is not None:
        return existing

    session = DocumentSession(session_id, persistence=_make_persistence())
    await session.load()
    with _lock:
        entry = _sessions.get(session_id)
        if entry is not None:
            return entry.session
        _sessions[session_id] = _Entry(session=session, expires_at=_expiry())
    return session


def drop_session(session_id: uuid.UUID) -> None:
    with _lock:
        _sessions.pop(session_id, None)


def _cleanup() -> None:
    """Remove expired entries. Called while holding _lock."""
    now = datetime.now(timezone.utc)
    expired = [k for k, v in _sessions.items() if v.expires_at <= now]
    for k in expired:
        del _sessions[k]
    if expired:
        logger.info("Expired %d idle document sessions", len(expired))
