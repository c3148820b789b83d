"""Anonymous chat sessions: create and look up."""

import uuid
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from auth.session import parse_session_id
from models import ChatSession, get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


class SessionOut(BaseModel):
    session_id: str
    title: str | None = None
    created_at: str


async def ensure_chat_session(
    db: AsyncSession, session_id: uuid.UUID, title: str | None = None,
) -> ChatSession:
    """Return the session row, creating it (with ``title``) if it does not exist."""
    chat_session = await db.get(ChatSession, session_id)
    if chat_session is None:
        chat_session = ChatSession(id=session_id, title=title)
        db.add(chat_session)
        await db.flush()
        logger.info("Created chat session %s", session_id)
    elif title and not chat_session.title:
        chat_session.title = title
    return chat_session


def _to_out(chat_session: ChatSession) -> SessionOut:
    return SessionOut(
        session_id=str(chat_session.id),
        title=chat_session.title,
        created_at=chat_session.created_at.isoformat(),
    )


@router.post("", response_model=SessionOut, status_code=201)
async def create_session(db: AsyncSession = Depends(get_db)):
    """Start a new anonymous session. The id goes in the X-Session-Id header."""
    chat_session = await ensure_chat_session(db, uuid.uuid4())
    await db.commit()
    return _to_out(chat_session)


@router.get("/{session_id}", response_model=SessionOut)
async def get_session(session_id: str, db: AsyncSession = Depends(get_db)):
    chat_session = await db.get(ChatSession, parse_session_id(session_id))
    if chat_session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return _to_out(chat_session)
