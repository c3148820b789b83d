"""Chat endpoint: classify each message and answer, generate or edit."""

import uuid
import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.documents import DocumentStateOut, get_document_session
from api.sessions import ensure_chat_session
from auth.session import get_session_id
from config import settings
from document.errors import CollaboratorError, DocumentBusyError, SelectionChangedError
from document.generator import chat_reply, with_selection_context
from document.intent import IntentType, classify_intent
from document.parser import UploadRejectedError, read_upload
from document.session import DocumentSession
from models import ChatMessage, MessageRole, UserDocument, get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])

HISTORY_WINDOW = 20
GENERATED_MESSAGE = "✨ Content generated successfully!"
EDITED_MESSAGE = "✨ Selection updated."
FAILURE_MESSAGE = "Sorry, something went wrong."
DEFAULT_UPLOAD_MESSAGE = "Create study notes from this document."


class ChatRequest(BaseModel):
    message: str


class ChatResponse(BaseModel):
    response: str
    intent: str
    show_open_document: bool
    version_index: int | None = None
    document: DocumentStateOut


class MessageOut(BaseModel):
    id: uuid.UUID
    role: str
    content: str
    show_open_document: bool
    version_index: int | None = None
    edit_metadata: dict | None = None
    created_at: str


async def _load_history(db: AsyncSession, session_id: uuid.UUID) -> list[dict]:
    """Most recent user/assistant turns, oldest first."""
    result = await db.execute(
        select(ChatMessage)
        .where(
            ChatMessage.session_id == session_id,
            ChatMessage.role.in_([MessageRole.USER, MessageRole.ASSISTANT]),
        )
        .order_by(ChatMessage.created_at.desc())
        .limit(HISTORY_WINDOW)
    )
    messages = reversed(result.scalars().all())
    return [{"role": m.role.value, "content": m.content} for m in messages]


async def _active_document_text(db: AsyncSession, session_id: uuid.UUID) -> str | None:
    """Text of the newest unexpired upload for this session. Purges expired uploads."""
    now = datetime.now(timezone.utc)
    await db.execute(
        delete(UserDocument)
        .where(UserDocument.expires_at <= now)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(
        select(UserDocument)
        .where(UserDocument.session_id == session_id, UserDocument.expires_at > now)
        .order_by(UserDocument.created_at.desc())
        .limit(1)
    )
    upload = result.scalar_one_or_none()
    return upload.file_content if upload else None


async def _run_chat(
    db: AsyncSession,
    doc: DocumentSession,
    session_id: uuid.UUID,
    message: str,
    document_text: str | None = None,
    has_file: bool = False,
) -> ChatResponse:
    await ensure_chat_session(db, session_id, title=message[:100].strip() or None)

    selection = doc.selection.selection if doc.selection.has_active_selection else None
    classification = await classify_intent(
        message,
        has_selection=selection is not None,
        has_file=has_file,
        has_document=doc.state.has_document,
    )
    intent = classification.intent
    if intent is IntentType.DOCUMENT_EDIT and selection is None:
        intent = IntentType.DOCUMENT_CREATE
    logger.info(
        "Session %s intent=%s confidence=%.2f (%s)",
        session_id, intent.value, classification.confidence, classification.reason,
    )

    if document_text is None:
        document_text = await _active_document_text(db, session_id)
    history = await _load_history(db, session_id)
    prompt = with_selection_context(message, selection)

    db.add(ChatMessage(
        session_id=session_id,
        role=MessageRole.USER,
        content=message,
        created_at=datetime.now(timezone.utc),
        edit_metadata=(
            {"selected_text": selection.selected_text, "command": message} if selection else None
        ),
    ))

    role = MessageRole.ASSISTANT
    show_open_document = False
    try:
        if intent is IntentType.DOCUMENT_EDIT:
            await doc.edit_selection(message)
            reply, role, show_open_document = EDITED_MESSAGE, MessageRole.SYSTEM, True
        elif intent is IntentType.DOCUMENT_CREATE:
            doc.clear_selection()
            await doc.generate(history + [{"role": "user", "content": prompt}], document_text)
            reply, role, show_open_document = GENERATED_MESSAGE, MessageRole.SYSTEM, True
        else:
            reply = await chat_reply(history + [{"role": "user", "content": prompt}], document_text)
    except (DocumentBusyError, SelectionChangedError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except CollaboratorError as e:
        logger.error("Chat %s failed for session %s: %s", intent.value, session_id, e)
        reply = FAILURE_MESSAGE

    current = doc.state.current
    version_index = current.sequence_index if show_open_document and current else None
    db.add(ChatMessage(
        session_id=session_id,
        role=role,
        content=reply,
        show_open_document=show_open_document,
        version_index=version_index,
        created_at=datetime.now(timezone.utc),
    ))
    await db.commit()

    return ChatResponse(
        response=reply,
        intent=intent.value,
        show_open_document=show_open_document,
        version_index=version_index,
        document=DocumentStateOut(**doc.to_dict()),
    )


@router.post("", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    session_id: uuid.UUID = Depends(get_session_id),
    doc: DocumentSession = Depends(get_document_session),
    db: AsyncSession = Depends(get_db),
):
    """Send a message; it is answered in chat, turned into notes or applied as an edit."""
    if not body.message.strip():
        raise HTTPException(status_code=400, detail="Message must not be empty")
    return await _run_chat(db, doc, session_id, body.message.strip())


@router.post("/upload", response_model=ChatResponse)
async def chat_with_file(
    file: UploadFile = File(...),
    message: str = Form(""),
    session_id: uuid.UUID = Depends(get_session_id),
    doc: DocumentSession = Depends(get_document_session),
    db: AsyncSession = Depends(get_db),
):
    """Send a message with a source document; notes are generated from its text."""
    filename = file.filename or "unknown"
    try:
        source = await read_upload(filename, await file.read(), settings.max_upload_bytes)
    except UploadRejectedError as e:
        raise HTTPException(status_code=400, detail=str(e))

    message = message.strip() or DEFAULT_UPLOAD_MESSAGE
    await ensure_chat_session(db, session_id, title=f"Document: {filename[:80]}")
    db.add(UserDocument(
        session_id=session_id,
        file_name=filename,
        file_content=source.text,
        file_type=source.extension,
        file_size=source.size,
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=settings.user_document_ttl_seconds),
    ))
    logger.info("Session %s uploaded '%s': %d chars extracted", session_id, filename, len(source.text))

    return await _run_chat(db, doc, session_id, message, document_text=source.text, has_file=True)


@router.get("/history", response_model=list[MessageOut])
async def get_history(
    limit: int = 50,
    session_id: uuid.UUID = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
):
    """Persisted chat messages for the session, oldest first."""
    result = await db.execute(
        select(ChatMessage)
        .where(ChatMessage.session_id == session_id)
        .order_by(ChatMessage.created_at.desc())
        .limit(limit)
    )
    messages = list(reversed(result.scalars().all()))
    return [
        MessageOut(
            id=m.id,
            role=m.role.value,
            content=m.content,
            show_open_document=m.show_open_document,
            version_index=m.version_index,
            edit_metadata=m.edit_metadata,
            created_at=m.created_at.isoformat(),
        )
        for m in messages
    ]
