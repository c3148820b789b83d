"""Document endpoints: blocks, selection, LLM edits and version navigation."""

import uuid
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from auth.session import get_session_id
from document.blocks import Block, find_block, new_block_id, split_into_blocks
from document.errors import (
    CollaboratorError,
    DocumentBusyError,
    NoSelectionError,
    SelectionChangedError,
)
from document.session import DocumentSession
from document.store import get_or_load

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["documents"])


class BlockOut(BaseModel):
    id: str
    type: str
    content: str
    metadata: dict | None = None


class VersionOut(BaseModel):
    id: str
    sequence_index: int
    fingerprint: str
    change_type: str
    description: str
    block_count: int
    created_at: str


class SelectionOut(BaseModel):
    block_id: str
    selected_text: str
    original_markdown: str
    start_offset: int
    end_offset: int


class DocumentStateOut(BaseModel):
    document_id: str
    is_open: bool
    blocks: list[BlockOut]
    cursor: int
    current_version: int | None
    versions: list[VersionOut]
    can_undo: bool
    can_redo: bool
    has_document: bool
    selection: SelectionOut | None = None


class BlocksRequest(BaseModel):
    content: str | None = None
    blocks: list[str] | None = None
    is_major: bool = True
    description: str | None = None


class BlockEditRequest(BaseModel):
    content: str


class SelectionRequest(BaseModel):
    block_id: str
    selected_text: str


class EditRequest(BaseModel):
    instruction: str


async def get_document_session(
    session_id: uuid.UUID = Depends(get_session_id),
) -> DocumentSession:
    """FastAPI dependency resolving the caller's live document session."""
    return await get_or_load(session_id)


def _state(doc: DocumentSession) -> DocumentStateOut:
    return DocumentStateOut(**doc.to_dict())


def _blocks_from_request(body: BlocksRequest) -> list[Block]:
    if body.blocks is not None:
        blocks = [Block(id=new_block_id(), content=c.strip()) for c in body.blocks if c.strip()]
    else:
        blocks = split_into_blocks(body.content or "")
    if not blocks:
        raise HTTPException(status_code=400, detail="No content provided")
    return blocks


@router.get("", response_model=DocumentStateOut)
async def get_document(doc: DocumentSession = Depends(get_document_session)):
    """Current blocks, version list and active selection."""
    return _state(doc)


@router.post("/blocks", response_model=DocumentStateOut)
async def append_blocks(
    body: BlocksRequest,
    doc: DocumentSession = Depends(get_document_session),
):
    blocks = _blocks_from_request(body)
    doc.append_blocks(blocks, is_major=body.is_major, description=body.description or "Added new content")
    return _state(doc)


@router.put("/blocks", response_model=DocumentStateOut)
async def replace_blocks(
    body: BlocksRequest,
    doc: DocumentSession = Depends(get_document_session),
):
    blocks = _blocks_from_request(body)
    doc.replace_blocks(blocks, description=body.description or "Document regenerated")
    return _state(doc)


@router.patch("/blocks/{block_id}", response_model=DocumentStateOut)
async def edit_block(
    block_id: str,
    body: BlockEditRequest,
    doc: DocumentSession = Depends(get_document_session),
):
    """Replace one block's content in the current version (minor edit)."""
    doc.apply_minor_edit(block_id, body.content)
    return _state(doc)


@router.post("/selection", response_model=DocumentStateOut)
async def set_selection(
    body: SelectionRequest,
    doc: DocumentSession = Depends(get_document_session),
):
    """Map rendered selected text onto the block's Markdown source."""
    if find_block(doc.state.current_blocks, body.block_id) is None:
        raise HTTPException(status_code=404, detail="Block not found in current version")
    doc.select(body.block_id, body.selected_text)
    return _state(doc)


@router.delete("/selection", response_model=DocumentStateOut)
async def clear_selection(doc: DocumentSession = Depends(get_document_session)):
    doc.clear_selection()
    return _state(doc)


@router.post("/edit", response_model=DocumentStateOut)
async def edit_selection(
    body: EditRequest,
    doc: DocumentSession = Depends(get_document_session),
):
    """Rewrite the active selection with the LLM and record a minor edit."""
    if not body.instruction.strip():
        raise HTTPException(status_code=400, detail="Instruction must not be empty")
    try:
        await doc.edit_selection(body.instruction)
    except NoSelectionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (DocumentBusyError, SelectionChangedError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except CollaboratorError as e:
        logger.error("Edit failed for document %s: %s", doc.document_id, e)
        raise HTTPException(status_code=502, detail="Edit failed, please try again")
    return _state(doc)


@router.post("/undo", response_model=DocumentStateOut)
async def undo(doc: DocumentSession = Depends(get_document_session)):
    doc.undo()
    return _state(doc)


@router.post("/redo", response_model=DocumentStateOut)
async def redo(doc: DocumentSession = Depends(get_document_session)):
    doc.redo()
    return _state(doc)


@router.post("/versions/{sequence_index}", response_model=DocumentStateOut)
async def switch_version(
    sequence_index: int,
    doc: DocumentSession = Depends(get_document_session),
):
    doc.switch_to_version(sequence_index)
    return _state(doc)


@router.post("/close", response_model=DocumentStateOut)
async def close_document(doc: DocumentSession = Depends(get_document_session)):
    doc.close_document()
    return _state(doc)


@router.delete("", response_model=DocumentStateOut)
async def clear_document(doc: DocumentSession = Depends(get_document_session)):
    """Drop the whole version history for this session."""
    doc.clear()
    return _state(doc)
