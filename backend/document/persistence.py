"""Durable mirror of document version history.

The in-memory history owned by a DocumentSession is authoritative. This
module only mirrors it to the ``document_versions`` table: every method is
best-effort, logs failures and returns a neutral value instead of raising.
"""

import logging
import uuid
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from document.versions import Snapshot
from models.document_version import DocumentVersionRecord

logger = logging.getLogger(__name__)


class DocumentPersistence(Protocol):
    async def load_snapshots(self, document_id: uuid.UUID) -> list[Snapshot]: ...

    async def save_snapshot(self, document_id: uuid.UUID, snapshot: Snapshot) -> str | None: ...

    async def snapshot_exists(self, document_id: uuid.UUID, fingerprint: str) -> bool: ...

    async def delete_snapshots(self, document_id: uuid.UUID, ids: list[str]) -> None: ...


class SqlDocumentPersistence:
    """DocumentPersistence backed by async SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def load_snapshots(self, document_id: uuid.UUID) -> list[Snapshot]:
        """All stored snapshots for a document, oldest first."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(DocumentVersionRecord)
                    .where(DocumentVersionRecord.session_id == document_id)
                    .order_by(DocumentVersionRecord.sequence_index.asc())
                )
                records = result.scalars().all()
        except SQLAlchemyError as e:
            logger.warning("Failed to load versions for %s: %s", document_id, e)
            return []
        return [_to_snapshot(r) for r in records]

    async def save_snapshot(self, document_id: uuid.UUID, snapshot: Snapshot) -> str | None:
        """Insert a snapshot, or update it in place if its id is already stored.

        Returns the snapshot id, or None on failure.
        """
        try:
            async with self._session_factory() as db:
                record = await db.get(DocumentVersionRecord, snapshot.id)
                if record is None:
                    record = DocumentVersionRecord(id=snapshot.id, session_id=document_id)
                    db.add(record)
                record.sequence_index = snapshot.sequence_index
                record.blocks = [block.to_dict() for block in snapshot.blocks]
                record.fingerprint = snapshot.fingerprint
                record.change_type = snapshot.change_type.value
                record.description = snapshot.description
                record.created_at = snapshot.created_at
                await db.commit()
        except SQLAlchemyError as e:
            logger.warning(
                "Failed to save version %d for %s: %s", snapshot.sequence_index, document_id, e
            )
            return None
        return snapshot.id

    async def snapshot_exists(self, document_id: uuid.UUID, fingerprint: str) -> bool:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(DocumentVersionRecord.id)
                    .where(
                        DocumentVersionRecord.session_id == document_id,
                        DocumentVersionRecord.fingerprint == fingerprint,
                    )
                    .limit(1)
                )
                return result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            logger.warning("Failed to check version fingerprint for %s: %s", document_id, e)
            return False

    async def delete_snapshots(self, document_id: uuid.UUID, ids: list[str]) -> None:
        if not ids:
            return
        try:
            async with self._session_factory() as db:
                await db.execute(
                    delete(DocumentVersionRecord).where(
                        DocumentVersionRecord.session_id == document_id,
                        DocumentVersionRecord.id.in_(ids),
                    )
                )
                await db.commit()
        except SQLAlchemyError as e:
            logger.warning("Failed to delete %d versions for %s: %s", len(ids), document_id, e)


def _to_snapshot(record: DocumentVersionRecord) -> Snapshot:
    return Snapshot.from_record({
        "id": record.id,
        "sequence_index": record.sequence_index,
        "blocks": record.blocks,
        "fingerprint": record.fingerprint,
        "change_type": record.change_type,
        "description": record.description,
        "created_at": record.created_at,
    })
