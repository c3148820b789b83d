"""Persisted document snapshots, one row per version."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, Integer, JSON, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class DocumentVersionRecord(Base):
    __tablename__ = "document_versions"
    __table_args__ = (
        Index("ix_document_versions_session_sequence", "session_id", "sequence_index"),
        Index("ix_document_versions_session_fingerprint", "session_id", "fingerprint"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    session_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    sequence_index: Mapped[int] = mapped_column(Integer, nullable=False)
    blocks: Mapped[list] = mapped_column(JSON, nullable=False)  # [{id, type, content, metadata?}]
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    change_type: Mapped[str] = mapped_column(String(10), nullable=False, default="MAJOR")
    description: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
