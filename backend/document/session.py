"""Per-document orchestration of version history, selection and persistence.

A ``DocumentSession`` owns exactly one ``VersionHistoryState`` and swaps in
the value returned by each pure transition from ``document.versions``. After
every change the difference between the old and new state is mirrored to the
persistence collaborator in a background task; the in-memory state stays
authoritative whatever the mirror does.

Generation and edit requests go through a single-slot in-flight guard: a
second request while one is outstanding raises ``DocumentBusyError``.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager

from config import settings
from document import versions
from document.blocks import Block, find_block, fingerprint, split_into_blocks
from document.edit import apply_edit
from document.editor import edit_text
from document.errors import (
    DocumentBusyError,
    GenerationFailedError,
    NoSelectionError,
    SelectionChangedError,
)
from document.generator import generate_content
from document.persistence import DocumentPersistence
from document.selection import Selection, SelectionController, build_selection
from document.versions import Snapshot, VersionHistoryState

logger = logging.getLogger(__name__)


class DocumentSession:
    def __init__(
        self,
        document_id: uuid.UUID,
        persistence: DocumentPersistence | None = None,
        max_versions: int | None = None,
    ):
        self.document_id = document_id
        self.state: VersionHistoryState = versions.empty_state(max_versions or settings.max_versions)
        self.selection = SelectionController()
        self.is_open = False
        self._persistence = persistence
        self._busy = asyncio.Lock()
        self._write_lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Loading and mirroring
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Rebuild history from persistence, keeping the newest snapshots."""
        if self._persistence is None:
            return
        snapshots = await self._persistence.load_snapshots(self.document_id)
        self.state = versions.from_snapshots(snapshots, self.state.max_versions)
        kept = {s.id for s in self.state.versions}
        overflow = [s.id for s in snapshots if s.id not in kept]
        if overflow:
            self._schedule_write(removed=overflow, created=[], amended=[])
        self.is_open = self.state.has_document
        logger.info(
            "Loaded %d versions for document %s", len(self.state.versions), self.document_id,
        )

    async def flush(self) -> None:
        """Wait for all scheduled persistence writes to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def _commit(self, new_state: VersionHistoryState) -> VersionHistoryState:
        old_state = self.state
        if new_state is old_state:
            return new_state
        self.state = new_state
        self._revalidate_selection()
        self._mirror(old_state, new_state)
        return new_state

    def _revalidate_selection(self) -> None:
        current = self.selection.selection
        if current is None:
            return
        block = find_block(self.state.current_blocks, current.block_id)
        if (
            block is None
            or block.content[current.start_offset:current.end_offset] != current.original_markdown
        ):
            self.selection.clear_selection()

    def _mirror(self, old_state: VersionHistoryState, new_state: VersionHistoryState) -> None:
        if self._persistence is None:
            return
        old_by_id = {s.id: s for s in old_state.versions}
        new_ids = {s.id for s in new_state.versions}
        removed = [s.id for s in old_state.versions if s.id not in new_ids]
        created = [s for s in new_state.versions if s.id not in old_by_id]
        amended = [
            s for s in new_state.versions
            if s.id in old_by_id and old_by_id[s.id] is not s
        ]
        if removed or created or amended:
            self._schedule_write(removed, created, amended)

    def _schedule_write(
        self,
        removed: list[str],
        created: list[Snapshot],
        amended: list[Snapshot],
    ) -> None:
        task = asyncio.create_task(self._write(removed, created, amended))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(
        self,
        removed: list[str],
        created: list[Snapshot],
        amended: list[Snapshot],
    ) -> None:
        # Writes run one at a time in scheduling order
        async with self._write_lock:
            try:
                if removed:
                    await self._persistence.delete_snapshots(self.document_id, removed)
                for snapshot in created:
                    if await self._persistence.snapshot_exists(self.document_id, snapshot.fingerprint):
                        logger.info(
                            "Skipping duplicate version %d for document %s",
                            snapshot.sequence_index, self.document_id,
                        )
                        continue
                    await self._persistence.save_snapshot(self.document_id, snapshot)
                for snapshot in amended:
                    await self._persistence.save_snapshot(self.document_id, snapshot)
            except Exception as e:
                logger.warning("Failed to mirror versions for document %s: %s", self.document_id, e)

    # ------------------------------------------------------------------
    # Version transitions
    # ------------------------------------------------------------------

    def _record_major(self, blocks, description: str) -> VersionHistoryState:
        """Create a major version unless identical content is already held."""
        position = versions.find_by_fingerprint(self.state, fingerprint(blocks))
        if position != -1:
            existing = self.state.versions[position]
            logger.info(
                "Content matches version %d for document %s, switching instead of creating",
                existing.sequence_index, self.document_id,
            )
            return self._commit(versions.switch_to_version(self.state, existing.sequence_index))
        return self._commit(versions.create_major_version(self.state, blocks, description))

    def append_blocks(
        self, blocks: list[Block], is_major: bool = True, description: str = "Added new content",
    ) -> VersionHistoryState:
        self.is_open = True
        if is_major or not self.state.versions:
            return self._record_major(self.state.current_blocks + tuple(blocks), description)
        return self._commit(versions.append_blocks(self.state, blocks, is_major=False))

    def replace_blocks(
        self, blocks: list[Block], description: str = "Document regenerated",
    ) -> VersionHistoryState:
        self.is_open = True
        return self._record_major(tuple(blocks), description)

    def apply_minor_edit(self, block_id: str, new_content: str) -> VersionHistoryState:
        return self._commit(versions.apply_minor_edit(self.state, block_id, new_content))

    def apply_content_edit(
        self, block_id: str, start_offset: int, end_offset: int, new_text: str,
    ) -> VersionHistoryState:
        return self._commit(
            versions.apply_content_edit(self.state, block_id, start_offset, end_offset, new_text)
        )

    def undo(self) -> VersionHistoryState:
        return self._commit(versions.undo(self.state))

    def redo(self) -> VersionHistoryState:
        return self._commit(versions.redo(self.state))

    def switch_to_version(self, sequence_index: int) -> VersionHistoryState:
        return self._commit(versions.switch_to_version(self.state, sequence_index))

    def clear(self) -> VersionHistoryState:
        self.selection.clear_selection()
        self.is_open = False
        return self._commit(versions.clear_versions(self.state))

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(self, block_id: str, rendered_text: str) -> Selection | None:
        """Map a rendered selection in the current snapshot and make it active.

        An unknown block leaves the current selection untouched and returns
        None; an empty selection clears it.
        """
        block = find_block(self.state.current_blocks, block_id)
        if block is None:
            return None
        selection = build_selection(block, rendered_text)
        self.selection.set_selection(selection)
        return selection

    def clear_selection(self) -> None:
        self.selection.clear_selection()

    def close_document(self) -> None:
        """Leave document mode. History is kept; the selection is dropped."""
        self.is_open = False
        self.selection.clear_selection()

    # ------------------------------------------------------------------
    # Collaborator-backed operations
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _in_flight(self):
        if self._busy.locked():
            raise DocumentBusyError(f"Document {self.document_id} has a request in progress")
        async with self._busy:
            yield

    async def generate(
        self,
        history: list[dict],
        document_text: str | None = None,
        is_major: bool = True,
        generate_fn=None,
    ) -> list[Block]:
        """Generate content and append it as new blocks.

        Raises:
            DocumentBusyError: Another generation or edit is in flight.
            GenerationFailedError: The collaborator failed or produced no blocks.
        """
        generate_fn = generate_fn or generate_content
        async with self._in_flight():
            text = await generate_fn(history, document_text)
            blocks = split_into_blocks(text)
            if not blocks:
                raise GenerationFailedError("Generated content contained no paragraphs")
            self.append_blocks(blocks, is_major=is_major)
            return blocks

    async def edit_selection(self, instruction: str, edit_fn=None) -> Block | None:
        """Rewrite the active selection per ``instruction``.

        The result is recorded as a minor edit of the current snapshot.
        Returns the updated block, or None if the selected block is no longer
        in the current snapshot.

        Raises:
            NoSelectionError: Nothing is selected.
            DocumentBusyError: Another generation or edit is in flight.
            EditFailedError: The collaborator failed or returned empty text.
            SelectionChangedError: The selection was cleared or replaced while
                the edit was running; the result is discarded.
        """
        if not self.selection.has_active_selection:
            raise NoSelectionError("Select some text before requesting an edit")
        edit_fn = edit_fn or edit_text
        async with self._in_flight():
            selection = self.selection.selection
            new_text = await edit_fn(selection.original_markdown, instruction)
            if self.selection.selection is not selection:
                logger.info(
                    "Discarding edit for document %s: selection changed during the request",
                    self.document_id,
                )
                raise SelectionChangedError("The selection changed while the edit was running")
            updated = apply_edit(
                new_text, selection, self.state.current_blocks, controller=self.selection,
            )
            block = find_block(updated, selection.block_id)
            if block is None:
                return None
            self.apply_minor_edit(block.id, block.content)
            return block

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        state = self.state
        current = state.current
        selection = self.selection.selection
        return {
            "document_id": str(self.document_id),
            "is_open": self.is_open,
            "blocks": [block.to_dict() for block in state.current_blocks],
            "cursor": state.cursor,
            "current_version": current.sequence_index if current else None,
            "versions": [
                {
                    "id": s.id,
                    "sequence_index": s.sequence_index,
                    "fingerprint": s.fingerprint,
                    "change_type": s.change_type.value,
                    "description": s.description,
                    "block_count": len(s.blocks),
                    "created_at": s.created_at.isoformat(),
                }
                for s in state.versions
            ],
            "can_undo": state.can_undo,
            "can_redo": state.can_redo,
            "has_document": state.has_document,
            "selection": selection.to_dict() if selection else None,
        }
