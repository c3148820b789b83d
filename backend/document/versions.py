"""Linear version history over immutable document snapshots.

History is an explicit ``VersionHistoryState`` value. Every operation is a
pure function ``(state, ...) -> state``; callers own the state and swap in
the returned value. Unknown block ids and sequence indices are no-ops that
return the state unchanged.

Invariants:

- ``cursor == -1`` iff ``versions`` is empty, otherwise
  ``0 <= cursor < len(versions)``.
- ``sequence_index`` strictly increases along ``versions``.
- ``len(versions) <= max_versions``; the oldest snapshots are evicted first.
"""

import enum
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from document.blocks import Block, find_block, fingerprint, replace_block_content

DEFAULT_MAX_VERSIONS = 10


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ChangeType(str, enum.Enum):
    MAJOR = "MAJOR"  # new snapshot appended after the cursor
    MINOR = "MINOR"  # current snapshot amended in place


@dataclass(frozen=True)
class Snapshot:
    """One document version: an ordered tuple of blocks plus metadata."""
    id: str
    sequence_index: int
    blocks: tuple[Block, ...]
    fingerprint: str
    created_at: datetime
    change_type: ChangeType = ChangeType.MAJOR
    description: str = ""

    @classmethod
    def create(
        cls,
        blocks,
        sequence_index: int,
        description: str = "",
        snapshot_id: str | None = None,
    ) -> "Snapshot":
        blocks = tuple(blocks)
        return cls(
            id=snapshot_id or str(uuid.uuid4()),
            sequence_index=sequence_index,
            blocks=blocks,
            fingerprint=fingerprint(blocks),
            created_at=_now(),
            change_type=ChangeType.MAJOR,
            description=description,
        )

    def to_record(self) -> dict[str, Any]:
        """Persisted record shape."""
        return {
            "id": self.id,
            "sequence_index": self.sequence_index,
            "blocks": [block.to_dict() for block in self.blocks],
            "fingerprint": self.fingerprint,
            "created_at": self.created_at.isoformat(),
            "change_type": self.change_type.value,
            "description": self.description,
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "Snapshot":
        blocks = tuple(Block.from_dict(b) for b in data.get("blocks") or [])
        created_at = data.get("created_at") or _now()
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return cls(
            id=str(data["id"]),
            sequence_index=int(data["sequence_index"]),
            blocks=blocks,
            fingerprint=data.get("fingerprint") or fingerprint(blocks),
            created_at=created_at,
            change_type=ChangeType(data.get("change_type") or ChangeType.MAJOR),
            description=data.get("description") or "",
        )


@dataclass(frozen=True)
class VersionHistoryState:
    versions: tuple[Snapshot, ...] = ()
    cursor: int = -1
    max_versions: int = DEFAULT_MAX_VERSIONS

    @property
    def current(self) -> Snapshot | None:
        if self.cursor < 0 or not self.versions:
            return None
        return self.versions[self.cursor]

    @property
    def current_blocks(self) -> tuple[Block, ...]:
        current = self.current
        return current.blocks if current else ()

    @property
    def can_undo(self) -> bool:
        return self.cursor > 0

    @property
    def can_redo(self) -> bool:
        return self.cursor < len(self.versions) - 1

    @property
    def has_document(self) -> bool:
        return len(self.current_blocks) > 0

    @property
    def next_sequence_index(self) -> int:
        """Index the next major version will carry (after the cursor)."""
        current = self.current
        return current.sequence_index + 1 if current else 0


def empty_state(max_versions: int = DEFAULT_MAX_VERSIONS) -> VersionHistoryState:
    if max_versions < 1:
        raise ValueError(f"max_versions must be at least 1, got {max_versions}")
    return VersionHistoryState(max_versions=max_versions)


def from_snapshots(snapshots, max_versions: int = DEFAULT_MAX_VERSIONS) -> VersionHistoryState:
    """Rebuild history from persisted snapshots, cursor on the latest.

    Snapshots are ordered by ``sequence_index``; when more than
    ``max_versions`` are given only the most recent are kept.
    """
    state = empty_state(max_versions)
    ordered = sorted(snapshots, key=lambda s: s.sequence_index)[-max_versions:]
    if not ordered:
        return state
    return replace(state, versions=tuple(ordered), cursor=len(ordered) - 1)


def create_major_version(
    state: VersionHistoryState,
    new_blocks,
    description: str = "Major change",
    sequence_index: int | None = None,
    snapshot_id: str | None = None,
) -> VersionHistoryState:
    """Append a new snapshot after the cursor.

    Snapshots after the cursor (left behind by an undo) are discarded first.
    """
    kept = state.versions[: state.cursor + 1]
    if sequence_index is None:
        sequence_index = state.next_sequence_index
    elif kept and sequence_index <= kept[-1].sequence_index:
        raise ValueError(
            f"sequence_index {sequence_index} must be greater than {kept[-1].sequence_index}"
        )

    snapshot = Snapshot.create(
        new_blocks,
        sequence_index=sequence_index,
        description=description,
        snapshot_id=snapshot_id,
    )
    return _enforce_retention(
        replace(state, versions=kept + (snapshot,), cursor=len(kept))
    )


def replace_blocks(
    state: VersionHistoryState,
    new_blocks,
    description: str = "Document regenerated",
) -> VersionHistoryState:
    return create_major_version(state, new_blocks, description)


def append_blocks(
    state: VersionHistoryState,
    new_blocks,
    is_major: bool = True,
    description: str = "Added new content",
) -> VersionHistoryState:
    """Add blocks after the current snapshot's blocks.

    A major append (or the first content) creates a new snapshot; a minor
    append extends the current snapshot in place and leaves the cursor and
    any redo history alone.
    """
    if is_major or not state.versions:
        return create_major_version(
            state, state.current_blocks + tuple(new_blocks), description
        )
    return _amend_current(state, state.current_blocks + tuple(new_blocks))


def apply_minor_edit(
    state: VersionHistoryState, block_id: str, new_content: str
) -> VersionHistoryState:
    """Replace one block's content in the current snapshot."""
    current = state.current
    if current is None:
        return state
    block = find_block(current.blocks, block_id)
    if block is None or block.content == new_content:
        return state
    return _amend_current(state, replace_block_content(current.blocks, block_id, new_content))


def apply_content_edit(
    state: VersionHistoryState,
    block_id: str,
    start_offset: int,
    end_offset: int,
    new_text: str,
) -> VersionHistoryState:
    """Splice ``new_text`` over ``[start_offset, end_offset)`` of one block."""
    current = state.current
    if current is None:
        return state
    block = find_block(current.blocks, block_id)
    if block is None:
        return state
    content = block.content
    start = max(0, min(start_offset, len(content)))
    end = max(start, min(end_offset, len(content)))
    return apply_minor_edit(state, block_id, content[:start] + new_text + content[end:])


def undo(state: VersionHistoryState) -> VersionHistoryState:
    if state.cursor <= 0:
        return state
    return replace(state, cursor=state.cursor - 1)


def redo(state: VersionHistoryState) -> VersionHistoryState:
    if state.cursor >= len(state.versions) - 1:
        return state
    return replace(state, cursor=state.cursor + 1)


def switch_to_version(state: VersionHistoryState, sequence_index: int) -> VersionHistoryState:
    """Move the cursor to the snapshot carrying ``sequence_index``.

    Looks up the logical index, not the array position: eviction shifts
    positions but sequence indices stay stable.
    """
    for position, snapshot in enumerate(state.versions):
        if snapshot.sequence_index == sequence_index:
            if position == state.cursor:
                return state
            return replace(state, cursor=position)
    return state


def clear_versions(state: VersionHistoryState) -> VersionHistoryState:
    return replace(state, versions=(), cursor=-1)


def find_by_fingerprint(state: VersionHistoryState, content_hash: str) -> int:
    """Array position of a snapshot with this fingerprint, or -1."""
    for position, snapshot in enumerate(state.versions):
        if snapshot.fingerprint == content_hash:
            return position
    return -1


def has_fingerprint(state: VersionHistoryState, content_hash: str) -> bool:
    return find_by_fingerprint(state, content_hash) != -1


def _amend_current(state: VersionHistoryState, blocks) -> VersionHistoryState:
    blocks = tuple(blocks)
    amended = replace(
        state.current,
        blocks=blocks,
        fingerprint=fingerprint(blocks),
        created_at=_now(),
        change_type=ChangeType.MINOR,
    )
    versions = list(state.versions)
    versions[state.cursor] = amended
    return replace(state, versions=tuple(versions))


def _enforce_retention(state: VersionHistoryState) -> VersionHistoryState:
    overflow = len(state.versions) - state.max_versions
    if overflow <= 0:
        return state
    # A cursor that lagged behind the evicted range is clamped to the oldest
    # surviving snapshot.
    return replace(
        state,
        versions=state.versions[overflow:],
        cursor=max(state.cursor - overflow, 0),
    )
