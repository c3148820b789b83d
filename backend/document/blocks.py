"""Document blocks: the ordered paragraph units that make up one snapshot."""

import hashlib
import re
import uuid
from dataclasses import dataclass, field, replace
from typing import Any

PARAGRAPH = "paragraph"

# Separator used when fingerprinting; keeps ["ab", "c"] distinct from ["a", "bc"]
_FINGERPRINT_SEPARATOR = "|||"

_PARAGRAPH_SPLIT_RE = re.compile(r"\r?\n\s*\n")


@dataclass(frozen=True)
class Block:
    """One paragraph of Markdown source.

    Identity is ``id``; ``content`` only changes by producing a new Block
    through an edit or a full replacement.
    """
    id: str
    content: str
    type: str = PARAGRAPH
    metadata: dict[str, Any] | None = field(default=None, compare=False)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "type": self.type, "content": self.content}
        if self.metadata is not None:
            data["metadata"] = dict(self.metadata)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Block":
        return cls(
            id=str(data["id"]),
            type=data.get("type") or PARAGRAPH,
            content=data.get("content") or "",
            metadata=data.get("metadata"),
        )


def new_block_id() -> str:
    return f"block-{uuid.uuid4().hex[:12]}"


def split_into_blocks(text: str) -> list[Block]:
    """Split generated text into paragraph blocks.

    Paragraphs are blank-line separated runs; each is stripped and empty
    runs are dropped.
    """
    paragraphs = [p.strip() for p in _PARAGRAPH_SPLIT_RE.split(text or "")]
    return [Block(id=new_block_id(), content=p) for p in paragraphs if p]


def find_block(blocks, block_id: str) -> Block | None:
    for block in blocks:
        if block.id == block_id:
            return block
    return None


def replace_block_content(blocks, block_id: str, new_content: str) -> list[Block]:
    """Return a copy of ``blocks`` with one block's content replaced.

    Blocks other than ``block_id`` are carried over as the same objects.
    An unknown id returns an unchanged copy.
    """
    return [
        replace(block, content=new_content) if block.id == block_id else block
        for block in blocks
    ]


def fingerprint(blocks) -> str:
    """Order-sensitive content hash of a block list.

    Only block contents participate; ids and metadata do not. Used for
    dedup only, so a short digest is enough.
    """
    joined = _FINGERPRINT_SEPARATOR.join(block.content for block in blocks)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()[:16]
