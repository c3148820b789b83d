"""The user's active text selection within the current document."""

import logging
from dataclasses import dataclass

from document.blocks import Block
from document.position_map import compute_offsets, normalize_selection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Selection:
    """A rendered-text selection mapped onto one block's Markdown source.

    ``selected_text`` is what the user saw; ``original_markdown`` is
    ``content[start_offset:end_offset]`` at the moment of selection.
    """
    block_id: str
    selected_text: str
    original_markdown: str
    start_offset: int
    end_offset: int

    def to_dict(self) -> dict:
        return {
            "block_id": self.block_id,
            "selected_text": self.selected_text,
            "original_markdown": self.original_markdown,
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
        }


def build_selection(block: Block, rendered_text: str) -> Selection | None:
    """Map a rendered selection inside ``block`` to source offsets.

    Returns None for an empty (whitespace-only) selection.
    """
    selected_text = normalize_selection(rendered_text)
    if not selected_text:
        return None
    start, end = compute_offsets(block.content, selected_text)
    return Selection(
        block_id=block.id,
        selected_text=selected_text,
        original_markdown=block.content[start:end],
        start_offset=start,
        end_offset=end,
    )


class SelectionController:
    """Holds at most one active selection.

    Setting a selection replaces the previous one outright.
    """

    def __init__(self):
        self._selection: Selection | None = None

    @property
    def selection(self) -> Selection | None:
        return self._selection

    @property
    def has_active_selection(self) -> bool:
        return self._selection is not None and len(self._selection.selected_text) > 0

    def set_selection(self, selection: Selection | None) -> None:
        self._selection = selection

    def clear_selection(self) -> None:
        if self._selection is not None:
            logger.debug("Clearing selection on block %s", self._selection.block_id)
        self._selection = None
