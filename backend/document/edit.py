"""Splice replacement text into the selected span of a block."""

import logging

from document.blocks import Block, find_block, replace_block_content
from document.selection import Selection, SelectionController

logger = logging.getLogger(__name__)


def apply_edit(
    new_text: str,
    selection: Selection | None,
    blocks,
    controller: SelectionController | None = None,
) -> list[Block]:
    """Replace ``selection``'s span of its block with ``new_text``.

    Returns the updated block list. With no selection, or when the selected
    block is no longer present (e.g. removed by a regeneration), the blocks
    are returned unchanged. The controller's selection is cleared only after
    a successful splice. Recording the result as a version is up to the
    caller.
    """
    blocks = list(blocks)
    if selection is None:
        return blocks

    block = find_block(blocks, selection.block_id)
    if block is None:
        logger.info("Edit target block %s no longer exists, skipping", selection.block_id)
        return blocks

    before = block.content[: selection.start_offset]
    after = block.content[selection.end_offset :]
    updated = replace_block_content(blocks, block.id, before + new_text + after)

    if controller is not None:
        controller.clear_selection()
    return updated
