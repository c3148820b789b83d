"""Tests for document.selection and document.edit."""

from document.blocks import Block
from document.edit import apply_edit
from document.selection import Selection, SelectionController, build_selection


def _selection(block_id="b1", start=6, end=11, text="quick", markdown="quick") -> Selection:
    return Selection(
        block_id=block_id,
        selected_text=text,
        original_markdown=markdown,
        start_offset=start,
        end_offset=end,
    )


class TestBuildSelection:
    def test_maps_rendered_text(self):
        block = Block(id="b1", content="The **quick** fox")
        selection = build_selection(block, "quick")
        assert selection.block_id == "b1"
        assert selection.original_markdown == "quick"
        assert (selection.start_offset, selection.end_offset) == (6, 11)

    def test_normalizes_whitespace(self):
        block = Block(id="b1", content="one\ntwo")
        selection = build_selection(block, "  one\n two ")
        assert selection.selected_text == "one two"
        assert selection.original_markdown == "one\ntwo"

    def test_blank_selection_is_none(self):
        assert build_selection(Block(id="b1", content="text"), "   ") is None


class TestSelectionController:
    def test_set_and_clear(self):
        controller = SelectionController()
        assert not controller.has_active_selection
        controller.set_selection(_selection())
        assert controller.has_active_selection
        controller.clear_selection()
        assert controller.selection is None

    def test_new_selection_replaces_previous(self):
        controller = SelectionController()
        controller.set_selection(_selection(block_id="b1"))
        controller.set_selection(_selection(block_id="b2"))
        assert controller.selection.block_id == "b2"

    def test_empty_text_is_not_active(self):
        controller = SelectionController()
        controller.set_selection(_selection(text=""))
        assert not controller.has_active_selection


class TestApplyEdit:
    def test_splices_selected_span(self):
        blocks = [Block(id="b0", content="intro"), Block(id="b1", content="The **quick** fox")]
        controller = SelectionController()
        selection = _selection()
        controller.set_selection(selection)

        updated = apply_edit("slow", selection, blocks, controller)

        assert updated[1].content == "The **slow** fox"
        assert updated[1].id == "b1"
        assert updated[0] is blocks[0]
        assert controller.selection is None

    def test_no_selection_returns_blocks_unchanged(self):
        blocks = [Block(id="b1", content="text")]
        assert apply_edit("x", None, blocks) == blocks

    def test_missing_block_is_noop_and_keeps_selection(self):
        blocks = [Block(id="other", content="text")]
        controller = SelectionController()
        selection = _selection()
        controller.set_selection(selection)

        updated = apply_edit("slow", selection, blocks, controller)

        assert updated == blocks
        assert controller.selection is selection

    def test_does_not_mutate_input(self):
        blocks = [Block(id="b1", content="The **quick** fox")]
        apply_edit("slow", _selection(), blocks)
        assert blocks[0].content == "The **quick** fox"
