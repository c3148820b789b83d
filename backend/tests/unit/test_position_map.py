"""Tests for document.position_map (rendered selection -> Markdown offsets)."""

from document.position_map import (
    build_position_map,
    collapse_whitespace,
    compute_offsets,
    normalize_selection,
)


class TestBuildPositionMap:
    def test_strips_double_markers(self):
        pmap = build_position_map("The **quick** fox")
        assert pmap.stripped == "The quick fox"
        assert pmap.index_map[4] == 6  # "q"

    def test_strips_underscore_double_markers(self):
        assert build_position_map("__bold__ text").stripped == "bold text"

    def test_strips_paired_single_marker(self):
        pmap = build_position_map("an *italic* word")
        assert pmap.stripped == "an italic word"
        assert pmap.index_map[3] == 4

    def test_single_marker_before_space_is_literal(self):
        assert build_position_map("a * b").stripped == "a * b"

    def test_unclosed_single_marker_is_literal(self):
        assert build_position_map("use my_var here").stripped == "use my_var here"

    def test_marker_closed_after_next_space_is_literal(self):
        assert build_position_map("2*3 is 6*1").stripped == "2*3 is 6*1"

    def test_marker_closed_at_end_of_text_is_stripped(self):
        pmap = build_position_map("say *hi*")
        assert pmap.stripped == "say hi"
        assert pmap.index_map == (0, 1, 2, 3, 5, 6)

    def test_italic_at_end_maps_inside_markers(self):
        start, end = compute_offsets("say *hi*", "hi")
        assert "say *hi*"[start:end] == "hi"

    def test_backticks_always_stripped(self):
        pmap = build_position_map("run `ls -la` now")
        assert pmap.stripped == "run ls -la now"

    def test_map_length_matches_stripped(self):
        pmap = build_position_map("**a** _b_ `c`")
        assert len(pmap.index_map) == len(pmap.stripped)


class TestCollapseWhitespace:
    def test_collapses_runs(self):
        text, positions = collapse_whitespace("a \n\t b")
        assert text == "a b"
        assert positions == (0, 1, 5)

    def test_carries_index_map(self):
        text, positions = collapse_whitespace("a  b", (10, 11, 12, 13))
        assert text == "a b"
        assert positions == (10, 11, 13)

    def test_normalize_selection_trims(self):
        assert normalize_selection("  hello\n  world ") == "hello world"


class TestComputeOffsets:
    def test_selection_inside_bold_span(self):
        content = "The **quick** fox"
        start, end = compute_offsets(content, "quick")
        assert (start, end) == (6, 11)
        assert content[:start] + "slow" + content[end:] == "The **slow** fox"

    def test_selection_inside_italic_span(self):
        content = "an *italic* word"
        start, end = compute_offsets(content, "italic")
        assert content[start:end] == "italic"

    def test_selection_spanning_markers_keeps_inner_markers(self):
        content = "The **quick** brown fox"
        start, end = compute_offsets(content, "quick brown")
        assert content[start:end] == "quick** brown"

    def test_plain_text(self):
        assert compute_offsets("hello world", "world") == (6, 11)

    def test_whitespace_normalised_match(self):
        content = "line one\nline two"
        start, end = compute_offsets(content, "one line")
        assert content[start:end] == "one\nline"

    def test_whitespace_normalised_match_with_markers(self):
        content = "**alpha**\n\n  beta"
        start, end = compute_offsets(content, "alpha beta")
        assert content[start:end] == "alpha**\n\n  beta"

    def test_raw_substring_fallback(self):
        content = "The **quick** fox"
        assert compute_offsets(content, "**quick**") == (4, 13)

    def test_first_word_fallback(self):
        content = "alpha beta gamma"
        start, end = compute_offsets(content, "beta delta")
        assert start == 6
        assert end == len(content)

    def test_zero_fallback(self):
        start, end = compute_offsets("abc", "zzzz")
        assert start == 0
        assert end == 3

    def test_empty_selection(self):
        assert compute_offsets("abc", "") == (0, 0)

    def test_empty_content(self):
        assert compute_offsets("", "anything") == (0, 0)

    def test_offsets_always_in_bounds(self):
        cases = [
            ("**x**", "x"),
            ("a_b_c", "b"),
            ("`code`", "code"),
            ("short", "a much longer selection than content"),
            ("* * *", "*"),
        ]
        for content, selection in cases:
            start, end = compute_offsets(content, selection)
            assert 0 <= start <= end <= len(content), (content, selection)
