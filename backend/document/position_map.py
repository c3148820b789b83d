"""Map rendered (formatting-stripped) text selections back to Markdown source offsets.

The rendered document shows block content with inline emphasis markers
removed. When the user selects text on screen we only know the rendered
string, but edits must be spliced into the Markdown source. This module
strips the same lightweight markers the renderer hides, keeps a map from
every stripped character to its source index, and uses it to translate a
match in the stripped text into ``(start, end)`` offsets in the source.

Stripping rules (a heuristic, not a Markdown parser):

- ``**`` and ``__`` are always skipped as two-character units.
- A single ``*`` or ``_`` is skipped only when the next character is not a
  space and the next occurrence of the same marker comes before the next
  space (or the end of the text). Its paired closing marker is skipped too.
- Backticks are always skipped.

Lookup degrades gracefully and never raises:
exact mapped match -> whitespace-normalised match -> raw substring ->
first word -> offset 0.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DOUBLE_MARKERS = ("**", "__")
SINGLE_MARKERS = ("*", "_")
CODE_MARKER = "`"


@dataclass(frozen=True)
class PositionMap:
    """Stripped text plus, for each stripped character, its source index."""
    stripped: str
    index_map: tuple[int, ...]


def build_position_map(markdown: str) -> PositionMap:
    """Strip inline emphasis/code markers, recording source positions."""
    chars: list[str] = []
    index_map: list[int] = []
    paired_closers: set[int] = set()

    i = 0
    length = len(markdown)
    while i < length:
        if markdown.startswith(DOUBLE_MARKERS, i):
            i += 2
            continue

        ch = markdown[i]
        if i in paired_closers:
            i += 1
            continue

        if ch in SINGLE_MARKERS:
            close = _closing_marker(markdown, i)
            if close != -1:
                paired_closers.add(close)
                i += 1
                continue

        if ch == CODE_MARKER:
            i += 1
            continue

        chars.append(ch)
        index_map.append(i)
        i += 1

    return PositionMap(stripped="".join(chars), index_map=tuple(index_map))


def _closing_marker(markdown: str, i: int) -> int:
    """Index of the marker closing the single marker at ``i``, or -1.

    The marker must be followed by a non-space character and closed before
    the next space.
    """
    if i + 1 >= len(markdown) or markdown[i + 1] == " ":
        return -1
    close = markdown.find(markdown[i], i + 1)
    if close == -1:
        return -1
    next_space = markdown.find(" ", i + 1)
    if next_space != -1 and close > next_space:
        return -1
    return close


def collapse_whitespace(text: str, index_map=None) -> tuple[str, tuple[int, ...]]:
    """Collapse each whitespace run to one space.

    When ``index_map`` is given, the returned map keeps the source index of
    the first character of every collapsed run.
    """
    if index_map is None:
        index_map = range(len(text))
    chars: list[str] = []
    positions: list[int] = []
    in_run = False
    for ch, pos in zip(text, index_map):
        if ch.isspace():
            if in_run:
                continue
            in_run = True
            ch = " "
        else:
            in_run = False
        chars.append(ch)
        positions.append(pos)
    return "".join(chars), tuple(positions)


def normalize_selection(text: str) -> str:
    """Trim and collapse whitespace the way browser selections are reported."""
    collapsed, _ = collapse_whitespace(text or "")
    return collapsed.strip()


def compute_offsets(block_content: str, rendered_selection: str) -> tuple[int, int]:
    """Locate ``rendered_selection`` in ``block_content``.

    Returns ``(start, end)`` source offsets with
    ``0 <= start <= end <= len(block_content)``.
    """
    content = block_content or ""
    selection = rendered_selection or ""
    if not selection:
        return 0, 0

    pmap = build_position_map(content)
    span = _find_in_stripped(pmap, selection)
    if span is not None:
        return span

    logger.debug("Selection not found in stripped content, using fallback lookup")
    return _fallback_offsets(content, selection)


def _find_in_stripped(pmap: PositionMap, selection: str) -> tuple[int, int] | None:
    start = pmap.stripped.find(selection)
    if start != -1:
        return _to_source(pmap.index_map, start, start + len(selection))

    normalized, normalized_map = collapse_whitespace(pmap.stripped, pmap.index_map)
    target, _ = collapse_whitespace(selection)
    if not target:
        return None
    start = normalized.find(target)
    if start != -1:
        return _to_source(normalized_map, start, start + len(target))
    return None


def _to_source(index_map, start: int, end: int) -> tuple[int, int]:
    # End sits just past the last matched character, so markers closing the
    # selection stay outside the span.
    return index_map[start], index_map[end - 1] + 1


def _fallback_offsets(content: str, selection: str) -> tuple[int, int]:
    start = content.find(selection)
    if start == -1:
        words = selection.split()
        first_word = words[0] if words else ""
        start = content.find(first_word) if first_word else -1
        if start == -1:
            start = 0
    end = min(start + len(selection), len(content))
    return start, max(start, end)
