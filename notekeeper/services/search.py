"""
Search Engine.

Pure functions over (text, query): match test, snippet extraction and
highlight span computation.

Matching is a case-insensitive literal substring test. The query is used
exactly as typed (whitespace included) and all offsets are character
offsets into the text the caller passed in. Result ordering is never
decided here.

Usage:
    from notekeeper.services.search import find_spans, matches, snippet

    if matches(note.content, query):
        text = snippet(note.content, query, max_length=200)
        spans = find_spans(text, query)
"""

import re
from functools import lru_cache

from notekeeper.schemas.note import HighlightSpan

ELLIPSIS = "..."


@lru_cache(maxsize=128)
def _pattern(query: str) -> re.Pattern[str]:
    return re.compile(re.escape(query), re.IGNORECASE)


def matches(text: str, query: str) -> bool:
    """Return True if `query` occurs in `text`, ignoring case. Empty query matches everything."""
    if not query:
        return True
    return _pattern(query).search(text) is not None


def find_spans(text: str, query: str) -> list[HighlightSpan]:
    """
    Locate every occurrence of `query` in `text` for highlighting.

    Scans left to right; each match resumes the search at its own end, so
    "an" in "banana" yields [1, 3) and [3, 5) and never an overlapping
    third range.

    Args:
        text: Text as displayed (usually a snippet)
        query: Search text; empty yields no spans

    Returns:
        Disjoint half-open ranges in ascending order
    """
    if not query:
        return []
    return [
        HighlightSpan(start=match.start(), end=match.end())
        for match in _pattern(query).finditer(text)
    ]


def leading_lines(text: str, max_length: int, count: int = 2) -> str:
    """First `count` non-empty lines of `text` joined by a space, cut to `max_length`."""
    lines = [line for line in text.splitlines() if line]
    return " ".join(lines[:count])[:max(max_length, 0)]


def snippet(text: str, query: str, max_length: int = 200) -> str:
    """
    Build the preview shown for a note in a result list.

    The text is trimmed first. Without a query, or when the query does not
    occur, the first two non-empty lines are returned. Otherwise a window
    centred on the first match is cut out: the budget left after the match
    is split evenly before and after it, and an ellipsis marks each side
    where the window stops short of the text boundary.

    Args:
        text: Full note content
        query: Search text
        max_length: Window width in characters

    Returns:
        Preview string
    """
    trimmed = text.strip()

    match = _pattern(query).search(trimmed) if query else None
    if match is None:
        return leading_lines(trimmed, max_length)

    start, end = match.span()
    buffer = max((max_length - (end - start)) // 2, 0)
    window_start = max(0, start - buffer)
    window_end = min(len(trimmed), end + buffer)

    result = trimmed[window_start:window_end]
    if window_start > 0:
        result = ELLIPSIS + result
    if window_end < len(trimmed):
        result += ELLIPSIS
    return result


def preview_title(content: str, limit: int = 40) -> str:
    """First non-empty line of `content`, cut to `limit` characters."""
    lines = [line for line in content.splitlines() if line]
    first = lines[0] if lines else content
    return first[:max(limit, 0)]
