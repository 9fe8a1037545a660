"""
Literal, case-insensitive query matching and highlight spans.

The same compiled pattern decides whether a message matches (stores register
``text_matches`` as a SQL function) and where its highlight spans are, so a
hit always has at least one span.
"""

from __future__ import annotations

import re
from functools import lru_cache


def normalize_query(query: str | None) -> str:
    """Strip surrounding whitespace; a blank query normalizes to ''."""
    if query is None:
        return ""
    return query.strip()


@lru_cache(maxsize=256)
def compile_query(query: str) -> re.Pattern[str]:
    """Compile a query into a literal, case-insensitive pattern."""
    return re.compile(re.escape(query), re.IGNORECASE)


def text_matches(text: str | None, query: str | None) -> bool:
    if not text or not query:
        return False
    return compile_query(query).search(text) is not None


def highlight_spans(text: str, query: str) -> list[tuple[int, int]]:
    """
    Locate every occurrence of the query in the text.

    Args:
        text: Message text
        query: Normalized, non-blank query

    Returns:
        Non-overlapping (start, end) character offsets in ascending order
    """
    if not text or not query:
        return []
    return [match.span() for match in compile_query(query).finditer(text)]


def apply_highlights(
    text: str,
    spans: list[tuple[int, int]],
    open_tag: str = "<mark>",
    close_tag: str = "</mark>",
) -> str:
    """Wrap each span in markers, for callers that render plain markup."""
    parts: list[str] = []
    cursor = 0
    for start, end in spans:
        parts.append(text[cursor:start])
        parts.append(f"{open_tag}{text[start:end]}{close_tag}")
        cursor = end
    parts.append(text[cursor:])
    return "".join(parts)
