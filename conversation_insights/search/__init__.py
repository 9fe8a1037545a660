"""
Message search: filters, literal matching with highlight spans, and the engine.
"""

from .engine import MessageSearchEngine, SearchHit, SearchResponse
from .filters import DEFAULT_PER_PAGE, MAX_PER_PAGE, SearchFilter, parse_filter
from .highlight import apply_highlights, highlight_spans, normalize_query, text_matches
from .superseding import LatestSearchGate

__all__ = [
    "DEFAULT_PER_PAGE",
    "MAX_PER_PAGE",
    "LatestSearchGate",
    "MessageSearchEngine",
    "SearchFilter",
    "SearchHit",
    "SearchResponse",
    "apply_highlights",
    "highlight_spans",
    "normalize_query",
    "parse_filter",
    "text_matches",
]
