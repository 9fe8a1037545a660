"""
Message search over one session's history.

A blank query is "no search performed" and never reaches the store; an
empty hit list from a performed search means "no matches". Store failures
surface as StoreUnavailableError, never as an empty response.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..stores.base import ConversationStore, Message
from .filters import DEFAULT_PER_PAGE, MAX_PER_PAGE, SearchFilter, parse_filter
from .highlight import highlight_spans, normalize_query

logger = logging.getLogger(__name__)


@dataclass
class SearchHit:
    """A matching message with highlight spans into ``message.text``."""

    message: Message
    highlights: list[tuple[int, int]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = self.message.to_dict()
        data["highlights"] = [list(span) for span in self.highlights]
        return data


@dataclass
class SearchResponse:
    """Outcome of a search call.

    Attributes:
        session_id: Session that was searched
        query: Normalized query text ('' when no search was performed)
        searched: False when the query was blank and the store was not touched
        hits: Matching messages in the requested order
        per_page: Page size used
        offset: Hits skipped before this page
        has_more: Whether another page exists after this one
    """

    session_id: str
    query: str
    searched: bool
    hits: list[SearchHit] = field(default_factory=list)
    per_page: int = 0
    offset: int = 0
    has_more: bool = False

    @property
    def messages(self) -> list[Message]:
        return [hit.message for hit in self.hits]

    @property
    def next_offset(self) -> int | None:
        return self.offset + len(self.hits) if self.has_more else None

    def __len__(self) -> int:
        return len(self.hits)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "query": self.query,
            "searched": self.searched,
            "results": [hit.to_dict() for hit in self.hits],
            "per_page": self.per_page,
            "offset": self.offset,
            "has_more": self.has_more,
        }


class MessageSearchEngine:
    """Filtered, paginated, literal-substring search within a session.

    Usage:
        engine = MessageSearchEngine(store)
        response = await engine.search(session_id, "invoice", {"sender_type": "agent"})
    """

    def __init__(
        self,
        store: ConversationStore,
        max_per_page: int = MAX_PER_PAGE,
        default_per_page: int = DEFAULT_PER_PAGE,
    ):
        self.store = store
        self.max_per_page = max_per_page
        self.default_per_page = default_per_page

    async def search(
        self,
        session_id: str,
        query: str | None,
        filters: SearchFilter | Mapping[str, Any] | None = None,
    ) -> SearchResponse:
        """
        Search one session's messages.

        Args:
            session_id: Session to search in
            query: Free text, matched case-insensitively as a literal substring
            filters: SearchFilter or mapping of filter options

        Returns:
            SearchResponse; ``searched`` is False for a blank query

        Raises:
            InvalidFilterError: Filters failed validation (no store access made)
            StoreUnavailableError: The store failed; retrying may succeed
        """
        search_filter = parse_filter(filters, self.max_per_page, self.default_per_page)
        term = normalize_query(query)

        if not term:
            return SearchResponse(
                session_id=session_id,
                query="",
                searched=False,
                per_page=search_filter.per_page,
                offset=search_filter.offset,
            )

        rows = await self.store.search_messages(search_filter.to_query(session_id, term))

        has_more = len(rows) > search_filter.per_page
        hits = [
            SearchHit(message=message, highlights=highlight_spans(message.text, term))
            for message in rows[: search_filter.per_page]
        ]

        logger.debug(
            "Search in session %s returned %d hits (has_more=%s)",
            session_id,
            len(hits),
            has_more,
        )

        return SearchResponse(
            session_id=session_id,
            query=term,
            searched=True,
            hits=hits,
            per_page=search_filter.per_page,
            offset=search_filter.offset,
            has_more=has_more,
        )
