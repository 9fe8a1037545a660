"""
ConversationInsights: the entry point for dashboard callers.

Wires one ConversationStore to the unread counter, the summary aggregator,
the bulk orchestrator and the search engine, with limits taken from
InsightsConfig.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .aggregation.bulk import BulkSummaryOrchestrator, BulkSummaryResult
from .aggregation.summary import ConversationSummary, SessionSummaryAggregator
from .aggregation.unread import UnreadCounter
from .config import InsightsConfig
from .search.engine import MessageSearchEngine, SearchResponse
from .search.filters import SearchFilter
from .stores.base import ConversationStore

logger = logging.getLogger(__name__)


class ConversationInsights:
    """
    Read-side insights over a conversation store.

    Usage:
        async with await ConversationInsights.create(InsightsConfig.from_env()) as insights:
            result = await insights.get_conversation_summaries(["s-1", "s-2"])
            unread = await insights.get_unread_counts(["s-1", "s-2"], viewer_id="agent-7")
            hits = await insights.search_messages("s-1", "invoice", {"sender_type": "agent"})

    The store is owned by this object only when it was opened by ``create``.
    """

    def __init__(
        self,
        store: ConversationStore,
        config: InsightsConfig | None = None,
        owns_store: bool = False,
    ):
        self.store = store
        self.config = config or InsightsConfig()
        self._owns_store = owns_store

        self.unread = UnreadCounter(store, self.config.max_concurrency)
        self.aggregator = SessionSummaryAggregator(store)
        self.bulk = BulkSummaryOrchestrator(
            store,
            unread_counter=self.unread,
            max_concurrency=self.config.max_concurrency,
        )
        self.search = MessageSearchEngine(
            store,
            max_per_page=self.config.max_per_page,
            default_per_page=self.config.default_per_page,
        )

    @classmethod
    async def create(cls, config: InsightsConfig | None = None) -> ConversationInsights:
        """Open the configured store and build the service around it."""
        config = config or InsightsConfig()
        store = await config.open_store()
        logger.info("Conversation insights ready (backend=%s)", config.backend)
        return cls(store, config, owns_store=True)

    async def close(self) -> None:
        if self._owns_store:
            await self.store.close()

    async def __aenter__(self) -> ConversationInsights:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def get_conversation_summary(self, session_id: str) -> ConversationSummary:
        """
        Summarize one session.

        Raises:
            SessionNotFoundError: The session does not exist
            StoreUnavailableError: A store read failed
        """
        return await self.aggregator.summarize(session_id)

    async def get_conversation_summaries(
        self,
        session_ids: list[str],
        viewer_id: str | None = None,
    ) -> BulkSummaryResult:
        """Summarize many sessions; per-session problems land in ``failures``."""
        return await self.bulk.load(session_ids, viewer_id=viewer_id)

    async def get_unread_counts(self, session_ids: list[str], viewer_id: str) -> dict[str, int]:
        return await self.unread.count(session_ids, viewer_id)

    async def search_messages(
        self,
        session_id: str,
        query: str | None,
        filters: SearchFilter | Mapping[str, Any] | None = None,
    ) -> SearchResponse:
        """
        Search one session's messages.

        Raises:
            InvalidFilterError: Filters failed validation
            StoreUnavailableError: The store failed
        """
        return await self.search.search(session_id, query, filters)
