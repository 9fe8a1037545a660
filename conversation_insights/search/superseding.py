"""
Latest-request-wins wrapper for search-as-you-type callers.

A new search for a session cancels the one still in flight for that session,
and a response that finishes after being superseded is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from .engine import MessageSearchEngine, SearchResponse
from .filters import SearchFilter

logger = logging.getLogger(__name__)


class LatestSearchGate:
    """Keeps only the newest search per session.

    Args:
        engine: Engine that performs the searches
        debounce_seconds: Delay before a search starts; a search superseded
                          during the delay never reaches the store
    """

    def __init__(self, engine: MessageSearchEngine, debounce_seconds: float = 0.0):
        self.engine = engine
        self.debounce_seconds = debounce_seconds
        self._inflight: dict[str, asyncio.Task[SearchResponse]] = {}

    async def _debounced(
        self,
        session_id: str,
        query: str | None,
        filters: SearchFilter | Mapping[str, Any] | None,
    ) -> SearchResponse:
        if self.debounce_seconds > 0:
            await asyncio.sleep(self.debounce_seconds)
        return await self.engine.search(session_id, query, filters)

    async def search(
        self,
        session_id: str,
        query: str | None,
        filters: SearchFilter | Mapping[str, Any] | None = None,
    ) -> SearchResponse | None:
        """
        Search, superseding any in-flight search for the same session.

        Returns:
            The response, or None when a newer search replaced this one
        """
        previous = self._inflight.get(session_id)
        if previous is not None and not previous.done():
            previous.cancel()

        task = asyncio.create_task(self._debounced(session_id, query, filters))
        self._inflight[session_id] = task

        try:
            response = await task
        except asyncio.CancelledError:
            if self._inflight.get(session_id) is not task:
                logger.debug("Search for session %s superseded", session_id)
                return None
            raise
        finally:
            if self._inflight.get(session_id) is task:
                del self._inflight[session_id]

        if self._inflight.get(session_id, task) is not task:
            return None
        return response

    def pending(self, session_id: str) -> bool:
        task = self._inflight.get(session_id)
        return task is not None and not task.done()
