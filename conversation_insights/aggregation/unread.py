"""
Per-viewer unread message counts.

A message is unread for a viewer when it was created after the viewer's
last-read marker for the session (every message when there is no marker)
and the viewer did not send it.

Unknown session ids map to 0. A store failure for one session degrades
that session's count to 0 and the batch continues.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..exceptions import InsightsError
from ..logging_utils import InsightsLoggerAdapter
from ..stores.base import ConversationStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 16


class UnreadCounter:
    """Counts unread messages for a viewer across sessions."""

    def __init__(self, store: ConversationStore, max_concurrency: int = DEFAULT_MAX_CONCURRENCY):
        self.store = store
        self.max_concurrency = max(1, max_concurrency)

    async def count(self, session_ids: list[str], viewer_id: str) -> dict[str, int]:
        """
        Count unread messages per session.

        Args:
            session_ids: Sessions to count (duplicates are counted once)
            viewer_id: The acting agent or operator

        Returns:
            Mapping of every requested session id to a count >= 0
        """
        ids = list(dict.fromkeys(session_ids))
        if not ids:
            return {}

        log = InsightsLoggerAdapter(logger, {"viewer_id": viewer_id, "batch_size": len(ids)})

        try:
            markers = await self.store.get_read_markers(viewer_id, ids)
        except InsightsError as e:
            log.warning("Read markers unavailable, reporting zero unread: %s", e)
            return {session_id: 0 for session_id in ids}

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _count_one(session_id: str, marker: datetime | None) -> int:
            async with semaphore:
                try:
                    return await self.store.count_messages_after(
                        session_id, marker, exclude_sender_id=viewer_id
                    )
                except InsightsError as e:
                    log.bind(session_id=session_id).warning(
                        "Unread count failed for session %s, reporting zero: %s", session_id, e
                    )
                    return 0

        counts = await asyncio.gather(*(_count_one(sid, markers.get(sid)) for sid in ids))
        return dict(zip(ids, counts))
