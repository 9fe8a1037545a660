"""
Bulk summary loading with per-session failure isolation.

Shared records (sessions, customers, agents, classifications, analyses) are
read once per batch; message reads fan out per session, concurrently and
bounded by a semaphore. The number of store queries grows linearly with the
batch, and a failing session is reported in ``failures`` while the rest of
the batch is still returned.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from ..exceptions import InsightsError, StoreUnavailableError
from ..logging_utils import InsightsLoggerAdapter
from ..stores.base import ConversationStore, Message
from .summary import ConversationSummary, build_summary
from .unread import DEFAULT_MAX_CONCURRENCY, UnreadCounter

logger = logging.getLogger(__name__)

FailureKind = Literal["not_found", "store_unavailable", "error"]


@dataclass
class ItemFailure:
    """Why one session of a batch has no summary."""

    session_id: str
    kind: FailureKind
    message: str
    retryable: bool = False

    @classmethod
    def from_exception(cls, session_id: str, error: Exception) -> ItemFailure:
        if isinstance(error, StoreUnavailableError):
            return cls(session_id, "store_unavailable", error.message, retryable=True)
        return cls(session_id, "error", str(error) or type(error).__name__)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "kind": self.kind,
            "message": self.message,
            "retryable": self.retryable,
        }


@dataclass
class BulkSummaryResult:
    """Result of a bulk load.

    ``unread_counts`` is only filled when a viewer was supplied.
    """

    requested: list[str]
    summaries: dict[str, ConversationSummary] = field(default_factory=dict)
    unread_counts: dict[str, int] = field(default_factory=dict)
    failures: dict[str, ItemFailure] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def succeeded(self) -> int:
        return len(self.summaries)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def partial(self) -> bool:
        """True when some, but not all, sessions failed."""
        return bool(self.failures) and bool(self.summaries)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summaries": {sid: s.to_dict() for sid, s in self.summaries.items()},
            "unread_counts": dict(self.unread_counts),
            "failures": {sid: f.to_dict() for sid, f in self.failures.items()},
            "duration_ms": self.duration_ms,
        }


class BulkSummaryOrchestrator:
    """Loads many summaries (and optionally unread counts) in one call.

    Usage:
        orchestrator = BulkSummaryOrchestrator(store)
        result = await orchestrator.load(["s-1", "s-2"], viewer_id="agent-7")
        for session_id, failure in result.failures.items():
            ...
    """

    def __init__(
        self,
        store: ConversationStore,
        unread_counter: UnreadCounter | None = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ):
        self.store = store
        self.max_concurrency = max(1, max_concurrency)
        self.unread_counter = unread_counter or UnreadCounter(store, self.max_concurrency)

    async def load(self, session_ids: list[str], viewer_id: str | None = None) -> BulkSummaryResult:
        """
        Load summaries for a batch of sessions.

        Args:
            session_ids: Sessions to summarize (duplicates are loaded once)
            viewer_id: When given, unread counts for this viewer are loaded too

        Returns:
            BulkSummaryResult; never raises for per-session problems
        """
        start_time = datetime.now(UTC)
        ids = list(dict.fromkeys(session_ids))
        result = BulkSummaryResult(requested=ids)
        if not ids:
            return result

        log = InsightsLoggerAdapter(logger, {"batch_size": len(ids), "viewer_id": viewer_id})

        if viewer_id is not None:
            _, unread = await asyncio.gather(
                self._load_summaries(ids, result, log),
                self.unread_counter.count(ids, viewer_id),
            )
            result.unread_counts = unread
        else:
            await self._load_summaries(ids, result, log)

        result.duration_ms = int((datetime.now(UTC) - start_time).total_seconds() * 1000)

        if result.failures:
            log.warning(
                "Bulk summary load finished with %d of %d sessions failed",
                result.failed,
                len(ids),
            )
        else:
            log.debug("Bulk summary load finished for %d sessions", len(ids))

        return result

    async def _load_summaries(
        self,
        ids: list[str],
        result: BulkSummaryResult,
        log: InsightsLoggerAdapter,
    ) -> None:
        try:
            sessions = await self.store.get_sessions(ids)
        except InsightsError as e:
            log.warning("Session batch read failed: %s", e)
            for session_id in ids:
                result.failures[session_id] = ItemFailure.from_exception(session_id, e)
            return

        found = [sid for sid in ids if sid in sessions]
        for session_id in ids:
            if session_id not in sessions:
                result.failures[session_id] = ItemFailure(
                    session_id, "not_found", f"Session not found: {session_id}"
                )
        if not found:
            return

        customer_ids = [sessions[sid].customer_id for sid in found]
        agent_ids = [sessions[sid].agent_id for sid in found if sessions[sid].agent_id]

        try:
            customers, agents, classifications, analyses = await asyncio.gather(
                self.store.get_customers(customer_ids),
                self.store.get_agents(agent_ids),
                self.store.get_classifications(found),
                self.store.get_ai_analyses(found),
            )
        except InsightsError as e:
            log.warning("Shared batch read failed: %s", e)
            for session_id in found:
                result.failures[session_id] = ItemFailure.from_exception(session_id, e)
            return

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _messages_for(session_id: str) -> list[Message] | ItemFailure:
            async with semaphore:
                try:
                    return await self.store.get_messages(session_id)
                except Exception as e:
                    log.bind(session_id=session_id).warning(
                        "Message read failed for session %s: %s", session_id, e
                    )
                    return ItemFailure.from_exception(session_id, e)

        outcomes = await asyncio.gather(*(_messages_for(sid) for sid in found))

        for session_id, outcome in zip(found, outcomes):
            if isinstance(outcome, ItemFailure):
                result.failures[session_id] = outcome
                continue
            session = sessions[session_id]
            result.summaries[session_id] = build_summary(
                session,
                outcome,
                customer=customers.get(session.customer_id),
                agent=agents.get(session.agent_id) if session.agent_id else None,
                classification=classifications.get(session_id),
                ai_analysis=analyses.get(session_id),
            )
