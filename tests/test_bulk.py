"""
Tests for bulk summary loading with per-session failure isolation.
"""

import pytest

from conversation_insights.aggregation.bulk import BulkSummaryOrchestrator, ItemFailure
from conversation_insights.exceptions import StoreUnavailableError
from conversation_insights.stores import SenderType

from .factories import make_message, make_session

FIVE = ["s-1", "s-2", "s-3", "s-4", "s-5"]


async def add_two_sessions(store):
    """Extend the seed data to five sessions."""
    await store.upsert_sessions([make_session("s-4"), make_session("s-5", customer_id="c-2")])
    await store.add_messages(
        [
            make_message("s4-m1", "s-4", SenderType.CUSTOMER, 0, "hello", "c-1"),
            make_message("s5-m1", "s-5", SenderType.CUSTOMER, 0, "hi there", "c-2"),
            make_message("s5-m2", "s-5", SenderType.BOT, 2, "How can I help?"),
        ]
    )


class TestBulkSummaryOrchestrator:
    """Tests for BulkSummaryOrchestrator.load()."""

    @pytest.mark.asyncio
    async def test_loads_every_session(self, seeded_store):
        result = await BulkSummaryOrchestrator(seeded_store).load(["s-1", "s-2", "s-3"])

        assert set(result.summaries) == {"s-1", "s-2", "s-3"}
        assert result.failures == {}
        assert result.partial is False
        assert result.summaries["s-1"].statistics.avg_response_time_seconds == 17.5
        assert result.unread_counts == {}

    @pytest.mark.asyncio
    async def test_one_failure_of_five_yields_four(self, failing_store_factory):
        store = await failing_store_factory(failing_sessions={"s-3"})
        await add_two_sessions(store)

        result = await BulkSummaryOrchestrator(store).load(FIVE)

        assert result.succeeded == 4
        assert result.failed == 1
        assert result.partial is True
        failure = result.failures["s-3"]
        assert failure.kind == "store_unavailable"
        assert failure.retryable is True
        assert "s-3" not in result.summaries

    @pytest.mark.asyncio
    async def test_missing_session_is_not_found(self, seeded_store):
        result = await BulkSummaryOrchestrator(seeded_store).load(["s-1", "ghost"])

        assert set(result.summaries) == {"s-1"}
        assert result.failures["ghost"].kind == "not_found"
        assert result.failures["ghost"].retryable is False

    @pytest.mark.asyncio
    async def test_shared_read_failure_marks_all_failed(self, failing_store_factory):
        store = await failing_store_factory(fail_operations={"get_customers"})

        result = await BulkSummaryOrchestrator(store).load(["s-1", "s-2"])

        assert result.summaries == {}
        assert set(result.failures) == {"s-1", "s-2"}
        assert all(f.kind == "store_unavailable" for f in result.failures.values())

    @pytest.mark.asyncio
    async def test_session_batch_failure_marks_all_failed(self, failing_store_factory):
        store = await failing_store_factory(fail_operations={"get_sessions"})

        result = await BulkSummaryOrchestrator(store).load(["s-1", "s-2"])

        assert result.summaries == {}
        assert result.failed == 2

    @pytest.mark.asyncio
    async def test_unreadable_rows_fail_as_unavailable(self, seeded_sqlite):
        await seeded_sqlite.conn.execute(
            "UPDATE messages SET created_at = 'garbage' WHERE session_id = 's-2'"
        )
        await seeded_sqlite.conn.commit()

        result = await BulkSummaryOrchestrator(seeded_sqlite).load(
            ["s-1", "s-2", "s-3"], viewer_id="a-2"
        )

        assert set(result.summaries) == {"s-1", "s-3"}
        assert result.failures["s-2"].kind == "store_unavailable"
        assert result.unread_counts["s-1"] == 4

    @pytest.mark.asyncio
    async def test_query_count_is_linear(self, counting_store):
        """Shared reads run once per batch; only message reads fan out."""
        await BulkSummaryOrchestrator(counting_store).load(["s-1", "s-2", "s-3"])

        calls = counting_store.calls
        assert calls.count("get_sessions") == 1
        assert calls.count("get_customers") == 1
        assert calls.count("get_agents") == 1
        assert calls.count("get_classifications") == 1
        assert calls.count("get_ai_analyses") == 1
        assert calls.count("get_messages") == 3

    @pytest.mark.asyncio
    async def test_with_viewer_loads_unread_counts(self, seeded_store):
        result = await BulkSummaryOrchestrator(seeded_store).load(["s-1", "s-2", "s-3"], viewer_id="a-1")
        assert result.unread_counts == {"s-1": 1, "s-2": 0, "s-3": 3}

    @pytest.mark.asyncio
    async def test_empty_batch(self, counting_store):
        result = await BulkSummaryOrchestrator(counting_store).load([])

        assert result.summaries == {}
        assert result.failures == {}
        assert counting_store.calls == []

    @pytest.mark.asyncio
    async def test_duplicates_loaded_once(self, counting_store):
        result = await BulkSummaryOrchestrator(counting_store).load(["s-1", "s-1"])

        assert result.requested == ["s-1"]
        assert counting_store.calls.count("get_messages") == 1

    @pytest.mark.asyncio
    async def test_concurrency_limit_of_one(self, seeded_store):
        result = await BulkSummaryOrchestrator(seeded_store, max_concurrency=1).load(
            ["s-1", "s-2", "s-3"]
        )
        assert result.succeeded == 3

    @pytest.mark.asyncio
    async def test_to_dict(self, failing_store_factory):
        store = await failing_store_factory(failing_sessions={"s-2"})

        data = (await BulkSummaryOrchestrator(store).load(["s-1", "s-2"])).to_dict()

        assert set(data["summaries"]) == {"s-1"}
        assert data["failures"]["s-2"]["kind"] == "store_unavailable"
        assert data["duration_ms"] >= 0


class TestItemFailure:
    def test_from_store_error(self):
        failure = ItemFailure.from_exception("s-1", StoreUnavailableError("get_messages", "s-1"))
        assert failure.kind == "store_unavailable"
        assert failure.retryable is True

    def test_from_other_error(self):
        failure = ItemFailure.from_exception("s-1", ValueError("bad row"))
        assert failure.kind == "error"
        assert failure.message == "bad row"
        assert failure.retryable is False
