"""
Tests for the SQLite conversation store.

Uses real SQLite (in-memory) for accurate testing.
"""

from dataclasses import replace

import pytest

from conversation_insights.exceptions import StoreConnectionError, StoreUnavailableError
from conversation_insights.stores import (
    Agent,
    AIAnalysis,
    Classification,
    Customer,
    MessageQuery,
    SenderType,
    SQLiteConfig,
    SQLiteStore,
)

from .factories import MESSAGES, SESSIONS, at, make_message, seed


class TestSQLiteInitialization:
    """Tests for SQLite store initialization."""

    @pytest.mark.asyncio
    async def test_create_with_defaults(self):
        store = await SQLiteStore.create(SQLiteConfig())
        assert store._initialized is True
        await store.close()
        assert store._initialized is False

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, sqlite_store):
        await sqlite_store.initialize()
        assert sqlite_store._initialized is True

    @pytest.mark.asyncio
    async def test_file_database(self, tmp_path):
        db_path = tmp_path / "insights.db"
        async with SQLiteStore(SQLiteConfig(db_path=db_path)) as store:
            await seed(store)

        async with SQLiteStore(SQLiteConfig(db_path=db_path)) as reopened:
            sessions = await reopened.get_sessions(["s-1"])
        assert "s-1" in sessions

    @pytest.mark.asyncio
    async def test_unreachable_path_raises_connection_error(self, tmp_path):
        config = SQLiteConfig(db_path=tmp_path / "missing" / "dir" / "insights.db")
        with pytest.raises(StoreConnectionError):
            await SQLiteStore.create(config)

    def test_config_from_env(self, monkeypatch):
        monkeypatch.setenv("INSIGHTS_SQLITE_PATH", "/tmp/inbox.db")
        assert SQLiteConfig.from_env().db_path == "/tmp/inbox.db"


class TestSQLiteReads:
    """Tests for batch reads."""

    @pytest.mark.asyncio
    async def test_batch_reads_omit_unknown_ids(self, seeded_sqlite):
        sessions = await seeded_sqlite.get_sessions(["s-1", "s-2", "ghost"])
        assert set(sessions) == {"s-1", "s-2"}
        assert sessions["s-1"] == SESSIONS[0]

    @pytest.mark.asyncio
    async def test_empty_id_lists(self, seeded_sqlite):
        assert await seeded_sqlite.get_sessions([]) == {}
        assert await seeded_sqlite.get_agents([]) == {}

    @pytest.mark.asyncio
    async def test_messages_in_chronological_order(self, seeded_sqlite):
        messages = await seeded_sqlite.get_messages("s-1")

        assert [m.id for m in messages] == ["s1-m1", "s1-m2", "s1-m3", "s1-m4"]
        assert messages[0].created_at == MESSAGES[0].created_at
        assert messages[3].sender_type == SenderType.BOT

    @pytest.mark.asyncio
    async def test_equal_timestamps_keep_insertion_order(self, sqlite_store):
        await sqlite_store.add_messages(
            [
                make_message("zz", "s-9", SenderType.CUSTOMER, 0, "first"),
                make_message("aa", "s-9", SenderType.AGENT, 0, "second"),
            ]
        )
        messages = await sqlite_store.get_messages("s-9")
        assert [m.id for m in messages] == ["zz", "aa"]
        assert messages[0].sequence < messages[1].sequence

    @pytest.mark.asyncio
    async def test_read_markers_are_per_viewer(self, seeded_sqlite):
        assert await seeded_sqlite.get_read_markers("a-1", ["s-1", "s-3"]) == {"s-1": at(60)}
        assert await seeded_sqlite.get_read_markers("a-2", ["s-1"]) == {}

    @pytest.mark.asyncio
    async def test_count_messages_after(self, seeded_sqlite):
        assert await seeded_sqlite.count_messages_after("s-1", None) == 4
        assert await seeded_sqlite.count_messages_after("s-1", at(30)) == 2
        assert await seeded_sqlite.count_messages_after("s-1", None, exclude_sender_id="c-1") == 2
        assert await seeded_sqlite.count_messages_after("ghost", None) == 0

    @pytest.mark.asyncio
    async def test_search_uses_literal_matcher(self, seeded_sqlite):
        results = await seeded_sqlite.search_messages(MessageQuery(session_id="s-3", text="(COPY)"))
        assert [m.id for m in results] == ["s3-m1"]


class TestSQLiteLoaders:
    """Tests for the loader operations."""

    @pytest.mark.asyncio
    async def test_add_messages_ignores_repeated_ids(self, seeded_sqlite):
        added = await seeded_sqlite.add_messages(
            [MESSAGES[0], make_message("s1-m5", "s-1", SenderType.AGENT, 70, "Refund issued", "a-1")]
        )

        assert added == 1
        assert len(await seeded_sqlite.get_messages("s-1")) == 5

    @pytest.mark.asyncio
    async def test_upsert_updates_session(self, seeded_sqlite):
        session = SESSIONS[0]
        updated = replace(session, is_resolved=True, is_active=False)

        await seeded_sqlite.upsert_sessions([updated])

        stored = (await seeded_sqlite.get_sessions(["s-1"]))["s-1"]
        assert stored.is_resolved is True
        assert stored.is_active is False

    @pytest.mark.asyncio
    async def test_classification_without_priority(self, sqlite_store):
        await sqlite_store.set_classification("s-1", Classification(intent="greeting"))

        stored = (await sqlite_store.get_classifications(["s-1"]))["s-1"]
        assert stored.intent == "greeting"
        assert stored.priority is None

    @pytest.mark.asyncio
    async def test_analysis_without_sentiment(self, sqlite_store):
        await sqlite_store.set_ai_analysis("s-1", AIAnalysis(topics_discussed=["shipping"]))

        stored = (await sqlite_store.get_ai_analyses(["s-1"]))["s-1"]
        assert stored.sentiment_analysis is None
        assert stored.topics_discussed == ["shipping"]

    @pytest.mark.asyncio
    async def test_read_marker_replaced(self, seeded_sqlite):
        await seeded_sqlite.set_read_marker("a-1", "s-1", at(120))
        assert await seeded_sqlite.get_read_markers("a-1", ["s-1"]) == {"s-1": at(120)}


class TestSQLiteFailures:
    @pytest.mark.asyncio
    async def test_reads_after_close_are_unavailable(self):
        store = await SQLiteStore.create(SQLiteConfig())
        await store.close()

        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.get_messages("s-1")
        assert exc_info.value.details["operation"] == "get_messages"
        assert exc_info.value.session_id == "s-1"

    @pytest.mark.asyncio
    async def test_engine_errors_are_wrapped(self, seeded_sqlite):
        await seeded_sqlite.conn.execute("DROP TABLE messages")

        with pytest.raises(StoreUnavailableError):
            await seeded_sqlite.count_messages_after("s-1", None)

    @pytest.mark.asyncio
    async def test_failed_batch_write_leaves_nothing_behind(self, sqlite_store):
        with pytest.raises(StoreUnavailableError):
            await sqlite_store.upsert_customers([Customer("ok", "Ayu"), Customer("bad", name=None)])

        # A later successful write commits only its own rows
        await sqlite_store.upsert_agents([Agent("a-9", "Rina")])

        assert await sqlite_store.get_customers(["ok", "bad"]) == {}
        assert set(await sqlite_store.get_agents(["a-9"])) == {"a-9"}

    @pytest.mark.asyncio
    async def test_corrupt_rows_are_unavailable(self, seeded_sqlite):
        await seeded_sqlite.conn.execute(
            "UPDATE messages SET created_at = 'not a time' WHERE id = 's1-m1'"
        )
        await seeded_sqlite.conn.execute("UPDATE sessions SET started_at = '' WHERE id = 's-2'")
        await seeded_sqlite.conn.commit()

        with pytest.raises(StoreUnavailableError) as exc_info:
            await seeded_sqlite.get_messages("s-1")
        assert exc_info.value.session_id == "s-1"
        assert exc_info.value.details["operation"] == "get_messages"

        with pytest.raises(StoreUnavailableError):
            await seeded_sqlite.get_sessions(["s-1", "s-2"])
