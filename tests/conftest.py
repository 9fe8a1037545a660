"""
Shared test configuration and fixtures.

Every seeded fixture is a real in-memory database loaded with the data set
from ``factories``, so SQLite and DuckDB are held to identical behaviour.
"""

import pytest

from conversation_insights.exceptions import StoreUnavailableError
from conversation_insights.stores import (
    ConversationStore,
    DuckDBConfig,
    DuckDBStore,
    MessageQuery,
    SQLiteConfig,
    SQLiteStore,
)

from .factories import seed


@pytest.fixture
async def sqlite_store():
    """Empty in-memory SQLite store."""
    store = await SQLiteStore.create(SQLiteConfig(db_path=":memory:"))
    yield store
    await store.close()


@pytest.fixture
async def duckdb_store():
    """Empty in-memory DuckDB store."""
    store = await DuckDBStore.create(DuckDBConfig(db_path=":memory:"))
    yield store
    await store.close()


@pytest.fixture(params=["sqlite", "duckdb"])
async def seeded_store(request):
    """Seeded store, once per backend."""
    if request.param == "duckdb":
        store: ConversationStore = await DuckDBStore.create(DuckDBConfig(db_path=":memory:"))
    else:
        store = await SQLiteStore.create(SQLiteConfig(db_path=":memory:"))
    await seed(store)
    yield store
    await store.close()


@pytest.fixture
async def seeded_sqlite(sqlite_store):
    """Seeded SQLite store, for tests that wrap or break the store."""
    return await seed(sqlite_store)


class CountingStore(SQLiteStore):
    """SQLite store that records every read call by name."""

    def __init__(self, config: SQLiteConfig | None = None):
        super().__init__(config or SQLiteConfig(db_path=":memory:"))
        self.calls: list[str] = []

    async def get_sessions(self, session_ids):
        self.calls.append("get_sessions")
        return await super().get_sessions(session_ids)

    async def get_customers(self, customer_ids):
        self.calls.append("get_customers")
        return await super().get_customers(customer_ids)

    async def get_agents(self, agent_ids):
        self.calls.append("get_agents")
        return await super().get_agents(agent_ids)

    async def get_classifications(self, session_ids):
        self.calls.append("get_classifications")
        return await super().get_classifications(session_ids)

    async def get_ai_analyses(self, session_ids):
        self.calls.append("get_ai_analyses")
        return await super().get_ai_analyses(session_ids)

    async def get_read_markers(self, viewer_id, session_ids):
        self.calls.append("get_read_markers")
        return await super().get_read_markers(viewer_id, session_ids)

    async def get_messages(self, session_id):
        self.calls.append("get_messages")
        return await super().get_messages(session_id)

    async def count_messages_after(self, session_id, after, exclude_sender_id=None):
        self.calls.append("count_messages_after")
        return await super().count_messages_after(session_id, after, exclude_sender_id)

    async def search_messages(self, query: MessageQuery):
        self.calls.append("search_messages")
        return await super().search_messages(query)


class FailingStore(CountingStore):
    """Counting store whose per-session reads fail for chosen sessions.

    ``fail_operations`` names whole batch reads that fail for every call.
    """

    def __init__(
        self,
        failing_sessions: set[str] | None = None,
        fail_operations: set[str] | None = None,
    ):
        super().__init__()
        self.failing_sessions = failing_sessions or set()
        self.fail_operations = fail_operations or set()

    def _check(self, operation: str, session_id: str | None = None) -> None:
        if operation in self.fail_operations:
            raise StoreUnavailableError(operation, session_id, RuntimeError("injected"))
        if session_id is not None and session_id in self.failing_sessions:
            raise StoreUnavailableError(operation, session_id, RuntimeError("injected"))

    async def get_sessions(self, session_ids):
        self._check("get_sessions")
        return await super().get_sessions(session_ids)

    async def get_customers(self, customer_ids):
        self._check("get_customers")
        return await super().get_customers(customer_ids)

    async def get_read_markers(self, viewer_id, session_ids):
        self._check("get_read_markers")
        return await super().get_read_markers(viewer_id, session_ids)

    async def get_messages(self, session_id):
        self._check("get_messages", session_id)
        return await super().get_messages(session_id)

    async def count_messages_after(self, session_id, after, exclude_sender_id=None):
        self._check("count_messages_after", session_id)
        return await super().count_messages_after(session_id, after, exclude_sender_id)

    async def search_messages(self, query: MessageQuery):
        self._check("search_messages", query.session_id)
        return await super().search_messages(query)


@pytest.fixture
async def counting_store():
    store = CountingStore()
    await store.initialize()
    await seed(store)
    store.calls.clear()
    yield store
    await store.close()


@pytest.fixture
async def failing_store_factory():
    """Build seeded FailingStore instances; all are closed after the test."""
    created: list[FailingStore] = []

    async def _create(
        failing_sessions: set[str] | None = None,
        fail_operations: set[str] | None = None,
    ) -> FailingStore:
        store = FailingStore(failing_sessions, fail_operations)
        await store.initialize()
        await seed(store)
        created.append(store)
        return store

    yield _create

    for store in created:
        await store.close()
