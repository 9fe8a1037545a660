"""
DuckDB conversation store.

Ideal for local analytics deployments where conversation exports are
loaded into a single DuckDB file. DuckDB is synchronous, so every call runs
in a worker thread on its own cursor.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

import duckdb

from ..exceptions import StoreConnectionError, StoreUnavailableError
from ..utils import to_iso
from .base import (
    Agent,
    AIAnalysis,
    Classification,
    ConversationStore,
    Customer,
    Message,
    MessageQuery,
    Session,
)
from .records import (
    AGENT_COLUMNS,
    ANALYSIS_COLUMNS,
    CLASSIFICATION_COLUMNS,
    CUSTOMER_COLUMNS,
    MESSAGE_COLUMNS,
    SESSION_COLUMNS,
    agent_from_row,
    analysis_from_row,
    analysis_params,
    chunked,
    classification_from_row,
    classification_params,
    customer_from_row,
    hydrate,
    hydrate_by,
    message_from_row,
    message_params,
    placeholders,
    read_marker_from_row,
    select_list,
    session_from_row,
    session_params,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SCHEMA_STATEMENTS = (
    "CREATE SEQUENCE IF NOT EXISTS message_sequence START 1",
    """
    CREATE TABLE IF NOT EXISTS sessions (
        id VARCHAR NOT NULL PRIMARY KEY,
        customer_id VARCHAR NOT NULL,
        agent_id VARCHAR,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        is_resolved BOOLEAN NOT NULL DEFAULT FALSE,
        started_at VARCHAR NOT NULL,
        last_activity_at VARCHAR NOT NULL,
        ended_at VARCHAR,
        channel VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS customers (
        id VARCHAR NOT NULL PRIMARY KEY,
        name VARCHAR NOT NULL,
        phone VARCHAR,
        email VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS agents (
        id VARCHAR NOT NULL PRIMARY KEY,
        name VARCHAR NOT NULL,
        department VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        sequence BIGINT NOT NULL DEFAULT nextval('message_sequence'),
        id VARCHAR NOT NULL PRIMARY KEY,
        session_id VARCHAR NOT NULL,
        sender_type VARCHAR NOT NULL,
        sender_id VARCHAR,
        sender_name VARCHAR,
        message_type VARCHAR NOT NULL DEFAULT 'text',
        text VARCHAR,
        media_url VARCHAR,
        media_type VARCHAR,
        created_at VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS classifications (
        session_id VARCHAR NOT NULL PRIMARY KEY,
        intent VARCHAR,
        category VARCHAR,
        priority VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ai_analyses (
        session_id VARCHAR NOT NULL PRIMARY KEY,
        overall_sentiment VARCHAR,
        confidence DOUBLE,
        emotion_detected VARCHAR,
        topics_json VARCHAR,
        summary VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS read_markers (
        viewer_id VARCHAR NOT NULL,
        session_id VARCHAR NOT NULL,
        last_read_at VARCHAR NOT NULL,
        PRIMARY KEY (viewer_id, session_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_messages_session_time ON messages (session_id, created_at)",
)


@dataclass
class DuckDBConfig:
    """Configuration for DuckDB storage."""

    db_path: str | Path = ":memory:"

    @classmethod
    def from_env(cls) -> DuckDBConfig:
        """Create config from environment variables."""
        return cls(db_path=os.environ.get("INSIGHTS_DUCKDB_PATH", ":memory:"))


def _rows_as_dicts(cursor: Any) -> list[dict[str, Any]]:
    names = [column[0] for column in cursor.description]
    return [dict(zip(names, row)) for row in cursor.fetchall()]


class DuckDBStore(ConversationStore):
    """
    DuckDB conversation store.

    Features:
    - Local file or in-memory database
    - Full SQL analytics over the same tables
    - Query matching with lower()/contains(), Unicode-aware on both sides.
      lower() maps one code point at a time, so unlike the SQLite matcher it
      does not treat case-fold variants such as "ſ" and "s" as equal.
    """

    def __init__(self, config: DuckDBConfig):
        self.config = config
        self.conn: Any = None  # DuckDB connection (using Any due to type stub limitations)
        self._initialized = False

    @classmethod
    async def create(cls, config: DuckDBConfig | None = None) -> DuckDBStore:
        """Create and initialize a DuckDB store."""
        if config is None:
            config = DuckDBConfig.from_env()

        store = cls(config)
        await store.initialize()
        return store

    async def initialize(self) -> None:
        if self._initialized:
            return

        def _init() -> None:
            self.conn = duckdb.connect(str(self.config.db_path))
            for statement in _SCHEMA_STATEMENTS:
                self.conn.execute(statement)

        try:
            await asyncio.to_thread(_init)
            self._initialized = True
            logger.info(f"DuckDB store initialized: {self.config.db_path}")
        except Exception as e:
            raise StoreConnectionError(str(self.config.db_path), e) from e

    async def close(self) -> None:
        if self.conn:
            await asyncio.to_thread(self.conn.close)
            self.conn = None
        self._initialized = False

    # =========================================================================
    # Query Helpers
    # =========================================================================

    async def _run(
        self,
        operation: str,
        work: Callable[[Any], T],
        session_id: str | None = None,
    ) -> T:
        """Run ``work(cursor)`` in a worker thread, wrapping engine failures."""

        def _call() -> T:
            if self.conn is None:
                raise StoreUnavailableError(operation, session_id, RuntimeError("Not initialized"))
            cursor = self.conn.cursor()
            try:
                return work(cursor)
            finally:
                cursor.close()

        try:
            return await asyncio.to_thread(_call)
        except duckdb.Error as e:
            raise StoreUnavailableError(operation, session_id, e) from e

    async def _fetchall(
        self,
        operation: str,
        sql: str,
        params: list[Any],
        session_id: str | None = None,
    ) -> list[dict[str, Any]]:
        def _work(cursor: Any) -> list[dict[str, Any]]:
            cursor.execute(sql, params)
            return _rows_as_dicts(cursor)

        return await self._run(operation, _work, session_id)

    async def _fetch_by_ids(
        self,
        operation: str,
        table: str,
        columns: tuple[str, ...],
        key: str,
        ids: list[str],
        extra_where: str = "",
        extra_params: tuple[Any, ...] = (),
    ) -> list[dict[str, Any]]:
        batches = list(chunked(ids))
        if not batches:
            return []

        def _work(cursor: Any) -> list[dict[str, Any]]:
            rows: list[dict[str, Any]] = []
            for batch in batches:
                cursor.execute(
                    f"SELECT {select_list(columns)} FROM {table} "
                    f"WHERE {key} IN ({placeholders(len(batch))}){extra_where}",
                    [*batch, *extra_params],
                )
                rows.extend(_rows_as_dicts(cursor))
            return rows

        return await self._run(operation, _work)

    async def _write(self, operation: str, sql: str, params_list: list[tuple[Any, ...]]) -> None:
        def _work(cursor: Any) -> None:
            cursor.begin()
            try:
                for params in params_list:
                    cursor.execute(sql, list(params))
            except duckdb.Error:
                cursor.rollback()
                raise
            cursor.commit()

        await self._run(operation, _work)

    # =========================================================================
    # Session Reads
    # =========================================================================

    async def get_sessions(self, session_ids: list[str]) -> dict[str, Session]:
        rows = await self._fetch_by_ids("get_sessions", "sessions", SESSION_COLUMNS, "id", session_ids)
        return hydrate_by("get_sessions", session_from_row, rows, "id")

    async def get_customers(self, customer_ids: list[str]) -> dict[str, Customer]:
        rows = await self._fetch_by_ids(
            "get_customers", "customers", CUSTOMER_COLUMNS, "id", customer_ids
        )
        return hydrate_by("get_customers", customer_from_row, rows, "id")

    async def get_agents(self, agent_ids: list[str]) -> dict[str, Agent]:
        rows = await self._fetch_by_ids("get_agents", "agents", AGENT_COLUMNS, "id", agent_ids)
        return hydrate_by("get_agents", agent_from_row, rows, "id")

    async def get_classifications(self, session_ids: list[str]) -> dict[str, Classification]:
        rows = await self._fetch_by_ids(
            "get_classifications",
            "classifications",
            CLASSIFICATION_COLUMNS,
            "session_id",
            session_ids,
        )
        return hydrate_by("get_classifications", classification_from_row, rows, "session_id")

    async def get_ai_analyses(self, session_ids: list[str]) -> dict[str, AIAnalysis]:
        rows = await self._fetch_by_ids(
            "get_ai_analyses", "ai_analyses", ANALYSIS_COLUMNS, "session_id", session_ids
        )
        return hydrate_by("get_ai_analyses", analysis_from_row, rows, "session_id")

    async def get_read_markers(
        self,
        viewer_id: str,
        session_ids: list[str],
    ) -> dict[str, datetime]:
        rows = await self._fetch_by_ids(
            "get_read_markers",
            "read_markers",
            ("session_id", "last_read_at"),
            "session_id",
            session_ids,
            extra_where=" AND viewer_id = ?",
            extra_params=(viewer_id,),
        )
        return hydrate_by("get_read_markers", read_marker_from_row, rows, "session_id")

    # =========================================================================
    # Message Reads
    # =========================================================================

    async def get_messages(self, session_id: str) -> list[Message]:
        rows = await self._fetchall(
            "get_messages",
            f"""
            SELECT {select_list(MESSAGE_COLUMNS)}
            FROM messages
            WHERE session_id = ?
            ORDER BY created_at ASC, sequence ASC
            """,
            [session_id],
            session_id=session_id,
        )
        return hydrate("get_messages", message_from_row, rows, session_id)

    async def count_messages_after(
        self,
        session_id: str,
        after: datetime | None,
        exclude_sender_id: str | None = None,
    ) -> int:
        where_parts = ["session_id = ?"]
        params: list[Any] = [session_id]

        if after is not None:
            where_parts.append("created_at > ?")
            params.append(to_iso(after))

        if exclude_sender_id is not None:
            where_parts.append("(sender_id IS NULL OR sender_id != ?)")
            params.append(exclude_sender_id)

        rows = await self._fetchall(
            "count_messages_after",
            f"SELECT COUNT(*) AS total FROM messages WHERE {' AND '.join(where_parts)}",
            params,
            session_id=session_id,
        )
        return int(rows[0]["total"]) if rows else 0

    async def search_messages(self, query: MessageQuery) -> list[Message]:
        where_parts = ["session_id = ?", "contains(lower(text), lower(CAST(? AS VARCHAR)))"]
        params: list[Any] = [query.session_id, query.text]

        if query.sender_type is not None:
            where_parts.append("sender_type = ?")
            params.append(query.sender_type.value)

        if query.message_type is not None:
            where_parts.append("message_type = ?")
            params.append(query.message_type.value)

        if query.date_from is not None:
            where_parts.append("created_at >= ?")
            params.append(to_iso(query.date_from))

        if query.date_to is not None:
            where_parts.append("created_at <= ?")
            params.append(to_iso(query.date_to))

        direction = "DESC" if query.descending else "ASC"

        rows = await self._fetchall(
            "search_messages",
            f"""
            SELECT {select_list(MESSAGE_COLUMNS)}
            FROM messages
            WHERE {' AND '.join(where_parts)}
            ORDER BY created_at {direction}, id {direction}
            LIMIT {int(query.limit)} OFFSET {int(query.offset)}
            """,
            params,
            session_id=query.session_id,
        )
        return hydrate("search_messages", message_from_row, rows, query.session_id)

    # =========================================================================
    # Loader Operations
    # =========================================================================

    async def upsert_sessions(self, sessions: list[Session]) -> None:
        columns = SESSION_COLUMNS
        updates = ", ".join(f"{c} = excluded.{c}" for c in columns[1:])
        await self._write(
            "upsert_sessions",
            f"""
            INSERT INTO sessions ({select_list(columns)}) VALUES ({placeholders(len(columns))})
            ON CONFLICT (id) DO UPDATE SET {updates}
            """,
            [session_params(s) for s in sessions],
        )

    async def upsert_customers(self, customers: list[Customer]) -> None:
        await self._write(
            "upsert_customers",
            """
            INSERT INTO customers (id, name, phone, email) VALUES (?, ?, ?, ?)
            ON CONFLICT (id) DO UPDATE SET
                name = excluded.name, phone = excluded.phone, email = excluded.email
            """,
            [(c.id, c.name, c.phone, c.email) for c in customers],
        )

    async def upsert_agents(self, agents: list[Agent]) -> None:
        await self._write(
            "upsert_agents",
            """
            INSERT INTO agents (id, name, department) VALUES (?, ?, ?)
            ON CONFLICT (id) DO UPDATE SET name = excluded.name, department = excluded.department
            """,
            [(a.id, a.name, a.department) for a in agents],
        )

    async def add_messages(self, messages: list[Message]) -> int:
        columns = MESSAGE_COLUMNS[1:]
        insert_sql = (
            f"INSERT INTO messages ({select_list(columns)}) VALUES ({placeholders(len(columns))})"
        )

        def _work(cursor: Any) -> int:
            # Messages are immutable: a repeated id is ignored, not updated
            ids = [m.id for m in messages]
            existing: set[str] = set()
            for batch in chunked(ids):
                cursor.execute(
                    f"SELECT id FROM messages WHERE id IN ({placeholders(len(batch))})", batch
                )
                existing.update(row[0] for row in cursor.fetchall())

            added = 0
            for message in messages:
                if message.id in existing:
                    continue
                cursor.execute(insert_sql, list(message_params(message)))
                existing.add(message.id)
                added += 1
            return added

        return await self._run("add_messages", _work)

    async def set_classification(self, session_id: str, classification: Classification) -> None:
        await self._write(
            "set_classification",
            """
            INSERT OR REPLACE INTO classifications (session_id, intent, category, priority)
            VALUES (?, ?, ?, ?)
            """,
            [classification_params(session_id, classification)],
        )

    async def set_ai_analysis(self, session_id: str, analysis: AIAnalysis) -> None:
        await self._write(
            "set_ai_analysis",
            f"""
            INSERT OR REPLACE INTO ai_analyses ({select_list(ANALYSIS_COLUMNS)})
            VALUES ({placeholders(len(ANALYSIS_COLUMNS))})
            """,
            [analysis_params(session_id, analysis)],
        )

    async def set_read_marker(self, viewer_id: str, session_id: str, last_read_at: datetime) -> None:
        await self._write(
            "set_read_marker",
            """
            INSERT OR REPLACE INTO read_markers (viewer_id, session_id, last_read_at)
            VALUES (?, ?, ?)
            """,
            [(viewer_id, session_id, to_iso(last_read_at))],
        )
