"""
SQLite conversation store.

Backed by aiosqlite. Ideal for embedded deployments and testing; an
in-memory database is the default.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from ..exceptions import StoreConnectionError, StoreUnavailableError
from ..search.highlight import text_matches
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

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT NOT NULL PRIMARY KEY,
    customer_id TEXT NOT NULL,
    agent_id TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    is_resolved INTEGER NOT NULL DEFAULT 0,
    started_at TEXT NOT NULL,
    last_activity_at TEXT NOT NULL,
    ended_at TEXT,
    channel TEXT
);

CREATE TABLE IF NOT EXISTS customers (
    id TEXT NOT NULL PRIMARY KEY,
    name TEXT NOT NULL,
    phone TEXT,
    email TEXT
);

CREATE TABLE IF NOT EXISTS agents (
    id TEXT NOT NULL PRIMARY KEY,
    name TEXT NOT NULL,
    department TEXT
);

CREATE TABLE IF NOT EXISTS messages (
    sequence INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    session_id TEXT NOT NULL,
    sender_type TEXT NOT NULL,
    sender_id TEXT,
    sender_name TEXT,
    message_type TEXT NOT NULL DEFAULT 'text',
    text TEXT,
    media_url TEXT,
    media_type TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS classifications (
    session_id TEXT NOT NULL PRIMARY KEY,
    intent TEXT,
    category TEXT,
    priority TEXT
);

CREATE TABLE IF NOT EXISTS ai_analyses (
    session_id TEXT NOT NULL PRIMARY KEY,
    overall_sentiment TEXT,
    confidence REAL,
    emotion_detected TEXT,
    topics_json TEXT,
    summary TEXT
);

CREATE TABLE IF NOT EXISTS read_markers (
    viewer_id TEXT NOT NULL,
    session_id TEXT NOT NULL,
    last_read_at TEXT NOT NULL,
    PRIMARY KEY (viewer_id, session_id)
);

CREATE INDEX IF NOT EXISTS idx_messages_session_time
    ON messages (session_id, created_at, sequence);
CREATE INDEX IF NOT EXISTS idx_messages_session_sender
    ON messages (session_id, sender_type);
"""


@dataclass
class SQLiteConfig:
    """Configuration for SQLite storage."""

    db_path: str | Path = ":memory:"

    @classmethod
    def from_env(cls) -> SQLiteConfig:
        """Create config from environment variables."""
        return cls(db_path=os.environ.get("INSIGHTS_SQLITE_PATH", ":memory:"))


class SQLiteStore(ConversationStore):
    """
    SQLite conversation store.

    Features:
    - Single file (or in-memory) database
    - Query matching through a registered SQL function, identical to the
      matcher used for highlighting
    - Batched IN (...) reads for the bulk paths
    """

    def __init__(self, config: SQLiteConfig):
        self.config = config
        self.conn: aiosqlite.Connection | None = None
        self._initialized = False

    @classmethod
    async def create(cls, config: SQLiteConfig | None = None) -> SQLiteStore:
        """Create and initialize a SQLite store."""
        if config is None:
            config = SQLiteConfig.from_env()

        store = cls(config)
        await store.initialize()
        return store

    async def initialize(self) -> None:
        if self._initialized:
            return

        try:
            self.conn = await aiosqlite.connect(str(self.config.db_path))
            self.conn.row_factory = aiosqlite.Row
            await self.conn.create_function("matches_query", 2, text_matches, deterministic=True)
            await self.conn.executescript(_SCHEMA_SQL)
            await self.conn.commit()
            self._initialized = True
            logger.info(f"SQLite store initialized: {self.config.db_path}")
        except Exception as e:
            raise StoreConnectionError(str(self.config.db_path), e) from e

    async def close(self) -> None:
        if self.conn:
            await self.conn.close()
            self.conn = None
        self._initialized = False

    # =========================================================================
    # Query Helpers
    # =========================================================================

    async def _fetchall(
        self,
        operation: str,
        sql: str,
        params: Iterable[Any] = (),
        session_id: str | None = None,
    ) -> list[dict[str, Any]]:
        if self.conn is None:
            raise StoreUnavailableError(operation, session_id, RuntimeError("Not initialized"))
        try:
            async with self.conn.execute(sql, tuple(params)) as cursor:
                rows = await cursor.fetchall()
        except (aiosqlite.Error, ValueError) as e:
            raise StoreUnavailableError(operation, session_id, e) from e
        return [dict(row) for row in rows]

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
        rows: list[dict[str, Any]] = []
        for batch in chunked(ids):
            sql = (
                f"SELECT {select_list(columns)} FROM {table} "
                f"WHERE {key} IN ({placeholders(len(batch))}){extra_where}"
            )
            rows.extend(await self._fetchall(operation, sql, (*batch, *extra_params)))
        return rows

    async def _write(self, operation: str, sql: str, params_list: list[tuple[Any, ...]]) -> int:
        if self.conn is None:
            raise StoreUnavailableError(operation, cause=RuntimeError("Not initialized"))
        written = 0
        try:
            for params in params_list:
                cursor = await self.conn.execute(sql, params)
                written += max(cursor.rowcount, 0)
                await cursor.close()
            await self.conn.commit()
        except (aiosqlite.Error, ValueError) as e:
            # Drop rows executed before the failure
            await self.conn.rollback()
            raise StoreUnavailableError(operation, cause=e) from e
        return written

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
            (session_id,),
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
        where_parts = ["session_id = ?", "matches_query(text, ?)"]
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
        params.extend([query.limit, query.offset])

        rows = await self._fetchall(
            "search_messages",
            f"""
            SELECT {select_list(MESSAGE_COLUMNS)}
            FROM messages
            WHERE {' AND '.join(where_parts)}
            ORDER BY created_at {direction}, id {direction}
            LIMIT ? OFFSET ?
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
        # Messages are immutable: a repeated id is ignored, not updated
        columns = MESSAGE_COLUMNS[1:]
        return await self._write(
            "add_messages",
            f"""
            INSERT OR IGNORE INTO messages ({select_list(columns)})
            VALUES ({placeholders(len(columns))})
            """,
            [message_params(m) for m in messages],
        )

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
