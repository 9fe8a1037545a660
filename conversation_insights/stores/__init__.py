"""
Conversation store abstraction layer.

Provides the abstract read interface and its SQLite and DuckDB
implementations. Each store implements the same interface, so the insight
components never depend on the engine.
"""

from .base import (
    Agent,
    AIAnalysis,
    Classification,
    ConversationStore,
    Customer,
    Message,
    MessageQuery,
    MessageType,
    Priority,
    Sentiment,
    SentimentAnalysis,
    SenderType,
    Session,
)
from .duckdb import DuckDBConfig, DuckDBStore
from .sqlite import SQLiteConfig, SQLiteStore

__all__ = [
    # Core abstraction
    "ConversationStore",
    "MessageQuery",
    # Records
    "Agent",
    "AIAnalysis",
    "Classification",
    "Customer",
    "Message",
    "MessageType",
    "Priority",
    "Sentiment",
    "SentimentAnalysis",
    "SenderType",
    "Session",
    # Implementations
    "DuckDBConfig",
    "DuckDBStore",
    "SQLiteConfig",
    "SQLiteStore",
]
