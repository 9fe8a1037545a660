"""
Conversation Insights

Read-side aggregation and message search for a customer-support inbox.

Provides:
- Conversation summaries with derived statistics (message counts, duration,
  response times), single and bulk
- Per-viewer unread counts
- Filtered, paginated literal-text search with highlight spans
- SQLite and DuckDB conversation stores

Usage:

    >>> from conversation_insights import ConversationInsights, InsightsConfig
    >>> async with await ConversationInsights.create(InsightsConfig.from_env()) as insights:
    ...     result = await insights.get_conversation_summaries(["s-1", "s-2"], viewer_id="agent-7")
    ...     for session_id, summary in result.summaries.items():
    ...         print(render_summary(summary))
    ...
    ...     response = await insights.search_messages(
    ...         "s-1", "invoice", {"sender_type": "agent", "per_page": 10}
    ...     )

Store Selection:

    # SQLite for embedded applications and tests
    from conversation_insights.stores import SQLiteStore, SQLiteConfig

    # DuckDB for local analytics
    from conversation_insights.stores import DuckDBStore, DuckDBConfig
"""

# Aggregation
from .aggregation import (
    BulkSummaryOrchestrator,
    BulkSummaryResult,
    ConversationStatistics,
    ConversationSummary,
    ItemFailure,
    SessionSummaryAggregator,
    UnreadCounter,
    build_summary,
    compute_statistics,
)

# Configuration
from .config import InsightsConfig

# Exceptions
from .exceptions import (
    InsightsError,
    InvalidFilterError,
    SessionNotFoundError,
    StoreConnectionError,
    StoreUnavailableError,
)

# Logging
from .logging_utils import configure_structured_logging, get_insights_logger

# Presentation
from .presentation import format_duration, format_response_time, render_summary

# Search
from .search import (
    LatestSearchGate,
    MessageSearchEngine,
    SearchFilter,
    SearchHit,
    SearchResponse,
)

# Service
from .service import ConversationInsights

# Stores
from .stores import (
    Agent,
    AIAnalysis,
    Classification,
    ConversationStore,
    Customer,
    DuckDBConfig,
    DuckDBStore,
    Message,
    MessageType,
    Priority,
    SenderType,
    Sentiment,
    SentimentAnalysis,
    Session,
    SQLiteConfig,
    SQLiteStore,
)

__version__ = "0.1.0"

__all__ = [
    # Service
    "ConversationInsights",
    "InsightsConfig",
    # Aggregation
    "BulkSummaryOrchestrator",
    "BulkSummaryResult",
    "ConversationStatistics",
    "ConversationSummary",
    "ItemFailure",
    "SessionSummaryAggregator",
    "UnreadCounter",
    "build_summary",
    "compute_statistics",
    # Search
    "LatestSearchGate",
    "MessageSearchEngine",
    "SearchFilter",
    "SearchHit",
    "SearchResponse",
    # Presentation
    "format_duration",
    "format_response_time",
    "render_summary",
    # Stores
    "Agent",
    "AIAnalysis",
    "Classification",
    "ConversationStore",
    "Customer",
    "DuckDBConfig",
    "DuckDBStore",
    "Message",
    "MessageType",
    "Priority",
    "SenderType",
    "Sentiment",
    "SentimentAnalysis",
    "Session",
    "SQLiteConfig",
    "SQLiteStore",
    # Exceptions
    "InsightsError",
    "InvalidFilterError",
    "SessionNotFoundError",
    "StoreConnectionError",
    "StoreUnavailableError",
    # Logging
    "configure_structured_logging",
    "get_insights_logger",
]
