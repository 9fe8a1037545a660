"""
Conversation aggregation: statistics, summaries, unread counts, bulk loading.
"""

from .bulk import BulkSummaryOrchestrator, BulkSummaryResult, ItemFailure
from .statistics import ConversationStatistics, compute_statistics, response_times
from .summary import (
    AgentProfile,
    ConversationSummary,
    CustomerProfile,
    SessionSummaryAggregator,
    Timeline,
    build_summary,
)
from .unread import UnreadCounter

__all__ = [
    "AgentProfile",
    "BulkSummaryOrchestrator",
    "BulkSummaryResult",
    "ConversationStatistics",
    "ConversationSummary",
    "CustomerProfile",
    "ItemFailure",
    "SessionSummaryAggregator",
    "Timeline",
    "UnreadCounter",
    "build_summary",
    "compute_statistics",
    "response_times",
]
