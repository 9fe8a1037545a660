"""
Display rendering for conversation summaries.

Summaries keep absent data as None. This is the one place where display
defaults are chosen: priority "medium", sentiment "neutral" and a response
time of "N/A" when there is nothing to average.
"""

from __future__ import annotations

from typing import Any

from .aggregation.summary import ConversationSummary
from .stores.base import Priority, Sentiment

NOT_AVAILABLE = "N/A"
DEFAULT_PRIORITY = Priority.MEDIUM.value
DEFAULT_SENTIMENT = Sentiment.NEUTRAL.value


def format_duration(minutes: float) -> str:
    """Format a duration as ``"45m"`` or ``"2h 5m"``."""
    total = int(round(max(minutes, 0.0)))
    hours, mins = divmod(total, 60)
    if hours:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def format_response_time(seconds: float | None) -> str:
    if seconds is None:
        return NOT_AVAILABLE
    if seconds < 60:
        return f"{round(seconds, 1):g}s"
    minutes, secs = divmod(int(round(seconds)), 60)
    return f"{minutes}m {secs}s"


def render_summary(summary: ConversationSummary) -> dict[str, Any]:
    """
    Render a summary for display.

    Returns:
        A flat, JSON-ready dict with every display default applied
    """
    stats = summary.statistics
    classification = summary.classification
    analysis = summary.ai_analysis
    sentiment = analysis.sentiment_analysis if analysis else None

    priority = DEFAULT_PRIORITY
    if classification is not None and classification.priority is not None:
        priority = classification.priority.value

    return {
        "session_id": summary.session_id,
        "status": "active" if summary.is_active else "closed",
        "resolved": summary.is_resolved,
        "channel": summary.channel or "",
        "customer_name": summary.customer.name or summary.customer.id,
        "customer_phone": summary.customer.phone or "",
        "agent_name": summary.agent.name if summary.agent and summary.agent.name else "",
        "total_messages": stats.total_messages,
        "customer_messages": stats.customer_messages,
        "agent_messages": stats.agent_messages,
        "bot_messages": stats.bot_messages,
        "duration": format_duration(stats.session_duration_minutes),
        "duration_minutes": round(stats.session_duration_minutes),
        "avg_response_time": format_response_time(stats.avg_response_time_seconds),
        "first_response_time": format_response_time(stats.first_response_time_seconds),
        "intent": classification.intent if classification and classification.intent else "",
        "category": classification.category if classification and classification.category else "",
        "priority": priority,
        "sentiment": sentiment.overall_sentiment.value if sentiment else DEFAULT_SENTIMENT,
        "topics": list(analysis.topics_discussed) if analysis else [],
        "ai_summary": analysis.summary if analysis and analysis.summary else "",
        "started_at": summary.timeline.started_at.isoformat(),
        "last_activity_at": summary.timeline.last_activity_at.isoformat(),
    }
