"""
Column definitions and row hydration shared by the SQL stores.

Both stores keep timestamps as UTC ISO strings and return rows as plain
mappings keyed by column name, so one set of converters serves both.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator, Mapping
from datetime import datetime
from typing import Any, TypeVar

from ..exceptions import StoreUnavailableError
from ..utils import parse_iso, to_iso
from .base import (
    Agent,
    AIAnalysis,
    Classification,
    Customer,
    Message,
    MessageType,
    Priority,
    Sentiment,
    SentimentAnalysis,
    SenderType,
    Session,
)

# =============================================================================
# Column Definitions
# =============================================================================

SESSION_COLUMNS = (
    "id",
    "customer_id",
    "agent_id",
    "is_active",
    "is_resolved",
    "started_at",
    "last_activity_at",
    "ended_at",
    "channel",
)

CUSTOMER_COLUMNS = ("id", "name", "phone", "email")

AGENT_COLUMNS = ("id", "name", "department")

MESSAGE_COLUMNS = (
    "sequence",
    "id",
    "session_id",
    "sender_type",
    "sender_id",
    "sender_name",
    "message_type",
    "text",
    "media_url",
    "media_type",
    "created_at",
)

CLASSIFICATION_COLUMNS = ("session_id", "intent", "category", "priority")

ANALYSIS_COLUMNS = (
    "session_id",
    "overall_sentiment",
    "confidence",
    "emotion_detected",
    "topics_json",
    "summary",
)

# Keeps IN (...) lists well below engine parameter limits
BATCH_SIZE = 500


def select_list(columns: tuple[str, ...]) -> str:
    return ", ".join(columns)


def placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


def chunked(ids: list[str], size: int = BATCH_SIZE) -> Iterator[list[str]]:
    """Yield unique ids in slices of at most ``size``."""
    unique = list(dict.fromkeys(ids))
    for start in range(0, len(unique), size):
        yield unique[start : start + size]


# =============================================================================
# Row -> Record
# =============================================================================

T = TypeVar("T")


def hydrate(
    operation: str,
    convert: Callable[[Mapping[str, Any]], T],
    rows: list[dict[str, Any]],
    session_id: str | None = None,
) -> list[T]:
    """Convert fetched rows; a row that cannot be read fails the whole operation."""
    try:
        return [convert(row) for row in rows]
    except (KeyError, TypeError, ValueError) as e:
        raise StoreUnavailableError(operation, session_id, e) from e


def hydrate_by(
    operation: str,
    convert: Callable[[Mapping[str, Any]], T],
    rows: list[dict[str, Any]],
    key: str,
) -> dict[str, T]:
    """Like hydrate, keyed by the ``key`` column."""
    return dict(zip((row[key] for row in rows), hydrate(operation, convert, rows)))



def session_from_row(row: Mapping[str, Any]) -> Session:
    return Session(
        id=row["id"],
        customer_id=row["customer_id"],
        agent_id=row["agent_id"],
        is_active=bool(row["is_active"]),
        is_resolved=bool(row["is_resolved"]),
        started_at=parse_iso(row["started_at"]),  # type: ignore[arg-type]
        last_activity_at=parse_iso(row["last_activity_at"]),  # type: ignore[arg-type]
        ended_at=parse_iso(row["ended_at"]),
        channel=row["channel"],
    )


def customer_from_row(row: Mapping[str, Any]) -> Customer:
    return Customer(id=row["id"], name=row["name"], phone=row["phone"], email=row["email"])


def agent_from_row(row: Mapping[str, Any]) -> Agent:
    return Agent(id=row["id"], name=row["name"], department=row["department"])


def read_marker_from_row(row: Mapping[str, Any]) -> datetime:
    return parse_iso(row["last_read_at"])  # type: ignore[return-value]


def message_from_row(row: Mapping[str, Any]) -> Message:
    return Message(
        id=row["id"],
        session_id=row["session_id"],
        sender_type=SenderType(row["sender_type"]),
        text=row["text"] or "",
        created_at=parse_iso(row["created_at"]),  # type: ignore[arg-type]
        message_type=MessageType(row["message_type"]),
        sender_id=row["sender_id"],
        sender_name=row["sender_name"],
        media_url=row["media_url"],
        media_type=row["media_type"],
        sequence=int(row["sequence"]),
    )


def classification_from_row(row: Mapping[str, Any]) -> Classification:
    priority = row["priority"]
    return Classification(
        intent=row["intent"],
        category=row["category"],
        priority=Priority(priority) if priority else None,
    )


def analysis_from_row(row: Mapping[str, Any]) -> AIAnalysis:
    sentiment = None
    if row["overall_sentiment"]:
        sentiment = SentimentAnalysis(
            overall_sentiment=Sentiment(row["overall_sentiment"]),
            confidence=float(row["confidence"] or 0.0),
            emotion_detected=row["emotion_detected"],
        )
    topics = json.loads(row["topics_json"]) if row["topics_json"] else []
    return AIAnalysis(sentiment_analysis=sentiment, topics_discussed=topics, summary=row["summary"])


# =============================================================================
# Record -> Row parameters
# =============================================================================


def session_params(session: Session) -> tuple[Any, ...]:
    return (
        session.id,
        session.customer_id,
        session.agent_id,
        session.is_active,
        session.is_resolved,
        to_iso(session.started_at),
        to_iso(session.last_activity_at),
        to_iso(session.ended_at),
        session.channel,
    )


def message_params(message: Message) -> tuple[Any, ...]:
    """Parameters for MESSAGE_COLUMNS minus the store-assigned sequence."""
    return (
        message.id,
        message.session_id,
        SenderType(message.sender_type).value,
        message.sender_id,
        message.sender_name,
        MessageType(message.message_type).value,
        message.text,
        message.media_url,
        message.media_type,
        to_iso(message.created_at),
    )


def analysis_params(session_id: str, analysis: AIAnalysis) -> tuple[Any, ...]:
    sentiment = analysis.sentiment_analysis
    return (
        session_id,
        Sentiment(sentiment.overall_sentiment).value if sentiment else None,
        sentiment.confidence if sentiment else None,
        sentiment.emotion_detected if sentiment else None,
        json.dumps(list(analysis.topics_discussed)),
        analysis.summary,
    )


def classification_params(session_id: str, classification: Classification) -> tuple[Any, ...]:
    priority = classification.priority
    return (
        session_id,
        classification.intent,
        classification.category,
        Priority(priority).value if priority else None,
    )
