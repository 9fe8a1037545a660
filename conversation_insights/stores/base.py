"""
Record types and the abstract store interface.

All store implementations (SQLite, DuckDB) implement ConversationStore.
The insight components only ever use the read operations; the loader
operations exist for imports and test fixtures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SenderType(str, Enum):
    """Who sent a message."""

    CUSTOMER = "customer"
    AGENT = "agent"
    BOT = "bot"


class MessageType(str, Enum):
    """Kind of message content."""

    TEXT = "text"
    IMAGE = "image"
    DOCUMENT = "document"
    AUDIO = "audio"
    VIDEO = "video"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


@dataclass
class Session:
    """One customer-support conversation thread."""

    id: str
    customer_id: str
    started_at: datetime
    last_activity_at: datetime
    agent_id: str | None = None
    is_active: bool = True
    is_resolved: bool = False
    ended_at: datetime | None = None
    channel: str | None = None


@dataclass
class Customer:
    id: str
    name: str
    phone: str | None = None
    email: str | None = None


@dataclass
class Agent:
    id: str
    name: str
    department: str | None = None


@dataclass
class Message:
    """An immutable chat message.

    ``sequence`` is the insertion order assigned by the store and breaks
    ties between messages sharing a ``created_at``.
    """

    id: str
    session_id: str
    sender_type: SenderType
    text: str
    created_at: datetime
    message_type: MessageType = MessageType.TEXT
    sender_id: str | None = None
    sender_name: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    sequence: int = 0

    @property
    def has_media(self) -> bool:
        return self.media_url is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "sender": {
                "type": self.sender_type.value,
                "id": self.sender_id,
                "name": self.sender_name,
            },
            "content": {
                "text": self.text,
                "message_type": self.message_type.value,
                "media_url": self.media_url,
                "media_type": self.media_type,
            },
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class Classification:
    """Intent/category/priority tag produced by an external classifier."""

    intent: str | None = None
    category: str | None = None
    priority: Priority | None = None


@dataclass
class SentimentAnalysis:
    overall_sentiment: Sentiment
    confidence: float
    emotion_detected: str | None = None


@dataclass
class AIAnalysis:
    """Sentiment and topic analysis produced by an external pipeline."""

    sentiment_analysis: SentimentAnalysis | None = None
    topics_discussed: list[str] = field(default_factory=list)
    summary: str | None = None


@dataclass
class MessageQuery:
    """A validated, store-level message search.

    ``text`` is matched as a case-insensitive literal substring.
    ``date_from`` and ``date_to`` are inclusive bounds on ``created_at``.
    """

    session_id: str
    text: str
    sender_type: SenderType | None = None
    message_type: MessageType | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    limit: int = 20
    offset: int = 0
    descending: bool = True


class ConversationStore(ABC):
    """
    Abstract base for all conversation stores.

    Read operations are safe to call concurrently. Batch reads take a list
    of ids and return a mapping that simply omits unknown ids.

    Implementations must raise StoreUnavailableError when the underlying
    engine fails during a read.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Open connections and create schema."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close connections and release resources."""
        pass

    async def __aenter__(self) -> ConversationStore:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # =========================================================================
    # Session Reads
    # =========================================================================

    @abstractmethod
    async def get_sessions(self, session_ids: list[str]) -> dict[str, Session]:
        """Load sessions by id."""
        pass

    @abstractmethod
    async def get_customers(self, customer_ids: list[str]) -> dict[str, Customer]:
        """Load customers by id."""
        pass

    @abstractmethod
    async def get_agents(self, agent_ids: list[str]) -> dict[str, Agent]:
        """Load agents by id."""
        pass

    @abstractmethod
    async def get_classifications(self, session_ids: list[str]) -> dict[str, Classification]:
        """Load classifications attached to sessions."""
        pass

    @abstractmethod
    async def get_ai_analyses(self, session_ids: list[str]) -> dict[str, AIAnalysis]:
        """Load AI analyses attached to sessions."""
        pass

    @abstractmethod
    async def get_read_markers(
        self,
        viewer_id: str,
        session_ids: list[str],
    ) -> dict[str, datetime]:
        """Load the viewer's last-read timestamp per session."""
        pass

    # =========================================================================
    # Message Reads
    # =========================================================================

    @abstractmethod
    async def get_messages(self, session_id: str) -> list[Message]:
        """
        Load all messages of a session.

        Returns:
            Messages in chronological order (created_at, then sequence)
        """
        pass

    @abstractmethod
    async def count_messages_after(
        self,
        session_id: str,
        after: datetime | None,
        exclude_sender_id: str | None = None,
    ) -> int:
        """
        Count messages created strictly after a timestamp.

        Args:
            session_id: Session to count in
            after: Exclusive lower bound; None counts every message
            exclude_sender_id: Messages from this sender are not counted

        Returns:
            Number of matching messages (0 for unknown sessions)
        """
        pass

    @abstractmethod
    async def search_messages(self, query: MessageQuery) -> list[Message]:
        """
        Run a message search inside one session.

        Returns:
            Up to query.limit messages ordered by created_at then id,
            descending unless query.descending is False
        """
        pass

    # =========================================================================
    # Loader Operations (imports and fixtures)
    # =========================================================================

    @abstractmethod
    async def upsert_sessions(self, sessions: list[Session]) -> None:
        pass

    @abstractmethod
    async def upsert_customers(self, customers: list[Customer]) -> None:
        pass

    @abstractmethod
    async def upsert_agents(self, agents: list[Agent]) -> None:
        pass

    @abstractmethod
    async def add_messages(self, messages: list[Message]) -> int:
        """Append messages; returns the number stored. Sequence is assigned here."""
        pass

    @abstractmethod
    async def set_classification(self, session_id: str, classification: Classification) -> None:
        pass

    @abstractmethod
    async def set_ai_analysis(self, session_id: str, analysis: AIAnalysis) -> None:
        pass

    @abstractmethod
    async def set_read_marker(self, viewer_id: str, session_id: str, last_read_at: datetime) -> None:
        pass
