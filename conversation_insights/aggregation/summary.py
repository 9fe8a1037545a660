"""
Session summary aggregation.

Combines session, customer, agent, message, classification and AI analysis
records into one ConversationSummary. Absent classification or analysis
stays None here; display defaults are applied by ``render_summary``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from ..exceptions import SessionNotFoundError
from ..stores.base import (
    Agent,
    AIAnalysis,
    Classification,
    ConversationStore,
    Customer,
    Message,
    SenderType,
    Session,
)
from .statistics import ConversationStatistics, compute_statistics

logger = logging.getLogger(__name__)


@dataclass
class CustomerProfile:
    id: str
    name: str | None
    phone: str | None
    email: str | None
    total_messages: int


@dataclass
class AgentProfile:
    id: str
    name: str | None
    department: str | None
    total_messages: int


@dataclass
class Timeline:
    started_at: datetime
    last_activity_at: datetime
    ended_at: datetime | None


@dataclass
class ConversationSummary:
    """Presentation-ready aggregate of one session. Computed, never stored."""

    session_id: str
    is_active: bool
    is_resolved: bool
    channel: str | None
    customer: CustomerProfile
    agent: AgentProfile | None
    statistics: ConversationStatistics
    classification: Classification | None
    ai_analysis: AIAnalysis | None
    timeline: Timeline

    def to_dict(self) -> dict[str, Any]:
        """Serialize without applying display defaults (absent stays None)."""
        classification = None
        if self.classification is not None:
            classification = {
                "intent": self.classification.intent,
                "category": self.classification.category,
                "priority": self.classification.priority.value
                if self.classification.priority
                else None,
            }

        ai_analysis = None
        if self.ai_analysis is not None:
            sentiment = self.ai_analysis.sentiment_analysis
            ai_analysis = {
                "sentiment_analysis": {
                    "overall_sentiment": sentiment.overall_sentiment.value,
                    "confidence": sentiment.confidence,
                    "emotion_detected": sentiment.emotion_detected,
                }
                if sentiment
                else None,
                "topics_discussed": list(self.ai_analysis.topics_discussed),
                "summary": self.ai_analysis.summary,
            }

        return {
            "session_id": self.session_id,
            "is_active": self.is_active,
            "is_resolved": self.is_resolved,
            "channel": self.channel,
            "customer": asdict(self.customer),
            "agent": asdict(self.agent) if self.agent else None,
            "statistics": self.statistics.to_dict(),
            "classification": classification,
            "ai_analysis": ai_analysis,
            "timeline": {
                "started_at": self.timeline.started_at.isoformat(),
                "last_activity_at": self.timeline.last_activity_at.isoformat(),
                "ended_at": self.timeline.ended_at.isoformat() if self.timeline.ended_at else None,
            },
        }


def build_summary(
    session: Session,
    messages: list[Message],
    customer: Customer | None = None,
    agent: Agent | None = None,
    classification: Classification | None = None,
    ai_analysis: AIAnalysis | None = None,
) -> ConversationSummary:
    """
    Compose a summary from already loaded records.

    Party message totals are counted from ``messages``: the customer owns
    every customer message, the agent owns agent messages carrying its id.
    A customer or agent record that is missing keeps its id with no name.
    """
    customer_total = sum(1 for m in messages if m.sender_type == SenderType.CUSTOMER)

    customer_profile = CustomerProfile(
        id=session.customer_id,
        name=customer.name if customer else None,
        phone=customer.phone if customer else None,
        email=customer.email if customer else None,
        total_messages=customer_total,
    )

    agent_profile = None
    if session.agent_id is not None:
        agent_profile = AgentProfile(
            id=session.agent_id,
            name=agent.name if agent else None,
            department=agent.department if agent else None,
            total_messages=sum(
                1
                for m in messages
                if m.sender_type == SenderType.AGENT and m.sender_id == session.agent_id
            ),
        )

    return ConversationSummary(
        session_id=session.id,
        is_active=session.is_active,
        is_resolved=session.is_resolved,
        channel=session.channel,
        customer=customer_profile,
        agent=agent_profile,
        statistics=compute_statistics(session, messages),
        classification=classification,
        ai_analysis=ai_analysis,
        timeline=Timeline(
            started_at=session.started_at,
            last_activity_at=session.last_activity_at,
            ended_at=session.ended_at,
        ),
    )


class SessionSummaryAggregator:
    """Builds the summary of a single session.

    Usage:
        aggregator = SessionSummaryAggregator(store)
        summary = await aggregator.summarize("session-1")
    """

    def __init__(self, store: ConversationStore):
        self.store = store

    async def summarize(self, session_id: str) -> ConversationSummary:
        """
        Load and aggregate one session.

        Raises:
            SessionNotFoundError: The session does not exist
            StoreUnavailableError: A store read failed; retrying may succeed
        """
        sessions = await self.store.get_sessions([session_id])
        session = sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        agent_ids = [session.agent_id] if session.agent_id else []
        messages, customers, agents, classifications, analyses = await asyncio.gather(
            self.store.get_messages(session_id),
            self.store.get_customers([session.customer_id]),
            self.store.get_agents(agent_ids),
            self.store.get_classifications([session_id]),
            self.store.get_ai_analyses([session_id]),
        )

        return build_summary(
            session,
            messages,
            customer=customers.get(session.customer_id),
            agent=agents.get(session.agent_id) if session.agent_id else None,
            classification=classifications.get(session_id),
            ai_analysis=analyses.get(session_id),
        )
