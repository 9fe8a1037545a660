"""
Derived conversation statistics.

Everything here is computed from the session's Message records on every
call; no counter is ever stored, so counts cannot drift from the messages.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import numpy as np

from ..stores.base import Message, SenderType, Session


@dataclass
class ConversationStatistics:
    """Statistics derived from one session's messages.

    Response-time fields are None when the session has no customer message
    answered by an agent or bot; None means "no data", never "instant".
    """

    total_messages: int
    customer_messages: int
    agent_messages: int
    bot_messages: int
    media_messages: int
    session_duration_minutes: float
    response_pairs: int
    avg_response_time_seconds: float | None
    median_response_time_seconds: float | None
    first_response_time_seconds: float | None
    first_message_at: datetime | None
    last_message_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_messages": self.total_messages,
            "customer_messages": self.customer_messages,
            "agent_messages": self.agent_messages,
            "bot_messages": self.bot_messages,
            "media_messages": self.media_messages,
            "session_duration_minutes": self.session_duration_minutes,
            "response_pairs": self.response_pairs,
            "avg_response_time_seconds": self.avg_response_time_seconds,
            "median_response_time_seconds": self.median_response_time_seconds,
            "first_response_time_seconds": self.first_response_time_seconds,
            "first_message_at": self.first_message_at.isoformat() if self.first_message_at else None,
            "last_message_at": self.last_message_at.isoformat() if self.last_message_at else None,
        }


def chronological(messages: Iterable[Message]) -> list[Message]:
    """Order messages by created_at, ties by insertion sequence."""
    return sorted(messages, key=lambda m: (m.created_at, m.sequence))


def response_times(messages: Iterable[Message]) -> list[float]:
    """
    Seconds between each customer message and the reply that immediately follows it.

    Only a customer message directly followed by an agent or bot message forms
    a pair; in a run of customer messages only the last one can be answered.
    """
    times: list[float] = []
    awaiting: Message | None = None

    for message in chronological(messages):
        if message.sender_type == SenderType.CUSTOMER:
            awaiting = message
        elif awaiting is not None:
            times.append((message.created_at - awaiting.created_at).total_seconds())
            awaiting = None

    return times


def session_duration_minutes(session: Session) -> float:
    """Minutes from start to last activity, clamped to zero."""
    seconds = (session.last_activity_at - session.started_at).total_seconds()
    return max(seconds, 0.0) / 60.0


def compute_statistics(session: Session, messages: list[Message]) -> ConversationStatistics:
    ordered = chronological(messages)
    by_sender = Counter(SenderType(m.sender_type) for m in ordered)
    times = response_times(ordered)

    avg = median = first = None
    if times:
        samples = np.asarray(times, dtype=float)
        avg = float(samples.mean())
        median = float(np.median(samples))
        first = times[0]

    return ConversationStatistics(
        total_messages=len(ordered),
        customer_messages=by_sender[SenderType.CUSTOMER],
        agent_messages=by_sender[SenderType.AGENT],
        bot_messages=by_sender[SenderType.BOT],
        media_messages=sum(1 for m in ordered if m.has_media),
        session_duration_minutes=session_duration_minutes(session),
        response_pairs=len(times),
        avg_response_time_seconds=avg,
        median_response_time_seconds=median,
        first_response_time_seconds=first,
        first_message_at=ordered[0].created_at if ordered else None,
        last_message_at=ordered[-1].created_at if ordered else None,
    )
