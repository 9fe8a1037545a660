"""
Search filter parsing and validation.

Filters arrive either as a SearchFilter or as a plain mapping of request
parameters (strings included). Everything is coerced and validated here,
before any store access, and invalid input raises InvalidFilterError naming
the offending field.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from datetime import date, datetime
from numbers import Number
from typing import Any

from ..exceptions import InvalidFilterError
from ..stores.base import MessageQuery, MessageType, SenderType
from ..utils import coerce_bound

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100

_SORT_DIRECTIONS = ("desc", "asc")


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce_enum(enum_cls: type, field_name: str, value: Any) -> Any:
    if _blank(value):
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidFilterError(field_name, f"must be one of: {allowed}", value) from None


def _coerce_int(field_name: str, value: Any, default: int | None) -> int | None:
    if _blank(value):
        return default
    if isinstance(value, bool):
        raise InvalidFilterError(field_name, "must be an integer", value)
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidFilterError(field_name, "must be an integer", value) from None
    # int() truncates 2.7 to 2
    if isinstance(value, Number) and number != value:
        raise InvalidFilterError(field_name, "must be an integer", value)
    return number


def _coerce_date(field_name: str, value: Any, *, end_of_day: bool) -> datetime | None:
    if _blank(value):
        return None
    if not isinstance(value, (str, date, datetime)):
        raise InvalidFilterError(field_name, "must be a date or ISO-8601 timestamp", value)
    try:
        return coerce_bound(value, end_of_day=end_of_day)
    except ValueError:
        raise InvalidFilterError(field_name, "must be a date or ISO-8601 timestamp", value) from None


@dataclass
class SearchFilter:
    """Filters for a message search.

    Attributes:
        sender_type: Only messages from this sender type.
        message_type: Only messages of this content type.
        date_from: Inclusive lower bound on created_at. A bare date means
                   the start of that day (UTC).
        date_to: Inclusive upper bound on created_at. A bare date means
                 the end of that day (UTC).
        per_page: Maximum hits per call. Unset means the engine default.
        offset: Hits to skip, for fetching later pages.
        sort_direction: "desc" (newest first) or "asc".
    """

    sender_type: SenderType | str | None = None
    message_type: MessageType | str | None = None
    date_from: datetime | date | str | None = None
    date_to: datetime | date | str | None = None
    per_page: int | None = None
    offset: int = 0
    sort_direction: str = "desc"

    def __post_init__(self) -> None:
        self.sender_type = _coerce_enum(SenderType, "sender_type", self.sender_type)
        self.message_type = _coerce_enum(MessageType, "message_type", self.message_type)
        self.date_from = _coerce_date("date_from", self.date_from, end_of_day=False)
        self.date_to = _coerce_date("date_to", self.date_to, end_of_day=True)
        self.per_page = _coerce_int("per_page", self.per_page, None)
        self.offset = _coerce_int("offset", self.offset, 0)
        direction = "desc" if _blank(self.sort_direction) else str(self.sort_direction).lower()
        if direction not in _SORT_DIRECTIONS:
            raise InvalidFilterError("sort_direction", "must be 'asc' or 'desc'", self.sort_direction)
        self.sort_direction = direction

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> SearchFilter:
        """Build a filter from request parameters; unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidFilterError(unknown[0], "unknown filter option")
        return cls(**dict(data))

    def validate(self, max_per_page: int = MAX_PER_PAGE) -> SearchFilter:
        """
        Check bounds that depend on configuration.

        Raises:
            InvalidFilterError: per_page outside 1..max_per_page, negative
                offset, or date_from later than date_to
        """
        if self.per_page is None or not 1 <= self.per_page <= max_per_page:
            raise InvalidFilterError(
                "per_page", f"must be between 1 and {max_per_page}", self.per_page
            )
        if self.offset < 0:
            raise InvalidFilterError("offset", "must not be negative", self.offset)
        if self.date_from and self.date_to and self.date_from > self.date_to:  # type: ignore[operator]
            raise InvalidFilterError("date_from", "must not be later than date_to", self.date_from)
        return self

    def to_query(self, session_id: str, text: str) -> MessageQuery:
        """Build the store query, fetching one extra row to detect a next page."""
        return MessageQuery(
            session_id=session_id,
            text=text,
            sender_type=self.sender_type,  # type: ignore[arg-type]
            message_type=self.message_type,  # type: ignore[arg-type]
            date_from=self.date_from,  # type: ignore[arg-type]
            date_to=self.date_to,  # type: ignore[arg-type]
            limit=self.per_page + 1,  # type: ignore[operator]
            offset=self.offset,
            descending=self.sort_direction == "desc",
        )


def parse_filter(
    value: SearchFilter | Mapping[str, Any] | None,
    max_per_page: int = MAX_PER_PAGE,
    default_per_page: int = DEFAULT_PER_PAGE,
) -> SearchFilter:
    """Normalize any accepted filter form into a validated SearchFilter.

    ``default_per_page`` fills an unset or blank ``per_page``. A SearchFilter
    passed in is never modified.
    """
    if value is None:
        search_filter = SearchFilter()
    elif isinstance(value, SearchFilter):
        search_filter = value
    elif isinstance(value, Mapping):
        search_filter = SearchFilter.from_mapping(value)
    else:
        raise InvalidFilterError("filter", "must be a SearchFilter or a mapping", type(value).__name__)

    if search_filter.per_page is None:
        search_filter = replace(search_filter, per_page=default_per_page)
    return search_filter.validate(max_per_page)
