"""
Escalation data model

Value types shared by the escalation engine: the inbound query, search
levels, matched messages, the accumulated result set and the per-query run
state.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class Query:
    """A user question with the conversation it was asked in"""
    text: str
    channel_id: Optional[str] = None
    thread_ts: Optional[str] = None  # None when not asked inside a thread


class SearchLevel(IntEnum):
    """Search scope, ordered narrowest to widest"""
    THREAD = 1
    CHANNEL = 2
    WORKSPACE = 3

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass
class MatchedMessage:
    """One message retrieved from Slack"""
    channel_id: Optional[str]
    timestamp: Optional[str]
    text: str = ""
    channel_name: Optional[str] = None
    user_id: Optional[str] = None
    username: Optional[str] = None
    permalink: Optional[str] = None

    @property
    def identity(self) -> Optional[Tuple[str, str]]:
        """(timestamp, channel_id), or None when either part is missing"""
        if not self.timestamp or not self.channel_id:
            return None
        return (self.timestamp, self.channel_id)

    @property
    def author(self) -> str:
        return self.username or self.user_id or "Unknown"

    @classmethod
    def from_search_match(cls, match: Dict[str, Any]) -> "MatchedMessage":
        """Build from a search.messages match"""
        channel = match.get("channel") or {}
        return cls(
            channel_id=channel.get("id"),
            channel_name=channel.get("name"),
            timestamp=match.get("ts"),
            text=match.get("text") or "",
            user_id=match.get("user"),
            username=match.get("username"),
            permalink=match.get("permalink"),
        )

    @classmethod
    def from_history_message(cls, message: Dict[str, Any], channel_id: Optional[str]) -> "MatchedMessage":
        """Build from a conversations.history / conversations.replies message"""
        return cls(
            channel_id=channel_id,
            timestamp=message.get("ts"),
            text=message.get("text") or "",
            user_id=message.get("user"),
            username=message.get("username"),
        )


class AccumulatedResultSet:
    """
    Ordered collection of unique messages gathered during one run.

    Only grows: new messages come in through ``dedup.merge``, which returns a
    new set. Insertion order is preserved.
    """

    def __init__(self, messages: Optional[List[MatchedMessage]] = None):
        self._messages: List[MatchedMessage] = list(messages or [])

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[MatchedMessage]:
        return iter(self._messages)

    def __bool__(self) -> bool:
        return bool(self._messages)

    def head(self, n: int) -> List[MatchedMessage]:
        """First ``n`` messages in insertion order"""
        return self._messages[:n]

    def as_list(self) -> List[MatchedMessage]:
        return list(self._messages)


@dataclass
class SufficiencyVerdict:
    """Oracle judgment over one batch of context"""
    sufficient: bool
    extracted_summary: str
    raw_response: Optional[str] = None


@dataclass
class EscalationResult:
    """What the controller hands to answer synthesis"""
    context_text: str
    level_reached: SearchLevel
    iterations_used: int = 0
    message_count: int = 0


@dataclass
class EscalationRun:
    """Mutable state for a single ``execute`` call; never shared between runs"""
    query: Query
    level: Optional[SearchLevel] = None
    attempted_queries: List[str] = field(default_factory=list)
    results: AccumulatedResultSet = field(default_factory=AccumulatedResultSet)
    iterations: int = 0
    last_verdict: Optional[SufficiencyVerdict] = None

    def advance_to(self, level: SearchLevel) -> None:
        if self.level is not None and level < self.level:
            raise ValueError(f"Cannot move from {self.level.name} back to {level.name}")
        self.level = level
