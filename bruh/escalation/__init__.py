"""
Escalation Engine - Progressive Slack Context Retrieval

Decides how much conversation history to gather for a question, in what
order, and when to stop.

Key Components:
- EscalationController: thread → channel → workspace state machine
- SufficiencyOracle: LLM judgment of whether gathered text answers the query
- QueryRefiner: LLM-generated workspace search strings
- ContentFilterPipeline: drops bot mentions and non-public channel messages
- merge: (timestamp, channel) deduplication of search results

Pipeline:
1. Thread transcript, if the question was asked in a thread
2. Keyword-filtered recent channel history
3. Up to 3 rounds of refined workspace search
"""

from .controller import EscalationController, is_explicit_workspace_request
from .dedup import merge
from .filters import ContentFilterPipeline, is_public_channel
from .models import (
    AccumulatedResultSet,
    EscalationResult,
    MatchedMessage,
    Query,
    SearchLevel,
    SufficiencyVerdict,
)
from .oracle import SufficiencyOracle
from .permalink import PermalinkBuilder
from .refiner import QueryRefiner

__all__ = [
    "EscalationController",
    "is_explicit_workspace_request",
    "merge",
    "ContentFilterPipeline",
    "is_public_channel",
    "AccumulatedResultSet",
    "EscalationResult",
    "MatchedMessage",
    "Query",
    "SearchLevel",
    "SufficiencyVerdict",
    "SufficiencyOracle",
    "PermalinkBuilder",
    "QueryRefiner",
]
