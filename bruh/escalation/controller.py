"""
Escalation Controller

Decides how much Slack history to gather for a question and when to stop.

Levels are tried narrowest first and only ever move forward:

1. THREAD    - the thread the question was asked in (conversations.replies)
2. CHANNEL   - recent channel history, keyword filtered (conversations.history)
3. WORKSPACE - iterative search.messages with LLM-refined queries

After each level the sufficiency oracle judges the gathered text; a
sufficient verdict ends the run. A question that explicitly asks for a
workspace search goes straight to level 3.

Collaborator failures never escape ``execute``: a failed fetch counts as a
level with no usable data and the run escalates.
"""

import asyncio
import logging
from typing import List, Optional

from ..common.config import EscalationConfig
from .dedup import merge
from .filters import ContentFilterPipeline
from .formatting import (
    format_channel_messages,
    format_for_evaluation,
    format_search_results,
    format_thread_transcript,
)
from .models import (
    EscalationResult,
    EscalationRun,
    MatchedMessage,
    Query,
    SearchLevel,
)
from .oracle import SufficiencyOracle
from .permalink import PermalinkBuilder
from .refiner import QueryRefiner

logger = logging.getLogger("bruh.escalation.controller")


EXPLICIT_WORKSPACE_PHRASES = (
    "search workspace",
    "workspace search",
    "search everywhere",
    "search all",
    "all channels",
    "across workspace",
    "workspace-wide",
    "in workspace",
    "entire workspace",
)


def is_explicit_workspace_request(text: str) -> bool:
    """Whether the user asked for a workspace-wide search in so many words"""
    lowered = (text or "").lower()
    return any(phrase in lowered for phrase in EXPLICIT_WORKSPACE_PHRASES)


def filter_by_keywords(messages: List[MatchedMessage], query: str, cap: int) -> List[MatchedMessage]:
    """
    Keep messages containing at least one query word (case-insensitive).

    An empty query keeps the first ``cap`` messages instead.
    """
    if not query or not query.strip():
        return messages[:cap]

    keywords = query.lower().split()
    matched = [
        m for m in messages
        if any(keyword in (m.text or "").lower() for keyword in keywords)
    ]
    return matched[:cap]


class EscalationController:
    """
    Progressive thread → channel → workspace search.

    Holds only collaborators and configuration; every ``execute`` call works
    on its own ``EscalationRun``, so one controller can serve concurrent runs.

    Args:
        slack: Collaborator with fetch_thread_history / fetch_channel_history /
            search_workspace (a SlackClient)
        oracle: SufficiencyOracle
        refiner: QueryRefiner
        filters: ContentFilterPipeline for workspace search batches
        permalinks: PermalinkBuilder for message links
        config: EscalationConfig limits
    """

    def __init__(
        self,
        slack,
        oracle: SufficiencyOracle,
        refiner: QueryRefiner,
        filters: Optional[ContentFilterPipeline] = None,
        permalinks: Optional[PermalinkBuilder] = None,
        config: Optional[EscalationConfig] = None,
    ):
        self._slack = slack
        self._oracle = oracle
        self._refiner = refiner
        self._filters = filters or ContentFilterPipeline()
        self._permalinks = permalinks or PermalinkBuilder(slack)
        self._config = config or EscalationConfig()

    async def execute(self, query: Query, cancel_event: Optional[asyncio.Event] = None) -> EscalationResult:
        """
        Gather context for ``query``.

        Args:
            query: The question and where it was asked
            cancel_event: When set, the workspace loop stops at the next
                iteration boundary and returns what it has

        Returns:
            EscalationResult with the context text and how far the run went
        """
        run = EscalationRun(query=query)
        logger.info(
            "Executing Slack search for query: %s in channel: %s, thread: %s",
            query.text, query.channel_id, query.thread_ts,
        )

        if is_explicit_workspace_request(query.text):
            logger.info("Explicit workspace search requested, skipping progressive search")
            return await self._search_workspace(run, cancel_event)

        if query.thread_ts and query.channel_id:
            result = await self._search_thread(run)
            if result is not None:
                return result

        if query.channel_id:
            result = await self._search_channel(run)
            if result is not None:
                return result

        logger.info("Performing workspace search (final level)")
        return await self._search_workspace(run, cancel_event)

    # =========================================================================
    # Level 1: thread
    # =========================================================================

    async def _search_thread(self, run: EscalationRun) -> Optional[EscalationResult]:
        run.advance_to(SearchLevel.THREAD)
        query = run.query

        try:
            raw = await self._slack.fetch_thread_history(query.channel_id, query.thread_ts)
        except Exception as e:
            logger.warning("Failed to fetch thread history: %s", e)
            return None

        messages = [MatchedMessage.from_history_message(m, query.channel_id) for m in raw]
        transcript = format_thread_transcript(messages)
        logger.info("Fetched thread context: %d characters", len(transcript))

        # An empty thread means the level does not apply, not that it failed
        if not transcript.strip():
            return None

        verdict = await asyncio.to_thread(
            self._oracle.evaluate, query.text, transcript, SearchLevel.THREAD.label
        )
        if not verdict.sufficient:
            logger.info("Thread context insufficient, escalating to channel search")
            return None

        logger.info("Thread context sufficient, returning")
        return EscalationResult(
            context_text=f"Thread context:\n\n{verdict.extracted_summary}",
            level_reached=SearchLevel.THREAD,
            message_count=len(messages),
        )

    # =========================================================================
    # Level 2: channel
    # =========================================================================

    async def _search_channel(self, run: EscalationRun) -> Optional[EscalationResult]:
        run.advance_to(SearchLevel.CHANNEL)
        query = run.query
        logger.info("Retrieving channel history for: %s", query.channel_id)

        try:
            raw = await self._slack.fetch_channel_history(query.channel_id, self._config.history_limit)
        except Exception as e:
            logger.warning("Failed to retrieve channel history, escalating: %s", e)
            return None

        messages = [MatchedMessage.from_history_message(m, query.channel_id) for m in raw]
        relevant = filter_by_keywords(messages, query.text, self._config.channel_match_cap)
        if not relevant:
            logger.info("No relevant channel messages, escalating to workspace search")
            return None

        verdict = await asyncio.to_thread(
            self._oracle.evaluate, query.text, format_channel_messages(relevant), SearchLevel.CHANNEL.label
        )
        if not verdict.sufficient:
            logger.info("Channel search insufficient, escalating to workspace search")
            return None

        logger.info("Channel search sufficient, returning")
        return EscalationResult(
            context_text=f"Channel context:\n\n{verdict.extracted_summary}",
            level_reached=SearchLevel.CHANNEL,
            message_count=len(relevant),
        )

    # =========================================================================
    # Level 3: workspace
    # =========================================================================

    async def _search_workspace(
        self,
        run: EscalationRun,
        cancel_event: Optional[asyncio.Event],
    ) -> EscalationResult:
        run.advance_to(SearchLevel.WORKSPACE)
        query = run.query
        max_iterations = self._config.max_iterations
        logger.info("Starting smart workspace search for: %s", query.text)

        for iteration in range(1, max_iterations + 1):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Workspace search cancelled before iteration %d", iteration)
                break

            run.iterations = iteration
            logger.info("Search iteration %d/%d", iteration, max_iterations)

            search_query = await asyncio.to_thread(
                self._refiner.next_query,
                query.text,
                list(run.attempted_queries),
                run.results.head(self._config.refiner_sample_size),
            )
            run.attempted_queries.append(search_query)
            logger.info("Generated Slack query: %s", search_query)

            try:
                matches = await self._slack.search_workspace(search_query, self._config.search_result_limit)
            except Exception as e:
                logger.warning("Workspace search failed for %r: %s", search_query, e)
                if iteration == max_iterations:
                    logger.info("Search failed on final iteration, returning accumulated results")
                    break
                continue

            batch = self._filters.apply([MatchedMessage.from_search_match(m) for m in matches])
            if not batch:
                logger.info("No results for query: %s", search_query)
            else:
                run.results = merge(run.results, batch)
                logger.info("Total unique results so far: %d", len(run.results))

            if run.results:
                formatted = await format_for_evaluation(
                    run.results.head(self._config.workspace_sample_size), self._permalinks
                )
                run.last_verdict = await asyncio.to_thread(
                    self._oracle.evaluate_workspace,
                    query.text,
                    formatted,
                    iteration,
                    len(run.results),
                )
                if run.last_verdict.sufficient:
                    logger.info("Search results deemed sufficient after %d iteration(s)", iteration)
                    break

            if iteration < max_iterations:
                logger.info("Results insufficient, will refine search query")

        return await self._workspace_result(run)

    async def _workspace_result(self, run: EscalationRun) -> EscalationResult:
        if not run.results:
            return EscalationResult(
                context_text=f"No messages found for: {run.query.text}",
                level_reached=SearchLevel.WORKSPACE,
                iterations_used=run.iterations,
                message_count=0,
            )

        verdict = run.last_verdict
        # A verdict without a raw response came from a failed oracle call
        if verdict is not None and verdict.raw_response is not None:
            body = verdict.extracted_summary
        else:
            body = await format_search_results(
                run.results.head(self._config.workspace_sample_size), self._permalinks
            )

        return EscalationResult(
            context_text=(
                f"Relevant information from Slack (searched {len(run.attempted_queries)} iteration(s), "
                f"found {len(run.results)} messages):\n\n{body}"
            ),
            level_reached=SearchLevel.WORKSPACE,
            iterations_used=run.iterations,
            message_count=len(run.results),
        )
