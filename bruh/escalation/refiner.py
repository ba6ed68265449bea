"""
Query Refiner

Asks the LLM for the next Slack search string to try during the workspace
loop. On the first attempt it just turns the question into a search query;
on later attempts it sees what was tried and a sample of what came back, and
is told to take a different approach.
"""

import logging
from typing import List, Sequence

from .formatting import truncate
from .models import MatchedMessage

logger = logging.getLogger("bruh.escalation.refiner")


SEARCH_TIPS = """
Slack search tips:
- Use keywords from the question
- Try different word variations and synonyms
- Use specific terms mentioned in the question
- Keep it simple - 2-5 keywords work best
- You can use operators like 'from:@user' or 'in:#channel' if relevant

Respond with ONLY the search query, nothing else.
"""


class QueryRefiner:
    """
    Generates workspace search strings.

    Args:
        llm: Object exposing ``generate(prompt) -> str`` (an LLMClient)
    """

    def __init__(self, llm):
        self._llm = llm

    def build_prompt(
        self,
        original_query: str,
        attempted_queries: Sequence[str],
        sample: List[MatchedMessage],
    ) -> str:
        parts = [
            "You are a Slack search query optimizer. Generate an effective Slack search query.\n",
            f"USER'S QUESTION: \"{original_query}\"\n",
        ]

        if not attempted_queries:
            parts.append("Generate a Slack search query that will help find relevant messages to answer the user's question.")
        else:
            parts.append("Previous search attempts:")
            for i, attempted in enumerate(attempted_queries, start=1):
                parts.append(f"{i}. Query: \"{attempted}\"")
            parts.append("")

            if not sample:
                parts.append("Previous searches found NO results.")
            else:
                parts.append("Previous searches found results, but they were insufficient.")
                parts.append("Sample of what was found:")
                for message in sample:
                    parts.append(f"- {truncate(message.text, 100)}")

            parts.append("\nGenerate a DIFFERENT search query that takes a new approach to find relevant information.")

        parts.append(SEARCH_TIPS)
        return "\n".join(parts)

    def next_query(
        self,
        original_query: str,
        attempted_queries: Sequence[str],
        sample: List[MatchedMessage],
    ) -> str:
        """Next search string; the original query on any failure"""
        prompt = self.build_prompt(original_query, attempted_queries, sample)
        try:
            response = self._llm.generate(prompt, max_tokens=64)
        except Exception as e:
            logger.warning("Error generating search query, using original query: %s", e)
            return original_query

        cleaned = (response or "").strip().strip("\"'").strip()
        if not cleaned:
            logger.warning("Empty search query from LLM, using original query")
            return original_query
        return cleaned
