"""
Sufficiency Oracle: LLM judgment of whether gathered context answers a query.

Each check is one text-generation call. The model is asked to answer in a
fixed two-line format:

    SUFFICIENT: YES or NO
    SUMMARY: <query-relevant summary of the batch>

Anything that does not follow the format is read conservatively: not
sufficient unless the marker says so.
"""

import logging
import re

from .formatting import truncate
from .models import SufficiencyVerdict

logger = logging.getLogger("bruh.escalation.oracle")


LEVEL_PROMPT = """Analyze if the following search results contain enough relevant information to answer the user's query.

USER QUERY: "{query}"

SEARCH RESULTS (from {level}):
{data}

YOUR TASK:
1. Determine if this data is SUFFICIENT to answer the query
2. Extract ONLY the information from the data that is relevant to the query

RESPOND IN THIS FORMAT:
SUFFICIENT: YES or NO
SUMMARY: [Relevant information from the search results]

Answer NO if the data is insufficient, irrelevant, or empty.

Your response:"""


WORKSPACE_PROMPT = """Evaluate if these Slack search results contain enough information to answer the user's question.

USER'S QUESTION: "{query}"

SEARCH RESULTS (iteration {iteration}, {total} total messages):
{data}

YOUR TASK:
1. Determine if this data is SUFFICIENT to provide a helpful answer
2. Extract and summarize ONLY the relevant information that answers the question

RESPOND IN THIS FORMAT:
SUFFICIENT: YES or NO
SUMMARY: [Concise summary of relevant information with Slack links in markdown format]

If SUFFICIENT=NO, provide a brief summary of what you found and what's missing.
If SUFFICIENT=YES, provide a comprehensive summary with inline links.

Your response:"""


_SUFFICIENT_RE = re.compile(r"\bSUFFICIENT\s*[:=]\s*YES\b")
_BARE_YES_RE = re.compile(r"^\W*YES\b")
_SUMMARY_RE = re.compile(r"SUMMARY\s*:", re.IGNORECASE)


def parse_verdict(raw: str) -> SufficiencyVerdict:
    """
    Parse an oracle response.

    ``sufficient`` is set by a ``SUFFICIENT: YES`` marker, or by a response
    that is a bare YES. The summary is everything after the first
    ``SUMMARY:`` marker; without one, the whole response is the summary.
    """
    text = (raw or "").strip()
    upper = text.upper()
    sufficient = bool(_SUFFICIENT_RE.search(upper) or _BARE_YES_RE.match(upper))

    match = _SUMMARY_RE.search(text)
    summary = text[match.end():].strip() if match else text

    return SufficiencyVerdict(sufficient=sufficient, extracted_summary=summary, raw_response=raw)


class SufficiencyOracle:
    """
    Judges gathered context with the LLM.

    Args:
        llm: Object exposing ``generate(prompt) -> str`` (an LLMClient)
        char_budget: Max characters of batch text sent for thread/channel checks
    """

    def __init__(self, llm, char_budget: int = 1500):
        self._llm = llm
        self._char_budget = char_budget

    def evaluate(self, query: str, formatted_batch: str, level_label: str) -> SufficiencyVerdict:
        """Judge a thread or channel batch"""
        prompt = LEVEL_PROMPT.format(
            query=query,
            level=level_label,
            data=truncate(formatted_batch, self._char_budget),
        )
        return self._judge(prompt, level_label, formatted_batch)

    def evaluate_workspace(self, query: str, formatted_batch: str, iteration: int, total: int) -> SufficiencyVerdict:
        """Judge the accumulated workspace results after an iteration"""
        prompt = WORKSPACE_PROMPT.format(
            query=query,
            iteration=iteration,
            total=total,
            data=formatted_batch,
        )
        return self._judge(prompt, "workspace", formatted_batch)

    def _judge(self, prompt: str, level_label: str, formatted_batch: str) -> SufficiencyVerdict:
        try:
            raw = self._llm.generate(prompt)
        except Exception as e:
            logger.warning("Error evaluating %s sufficiency, assuming insufficient: %s", level_label, e)
            return SufficiencyVerdict(
                sufficient=False,
                extracted_summary=f"Error evaluating results: {e}",
            )

        verdict = parse_verdict(raw)
        logger.info(
            "LLM sufficiency decision for %s: %s",
            level_label, "SUFFICIENT" if verdict.sufficient else "INSUFFICIENT",
        )

        # A bare YES carries no summary; the batch itself is the context
        if verdict.sufficient and verdict.extracted_summary.strip().upper() in ("", "YES", "NO"):
            verdict.extracted_summary = formatted_batch
        return verdict
