"""
Answer Synthesizer

Turns the context gathered by the escalation engine into the reply posted
back to Slack.

Key principle: never invent. With no context the reply says so; with
context the model is told to cite the Slack links it was given.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from ..escalation.models import EscalationResult

logger = logging.getLogger("bruh.gateway.synthesizer")


NO_CONTEXT_ANSWER = (
    "I don't have enough information to answer that question. "
    "I couldn't find relevant data in Slack conversations."
)


SYNTHESIS_PROMPT = """You are a helpful AI assistant. Answer the user's question using the provided context.

IMPORTANT GUIDELINES:
1. If the answer is based on Slack conversations, ALWAYS include the Slack links provided in the context
   - Format: "According to [this conversation](link)" or "See [this message](link)"
   - Include relevant links inline in your answer, not as a separate list at the end
2. If you're making reasonable inferences or assumptions, be explicit (e.g., "Based on the information provided, it appears that...")
3. If you don't know or the context doesn't contain the answer, say so clearly (e.g., "I don't have enough information to answer that")
4. NEVER make up information that isn't in the context
5. Be concise but complete
6. Use markdown formatting for links

Context:
=== DATA FROM SLACK ===

{context}

User Question: {query}

Answer:"""


FALLBACK_TEMPLATE = """Here is what I found in Slack for: "{query}"

{context}

---
_Note: this is the raw search context without LLM synthesis._"""


@dataclass
class SynthesizedAnswer:
    """Reply text plus how it was produced"""
    answer: str
    used_llm: bool
    warnings: List[str] = field(default_factory=list)


class AnswerSynthesizer:
    """
    Synthesizes replies with the LLM.

    Falls back to posting the raw context if the LLM is not available.

    Args:
        llm: Object exposing ``generate(prompt) -> str`` and ``is_available``
    """

    def __init__(self, llm):
        self._llm = llm

    def synthesize(self, query: str, result: EscalationResult) -> SynthesizedAnswer:
        if result.message_count == 0 or not result.context_text.strip():
            return SynthesizedAnswer(
                answer=NO_CONTEXT_ANSWER,
                used_llm=False,
                warnings=["No Slack context found"],
            )

        if getattr(self._llm, "is_available", False):
            try:
                prompt = SYNTHESIS_PROMPT.format(context=result.context_text, query=query)
                return SynthesizedAnswer(answer=self._llm.generate(prompt), used_llm=True)
            except Exception as e:
                logger.warning("LLM synthesis failed: %s", e)

        return SynthesizedAnswer(
            answer=FALLBACK_TEMPLATE.format(query=query, context=result.context_text),
            used_llm=False,
            warnings=["LLM not available - showing raw context"],
        )
