"""
Gateway - Slack event intake and replies

Receives app_mention events, runs the escalation engine for each one and
posts the synthesized answer back in the thread.

Key Components:
- SlackEventHandler: signature verification and event parsing
- EventDeduplicator: TTL set that drops redelivered events
- BotIdentity: memoized lookup of the bot's own user id
- AnswerSynthesizer: LLM answer over the gathered context

The FastAPI app lives in ``bruh.gateway.server`` and is imported separately
so that the components above do not pull in the web stack.
"""

from .event_cache import EventDeduplicator
from .handler import MentionEvent, SlackEventHandler
from .identity import BotIdentity
from .synthesizer import AnswerSynthesizer, SynthesizedAnswer

__all__ = [
    "EventDeduplicator",
    "MentionEvent",
    "SlackEventHandler",
    "BotIdentity",
    "AnswerSynthesizer",
    "SynthesizedAnswer",
]
