"""
Bruh

A Slack assistant that answers questions from conversation history.

Philosophy:
- Search narrow first: thread, then channel, then the whole workspace
- Stop as soon as the gathered context is judged sufficient
- Never surface messages from non-public channels
- Messages that mention the bot are questions, not answers

Usage:
    from bruh.common import load_config, LLMClient, SlackClient
    from bruh.escalation import EscalationController, Query
    from bruh.gateway import AnswerSynthesizer, EventDeduplicator
"""

__version__ = "0.1.0"
