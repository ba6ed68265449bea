"""
Bruh Common Module

Shared infrastructure: configuration, the LLM client and the Slack Web API client.
"""

from .config import BruhConfig, load_config
from .llm_client import LLMClient
from .slack_client import SlackClient, SlackApiError

__all__ = [
    "BruhConfig",
    "load_config",
    "LLMClient",
    "SlackClient",
    "SlackApiError",
]
