"""
Content Filters

Predicates applied to every workspace search batch before it is merged into
the accumulated results:

- Self-mention: messages that @-mention the bot are questions *to* it, not
  answers, so they are dropped.
- Visibility: only messages from public channels survive. This one is always
  applied; nothing in configuration or query text turns it off.

Both are independent predicates, so the filtered set does not depend on the
order they run in.
"""

import logging
from typing import List, Optional

from .models import MatchedMessage

logger = logging.getLogger("bruh.escalation.filters")

# Slack channel id prefixes: C = public channel, G = private channel
# (legacy group), D = direct message.
PUBLIC_CHANNEL_PREFIX = "C"


def is_public_channel(channel_id: Optional[str]) -> bool:
    """Whether ``channel_id`` belongs to Slack's public channel namespace"""
    if not channel_id:
        return False
    return channel_id.startswith(PUBLIC_CHANNEL_PREFIX)


def mentions_bot(text: Optional[str], bot_user_id: Optional[str], bot_name: Optional[str]) -> bool:
    """Whether ``text`` mentions the bot by user id (<@U123>) or by @name"""
    if not text:
        return False
    if bot_user_id and f"<@{bot_user_id}>" in text:
        return True
    if bot_name and f"@{bot_name.lower()}" in text.lower():
        return True
    return False


class ContentFilterPipeline:
    """
    Applies the self-mention and visibility filters to a batch.

    Args:
        bot_user_id: The bot's Slack user id, if resolved
        bot_name: The bot's display name (matched as ``@name``)
    """

    def __init__(self, bot_user_id: Optional[str] = None, bot_name: Optional[str] = None):
        self.bot_user_id = bot_user_id
        self.bot_name = bot_name

    def apply(self, messages: List[MatchedMessage]) -> List[MatchedMessage]:
        without_mentions = [
            m for m in messages
            if not mentions_bot(m.text, self.bot_user_id, self.bot_name)
        ]
        if len(without_mentions) < len(messages):
            logger.info(
                "Filtered out %d bot mention(s) from search results",
                len(messages) - len(without_mentions),
            )

        public_only = []
        for m in without_mentions:
            if is_public_channel(m.channel_id):
                public_only.append(m)
            else:
                logger.debug(
                    "Filtering out message from non-public channel: %s (ID: %s)",
                    m.channel_name or "Unknown", m.channel_id,
                )
        if len(public_only) < len(without_mentions):
            logger.info(
                "Filtered out %d private channel message(s) from search results",
                len(without_mentions) - len(public_only),
            )

        return public_only
