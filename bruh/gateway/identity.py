"""
Bot identity lookup.

The bot's own Slack user id is needed to recognise messages that mention it.
It is looked up once with auth.test and remembered.
"""

import asyncio
import logging
from typing import Optional

logger = logging.getLogger("bruh.gateway.identity")


class BotIdentity:
    """
    Memoized bot user id.

    A failed lookup is not cached, so the next call tries again.

    Args:
        slack: Collaborator exposing ``auth_test()`` (a SlackClient)
        display_name: Configured bot name, matched as ``@name`` in text
    """

    def __init__(self, slack, display_name: str = "bruh"):
        self._slack = slack
        self.display_name = display_name
        self._user_id: Optional[str] = None
        self._lock = asyncio.Lock()

    async def get_user_id(self) -> Optional[str]:
        if self._user_id is not None:
            return self._user_id

        async with self._lock:
            if self._user_id is None:
                try:
                    response = await self._slack.auth_test()
                    self._user_id = response.get("user_id")
                    logger.info("Bot user ID: %s", self._user_id)
                except Exception as e:
                    logger.warning("Failed to get bot user ID: %s", e)
        return self._user_id
