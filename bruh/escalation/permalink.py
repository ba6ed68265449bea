"""
Permalink construction for Slack messages.

Format when the workspace domain is known:
    https://<domain>.slack.com/archives/<channel_id>/p<ts without the dot>
Otherwise asks Slack (chat.getPermalink), and finally falls back to a
placeholder naming the channel.
"""

import logging
from typing import Optional

logger = logging.getLogger("bruh.escalation.permalink")

LINK_UNAVAILABLE = "[Link unavailable]"


def format_permalink(domain: str, channel_id: str, timestamp: str) -> str:
    """Format a permalink from the workspace domain without an API call"""
    return f"https://{domain}.slack.com/archives/{channel_id}/p{timestamp.replace('.', '')}"


class PermalinkBuilder:
    """
    Builds message links.

    Args:
        slack: Collaborator exposing ``get_permalink(channel_id, ts)``
        workspace_domain: Workspace subdomain, e.g. "acme" for acme.slack.com
    """

    def __init__(self, slack=None, workspace_domain: str = ""):
        self._slack = slack
        self._domain = workspace_domain

    async def build(self, channel_id: Optional[str], timestamp: Optional[str]) -> str:
        if not channel_id or not timestamp:
            return LINK_UNAVAILABLE

        if self._domain:
            return format_permalink(self._domain, channel_id, timestamp)

        if self._slack is not None:
            try:
                link = await self._slack.get_permalink(channel_id, timestamp)
                if link:
                    return link
            except Exception as e:
                logger.warning("Failed to get permalink for message: %s", e)

        return f"[Message in #{channel_id}]"
