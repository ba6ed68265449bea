"""
Slack Web API Client

Thin async client over the handful of Slack Web API methods the assistant
needs. Every failure (transport error, timeout, ``ok: false`` response) is
raised as ``SlackApiError`` so callers can treat the collaborator as
unavailable.

Usage:
    client = SlackClient(bot_token="xoxb-...", user_token="xoxp-...")
    replies = await client.fetch_thread_history("C123", "1700000000.000100")
    await client.close()
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger("bruh.common.slack_client")

DEFAULT_API_BASE_URL = "https://slack.com/api"


class SlackApiError(Exception):
    """A Slack Web API call failed."""

    def __init__(self, method: str, error: str):
        super().__init__(f"{method} failed: {error}")
        self.method = method
        self.error = error


class SlackClient:
    """
    Async Slack Web API client.

    Holds a persistent ``httpx.AsyncClient``; safe to share between
    concurrent tasks. Search uses the user token when one is configured
    since Slack rejects bot tokens for ``search.messages``.
    """

    def __init__(
        self,
        bot_token: str,
        user_token: str = "",
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Slack client.

        Args:
            bot_token: Bot token (xoxb-...) for history, permalinks and posting
            user_token: User token (xoxp-...) for workspace search
            base_url: Web API base URL
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self._bot_token = bot_token
        self._user_token = user_token
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @classmethod
    def from_config(cls, config) -> "SlackClient":
        return cls(
            bot_token=config.slack.bot_token,
            user_token=config.slack.user_token,
            base_url=config.slack.api_base_url,
            timeout=config.slack.timeout,
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def _call(
        self,
        method: str,
        params: Dict[str, Any],
        token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """POST a Web API method and return the decoded body."""
        headers = {"Authorization": f"Bearer {token or self._bot_token}"}
        try:
            response = await self._http.post(method, data=params, headers=headers)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            raise SlackApiError(method, str(e) or type(e).__name__) from e
        except ValueError as e:
            raise SlackApiError(method, f"invalid JSON response: {e}") from e

        if not body.get("ok"):
            raise SlackApiError(method, body.get("error", "unknown_error"))
        return body

    # =========================================================================
    # Collaborator methods used by the escalation controller
    # =========================================================================

    async def fetch_thread_history(self, channel_id: str, thread_ts: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Thread messages, oldest first (conversations.replies)."""
        body = await self._call(
            "conversations.replies",
            {"channel": channel_id, "ts": thread_ts, "limit": limit},
        )
        return body.get("messages") or []

    async def fetch_channel_history(self, channel_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Recent channel messages, newest first (conversations.history)."""
        body = await self._call(
            "conversations.history",
            {"channel": channel_id, "limit": limit},
        )
        return body.get("messages") or []

    async def search_workspace(self, query: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Workspace-wide message search (search.messages), newest first."""
        body = await self._call(
            "search.messages",
            {"query": query, "count": limit, "sort": "timestamp", "sort_dir": "desc"},
            token=self._user_token or self._bot_token,
        )
        messages = body.get("messages") or {}
        return messages.get("matches") or []

    async def get_permalink(self, channel_id: str, message_ts: str) -> Optional[str]:
        body = await self._call(
            "chat.getPermalink",
            {"channel": channel_id, "message_ts": message_ts},
        )
        return body.get("permalink")

    # =========================================================================
    # Gateway methods
    # =========================================================================

    async def auth_test(self) -> Dict[str, Any]:
        """Identity of the bot token's user (auth.test)."""
        return await self._call("auth.test", {})

    async def post_message(self, channel_id: str, text: str, thread_ts: Optional[str] = None) -> Dict[str, Any]:
        params = {"channel": channel_id, "text": text}
        if thread_ts:
            params["thread_ts"] = thread_ts
        return await self._call("chat.postMessage", params)
