"""
Slack Event Handler

Turns Slack Events API callbacks into mention events the assistant answers.
"""

import hmac
import hashlib
import re
import time
from dataclasses import dataclass
from typing import Optional, Dict, Any

_MENTION_RE = re.compile(r"<@[A-Z0-9]+>")


@dataclass
class MentionEvent:
    """A question addressed to the bot"""
    event_id: str
    query: str  # text with mention tokens removed
    user: str
    channel: str
    timestamp: str
    thread_ts: Optional[str] = None

    @property
    def reply_thread_ts(self) -> str:
        """Thread to answer in: the existing thread, or a new one under the mention"""
        return self.thread_ts or self.timestamp


class SlackEventHandler:
    """
    Handler for Slack Events API webhooks.

    Processes:
    - app_mention events

    Ignores:
    - Every other event type
    - Mentions posted by bots
    """

    def __init__(self, signing_secret: str = ""):
        """
        Initialize Slack handler.

        Args:
            signing_secret: Slack signing secret for verification
        """
        self._signing_secret = signing_secret

    def parse_event(self, raw_data: Dict[str, Any]) -> Optional[MentionEvent]:
        """
        Parse a Slack event callback into a MentionEvent.

        Returns:
            MentionEvent or None if the event should be ignored
        """
        if raw_data.get("type") != "event_callback":
            return None

        event = raw_data.get("event", {})
        if event.get("type") != "app_mention":
            return None

        if event.get("bot_id") or event.get("subtype") == "bot_message":
            return None

        ts = event.get("ts", "")
        return MentionEvent(
            event_id=raw_data.get("event_id") or f"{event.get('channel', '')}:{ts}",
            query=strip_mentions(event.get("text", "")),
            user=event.get("user", ""),
            channel=event.get("channel", ""),
            timestamp=ts,
            thread_ts=event.get("thread_ts"),
        )

    def verify_signature(
        self,
        body: bytes,
        signature: str,
        timestamp: str
    ) -> bool:
        """
        Verify Slack request signature.

        Args:
            body: Raw request body
            signature: X-Slack-Signature header
            timestamp: X-Slack-Request-Timestamp header

        Returns:
            True if signature is valid
        """
        if not self._signing_secret:
            # Skip verification if no secret configured
            return True

        if not signature or not timestamp:
            return False

        # Check timestamp is recent (within 5 minutes)
        try:
            ts = int(timestamp)
            if abs(time.time() - ts) > 300:
                return False
        except ValueError:
            return False

        # Signed over the raw bytes; the body need not be valid UTF-8
        sig_basestring = b"v0:" + timestamp.encode("utf-8") + b":" + body
        expected_sig = "v0=" + hmac.new(
            self._signing_secret.encode('utf-8'),
            sig_basestring,
            hashlib.sha256
        ).hexdigest()

        return hmac.compare_digest(expected_sig.encode("utf-8"), signature.encode("utf-8"))

    def is_url_verification(self, raw_data: Dict[str, Any]) -> bool:
        return raw_data.get("type") == "url_verification"

    def get_challenge(self, raw_data: Dict[str, Any]) -> Optional[str]:
        """Get challenge for URL verification"""
        if self.is_url_verification(raw_data):
            return raw_data.get("challenge")
        return None


def strip_mentions(text: str) -> str:
    """Remove <@USERID> tokens from message text"""
    return _MENTION_RE.sub("", text or "").strip()
