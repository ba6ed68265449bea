"""
Tests for the Slack Web API client

Requests are served by an httpx.MockTransport; no network access.
"""

from urllib.parse import parse_qs

import httpx
import pytest

from bruh.common.slack_client import SlackApiError, SlackClient


class Recorder:
    """MockTransport handler that records requests and replays canned bodies"""

    def __init__(self, bodies=None, status_code=200):
        self.bodies = bodies or {}
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1]
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        self.requests.append((method, form, request.headers.get("authorization")))
        body = self.bodies.get(method, {"ok": True})
        return httpx.Response(self.status_code, json=body)


def _client(recorder, **kwargs):
    kwargs.setdefault("bot_token", "xoxb-bot")
    return SlackClient(transport=httpx.MockTransport(recorder), **kwargs)


class TestSlackClient:
    @pytest.mark.asyncio
    async def test_fetch_thread_history(self):
        recorder = Recorder({"conversations.replies": {"ok": True, "messages": [{"ts": "1.0", "text": "hi"}]}})
        client = _client(recorder)

        messages = await client.fetch_thread_history("C1", "1.0")
        await client.close()

        assert messages == [{"ts": "1.0", "text": "hi"}]
        method, form, auth = recorder.requests[0]
        assert method == "conversations.replies"
        assert form == {"channel": "C1", "ts": "1.0", "limit": "100"}
        assert auth == "Bearer xoxb-bot"

    @pytest.mark.asyncio
    async def test_fetch_channel_history_limit(self):
        recorder = Recorder({"conversations.history": {"ok": True, "messages": []}})
        client = _client(recorder)

        assert await client.fetch_channel_history("C1", 50) == []
        await client.close()

        assert recorder.requests[0][1]["limit"] == "50"

    @pytest.mark.asyncio
    async def test_search_uses_user_token(self):
        recorder = Recorder({"search.messages": {"ok": True, "messages": {"matches": [{"ts": "1.0"}]}}})
        client = _client(recorder, user_token="xoxp-user")

        matches = await client.search_workspace("roadmap")
        await client.close()

        method, form, auth = recorder.requests[0]
        assert matches == [{"ts": "1.0"}]
        assert auth == "Bearer xoxp-user"
        assert form["query"] == "roadmap"
        assert form["count"] == "100"
        assert form["sort"] == "timestamp"
        assert form["sort_dir"] == "desc"

    @pytest.mark.asyncio
    async def test_search_falls_back_to_bot_token(self):
        recorder = Recorder({"search.messages": {"ok": True, "messages": {}}})
        client = _client(recorder)

        assert await client.search_workspace("roadmap") == []
        await client.close()

        assert recorder.requests[0][2] == "Bearer xoxb-bot"

    @pytest.mark.asyncio
    async def test_not_ok_raises(self):
        recorder = Recorder({"search.messages": {"ok": False, "error": "not_allowed_token_type"}})
        client = _client(recorder)

        with pytest.raises(SlackApiError) as exc_info:
            await client.search_workspace("roadmap")
        await client.close()

        assert exc_info.value.method == "search.messages"
        assert exc_info.value.error == "not_allowed_token_type"

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        client = _client(Recorder(status_code=500))

        with pytest.raises(SlackApiError):
            await client.auth_test()
        await client.close()

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = SlackClient(bot_token="xoxb-bot", transport=httpx.MockTransport(handler))

        with pytest.raises(SlackApiError) as exc_info:
            await client.fetch_channel_history("C1")
        await client.close()

        assert "connection refused" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_get_permalink(self):
        recorder = Recorder({"chat.getPermalink": {"ok": True, "permalink": "https://acme.slack.com/x"}})
        client = _client(recorder)

        assert await client.get_permalink("C1", "1.0") == "https://acme.slack.com/x"
        await client.close()

        assert recorder.requests[0][1] == {"channel": "C1", "message_ts": "1.0"}

    @pytest.mark.asyncio
    async def test_post_message_in_thread(self):
        recorder = Recorder()
        client = _client(recorder)

        await client.post_message("C1", "hello", thread_ts="1.0")
        await client.post_message("C1", "top level")
        await client.close()

        assert recorder.requests[0][1] == {"channel": "C1", "text": "hello", "thread_ts": "1.0"}
        assert "thread_ts" not in recorder.requests[1][1]
