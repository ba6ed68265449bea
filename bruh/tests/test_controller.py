"""
Tests for the Escalation Controller

Covers level ordering, early exit, the bounded workspace loop, privacy
filtering of search results and graceful degradation when Slack calls fail.
Slack, the oracle and the refiner are all mocks.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock

from bruh.common.config import EscalationConfig
from bruh.common.slack_client import SlackApiError
from bruh.escalation.controller import (
    EscalationController,
    filter_by_keywords,
    is_explicit_workspace_request,
)
from bruh.escalation.filters import ContentFilterPipeline
from bruh.escalation.models import MatchedMessage, Query, SearchLevel, SufficiencyVerdict
from bruh.escalation.permalink import PermalinkBuilder


SUFFICIENT = SufficiencyVerdict(True, "the answer", raw_response="SUFFICIENT: YES\nSUMMARY: the answer")
INSUFFICIENT = SufficiencyVerdict(False, "partial", raw_response="SUFFICIENT: NO\nSUMMARY: partial")


def _match(ts, channel="C100", text="roadmap update", name="general"):
    return {
        "channel": {"id": channel, "name": name},
        "user": "U1",
        "username": "alice",
        "ts": ts,
        "text": text,
    }


@pytest.fixture
def slack():
    slack = Mock()
    slack.fetch_thread_history = AsyncMock(return_value=[
        {"user": "U1", "text": "when is the launch?", "ts": "1.0"},
        {"user": "U2", "text": "October 3", "ts": "2.0"},
    ])
    slack.fetch_channel_history = AsyncMock(return_value=[
        {"user": "U3", "text": "The launch checklist is done", "ts": "3.0"},
        {"user": "U4", "text": "lunch?", "ts": "4.0"},
    ])
    slack.search_workspace = AsyncMock(return_value=[_match("10.0")])
    slack.get_permalink = AsyncMock(return_value=None)
    return slack


@pytest.fixture
def oracle():
    oracle = Mock()
    oracle.evaluate.return_value = INSUFFICIENT
    oracle.evaluate_workspace.return_value = INSUFFICIENT
    return oracle


@pytest.fixture
def refiner():
    refiner = Mock()
    refiner.next_query.side_effect = lambda original, attempted, sample: f"refined {len(attempted) + 1}"
    return refiner


@pytest.fixture
def controller(slack, oracle, refiner):
    return EscalationController(
        slack=slack,
        oracle=oracle,
        refiner=refiner,
        filters=ContentFilterPipeline(bot_user_id="UBOT", bot_name="bruh"),
        permalinks=PermalinkBuilder(slack, workspace_domain="acme"),
        config=EscalationConfig(),
    )


class TestHelpers:
    @pytest.mark.parametrize("text", [
        "please search workspace for the Q3 roadmap",
        "Search Everywhere for onboarding docs",
        "what did people say across workspace about SSO",
        "check ALL CHANNELS",
    ])
    def test_explicit_workspace_request(self, text):
        assert is_explicit_workspace_request(text)

    def test_plain_question_is_not_explicit(self):
        assert not is_explicit_workspace_request("when is the launch?")

    def test_keyword_filter_matches_any_token(self):
        messages = [
            MatchedMessage(channel_id="C1", timestamp="1", text="The LAUNCH is soon"),
            MatchedMessage(channel_id="C1", timestamp="2", text="unrelated"),
        ]

        assert filter_by_keywords(messages, "launch date", cap=10) == messages[:1]

    def test_keyword_filter_empty_query_takes_most_recent(self):
        messages = [MatchedMessage(channel_id="C1", timestamp=str(i), text="x") for i in range(20)]

        assert filter_by_keywords(messages, "  ", cap=10) == messages[:10]

    def test_keyword_filter_cap(self):
        messages = [MatchedMessage(channel_id="C1", timestamp=str(i), text="launch") for i in range(20)]

        assert len(filter_by_keywords(messages, "launch", cap=10)) == 10


class TestEscalationOrdering:
    @pytest.mark.asyncio
    async def test_sufficient_thread_stops_early(self, controller, slack, oracle):
        oracle.evaluate.return_value = SUFFICIENT

        result = await controller.execute(Query("when is the launch?", channel_id="C100", thread_ts="1.0"))

        assert result.level_reached == SearchLevel.THREAD
        assert result.context_text == "Thread context:\n\nthe answer"
        assert result.message_count == 2
        slack.fetch_channel_history.assert_not_called()
        slack.search_workspace.assert_not_called()
        assert oracle.evaluate.call_args[0][2] == "thread"

    @pytest.mark.asyncio
    async def test_thread_transcript_sent_to_oracle(self, controller, oracle):
        oracle.evaluate.return_value = SUFFICIENT

        await controller.execute(Query("when is the launch?", channel_id="C100", thread_ts="1.0"))

        assert oracle.evaluate.call_args[0][1] == "U1: when is the launch?\nU2: October 3"

    @pytest.mark.asyncio
    async def test_sufficient_channel_stops_before_workspace(self, controller, slack, oracle):
        oracle.evaluate.side_effect = [INSUFFICIENT, SUFFICIENT]

        result = await controller.execute(Query("launch checklist", channel_id="C100", thread_ts="1.0"))

        assert result.level_reached == SearchLevel.CHANNEL
        assert result.context_text == "Channel context:\n\nthe answer"
        assert result.message_count == 1
        slack.search_workspace.assert_not_called()
        assert [c[0][2] for c in oracle.evaluate.call_args_list] == ["thread", "channel"]

    @pytest.mark.asyncio
    async def test_insufficient_thread_and_channel_reach_workspace(self, controller, slack, oracle):
        result = await controller.execute(Query("launch", channel_id="C100", thread_ts="1.0"))

        assert result.level_reached == SearchLevel.WORKSPACE
        assert result.iterations_used >= 1
        slack.fetch_thread_history.assert_awaited_once()
        slack.fetch_channel_history.assert_awaited_once_with("C100", 100)
        slack.search_workspace.assert_awaited()

    @pytest.mark.asyncio
    async def test_no_thread_skips_thread_level(self, controller, slack, oracle):
        oracle.evaluate.return_value = SUFFICIENT

        result = await controller.execute(Query("launch", channel_id="C100"))

        assert result.level_reached == SearchLevel.CHANNEL
        slack.fetch_thread_history.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_thread_falls_through_without_oracle(self, controller, slack, oracle):
        slack.fetch_thread_history.return_value = []
        oracle.evaluate.return_value = SUFFICIENT

        result = await controller.execute(Query("launch", channel_id="C100", thread_ts="1.0"))

        assert result.level_reached == SearchLevel.CHANNEL
        assert oracle.evaluate.call_count == 1
        assert oracle.evaluate.call_args[0][2] == "channel"

    @pytest.mark.asyncio
    async def test_no_keyword_matches_skip_channel_oracle(self, controller, slack, oracle):
        slack.fetch_channel_history.return_value = [{"user": "U1", "text": "unrelated", "ts": "1"}]

        result = await controller.execute(Query("roadmap", channel_id="C100"))

        assert result.level_reached == SearchLevel.WORKSPACE
        oracle.evaluate.assert_not_called()

    @pytest.mark.asyncio
    async def test_explicit_scope_bypasses_thread_and_channel(self, controller, slack, oracle):
        oracle.evaluate_workspace.return_value = SUFFICIENT

        result = await controller.execute(
            Query("please search workspace for the Q3 roadmap", channel_id="C100", thread_ts="1.0")
        )

        assert result.level_reached == SearchLevel.WORKSPACE
        slack.fetch_thread_history.assert_not_called()
        slack.fetch_channel_history.assert_not_called()
        oracle.evaluate.assert_not_called()


class TestWorkspaceLoop:
    @pytest.mark.asyncio
    async def test_always_insufficient_runs_exactly_max_iterations(self, controller, slack, refiner, oracle):
        result = await controller.execute(Query("roadmap"))

        assert result.iterations_used == 3
        assert slack.search_workspace.await_count == 3
        assert refiner.next_query.call_count == 3
        assert oracle.evaluate_workspace.call_count == 3

    @pytest.mark.asyncio
    async def test_custom_iteration_cap(self, slack, oracle, refiner):
        controller = EscalationController(slack, oracle, refiner, config=EscalationConfig(max_iterations=5))

        result = await controller.execute(Query("roadmap"))

        assert result.iterations_used == 5
        assert slack.search_workspace.await_count == 5

    @pytest.mark.asyncio
    async def test_stops_on_sufficiency(self, controller, slack, oracle):
        oracle.evaluate_workspace.side_effect = [INSUFFICIENT, SUFFICIENT]

        result = await controller.execute(Query("roadmap"))

        assert result.iterations_used == 2
        assert slack.search_workspace.await_count == 2
        assert result.context_text.endswith("the answer")
        assert "searched 2 iteration(s), found 1 messages" in result.context_text

    @pytest.mark.asyncio
    async def test_refiner_sees_previous_attempts_and_sample(self, controller, refiner):
        await controller.execute(Query("roadmap"))

        calls = refiner.next_query.call_args_list
        assert calls[0][0] == ("roadmap", [], [])
        assert calls[1][0][1] == ["refined 1"]
        assert calls[2][0][1] == ["refined 1", "refined 2"]
        assert [m.timestamp for m in calls[1][0][2]] == ["10.0"]

    @pytest.mark.asyncio
    async def test_refined_query_is_searched(self, controller, slack):
        await controller.execute(Query("roadmap"))

        searched = [c[0][0] for c in slack.search_workspace.await_args_list]
        assert searched == ["refined 1", "refined 2", "refined 3"]
        assert slack.search_workspace.await_args_list[0][0][1] == 100

    @pytest.mark.asyncio
    async def test_results_deduplicated_across_iterations(self, controller, slack):
        slack.search_workspace.side_effect = [
            [_match("1.0", text="first copy"), _match("2.0")],
            [_match("1.0", text="second copy"), _match("3.0")],
            [],
        ]

        result = await controller.execute(Query("roadmap"))

        assert result.message_count == 3

    @pytest.mark.asyncio
    async def test_private_and_mention_results_never_reach_oracle(self, controller, slack, oracle):
        slack.search_workspace.return_value = [
            _match("1.0", channel="C100", text="Q3 roadmap is payments"),
            _match("2.0", channel="G200", text="Q3 roadmap secret details"),
            _match("3.0", channel="C100", text="<@UBOT> what is the Q3 roadmap?"),
        ]

        result = await controller.execute(Query("Q3 roadmap"))

        assert result.message_count == 1
        batch = oracle.evaluate_workspace.call_args[0][1]
        assert "payments" in batch
        assert "secret" not in batch
        assert "<@UBOT>" not in batch

    @pytest.mark.asyncio
    async def test_empty_iteration_does_not_stop_loop(self, controller, slack, oracle):
        slack.search_workspace.side_effect = [[], [], [_match("1.0")]]
        oracle.evaluate_workspace.return_value = SUFFICIENT

        result = await controller.execute(Query("roadmap"))

        assert slack.search_workspace.await_count == 3
        assert result.message_count == 1
        assert oracle.evaluate_workspace.call_count == 1

    @pytest.mark.asyncio
    async def test_no_results_anywhere(self, controller, slack, oracle):
        slack.search_workspace.return_value = []

        result = await controller.execute(Query("Q3 roadmap"))

        assert result.message_count == 0
        assert result.level_reached == SearchLevel.WORKSPACE
        assert result.iterations_used == 3
        assert result.context_text == "No messages found for: Q3 roadmap"
        oracle.evaluate_workspace.assert_not_called()

    @pytest.mark.asyncio
    async def test_oracle_prompt_limited_to_ten_messages(self, controller, slack, oracle):
        slack.search_workspace.return_value = [_match(f"{i}.0") for i in range(15)]

        await controller.execute(Query("roadmap"))

        batch = oracle.evaluate_workspace.call_args[0][1]
        assert "[10]" in batch
        assert "[11]" not in batch
        assert oracle.evaluate_workspace.call_args[0][3] == 15


class TestFailureHandling:
    @pytest.mark.asyncio
    async def test_thread_fetch_failure_falls_through(self, controller, slack, oracle):
        slack.fetch_thread_history.side_effect = SlackApiError("conversations.replies", "thread_not_found")
        oracle.evaluate.return_value = SUFFICIENT

        result = await controller.execute(Query("launch", channel_id="C100", thread_ts="1.0"))

        assert result.level_reached == SearchLevel.CHANNEL

    @pytest.mark.asyncio
    async def test_channel_fetch_failure_escalates(self, controller, slack, oracle):
        slack.fetch_channel_history.side_effect = SlackApiError("conversations.history", "not_in_channel")

        result = await controller.execute(Query("launch", channel_id="C100"))

        assert result.level_reached == SearchLevel.WORKSPACE
        oracle.evaluate.assert_not_called()

    @pytest.mark.asyncio
    async def test_search_failure_moves_to_next_iteration(self, controller, slack, oracle):
        slack.search_workspace.side_effect = [SlackApiError("search.messages", "ratelimited"), [_match("1.0")], []]
        oracle.evaluate_workspace.return_value = SUFFICIENT

        result = await controller.execute(Query("roadmap"))

        assert result.message_count == 1
        assert result.iterations_used == 2

    @pytest.mark.asyncio
    async def test_final_iteration_failure_returns_accumulated(self, controller, slack, oracle):
        slack.search_workspace.side_effect = [
            [_match("1.0")],
            [_match("2.0")],
            SlackApiError("search.messages", "timeout"),
        ]

        result = await controller.execute(Query("roadmap"))

        assert result.message_count == 2
        assert result.iterations_used == 3
        assert "partial" in result.context_text

    @pytest.mark.asyncio
    async def test_failed_oracle_falls_back_to_raw_listing(self, controller, slack, oracle):
        oracle.evaluate_workspace.return_value = SufficiencyVerdict(False, "Error evaluating results: boom")

        result = await controller.execute(Query("roadmap"))

        assert "Error evaluating results" not in result.context_text
        assert "• [#general] alice: roadmap update" in result.context_text
        assert "https://acme.slack.com/archives/C100/p100" in result.context_text


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_event_stops_at_iteration_boundary(self, controller, slack):
        cancel = asyncio.Event()

        async def _search(query, limit):
            cancel.set()
            return [_match("10.0")]

        slack.search_workspace.side_effect = _search

        result = await controller.execute(Query("roadmap"), cancel_event=cancel)

        assert result.iterations_used == 1
        assert slack.search_workspace.await_count == 1
        assert result.message_count == 1

    @pytest.mark.asyncio
    async def test_cancel_before_loop_runs_nothing(self, controller, slack):
        cancel = asyncio.Event()
        cancel.set()

        result = await controller.execute(Query("roadmap"), cancel_event=cancel)

        assert result.iterations_used == 0
        assert result.context_text == "No messages found for: roadmap"
        slack.search_workspace.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_runs_do_not_share_state(self, controller, slack):
        async def _search(query, limit):
            await asyncio.sleep(0)
            return [_match(query.replace(" ", "") + ".0")]

        slack.search_workspace.side_effect = _search

        first, second = await asyncio.gather(
            controller.execute(Query("alpha")),
            controller.execute(Query("beta")),
        )

        assert first.message_count == 3
        assert second.message_count == 3
