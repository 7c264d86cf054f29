# tests/test_bot.py
"""
Tests for ProactiveBrainstormBot.

Covers:
- summons answered and activity commands honoured
- the off-topic scenario ending in a topic redirect
- cooldown after an intervention and degradation gates on proactive ones
- session routing by thread
- metrics, status and health-driven degradation levels
- periodic background health checks
- feedback ratings and the learning module
- fatal errors and draining on stop
"""

import asyncio
from datetime import timedelta

import pytest

from brainstorm_bot import ProactiveBrainstormBot
from brainstorm_bot.bot import DEFAULT_SESSION_ID
from brainstorm_bot.config import BotSettings
from brainstorm_bot.exceptions import AuthenticationError
from brainstorm_bot.models import (
    ActivityLevel,
    ChatMessage,
    ConversationOutcome,
    DegradationLevel,
    InterventionType,
    MessageMetadata,
    UserFeedback,
    UserReactionType,
)
from brainstorm_bot.summon.response_handler import ACTIVITY_ACKNOWLEDGMENTS
from conftest import BASE_TIME, FakeClock, ScriptedCompletionClient, make_message

CONVERSATION = [
    ("alice", "Let's review the Series A terms for the fintech startup."),
    ("bob", "Their ARR is growing 20% month over month."),
    ("alice", "Did anyone watch the game last night?"),
    ("bob", "The weather this weekend looks great for a barbecue."),
]


def _message(index, user, content, spacing=30):
    return make_message(
        content, user_id=user, message_id=f"m{index}", timestamp=BASE_TIME + timedelta(seconds=spacing * index)
    )


@pytest.fixture
def clock():
    return FakeClock(BASE_TIME + timedelta(minutes=5))


@pytest.fixture
def client():
    return ScriptedCompletionClient()


@pytest.fixture
async def bot(settings, client, clock):
    bot = ProactiveBrainstormBot(settings, completion_client=client, clock=clock)
    await bot.start()
    yield bot
    if bot.is_running:
        await bot.stop()


async def _play(bot, conversation=CONVERSATION, session_id=None):
    replies = []
    for index, (user, content) in enumerate(conversation):
        replies.append(await bot.handle_message(_message(index, user, content), session_id))
    return replies


class TestSummons:
    """Direct requests are answered right away."""

    async def test_mention_is_answered(self, bot):
        reply = await bot.handle_message(make_message("@bot What is the market size?"))

        assert reply.startswith("I'd be happy to help answer that.")
        assert bot.chat.sent_messages[0].content == reply
        assert bot.chat.sent_messages[0].channel_id == DEFAULT_SESSION_ID
        assert bot.get_metrics().summons_handled == 1

    async def test_quiet_command(self, bot):
        reply = await bot.handle_message(make_message("Bot, be quiet for a while", user_id="bob"))

        assert reply == ACTIVITY_ACKNOWLEDGMENTS[ActivityLevel.QUIET]
        assert bot.manual_control.get_activity_level("bob") == ActivityLevel.QUIET


class TestProactiveInterventions:
    """The bot steps in when the conversation drifts."""

    async def test_off_topic_streak_triggers_redirect(self, bot):
        replies = await _play(bot)

        assert replies[:3] == [None, None, None]
        assert replies[3] == "Let's look at the unit economics next."
        assert [m.content for m in bot.chat.sent_messages] == [replies[3]]

        context = bot.get_session(DEFAULT_SESSION_ID).get_context()
        assert len(context.intervention_history) == 1
        record = context.intervention_history[0]
        assert record.type == InterventionType.TOPIC_REDIRECT
        assert record.user_id == "bob"
        assert record.id.startswith("int_")

    async def test_redirect_prompt_names_original_topic(self, bot, client):
        await _play(bot)

        prompt, _ = client.generate_calls[-1]
        assert prompt.startswith("Generate a polite suggestion to redirect")
        assert "Topic drift detected" in prompt

    async def test_single_off_topic_message_is_tolerated(self, bot):
        replies = await _play(bot, CONVERSATION[:3])
        assert replies == [None, None, None]
        assert bot.chat.sent_messages == []

    async def test_cooldown_follows_last_intervention(self, client, clock):
        settings = BotSettings(
            gemini_api_key="test-key", intervention_cooldown_ms=600000, max_retries=0, health_check_interval_seconds=0
        )
        bot = ProactiveBrainstormBot(settings, completion_client=client, clock=clock)
        replies = await _play(bot)

        evaluated = []
        analyze_flow = bot.context_analyzer.analyze_conversation_flow

        async def spy(messages):
            evaluated.append(len(messages))
            return await analyze_flow(messages)

        bot.context_analyzer.analyze_conversation_flow = spy
        clock.advance(minutes=5)
        follow_up = await bot.handle_message(_message(4, "alice", "Anyone tried the new pizza place downtown?"))

        assert replies[3] == "Let's look at the unit economics next."
        assert follow_up is None
        assert evaluated == []
        assert len(client.generate_calls) == 1

    async def test_default_cooldown_with_messages_seconds_apart(self, client):
        settings = BotSettings(gemini_api_key="test-key", max_retries=0, health_check_interval_seconds=0)
        clock = FakeClock(BASE_TIME)
        bot = ProactiveBrainstormBot(settings, completion_client=client, clock=clock)

        replies = []
        for index, (user, content) in enumerate(CONVERSATION):
            clock.advance(seconds=3)
            replies.append(await bot.handle_message(_message(index, user, content, spacing=3)))

        assert settings.intervention_cooldown_ms == 5000
        assert replies[:3] == [None, None, None]
        assert replies[3] == "Let's look at the unit economics next."

    async def test_no_proactive_interventions_when_degraded(self, bot):
        bot.degradation.set_degradation_level(DegradationLevel.MODERATE)

        replies = await _play(bot)

        assert replies == [None, None, None, None]
        assert bot.get_metrics().interventions_made == 0

    async def test_summons_still_work_when_degraded(self, bot):
        bot.degradation.set_degradation_level(DegradationLevel.MODERATE)
        assert await bot.handle_message(make_message("@bot What is the market size?")) is not None

    async def test_summon_during_outage_ignores_cached_scores(self, settings, clock):
        client = ScriptedCompletionClient(default="0.9")
        bot = ProactiveBrainstormBot(settings, completion_client=client, clock=clock)
        await bot.handle_message(_message(0, "alice", "Revenue grew 40% last quarter."))
        client.outage = True

        reply = await bot.handle_message(make_message("@bot What is the market size?", message_id="m1"))

        assert reply is not None
        assert "0.9" not in reply


class TestSessions:
    async def test_thread_id_selects_session(self, bot):
        message = ChatMessage(
            id="t1",
            user_id="alice",
            content="@bot What is the market size?",
            metadata=MessageMetadata(thread_id="deal-42"),
        )

        await bot.handle_message(message)

        assert bot.get_session("deal-42") is not None
        assert bot.get_session(DEFAULT_SESSION_ID) is None
        assert bot.chat.sent_messages[0].channel_id == "deal-42"

    async def test_explicit_session(self, bot):
        bot.create_session("board")
        await _play(bot, CONVERSATION[:1], session_id="board")

        assert len(bot.get_session("board").get_context().message_history) == 1
        bot.end_session("board")
        assert bot.get_session("board") is None


class TestMetricsAndStatus:
    """Counters exposed for monitoring."""

    async def test_metrics_after_conversation(self, bot, clock):
        await _play(bot)
        clock.advance(seconds=30)

        metrics = bot.get_metrics()

        assert metrics.messages_processed == 4
        assert metrics.interventions_made == 1
        assert metrics.interventions_by_type[InterventionType.TOPIC_REDIRECT.value] == 1
        assert metrics.error_count == 0
        assert metrics.average_response_time >= 0.0
        assert metrics.uptime == 30.0

    async def test_status(self, bot):
        await _play(bot, CONVERSATION[:1])

        status = bot.get_status()

        assert status.is_running is True
        assert status.active_conversations == 1
        assert status.degradation_level == DegradationLevel.NONE

    async def test_send_failure_is_counted_not_raised(self, settings, client, clock):
        bot = ProactiveBrainstormBot(settings, completion_client=client, clock=clock)

        reply = await bot.handle_message(make_message("@bot What is the market size?"))

        assert reply is None
        assert bot.get_metrics().error_count == 1


class TestHealth:
    """Health checks drive the degradation level."""

    async def test_healthy(self, bot):
        assert await bot.check_health() == DegradationLevel.NONE

    async def test_unhealthy_service(self, settings, clock):
        bot = ProactiveBrainstormBot(settings, completion_client=ScriptedCompletionClient(healthy=False), clock=clock)

        assert await bot.check_health() == DegradationLevel.SEVERE
        assert bot.degradation.is_capability_available("proactive_interventions") is False

    async def test_offline(self, bot):
        bot.client.enable_offline_mode()
        assert await bot.check_health() == DegradationLevel.OFFLINE

    async def test_periodic_checks_update_degradation(self, clock):
        settings = BotSettings(gemini_api_key="test-key", max_retries=0, health_check_interval_seconds=0.01)
        client = ScriptedCompletionClient(healthy=False)
        bot = ProactiveBrainstormBot(settings, completion_client=client, clock=clock)
        await bot.start()

        while bot.degradation.level != DegradationLevel.SEVERE:
            await asyncio.sleep(0.01)
        await bot.stop()

        assert client.health_calls >= 1
        assert bot._health_task is None

    async def test_periodic_checks_disabled(self, bot, client):
        await asyncio.sleep(0.02)
        assert bot._health_task is None
        assert client.health_calls == 0

    async def test_failed_check_keeps_task_running(self, client, clock):
        settings = BotSettings(gemini_api_key="test-key", max_retries=0, health_check_interval_seconds=0.01)
        bot = ProactiveBrainstormBot(settings, completion_client=client, clock=clock)
        attempts = []

        async def failing_check():
            attempts.append(1)
            raise RuntimeError("health endpoint down")

        bot.check_health = failing_check
        await bot.start()

        while len(attempts) < 2:
            await asyncio.sleep(0.01)
        task = bot._health_task
        await bot.stop()

        assert task.cancelled()


class TestFeedback:
    """Ratings of the bot's interventions."""

    async def test_rating_is_learned_from(self, bot):
        await _play(bot)
        intervention = bot.get_session(DEFAULT_SESSION_ID).get_context().intervention_history[0]

        adjustment = bot.record_feedback(
            DEFAULT_SESSION_ID,
            UserFeedback(intervention_id=intervention.id, rating=5),
            ConversationOutcome.PROVIDED_VALUE,
        )

        stored = bot.get_session(DEFAULT_SESSION_ID).get_context().intervention_history[0]
        assert stored.user_reaction.type == UserReactionType.POSITIVE
        assert stored.effectiveness == 1.0
        assert adjustment.intervention_threshold == 0.4
        assert adjustment.preferred_types == [InterventionType.TOPIC_REDIRECT]
        assert bot.get_learning_metrics("bob").total_interventions == 1

    async def test_learning_disabled(self, client, clock):
        settings = BotSettings(
            gemini_api_key="test-key",
            intervention_cooldown_ms=0,
            max_retries=0,
            health_check_interval_seconds=0,
            enable_learning=False,
        )
        bot = ProactiveBrainstormBot(settings, completion_client=client, clock=clock)
        await _play(bot)
        intervention = bot.get_session(DEFAULT_SESSION_ID).get_context().intervention_history[0]

        adjustment = bot.record_feedback(DEFAULT_SESSION_ID, UserFeedback(intervention_id=intervention.id, rating=1))

        stored = bot.get_session(DEFAULT_SESSION_ID).get_context().intervention_history[0]
        assert bot.learning is None
        assert stored.user_reaction.type == UserReactionType.NEGATIVE
        assert stored.effectiveness is None
        assert "learned" not in adjustment.reasoning
        assert bot.get_learning_metrics("bob") is None

    async def test_unknown_intervention(self, bot):
        adjustment = bot.record_feedback("nowhere", UserFeedback(intervention_id="int_missing", rating=4))

        assert adjustment.reasoning == "Intervention not found in history"


class TestLifecycle:
    """Start, stop and fatal errors."""

    async def test_messages_flow_through_chat(self, bot):
        for user, content in CONVERSATION:
            bot.chat.simulate_message(user, content)

        await bot.wait_until_idle()

        assert bot.get_metrics().messages_processed == 4

    async def test_stop_drains_in_flight_messages(self, bot):
        bot.chat.simulate_message("alice", "@bot What is the market size?")
        while not bot._tasks:
            await asyncio.sleep(0)

        await bot.stop()

        assert bot.is_running is False
        assert bot.get_metrics().messages_processed == 1
        assert bot.get_status().active_conversations == 0

    async def test_messages_after_stop_are_dropped(self, bot):
        await bot.stop()
        bot._on_message(make_message("hello"))
        assert bot._tasks == set()

    async def test_authentication_error_is_fatal(self, settings, clock):
        client = ScriptedCompletionClient(default=AuthenticationError("bad key"))
        bot = ProactiveBrainstormBot(settings, completion_client=client, clock=clock)
        await bot.start()

        bot.chat.simulate_message("alice", "Revenue grew 40% last quarter")
        await asyncio.wait_for(bot.wait_stopped(), timeout=5)
        await bot.stop()

        assert isinstance(bot.fatal_error, AuthenticationError)
        assert bot.get_metrics().error_count == 1

    async def test_authentication_error_propagates_from_handle_message(self, settings, clock):
        client = ScriptedCompletionClient(default=AuthenticationError("bad key"))
        bot = ProactiveBrainstormBot(settings, completion_client=client, clock=clock)

        with pytest.raises(AuthenticationError):
            await bot.handle_message(make_message("Revenue grew 40% last quarter"))
