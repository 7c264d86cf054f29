# tests/test_decision_engine.py
"""
Tests for InterventionDecisionEngine.

Covers:
- each intervention scenario and the off-topic redirect signal
- rate limits and the manual-control override
- timing strategies
- feedback-driven behaviour adjustments, static and learned
"""

from datetime import timedelta

import pytest

from brainstorm_bot.config import BotSettings
from brainstorm_bot.intervention import (
    InterventionDecisionEngine,
    InterventionThresholds,
    LearningModule,
    ManualControlManager,
    calculate_priority,
)
from brainstorm_bot.intervention.decision_engine import preferred_types_from_reactions
from brainstorm_bot.models import (
    ActivityLevel,
    ConversationOutcome,
    ConversationState,
    FlowAnalysis,
    InterventionDecision,
    InterventionFrequency,
    InterventionRecord,
    InterventionType,
    Priority,
    UserFeedback,
    UserPreferences,
    UserReaction,
    UserReactionType,
)
from conftest import BASE_TIME, FakeClock, make_context, make_processed

OFF_TOPIC_CHAT = [
    "Let's review the terms",
    "Sounds good",
    "Did anyone watch the game last night?",
    "The weather looks great this weekend.",
]


def _context(texts, interventions=None):
    messages = [
        make_processed(text, user_id="alice" if i % 2 == 0 else "bob", message_id=f"m{i}") for i, text in enumerate(texts)
    ]
    return make_context(messages, intervention_history=interventions or [])


def _record(kind, timestamp, record_id="int-1", reaction=None):
    return InterventionRecord(
        id=record_id,
        timestamp=timestamp,
        type=kind,
        trigger="test",
        response="test response",
        conversation_id="session-1",
        user_reaction=reaction,
    )


@pytest.fixture
def clock():
    clock = FakeClock()
    clock.advance(minutes=1)
    return clock


@pytest.fixture
def engine(clock):
    return InterventionDecisionEngine(clock=clock)


class TestScenarios:
    """Which intervention wins for a given conversation."""

    def test_two_off_topic_messages_trigger_redirect(self, engine):
        analysis = FlowAnalysis(messages_off_topic=2, intervention_recommended=True)

        decision = engine.should_intervene(_context(OFF_TOPIC_CHAT), analysis, UserPreferences())

        assert decision.should_respond is True
        assert decision.intervention_type == InterventionType.TOPIC_REDIRECT
        assert decision.confidence == pytest.approx(0.84)
        assert decision.priority == Priority.HIGH

    def test_single_off_topic_message_is_ignored(self, engine):
        analysis = FlowAnalysis(messages_off_topic=1, intervention_recommended=False)

        decision = engine.should_intervene(_context(OFF_TOPIC_CHAT), analysis, UserPreferences())

        assert decision.should_respond is False
        assert decision.reasoning == "No intervention scenarios identified"

    def test_unstable_topic_triggers_redirect(self, engine):
        decision = engine.should_intervene(_context(OFF_TOPIC_CHAT), FlowAnalysis(topic_stability=0.4), UserPreferences())
        assert decision.intervention_type == InterventionType.TOPIC_REDIRECT

    def test_redirect_needs_three_messages(self, engine):
        analysis = FlowAnalysis(messages_off_topic=2, intervention_recommended=True)
        decision = engine.should_intervene(_context(OFF_TOPIC_CHAT[-2:]), analysis, UserPreferences())
        assert decision.should_respond is False

    def test_information_request(self, engine):
        decision = engine.should_intervene(
            _context(["What is the company valuation?"]), FlowAnalysis(), UserPreferences()
        )
        assert decision.intervention_type == InterventionType.INFORMATION_PROVIDE

    def test_uncertain_claim_triggers_fact_check(self, engine):
        decision = engine.should_intervene(
            _context(["I heard that according to reports the market is growing"]), FlowAnalysis(), UserPreferences()
        )
        assert decision.intervention_type == InterventionType.FACT_CHECK
        assert decision.priority == Priority.HIGH

    def test_confusion_triggers_clarification(self, engine):
        decision = engine.should_intervene(
            _context(["I'm confused, can you clarify?"]), FlowAnalysis(), UserPreferences()
        )
        assert decision.intervention_type == InterventionType.CLARIFICATION_REQUEST
        assert decision.priority == Priority.MEDIUM

    def test_quiet_conversation_needs_nothing(self, engine):
        decision = engine.should_intervene(_context(["Sounds good"]), FlowAnalysis(), UserPreferences())
        assert decision.should_respond is False

    def test_long_conversation_offers_summary(self, clock):
        clock.advance(minutes=40)
        engine = InterventionDecisionEngine(clock=clock)
        decision = engine.should_intervene(_context(["Sounds good"] * 25), FlowAnalysis(), UserPreferences())
        assert decision.intervention_type == InterventionType.SUMMARY_OFFER

    def test_confidence_threshold(self, clock):
        engine = InterventionDecisionEngine(InterventionThresholds(confidence_threshold=0.95), clock=clock)
        analysis = FlowAnalysis(messages_off_topic=2, intervention_recommended=True)

        decision = engine.should_intervene(_context(OFF_TOPIC_CHAT), analysis, UserPreferences())

        assert decision.should_respond is False
        assert decision.reasoning == "No intervention meets confidence threshold"


class TestLimitsAndOverrides:
    """Gates applied around scenario scoring."""

    def test_too_soon_after_last_intervention(self, engine, clock):
        history = [_record(InterventionType.FACT_CHECK, clock() - timedelta(seconds=30))]
        analysis = FlowAnalysis(messages_off_topic=2, intervention_recommended=True)

        decision = engine.should_intervene(_context(OFF_TOPIC_CHAT, history), analysis, UserPreferences())

        assert decision.reasoning == "Too soon since last intervention"

    def test_hourly_limit(self, engine):
        preferences = UserPreferences(max_interventions_per_hour=1, intervention_frequency=InterventionFrequency.MINIMAL)
        decision = engine.should_intervene(_context(OFF_TOPIC_CHAT), FlowAnalysis(), preferences)
        assert decision.reasoning == "Intervention limit exceeded"

    def test_recent_redirect_dampens_score(self, clock):
        engine = InterventionDecisionEngine(min_time_between_interventions=timedelta(0), clock=clock)
        history = [_record(InterventionType.TOPIC_REDIRECT, clock() - timedelta(minutes=5))]
        analysis = FlowAnalysis(messages_off_topic=2, intervention_recommended=True)

        decision = engine.should_intervene(_context(OFF_TOPIC_CHAT, history), analysis, UserPreferences())

        assert decision.should_respond is False

    def test_silent_primary_participant_blocks(self, clock):
        manual = ManualControlManager(clock=clock)
        manual.set_activity_level("alice", ActivityLevel.SILENT)
        engine = InterventionDecisionEngine(manual_control=manual, clock=clock)
        analysis = FlowAnalysis(messages_off_topic=2, intervention_recommended=True)

        decision = engine.should_intervene(_context(OFF_TOPIC_CHAT), analysis, UserPreferences())

        assert decision.should_respond is False
        assert decision.reasoning == "Manual control override: activity level restriction"

    def test_thresholds_from_settings(self):
        settings = BotSettings(topic_drift_threshold=0.3, information_gap_threshold=0.9, fact_check_threshold=0.2)
        thresholds = InterventionThresholds.from_settings(settings)
        assert thresholds.topic_drift_threshold == 0.3
        assert thresholds.information_gap_threshold == 0.9
        assert thresholds.fact_check_threshold == 0.2


class TestPriorityAndTiming:
    def test_calculate_priority(self):
        assert calculate_priority(0.95, InterventionType.SUMMARY_OFFER) == Priority.URGENT
        assert calculate_priority(0.55, InterventionType.FACT_CHECK) == Priority.HIGH
        assert calculate_priority(0.55, InterventionType.SUMMARY_OFFER) == Priority.MEDIUM
        assert calculate_priority(0.3, InterventionType.CLARIFICATION_REQUEST) == Priority.LOW

    def test_timing_for_high_priority_redirect(self, engine):
        decision = InterventionDecision(
            should_respond=True,
            intervention_type=InterventionType.TOPIC_REDIRECT,
            confidence=0.8,
            priority=Priority.HIGH,
        )
        timing = engine.calculate_intervention_timing(decision, ConversationState(pause_duration_ms=10000))

        assert timing.delay_seconds == 3
        assert timing.wait_for_pause is False
        assert timing.interrupt_threshold == pytest.approx(0.56)

    def test_urgent_never_waits(self, engine):
        decision = InterventionDecision(
            should_respond=True, intervention_type=InterventionType.FACT_CHECK, confidence=0.95, priority=Priority.URGENT
        )
        timing = engine.calculate_intervention_timing(decision, ConversationState(pause_duration_ms=0))

        assert timing.delay_seconds == 1
        assert timing.wait_for_pause is False

    def test_active_conversation_waits_for_pause(self, engine):
        decision = InterventionDecision(
            should_respond=True, intervention_type=InterventionType.SUMMARY_OFFER, confidence=0.6, priority=Priority.MEDIUM
        )
        timing = engine.calculate_intervention_timing(decision, ConversationState(pause_duration_ms=1000))

        assert timing.delay_seconds == 12
        assert timing.wait_for_pause is True

    def test_no_intervention_timing(self, engine):
        timing = engine.calculate_intervention_timing(
            InterventionDecision(should_respond=False), ConversationState()
        )
        assert timing.delay_seconds == 0
        assert timing.reasoning == "No intervention needed"


class TestFeedback:
    """Behaviour adjustment from ratings."""

    def _history(self):
        return [_record(InterventionType.FACT_CHECK, BASE_TIME)]

    def test_high_rating_lowers_threshold(self, engine):
        adjustment = engine.adapt_behavior_from_feedback(UserFeedback(intervention_id="int-1", rating=5), self._history())
        assert adjustment.intervention_threshold == 0.4
        assert adjustment.frequency_multiplier == 1.3

    def test_low_rating_raises_threshold(self, engine):
        adjustment = engine.adapt_behavior_from_feedback(UserFeedback(intervention_id="int-1", rating=1), self._history())
        assert adjustment.intervention_threshold == 0.6
        assert adjustment.frequency_multiplier == 0.7

    def test_unknown_intervention(self, engine):
        adjustment = engine.adapt_behavior_from_feedback(UserFeedback(intervention_id="missing", rating=5), [])
        assert adjustment.reasoning == "Intervention not found in history"
        assert adjustment.intervention_threshold == 0.5

    def test_preferred_types_from_reactions(self):
        history = [
            _record(InterventionType.FACT_CHECK, BASE_TIME, "a", UserReaction(type=UserReactionType.POSITIVE)),
            _record(InterventionType.SUMMARY_OFFER, BASE_TIME, "b", UserReaction(type=UserReactionType.NEGATIVE)),
        ]
        assert preferred_types_from_reactions(history) == [InterventionType.FACT_CHECK]

    def test_preferred_types_default_to_all(self):
        assert preferred_types_from_reactions([]) == list(InterventionType)


class TestLearnedFeedback:
    """Learned outcomes replace the static threshold and type preferences."""

    def _engine(self, learning):
        return InterventionDecisionEngine(InterventionThresholds(), learning=learning)

    def test_learned_threshold_after_bad_outcome(self):
        learning = LearningModule(clock=FakeClock())
        record = _record(InterventionType.FACT_CHECK, BASE_TIME)
        learning.record_intervention_outcome(
            record, UserReaction(type=UserReactionType.NEGATIVE), ConversationOutcome.DISRUPTED_FLOW
        )

        adjustment = self._engine(learning).adapt_behavior_from_feedback(
            UserFeedback(intervention_id="int-1", rating=1), [record]
        )

        assert adjustment.intervention_threshold == 0.9
        assert adjustment.reasoning.endswith("using learned thresholds")

    def test_learned_type_preferences(self):
        learning = LearningModule(clock=FakeClock())
        record = _record(InterventionType.FACT_CHECK, BASE_TIME)
        learning.record_intervention_outcome(
            record, UserReaction(type=UserReactionType.POSITIVE), ConversationOutcome.PROVIDED_VALUE
        )

        adjustment = self._engine(learning).adapt_behavior_from_feedback(
            UserFeedback(intervention_id="int-1", rating=5), [record]
        )

        assert adjustment.intervention_threshold == 0.4
        assert adjustment.preferred_types == [InterventionType.FACT_CHECK]

    def test_no_outcomes_for_user_uses_static_thresholds(self):
        engine = self._engine(LearningModule(clock=FakeClock()))

        adjustment = engine.adapt_behavior_from_feedback(
            UserFeedback(intervention_id="int-1", rating=1), [_record(InterventionType.FACT_CHECK, BASE_TIME)]
        )

        assert adjustment.intervention_threshold == 0.6
        assert "learned" not in adjustment.reasoning
