# tests/test_learning.py
"""
Tests for LearningModule.

Covers:
- effectiveness scoring from reaction and outcome
- per-user metrics and the improvement trend
- threshold adjustments and the thirty-day feedback window
- success patterns and global patterns
- reaction-driven behaviour adjustments
"""

from datetime import timedelta

import pytest

from brainstorm_bot.intervention import LearningModule, calculate_effectiveness, reaction_from_rating
from brainstorm_bot.models import (
    ConversationOutcome,
    InterventionRecord,
    InterventionType,
    UserFeedback,
    UserReaction,
    UserReactionType,
)
from conftest import BASE_TIME, FakeClock

POSITIVE = UserReaction(type=UserReactionType.POSITIVE)
NEGATIVE = UserReaction(type=UserReactionType.NEGATIVE)
NEUTRAL = UserReaction(type=UserReactionType.NEUTRAL)


def _intervention(index=0, kind=InterventionType.TOPIC_REDIRECT, user_id="alice", trigger="Topic drift detected in chat"):
    return InterventionRecord(
        id=f"int-{index}",
        timestamp=BASE_TIME,
        type=kind,
        trigger=trigger,
        response="Shall we get back to the term sheet?",
        conversation_id="session-1",
        user_id=user_id,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def learning(clock):
    return LearningModule(clock=clock)


class TestEffectiveness:
    def test_positive_reaction_that_added_value(self):
        score = calculate_effectiveness(POSITIVE, ConversationOutcome.PROVIDED_VALUE)
        assert score.overall == 1.0
        assert score.relevance == 0.9
        assert score.tone == 0.8
        assert score.timing == 0.5

    def test_neutral_reaction_without_impact(self):
        score = calculate_effectiveness(NEUTRAL, ConversationOutcome.NO_IMPACT)
        assert (score.overall, score.timing, score.relevance, score.tone) == (0.5, 0.5, 0.5, 0.5)

    def test_scores_are_clamped(self):
        score = calculate_effectiveness(
            UserReaction(type=UserReactionType.DISMISSED), ConversationOutcome.NEGATIVE_IMPACT
        )
        assert score.overall == 0.0
        assert score.relevance == 0.0
        assert score.timing == 0.2

    def test_ratings_map_to_reactions(self):
        assert reaction_from_rating(UserFeedback(intervention_id="x", rating=5)).type == UserReactionType.POSITIVE
        assert reaction_from_rating(UserFeedback(intervention_id="x", rating=3)).type == UserReactionType.NEUTRAL
        reaction = reaction_from_rating(UserFeedback(intervention_id="x", rating=2, comment="Too chatty"))
        assert reaction.type == UserReactionType.NEGATIVE
        assert reaction.feedback == "Too chatty"


class TestRecording:
    """Recording outcomes and the per-user metrics they produce."""

    def test_returns_scored_copy(self, learning):
        original = _intervention()

        scored = learning.record_intervention_outcome(original, POSITIVE, ConversationOutcome.IMPROVED_FOCUS)

        assert scored.user_reaction == POSITIVE
        assert scored.effectiveness == 1.0
        assert original.effectiveness is None
        assert learning.has_feedback("alice") is True

    def test_user_metrics(self, learning, clock):
        learning.record_intervention_outcome(_intervention(0), POSITIVE, ConversationOutcome.PROVIDED_VALUE)
        learning.record_intervention_outcome(_intervention(1), NEUTRAL, ConversationOutcome.NO_IMPACT)
        learning.record_intervention_outcome(_intervention(2), NEGATIVE, ConversationOutcome.DISRUPTED_FLOW)

        metrics = learning.get_user_metrics("alice")

        assert metrics.total_interventions == 3
        assert metrics.success_rate == 0.3333
        assert metrics.average_effectiveness == 0.5
        assert metrics.user_satisfaction == 0.3333
        assert metrics.improvement_trend == 0.0
        assert metrics.last_updated == clock()

    def test_improvement_trend(self, learning):
        for index in range(10):
            learning.record_intervention_outcome(_intervention(index), NEGATIVE, ConversationOutcome.NEGATIVE_IMPACT)
        for index in range(10, 20):
            learning.record_intervention_outcome(_intervention(index), POSITIVE, ConversationOutcome.PROVIDED_VALUE)

        assert learning.get_user_metrics("alice").improvement_trend == 1.0

    def test_unknown_user_has_no_metrics(self, learning):
        assert learning.get_user_metrics("nobody") is None
        assert learning.has_feedback("nobody") is False


class TestThresholds:
    def test_defaults_for_new_user(self, learning):
        adjustments = learning.update_intervention_thresholds("alice")

        assert adjustments.intervention_threshold == 0.7
        assert adjustments.confidence_threshold == 0.6
        assert adjustments.type_preferences[InterventionType.FACT_CHECK] == 0.9
        assert adjustments.type_preferences[InterventionType.SUMMARY_OFFER] == 0.5

    def test_successful_user_gets_lower_thresholds(self, learning):
        for index in range(3):
            learning.record_intervention_outcome(_intervention(index), POSITIVE, ConversationOutcome.PROVIDED_VALUE)

        adjustments = learning.update_intervention_thresholds("alice")

        assert adjustments.intervention_threshold == 0.6
        assert adjustments.confidence_threshold == 0.5
        assert adjustments.type_preferences[InterventionType.TOPIC_REDIRECT] == 0.9
        assert adjustments.type_preferences[InterventionType.FACT_CHECK] == 0.7

    def test_unhappy_user_gets_higher_thresholds(self, learning):
        learning.record_intervention_outcome(_intervention(), NEGATIVE, ConversationOutcome.DISRUPTED_FLOW)

        adjustments = learning.update_intervention_thresholds("alice")

        assert adjustments.intervention_threshold == 0.9
        assert adjustments.confidence_threshold == 0.8
        assert adjustments.type_preferences[InterventionType.TOPIC_REDIRECT] == 0.3

    def test_old_feedback_is_ignored(self, learning, clock):
        learning.record_intervention_outcome(_intervention(), NEGATIVE, ConversationOutcome.DISRUPTED_FLOW)
        clock.advance(days=31)

        adjustments = learning.update_intervention_thresholds("alice")

        assert adjustments.intervention_threshold == 0.7
        assert adjustments.confidence_threshold == 0.6
        assert set(adjustments.type_preferences.values()) == {0.7}


class TestPatterns:
    """Success patterns across users and the running global patterns."""

    def test_success_pattern_needs_three_successes(self, learning):
        for index, user in enumerate(["alice", "bob", "carol"]):
            learning.record_intervention_outcome(
                _intervention(index, user_id=user), POSITIVE, ConversationOutcome.PROVIDED_VALUE
            )
        for index in range(3, 5):
            learning.record_intervention_outcome(
                _intervention(index, kind=InterventionType.FACT_CHECK, trigger="Unverified claim about revenue"),
                POSITIVE,
                ConversationOutcome.PROVIDED_VALUE,
            )

        patterns = learning.identify_success_patterns()

        assert len(patterns) == 1
        pattern = patterns[0]
        assert pattern.pattern == "Topic drift detected"
        assert pattern.success_rate == 1.0
        assert pattern.intervention_types == [InterventionType.TOPIC_REDIRECT]
        assert pattern.user_types == ["alice", "bob", "carol"]
        assert pattern.confidence == 0.72

    def test_mostly_failing_context_is_not_a_pattern(self, learning):
        for index in range(3):
            learning.record_intervention_outcome(_intervention(index), POSITIVE, ConversationOutcome.PROVIDED_VALUE)
        for index in range(3, 6):
            learning.record_intervention_outcome(_intervention(index), NEGATIVE, ConversationOutcome.DISRUPTED_FLOW)

        assert learning.identify_success_patterns() == []

    def test_global_pattern_blends_outcomes(self, learning):
        learning.record_intervention_outcome(_intervention(0), POSITIVE, ConversationOutcome.PROVIDED_VALUE)
        learning.record_intervention_outcome(
            _intervention(1, user_id="bob"), NEGATIVE, ConversationOutcome.DISRUPTED_FLOW
        )

        patterns = learning.get_global_patterns()

        assert len(patterns) == 1
        assert patterns[0].pattern == "topic_redirect_Topic drift detected"
        assert patterns[0].success_rate == 0.5
        assert patterns[0].confidence == 0.2
        assert patterns[0].user_types == ["alice", "bob"]

    def test_global_patterns_are_copies(self, learning):
        learning.record_intervention_outcome(_intervention(), POSITIVE, ConversationOutcome.PROVIDED_VALUE)

        learning.get_global_patterns()[0].user_types.append("mallory")

        assert learning.get_global_patterns()[0].user_types == ["alice"]


class TestBehaviour:
    """Adjustments from a single reaction."""

    def test_positive_reaction_prefers_successful_types(self, learning):
        history = [
            learning.record_intervention_outcome(
                _intervention(0, kind=InterventionType.FACT_CHECK), POSITIVE, ConversationOutcome.PROVIDED_VALUE
            ),
            learning.record_intervention_outcome(
                _intervention(1, kind=InterventionType.FACT_CHECK), POSITIVE, ConversationOutcome.PROVIDED_VALUE
            ),
            learning.record_intervention_outcome(_intervention(2), POSITIVE, ConversationOutcome.IMPROVED_FOCUS),
            learning.record_intervention_outcome(
                _intervention(3, kind=InterventionType.SUMMARY_OFFER), NEGATIVE, ConversationOutcome.DISRUPTED_FLOW
            ),
        ]

        adjustment = learning.adapt_behavior_from_reaction(POSITIVE, history)

        assert adjustment.frequency_multiplier == 1.2
        assert adjustment.intervention_threshold == 0.6
        assert adjustment.preferred_types == [InterventionType.FACT_CHECK, InterventionType.TOPIC_REDIRECT]

    def test_negative_reaction_backs_off(self, learning):
        adjustment = learning.adapt_behavior_from_reaction(NEGATIVE, [])

        assert adjustment.frequency_multiplier == 0.5
        assert adjustment.intervention_threshold == 0.9
        assert adjustment.preferred_types == [InterventionType.CLARIFICATION_REQUEST]

    def test_ignored_reaction_keeps_high_impact_types(self, learning):
        adjustment = learning.adapt_behavior_from_reaction(UserReaction(type=UserReactionType.IGNORED), [])

        assert adjustment.frequency_multiplier == 0.8
        assert InterventionType.FACT_CHECK in adjustment.preferred_types

    def test_neutral_reaction_changes_nothing(self, learning):
        adjustment = learning.adapt_behavior_from_reaction(NEUTRAL, [])

        assert adjustment.frequency_multiplier == 1.0
        assert adjustment.intervention_threshold == 0.7
        assert adjustment.preferred_types == []
        assert adjustment.reasoning == "Adapted based on neutral feedback with 1.0 confidence"
