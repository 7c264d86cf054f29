# brainstorm_bot/intervention/decision_engine.py
"""
Intervention decision engine.

Given the session context and a flow analysis, scores five intervention
scenarios and returns the best one if it clears the confidence threshold.
Rate limits (hourly cap, minimum gap) are checked first; a manual-control
override, when configured, is consulted last.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, NamedTuple, Optional

from pydantic import BaseModel, Field

from ..config import BotSettings
from ..models import (
    BehaviorAdjustment,
    ConversationContext,
    ConversationState,
    FlowAnalysis,
    InterventionDecision,
    InterventionFrequency,
    InterventionRecord,
    InterventionType,
    MomentumDirection,
    Priority,
    UserFeedback,
    UserPreferences,
    UserReactionType,
    TimingStrategy,
    utcnow,
)
from .learning import DEFAULT_TYPE_PREFERENCE, LearningModule
from .manual_control import ManualControlManager

logger = logging.getLogger(__name__)

MAX_INTERVENTIONS_PER_HOUR = 10
MIN_TIME_BETWEEN_INTERVENTIONS = timedelta(minutes=2)

FREQUENCY_FACTORS = {
    InterventionFrequency.MINIMAL: 0.3,
    InterventionFrequency.MODERATE: 0.6,
    InterventionFrequency.ACTIVE: 1.0,
    InterventionFrequency.VERY_ACTIVE: 1.5,
}

BASE_DELAY_SECONDS = {
    InterventionType.FACT_CHECK: 3,
    InterventionType.TOPIC_REDIRECT: 5,
    InterventionType.CLARIFICATION_REQUEST: 2,
    InterventionType.INFORMATION_PROVIDE: 4,
    InterventionType.SUMMARY_OFFER: 8,
}

PRIORITY_DELAY_MULTIPLIERS = {
    Priority.URGENT: 0.3,
    Priority.HIGH: 0.6,
    Priority.MEDIUM: 1.0,
    Priority.LOW: 1.5,
}

INTERRUPT_THRESHOLDS = {
    Priority.URGENT: 0.9,
    Priority.HIGH: 0.7,
    Priority.MEDIUM: 0.5,
    Priority.LOW: 0.3,
}

INFORMATION_KEYWORDS = [
    "company", "valuation", "revenue", "market size", "competition",
    "growth rate", "metrics", "data", "numbers", "statistics",
]
QUESTION_WORDS = ["what", "how", "why", "when", "where", "which"]
INFORMATION_UNCERTAINTY = ["maybe", "perhaps", "i think", "probably", "not sure"]

CLAIM_INDICATORS = [
    "according to", "studies show", "data shows", "research indicates",
    "statistics", "percent", "%", "million", "billion", "growth of",
    "market is", "industry", "competitors",
]
CLAIM_UNCERTAINTY = [
    "i heard", "i think", "probably", "maybe", "not sure",
    "someone told me", "i believe",
]
CONTRADICTION_MARKERS = ["but", "however", "actually"]

CONFUSION_INDICATORS = [
    "confused", "unclear", "what do you mean", "can you clarify",
    "i don't understand", "not following", "lost me", "explain",
]

OFF_TOPIC_DRIFT_PER_MESSAGE = 0.35
CLARIFICATION_THRESHOLD = 0.4
SUMMARY_THRESHOLD = 0.5
POSITIVE_REACTION_RATING = 5
NEGATIVE_REACTION_RATING = 1
PREFERRED_TYPE_MIN_RATING = 3.5


class InterventionThresholds(BaseModel):
    topic_drift_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    information_gap_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    fact_check_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    engagement_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    momentum_threshold: float = Field(default=0.2, ge=0.0, le=1.0)
    confidence_threshold: float = Field(default=0.5, ge=0.0, le=1.0)

    @classmethod
    def from_settings(cls, settings: BotSettings) -> InterventionThresholds:
        return cls(
            topic_drift_threshold=settings.topic_drift_threshold,
            information_gap_threshold=settings.information_gap_threshold,
            fact_check_threshold=settings.fact_check_threshold,
        )


class ScenarioScore(NamedTuple):
    type: InterventionType
    score: float
    reasoning: str


def _contains_any(text: str, needles: list[str]) -> bool:
    return any(needle in text for needle in needles)


def no_intervention(reasoning: str) -> InterventionDecision:
    return InterventionDecision(
        should_respond=False,
        intervention_type=InterventionType.CLARIFICATION_REQUEST,
        confidence=0.0,
        reasoning=reasoning,
        priority=Priority.LOW,
    )


def calculate_priority(score: float, intervention_type: InterventionType) -> Priority:
    if score >= 0.9:
        return Priority.URGENT
    if score >= 0.7 or intervention_type in (InterventionType.FACT_CHECK, InterventionType.TOPIC_REDIRECT):
        return Priority.HIGH
    if score >= 0.5:
        return Priority.MEDIUM
    return Priority.LOW


class InterventionDecisionEngine:
    """Decides whether, what and when the bot should say something unprompted."""

    def __init__(
        self,
        thresholds: Optional[InterventionThresholds] = None,
        manual_control: Optional[ManualControlManager] = None,
        max_interventions_per_hour: int = MAX_INTERVENTIONS_PER_HOUR,
        min_time_between_interventions: timedelta = MIN_TIME_BETWEEN_INTERVENTIONS,
        clock: Optional[Callable[[], datetime]] = None,
        learning: Optional[LearningModule] = None,
    ):
        self.thresholds = thresholds or InterventionThresholds()
        self.manual_control = manual_control
        self.learning = learning
        self.max_interventions_per_hour = max_interventions_per_hour
        self.min_time_between_interventions = min_time_between_interventions
        self._clock = clock or utcnow

    # =========================================================================
    # Decision
    # =========================================================================

    def should_intervene(
        self,
        context: ConversationContext,
        analysis: FlowAnalysis,
        preferences: UserPreferences,
    ) -> InterventionDecision:
        if self._exceeded_hourly_limit(context, preferences):
            return no_intervention("Intervention limit exceeded")
        if not self._enough_time_passed(context):
            return no_intervention("Too soon since last intervention")

        scenarios = self.evaluate_scenarios(context, analysis, preferences)
        if not scenarios:
            return no_intervention("No intervention scenarios identified")

        best = scenarios[0]
        for scenario in scenarios[1:]:
            if scenario.score > best.score:
                best = scenario

        if best.score < self.thresholds.confidence_threshold:
            return no_intervention("No intervention meets confidence threshold")

        decision = InterventionDecision(
            should_respond=True,
            intervention_type=best.type,
            confidence=round(best.score, 4),
            reasoning=best.reasoning,
            priority=calculate_priority(best.score, best.type),
        )

        if self.manual_control is not None:
            primary_user = context.participants[0].id if context.participants else "default"
            if not self.manual_control.should_allow_intervention(primary_user, decision.should_respond):
                return no_intervention("Manual control override: activity level restriction")

        logger.debug(
            "Intervention chosen for %s: %s (%.2f, %s)",
            context.session_id, best.type.value, best.score, decision.priority.value,
        )
        return decision

    def evaluate_scenarios(
        self,
        context: ConversationContext,
        analysis: FlowAnalysis,
        preferences: UserPreferences,
    ) -> list[ScenarioScore]:
        """Scores of every scenario that cleared its own threshold, in evaluation order."""
        scores = [
            self._score_topic_redirect(context, analysis),
            self._score_information_provide(context, preferences),
            self._score_fact_check(context),
            self._score_clarification(context, analysis),
            self._score_summary_offer(context),
        ]
        return [s for s in scores if s.score > 0]

    # ===== Limits =====

    def _hourly_limit(self, preferences: UserPreferences) -> int:
        base = preferences.max_interventions_per_hour or self.max_interventions_per_hour
        return int(base * FREQUENCY_FACTORS.get(preferences.intervention_frequency, 1.0))

    def _exceeded_hourly_limit(self, context: ConversationContext, preferences: UserPreferences) -> bool:
        hour_ago = self._clock() - timedelta(hours=1)
        recent = [i for i in context.intervention_history if i.timestamp >= hour_ago]
        return len(recent) >= self._hourly_limit(preferences)

    def _enough_time_passed(self, context: ConversationContext) -> bool:
        if not context.intervention_history:
            return True
        last = context.intervention_history[-1]
        return self._clock() - last.timestamp >= self.min_time_between_interventions

    def _recent_of_type(self, context: ConversationContext, kind: InterventionType, minutes: float) -> bool:
        cutoff = self._clock() - timedelta(minutes=minutes)
        return any(i.type == kind and i.timestamp > cutoff for i in context.intervention_history)

    # ===== Scenario scorers =====

    def _score_topic_redirect(self, context: ConversationContext, analysis: FlowAnalysis) -> ScenarioScore:
        kind = InterventionType.TOPIC_REDIRECT
        if len(context.message_history[-5:]) < 3:
            return ScenarioScore(kind, 0.0, "Not enough messages to assess drift")

        drift = 1 - analysis.topic_stability
        if analysis.intervention_recommended:
            drift = max(drift, min(1.0, analysis.messages_off_topic * OFF_TOPIC_DRIFT_PER_MESSAGE))
        direction = analysis.conversation_momentum.direction
        score = drift + (0.3 if direction == MomentumDirection.DECREASING else 0.0)
        score *= 0.5 if self._recent_of_type(context, kind, 10) else 1.2

        if score < self.thresholds.topic_drift_threshold:
            return ScenarioScore(kind, 0.0, "Topic drift below threshold")
        return ScenarioScore(
            kind,
            min(1.0, score),
            f"Topic instability detected ({drift * 100:.1f}%), momentum: {direction.value}",
        )

    def _score_information_provide(self, context: ConversationContext, preferences: UserPreferences) -> ScenarioScore:
        kind = InterventionType.INFORMATION_PROVIDE
        score = 0.0
        for message in context.message_history[-3:]:
            content = message.content.lower()
            if _contains_any(content, INFORMATION_KEYWORDS):
                score += 0.3
            if _contains_any(content, QUESTION_WORDS) and "?" in content:
                score += 0.4
            if _contains_any(content, INFORMATION_UNCERTAINTY):
                score += 0.2

        if preferences.preferred_information_types:
            score *= 1.2
        if self._recent_of_type(context, kind, 5):
            score *= 0.6

        if score < self.thresholds.information_gap_threshold:
            return ScenarioScore(kind, 0.0, "No significant information gaps detected")
        wanted = ", ".join(t.value for t in preferences.preferred_information_types)
        return ScenarioScore(
            kind,
            min(1.0, score),
            f"Information needs detected in recent messages, user prefers: {wanted}",
        )

    def _score_fact_check(self, context: ConversationContext) -> ScenarioScore:
        kind = InterventionType.FACT_CHECK
        score = 0.0
        for message in context.message_history[-3:]:
            content = message.content.lower()
            if _contains_any(content, CLAIM_INDICATORS):
                score += 0.4
            if _contains_any(content, CLAIM_UNCERTAINTY):
                score += 0.3
            if _contains_any(content, CONTRADICTION_MARKERS):
                score += 0.2

        if self._recent_of_type(context, kind, 15):
            score *= 0.4

        if score < self.thresholds.fact_check_threshold:
            return ScenarioScore(kind, 0.0, "No significant fact-checking opportunities detected")
        return ScenarioScore(
            kind,
            min(1.0, score),
            "Potential factual claims or uncertainties detected that could benefit from verification",
        )

    def _score_clarification(self, context: ConversationContext, analysis: FlowAnalysis) -> ScenarioScore:
        kind = InterventionType.CLARIFICATION_REQUEST
        score = 0.0
        if analysis.participant_engagement.participation_balance < 0.5:
            score += 0.3
        for message in context.message_history[-3:]:
            if _contains_any(message.content.lower(), CONFUSION_INDICATORS):
                score += 0.5
        momentum = analysis.conversation_momentum
        if momentum.direction == MomentumDirection.DECREASING and momentum.strength > 0.3:
            score += 0.2

        if score < CLARIFICATION_THRESHOLD:
            return ScenarioScore(kind, 0.0, "No significant need for clarification detected")
        return ScenarioScore(
            kind,
            min(1.0, score),
            "Potential confusion or need for clarification detected in conversation flow",
        )

    def _score_summary_offer(self, context: ConversationContext) -> ScenarioScore:
        kind = InterventionType.SUMMARY_OFFER
        count = len(context.message_history)
        minutes = (self._clock() - context.start_time).total_seconds() / 60

        score = 0.0
        if count > 20:
            score += 0.3
        if count > 50:
            score += 0.2
        if minutes > 15:
            score += 0.2
        if minutes > 30:
            score += 0.2
        confident_topics = sum(
            1 for m in context.message_history if any(t.confidence > 0.7 for t in m.topic_classification)
        )
        if confident_topics > 3:
            score += 0.3
        if self._recent_of_type(context, kind, 20):
            score *= 0.3

        if score < SUMMARY_THRESHOLD:
            return ScenarioScore(kind, 0.0, "Conversation not complex enough to warrant summary")
        return ScenarioScore(
            kind,
            min(1.0, score),
            f"Long conversation ({count} messages, {minutes:.1f} minutes) may benefit from summary",
        )

    # =========================================================================
    # Timing
    # =========================================================================

    def calculate_intervention_timing(
        self, decision: InterventionDecision, state: ConversationState
    ) -> TimingStrategy:
        if not decision.should_respond:
            return TimingStrategy(
                delay_seconds=0, wait_for_pause=False, interrupt_threshold=0.0, reasoning="No intervention needed"
            )

        delay = BASE_DELAY_SECONDS.get(decision.intervention_type, 5)
        delay *= PRIORITY_DELAY_MULTIPLIERS.get(decision.priority, 1.0)
        if state.is_active and state.pause_duration_ms < 5000:
            delay *= 1.5

        return TimingStrategy(
            delay_seconds=max(1, round(delay)),
            wait_for_pause=self._wait_for_pause(decision, state),
            interrupt_threshold=self._interrupt_threshold(decision),
            reasoning=(
                f"{decision.intervention_type.value} with {decision.priority.value} priority, "
                f"confidence: {decision.confidence}"
            ),
        )

    @staticmethod
    def _wait_for_pause(decision: InterventionDecision, state: ConversationState) -> bool:
        if decision.priority == Priority.URGENT:
            return False
        if state.is_active and state.pause_duration_ms < 3000:
            return True
        return decision.priority != Priority.HIGH

    @staticmethod
    def _interrupt_threshold(decision: InterventionDecision) -> float:
        threshold = INTERRUPT_THRESHOLDS.get(decision.priority, 0.3) * decision.confidence
        return max(0.1, min(1.0, threshold))

    # =========================================================================
    # Feedback
    # =========================================================================

    def adapt_behavior_from_feedback(
        self, feedback: UserFeedback, history: list[InterventionRecord]
    ) -> BehaviorAdjustment:
        """
        Turn one rating into a threshold and frequency adjustment.

        Ratings are on a 1-5 scale. The returned threshold is a suggestion;
        the engine's own thresholds are left unchanged. With a learning module
        that has outcomes for the intervention's user, the learned confidence
        threshold and type preferences replace the static ones.
        """
        intervention = next((i for i in history if i.id == feedback.intervention_id), None)
        if intervention is None:
            return BehaviorAdjustment(
                intervention_threshold=self.thresholds.confidence_threshold,
                frequency_multiplier=1.0,
                preferred_types=list(InterventionType),
                reasoning="Intervention not found in history",
            )

        base = self.thresholds.confidence_threshold
        preferred = preferred_types_from_reactions(history)
        source = ""
        if self.learning is not None and self.learning.has_feedback(intervention.user_id):
            learned = self.learning.update_intervention_thresholds(intervention.user_id)
            base = learned.confidence_threshold
            liked = [t for t, p in learned.type_preferences.items() if p > DEFAULT_TYPE_PREFERENCE]
            preferred = liked or preferred
            source = " using learned thresholds"

        score = feedback.rating / 5.0
        adjustment = 0.0
        if score < 0.4:
            adjustment = 0.1
        elif score > 0.8:
            adjustment = -0.1
        threshold = max(0.1, min(0.9, base + adjustment))

        multiplier = 1.0
        if score < 0.3:
            multiplier = 0.7
        elif score > 0.9:
            multiplier = 1.3

        return BehaviorAdjustment(
            intervention_threshold=round(threshold, 4),
            frequency_multiplier=multiplier,
            preferred_types=preferred,
            reasoning=f"Adjusted based on feedback rating {feedback.rating}/5 for {intervention.type.value}{source}",
        )


def preferred_types_from_reactions(history: list[InterventionRecord]) -> list[InterventionType]:
    """Types whose positive/negative reactions average at least 3.5 on a 1-5 scale; all types if none do."""
    ratings: dict[InterventionType, list[int]] = {}
    for record in history:
        if record.user_reaction is None:
            continue
        if record.user_reaction.type == UserReactionType.POSITIVE:
            ratings.setdefault(record.type, []).append(POSITIVE_REACTION_RATING)
        elif record.user_reaction.type == UserReactionType.NEGATIVE:
            ratings.setdefault(record.type, []).append(NEGATIVE_REACTION_RATING)

    preferred = [t for t, values in ratings.items() if sum(values) / len(values) >= PREFERRED_TYPE_MIN_RATING]
    return preferred or list(InterventionType)
