# brainstorm_bot/intervention/learning.py
"""
In-memory learning from intervention outcomes.

Each recorded outcome scores the intervention, files a feedback record
under the user, refreshes that user's metrics and nudges a global pattern
keyed by intervention type and trigger. Nothing is persisted; a restart
starts from the default thresholds again.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..models import (
    BehaviorAdjustment,
    ConversationOutcome,
    EffectivenessScore,
    FeedbackRecord,
    InterventionPattern,
    InterventionRecord,
    InterventionType,
    LearningMetrics,
    ThresholdAdjustments,
    UserFeedback,
    UserReaction,
    UserReactionType,
    utcnow,
)

logger = logging.getLogger(__name__)

SUCCESS_THRESHOLD = 0.6
EFFECTIVE_THRESHOLD = 0.5
MIN_PATTERN_SAMPLES = 3
RECENT_FEEDBACK_DAYS = 30
TREND_WINDOW = 10
DEFAULT_TYPE_PREFERENCE = 0.7

DEFAULT_TYPE_PREFERENCES = {
    InterventionType.TOPIC_REDIRECT: 0.7,
    InterventionType.INFORMATION_PROVIDE: 0.8,
    InterventionType.FACT_CHECK: 0.9,
    InterventionType.CLARIFICATION_REQUEST: 0.6,
    InterventionType.SUMMARY_OFFER: 0.5,
}

# (overall, timing, relevance, tone) deltas from a neutral 0.5
REACTION_DELTAS = {
    UserReactionType.POSITIVE: (0.3, 0.0, 0.0, 0.3),
    UserReactionType.ACKNOWLEDGED: (0.1, 0.0, 0.0, 0.0),
    UserReactionType.NEGATIVE: (-0.3, 0.0, 0.0, -0.3),
    UserReactionType.IGNORED: (-0.1, 0.0, -0.2, 0.0),
    UserReactionType.DISMISSED: (-0.2, 0.0, -0.3, 0.0),
}

OUTCOME_DELTAS = {
    ConversationOutcome.IMPROVED_FOCUS: (0.2, 0.2, 0.3, 0.0),
    ConversationOutcome.PROVIDED_VALUE: (0.3, 0.0, 0.4, 0.0),
    ConversationOutcome.DISRUPTED_FLOW: (-0.3, -0.4, 0.0, 0.0),
    ConversationOutcome.NEGATIVE_IMPACT: (-0.4, -0.3, -0.2, 0.0),
}

SATISFIED_REACTIONS = (UserReactionType.POSITIVE, UserReactionType.ACKNOWLEDGED)
HIGH_IMPACT_TYPES = [
    InterventionType.FACT_CHECK,
    InterventionType.INFORMATION_PROVIDE,
    InterventionType.TOPIC_REDIRECT,
]


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _mean(values: list[float], default: float = 0.5) -> float:
    return sum(values) / len(values) if values else default


def reaction_from_rating(feedback: UserFeedback) -> UserReaction:
    """Explicit 1-5 rating as a reaction: 4-5 positive, 3 neutral, 1-2 negative."""
    if feedback.rating >= 4:
        kind = UserReactionType.POSITIVE
    elif feedback.rating == 3:
        kind = UserReactionType.NEUTRAL
    else:
        kind = UserReactionType.NEGATIVE
    return UserReaction(type=kind, timestamp=feedback.timestamp, feedback=feedback.comment)


def calculate_effectiveness(reaction: UserReaction, outcome: ConversationOutcome) -> EffectivenessScore:
    scores = [0.5, 0.5, 0.5, 0.5]
    for deltas in (REACTION_DELTAS.get(reaction.type), OUTCOME_DELTAS.get(outcome)):
        if deltas:
            scores = [score + delta for score, delta in zip(scores, deltas)]
    overall, timing, relevance, tone = (round(_clamp(s), 4) for s in scores)
    return EffectivenessScore(overall=overall, timing=timing, relevance=relevance, tone=tone, outcome=outcome)


class LearningModule:
    """Remembers how interventions landed, per user and across users."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or utcnow
        self._feedback: dict[str, list[FeedbackRecord]] = {}
        self._interventions: dict[str, list[InterventionRecord]] = {}
        self._user_metrics: dict[str, LearningMetrics] = {}
        self._global_patterns: list[InterventionPattern] = []

    # =========================================================================
    # Recording
    # =========================================================================

    def record_intervention_outcome(
        self,
        intervention: InterventionRecord,
        reaction: UserReaction,
        outcome: ConversationOutcome,
    ) -> InterventionRecord:
        """
        Score an intervention and learn from it.

        Returns:
            A copy of ``intervention`` carrying the reaction and its overall
            effectiveness.
        """
        effectiveness = calculate_effectiveness(reaction, outcome)
        scored = intervention.model_copy(
            update={"user_reaction": reaction, "effectiveness": effectiveness.overall}
        )
        user_id = intervention.user_id

        self._interventions.setdefault(user_id, []).append(scored)
        self._feedback.setdefault(user_id, []).append(
            FeedbackRecord(
                id=f"feedback_{uuid.uuid4().hex[:12]}",
                user_id=user_id,
                intervention_id=intervention.id,
                intervention_type=intervention.type,
                reaction=reaction,
                conversation_context=intervention.trigger,
                timestamp=self._clock(),
                effectiveness=effectiveness,
            )
        )
        self._update_user_metrics(user_id)
        self._update_global_patterns(scored, effectiveness)

        logger.debug(
            "Outcome for %s (%s): %s/%s scored %.2f",
            intervention.id, intervention.type.value, reaction.type.value, outcome.value, effectiveness.overall,
        )
        return scored

    def has_feedback(self, user_id: str) -> bool:
        return bool(self._feedback.get(user_id))

    # =========================================================================
    # Thresholds and behaviour
    # =========================================================================

    def update_intervention_thresholds(
        self, user_id: str, feedback: Optional[list[FeedbackRecord]] = None
    ) -> ThresholdAdjustments:
        feedback = feedback if feedback is not None else self._feedback.get(user_id, [])
        if not feedback:
            return ThresholdAdjustments(
                intervention_threshold=0.7,
                confidence_threshold=0.6,
                timing_threshold=0.5,
                type_preferences=dict(DEFAULT_TYPE_PREFERENCES),
            )

        recent = self._recent(feedback, RECENT_FEEDBACK_DAYS)
        success_rate = self._success_rate(recent)
        effectiveness = self._average_effectiveness(recent)

        intervention_threshold = 0.7
        if success_rate > 0.8:
            intervention_threshold = 0.6
        elif success_rate < 0.4:
            intervention_threshold = 0.9

        confidence_threshold = 0.6
        if effectiveness > 0.7:
            confidence_threshold = 0.5
        elif effectiveness < 0.4:
            confidence_threshold = 0.8

        return ThresholdAdjustments(
            intervention_threshold=intervention_threshold,
            confidence_threshold=confidence_threshold,
            timing_threshold=0.5,
            type_preferences=self._type_preferences(recent),
        )

    def adapt_behavior_from_reaction(
        self, reaction: UserReaction, history: list[InterventionRecord]
    ) -> BehaviorAdjustment:
        recent = history[-10:]
        multiplier, threshold, preferred = 1.0, 0.7, []

        if reaction.type == UserReactionType.POSITIVE:
            multiplier, threshold = 1.2, 0.6
            preferred = self._successful_types(recent)
        elif reaction.type == UserReactionType.NEGATIVE:
            multiplier, threshold = 0.5, 0.9
            preferred = [InterventionType.CLARIFICATION_REQUEST]
        elif reaction.type == UserReactionType.IGNORED:
            multiplier, threshold = 0.8, 0.8
            preferred = list(HIGH_IMPACT_TYPES)

        return BehaviorAdjustment(
            intervention_threshold=threshold,
            frequency_multiplier=multiplier,
            preferred_types=preferred,
            reasoning=f"Adapted based on {reaction.type.value} feedback with {reaction.confidence} confidence",
        )

    # =========================================================================
    # Patterns and metrics
    # =========================================================================

    def identify_success_patterns(self) -> list[InterventionPattern]:
        """Trigger contexts where interventions keep working, best first."""
        groups: dict[str, list[InterventionRecord]] = {}
        for records in self._interventions.values():
            for record in records:
                key = " ".join(record.trigger.split()[:3])
                groups.setdefault(key, []).append(record)

        patterns = []
        for context, records in groups.items():
            successful = [r for r in records if (r.effectiveness or 0.0) > SUCCESS_THRESHOLD]
            if len(successful) < MIN_PATTERN_SAMPLES:
                continue
            success_rate = len(successful) / len(records)
            if success_rate <= SUCCESS_THRESHOLD:
                continue
            patterns.append(
                InterventionPattern(
                    pattern=context,
                    success_rate=round(success_rate, 4),
                    contexts=[context],
                    intervention_types=list(dict.fromkeys(r.type for r in successful)),
                    user_types=list(dict.fromkeys(r.user_id for r in successful)),
                    confidence=self._pattern_confidence(successful),
                )
            )

        patterns.sort(key=lambda p: p.success_rate * p.confidence, reverse=True)
        return patterns

    def get_user_metrics(self, user_id: str) -> Optional[LearningMetrics]:
        metrics = self._user_metrics.get(user_id)
        return metrics.model_copy() if metrics else None

    def get_global_patterns(self) -> list[InterventionPattern]:
        return [p.model_copy(deep=True) for p in self._global_patterns]

    # ===== Helpers =====

    def _update_user_metrics(self, user_id: str) -> None:
        interventions = self._interventions.get(user_id, [])
        if not interventions:
            return
        feedback = self._feedback.get(user_id, [])
        scores = [i.effectiveness or 0.0 for i in interventions]

        trend = 0.0
        recent, previous = scores[-TREND_WINDOW:], scores[-2 * TREND_WINDOW : -TREND_WINDOW]
        if recent and previous:
            trend = _mean(recent) - _mean(previous)

        satisfied = sum(1 for f in feedback if f.reaction.type in SATISFIED_REACTIONS)
        self._user_metrics[user_id] = LearningMetrics(
            total_interventions=len(interventions),
            success_rate=round(sum(1 for s in scores if s > EFFECTIVE_THRESHOLD) / len(scores), 4),
            average_effectiveness=round(_mean(scores), 4),
            user_satisfaction=round(satisfied / len(feedback), 4) if feedback else 0.5,
            improvement_trend=round(trend, 4),
            last_updated=self._clock(),
        )

    def _update_global_patterns(self, intervention: InterventionRecord, effectiveness: EffectivenessScore) -> None:
        key = f"{intervention.type.value}_{intervention.trigger[:20]}"
        success = 1.0 if effectiveness.overall > SUCCESS_THRESHOLD else 0.0

        existing = next((p for p in self._global_patterns if p.pattern == key), None)
        if existing is None:
            self._global_patterns.append(
                InterventionPattern(
                    pattern=key,
                    success_rate=success,
                    contexts=[intervention.trigger],
                    intervention_types=[intervention.type],
                    user_types=[intervention.user_id],
                    confidence=0.1,
                )
            )
            return

        # Running blend that weights the newest outcome at one half.
        existing.success_rate = (existing.success_rate + success) / 2
        existing.confidence = round(min(1.0, existing.confidence + 0.1), 4)
        if intervention.user_id not in existing.user_types:
            existing.user_types.append(intervention.user_id)

    def _recent(self, feedback: list[FeedbackRecord], days: int) -> list[FeedbackRecord]:
        cutoff = self._clock() - timedelta(days=days)
        return [f for f in feedback if f.timestamp >= cutoff]

    @staticmethod
    def _success_rate(feedback: list[FeedbackRecord]) -> float:
        if not feedback:
            return 0.5
        return sum(1 for f in feedback if f.reaction.type in SATISFIED_REACTIONS) / len(feedback)

    @staticmethod
    def _average_effectiveness(feedback: list[FeedbackRecord]) -> float:
        return _mean([f.effectiveness.overall for f in feedback if f.effectiveness is not None])

    def _type_preferences(self, feedback: list[FeedbackRecord]) -> dict[InterventionType, float]:
        preferences = {t: DEFAULT_TYPE_PREFERENCE for t in InterventionType}
        by_type: dict[InterventionType, list[FeedbackRecord]] = {}
        for record in feedback:
            by_type.setdefault(record.intervention_type, []).append(record)

        for kind, records in by_type.items():
            score = self._success_rate(records) * 0.6 + self._average_effectiveness(records) * 0.4
            preferences[kind] = round(max(0.3, min(0.9, score)), 4)
        return preferences

    @staticmethod
    def _pattern_confidence(records: list[InterventionRecord]) -> float:
        size = min(1.0, len(records) / 10)
        effectiveness = _mean([r.effectiveness or 0.0 for r in records], default=0.0)
        return round(size * 0.4 + effectiveness * 0.6, 4)

    @staticmethod
    def _successful_types(records: list[InterventionRecord]) -> list[InterventionType]:
        counts: dict[InterventionType, int] = {}
        for record in records:
            if (record.effectiveness or 0.0) > SUCCESS_THRESHOLD:
                counts[record.type] = counts.get(record.type, 0) + 1
        return sorted(counts, key=counts.get, reverse=True)[:3]
