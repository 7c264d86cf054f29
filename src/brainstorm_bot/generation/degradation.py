# brainstorm_bot/generation/degradation.py
"""
Graceful degradation.

Two jobs live here:

* Conflict analysis: before the bot states facts, the supplied information
  items are checked for contradictions, ambiguity and gaps. A detected
  conflict is answered with a cautious template instead of a generated reply.
* Degradation level: a process-wide tier (NONE..OFFLINE) with a fixed
  capability table. The bot sets it from health checks; listeners are told
  about every transition.
"""

from __future__ import annotations

import json
import logging
import random
import re
from collections import Counter, deque
from typing import Any, Callable, Iterable, Optional

from ..models import (
    Alternative,
    BotResponse,
    ConflictResolution,
    ConflictType,
    ConversationContext,
    DegradationLevel,
    DegradationStatus,
    DegradationStrategy,
    FallbackBehavior,
    InterventionType,
    RecommendedAction,
    ResponseSource,
    SourceType,
)

logger = logging.getLogger(__name__)

MAX_CONFLICT_HISTORY = 100
RECENT_CONFLICTS = 10
REPEATED_CONFLICT_COUNT = 2
NUMERIC_CONFLICT_RATIO = 0.5

DegradationListener = Callable[[DegradationLevel, DegradationLevel], None]

# =============================================================================
# Capability table
# =============================================================================

DEGRADATION_STRATEGIES: dict[DegradationLevel, DegradationStrategy] = {
    DegradationLevel.NONE: DegradationStrategy(
        level=DegradationLevel.NONE,
        description="Full functionality available",
        capabilities=frozenset({
            "ai_analysis",
            "basic_analysis",
            "real_time_processing",
            "complex_reasoning",
            "proactive_interventions",
            "detailed_responses",
        }),
    ),
    DegradationLevel.MINIMAL: DegradationStrategy(
        level=DegradationLevel.MINIMAL,
        description="Slight reduction in AI capabilities",
        capabilities=frozenset({
            "ai_analysis",
            "basic_analysis",
            "real_time_processing",
            "basic_reasoning",
            "proactive_interventions",
        }),
        limitations=["Reduced response complexity", "Lower confidence in analysis"],
        fallback_behaviors=[
            FallbackBehavior(
                trigger="complex_analysis_request",
                action="simplify_response",
                response_template=(
                    "I can provide a basic analysis, though my detailed capabilities are currently limited."
                ),
            ),
        ],
    ),
    DegradationLevel.MODERATE: DegradationStrategy(
        level=DegradationLevel.MODERATE,
        description="Significant reduction in AI capabilities",
        capabilities=frozenset({"basic_analysis", "template_responses", "reactive_interventions"}),
        limitations=[
            "No proactive interventions",
            "Limited reasoning capabilities",
            "Template-based responses only",
        ],
        fallback_behaviors=[
            FallbackBehavior(
                trigger="proactive_intervention",
                action="wait_for_summon",
                response_template=(
                    "I'm available to help if you need me. Please mention my name or ask for assistance."
                ),
            ),
            FallbackBehavior(
                trigger="complex_question",
                action="request_clarification",
                response_template=(
                    "I'm working with limited capabilities. Could you rephrase your question more simply?"
                ),
            ),
        ],
    ),
    DegradationLevel.SEVERE: DegradationStrategy(
        level=DegradationLevel.SEVERE,
        description="Minimal functionality - basic responses only",
        capabilities=frozenset({"acknowledgment_responses", "basic_templates", "error_reporting"}),
        limitations=["No AI analysis", "No proactive behavior", "Very limited response variety"],
        fallback_behaviors=[
            FallbackBehavior(
                trigger="any_request",
                action="acknowledge_limitation",
                response_template=(
                    "I'm experiencing technical difficulties and can only provide basic responses right now."
                ),
            ),
        ],
    ),
    DegradationLevel.OFFLINE: DegradationStrategy(
        level=DegradationLevel.OFFLINE,
        description="Offline mode - cached responses only",
        capabilities=frozenset({"cached_responses", "offline_templates"}),
        limitations=["No real-time processing", "No new AI analysis", "Limited to cached content"],
        fallback_behaviors=[
            FallbackBehavior(
                trigger="any_request",
                action="use_cached_response",
                response_template=(
                    "I'm currently offline but can provide some assistance based on previous conversations."
                ),
            ),
        ],
    ),
}

# =============================================================================
# Conflict heuristics
# =============================================================================

VAGUE_PHRASES = ["maybe", "possibly", "might be", "could be", "uncertain", "unclear"]
CONTRADICTORY_PAIRS = [
    ("yes", "no"),
    ("true", "false"),
    ("positive", "negative"),
    ("increase", "decrease"),
    ("up", "down"),
]
_MULTIPLE_OPTIONS = re.compile(r"\b(or|either)\b")
_CONTEXT_DEPENDENT = re.compile(r"\b(depends|varies)\b")

CLARIFICATION_TEMPLATES = [
    "I need some clarification to provide accurate information. Could you help me understand {point}?",
    "There seems to be some ambiguity here. Could you provide clarification on {point}?",
    "To give you the best response, I'd like clarification on {point}. Could you provide more details?",
]

CONFLICT_BASE_CONFIDENCE = {
    ConflictType.CONTRADICTORY_INFORMATION: 0.9,
    ConflictType.INSUFFICIENT_DATA: 0.8,
    ConflictType.AMBIGUOUS_CONTEXT: 0.6,
}


def _as_text(items: list[Any]) -> str:
    return json.dumps(items, default=str).lower()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _numbers_disagree(a: float, b: float) -> bool:
    scale = max(abs(a), abs(b))
    return scale > 0 and abs(a - b) / scale > NUMERIC_CONFLICT_RATIO


def has_numerical_contradiction(first: Any, second: Any) -> bool:
    if isinstance(first, dict) and isinstance(second, dict):
        for key, value in first.items():
            other = second.get(key)
            if _is_number(value) and _is_number(other) and _numbers_disagree(value, other):
                return True
        return False
    if _is_number(first) and _is_number(second):
        return _numbers_disagree(first, second)
    return False


def has_categorical_contradiction(first: Any, second: Any) -> bool:
    if not (isinstance(first, str) and isinstance(second, str)):
        return False
    a_words = set(re.findall(r"\w+", first.lower()))
    b_words = set(re.findall(r"\w+", second.lower()))
    return any(
        (left in a_words and right in b_words) or (right in a_words and left in b_words)
        for left, right in CONTRADICTORY_PAIRS
    )


def has_insufficient_data(items: list[Any]) -> bool:
    return not items or all(not item for item in items)


def detect_contradictions(items: list[Any]) -> list[str]:
    found = []
    for i, first in enumerate(items):
        for second in items[i + 1:]:
            if has_numerical_contradiction(first, second):
                found.append(f"Conflicting numerical data: {_as_text([first])} vs {_as_text([second])}")
            if has_categorical_contradiction(first, second):
                found.append(f"Conflicting categorical information: {first!r} vs {second!r}")
    return found


def detect_multiple_interpretations(items: list[Any]) -> list[str]:
    if not items:
        return []
    text = _as_text(items)
    readings = []
    if _MULTIPLE_OPTIONS.search(text):
        readings.append("Multiple options presented")
    if _CONTEXT_DEPENDENT.search(text):
        readings.append("Context-dependent interpretation")
    return readings


def detect_ambiguities(items: list[Any], context: ConversationContext) -> list[str]:
    if not items:
        return []
    found = []
    if not context.message_history:
        found.append("Insufficient conversation context for accurate analysis")
    text = _as_text(items)
    found.extend(f'Ambiguous language detected: "{phrase}"' for phrase in VAGUE_PHRASES if phrase in text)
    return found


def conflict_confidence(conflict_type: ConflictType, issues: list[str]) -> float:
    base = CONFLICT_BASE_CONFIDENCE.get(conflict_type, 0.7)
    return round(min(base + min(len(issues) * 0.1, 0.3), 1.0), 2)


def recommended_action(conflict_type: ConflictType, confidence: float) -> RecommendedAction:
    if confidence > 0.8:
        if conflict_type == ConflictType.CONTRADICTORY_INFORMATION:
            return RecommendedAction.PRESENT_ALTERNATIVES
        if conflict_type == ConflictType.INSUFFICIENT_DATA:
            return RecommendedAction.REQUEST_CLARIFICATION
        return RecommendedAction.ACKNOWLEDGE_UNCERTAINTY
    if confidence > 0.6:
        return RecommendedAction.USE_CONSERVATIVE_APPROACH
    return RecommendedAction.DEFER_TO_HUMAN


def alternatives_for(conflict_type: ConflictType) -> list[Alternative]:
    if conflict_type == ConflictType.CONTRADICTORY_INFORMATION:
        return [
            Alternative(
                description="Present all conflicting viewpoints",
                confidence=0.7,
                sources=["multiple_sources"],
                reasoning="Allow participants to evaluate conflicting information",
            ),
            Alternative(
                description="Request source verification",
                confidence=0.8,
                sources=["verification_needed"],
                reasoning="Verify accuracy of conflicting claims",
            ),
        ]
    if conflict_type == ConflictType.AMBIGUOUS_CONTEXT:
        return [
            Alternative(
                description="Ask for clarification",
                confidence=0.8,
                sources=["clarification_request"],
                reasoning="Reduce ambiguity through targeted questions",
            ),
        ]
    return [
        Alternative(
            description="Acknowledge limitation and defer",
            confidence=0.6,
            sources=["conservative_approach"],
            reasoning="Maintain transparency about limitations",
        ),
    ]


# =============================================================================
# Service
# =============================================================================


class GracefulDegradationService:
    """Conflict analysis plus the process-wide degradation level."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._level = DegradationLevel.NONE
        self._conflicts: deque[ConflictResolution] = deque(maxlen=MAX_CONFLICT_HISTORY)
        self._listeners: list[DegradationListener] = []
        self._rng = rng or random.Random()

    @property
    def level(self) -> DegradationLevel:
        return self._level

    # ===== Degradation level =====

    def set_degradation_level(self, level: DegradationLevel) -> None:
        previous = self._level
        self._level = level
        if previous == level:
            return

        strategy = DEGRADATION_STRATEGIES[level]
        logger.info("Degradation level changed from %s to %s", previous.value, level.value)
        logger.info("Active capabilities: %s", ", ".join(sorted(strategy.capabilities)))
        if strategy.limitations:
            logger.info("Known limitations: %s", ", ".join(strategy.limitations))
        for listener in list(self._listeners):
            listener(previous, level)

    def add_listener(self, listener: DegradationListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: DegradationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def is_capability_available(self, capability: str) -> bool:
        return capability in DEGRADATION_STRATEGIES[self._level].capabilities

    def fallback_template(self, trigger: str) -> Optional[str]:
        """The current level's canned reply for ``trigger`` (or for ``any_request``)."""
        for behavior in DEGRADATION_STRATEGIES[self._level].fallback_behaviors:
            if behavior.trigger in (trigger, "any_request"):
                return behavior.response_template
        return None

    def get_degradation_status(self) -> DegradationStatus:
        return DegradationStatus(
            level=self._level,
            strategy=DEGRADATION_STRATEGIES[self._level],
            recent_conflicts=self.recent_conflicts(),
            recommendations=self.system_recommendations(),
        )

    def recent_conflicts(self, limit: int = RECENT_CONFLICTS) -> list[ConflictResolution]:
        return list(self._conflicts)[-limit:]

    def system_recommendations(self) -> list[str]:
        recommendations = []
        if self._level != DegradationLevel.NONE:
            recommendations.append("Consider checking system health and API connectivity")
        counts = Counter(c.type for c in self.recent_conflicts())
        if counts[ConflictType.CONTRADICTORY_INFORMATION] >= REPEATED_CONFLICT_COUNT:
            recommendations.append(
                "Repeated contradictory information detected - consider source verification"
            )
        if counts[ConflictType.INSUFFICIENT_DATA] >= REPEATED_CONFLICT_COUNT:
            recommendations.append("Frequent insufficient data issues - consider expanding knowledge base")
        return recommendations

    # ===== Conflict analysis =====

    def analyze_information_conflicts(
        self, items: Iterable[Any], context: ConversationContext
    ) -> Optional[ConflictResolution]:
        """
        Classify a set of information items.

        Checked from most to least specific: insufficient data, contradictions,
        multiple interpretations, then ambiguity. Returns None when the items
        look consistent.
        """
        items = list(items)
        if has_insufficient_data(items):
            return self._resolution(ConflictType.INSUFFICIENT_DATA, ["Limited information available"])

        contradictions = detect_contradictions(items)
        if contradictions:
            return self._resolution(ConflictType.CONTRADICTORY_INFORMATION, contradictions)

        readings = detect_multiple_interpretations(items)
        if len(readings) > 1:
            return self._resolution(ConflictType.MULTIPLE_INTERPRETATIONS, readings)

        ambiguities = detect_ambiguities(items, context)
        if ambiguities:
            return self._resolution(ConflictType.AMBIGUOUS_CONTEXT, ambiguities)
        return None

    @staticmethod
    def _resolution(conflict_type: ConflictType, issues: list[str]) -> ConflictResolution:
        confidence = conflict_confidence(conflict_type, issues)
        return ConflictResolution(
            type=conflict_type,
            confidence=confidence,
            recommended_action=recommended_action(conflict_type, confidence),
            alternatives=alternatives_for(conflict_type),
            explanation=f"Detected {conflict_type.value}: {', '.join(issues)}",
        )

    def generate_graceful_response(
        self,
        conflict: ConflictResolution,
        intervention_type: InterventionType,
        context: ConversationContext,
    ) -> BotResponse:
        action = conflict.recommended_action
        if action == RecommendedAction.REQUEST_CLARIFICATION:
            content, confidence = self._clarification_request(conflict), 0.7
        elif action == RecommendedAction.PRESENT_ALTERNATIVES:
            content, confidence = self._alternatives_presentation(conflict), 0.6
        elif action == RecommendedAction.DEFER_TO_HUMAN:
            content = (
                "I'm encountering some complexity here that would benefit from human judgment. "
                f"{conflict.explanation} I'd recommend having someone with domain expertise weigh in on this topic."
            )
            confidence = 0.8
        elif action == RecommendedAction.USE_CONSERVATIVE_APPROACH:
            content = (
                "I want to be careful here since there's some uncertainty. "
                f"{conflict.explanation} I can provide general guidance, but I'd recommend verifying "
                "specific details before making important decisions."
            )
            confidence = 0.5
        elif action == RecommendedAction.ACKNOWLEDGE_UNCERTAINTY:
            content = (
                "I want to be transparent - there's some uncertainty in the information I have. "
                f"{conflict.explanation} I can share what I know, but please consider this preliminary "
                "and verify important details."
            )
            confidence = 0.6
        else:
            content = (
                "I'm having some difficulty providing a confident response here. "
                f"{conflict.explanation} Would you like me to try a different approach "
                "or would you prefer to handle this manually?"
            )
            confidence = 0.4

        self.record_conflict(conflict)
        return BotResponse(
            content=content,
            type=intervention_type,
            confidence=confidence,
            sources=[ResponseSource(type=SourceType.FALLBACK, description="Graceful degradation response")],
            follow_up_suggestions=self._follow_ups(action),
        )

    def record_conflict(self, conflict: ConflictResolution) -> None:
        self._conflicts.append(conflict)
        logger.info(
            "Conflict recorded: %s (confidence %.2f, action %s)",
            conflict.type.value, conflict.confidence,
            getattr(conflict.recommended_action, "value", conflict.recommended_action),
        )

    def _clarification_request(self, conflict: ConflictResolution) -> str:
        if conflict.alternatives:
            point = conflict.alternatives[0].description.lower()
        else:
            point = "the specific details of this topic"
        return self._rng.choice(CLARIFICATION_TEMPLATES).format(point=point)

    @staticmethod
    def _alternatives_presentation(conflict: ConflictResolution) -> str:
        lines = ["I've found some conflicting information. Here are the different perspectives:", ""]
        for index, alternative in enumerate(conflict.alternatives, start=1):
            lines.append(f"{index}. {alternative.description} (Confidence: {round(alternative.confidence * 100)}%)")
            lines.append(f"   Reasoning: {alternative.reasoning}")
            lines.append("")
        lines.append("Which perspective would you like me to explore further?")
        return "\n".join(lines)

    @staticmethod
    def _follow_ups(action: RecommendedAction) -> list[str]:
        if action == RecommendedAction.REQUEST_CLARIFICATION:
            return [
                "I can help once we clarify the details",
                "Would you like me to suggest specific questions to ask?",
            ]
        if action == RecommendedAction.PRESENT_ALTERNATIVES:
            return [
                "I can provide more details on any of these options",
                "Would you like me to research additional perspectives?",
            ]
        return [
            "I can try a different approach if this isn't helpful",
            "Let me know if you'd like me to focus on a specific aspect",
        ]
