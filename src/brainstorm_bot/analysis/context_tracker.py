# brainstorm_bot/analysis/context_tracker.py
"""
Conversation context tracker.

One tracker per session. It is the only writer of that session's
``ConversationContext`` and ``ConversationFlow``; readers get copies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..models import (
    AgendaItem,
    ConversationContext,
    ConversationFlow,
    ConversationStats,
    EngagementMetrics,
    InterventionRecord,
    MeetingType,
    Participant,
    ProcessedMessage,
    TopicChange,
    VCRole,
    utcnow,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 1000
TOPIC_CHANGE_THRESHOLD = 0.7
MOMENTUM_WINDOW_MINUTES = 5
SENTIMENT_WEIGHT = 0.3


class ConversationContextTracker:
    """Maintains message history, engagement, topic flow and momentum for one session."""

    def __init__(
        self,
        session_id: str,
        participants: Optional[list[Participant]] = None,
        meeting_type: MeetingType = MeetingType.GENERAL_DISCUSSION,
        agenda: Optional[list[AgendaItem]] = None,
        max_history_size: int = DEFAULT_MAX_HISTORY,
        topic_change_threshold: float = TOPIC_CHANGE_THRESHOLD,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.max_history_size = max_history_size
        self.topic_change_threshold = topic_change_threshold
        self._clock = clock or utcnow
        now = self._clock()

        initial_topic = agenda[0].title if agenda else "General Discussion"
        self._context = ConversationContext(
            session_id=session_id,
            participants=[p.model_copy() for p in participants or []],
            current_topic=initial_topic,
            agenda=agenda,
            start_time=now,
            meeting_type=meeting_type,
        )
        self._flow = ConversationFlow(current_topic=initial_topic, last_topic_change=now)
        for participant in self._context.participants:
            self._flow.participant_engagement[participant.id] = EngagementMetrics(
                participant_id=participant.id, last_activity=now
            )

    @property
    def session_id(self) -> str:
        return self._context.session_id

    @property
    def current_topic(self) -> str:
        return self._context.current_topic

    # ===== Writes =====

    def add_message(self, message: ProcessedMessage) -> None:
        history = self._context.message_history
        history.append(message)
        if len(history) > self.max_history_size:
            del history[: len(history) - self.max_history_size]

        self._update_participant_engagement(message)
        self._detect_topic_change(message)
        self._update_conversation_momentum()

    def update_current_topic(self, new_topic: str, confidence: float = 1.0) -> None:
        """Set the topic directly, e.g. when the agenda moves on."""
        if new_topic == self._flow.current_topic:
            return
        self._record_topic_change(new_topic, confidence, "manual", self._clock())

    def add_intervention(self, intervention: InterventionRecord) -> None:
        self._context.intervention_history.append(intervention)

    def update_intervention(self, intervention: InterventionRecord) -> bool:
        """Replace the recorded intervention with the same id. False if it is no longer held."""
        history = self._context.intervention_history
        for index, existing in enumerate(history):
            if existing.id == intervention.id:
                history[index] = intervention
                return True
        return False

    def _update_participant_engagement(self, message: ProcessedMessage) -> None:
        participant = self._context.find_participant(message.user_id)
        if participant is None:
            participant = Participant(id=message.user_id, name=message.user_id, role=VCRole.GUEST)
            self._context.participants.append(participant)
            logger.debug("Added guest participant %s to %s", message.user_id, self.session_id)

        engagement = self._flow.participant_engagement.get(message.user_id)
        if engagement is None:
            engagement = EngagementMetrics(participant_id=message.user_id, last_activity=message.timestamp)
            self._flow.participant_engagement[message.user_id] = engagement

        if engagement.message_count > 0:
            gap = max((message.timestamp - engagement.last_activity).total_seconds(), 0.0)
            engagement.average_response_time = (
                engagement.average_response_time * engagement.message_count + gap
            ) / (engagement.message_count + 1)

        engagement.message_count += 1
        engagement.last_activity = message.timestamp
        engagement.sentiment_trend = (
            engagement.sentiment_trend * (1 - SENTIMENT_WEIGHT) + message.sentiment.overall * SENTIMENT_WEIGHT
        )
        participant.engagement_level = self._calculate_engagement_level(engagement)

    def _calculate_engagement_level(self, engagement: EngagementMetrics) -> float:
        now = self._clock()
        idle_seconds = (now - engagement.last_activity).total_seconds()
        recency = max(0.0, 1 - idle_seconds / (30 * 60))

        elapsed_minutes = max(1.0, (now - self._context.start_time).total_seconds() / 60)
        frequency = min(1.0, (engagement.message_count / elapsed_minutes) / 2)

        sentiment = (engagement.sentiment_trend + 1) / 2
        return max(0.0, min(1.0, recency * 0.4 + frequency * 0.3 + sentiment * 0.3))

    def _detect_topic_change(self, message: ProcessedMessage) -> None:
        dominant = message.dominant_topic()
        if dominant is None:
            return
        if dominant.confidence > self.topic_change_threshold and dominant.category != self._flow.current_topic:
            self._record_topic_change(dominant.category, dominant.confidence, message.original_message.id, message.timestamp)

    def _record_topic_change(self, new_topic: str, confidence: float, trigger_id: str, when: datetime) -> None:
        change = TopicChange(
            timestamp=when,
            previous_topic=self._flow.current_topic,
            new_topic=new_topic,
            confidence=confidence,
            trigger_message_id=trigger_id,
        )
        self._flow.topic_history.append(change)
        self._flow.current_topic = new_topic
        self._flow.last_topic_change = when
        self._context.current_topic = new_topic
        logger.info("Topic changed in %s: %s -> %s", self.session_id, change.previous_topic, new_topic)

    def _update_conversation_momentum(self) -> None:
        recent = self.get_messages_in_time_window(MOMENTUM_WINDOW_MINUTES)
        if not recent:
            self._flow.conversation_momentum = 0.0
            return

        frequency_score = min(1.0, (len(recent) / MOMENTUM_WINDOW_MINUTES) / 3)
        avg_sentiment = sum(m.sentiment.overall for m in recent) / len(recent)
        sentiment_score = (avg_sentiment + 1) / 2
        distinct = len({m.user_id for m in recent})
        diversity_score = min(1.0, distinct / max(1, len(self._context.participants)))

        self._flow.conversation_momentum = (frequency_score + sentiment_score + diversity_score) / 3

    # ===== Reads =====

    def get_context(self) -> ConversationContext:
        """A snapshot; mutating it does not affect the tracker."""
        return self._context.model_copy(
            update={
                "participants": [p.model_copy() for p in self._context.participants],
                "message_history": list(self._context.message_history),
                "intervention_history": list(self._context.intervention_history),
            }
        )

    def get_conversation_flow(self) -> ConversationFlow:
        return self._flow.model_copy(
            update={
                "topic_history": list(self._flow.topic_history),
                "participant_engagement": {
                    pid: metrics.model_copy() for pid, metrics in self._flow.participant_engagement.items()
                },
            }
        )

    def get_recent_messages(self, count: int = 10) -> list[ProcessedMessage]:
        if count <= 0:
            return []
        return self._context.message_history[-count:]

    def get_messages_in_time_window(self, minutes: float) -> list[ProcessedMessage]:
        cutoff = self._clock() - timedelta(minutes=minutes)
        return [m for m in self._context.message_history if m.timestamp >= cutoff]

    def get_participant_engagement(self, participant_id: str) -> Optional[EngagementMetrics]:
        metrics = self._flow.participant_engagement.get(participant_id)
        return metrics.model_copy() if metrics else None

    def get_all_participant_engagement(self) -> list[EngagementMetrics]:
        return [m.model_copy() for m in self._flow.participant_engagement.values()]

    def is_conversation_idle(self, minutes: float) -> bool:
        if not self._context.message_history:
            return True
        last = self._context.message_history[-1]
        return last.timestamp < self._clock() - timedelta(minutes=minutes)

    def get_topic_history(self) -> list[TopicChange]:
        return list(self._flow.topic_history)

    def get_conversation_stats(self) -> ConversationStats:
        total = len(self._context.message_history)
        duration_minutes = (self._clock() - self._context.start_time).total_seconds() / 60
        return ConversationStats(
            total_messages=total,
            duration_minutes=duration_minutes,
            messages_per_minute=total / max(duration_minutes, 1.0),
            participant_count=len(self._context.participants),
            topic_changes=len(self._flow.topic_history),
            interventions=len(self._context.intervention_history),
            conversation_momentum=self._flow.conversation_momentum,
        )
