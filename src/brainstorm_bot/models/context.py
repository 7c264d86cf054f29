# brainstorm_bot/models/context.py
"""Conversation state: participants, history, engagement and topic flow."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..base_models import DictCompatModel, FrozenRecord
from .enums import (
    CommunicationStyle,
    ExpertiseArea,
    InformationType,
    InterventionFrequency,
    InterventionType,
    MeetingType,
    Priority,
    UserReactionType,
    VCRole,
)
from .messages import ProcessedMessage, utcnow


class QuietHours(BaseModel):
    start: str = Field(..., description="HH:MM, local to the participant")
    end: str = Field(..., description="HH:MM, local to the participant")


class UserPreferences(DictCompatModel):
    intervention_frequency: InterventionFrequency = InterventionFrequency.MODERATE
    preferred_information_types: list[InformationType] = Field(default_factory=list)
    communication_style: CommunicationStyle = CommunicationStyle.CONVERSATIONAL
    topic_expertise: list[ExpertiseArea] = Field(default_factory=list)
    preferred_intervention_types: list[InterventionType] = Field(default_factory=list)
    quiet_hours: Optional[QuietHours] = None
    max_interventions_per_hour: Optional[int] = None
    learning_enabled: bool = True
    custom_settings: dict[str, Any] = Field(default_factory=dict)


class Participant(DictCompatModel):
    id: str
    name: str
    role: VCRole = VCRole.GUEST
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    engagement_level: float = Field(default=0.5, ge=0.0, le=1.0)


class AgendaItem(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    estimated_duration: Optional[int] = Field(default=None, description="Minutes")


class UserReaction(FrozenRecord):
    type: UserReactionType
    timestamp: datetime = Field(default_factory=utcnow)
    explicit: bool = Field(default=True, description="False when inferred from behaviour")
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    feedback: Optional[str] = None


class InterventionRecord(FrozenRecord):
    """Audit entry for an intervention the bot actually made."""

    id: str
    timestamp: datetime = Field(default_factory=utcnow)
    type: InterventionType
    trigger: str
    response: str
    conversation_id: str
    user_id: str = "system"
    user_reaction: Optional[UserReaction] = None
    effectiveness: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class EngagementMetrics(DictCompatModel):
    """Per-participant activity, updated incrementally on each of their messages."""

    participant_id: str
    message_count: int = 0
    last_activity: datetime = Field(default_factory=utcnow)
    average_response_time: float = Field(default=0.0, description="Seconds between the participant's messages")
    sentiment_trend: float = Field(default=0.0, ge=-1.0, le=1.0)


class TopicChange(FrozenRecord):
    timestamp: datetime
    previous_topic: str
    new_topic: str
    confidence: float = Field(ge=0.0, le=1.0)
    trigger_message_id: str


class ConversationFlow(DictCompatModel):
    current_topic: str
    topic_history: list[TopicChange] = Field(default_factory=list)
    participant_engagement: dict[str, EngagementMetrics] = Field(default_factory=dict)
    conversation_momentum: float = Field(default=0.0, ge=0.0, le=1.0)
    last_topic_change: datetime = Field(default_factory=utcnow)


class ConversationContext(DictCompatModel):
    """One session's state; the context tracker is its only writer."""

    session_id: str
    participants: list[Participant] = Field(default_factory=list)
    current_topic: str = "General Discussion"
    agenda: Optional[list[AgendaItem]] = None
    message_history: list[ProcessedMessage] = Field(default_factory=list)
    intervention_history: list[InterventionRecord] = Field(default_factory=list)
    start_time: datetime = Field(default_factory=utcnow)
    meeting_type: MeetingType = MeetingType.GENERAL_DISCUSSION

    def find_participant(self, participant_id: str) -> Optional[Participant]:
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None


class ConversationStats(DictCompatModel):
    total_messages: int
    duration_minutes: float
    messages_per_minute: float
    participant_count: int
    topic_changes: int
    interventions: int
    conversation_momentum: float


class ConversationTone(BaseModel):
    """Tone of the live conversation, each axis in [0, 1]."""

    formality: float = Field(default=0.5, ge=0.0, le=1.0)
    urgency: float = Field(default=0.0, ge=0.0, le=1.0)
    enthusiasm: float = Field(default=0.5, ge=0.0, le=1.0)
    technicality: float = Field(default=0.5, ge=0.0, le=1.0)
