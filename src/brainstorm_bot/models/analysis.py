# brainstorm_bot/models/analysis.py
"""Results produced by the conversation-flow analyzer."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from ..base_models import DictCompatModel
from .enums import MomentumDirection, RedirectionApproach, UrgencyLevel


class ParticipationMetrics(BaseModel):
    """Group-level engagement over a window of recent messages."""

    average_response_time: float = Field(default=0.0, description="Seconds between consecutive messages")
    message_frequency: float = Field(default=0.0, description="Messages per minute")
    participation_balance: float = Field(default=1.0, ge=0.0, le=1.0)


class MomentumIndicator(BaseModel):
    direction: MomentumDirection = MomentumDirection.STABLE
    strength: float = Field(default=0.0, ge=0.0, le=1.0)


class FlowAnalysis(DictCompatModel):
    current_topic: str = "general_discussion"
    topic_stability: float = Field(default=1.0, ge=0.0, le=1.0)
    participant_engagement: ParticipationMetrics = Field(default_factory=ParticipationMetrics)
    conversation_momentum: MomentumIndicator = Field(default_factory=MomentumIndicator)
    messages_off_topic: int = 0
    intervention_recommended: bool = False


class TopicDriftResult(DictCompatModel):
    is_drifting: bool = False
    original_topic: str = "insufficient_data"
    current_direction: str = "unknown"
    drift_severity: float = Field(default=0.0, ge=0.0, le=1.0)
    messages_off_topic: int = 0
    suggested_redirection: Optional[str] = None
    urgency_level: UrgencyLevel = UrgencyLevel.LOW
    should_intervene_immediately: bool = False


class RedirectionStrategy(BaseModel):
    approach: RedirectionApproach = RedirectionApproach.GENTLE_REMINDER
    message: str
    context_summary: str
    diplomatic_level: float = Field(default=0.7, ge=0.0, le=1.0)


class InformationGap(BaseModel):
    type: str
    description: str
    priority: float


class ConversationHealth(DictCompatModel):
    overall: float = 0.0
    engagement: float = 0.0
    productivity: float = 0.0
    focus: float = 0.0
