# brainstorm_bot/models/learning.py
"""Intervention outcomes and what the bot learns from them."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from ..base_models import DictCompatModel, FrozenRecord
from .context import UserReaction
from .enums import ConversationOutcome, InterventionType
from .messages import utcnow


class EffectivenessScore(FrozenRecord):
    overall: float = Field(ge=0.0, le=1.0)
    timing: float = Field(ge=0.0, le=1.0)
    relevance: float = Field(ge=0.0, le=1.0)
    tone: float = Field(ge=0.0, le=1.0)
    outcome: ConversationOutcome


class FeedbackRecord(FrozenRecord):
    id: str
    user_id: str
    intervention_id: str
    intervention_type: InterventionType
    reaction: UserReaction
    conversation_context: str = Field(description="Trigger text of the intervention")
    timestamp: datetime = Field(default_factory=utcnow)
    effectiveness: Optional[EffectivenessScore] = None


class InterventionPattern(DictCompatModel):
    pattern: str
    success_rate: float = Field(ge=0.0, le=1.0)
    contexts: list[str] = Field(default_factory=list)
    intervention_types: list[InterventionType] = Field(default_factory=list)
    user_types: list[str] = Field(default_factory=list, description="Users the pattern was seen with")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class ThresholdAdjustments(DictCompatModel):
    intervention_threshold: float
    confidence_threshold: float
    timing_threshold: float
    type_preferences: dict[InterventionType, float] = Field(default_factory=dict)


class LearningMetrics(DictCompatModel):
    total_interventions: int = 0
    success_rate: float = 0.0
    average_effectiveness: float = 0.0
    user_satisfaction: float = 0.5
    improvement_trend: float = Field(default=0.0, description="Recent ten versus the ten before")
    last_updated: datetime = Field(default_factory=utcnow)
