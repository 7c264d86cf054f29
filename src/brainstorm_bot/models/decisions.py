# brainstorm_bot/models/decisions.py
"""Intervention decisions, timing and feedback-driven adjustments."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..base_models import DictCompatModel, FrozenRecord
from .enums import ActivityLevel, InterventionType, Priority
from .messages import utcnow


class InterventionDecision(FrozenRecord):
    should_respond: bool
    intervention_type: InterventionType = InterventionType.CLARIFICATION_REQUEST
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: str = ""
    priority: Priority = Priority.LOW


class TimingStrategy(DictCompatModel):
    delay_seconds: int = 0
    wait_for_pause: bool = False
    interrupt_threshold: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: str = ""


class BehaviorAdjustment(DictCompatModel):
    intervention_threshold: float = Field(ge=0.0, le=1.0)
    frequency_multiplier: float = 1.0
    preferred_types: list[InterventionType] = Field(default_factory=list)
    reasoning: str = ""


class ConversationState(BaseModel):
    """Live pacing of a conversation, used to time an intervention."""

    is_active: bool = True
    last_message_time: datetime = Field(default_factory=utcnow)
    pause_duration_ms: float = 0.0
    current_speaker: Optional[str] = None


class UserFeedback(BaseModel):
    intervention_id: str
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)


class ActivityLevelChange(FrozenRecord):
    user_id: str
    previous_level: ActivityLevel
    new_level: ActivityLevel
    timestamp: datetime = Field(default_factory=utcnow)
    reason: str = "Manual control"
