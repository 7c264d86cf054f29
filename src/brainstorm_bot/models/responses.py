# brainstorm_bot/models/responses.py
"""Completion results, bot responses and the degradation/conflict vocabulary."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..base_models import DictCompatModel, FrozenRecord
from .enums import (
    ConflictType,
    DegradationLevel,
    FallbackKind,
    InterventionType,
    RecommendedAction,
    SourceType,
)
from .messages import utcnow

# =============================================================================
# Completion service
# =============================================================================


class TokenUsage(FrozenRecord):
    input_tokens: int = 0
    output_tokens: int = 0


class CompletionResponse(FrozenRecord):
    """Text returned by the completion service plus a locally computed confidence."""

    content: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    usage: TokenUsage = Field(default_factory=TokenUsage)
    fallback: Optional[FallbackKind] = Field(default=None, description="Set when a fallback strategy produced the text")

    @property
    def is_fallback(self) -> bool:
        return self.fallback is not None


class CachedResponse(FrozenRecord):
    response: CompletionResponse
    timestamp: float = Field(..., description="Epoch seconds when stored")
    expiration_time: float = Field(..., description="Epoch seconds after which the entry is dead")

    def is_valid(self, now: float) -> bool:
        return now < self.expiration_time


class CacheStatistics(DictCompatModel):
    total_entries: int = 0
    valid_entries: int = 0
    expired_entries: int = 0
    total_size_bytes: int = 0
    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0


# =============================================================================
# Bot responses
# =============================================================================


class ResponseSource(BaseModel):
    type: SourceType
    description: str
    url: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)


class BotResponse(DictCompatModel):
    content: str
    type: InterventionType
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    sources: list[ResponseSource] = Field(default_factory=list)
    follow_up_suggestions: list[str] = Field(default_factory=list)

    @property
    def is_fallback(self) -> bool:
        return any(source.type == SourceType.FALLBACK for source in self.sources)


# =============================================================================
# Conflicts and degradation
# =============================================================================


class Alternative(BaseModel):
    description: str
    confidence: float = Field(ge=0.0, le=1.0)
    sources: list[str] = Field(default_factory=list)
    reasoning: str = ""


class ConflictResolution(DictCompatModel):
    type: ConflictType
    confidence: float = Field(ge=0.0, le=1.0)
    recommended_action: RecommendedAction
    alternatives: list[Alternative] = Field(default_factory=list)
    explanation: str = ""


class FallbackBehavior(BaseModel):
    trigger: str
    action: str
    response_template: str


class DegradationStrategy(BaseModel):
    level: DegradationLevel
    description: str
    capabilities: frozenset[str] = Field(default_factory=frozenset)
    limitations: list[str] = Field(default_factory=list)
    fallback_behaviors: list[FallbackBehavior] = Field(default_factory=list)


class DegradationStatus(DictCompatModel):
    level: DegradationLevel
    strategy: DegradationStrategy
    recent_conflicts: list[ConflictResolution] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


# =============================================================================
# Communication quality
# =============================================================================


class ValidationResult(DictCompatModel):
    is_valid: bool
    issues: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    professional_score: float = Field(default=1.0, ge=0.0, le=1.0)


class CommunicationQuality(DictCompatModel):
    naturalness: float = Field(ge=0.0, le=1.0)
    professionalism: float = Field(ge=0.0, le=1.0)
    clarity: float = Field(ge=0.0, le=1.0)
    engagement: float = Field(ge=0.0, le=1.0)
    overall_score: float = Field(ge=0.0, le=1.0)
