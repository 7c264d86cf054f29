# brainstorm_bot/models/messages.py
"""Inbound chat messages and their processed annotations."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import Field, field_validator

from ..base_models import FrozenRecord
from .enums import UrgencyLevel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageMetadata(FrozenRecord):
    """Transport-supplied extras attached to a chat message."""

    platform: Optional[str] = None
    thread_id: Optional[str] = None
    reply_to_id: Optional[str] = None
    attachments: list[str] = Field(default_factory=list)
    mentions: list[str] = Field(default_factory=list)
    extra: dict[str, Any] = Field(default_factory=dict)


class ChatMessage(FrozenRecord):
    """A raw chat message as delivered by the transport."""

    id: str
    user_id: str
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    metadata: Optional[MessageMetadata] = None

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Transports that send naive timestamps mean UTC."""
        return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)


class Entity(FrozenRecord):
    type: str
    value: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    start_index: int = 0
    end_index: int = 0


class SentimentScore(FrozenRecord):
    """Polarity split; ``overall`` lies in [-1, 1], the rest in [0, 1]."""

    positive: float = Field(default=0.0, ge=0.0, le=1.0)
    negative: float = Field(default=0.0, ge=0.0, le=1.0)
    neutral: float = Field(default=1.0, ge=0.0, le=1.0)
    overall: float = Field(default=0.0, ge=-1.0, le=1.0)


class TopicCategory(FrozenRecord):
    category: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    keywords: list[str] = Field(default_factory=list)


class ProcessedMessage(FrozenRecord):
    """A chat message together with the annotations derived from it."""

    original_message: ChatMessage
    extracted_entities: list[Entity] = Field(default_factory=list)
    sentiment: SentimentScore = Field(default_factory=SentimentScore)
    topic_classification: list[TopicCategory] = Field(default_factory=list)
    urgency_level: UrgencyLevel = UrgencyLevel.LOW

    @property
    def content(self) -> str:
        return self.original_message.content

    @property
    def user_id(self) -> str:
        return self.original_message.user_id

    @property
    def timestamp(self) -> datetime:
        return self.original_message.timestamp

    def dominant_topic(self) -> Optional[TopicCategory]:
        """Highest-confidence classification; the first one wins ties."""
        best: Optional[TopicCategory] = None
        for topic in self.topic_classification:
            if best is None or topic.confidence > best.confidence:
                best = topic
        return best
