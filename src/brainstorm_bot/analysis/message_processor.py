# brainstorm_bot/analysis/message_processor.py
"""
Message processor - annotates raw chat messages.

Entity extraction, sentiment and topic classification each go to the
completion service with their own prompt. Any of the three that fails or
returns something unparseable falls back to a local heuristic, so a
message is always processed. Urgency is decided locally.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..completion.base import CompletionClient
from ..completion.parsing import clamp, extract_json
from ..completion.resilient import is_substitute_answer
from ..exceptions import AuthenticationError, MalformedResponseError
from ..models import (
    ChatMessage,
    ConversationContext,
    Entity,
    MeetingType,
    Participant,
    ProcessedMessage,
    SentimentScore,
    TopicCategory,
    UrgencyLevel,
    VCRole,
    utcnow,
)

logger = logging.getLogger(__name__)

DEFAULT_PAUSE_THRESHOLD = timedelta(seconds=10)

# =============================================================================
# Prompts
# =============================================================================

ENTITY_PROMPT = """Extract entities from the following text. Focus on:
- Company names
- Financial terms and metrics
- Market sectors
- People names
- Investment terms
Return a JSON array of entities with type, value, and confidence (0-1).
Format: [{"type": "company", "value": "Apple Inc", "confidence": 0.9}]"""

SENTIMENT_PROMPT = """Analyze the sentiment of this text and return scores for positive, negative, and neutral sentiment (0-1 scale each).
Also provide an overall sentiment score (-1 to 1, where -1 is very negative, 0 is neutral, 1 is very positive).
Return JSON format: {"positive": 0.2, "negative": 0.1, "neutral": 0.7, "overall": 0.1}"""

TOPIC_PROMPT = """Classify the topic of this text into VC-relevant categories:
- investment_analysis
- market_research
- company_evaluation
- financial_discussion
- strategy_planning
- due_diligence
- portfolio_management
- off_topic
Return JSON array: [{"category": "investment_analysis", "confidence": 0.8, "keywords": ["valuation", "metrics"]}]"""

# =============================================================================
# Local heuristics
# =============================================================================

COMPANY_PATTERN = re.compile(r"\b[A-Z][a-zA-Z0-9\s&.,-]*?(?:Inc|Corp|LLC|Ltd|Company|Co)\b")
FINANCIAL_PATTERN = re.compile(r"\$[\d,]+(?:\.\d+)?[MBK]?|\d+(?:\.\d+)?%")

POSITIVE_WORDS = {"good", "great", "excellent", "positive", "strong", "growth"}
NEGATIVE_WORDS = {"bad", "poor", "negative", "decline", "loss", "risk"}

INVESTMENT_KEYWORDS = ["investment", "valuation", "funding", "round", "equity"]
MARKET_KEYWORDS = ["market", "competition", "industry", "sector", "trends"]

URGENT_KEYWORDS = ["urgent", "asap", "immediately", "critical", "emergency"]
HIGH_PRIORITY_KEYWORDS = ["important", "priority", "deadline", "time-sensitive"]


def extract_basic_entities(text: str) -> list[Entity]:
    entities = [
        Entity(type="company", value=m.group(0), confidence=0.6, start_index=m.start(), end_index=m.end())
        for m in COMPANY_PATTERN.finditer(text)
    ]
    entities.extend(
        Entity(type="financial", value=m.group(0), confidence=0.7, start_index=m.start(), end_index=m.end())
        for m in FINANCIAL_PATTERN.finditer(text)
    )
    return entities


def calculate_basic_sentiment(text: str) -> SentimentScore:
    words = [w.strip(".,!?;:'\"") for w in text.lower().split()]
    positive_count = sum(1 for w in words if w in POSITIVE_WORDS)
    negative_count = sum(1 for w in words if w in NEGATIVE_WORDS)
    if positive_count + negative_count == 0:
        return SentimentScore()

    positive = positive_count / len(words)
    negative = negative_count / len(words)
    return SentimentScore(
        positive=positive,
        negative=negative,
        neutral=clamp(1 - positive - negative),
        overall=(positive_count - negative_count) / len(words),
    )


def classify_basic_topics(text: str) -> list[TopicCategory]:
    lowered = text.lower()
    topics: list[TopicCategory] = []

    investment = [k for k in INVESTMENT_KEYWORDS if k in lowered]
    if investment:
        topics.append(TopicCategory(category="investment_analysis", confidence=0.6, keywords=investment))

    market = [k for k in MARKET_KEYWORDS if k in lowered]
    if market:
        topics.append(TopicCategory(category="market_research", confidence=0.6, keywords=market))

    if not topics:
        topics.append(TopicCategory(category="off_topic", confidence=0.8))
    return topics


def determine_urgency_level(text: str, sentiment: SentimentScore) -> UrgencyLevel:
    lowered = text.lower()
    if any(k in lowered for k in URGENT_KEYWORDS):
        return UrgencyLevel.HIGH
    if any(k in lowered for k in HIGH_PRIORITY_KEYWORDS):
        return UrgencyLevel.MEDIUM
    if sentiment.negative > 0.7:
        return UrgencyLevel.MEDIUM
    return UrgencyLevel.LOW


# =============================================================================
# Processor
# =============================================================================


class MessageProcessor:
    """Turns ``ChatMessage`` objects into ``ProcessedMessage`` annotations."""

    def __init__(
        self,
        client: CompletionClient,
        pause_threshold: timedelta = DEFAULT_PAUSE_THRESHOLD,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.client = client
        self.pause_threshold = pause_threshold
        self._clock = clock or utcnow
        self._last_message_time: Optional[datetime] = None

    async def process_message(self, message: ChatMessage) -> ProcessedMessage:
        entities, sentiment, topics = await asyncio.gather(
            self.extract_entities(message.content),
            self.analyze_sentiment(message.content),
            self.classify_topics(message.content),
        )
        self._last_message_time = message.timestamp

        return ProcessedMessage(
            original_message=message,
            extracted_entities=entities,
            sentiment=sentiment,
            topic_classification=topics,
            urgency_level=determine_urgency_level(message.content, sentiment),
        )

    def detect_conversation_pauses(self) -> bool:
        """True once more than ``pause_threshold`` has passed since the last processed message."""
        if self._last_message_time is None:
            return False
        return self._clock() - self._last_message_time > self.pause_threshold

    def maintain_conversation_history(self, messages: list[ChatMessage]) -> ConversationContext:
        """Bootstrap a fresh context from raw messages. Not the stateful tracker."""
        participants: list[Participant] = []
        seen: set[str] = set()
        for message in messages:
            if message.user_id not in seen:
                seen.add(message.user_id)
                participants.append(Participant(id=message.user_id, name=f"User_{message.user_id}", role=VCRole.GUEST))

        return ConversationContext(
            session_id=f"session_{uuid.uuid4().hex[:12]}",
            participants=participants,
            current_topic=self._infer_current_topic(messages),
            start_time=messages[0].timestamp if messages else self._clock(),
            meeting_type=MeetingType.GENERAL_DISCUSSION,
        )

    @staticmethod
    def _infer_current_topic(messages: list[ChatMessage]) -> str:
        if not messages:
            return "No topic identified"
        combined = " ".join(m.content for m in messages[-5:]).lower()
        if "investment" in combined:
            return "Investment Discussion"
        if "market" in combined:
            return "Market Analysis"
        if "company" in combined:
            return "Company Evaluation"
        return "General Discussion"

    # ===== Completion-backed analyses =====

    async def _analysis(self, text: str, prompt: str) -> str:
        response = await self.client.analyze_text(text, prompt)
        if is_substitute_answer(response):
            raise MalformedResponseError("fallback answer, not an analysis of this message")
        return response.content

    async def extract_entities(self, text: str) -> list[Entity]:
        try:
            parsed = extract_json(await self._analysis(text, ENTITY_PROMPT))
            if not isinstance(parsed, list):
                raise ValueError("entity answer is not a list")
            entities = []
            for item in parsed:
                value = str(item.get("value", ""))
                start = max(text.find(value), 0) if value else 0
                entities.append(
                    Entity(
                        type=str(item.get("type") or "unknown"),
                        value=value,
                        confidence=clamp(float(item.get("confidence") or 0.5)),
                        start_index=start,
                        end_index=start + len(value),
                    )
                )
            return entities
        except AuthenticationError:
            raise
        except Exception as exc:
            logger.debug("Entity extraction fell back to heuristics: %s", exc)
            return extract_basic_entities(text)

    async def analyze_sentiment(self, text: str) -> SentimentScore:
        try:
            parsed = extract_json(await self._analysis(text, SENTIMENT_PROMPT))
            if not isinstance(parsed, dict):
                raise ValueError("sentiment answer is not an object")
            return SentimentScore(
                positive=clamp(float(parsed.get("positive") or 0)),
                negative=clamp(float(parsed.get("negative") or 0)),
                neutral=clamp(float(parsed["neutral"])) if parsed.get("neutral") is not None else 1.0,
                overall=clamp(float(parsed.get("overall") or 0), -1.0, 1.0),
            )
        except AuthenticationError:
            raise
        except Exception as exc:
            logger.debug("Sentiment analysis fell back to heuristics: %s", exc)
            return calculate_basic_sentiment(text)

    async def classify_topics(self, text: str) -> list[TopicCategory]:
        try:
            parsed = extract_json(await self._analysis(text, TOPIC_PROMPT))
            if not isinstance(parsed, list) or not parsed:
                raise ValueError("topic answer is not a non-empty list")
            return [
                TopicCategory(
                    category=str(item.get("category") or "off_topic"),
                    confidence=clamp(float(item.get("confidence") or 0.5)),
                    keywords=[str(k) for k in item.get("keywords") or []],
                )
                for item in parsed
            ]
        except AuthenticationError:
            raise
        except Exception as exc:
            logger.debug("Topic classification fell back to heuristics: %s", exc)
            return classify_basic_topics(text)
