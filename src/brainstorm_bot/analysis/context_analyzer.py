# brainstorm_bot/analysis/context_analyzer.py
"""
Context analyzer - conversation flow, topic drift and health.

Scores that the completion service is asked for come back as bare numbers
or small JSON objects. A non-numeric answer counts as 0.5; when the service
itself is unavailable the per-message relevance check switches to a local
keyword heuristic so off-topic detection keeps working.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional

from pydantic import ValidationError

from ..completion.base import CompletionClient
from ..completion.parsing import clamp, extract_json, extract_number
from ..completion.resilient import is_substitute_answer
from ..exceptions import AuthenticationError, MalformedResponseError
from ..models import (
    ConversationContext,
    ConversationHealth,
    FlowAnalysis,
    InformationGap,
    MomentumDirection,
    MomentumIndicator,
    ParticipationMetrics,
    ProcessedMessage,
    RedirectionApproach,
    RedirectionStrategy,
    TopicDriftResult,
    UrgencyLevel,
)

logger = logging.getLogger(__name__)

DRIFT_DETECTION_WINDOW = 2
RELEVANCE_THRESHOLD = 0.6
FLOW_WINDOW = 10
STABILITY_WINDOW = 5
STABILITY_MAX_WINDOWS = 6
HEALTH_WINDOW = 15

VC_TOPICS = [
    "investment_evaluation",
    "market_analysis",
    "financial_metrics",
    "competitive_landscape",
    "team_assessment",
    "product_strategy",
    "growth_potential",
    "risk_assessment",
    "valuation",
    "due_diligence",
    "portfolio_management",
    "exit_strategy",
    "general_discussion",
    "off_topic",
]

VC_KEYWORDS = [
    "invest", "valuation", "funding", "round", "equity", "market", "revenue", "growth",
    "startup", "founder", "team", "product", "competit", "metric", "arr", "mrr", "churn",
    "cac", "ltv", "burn", "runway", "term sheet", "cap table", "due diligence", "portfolio",
    "exit", "ipo", "acquisition", "series", "seed", "customer", "traction", "margin",
    "business model", "pricing", "risk", "company",
]

_NON_TOPIC_CHARS = re.compile(r"[^a-z_]")

# =============================================================================
# Prompts
# =============================================================================

TOPIC_PROMPT = """Classify this VC conversation into one of these categories:
{topics}
Return only the category name that best fits the conversation.
If the conversation covers multiple topics, return the most prominent one.
If the conversation is not related to VC topics, return "off_topic"."""

MESSAGE_RELEVANCE_PROMPT = """Rate how relevant this single message is to venture capital investment discussions on a scale of 0-1.
Consider VC-relevant topics:
- Investment opportunities, companies, markets
- Financial metrics, valuations, business models
- Team assessment, product strategy, competitive analysis
- Due diligence, risk assessment, portfolio management
Return only a number between 0 and 1."""

CONVERSATION_RELEVANCE_PROMPT = """Rate how relevant this conversation is to venture capital investment decisions on a scale of 0-1.
Consider:
- Discussion of companies, markets, or investment opportunities (high relevance)
- Financial metrics, valuations, or business models (high relevance)
- Team assessment, product strategy, or competitive analysis (high relevance)
- General business topics that could inform investment decisions (medium relevance)
- Personal anecdotes, weather, sports, or completely unrelated topics (low relevance)
Return only a number between 0 and 1."""

DRIFT_PROMPT = """Analyze if this VC conversation has drifted from its original topic.
Original topic: {original_topic}
Original conversation: {original_text}
Return a JSON object with:
{{"isDrifting": boolean, "severity": number (0-1 scale), "suggestedRedirection": "optional suggestion to get back on track"}}
Consider drift severity based on:
- How far the current discussion is from the original topic
- Whether the drift is productive (related to VC decisions) or unproductive
- The likelihood that participants want to return to the original topic"""

GAPS_PROMPT = """Analyze this VC conversation and identify information gaps that could benefit from additional data or clarification.
Focus on:
1. Missing financial metrics or market data
2. Unverified claims that need fact-checking
3. Incomplete competitive analysis
4. Missing team or product details
5. Unclear investment terms or valuations
Return a JSON array of gaps with format:
[{"type": "gap_type", "description": "what's missing", "priority": 1-10}]"""

REDIRECTION_PROMPT = """Generate a diplomatic redirection strategy to guide a VC conversation back on track.
Original topic: {original_topic}
Current topic: {current_topic}
Create a professional, natural redirection that:
1. Acknowledges the current discussion briefly
2. Provides context about the original topic
3. Suggests returning to the main agenda diplomatically
4. Maintains positive group dynamics
Return a JSON object with:
{{"approach": "gentle_reminder|context_summary|direct_redirect|agenda_reference", "message": "the actual redirection message", "contextSummary": "brief summary of what was being discussed originally", "diplomaticLevel": number (0-1, where 1 is most gentle)}}"""

PRODUCTIVITY_PROMPT = """Rate the productivity of this VC conversation on a scale of 0-1.
Consider:
- Are participants making progress toward investment decisions?
- Is valuable information being shared and discussed?
- Are action items or next steps being identified?
- Is the discussion focused and goal-oriented?
Return only a number between 0 and 1."""

FOCUS_PROMPT = """Rate how focused this VC conversation is on a scale of 0-1.
Consider:
- Is the discussion staying on relevant VC/investment topics?
- Are participants avoiding tangents and off-topic discussions?
- Is there a clear thread of conversation being maintained?
Return only a number between 0 and 1."""


def conversation_text(messages: list[ProcessedMessage]) -> str:
    return "\n".join(f"{m.user_id}: {m.content}" for m in messages)


# Short keywords must match whole words; longer ones match as word prefixes.
_VC_KEYWORD_PATTERNS = [
    re.compile(rf"\b{re.escape(k)}\b" if len(k) <= 4 else rf"\b{re.escape(k)}") for k in VC_KEYWORDS
]


def keyword_relevance(text: str) -> float:
    """Local stand-in for the relevance score when the service is down."""
    lowered = text.lower()
    hits = sum(1 for pattern in _VC_KEYWORD_PATTERNS if pattern.search(lowered))
    return min(1.0, 0.2 + 0.4 * hits)


def default_redirection_strategy(original_topic: str) -> RedirectionStrategy:
    return RedirectionStrategy(
        approach=RedirectionApproach.GENTLE_REMINDER,
        message=f"I notice we've moved away from our {original_topic} discussion. Should we circle back to that?",
        context_summary=f"Discussion about {original_topic}",
        diplomatic_level=0.8,
    )


class ContextAnalyzer:
    """Flow, drift and health analysis over processed messages."""

    def __init__(self, client: CompletionClient, relevance_threshold: float = RELEVANCE_THRESHOLD):
        self.client = client
        self.relevance_threshold = relevance_threshold

    # ===== Scoring helpers =====

    async def _ask(self, text: str, prompt: str) -> str:
        """
        Run an analysis call and return its text.

        Raises:
            CompletionServiceError: when the service fails
            MalformedResponseError: when only a fallback answer is available
        """
        response = await self.client.analyze_text(text, prompt)
        if is_substitute_answer(response):
            raise MalformedResponseError("Completion service returned a fallback answer")
        return response.content

    async def _score(self, text: str, prompt: str) -> float:
        """A 0-1 score from the service; 0.5 when the answer is not a number."""
        answer = await self._ask(text, prompt)
        try:
            return clamp(extract_number(answer.strip()))
        except MalformedResponseError:
            return 0.5

    async def _score_or_default(self, text: str, prompt: str, default: float = 0.5) -> float:
        try:
            return await self._score(text, prompt)
        except AuthenticationError:
            raise
        except Exception as exc:
            logger.debug("Score request failed, using %.1f: %s", default, exc)
            return default

    async def message_relevance(self, message_text: str) -> float:
        try:
            return await self._score(message_text, MESSAGE_RELEVANCE_PROMPT)
        except AuthenticationError:
            raise
        except Exception as exc:
            logger.debug("Relevance request failed, using keyword heuristic: %s", exc)
            return keyword_relevance(message_text)

    async def investment_relevance(self, messages: list[ProcessedMessage]) -> float:
        if not messages:
            return 1.0
        text = conversation_text(messages)
        try:
            return await self._score(text, CONVERSATION_RELEVANCE_PROMPT)
        except AuthenticationError:
            raise
        except Exception as exc:
            logger.debug("Conversation relevance failed, using keyword heuristic: %s", exc)
            return keyword_relevance(text)

    async def classify_topic(self, text: str) -> str:
        try:
            answer = await self._ask(text, TOPIC_PROMPT.format(topics=", ".join(VC_TOPICS)))
        except AuthenticationError:
            raise
        except Exception as exc:
            logger.debug("Topic classification failed: %s", exc)
            return "general_discussion"
        topic = _NON_TOPIC_CHARS.sub("", answer.strip().lower())
        return topic if topic in VC_TOPICS else "general_discussion"

    async def count_consecutive_off_topic(self, messages: list[ProcessedMessage]) -> int:
        """Walk back from the newest message while relevance stays under the threshold."""
        count = 0
        for message in reversed(messages):
            if await self.message_relevance(message.content) < self.relevance_threshold:
                count += 1
            else:
                break
        return count

    # ===== Flow =====

    async def analyze_conversation_flow(self, history: list[ProcessedMessage]) -> FlowAnalysis:
        if not history:
            return FlowAnalysis()

        recent = history[-FLOW_WINDOW:]
        current_topic = await self.classify_topic(conversation_text(recent))
        stability = await self.calculate_topic_stability(history)
        off_topic = await self.count_consecutive_off_topic(recent)

        return FlowAnalysis(
            current_topic=current_topic,
            topic_stability=stability,
            participant_engagement=self.analyze_participant_engagement(recent),
            conversation_momentum=self.calculate_conversation_momentum(recent),
            messages_off_topic=off_topic,
            intervention_recommended=off_topic >= DRIFT_DETECTION_WINDOW,
        )

    async def calculate_topic_stability(self, history: list[ProcessedMessage]) -> float:
        """Share of 5-message windows whose topic matches the newest window."""
        usable = len(history) - len(history) % STABILITY_WINDOW
        if usable < 2 * STABILITY_WINDOW:
            return 1.0

        windows = [
            history[start : start + STABILITY_WINDOW] for start in range(0, usable, STABILITY_WINDOW)
        ][-STABILITY_MAX_WINDOWS:]
        topics = [await self.classify_topic(conversation_text(window)) for window in windows]
        latest = topics[-1]
        return sum(1 for topic in topics if topic == latest) / len(topics)

    @staticmethod
    def analyze_participant_engagement(messages: list[ProcessedMessage]) -> ParticipationMetrics:
        if not messages:
            return ParticipationMetrics(participation_balance=0.0)

        gaps = [
            (messages[i].timestamp - messages[i - 1].timestamp).total_seconds() for i in range(1, len(messages))
        ]
        average_gap = sum(gaps) / len(gaps) if gaps else 0.0

        span_minutes = (messages[-1].timestamp - messages[0].timestamp).total_seconds() / 60
        frequency = len(messages) / span_minutes if span_minutes > 0 else 0.0

        counts: dict[str, int] = {}
        for message in messages:
            counts[message.user_id] = counts.get(message.user_id, 0) + 1
        balance = min(counts.values()) / max(counts.values())

        return ParticipationMetrics(
            average_response_time=round(average_gap, 2),
            message_frequency=round(frequency, 2),
            participation_balance=round(balance, 2),
        )

    @staticmethod
    def calculate_conversation_momentum(messages: list[ProcessedMessage]) -> MomentumIndicator:
        if len(messages) < 3:
            return MomentumIndicator()

        size = max(2, len(messages) // 3)
        frequencies = []
        for end in range(size, len(messages) + 1, size):
            window = messages[end - size : end]
            span_minutes = (window[-1].timestamp - window[0].timestamp).total_seconds() / 60
            frequencies.append(len(window) / span_minutes if span_minutes > 0 else 0.0)

        if len(frequencies) < 2:
            return MomentumIndicator(direction=MomentumDirection.STABLE, strength=0.5)

        recent, previous = frequencies[-1], frequencies[-2]
        change = recent - previous
        change_ratio = abs(change) / previous if previous > 0 else 0.0

        if change_ratio < 0.2:
            direction = MomentumDirection.STABLE
        elif change > 0:
            direction = MomentumDirection.INCREASING
        else:
            direction = MomentumDirection.DECREASING

        return MomentumIndicator(direction=direction, strength=round(min(1.0, change_ratio), 2))

    # ===== Drift =====

    async def detect_topic_drift(self, messages: list[ProcessedMessage]) -> TopicDriftResult:
        if len(messages) < DRIFT_DETECTION_WINDOW:
            return TopicDriftResult()

        earlier = messages[: max(3, len(messages) // 2)]
        recent = messages[-DRIFT_DETECTION_WINDOW:]
        earlier_text = conversation_text(earlier)
        recent_text = conversation_text(recent)

        original_topic = await self.classify_topic(earlier_text)
        current_direction = await self.classify_topic(recent_text)
        off_topic = await self.count_consecutive_off_topic(messages)
        relevance = await self.investment_relevance(recent)
        is_drifting = off_topic >= DRIFT_DETECTION_WINDOW and relevance < self.relevance_threshold

        severity, suggestion = await self._analyze_drift(earlier_text, recent_text, original_topic)

        result = TopicDriftResult(
            is_drifting=is_drifting,
            original_topic=original_topic,
            current_direction=current_direction,
            drift_severity=severity,
            messages_off_topic=off_topic,
            suggested_redirection=suggestion,
        )
        urgency = self.calculate_drift_urgency(result)
        result.urgency_level = urgency
        result.should_intervene_immediately = is_drifting and (
            urgency == UrgencyLevel.HIGH or off_topic >= DRIFT_DETECTION_WINDOW + 1
        )
        return result

    async def _analyze_drift(self, earlier_text: str, recent_text: str, original_topic: str) -> tuple[float, Optional[str]]:
        prompt = DRIFT_PROMPT.format(original_topic=original_topic, original_text=earlier_text)
        try:
            parsed = extract_json(await self._ask(recent_text, prompt))
            if not isinstance(parsed, dict):
                raise MalformedResponseError("drift answer is not an object")
            severity = clamp(float(parsed.get("severity") or 0))
        except AuthenticationError:
            raise
        except Exception as exc:
            logger.debug("Drift analysis unavailable: %s", exc)
            return 0.0, None

        suggestion = parsed.get("suggestedRedirection")
        return severity, str(suggestion) if suggestion else None

    @staticmethod
    def calculate_drift_urgency(drift: TopicDriftResult) -> UrgencyLevel:
        if drift.messages_off_topic >= 4 or drift.drift_severity > 0.8:
            return UrgencyLevel.HIGH
        if drift.messages_off_topic >= DRIFT_DETECTION_WINDOW or drift.drift_severity > 0.5:
            return UrgencyLevel.MEDIUM
        return UrgencyLevel.LOW

    async def generate_redirection_strategy(self, original_topic: str, current_topic: str) -> RedirectionStrategy:
        prompt = REDIRECTION_PROMPT.format(original_topic=original_topic, current_topic=current_topic)
        try:
            parsed = extract_json(await self._ask(f"{original_topic} -> {current_topic}", prompt))
        except AuthenticationError:
            raise
        except Exception as exc:
            logger.debug("Redirection strategy unavailable: %s", exc)
            return default_redirection_strategy(original_topic)

        if not isinstance(parsed, dict):
            return default_redirection_strategy(original_topic)

        try:
            approach = RedirectionApproach(parsed.get("approach"))
        except ValueError:
            approach = RedirectionApproach.GENTLE_REMINDER
        try:
            diplomatic = clamp(float(parsed.get("diplomaticLevel") or 0.7))
        except (TypeError, ValueError):
            diplomatic = 0.7

        return RedirectionStrategy(
            approach=approach,
            message=parsed.get("message") or "Let's refocus on our main discussion.",
            context_summary=parsed.get("contextSummary") or "Previous investment discussion",
            diplomatic_level=diplomatic,
        )

    # ===== Gaps and health =====

    async def identify_information_gaps(self, context: ConversationContext) -> list[InformationGap]:
        text = conversation_text(context.message_history[-FLOW_WINDOW:])
        try:
            parsed = extract_json(await self._ask(text, GAPS_PROMPT))
        except AuthenticationError:
            raise
        except Exception as exc:
            logger.debug("Information gap analysis unavailable: %s", exc)
            return []

        if not isinstance(parsed, list):
            return []

        gaps = []
        for item in parsed:
            if not isinstance(item, dict):
                continue
            priority = item.get("priority")
            if not item.get("type") or not item.get("description") or isinstance(priority, bool):
                continue
            if not isinstance(priority, (int, float)):
                continue
            try:
                gaps.append(InformationGap(type=str(item["type"]), description=str(item["description"]), priority=priority))
            except ValidationError:
                continue
        return gaps

    async def assess_conversation_health(self, context: ConversationContext) -> ConversationHealth:
        recent = context.message_history[-HEALTH_WINDOW:]
        if not recent:
            return ConversationHealth()

        text = conversation_text(recent)
        engagement = self.calculate_engagement_score(recent, len(context.participants))
        productivity, focus = await asyncio.gather(
            self._score_or_default(text, PRODUCTIVITY_PROMPT),
            self._score_or_default(text, FOCUS_PROMPT),
        )
        overall = engagement * 0.3 + productivity * 0.4 + focus * 0.3

        return ConversationHealth(
            overall=round(overall, 2),
            engagement=round(engagement, 2),
            productivity=round(productivity, 2),
            focus=round(focus, 2),
        )

    @staticmethod
    def calculate_engagement_score(messages: list[ProcessedMessage], participant_count: int) -> float:
        if not messages or participant_count == 0:
            return 0.0

        participation = len({m.user_id for m in messages}) / participant_count
        sentiment = (sum(m.sentiment.overall for m in messages) / len(messages) + 1) / 2
        span_minutes = (messages[-1].timestamp - messages[0].timestamp).total_seconds() / 60
        frequency = len(messages) / span_minutes if span_minutes > 0 else 0.0

        return participation * 0.4 + sentiment * 0.3 + min(1.0, frequency / 5) * 0.3
