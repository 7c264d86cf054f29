# brainstorm_bot/summon/context_analyzer.py
"""
Summon context analysis - what kind of request a summon carries and
whether it is clear enough to answer directly.
"""

from __future__ import annotations

import logging
import re

from ..completion.base import CompletionClient
from ..completion.resilient import is_substitute_answer
from ..exceptions import AuthenticationError
from ..models import (
    ChatMessage,
    ConversationContext,
    QuestionType,
    ResponseType,
    SummonContext,
    SummonResult,
)

logger = logging.getLogger(__name__)

CLARITY_THRESHOLD = 0.4


def _compile(*patterns: str) -> list[re.Pattern[str]]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


DIRECT_QUESTION_PATTERNS = _compile(
    r"\bwhat\s+(is|are|was|were|do|does|did)\b",
    r"\bhow\s+(do|does|did|can|could|should|would|much|many)\b",
    r"\bwhen\s+(is|are|was|were|do|does|did|will|would)\b",
    r"\bwhere\s+(is|are|was|were|do|does|did)\b",
    r"\bwhy\s+(is|are|was|were|do|does|did)\b",
    r"\bwho\s+(is|are|was|were)\b",
    r"\bwhich\s+(is|are|was|were|one|ones)\b",
    r"\bcan\s+you\b",
    r"\bcould\s+you\b",
    r"\bwould\s+you\b",
    r"\bshould\s+we\b",
    r"\?$",
)

INFORMATION_REQUEST_PATTERNS = _compile(
    r"\btell\s+me\s+about\b",
    r"\bshow\s+me\b",
    r"\bfind\s+(out|information)\b",
    r"\blook\s+up\b",
    r"\bget\s+(me\s+)?(data|information|details)\b",
    r"\bprovide\s+(me\s+)?(with\s+)?\b",
    r"\bgive\s+me\b",
    r"\bneed\s+(to\s+)?(know|see|understand)\b",
)

OPINION_REQUEST_PATTERNS = _compile(
    r"\bwhat\s+do\s+you\s+think\b",
    r"\byour\s+(opinion|thoughts|view|perspective)\b",
    r"\bdo\s+you\s+(think|believe|feel)\b",
    r"\bshould\s+(I|we)\b",
    r"\bwould\s+you\s+(recommend|suggest)\b",
    r"\badvice\b",
    r"\brecommendation\b",
)

HELP_REQUEST_PATTERNS = _compile(
    r"\bhelp\s+(me|us|with)\b",
    r"\bassist\s+(me|us|with)\b",
    r"\bsupport\b",
    r"\bguide\s+(me|us)\b",
    r"\bneed\s+(help|assistance)\b",
    r"\bcan\s+you\s+help\b",
    r"\bstuck\b",
    r"\bconfused\b",
)

GREETING_PATTERNS = _compile(
    r"^(hi|hello|hey)\s*(bot|assistant)?\s*[!.]?$",
    r"^(good\s+(morning|afternoon|evening))\s*(bot|assistant)?\s*[!.]?$",
    r"^(thanks?|thank\s+you)\s*(bot|assistant)?\s*[!.]?$",
    r"^(bye|goodbye|see\s+you)\s*(bot|assistant)?\s*[!.]?$",
)

VAGUE_INDICATORS = [
    "maybe", "perhaps", "possibly", "might", "could be", "not sure", "unclear",
    "confused", "dunno", "don't know", "uncertain", "kinda", "sorta", "somewhat",
    "thing", "stuff", "something", "whatever",
]

SPECIFIC_TERMS = [
    "valuation", "market", "company", "investment", "funding", "revenue", "growth",
    "analysis", "data", "metrics", "financial", "due diligence", "portfolio",
    "startup", "venture", "equity", "term sheet", "cap table",
]

INTENT_BUCKETS = [
    ("market", "market data"),
    ("valuation", "valuation help"),
    ("company", "company analysis"),
    ("investment", "investment analysis"),
    ("help", "general help"),
    ("think", "opinion request"),
]

INTENT_PROMPT = """Analyze this user message and extract the core intent in 1-2 words:
Examples:
- "What's the market size?" -> "market data"
- "Help me understand this valuation" -> "valuation help"
- "Can you analyze this company?" -> "company analysis"
- "What do you think about this deal?" -> "deal opinion"
- "Hi bot" -> "greeting"
Respond with just the intent (1-2 words):"""

_LEADING_MENTION = re.compile(r"^(bot|assistant|ai)[,:\s]+", re.IGNORECASE)
_TRAILING_MENTION = re.compile(r"[,:\s]+(bot|assistant|ai)$", re.IGNORECASE)
_CAPITALIZED_RUN = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*(?:\s+(?:Inc|Corp|LLC|Ltd))?\b")


def _matches(text: str, patterns: list[re.Pattern[str]]) -> bool:
    return any(p.search(text) for p in patterns)


def clean_request(request: str) -> str:
    text = _LEADING_MENTION.sub("", request.strip())
    return _TRAILING_MENTION.sub("", text).strip()


def classify_question_type(text: str) -> QuestionType:
    if _matches(text, GREETING_PATTERNS):
        return QuestionType.GREETING
    # Opinion patterns overlap with direct-question ones and are more specific.
    if _matches(text, OPINION_REQUEST_PATTERNS):
        return QuestionType.OPINION_REQUEST
    if _matches(text, INFORMATION_REQUEST_PATTERNS):
        return QuestionType.INFORMATION_REQUEST
    if _matches(text, HELP_REQUEST_PATTERNS):
        return QuestionType.HELP_REQUEST
    if _matches(text, DIRECT_QUESTION_PATTERNS):
        return QuestionType.DIRECT_QUESTION
    return QuestionType.UNCLEAR_REQUEST


def has_explicit_question(text: str) -> bool:
    return "?" in text or _matches(text, DIRECT_QUESTION_PATTERNS) or _matches(text, OPINION_REQUEST_PATTERNS)


def intent_from_keywords(text: str) -> str:
    lowered = text.lower()
    for keyword, intent in INTENT_BUCKETS:
        if keyword in lowered:
            return intent
    return "general inquiry"


class SummonContextAnalyzer:
    """Classifies summon requests and scores how clearly they are phrased."""

    def __init__(self, client: CompletionClient, clarity_threshold: float = CLARITY_THRESHOLD):
        self.client = client
        self.clarity_threshold = clarity_threshold

    async def analyze_summon_context(
        self,
        summon: SummonResult,
        message: ChatMessage,
        context: ConversationContext,
    ) -> SummonContext:
        request = clean_request(summon.extracted_request or message.content)
        question_type = classify_question_type(request)
        clarity = self.calculate_question_clarity(request, context)

        return SummonContext(
            has_explicit_question=has_explicit_question(request),
            question_clarity=clarity,
            requires_clarification=self._requires_clarification(question_type, clarity, request),
            direct_response_possible=self._direct_response_possible(question_type, clarity),
            question_type=question_type,
            contextual_cues=self.extract_contextual_cues(request, context),
            extracted_intent=await self.extract_question_intent(request),
        )

    @staticmethod
    def determine_response_type(summon_context: SummonContext) -> ResponseType:
        if summon_context.question_type == QuestionType.GREETING:
            return ResponseType.ACKNOWLEDGMENT
        if summon_context.requires_clarification:
            return ResponseType.CLARIFICATION_NEEDED
        if summon_context.question_type == QuestionType.INFORMATION_REQUEST:
            return ResponseType.INFORMATION_REQUEST
        if summon_context.direct_response_possible:
            return ResponseType.DIRECT_ANSWER
        return ResponseType.CLARIFICATION_NEEDED

    async def extract_question_intent(self, text: str) -> str:
        if not text or len(text.strip()) < 3:
            return "unclear intent"

        try:
            response = await self.client.analyze_text(text, INTENT_PROMPT)
        except AuthenticationError:
            raise
        except Exception as exc:
            logger.debug("Intent extraction fell back to keywords: %s", exc)
            return intent_from_keywords(text)

        intent = response.content.strip().strip('"').lower()
        if not intent or is_substitute_answer(response):
            return intent_from_keywords(text)
        return intent.splitlines()[0]

    # ===== Scoring =====

    def calculate_question_clarity(self, text: str, context: ConversationContext) -> float:
        clarity = 0.5
        if has_explicit_question(text):
            clarity += 0.2
        if len(text) > 10:
            clarity += 0.1
        lowered = text.lower()
        if any(term in lowered for term in SPECIFIC_TERMS):
            clarity += 0.2

        vague = sum(1 for indicator in VAGUE_INDICATORS if indicator in lowered)
        clarity -= vague * 0.2
        if len(text) < 5:
            clarity -= 0.3

        topic_words = [w for w in context.current_topic.lower().split() if len(w) > 3]
        if any(w in lowered for w in topic_words):
            clarity += 0.1

        return round(max(0.0, min(1.0, clarity)), 2)

    def _requires_clarification(self, question_type: QuestionType, clarity: float, text: str) -> bool:
        if question_type == QuestionType.GREETING:
            return False
        if question_type == QuestionType.UNCLEAR_REQUEST:
            return True
        return clarity < self.clarity_threshold or len(text) < 5

    @staticmethod
    def _direct_response_possible(question_type: QuestionType, clarity: float) -> bool:
        if question_type == QuestionType.GREETING or clarity >= 0.6:
            return True
        return question_type in (QuestionType.DIRECT_QUESTION, QuestionType.OPINION_REQUEST) and clarity >= 0.5

    @staticmethod
    def extract_contextual_cues(text: str, context: ConversationContext) -> list[str]:
        cues = []
        if context.current_topic:
            cues.append(f"current_topic:{context.current_topic}")
        cues.append(f"meeting_type:{context.meeting_type.value}")
        cues.extend(f"entity:{m}" for m in _CAPITALIZED_RUN.findall(text) if len(m) > 2)
        return cues
