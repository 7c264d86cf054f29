# brainstorm_bot/models/enums.py
"""Enumerations shared across the brainstorm bot."""

from __future__ import annotations

from enum import Enum

# =============================================================================
# Participants and meetings
# =============================================================================


class VCRole(str, Enum):
    PARTNER = "partner"
    PRINCIPAL = "principal"
    ANALYST = "analyst"
    ENTREPRENEUR = "entrepreneur"
    GUEST = "guest"


class MeetingType(str, Enum):
    INVESTMENT_REVIEW = "investment_review"
    PORTFOLIO_UPDATE = "portfolio_update"
    STRATEGY_SESSION = "strategy_session"
    DUE_DILIGENCE = "due_diligence"
    GENERAL_DISCUSSION = "general_discussion"


class CommunicationStyle(str, Enum):
    FORMAL = "formal"
    CONVERSATIONAL = "conversational"
    BRIEF = "brief"
    DETAILED = "detailed"


class ExpertiseArea(str, Enum):
    FINTECH = "fintech"
    HEALTHCARE = "healthcare"
    ENTERPRISE_SOFTWARE = "enterprise_software"
    CONSUMER_TECH = "consumer_tech"
    DEEP_TECH = "deep_tech"
    BIOTECH = "biotech"


class InformationType(str, Enum):
    MARKET_DATA = "market_data"
    COMPANY_INFO = "company_info"
    FINANCIAL_METRICS = "financial_metrics"
    INDUSTRY_TRENDS = "industry_trends"
    COMPETITIVE_ANALYSIS = "competitive_analysis"


# =============================================================================
# Interventions
# =============================================================================


class InterventionType(str, Enum):
    TOPIC_REDIRECT = "topic_redirect"
    INFORMATION_PROVIDE = "information_provide"
    FACT_CHECK = "fact_check"
    CLARIFICATION_REQUEST = "clarification_request"
    SUMMARY_OFFER = "summary_offer"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class UrgencyLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class InterventionFrequency(str, Enum):
    MINIMAL = "minimal"
    MODERATE = "moderate"
    ACTIVE = "active"
    VERY_ACTIVE = "very_active"


class UserReactionType(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    IGNORED = "ignored"
    DISMISSED = "dismissed"
    ACKNOWLEDGED = "acknowledged"


class ConversationOutcome(str, Enum):
    IMPROVED_FOCUS = "improved_focus"
    PROVIDED_VALUE = "provided_value"
    DISRUPTED_FLOW = "disrupted_flow"
    NO_IMPACT = "no_impact"
    NEGATIVE_IMPACT = "negative_impact"


class MomentumDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class RedirectionApproach(str, Enum):
    GENTLE_REMINDER = "gentle_reminder"
    CONTEXT_SUMMARY = "context_summary"
    DIRECT_REDIRECT = "direct_redirect"
    AGENDA_REFERENCE = "agenda_reference"


# =============================================================================
# Summoning
# =============================================================================


class SummonType(str, Enum):
    BOT_MENTION = "bot_mention"
    TRIGGER_PHRASE = "trigger_phrase"
    HELP_REQUEST = "help_request"
    ACTIVITY_CONTROL = "activity_control"


class ActivityLevel(str, Enum):
    SILENT = "silent"
    QUIET = "quiet"
    NORMAL = "normal"
    ACTIVE = "active"


class QuestionType(str, Enum):
    DIRECT_QUESTION = "direct_question"
    INFORMATION_REQUEST = "information_request"
    OPINION_REQUEST = "opinion_request"
    HELP_REQUEST = "help_request"
    UNCLEAR_REQUEST = "unclear_request"
    GREETING = "greeting"


class ResponseType(str, Enum):
    DIRECT_ANSWER = "direct_answer"
    CLARIFICATION_NEEDED = "clarification_needed"
    INFORMATION_REQUEST = "information_request"
    ACKNOWLEDGMENT = "acknowledgment"


# =============================================================================
# Resilience and degradation
# =============================================================================


class ErrorType(str, Enum):
    API_FAILURE = "api_failure"
    RATE_LIMIT = "rate_limit"
    NETWORK_ERROR = "network_error"
    AUTHENTICATION_ERROR = "authentication_error"
    VALIDATION_ERROR = "validation_error"
    TIMEOUT_ERROR = "timeout_error"
    UNKNOWN_ERROR = "unknown_error"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class FallbackKind(str, Enum):
    CACHE = "cache"
    DEGRADED = "degraded"
    TEMPLATE = "template"
    OFFLINE = "offline"
    OTHER = "other"


class DegradationLevel(str, Enum):
    """Ordered from full capability to offline."""

    NONE = "none"
    MINIMAL = "minimal"
    MODERATE = "moderate"
    SEVERE = "severe"
    OFFLINE = "offline"

    @property
    def rank(self) -> int:
        return _DEGRADATION_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, DegradationLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, DegradationLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, DegradationLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, DegradationLevel):
            return NotImplemented
        return self.rank >= other.rank


_DEGRADATION_ORDER = list(DegradationLevel)


class ConflictType(str, Enum):
    CONTRADICTORY_INFORMATION = "contradictory_information"
    AMBIGUOUS_CONTEXT = "ambiguous_context"
    INSUFFICIENT_DATA = "insufficient_data"
    MULTIPLE_INTERPRETATIONS = "multiple_interpretations"
    UNCERTAIN_FACTS = "uncertain_facts"


class RecommendedAction(str, Enum):
    REQUEST_CLARIFICATION = "request_clarification"
    PRESENT_ALTERNATIVES = "present_alternatives"
    DEFER_TO_HUMAN = "defer_to_human"
    USE_CONSERVATIVE_APPROACH = "use_conservative_approach"
    ACKNOWLEDGE_UNCERTAINTY = "acknowledge_uncertainty"


class SourceType(str, Enum):
    API = "api"
    KNOWLEDGE_BASE = "knowledge_base"
    CALCULATION = "calculation"
    FALLBACK = "fallback"
