# brainstorm_bot/models/__init__.py
"""
Data models for the brainstorm bot.

All public names are re-exported here so callers can write
``from brainstorm_bot.models import ChatMessage``.
"""

# --- analysis results ---------------------------------------------------------
from brainstorm_bot.models.analysis import (  # noqa: F401
    ConversationHealth,
    FlowAnalysis,
    InformationGap,
    MomentumIndicator,
    ParticipationMetrics,
    RedirectionStrategy,
    TopicDriftResult,
)

# --- conversation state -------------------------------------------------------
from brainstorm_bot.models.context import (  # noqa: F401
    AgendaItem,
    ConversationContext,
    ConversationFlow,
    ConversationStats,
    ConversationTone,
    EngagementMetrics,
    InterventionRecord,
    Participant,
    QuietHours,
    TopicChange,
    UserPreferences,
    UserReaction,
)

# --- decisions ----------------------------------------------------------------
from brainstorm_bot.models.decisions import (  # noqa: F401
    ActivityLevelChange,
    BehaviorAdjustment,
    ConversationState,
    InterventionDecision,
    TimingStrategy,
    UserFeedback,
)

# --- enums --------------------------------------------------------------------
from brainstorm_bot.models.enums import (  # noqa: F401
    ActivityLevel,
    CommunicationStyle,
    ConflictType,
    ConversationOutcome,
    DegradationLevel,
    ErrorSeverity,
    ErrorType,
    ExpertiseArea,
    FallbackKind,
    HealthStatus,
    InformationType,
    InterventionFrequency,
    InterventionType,
    MeetingType,
    MomentumDirection,
    Priority,
    QuestionType,
    RecommendedAction,
    RedirectionApproach,
    ResponseType,
    SourceType,
    SummonType,
    UrgencyLevel,
    UserReactionType,
    VCRole,
)

# --- learning -----------------------------------------------------------------
from brainstorm_bot.models.learning import (  # noqa: F401
    EffectivenessScore,
    FeedbackRecord,
    InterventionPattern,
    LearningMetrics,
    ThresholdAdjustments,
)

# --- messages -----------------------------------------------------------------
from brainstorm_bot.models.messages import (  # noqa: F401
    ChatMessage,
    Entity,
    MessageMetadata,
    ProcessedMessage,
    SentimentScore,
    TopicCategory,
    utcnow,
)

# --- resilience ---------------------------------------------------------------
from brainstorm_bot.models.resilience import (  # noqa: F401
    ErrorContext,
    ErrorRecord,
    ErrorStatistics,
    FallbackStrategy,
    RetryConfig,
    SystemHealthStatus,
)

# --- responses, conflicts, degradation ----------------------------------------
from brainstorm_bot.models.responses import (  # noqa: F401
    Alternative,
    BotResponse,
    CachedResponse,
    CacheStatistics,
    CommunicationQuality,
    CompletionResponse,
    ConflictResolution,
    DegradationStatus,
    DegradationStrategy,
    FallbackBehavior,
    ResponseSource,
    TokenUsage,
    ValidationResult,
)

# --- summoning ----------------------------------------------------------------
from brainstorm_bot.models.summon import (  # noqa: F401
    ActivityControlCommand,
    BotMentionConfig,
    SummonConfig,
    SummonContext,
    SummonResponse,
    SummonResult,
    TriggerPhrase,
)
