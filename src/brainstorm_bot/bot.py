# brainstorm_bot/bot.py
"""
ProactiveBrainstormBot - the composition root.

Builds every component from one ``BotSettings`` object and wires them into
the message pipeline:

    process -> track -> summon? -> (flow analysis -> decision) -> generate -> filter -> send

Sessions are independent. Each one owns a context tracker and a lock, so a
session's messages are handled one at a time in arrival order while
different sessions proceed concurrently.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from pydantic import Field

from .analysis import ContextAnalyzer, ConversationContextTracker, MessageProcessor
from .base_models import DictCompatModel
from .completion import CompletionClient, LLMCompletionClient, ResilientCompletionClient, ResponseCache
from .config import BotSettings
from .exceptions import AuthenticationError, ConfigurationError
from .generation import CommunicationFilter, GracefulDegradationService, ResponseGenerator
from .intervention import (
    InterventionDecisionEngine,
    InterventionThresholds,
    LearningModule,
    ManualControlManager,
    reaction_from_rating,
)
from .models import (
    AgendaItem,
    BehaviorAdjustment,
    BotResponse,
    ChatMessage,
    ConversationContext,
    ConversationOutcome,
    ConversationState,
    DegradationLevel,
    HealthStatus,
    InterventionDecision,
    InterventionRecord,
    InterventionType,
    LearningMetrics,
    MeetingType,
    Participant,
    RetryConfig,
    UserFeedback,
    UserPreferences,
    utcnow,
)
from .resilience import ErrorCoordinator
from .summon import SummonDetector, SummonResponseHandler
from .transport import ChatInterface, InMemoryChatInterface

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"
MIN_QUALITY_SCORE = 0.6
PROACTIVE_CAPABILITY = "proactive_interventions"

# Errors that end the process rather than a single message.
FATAL_ERRORS = (AuthenticationError, ConfigurationError)


class BotMetrics(DictCompatModel):
    messages_processed: int = 0
    interventions_made: int = 0
    interventions_by_type: dict[str, int] = Field(
        default_factory=lambda: {t.value: 0 for t in InterventionType}
    )
    average_response_time: float = Field(default=0.0, description="Milliseconds per handled message")
    uptime: float = Field(default=0.0, description="Seconds since start")
    error_count: int = 0
    summons_handled: int = 0


class BotStatus(DictCompatModel):
    is_running: bool
    start_time: Optional[datetime] = None
    active_conversations: int = 0
    degradation_level: DegradationLevel = DegradationLevel.NONE
    metrics: BotMetrics = Field(default_factory=BotMetrics)


class SessionState:
    """Per-session tracker plus the lock that serializes its messages."""

    def __init__(self, tracker: ConversationContextTracker):
        self.tracker = tracker
        self.lock = asyncio.Lock()


class ProactiveBrainstormBot:
    """Watches chat sessions and decides when and how to speak up."""

    def __init__(
        self,
        settings: BotSettings,
        chat: Optional[ChatInterface] = None,
        completion_client: Optional[CompletionClient] = None,
        coordinator: Optional[ErrorCoordinator] = None,
        clock: Optional[Callable[[], datetime]] = None,
        respect_timing: bool = False,
    ):
        self.settings = settings
        self.respect_timing = respect_timing
        self._clock = clock or utcnow

        self.coordinator = coordinator or ErrorCoordinator(
            RetryConfig(
                max_retries=settings.max_retries,
                base_delay=settings.retry_base_delay_seconds,
                max_delay=settings.retry_max_delay_seconds,
            )
        )
        base_client = completion_client or LLMCompletionClient.from_settings(settings)
        self.client = ResilientCompletionClient(
            base_client,
            coordinator=self.coordinator,
            cache=ResponseCache(ttl_seconds=settings.cache_ttl_seconds),
        )

        self.message_processor = MessageProcessor(self.client)
        self.context_analyzer = ContextAnalyzer(self.client)
        self.summon_detector = SummonDetector()
        self.manual_control = ManualControlManager(clock=self._clock)
        self.summon_handler = SummonResponseHandler(self.client, self.manual_control)
        self.degradation = GracefulDegradationService()
        self.learning = LearningModule(clock=self._clock) if settings.enable_learning else None
        self.decision_engine = InterventionDecisionEngine(
            InterventionThresholds.from_settings(settings),
            manual_control=self.manual_control,
            clock=self._clock,
            learning=self.learning,
        )
        self.response_generator = ResponseGenerator(self.client, self.degradation)
        self.communication_filter = CommunicationFilter()
        self.chat = chat or InMemoryChatInterface()

        self.metrics = BotMetrics()
        self.fatal_error: Optional[BaseException] = None
        self._sessions: dict[str, SessionState] = {}
        self._tasks: set[asyncio.Task] = set()
        self._running = False
        self._start_time: Optional[datetime] = None
        self._stopped = asyncio.Event()
        self._health_task: Optional[asyncio.Task] = None

        self.chat.on_message(self._on_message)
        logger.info("Proactive brainstorm bot initialized (%s/%s)", settings.llm_provider, settings.llm_model)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            logger.warning("Bot is already running")
            return
        await self.chat.start_listening()
        self._running = True
        self._start_time = self._clock()
        self._stopped.clear()
        if self.settings.health_check_interval_seconds > 0:
            self._health_task = asyncio.create_task(self._run_health_checks(), name="health-checks")
        logger.info("Proactive brainstorm bot started")

    async def stop(self) -> None:
        """Stop accepting messages and wait for in-flight ones to finish."""
        if not self._running:
            logger.warning("Bot is not running")
            return
        self._running = False
        await self._stop_health_checks()
        logger.info("Stopping bot, draining %d in-flight messages", len(self._tasks))
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.chat.stop_listening()
        self._sessions.clear()
        self._start_time = None
        self._stopped.set()
        logger.info("Proactive brainstorm bot stopped")

    async def _run_health_checks(self) -> None:
        interval = self.settings.health_check_interval_seconds
        while True:
            await asyncio.sleep(interval)
            try:
                level = await self.check_health()
            except Exception as exc:
                logger.warning("Periodic health check failed: %s", exc)
                continue
            logger.debug("Periodic health check: degradation %s", level.value)

    async def _stop_health_checks(self) -> None:
        task, self._health_task = self._health_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def wait_stopped(self) -> None:
        await self._stopped.wait()

    async def wait_until_idle(self) -> None:
        """Wait until every delivered message has been fully handled."""
        wait_chat = getattr(self.chat, "wait_until_idle", None)
        while True:
            if wait_chat is not None:
                await wait_chat()
            if not self._tasks:
                return
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_message(self, message: ChatMessage) -> None:
        if not self._running:
            logger.debug("Dropping message %s received while stopped", message.id)
            return
        task = asyncio.create_task(self.handle_message(message), name=f"message-{message.id}")
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.critical("Fatal error while handling a message: %s", exc, exc_info=exc)
            self.fatal_error = exc
            self._stopped.set()

    # =========================================================================
    # Sessions
    # =========================================================================

    def create_session(
        self,
        session_id: str,
        participants: Optional[list[Participant]] = None,
        meeting_type: MeetingType = MeetingType.GENERAL_DISCUSSION,
        agenda: Optional[list[AgendaItem]] = None,
    ) -> ConversationContextTracker:
        tracker = ConversationContextTracker(
            session_id,
            participants=participants,
            meeting_type=meeting_type,
            agenda=agenda,
            max_history_size=self.settings.max_message_history,
            clock=self._clock,
        )
        self._sessions[session_id] = SessionState(tracker)
        logger.info("Session %s created (%s)", session_id, meeting_type.value)
        return tracker

    def get_session(self, session_id: str) -> Optional[ConversationContextTracker]:
        state = self._sessions.get(session_id)
        return state.tracker if state else None

    def end_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def _session_state(self, session_id: str) -> SessionState:
        if session_id not in self._sessions:
            self.create_session(session_id)
        return self._sessions[session_id]

    @staticmethod
    def session_id_for(message: ChatMessage) -> str:
        if message.metadata is not None and message.metadata.thread_id:
            return message.metadata.thread_id
        return DEFAULT_SESSION_ID

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def handle_message(self, message: ChatMessage, session_id: Optional[str] = None) -> Optional[str]:
        """
        Run one message through the pipeline.

        Returns:
            The text sent to the chat, or None when the bot stayed quiet.

        Raises:
            AuthenticationError, ConfigurationError: fatal; everything else is
            logged and counted.
        """
        session_id = session_id or self.session_id_for(message)
        state = self._session_state(session_id)
        started = time.perf_counter()

        async with state.lock:
            self.metrics.messages_processed += 1
            try:
                return await self._handle(message, session_id, state)
            except FATAL_ERRORS:
                self.metrics.error_count += 1
                raise
            except Exception as exc:
                self.metrics.error_count += 1
                logger.error("Error handling message %s in %s: %s", message.id, session_id, exc, exc_info=True)
                return None
            finally:
                self._record_response_time((time.perf_counter() - started) * 1000)

    async def _handle(self, message: ChatMessage, session_id: str, state: SessionState) -> Optional[str]:
        processed = await self.message_processor.process_message(message)
        state.tracker.add_message(processed)

        summon = self.summon_detector.detect_summon(message)
        if summon.is_summoned:
            reply = await self.summon_handler.handle_summon(summon, message, state.tracker.get_context())
            self.metrics.summons_handled += 1
            if not reply.should_respond or not reply.response:
                return None
            await self.chat.send_message(reply.response, session_id)
            return reply.response

        if not self.degradation.is_capability_available(PROACTIVE_CAPABILITY):
            logger.debug("Proactive interventions unavailable at %s", self.degradation.level.value)
            return None

        context = state.tracker.get_context()
        if self._cooling_down(context):
            logger.debug("Session %s is cooling down after its last intervention", session_id)
            return None

        flow = await self.context_analyzer.analyze_conversation_flow(context.message_history)
        preferences = self._preferences_for(context, message.user_id)
        decision = self.decision_engine.should_intervene(context, flow, preferences)
        if not decision.should_respond:
            logger.debug("No intervention for %s: %s", session_id, decision.reasoning)
            return None

        await self._wait_for_timing(decision, context)

        additional_data: dict[str, Any] = {}
        if decision.intervention_type == InterventionType.TOPIC_REDIRECT:
            additional_data["original_topic"] = context.agenda[0].title if context.agenda else context.current_topic
            drift = await self.context_analyzer.detect_topic_drift(context.message_history)
            if drift.is_drifting:
                additional_data["topic_drift"] = drift

        response = await self.response_generator.generate_response(
            decision.intervention_type, context, additional_data
        )
        content = await self.validate_and_enhance(response, message.content, context)

        await self.chat.send_message(content, session_id)
        state.tracker.add_intervention(
            InterventionRecord(
                id=f"int_{uuid.uuid4().hex[:12]}",
                timestamp=self._clock(),
                type=decision.intervention_type,
                trigger=decision.reasoning,
                response=content,
                conversation_id=session_id,
                user_id=message.user_id,
            )
        )
        self.metrics.interventions_made += 1
        self.metrics.interventions_by_type[decision.intervention_type.value] += 1
        logger.info("Intervention made in %s: %s", session_id, decision.intervention_type.value)
        return content

    def _cooling_down(self, context: ConversationContext) -> bool:
        if not context.intervention_history:
            return False
        cooldown = timedelta(milliseconds=self.settings.intervention_cooldown_ms)
        return self._clock() - context.intervention_history[-1].timestamp < cooldown

    # =========================================================================
    # Feedback
    # =========================================================================

    def record_feedback(
        self,
        session_id: str,
        feedback: UserFeedback,
        outcome: ConversationOutcome = ConversationOutcome.NO_IMPACT,
    ) -> BehaviorAdjustment:
        """
        Apply a participant's rating of one intervention.

        The rating is stored on the session's intervention record. When
        learning is enabled the outcome is scored and learned from before
        the behaviour adjustment is computed.
        """
        state = self._sessions.get(session_id)
        history = state.tracker.get_context().intervention_history if state else []
        intervention = next((i for i in history if i.id == feedback.intervention_id), None)

        if intervention is not None:
            reaction = reaction_from_rating(feedback)
            if self.learning is not None:
                updated = self.learning.record_intervention_outcome(intervention, reaction, outcome)
            else:
                updated = intervention.model_copy(update={"user_reaction": reaction})
            state.tracker.update_intervention(updated)
            history = state.tracker.get_context().intervention_history
        else:
            logger.warning("Feedback for unknown intervention %s in %s", feedback.intervention_id, session_id)

        return self.decision_engine.adapt_behavior_from_feedback(feedback, history)

    def get_learning_metrics(self, user_id: str) -> Optional[LearningMetrics]:
        if self.learning is None:
            return None
        return self.learning.get_user_metrics(user_id)

    @staticmethod
    def _preferences_for(context: ConversationContext, user_id: str) -> UserPreferences:
        participant = context.find_participant(user_id)
        return participant.preferences if participant else UserPreferences()

    async def _wait_for_timing(self, decision: InterventionDecision, context: ConversationContext) -> None:
        last = context.message_history[-1].timestamp if context.message_history else self._clock()
        pause_ms = max(0.0, (self._clock() - last).total_seconds() * 1000)
        timing = self.decision_engine.calculate_intervention_timing(
            decision,
            ConversationState(is_active=pause_ms < 30000, last_message_time=last, pause_duration_ms=pause_ms),
        )
        logger.debug("Intervention timing: %s", timing.reasoning)
        if self.respect_timing:
            await asyncio.sleep(timing.delay_seconds)

    async def validate_and_enhance(self, response: BotResponse, user_input: str, context: ConversationContext) -> str:
        """Polish a generated reply; regenerate once if the result still reads poorly."""
        content = self.communication_filter.filter_response(
            response.content,
            user_input=user_input,
            meeting_type=context.meeting_type,
            participants=context.participants,
        )
        quality = self.communication_filter.evaluate_communication_quality(content, user_input)
        if quality.overall_score >= MIN_QUALITY_SCORE:
            return content

        logger.warning("Low quality response (score %.2f), regenerating", quality.overall_score)
        validation = self.communication_filter.validate_business_language(content)
        retry = await self.response_generator.generate_response(
            response.type,
            context,
            {
                "strict_professional_mode": True,
                "previous_attempt": response.content,
                "quality_issues": validation.issues,
            },
        )
        return self.communication_filter.remove_robotic_phrases(
            self.communication_filter.ensure_professional_tone(retry.content)
        ) or retry.content

    def _record_response_time(self, elapsed_ms: float) -> None:
        count = self.metrics.messages_processed
        average = self.metrics.average_response_time
        self.metrics.average_response_time = (average * (count - 1) + elapsed_ms) / max(count, 1)

    # =========================================================================
    # Health and reporting
    # =========================================================================

    async def check_health(self) -> DegradationLevel:
        """Check the completion service and set the degradation level from the result."""
        healthy = await self.client.is_healthy()
        system = self.coordinator.get_system_health()

        if self.client.offline_mode:
            level = DegradationLevel.OFFLINE
        elif not healthy:
            level = DegradationLevel.SEVERE
        elif system.status == HealthStatus.UNHEALTHY:
            level = DegradationLevel.MODERATE
        elif system.status == HealthStatus.DEGRADED:
            level = DegradationLevel.MINIMAL
        else:
            level = DegradationLevel.NONE

        self.degradation.set_degradation_level(level)
        return level

    def _uptime(self) -> float:
        if self._start_time is None:
            return 0.0
        return (self._clock() - self._start_time).total_seconds()

    def get_metrics(self) -> BotMetrics:
        return self.metrics.model_copy(
            update={
                "uptime": self._uptime(),
                "interventions_by_type": dict(self.metrics.interventions_by_type),
            }
        )

    def get_status(self) -> BotStatus:
        return BotStatus(
            is_running=self._running,
            start_time=self._start_time,
            active_conversations=len(self._sessions),
            degradation_level=self.degradation.level,
            metrics=self.get_metrics(),
        )
