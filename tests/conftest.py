# tests/conftest.py
"""
Shared pytest fixtures and helpers for brainstorm_bot tests.

``ScriptedCompletionClient`` stands in for the completion service: answers
are picked by matching a substring of the prompt (or text), and anything
unmatched falls through to ``default``, which raises by default so callers
exercise their local fallbacks. Setting ``outage`` makes every call fail.

``resilient`` wraps a double in the production cache and fallback layer
without real backoff sleeps.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union
from unittest.mock import AsyncMock

import pytest

from brainstorm_bot.completion import ResilientCompletionClient
from brainstorm_bot.completion.base import calculate_confidence
from brainstorm_bot.config import BotSettings
from brainstorm_bot.exceptions import ServiceUnavailableError
from brainstorm_bot.models import (
    ChatMessage,
    CompletionResponse,
    ConversationContext,
    Participant,
    ProcessedMessage,
    RetryConfig,
    SentimentScore,
    TopicCategory,
)
from brainstorm_bot.resilience import ErrorCoordinator

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logging.getLogger("brainstorm_bot").setLevel(logging.DEBUG)

BASE_TIME = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)

Answer = Union[str, BaseException, Callable[[str, str], str], None]


class ScriptedCompletionClient:
    """Completion client double with prompt-matched answers and call recording."""

    def __init__(
        self,
        rules: Optional[list[tuple[str, Answer]]] = None,
        default: Answer = None,
        generated: Answer = "Let's look at the unit economics next.",
        healthy: Union[bool, BaseException] = True,
    ):
        self.rules = list(rules or [])
        self.default = default
        self.generated = generated
        self.healthy = healthy
        self.analyze_calls: list[tuple[str, str]] = []
        self.generate_calls: list[tuple[str, Optional[str]]] = []
        self.health_calls = 0
        self.outage = False

    @staticmethod
    def _respond(answer: Answer, text: str, prompt: str) -> CompletionResponse:
        if answer is None:
            raise ServiceUnavailableError("service unavailable")
        if isinstance(answer, BaseException):
            raise answer
        if callable(answer):
            answer = answer(text, prompt)
        return CompletionResponse(content=answer, confidence=calculate_confidence(answer))

    async def analyze_text(self, text: str, prompt: str) -> CompletionResponse:
        self.analyze_calls.append((text, prompt))
        if self.outage:
            raise ServiceUnavailableError("service unavailable")
        for needle, answer in self.rules:
            if needle in prompt or needle in text:
                return self._respond(answer, text, prompt)
        return self._respond(self.default, text, prompt)

    async def generate_response(self, prompt: str, context: Optional[str] = None) -> CompletionResponse:
        self.generate_calls.append((prompt, context))
        if self.outage:
            raise ServiceUnavailableError("service unavailable")
        return self._respond(self.generated, prompt, context or "")

    async def is_healthy(self) -> bool:
        self.health_calls += 1
        if isinstance(self.healthy, BaseException):
            raise self.healthy
        return self.healthy


class FakeClock:
    """Manually advanced clock returning aware datetimes."""

    def __init__(self, start: datetime = BASE_TIME):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def make_message(
    content: str,
    user_id: str = "alice",
    message_id: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> ChatMessage:
    return ChatMessage(
        id=message_id or f"msg_{abs(hash((content, user_id))) % 10**8}",
        user_id=user_id,
        content=content,
        timestamp=timestamp or BASE_TIME,
    )


def make_processed(
    content: str,
    user_id: str = "alice",
    timestamp: Optional[datetime] = None,
    topics: Optional[list[TopicCategory]] = None,
    sentiment: Optional[SentimentScore] = None,
    message_id: Optional[str] = None,
) -> ProcessedMessage:
    return ProcessedMessage(
        original_message=make_message(content, user_id, message_id=message_id, timestamp=timestamp),
        topic_classification=topics or [],
        sentiment=sentiment or SentimentScore(),
    )


def make_context(
    messages: Optional[list[ProcessedMessage]] = None,
    participants: Optional[list[Participant]] = None,
    **kwargs,
) -> ConversationContext:
    return ConversationContext(
        session_id=kwargs.pop("session_id", "session-1"),
        participants=participants if participants is not None else [
            Participant(id="alice", name="Alice"),
            Participant(id="bob", name="Bob"),
        ],
        message_history=messages or [],
        start_time=kwargs.pop("start_time", BASE_TIME),
        **kwargs,
    )


def resilient(base: ScriptedCompletionClient) -> ResilientCompletionClient:
    coordinator = ErrorCoordinator(RetryConfig(max_retries=0), sleep=AsyncMock())
    return ResilientCompletionClient(base, coordinator=coordinator)


@pytest.fixture
def scripted_client():
    """Completion client that fails every analysis call unless told otherwise."""
    return ScriptedCompletionClient()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fast_coordinator():
    """Error coordinator that never really sleeps."""
    return ErrorCoordinator(RetryConfig(max_retries=2, base_delay=0.01, max_delay=0.05), sleep=AsyncMock())


@pytest.fixture
def settings():
    return BotSettings(
        gemini_api_key="test-key", intervention_cooldown_ms=0, max_retries=0, health_check_interval_seconds=0
    )
