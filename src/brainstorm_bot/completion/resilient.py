# brainstorm_bot/completion/resilient.py
"""
Resilient completion client.

Adds a TTL cache, retries and fallback strategies around any
``CompletionClient``. Callers see the same three operations; ordinary
service failures come back as low-confidence fallback responses instead of
exceptions. Authentication failures still propagate.
"""

from __future__ import annotations

import logging
import random
from typing import Optional

from ..exceptions import ServiceUnavailableError
from ..models import CompletionResponse, ErrorContext, FallbackKind, FallbackStrategy, TokenUsage
from ..resilience import ErrorCoordinator
from .base import CompletionClient
from .cache import ResponseCache

logger = logging.getLogger(__name__)

COMPONENT = "ResilientCompletionClient"
ANALYZE = "analyze_text"
GENERATE = "generate_response"
HEALTH = "is_healthy"
SCOPE_KEY = "prompt_digest"

DEGRADED_ANALYSIS_TEXT = "Basic analysis completed. AI-powered analysis is currently unavailable."

TEMPLATE_RESPONSES = [
    "I understand you need assistance. Let me help you with that.",
    "I'm currently experiencing some technical difficulties, but I can still provide basic support.",
    "Thank you for your patience. I'm working with limited capabilities at the moment.",
    "I'm here to help, though my responses may be more basic than usual right now.",
]


class ResilientCompletionClient:
    """
    Cache-first wrapper that runs every service call through an ``ErrorCoordinator``.

    Fallback chains:
        analyze_text:      similar cached response, then a canned degraded analysis
        generate_response: similar cached response, then a neutral template

    "Similar" means another entry written for the same prompt. Every fallback
    result carries ``fallback`` so callers that need an answer about their own
    text can switch to local heuristics.
    """

    def __init__(
        self,
        base_client: CompletionClient,
        coordinator: Optional[ErrorCoordinator] = None,
        cache: Optional[ResponseCache] = None,
        cache_enabled: bool = True,
        fallback_enabled: bool = True,
        offline_mode: bool = False,
        rng: Optional[random.Random] = None,
    ):
        self.base_client = base_client
        self.coordinator = coordinator or ErrorCoordinator()
        self.cache = cache or ResponseCache()
        self.cache_enabled = cache_enabled
        self.fallback_enabled = fallback_enabled
        self.offline_mode = offline_mode
        self.is_online = not offline_mode
        self._rng = rng or random.Random()

        if fallback_enabled:
            self._register_fallbacks()

    # ===== Public operations =====

    async def analyze_text(self, text: str, prompt: str) -> CompletionResponse:
        context = ErrorContext(
            operation=ANALYZE,
            component=COMPONENT,
            additional_data={
                "text_length": len(text),
                "prompt_length": len(prompt),
                SCOPE_KEY: ResponseCache.digest(prompt),
            },
        )
        key = ResponseCache.make_key(ANALYZE, prompt, text)

        async def call() -> CompletionResponse:
            return await self.base_client.analyze_text(text, prompt)

        return await self._execute(ANALYZE, key, call, context)

    async def generate_response(self, prompt: str, context: Optional[str] = None) -> CompletionResponse:
        error_context = ErrorContext(
            operation=GENERATE,
            component=COMPONENT,
            additional_data={
                "prompt_length": len(prompt),
                "has_context": bool(context),
                SCOPE_KEY: ResponseCache.digest(prompt),
            },
        )
        key = ResponseCache.make_key(GENERATE, prompt, context or "")

        async def call() -> CompletionResponse:
            return await self.base_client.generate_response(prompt, context)

        return await self._execute(GENERATE, key, call, error_context)

    async def is_healthy(self) -> bool:
        """Never raises; a failed check marks the client offline."""
        if self.offline_mode:
            return False

        context = ErrorContext(operation=HEALTH, component=COMPONENT)
        try:
            healthy = await self.coordinator.execute_with_resilience(self.base_client.is_healthy, context)
        except Exception as exc:
            logger.warning("Health check failed: %s", exc)
            self.is_online = False
            return False

        self.is_online = bool(healthy)
        return self.is_online

    async def _execute(self, operation_name, key, call, context) -> CompletionResponse:
        if self.cache_enabled:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        if self.offline_mode:
            logger.debug("Offline mode: serving %s from fallbacks", operation_name)
            return await self.coordinator.execute_fallbacks(
                operation_name, context, ServiceUnavailableError("Offline mode enabled")
            )

        async def call_and_store() -> CompletionResponse:
            response = await call()
            if self.cache_enabled:
                self.cache.put(key, response)
            return response

        return await self.coordinator.execute_with_resilience(call_and_store, context, operation_name)

    # ===== Administration =====

    def enable_offline_mode(self) -> None:
        self.offline_mode = True
        self.is_online = False
        logger.info("Offline mode enabled")

    def disable_offline_mode(self) -> None:
        self.offline_mode = False
        self.is_online = True
        logger.info("Offline mode disabled")

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Response cache cleared")

    def get_cache_statistics(self):
        return self.cache.get_stats()

    # ===== Fallbacks =====

    def _register_fallbacks(self) -> None:
        self.coordinator.register_fallback_strategy(
            ANALYZE,
            FallbackStrategy(
                kind=FallbackKind.CACHE,
                description="Use cached response for similar text analysis",
                implementation=lambda context: self._similar_cached(ANALYZE, context),
            ),
        )
        self.coordinator.register_fallback_strategy(
            ANALYZE,
            FallbackStrategy(
                kind=FallbackKind.DEGRADED,
                description="Basic text analysis without AI",
                implementation=self._degraded_analysis,
            ),
        )
        self.coordinator.register_fallback_strategy(
            GENERATE,
            FallbackStrategy(
                kind=FallbackKind.CACHE,
                description="Use cached response for similar prompt",
                implementation=lambda context: self._similar_cached(GENERATE, context),
            ),
        )
        self.coordinator.register_fallback_strategy(
            GENERATE,
            FallbackStrategy(
                kind=FallbackKind.TEMPLATE,
                description="Use predefined response templates",
                implementation=self._template_response,
            ),
        )

    async def _similar_cached(self, operation_name: str, context: ErrorContext) -> CompletionResponse:
        scope = context.additional_data.get(SCOPE_KEY)
        response = self.cache.find_similar(operation_name, scope) if scope else None
        if response is None:
            raise LookupError("No suitable cached response found")
        logger.info("Using similar cached response as fallback")
        return response.model_copy(update={"fallback": FallbackKind.CACHE})

    async def _degraded_analysis(self, context: ErrorContext) -> CompletionResponse:
        return CompletionResponse(
            content=DEGRADED_ANALYSIS_TEXT,
            confidence=0.3,
            usage=TokenUsage(input_tokens=0, output_tokens=10),
            fallback=FallbackKind.DEGRADED,
        )

    async def _template_response(self, context: ErrorContext) -> CompletionResponse:
        template = self._rng.choice(TEMPLATE_RESPONSES)
        return CompletionResponse(
            content=template,
            confidence=0.4,
            usage=TokenUsage(input_tokens=0, output_tokens=len(template.split(" "))),
            fallback=FallbackKind.TEMPLATE,
        )


def is_substitute_answer(response: CompletionResponse) -> bool:
    """True when ``response`` did not come from the service for this exact request."""
    return response.is_fallback or response.content == DEGRADED_ANALYSIS_TEXT
