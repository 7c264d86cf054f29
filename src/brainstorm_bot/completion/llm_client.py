# brainstorm_bot/completion/llm_client.py
"""
Completion client backed by chuk-llm.

Wraps ``chuk_llm.llm.client.get_client`` behind the ``CompletionClient``
protocol. Provider failures come back either as raised exceptions or as an
``error`` entry in the result dict; both are turned into the package's
``CompletionServiceError`` family so the error coordinator can classify them.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from chuk_llm.llm.client import get_client

from ..config import DEFAULT_MODEL, DEFAULT_PROVIDER, BotSettings
from ..exceptions import (
    AuthenticationError,
    CompletionServiceError,
    ConfigurationError,
    RateLimitError,
    ServiceTimeoutError,
    ServiceUnavailableError,
)
from ..models import CompletionResponse, TokenUsage
from .base import build_analysis_request, build_generation_request, calculate_confidence

logger = logging.getLogger(__name__)

HEALTH_PROBE = "Hello, are you working?"


def _error_from_message(message: str) -> CompletionServiceError:
    lowered = message.lower()
    if any(s in lowered for s in ("unauthorized", "authentication", "api key", "forbidden", "permission")):
        return AuthenticationError(message)
    if any(s in lowered for s in ("rate limit", "quota", "429")):
        return RateLimitError(message)
    if "timeout" in lowered or "timed out" in lowered:
        return ServiceTimeoutError(message)
    return ServiceUnavailableError(message)


def _estimate_tokens(text: str) -> int:
    return len(text.split())


class LLMCompletionClient:
    """Talks to a chat model through chuk-llm."""

    def __init__(
        self,
        api_key: str,
        provider: str = DEFAULT_PROVIDER,
        model: str = DEFAULT_MODEL,
    ):
        if not api_key:
            raise ConfigurationError("An API key is required for the completion service")
        self.provider = provider
        self.model = model
        self._api_key = api_key
        self._client: Any = None

    @classmethod
    def from_settings(cls, settings: BotSettings) -> LLMCompletionClient:
        return cls(api_key=settings.gemini_api_key, provider=settings.llm_provider, model=settings.llm_model)

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_client(provider=self.provider, model=self.model, api_key=self._api_key)
        return self._client

    async def _complete(self, prompt: str) -> CompletionResponse:
        messages = [{"role": "user", "content": prompt}]
        try:
            result = await self.client.create_completion(messages=messages)
        except CompletionServiceError:
            raise
        except (ConnectionError, TimeoutError):
            raise
        except Exception as exc:
            raise _error_from_message(str(exc)) from exc

        if not isinstance(result, dict):
            raise ServiceUnavailableError(f"Unexpected completion payload: {type(result).__name__}")
        if result.get("error"):
            raise _error_from_message(str(result.get("error_message") or result["error"]))

        text = result.get("response") or result.get("content") or ""
        if not isinstance(text, str):
            text = str(text)

        usage = result.get("usage") or {}
        token_usage = TokenUsage(
            input_tokens=usage.get("prompt_tokens", _estimate_tokens(prompt)),
            output_tokens=usage.get("completion_tokens", _estimate_tokens(text)),
        )
        logger.debug("%s/%s returned %d chars", self.provider, self.model, len(text))
        return CompletionResponse(content=text, confidence=calculate_confidence(text), usage=token_usage)

    async def analyze_text(self, text: str, prompt: str) -> CompletionResponse:
        return await self._complete(build_analysis_request(text, prompt))

    async def generate_response(self, prompt: str, context: Optional[str] = None) -> CompletionResponse:
        return await self._complete(build_generation_request(prompt, context))

    async def is_healthy(self) -> bool:
        """Round-trip health check. Failures propagate so the caller can classify them."""
        response = await self._complete(HEALTH_PROBE)
        return bool(response.content.strip())
