# brainstorm_bot/completion/base.py
"""
The completion-service boundary.

Anything that can analyze text and generate a response satisfies
``CompletionClient``: the chuk-llm backed client, the resilient wrapper
around it, or a test double.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from ..models import CompletionResponse

LIST_MARKERS = ("\n", "•", "-")


@runtime_checkable
class CompletionClient(Protocol):
    """Two request shapes plus a health check."""

    async def analyze_text(self, text: str, prompt: str) -> CompletionResponse: ...

    async def generate_response(self, prompt: str, context: Optional[str] = None) -> CompletionResponse: ...

    async def is_healthy(self) -> bool: ...


def calculate_confidence(text: str) -> float:
    """
    Score a completion by length and structure.

    Empty text scores 0. Otherwise start at 0.7, add 0.1 above 100 characters,
    another 0.1 above 500, and 0.1 when the text has line breaks or list
    markers; never exceed 1.0.
    """
    if not text:
        return 0.0

    confidence = 0.7
    if len(text) > 100:
        confidence += 0.1
    if len(text) > 500:
        confidence += 0.1
    if any(marker in text for marker in LIST_MARKERS):
        confidence += 0.1

    return min(1.0, round(confidence, 2))


def build_analysis_request(text: str, prompt: str) -> str:
    return f'{prompt}\n\nText to analyze: "{text}"'


def build_generation_request(prompt: str, context: Optional[str] = None) -> str:
    if context:
        return f"Context: {context}\n\nPrompt: {prompt}"
    return prompt
