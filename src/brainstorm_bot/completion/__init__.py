# brainstorm_bot/completion/__init__.py
"""
Completion service layer.

- ``CompletionClient``: the protocol every backend satisfies
- ``LLMCompletionClient``: chuk-llm backed implementation
- ``ResilientCompletionClient``: cache, retries and fallbacks around any client
"""

from brainstorm_bot.completion.base import (  # noqa: F401
    CompletionClient,
    build_analysis_request,
    build_generation_request,
    calculate_confidence,
)
from brainstorm_bot.completion.cache import ResponseCache  # noqa: F401
from brainstorm_bot.completion.llm_client import LLMCompletionClient  # noqa: F401
from brainstorm_bot.completion.resilient import (  # noqa: F401
    DEGRADED_ANALYSIS_TEXT,
    TEMPLATE_RESPONSES,
    ResilientCompletionClient,
    is_substitute_answer,
)
