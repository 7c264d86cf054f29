# brainstorm_bot/generation/__init__.py
"""Drafting, polishing and safeguarding the bot's replies."""

from brainstorm_bot.generation.communication_filter import CommunicationFilter  # noqa: F401
from brainstorm_bot.generation.degradation import (  # noqa: F401
    DEGRADATION_STRATEGIES,
    GracefulDegradationService,
)
from brainstorm_bot.generation.response_generator import (  # noqa: F401
    RESPONSE_TEMPLATES,
    ResponseGenerator,
)
