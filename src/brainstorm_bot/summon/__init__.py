# brainstorm_bot/summon/__init__.py
"""Detecting when participants address the bot, reading what they want, and answering."""

from brainstorm_bot.summon.context_analyzer import SummonContextAnalyzer  # noqa: F401
from brainstorm_bot.summon.detector import (  # noqa: F401
    SummonDetector,
    default_summon_config,
)
from brainstorm_bot.summon.response_handler import SummonResponseHandler  # noqa: F401
