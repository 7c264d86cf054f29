# brainstorm_bot/__init__.py
"""
Brainstorm Bot - a proactive assistant for venture-capital brainstorming chats.

Quick start:
    from brainstorm_bot import ProactiveBrainstormBot, load_settings

    bot = ProactiveBrainstormBot(load_settings())
    await bot.start()
"""

from brainstorm_bot.bot import BotMetrics, BotStatus, ProactiveBrainstormBot  # noqa: F401
from brainstorm_bot.config import BotSettings, load_settings  # noqa: F401
from brainstorm_bot.exceptions import (  # noqa: F401
    AuthenticationError,
    BrainstormBotError,
    CompletionServiceError,
    ConfigurationError,
)
from brainstorm_bot.transport import InMemoryChatInterface  # noqa: F401

__version__ = "0.1.0"
