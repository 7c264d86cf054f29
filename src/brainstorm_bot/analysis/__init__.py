# brainstorm_bot/analysis/__init__.py
"""Message annotation, per-session context tracking and conversation-flow analysis."""

from brainstorm_bot.analysis.context_analyzer import ContextAnalyzer  # noqa: F401
from brainstorm_bot.analysis.context_tracker import ConversationContextTracker  # noqa: F401
from brainstorm_bot.analysis.message_processor import MessageProcessor  # noqa: F401
