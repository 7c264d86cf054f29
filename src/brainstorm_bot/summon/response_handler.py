# brainstorm_bot/summon/response_handler.py
"""
Summon response handler - what the bot says back when it is addressed.

Activity-control commands update the manual controls and are acknowledged
with a fixed line. Mentions go through the summon context analyzer and are
answered according to the response type it picks; help requests and trigger
phrases get a prompt of their own. Every completion call has a canned
answer to fall back on, so a summon is always answered.
"""

from __future__ import annotations

import logging
import random
from typing import Optional

from ..completion.base import CompletionClient
from ..completion.resilient import is_substitute_answer
from ..exceptions import AuthenticationError
from ..intervention.manual_control import ManualControlManager
from ..models import (
    ActivityLevel,
    ChatMessage,
    ConversationContext,
    QuestionType,
    ResponseType,
    SummonContext,
    SummonResponse,
    SummonResult,
    SummonType,
)
from .context_analyzer import SummonContextAnalyzer

logger = logging.getLogger(__name__)

RETURN_TO_MONITORING = "return_to_monitoring"

ACTIVITY_ACKNOWLEDGMENTS = {
    ActivityLevel.SILENT: "I'll stay silent now. Mention me directly if you need help.",
    ActivityLevel.QUIET: "I'll be less active and only speak up when really necessary.",
    ActivityLevel.NORMAL: "I'm back to normal activity level.",
    ActivityLevel.ACTIVE: "I'll be more proactive in providing input and suggestions.",
}

GREETINGS = [
    "Hello! I'm here to help with your VC discussion.",
    "Hi there! Ready to assist with investment analysis.",
    "Good to hear from you! How can I support the discussion?",
    "Hello! What can I help you with today?",
]

DEFAULT_HELP_RESPONSE = """I can help with:
• Market research and competitive analysis
• Company information and financial data
• Investment evaluation and due diligence
• Fact-checking claims and statements
• Keeping discussions on track
• Providing relevant context and insights

What specific area would you like assistance with?"""

VAGUE_CLARIFICATION = """I'd like to help, but could you be more specific? For example:
• Are you looking for market data or company analysis?
• Do you need help with financial modeling or due diligence?
• Would you like my opinion on the current discussion?"""

TOPIC_CLARIFICATION = """I'd like to help with {topic}. What specifically can I assist with?

• Market research and competitive analysis
• Company financials and valuation models
• Due diligence questions and risk assessment
• Investment thesis development
• Deal structure and terms analysis

What area interests you most?"""

# =============================================================================
# Prompts
# =============================================================================

DIRECT_PROMPT = """You are a proactive AI assistant for VC brainstorming sessions.
A user has asked: "{request}"
Intent: {intent}
Question type: {question_type}
Context: {topic}
Provide a direct, helpful response. Do NOT ask "what do you need" or echo their words.
Be confident and specific. If you need more information, ask targeted questions.
Avoid robotic phrases like "Based on your question about..." or "According to your request..." """

INFORMATION_PROMPT = """You are a VC brainstorming assistant. The user is requesting information: "{request}"
Intent: {intent}
Current topic: {topic}
Provide relevant information or explain how you can help gather it.
Be specific about what data you can provide or what research you can do."""

CLARIFICATION_PROMPT = """Generate a brief, targeted clarification question for a VC brainstorming bot.
User intent: {intent}
Question type: {question_type}
Current topic: {topic}
Clarity score: {clarity}
Ask a specific follow-up question to clarify their exact need. Keep it concise and professional."""

HELP_PROMPT = """You are a proactive AI assistant for VC brainstorming sessions.
A user is asking for help: "{request}"
Current context:
- Topic: {topic}
- Meeting type: {meeting_type}
Provide specific help based on their request. If the request is vague, offer concrete ways you can assist:
market research and data, company analysis, investment evaluation, fact-checking, discussion facilitation."""

TRIGGER_PROMPT = """You are a proactive AI assistant for VC brainstorming sessions.
A user used the trigger phrase "{trigger}" in this message: "{request}"
Current context:
- Topic: {topic}
- Meeting type: {meeting_type}
Respond appropriately to their implied request. "what do you think" asks for analysis or an opinion,
"bot input" asks for relevant information or suggestions, "need assistance" asks for specific help."""


def fallback_direct_response(summon_context: SummonContext) -> str:
    intent = summon_context.extracted_intent
    question_type = summon_context.question_type
    if question_type == QuestionType.DIRECT_QUESTION:
        return (
            "I'd be happy to help answer that. Could you provide a bit more context "
            "about what specific information you're looking for?"
        )
    if question_type == QuestionType.OPINION_REQUEST:
        return "I can share my analysis on that. What specific aspect would you like my perspective on?"
    if question_type == QuestionType.INFORMATION_REQUEST:
        return f"I can help gather information about {intent}. What specific data points are you interested in?"
    if question_type == QuestionType.HELP_REQUEST:
        return f"I'm ready to assist with {intent}. What's the specific challenge you're facing?"
    return "I'm here to help. Could you clarify what specific assistance you need?"


class SummonResponseHandler:
    """Answers summons, one strategy per summon type."""

    def __init__(
        self,
        client: CompletionClient,
        manual_control: ManualControlManager,
        context_analyzer: Optional[SummonContextAnalyzer] = None,
        rng: Optional[random.Random] = None,
    ):
        self.client = client
        self.manual_control = manual_control
        self.context_analyzer = context_analyzer or SummonContextAnalyzer(client)
        self._rng = rng or random.Random()

    async def handle_summon(
        self,
        summon: SummonResult,
        message: ChatMessage,
        context: ConversationContext,
    ) -> SummonResponse:
        if not summon.is_summoned:
            return SummonResponse(should_respond=False)

        if summon.summon_type == SummonType.ACTIVITY_CONTROL:
            return self.handle_activity_control(summon, message)
        if summon.summon_type == SummonType.BOT_MENTION:
            return await self.handle_bot_mention(summon, message, context)

        request = summon.extracted_request or message.content
        if summon.summon_type == SummonType.HELP_REQUEST:
            prompt = HELP_PROMPT.format(
                request=request, topic=context.current_topic, meeting_type=context.meeting_type.value
            )
            response = await self._ask(request, prompt, DEFAULT_HELP_RESPONSE)
        else:
            prompt = TRIGGER_PROMPT.format(
                trigger=summon.trigger_phrase or "",
                request=request,
                topic=context.current_topic,
                meeting_type=context.meeting_type.value,
            )
            response = await self._ask(request, prompt, "I'm ready to help. What would you like me to focus on?")

        return SummonResponse(should_respond=True, response=response, follow_up_actions=[RETURN_TO_MONITORING])

    def handle_activity_control(self, summon: SummonResult, message: ChatMessage) -> SummonResponse:
        level = summon.activity_level_change
        if level is None:
            return SummonResponse(should_respond=False)

        self.manual_control.set_activity_level(message.user_id, level, f"User request: {summon.trigger_phrase}")
        return SummonResponse(
            should_respond=True,
            response=ACTIVITY_ACKNOWLEDGMENTS.get(level, "Activity level updated."),
            activity_level_changed=level,
            follow_up_actions=[RETURN_TO_MONITORING],
        )

    async def handle_bot_mention(
        self,
        summon: SummonResult,
        message: ChatMessage,
        context: ConversationContext,
    ) -> SummonResponse:
        summon_context = await self.context_analyzer.analyze_summon_context(summon, message, context)
        response_type = self.context_analyzer.determine_response_type(summon_context)
        request = summon.extracted_request or ""
        requires_clarification = False

        if response_type == ResponseType.DIRECT_ANSWER:
            prompt = DIRECT_PROMPT.format(
                request=request,
                intent=summon_context.extracted_intent,
                question_type=summon_context.question_type.value,
                topic=context.current_topic,
            )
            response = await self._ask(request, prompt, fallback_direct_response(summon_context))
        elif response_type == ResponseType.INFORMATION_REQUEST:
            prompt = INFORMATION_PROMPT.format(
                request=request, intent=summon_context.extracted_intent, topic=context.current_topic
            )
            response = await self._ask(
                request,
                prompt,
                f"I can help gather that information. Let me research {summon_context.extracted_intent} for you.",
            )
        elif response_type == ResponseType.ACKNOWLEDGMENT:
            response = self.acknowledgment(summon_context)
        else:
            response = await self.clarification(summon_context, context)
            requires_clarification = True

        return SummonResponse(
            should_respond=True,
            response=response,
            requires_clarification=requires_clarification,
            follow_up_actions=[] if requires_clarification else [RETURN_TO_MONITORING],
            response_type=response_type,
            summon_context=summon_context,
        )

    # ===== Reply builders =====

    def acknowledgment(self, summon_context: SummonContext) -> str:
        if summon_context.question_type == QuestionType.GREETING:
            return self._rng.choice(GREETINGS)
        return "I'm here and ready to help. What would you like to focus on?"

    async def clarification(self, summon_context: SummonContext, context: ConversationContext) -> str:
        if summon_context.question_type == QuestionType.UNCLEAR_REQUEST:
            return TOPIC_CLARIFICATION.format(topic=context.current_topic or "your discussion")
        if summon_context.question_clarity < 0.3:
            return VAGUE_CLARIFICATION

        prompt = CLARIFICATION_PROMPT.format(
            intent=summon_context.extracted_intent,
            question_type=summon_context.question_type.value,
            topic=context.current_topic,
            clarity=summon_context.question_clarity,
        )
        return await self._ask("", prompt, "Could you clarify what specific information you need?")

    async def _ask(self, text: str, prompt: str, fallback: str) -> str:
        try:
            response = await self.client.analyze_text(text, prompt)
        except AuthenticationError:
            raise
        except Exception as exc:
            logger.warning("Summon reply generation failed, using canned reply: %s", exc)
            return fallback

        content = response.content.strip()
        if not content or is_substitute_answer(response):
            return fallback
        return content
