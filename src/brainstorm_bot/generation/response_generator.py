# brainstorm_bot/generation/response_generator.py
"""
Response generation for interventions.

``generate_response`` never raises for service failures: when the completion
service cannot produce text the caller gets a template-based reply with a
``fallback`` source instead.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from pydantic import BaseModel

from ..completion.base import CompletionClient
from ..completion.resilient import TEMPLATE_RESPONSES
from ..models import (
    BotResponse,
    CommunicationStyle,
    ConversationContext,
    ConversationTone,
    InterventionType,
    ResponseSource,
    SourceType,
    UserPreferences,
)
from .degradation import GracefulDegradationService

logger = logging.getLogger(__name__)

UNAVAILABLE = "[information unavailable]"
_PLACEHOLDER = re.compile(r"\{[^}]+\}")


class ResponseTemplate(BaseModel):
    type: InterventionType
    template: str
    formal: str
    conversational: str
    brief: str
    detailed: str

    def for_style(self, style: CommunicationStyle) -> str:
        return getattr(self, style.value, self.conversational)


RESPONSE_TEMPLATES: dict[InterventionType, ResponseTemplate] = {
    InterventionType.TOPIC_REDIRECT: ResponseTemplate(
        type=InterventionType.TOPIC_REDIRECT,
        template="I notice we've moved away from {original_topic}. Should we return to discussing {specific_point}?",
        formal="I'd like to respectfully suggest we return our focus to {original_topic}, specifically {specific_point}.",
        conversational="Looks like we drifted from {original_topic}. Want to circle back to {specific_point}?",
        brief="Back to {original_topic}? We were on {specific_point}.",
        detailed=(
            "I've noticed our discussion has shifted away from {original_topic}. We were making good progress "
            "on {specific_point}, and it would be valuable to continue that conversation."
        ),
    ),
    InterventionType.INFORMATION_PROVIDE: ResponseTemplate(
        type=InterventionType.INFORMATION_PROVIDE,
        template="I have some relevant information about {topic}: {information}",
        formal="I'd like to provide some relevant data regarding {topic}: {information}",
        conversational="Here's some info on {topic} that might help: {information}",
        brief="{topic}: {information}",
        detailed="I've gathered some information about {topic} that may inform our discussion: {information}",
    ),
    InterventionType.FACT_CHECK: ResponseTemplate(
        type=InterventionType.FACT_CHECK,
        template="I'd like to verify that claim about {claim}. According to my sources: {verification}",
        formal="I'd like to respectfully fact-check the statement regarding {claim}. My research indicates: {verification}",
        conversational="Quick fact-check on {claim}. I'm seeing: {verification}",
        brief="Re: {claim}: {verification}",
        detailed=(
            "I want to ensure we have accurate information about {claim}. "
            "Based on my analysis of current data: {verification}"
        ),
    ),
    InterventionType.CLARIFICATION_REQUEST: ResponseTemplate(
        type=InterventionType.CLARIFICATION_REQUEST,
        template="Could you clarify {unclear_point}? I want to make sure I understand correctly.",
        formal="I would appreciate clarification on {unclear_point} to ensure accurate understanding.",
        conversational="Can you help me understand {unclear_point} better?",
        brief="Clarify {unclear_point}?",
        detailed=(
            "I'd like to request clarification on {unclear_point} so that I can provide the most relevant "
            "assistance and we're all aligned on the details."
        ),
    ),
    InterventionType.SUMMARY_OFFER: ResponseTemplate(
        type=InterventionType.SUMMARY_OFFER,
        template="Would it be helpful if I summarized {discussion_area}?",
        formal="I would be pleased to provide a summary of {discussion_area} if that would be beneficial.",
        conversational="Want me to recap {discussion_area}?",
        brief="Summary of {discussion_area}?",
        detailed=(
            "I've been tracking our discussion on {discussion_area} and could provide a summary "
            "to help consolidate our key points and decisions."
        ),
    ),
}

BASE_PROMPTS = {
    InterventionType.TOPIC_REDIRECT: (
        "Generate a polite suggestion to redirect the conversation back to the main topic. "
        "Be diplomatic and provide a clear reason for the redirect."
    ),
    InterventionType.INFORMATION_PROVIDE: (
        "Provide relevant information that adds value to the current discussion. "
        "Include specific data points, metrics, or insights."
    ),
    InterventionType.FACT_CHECK: (
        "Politely fact-check a statement made in the conversation. "
        "Provide accurate information and cite sources when possible."
    ),
    InterventionType.CLARIFICATION_REQUEST: (
        "Ask for clarification on an unclear or ambiguous point. Be specific about what needs clarification."
    ),
    InterventionType.SUMMARY_OFFER: (
        "Offer to provide a summary of the discussion. Highlight key points and decisions made."
    ),
}

PROMPT_REQUIREMENTS = """Requirements:
- Be concise and professional
- Match the tone of the conversation
- Provide actionable insights
- Be respectful of all participants
- Focus on VC-relevant information"""

FOLLOW_UPS = {
    InterventionType.TOPIC_REDIRECT: [
        "Would you like me to summarize what we've covered so far?",
        "Should I provide background information on this topic?",
    ],
    InterventionType.INFORMATION_PROVIDE: [
        "Would you like me to dive deeper into any of these points?",
        "Should I look for additional data on this topic?",
    ],
    InterventionType.FACT_CHECK: [
        "Would you like me to find more sources on this topic?",
        "Should I check for any recent updates to this information?",
    ],
    InterventionType.CLARIFICATION_REQUEST: [
        "I can provide examples if that would help clarify",
        "Would additional context be useful here?",
    ],
    InterventionType.SUMMARY_OFFER: [
        "I can also highlight key decisions made",
        "Would you like me to identify any action items?",
    ],
}

TROUBLE_RESPONSE = (
    "I'd like to contribute to this discussion, but I'm having trouble generating a response right now. "
    "Please let me know if you need specific assistance."
)

# Keys of ``additional_data`` that carry facts worth checking for conflicts.
INFORMATION_KEYS = ("market_data", "company_info", "topic_drift")

_FORMAL_REWRITES = [
    (re.compile(r"\bI think\b"), "I believe"),
    (re.compile(r"\bwant to\b"), "would like to"),
    (re.compile(r"\bcan't\b"), "cannot"),
    (re.compile(r"\bwon't\b"), "will not"),
    (re.compile(r"\blet's\b", re.IGNORECASE), "let us"),
    (re.compile(r"\bhey\b", re.IGNORECASE), "Hello"),
    (re.compile(r"\bokay\b", re.IGNORECASE), "very well"),
]

_CONVERSATIONAL_REWRITES = [
    (re.compile(r"\bwould like to\b"), "want to"),
    (re.compile(r"\bcannot\b"), "can't"),
    (re.compile(r"\bwill not\b"), "won't"),
    (re.compile(r"\blet us\b"), "let's"),
]

_BRIEF_REWRITES = [
    (re.compile(r"\bI think that\b"), ""),
    (re.compile(r"\bIt seems to me that\b"), ""),
    (re.compile(r"\bIn my opinion,?\s*"), ""),
    (re.compile(r"\bperhaps\b"), ""),
]


def _rewrite(text: str, rules) -> str:
    for pattern, replacement in rules:
        text = pattern.sub(replacement, text)
    return text


def make_formal(text: str) -> str:
    return _rewrite(text, _FORMAL_REWRITES)


def make_conversational(text: str) -> str:
    return _rewrite(text, _CONVERSATIONAL_REWRITES)


def make_brief(text: str) -> str:
    return re.sub(r"\s+", " ", _rewrite(text, _BRIEF_REWRITES)).strip()


def _dump(value: Any) -> Any:
    return value.model_dump(mode="json") if isinstance(value, BaseModel) else value


def extract_information_items(additional_data: Optional[dict[str, Any]]) -> list[Any]:
    if not additional_data:
        return []
    items = [_dump(additional_data[key]) for key in INFORMATION_KEYS if additional_data.get(key)]
    items.extend(_dump(item) for item in additional_data.get("knowledge_items") or [])
    return items


class ResponseGenerator:
    """Builds intervention replies from the completion service, with template fallbacks."""

    def __init__(
        self,
        client: CompletionClient,
        degradation: Optional[GracefulDegradationService] = None,
    ):
        self.client = client
        self.degradation = degradation or GracefulDegradationService()

    async def generate_response(
        self,
        intervention_type: InterventionType,
        context: ConversationContext,
        additional_data: Optional[dict[str, Any]] = None,
    ) -> BotResponse:
        """
        Draft a reply for ``intervention_type``.

        Args:
            intervention_type: what kind of intervention to write
            context: the session the reply is for
            additional_data: optional extras: ``market_data``, ``company_info``,
                ``topic_drift``, ``knowledge_items``, ``sources``,
                ``original_topic``, ``specific_point``

        Returns:
            A BotResponse. Never raises for completion-service failures.
        """
        if intervention_type not in RESPONSE_TEMPLATES:
            logger.warning("No template for intervention type %s", intervention_type)
            return self.trouble_response(intervention_type)

        items = extract_information_items(additional_data)
        if items:
            conflict = self.degradation.analyze_information_conflicts(items, context)
            if conflict is not None:
                logger.info("Information conflict (%s) for %s", conflict.type.value, context.session_id)
                return self.degradation.generate_graceful_response(conflict, intervention_type, context)

        prompt = self.build_prompt(intervention_type, context, additional_data)
        try:
            result = await self.client.generate_response(prompt, self.build_conversation_context(context))
        except Exception as exc:
            logger.error("Response generation failed for %s: %s", context.session_id, exc)
            return self.fallback_response(intervention_type, context, additional_data)

        content = result.content.strip()
        if not content:
            return self.fallback_response(intervention_type, context, additional_data)

        if result.is_fallback or content in TEMPLATE_RESPONSES:
            kind = result.fallback.value if result.fallback else "template"
            sources = [ResponseSource(type=SourceType.FALLBACK, description=f"Completion {kind} fallback")]
        else:
            sources = self._sources(additional_data)
        return BotResponse(
            content=content,
            type=intervention_type,
            confidence=result.confidence,
            sources=sources,
            follow_up_suggestions=list(FOLLOW_UPS[intervention_type]),
        )

    # ===== Prompt building =====

    @staticmethod
    def build_conversation_context(context: ConversationContext) -> str:
        participants = ", ".join(f"{p.name} ({p.role.value})" for p in context.participants)
        recent = "\n".join(f"{m.user_id}: {m.content}" for m in context.message_history[-5:])
        return (
            f"Meeting Type: {context.meeting_type.value}\n"
            f"Current Topic: {context.current_topic}\n"
            f"Participants: {participants}\n"
            f"Recent Messages: {recent}"
        )

    def build_prompt(
        self,
        intervention_type: InterventionType,
        context: ConversationContext,
        additional_data: Optional[dict[str, Any]] = None,
    ) -> str:
        return (
            f"{BASE_PROMPTS[intervention_type]}\n\n"
            f"Context: {self._contextual_info(context, additional_data)}\n"
            f"{PROMPT_REQUIREMENTS}\n\n"
            "Generate an appropriate response:"
        )

    @staticmethod
    def _contextual_info(context: ConversationContext, additional_data: Optional[dict[str, Any]]) -> str:
        lines = [f"Current topic: {context.current_topic}"]
        if context.agenda:
            lines.append("Agenda items: " + ", ".join(item.title for item in context.agenda))
        data = additional_data or {}
        if data.get("market_data"):
            lines.append(f"Market data: {json.dumps(_dump(data['market_data']), default=str)}")
        if data.get("company_info"):
            lines.append(f"Company info: {json.dumps(_dump(data['company_info']), default=str)}")
        drift = data.get("topic_drift")
        if drift:
            drift = _dump(drift)
            lines.append(
                f"Topic drift detected: {drift.get('original_topic')} -> {drift.get('current_direction')}"
            )
        return "\n".join(lines) + "\n"

    @staticmethod
    def _sources(additional_data: Optional[dict[str, Any]]) -> list[ResponseSource]:
        supplied = (additional_data or {}).get("sources")
        if supplied:
            return [s if isinstance(s, ResponseSource) else ResponseSource.model_validate(s) for s in supplied]
        return [ResponseSource(type=SourceType.API, description="Generated by the completion service")]

    # ===== Fallbacks =====

    @staticmethod
    def trouble_response(intervention_type: InterventionType) -> BotResponse:
        if intervention_type not in list(InterventionType):
            intervention_type = InterventionType.CLARIFICATION_REQUEST
        return BotResponse(
            content=TROUBLE_RESPONSE,
            type=intervention_type,
            confidence=0.3,
            sources=[ResponseSource(type=SourceType.FALLBACK, description="Emergency fallback response")],
            follow_up_suggestions=["Please try rephrasing your request", "I can attempt a different approach"],
        )

    def fallback_response(
        self,
        intervention_type: InterventionType,
        context: ConversationContext,
        additional_data: Optional[dict[str, Any]] = None,
    ) -> BotResponse:
        template = RESPONSE_TEMPLATES.get(intervention_type)
        if template is None:
            return self.trouble_response(intervention_type)

        data = additional_data or {}
        values = {
            "original_topic": data.get("original_topic"),
            "specific_point": data.get("specific_point"),
            "topic": context.current_topic,
            "discussion_area": context.current_topic,
        }
        content = template.for_style(CommunicationStyle.CONVERSATIONAL)
        for name, value in values.items():
            if value:
                content = content.replace("{" + name + "}", str(value))
        content = _PLACEHOLDER.sub(UNAVAILABLE, content)

        return BotResponse(
            content=content,
            type=intervention_type,
            confidence=0.6,
            sources=[ResponseSource(type=SourceType.FALLBACK, description="Fallback template response")],
            follow_up_suggestions=list(FOLLOW_UPS[intervention_type]),
        )

    # ===== Personalization =====

    @staticmethod
    def personalize_response(
        text: str,
        preferences: UserPreferences,
        tone: Optional[ConversationTone] = None,
    ) -> str:
        """Adjust wording for the reader's style and the room's tone. Pure text transform."""
        style = preferences.communication_style
        if style == CommunicationStyle.FORMAL:
            text = make_formal(text)
        elif style == CommunicationStyle.CONVERSATIONAL:
            text = make_conversational(text)
        elif style == CommunicationStyle.BRIEF:
            text = make_brief(text)

        if tone is None:
            return text
        if tone.formality > 0.7:
            text = make_formal(text)
        elif tone.formality < 0.3:
            text = make_conversational(text)
        if tone.urgency > 0.7:
            text = f"{text} This seems time-sensitive."
        if tone.enthusiasm > 0.7:
            text = re.sub(r"\.$", "!", text)
        return text
