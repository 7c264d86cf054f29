# brainstorm_bot/models/summon.py
"""Summon detection configuration and results."""

from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, Field

from ..base_models import DictCompatModel
from .enums import ActivityLevel, QuestionType, ResponseType, SummonType


class TriggerPhrase(BaseModel):
    phrase: str
    type: SummonType
    confidence: float = Field(ge=0.0, le=1.0)
    requires_exact_match: bool = False


class ActivityControlCommand(BaseModel):
    command: str
    target_level: ActivityLevel
    patterns: list[str] = Field(default_factory=list)


class BotMentionConfig(BaseModel):
    """Names and regex patterns that count as addressing the bot.

    Patterns are stored as source strings; case sensitivity is applied when
    they are compiled by the detector.
    """

    bot_names: list[str] = Field(default_factory=list)
    aliases: list[str] = Field(default_factory=list)
    patterns: list[str] = Field(default_factory=list)

    def compiled_patterns(self, case_sensitive: bool) -> list[re.Pattern[str]]:
        flags = 0 if case_sensitive else re.IGNORECASE
        return [re.compile(p, flags) for p in self.patterns]


class SummonConfig(BaseModel):
    bot_mention: BotMentionConfig = Field(default_factory=BotMentionConfig)
    trigger_phrases: list[TriggerPhrase] = Field(default_factory=list)
    activity_control_commands: list[ActivityControlCommand] = Field(default_factory=list)
    case_sensitive: bool = False
    require_direct_address: bool = False


class SummonResult(DictCompatModel):
    is_summoned: bool
    summon_type: SummonType = SummonType.BOT_MENTION
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    extracted_request: Optional[str] = None
    activity_level_change: Optional[ActivityLevel] = None
    trigger_phrase: Optional[str] = None
    mentioned_bot_name: Optional[str] = None


class SummonContext(DictCompatModel):
    has_explicit_question: bool
    question_clarity: float = Field(ge=0.0, le=1.0)
    requires_clarification: bool
    direct_response_possible: bool
    question_type: QuestionType
    contextual_cues: list[str] = Field(default_factory=list)
    extracted_intent: str = "general inquiry"


class SummonResponse(DictCompatModel):
    """What the bot says back to a summon, plus what the summon changed."""

    should_respond: bool
    response: str = ""
    requires_clarification: bool = False
    activity_level_changed: Optional[ActivityLevel] = None
    follow_up_actions: list[str] = Field(default_factory=list)
    response_type: Optional[ResponseType] = None
    summon_context: Optional[SummonContext] = None
