# brainstorm_bot/summon/detector.py
"""
Summon detector - decides whether a message addresses the bot.

Detection is a pure function of the message text and the pattern tables.
When several pattern classes match, activity-control commands win over
bot-name mentions, which win over generic trigger phrases.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from ..models import (
    ActivityControlCommand,
    ActivityLevel,
    BotMentionConfig,
    ChatMessage,
    SummonConfig,
    SummonResult,
    SummonType,
    TriggerPhrase,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Default tables
# =============================================================================

DEFAULT_BOT_NAMES = ["bot", "assistant", "ai", "brainstorm bot", "proactive bot"]
DEFAULT_ALIASES = ["bb", "pb", "hey bot", "bot help"]
DEFAULT_MENTION_PATTERNS = [r"@bot\b", r"@assistant\b", r"\bbot[,:]?\s", r"\bassistant[,:]?\s"]


def default_trigger_phrases() -> list[TriggerPhrase]:
    return [
        TriggerPhrase(phrase="help me", type=SummonType.HELP_REQUEST, confidence=0.8),
        TriggerPhrase(phrase="can you help", type=SummonType.HELP_REQUEST, confidence=0.9),
        TriggerPhrase(phrase="what do you think", type=SummonType.TRIGGER_PHRASE, confidence=0.7),
        TriggerPhrase(phrase="bot input", type=SummonType.TRIGGER_PHRASE, confidence=0.9),
        TriggerPhrase(phrase="need assistance", type=SummonType.HELP_REQUEST, confidence=0.8),
    ]


def default_activity_commands() -> list[ActivityControlCommand]:
    return [
        ActivityControlCommand(
            command="be quiet",
            target_level=ActivityLevel.QUIET,
            patterns=["be quiet", "stay quiet", "less active", "tone it down"],
        ),
        ActivityControlCommand(
            command="be silent",
            target_level=ActivityLevel.SILENT,
            patterns=["be silent", "stop talking", "shut up", "no more interruptions"],
        ),
        ActivityControlCommand(
            command="be more active",
            target_level=ActivityLevel.ACTIVE,
            patterns=["be more active", "speak up", "more input", "be helpful"],
        ),
        ActivityControlCommand(
            command="normal activity",
            target_level=ActivityLevel.NORMAL,
            patterns=["normal mode", "regular activity", "default behavior", "reset activity"],
        ),
    ]


def default_summon_config() -> SummonConfig:
    return SummonConfig(
        bot_mention=BotMentionConfig(
            bot_names=list(DEFAULT_BOT_NAMES),
            aliases=list(DEFAULT_ALIASES),
            patterns=list(DEFAULT_MENTION_PATTERNS),
        ),
        trigger_phrases=default_trigger_phrases(),
        activity_control_commands=default_activity_commands(),
    )


def resolve_config(config: Optional[SummonConfig]) -> SummonConfig:
    """
    Fill the tables a caller did not supply with the defaults.

    With case-sensitive matching the built-in aliases and trigger phrases
    stay off unless the caller passes them explicitly.
    """
    if config is None:
        return default_summon_config()

    mention = config.bot_mention
    mention_set = mention.model_fields_set if "bot_mention" in config.model_fields_set else set()

    resolved_mention = BotMentionConfig(
        bot_names=list(mention.bot_names) if "bot_names" in mention_set else list(DEFAULT_BOT_NAMES),
        patterns=list(mention.patterns) if "patterns" in mention_set else list(DEFAULT_MENTION_PATTERNS),
        aliases=(
            list(mention.aliases)
            if "aliases" in mention_set
            else ([] if config.case_sensitive else list(DEFAULT_ALIASES))
        ),
    )
    if "trigger_phrases" in config.model_fields_set:
        triggers = list(config.trigger_phrases)
    else:
        triggers = [] if config.case_sensitive else default_trigger_phrases()
    if "activity_control_commands" in config.model_fields_set:
        commands = list(config.activity_control_commands)
    else:
        commands = default_activity_commands()

    return SummonConfig(
        bot_mention=resolved_mention,
        trigger_phrases=triggers,
        activity_control_commands=commands,
        case_sensitive=config.case_sensitive,
        require_direct_address=config.require_direct_address,
    )


_LEADING_SEPARATORS = " \t\n,:-"
_SPACE_BEFORE_PUNCT = re.compile(r"\s+([?.!,])")


def strip_span(content: str, start: int, end: int) -> str:
    """Cut ``content[start:end]`` out and tidy the joint; the whole text if nothing is left."""
    before = content[:start].rstrip(_LEADING_SEPARATORS)
    after = content[end:].lstrip(_LEADING_SEPARATORS)
    joined = _SPACE_BEFORE_PUNCT.sub(r"\1", f"{before} {after}".strip())
    return joined or content.strip()


def strip_substring(content: str, fragment: str) -> str:
    """Remove the first case-insensitive occurrence of ``fragment``."""
    index = content.lower().find(fragment.lower()) if fragment else -1
    if index == -1:
        return content.strip()
    return strip_span(content, index, index + len(fragment))


class SummonDetector:
    """Pattern-table summon detection."""

    def __init__(self, config: Optional[SummonConfig] = None):
        self.config = resolve_config(config)

    # ===== Configuration =====

    def update_config(self, **changes) -> None:
        """Replace top-level config fields, e.g. ``update_config(case_sensitive=True)``."""
        self.config = self.config.model_copy(update=changes)

    def add_trigger_phrase(self, phrase: TriggerPhrase) -> None:
        self.config.trigger_phrases.append(phrase)

    def remove_trigger_phrase(self, phrase: str) -> None:
        self.config.trigger_phrases = [tp for tp in self.config.trigger_phrases if tp.phrase != phrase]

    # ===== Detection =====

    def detect_summon(self, message: ChatMessage) -> SummonResult:
        original = message.content
        content = original if self.config.case_sensitive else original.lower()

        for detect in (self._detect_activity_control, self._detect_bot_mention, self._detect_trigger_phrase):
            result = detect(content, original)
            if result is not None:
                logger.debug("Summon detected in %s: %s", message.id, result.summon_type.value)
                return result

        return SummonResult(is_summoned=False, summon_type=SummonType.BOT_MENTION, confidence=0.0)

    def _fold(self, text: str) -> str:
        return text if self.config.case_sensitive else text.lower()

    def _detect_activity_control(self, content: str, original: str) -> Optional[SummonResult]:
        for command in self.config.activity_control_commands:
            for pattern in command.patterns:
                if self._fold(pattern) in content:
                    return SummonResult(
                        is_summoned=True,
                        summon_type=SummonType.ACTIVITY_CONTROL,
                        confidence=0.9,
                        activity_level_change=command.target_level,
                        trigger_phrase=pattern,
                        extracted_request=f"Change activity level to {command.target_level.value}",
                    )
        return None

    def _detect_bot_mention(self, content: str, original: str) -> Optional[SummonResult]:
        mention = self.config.bot_mention

        for pattern in mention.compiled_patterns(self.config.case_sensitive):
            match = pattern.search(original)
            if match:
                name = match.group(0).rstrip(" \t\n,:").lstrip("@ \t")
                return SummonResult(
                    is_summoned=True,
                    summon_type=SummonType.BOT_MENTION,
                    confidence=0.9,
                    mentioned_bot_name=name,
                    extracted_request=strip_span(original, match.start(), match.end()),
                )

        flags = 0 if self.config.case_sensitive else re.IGNORECASE
        for bot_name in mention.bot_names:
            match = re.search(rf"\b{re.escape(bot_name)}\b", original, flags)
            if match:
                return SummonResult(
                    is_summoned=True,
                    summon_type=SummonType.BOT_MENTION,
                    confidence=0.9,
                    mentioned_bot_name=bot_name,
                    extracted_request=strip_span(original, match.start(), match.end()),
                )

        for alias in mention.aliases:
            if self._fold(alias) in content:
                return SummonResult(
                    is_summoned=True,
                    summon_type=SummonType.BOT_MENTION,
                    confidence=0.8,
                    mentioned_bot_name=alias,
                    extracted_request=strip_substring(original, alias),
                )
        return None

    def _detect_trigger_phrase(self, content: str, original: str) -> Optional[SummonResult]:
        for trigger in self.config.trigger_phrases:
            phrase = self._fold(trigger.phrase)
            matched = content.strip() == phrase if trigger.requires_exact_match else phrase in content
            if matched:
                return SummonResult(
                    is_summoned=True,
                    summon_type=trigger.type,
                    confidence=trigger.confidence,
                    trigger_phrase=trigger.phrase,
                    extracted_request=strip_substring(original, trigger.phrase),
                )
        return None
