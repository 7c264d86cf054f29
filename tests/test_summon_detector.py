# tests/test_summon_detector.py
"""
Tests for SummonDetector.

Covers:
- activity-control commands, bot mentions and trigger phrases
- precedence when several pattern classes match
- request extraction
- case-sensitive configuration and runtime table changes
"""

from brainstorm_bot.models import (
    ActivityLevel,
    BotMentionConfig,
    SummonConfig,
    SummonType,
    TriggerPhrase,
)
from brainstorm_bot.summon import SummonDetector
from brainstorm_bot.summon.detector import strip_substring
from conftest import make_message


def _detect(text, detector=None):
    return (detector or SummonDetector()).detect_summon(make_message(text))


class TestActivityControl:
    """Commands that change how chatty the bot is."""

    def test_quiet_command_wins_over_mention_and_trigger(self):
        result = _detect("Bot, be quiet and help me later")

        assert result.is_summoned is True
        assert result.summon_type == SummonType.ACTIVITY_CONTROL
        assert result.activity_level_change == ActivityLevel.QUIET
        assert result.trigger_phrase == "be quiet"
        assert result.confidence == 0.9

    def test_silent_command(self):
        result = _detect("@bot stop talking please")
        assert result.activity_level_change == ActivityLevel.SILENT

    def test_active_command_is_case_insensitive(self):
        result = _detect("Please SPEAK UP more")
        assert result.activity_level_change == ActivityLevel.ACTIVE


class TestBotMention:
    """Direct address by name or pattern."""

    def test_at_mention_extracts_request(self):
        result = _detect("@bot what is the TAM?")

        assert result.summon_type == SummonType.BOT_MENTION
        assert result.mentioned_bot_name == "bot"
        assert result.extracted_request == "what is the TAM?"

    def test_name_followed_by_comma(self):
        result = _detect("assistant, summarize the last point")

        assert result.summon_type == SummonType.BOT_MENTION
        assert result.mentioned_bot_name == "assistant"
        assert result.extracted_request == "summarize the last point"

    def test_mention_wins_over_trigger_phrase(self):
        result = _detect("@bot what do you think?")
        assert result.summon_type == SummonType.BOT_MENTION

    def test_alias(self):
        result = _detect("hey bot")
        assert result.is_summoned is True
        assert result.summon_type == SummonType.BOT_MENTION


class TestTriggerPhrases:
    """Generic phrases that invite the bot in."""

    def test_help_request(self):
        result = _detect("Can you help with the model?")

        assert result.summon_type == SummonType.HELP_REQUEST
        assert result.confidence == 0.9
        assert result.extracted_request == "with the model?"

    def test_opinion_trigger(self):
        result = _detect("What do you think about the deal?")

        assert result.summon_type == SummonType.TRIGGER_PHRASE
        assert result.trigger_phrase == "what do you think"
        assert result.confidence == 0.7

    def test_exact_match_trigger(self):
        detector = SummonDetector()
        detector.add_trigger_phrase(
            TriggerPhrase(phrase="status", type=SummonType.TRIGGER_PHRASE, confidence=0.6, requires_exact_match=True)
        )

        assert _detect("status", detector).trigger_phrase == "status"
        assert _detect("status of the round", detector).is_summoned is False

    def test_remove_trigger_phrase(self):
        detector = SummonDetector()
        detector.remove_trigger_phrase("what do you think")
        assert _detect("What do you think about the deal?", detector).is_summoned is False

    def test_plain_message_not_summoned(self):
        result = _detect("Revenue grew 40% last quarter")

        assert result.is_summoned is False
        assert result.confidence == 0.0


class TestConfiguration:
    """Case sensitivity and explicit tables."""

    def test_case_sensitive_drops_default_aliases_and_triggers(self):
        detector = SummonDetector(SummonConfig(case_sensitive=True))

        assert detector.config.bot_mention.aliases == []
        assert detector.config.trigger_phrases == []
        assert len(detector.config.activity_control_commands) == 4

    def test_case_sensitive_mention(self):
        detector = SummonDetector(SummonConfig(case_sensitive=True))

        assert _detect("BOT help me", detector).is_summoned is False
        assert _detect("bot help me", detector).summon_type == SummonType.BOT_MENTION

    def test_explicit_tables_are_kept(self):
        config = SummonConfig(
            bot_mention=BotMentionConfig(bot_names=["Sage"], patterns=[]),
            trigger_phrases=[TriggerPhrase(phrase="thoughts?", type=SummonType.TRIGGER_PHRASE, confidence=0.5)],
        )
        detector = SummonDetector(config)

        assert _detect("Sage, any data on churn", detector).mentioned_bot_name == "Sage"
        assert _detect("thoughts?", detector).confidence == 0.5
        assert detector.config.bot_mention.aliases == ["bb", "pb", "hey bot", "bot help"]

    def test_update_config(self):
        detector = SummonDetector()
        detector.update_config(require_direct_address=True)
        assert detector.config.require_direct_address is True


class TestStripSubstring:
    def test_removes_first_occurrence(self):
        assert strip_substring("Can you help me with this", "can you help") == "me with this"

    def test_missing_fragment(self):
        assert strip_substring("  nothing here ", "bot") == "nothing here"

    def test_whole_text_kept_when_nothing_left(self):
        assert strip_substring("help me", "help me") == "help me"
