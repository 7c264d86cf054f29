# tests/test_summon_context_analyzer.py
"""
Tests for SummonContextAnalyzer.

Covers:
- question type classification
- clarity scoring and the clarification decision
- intent extraction with and without the completion service
- response type selection
"""

import pytest

from brainstorm_bot.exceptions import AuthenticationError
from brainstorm_bot.models import QuestionType, ResponseType, SummonContext, SummonResult, SummonType
from brainstorm_bot.summon import SummonContextAnalyzer
from brainstorm_bot.summon.context_analyzer import (
    classify_question_type,
    clean_request,
    intent_from_keywords,
)
from conftest import ScriptedCompletionClient, make_context, make_message, resilient


def _summon(request):
    return SummonResult(is_summoned=True, summon_type=SummonType.BOT_MENTION, confidence=0.9, extracted_request=request)


def _summon_context(question_type, clarity=0.8, requires_clarification=False, direct=True):
    return SummonContext(
        has_explicit_question=True,
        question_clarity=clarity,
        requires_clarification=requires_clarification,
        direct_response_possible=direct,
        question_type=question_type,
    )


class TestClassification:
    """Pattern-based question types."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Hi bot!", QuestionType.GREETING),
            ("thank you", QuestionType.GREETING),
            ("What do you think about the valuation?", QuestionType.OPINION_REQUEST),
            ("Tell me about Acme", QuestionType.INFORMATION_REQUEST),
            ("I'm stuck on the model", QuestionType.HELP_REQUEST),
            ("What is the market size?", QuestionType.DIRECT_QUESTION),
            ("banana", QuestionType.UNCLEAR_REQUEST),
        ],
    )
    def test_classify(self, text, expected):
        assert classify_question_type(text) == expected

    def test_clean_request_strips_mentions(self):
        assert clean_request("bot, what is up bot") == "what is up"

    def test_intent_from_keywords(self):
        assert intent_from_keywords("How big is the market?") == "market data"
        assert intent_from_keywords("Any thoughts on the founders") == "general inquiry"


class TestClarity:
    """Clarity scoring."""

    def test_specific_question_is_clear(self, scripted_client):
        analyzer = SummonContextAnalyzer(scripted_client)
        assert analyzer.calculate_question_clarity("What is the market size?", make_context()) == 1.0

    def test_vague_request(self, scripted_client):
        analyzer = SummonContextAnalyzer(scripted_client)
        assert analyzer.calculate_question_clarity("stuff", make_context()) == 0.3

    def test_very_short_request(self, scripted_client):
        analyzer = SummonContextAnalyzer(scripted_client)
        assert analyzer.calculate_question_clarity("hm", make_context()) == 0.2

    def test_topic_words_raise_clarity(self, scripted_client):
        analyzer = SummonContextAnalyzer(scripted_client)
        context = make_context(current_topic="Churn Analysis")
        assert analyzer.calculate_question_clarity("churn", context) == 0.6


class TestAnalyzeSummonContext:
    """Full analysis of a summon."""

    async def test_clear_direct_question(self, scripted_client):
        analyzer = SummonContextAnalyzer(scripted_client)
        message = make_message("@bot What is the market size?")

        result = await analyzer.analyze_summon_context(_summon("What is the market size?"), message, make_context())

        assert result.question_type == QuestionType.DIRECT_QUESTION
        assert result.has_explicit_question is True
        assert result.requires_clarification is False
        assert result.direct_response_possible is True
        assert result.extracted_intent == "market data"
        assert "meeting_type:general_discussion" in result.contextual_cues
        assert analyzer.determine_response_type(result) == ResponseType.DIRECT_ANSWER

    async def test_unclear_request_needs_clarification(self, scripted_client):
        analyzer = SummonContextAnalyzer(scripted_client)

        result = await analyzer.analyze_summon_context(_summon("stuff"), make_message("@bot stuff"), make_context())

        assert result.question_type == QuestionType.UNCLEAR_REQUEST
        assert result.requires_clarification is True
        assert analyzer.determine_response_type(result) == ResponseType.CLARIFICATION_NEEDED

    async def test_falls_back_to_message_content(self, scripted_client):
        analyzer = SummonContextAnalyzer(scripted_client)
        summon = SummonResult(is_summoned=True, summon_type=SummonType.BOT_MENTION)

        result = await analyzer.analyze_summon_context(summon, make_message("hello"), make_context())

        assert result.question_type == QuestionType.GREETING

    async def test_entity_cues(self, scripted_client):
        analyzer = SummonContextAnalyzer(scripted_client)
        text = "compare Acme Corp with Stripe"

        result = await analyzer.analyze_summon_context(_summon(text), make_message(text), make_context())

        assert "entity:Acme Corp" in result.contextual_cues
        assert "entity:Stripe" in result.contextual_cues


class TestIntent:
    """Intent extraction."""

    async def test_service_intent(self):
        analyzer = SummonContextAnalyzer(ScriptedCompletionClient(rules=[("core intent", "Market Data")]))
        assert await analyzer.extract_question_intent("What's the TAM?") == "market data"

    async def test_short_text(self, scripted_client):
        assert await SummonContextAnalyzer(scripted_client).extract_question_intent("hi") == "unclear intent"

    async def test_keyword_fallback(self, scripted_client):
        intent = await SummonContextAnalyzer(scripted_client).extract_question_intent("Is the valuation fair?")
        assert intent == "valuation help"

    async def test_intent_cached_for_another_question_is_not_reused(self):
        base = ScriptedCompletionClient(default="Market Data")
        analyzer = SummonContextAnalyzer(resilient(base))
        assert await analyzer.extract_question_intent("What's the TAM?") == "market data"

        base.outage = True

        assert await analyzer.extract_question_intent("Is the valuation fair?") == "valuation help"

    async def test_authentication_error_propagates(self):
        analyzer = SummonContextAnalyzer(ScriptedCompletionClient(default=AuthenticationError("bad key")))
        with pytest.raises(AuthenticationError):
            await analyzer.extract_question_intent("What is the market size?")


class TestResponseType:
    def test_greeting_is_acknowledged(self):
        context = _summon_context(QuestionType.GREETING)
        assert SummonContextAnalyzer.determine_response_type(context) == ResponseType.ACKNOWLEDGMENT

    def test_information_request(self):
        context = _summon_context(QuestionType.INFORMATION_REQUEST)
        assert SummonContextAnalyzer.determine_response_type(context) == ResponseType.INFORMATION_REQUEST

    def test_clarification_before_information(self):
        context = _summon_context(QuestionType.INFORMATION_REQUEST, requires_clarification=True)
        assert SummonContextAnalyzer.determine_response_type(context) == ResponseType.CLARIFICATION_NEEDED

    def test_no_direct_response_possible(self):
        context = _summon_context(QuestionType.HELP_REQUEST, clarity=0.45, direct=False)
        assert SummonContextAnalyzer.determine_response_type(context) == ResponseType.CLARIFICATION_NEEDED
