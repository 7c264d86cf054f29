# tests/test_message_processor.py
"""
Tests for MessageProcessor.

Covers:
- completion-backed entity, sentiment and topic extraction
- heuristic fallbacks when the service fails or answers badly
- cached answers about other messages are not reused during an outage
- urgency and pause detection
"""

import pytest

from brainstorm_bot.analysis import MessageProcessor
from brainstorm_bot.analysis.message_processor import (
    calculate_basic_sentiment,
    classify_basic_topics,
    determine_urgency_level,
    extract_basic_entities,
)
from brainstorm_bot.exceptions import AuthenticationError
from brainstorm_bot.models import SentimentScore, UrgencyLevel
from conftest import ScriptedCompletionClient, make_message, resilient

ENTITIES = '[{"type": "company", "value": "Stripe", "confidence": 0.95}]'
SENTIMENT = '{"positive": 0.6, "negative": 0.1, "neutral": 0.3, "overall": 0.5}'
TOPICS = '```json\n[{"category": "investment_analysis", "confidence": 0.9, "keywords": ["valuation"]}]\n```'


class TestHeuristics:
    """Local fallbacks."""

    def test_basic_entities(self):
        entities = extract_basic_entities("Acme Inc raised $5M at 20% growth")
        values = [(e.type, e.value) for e in entities]
        assert ("company", "Acme Inc") in values
        assert ("financial", "$5M") in values
        assert ("financial", "20%") in values

    def test_basic_sentiment_neutral_without_keywords(self):
        assert calculate_basic_sentiment("we met on tuesday") == SentimentScore()

    def test_basic_sentiment_positive(self):
        sentiment = calculate_basic_sentiment("great growth this quarter")
        assert sentiment.positive == pytest.approx(0.5)
        assert sentiment.overall == pytest.approx(0.5)

    def test_basic_topics(self):
        categories = [t.category for t in classify_basic_topics("The funding round and market trends")]
        assert categories == ["investment_analysis", "market_research"]

    def test_basic_topics_off_topic(self):
        topics = classify_basic_topics("Lunch at noon?")
        assert topics[0].category == "off_topic"
        assert topics[0].confidence == 0.8

    def test_urgency(self):
        neutral = SentimentScore()
        assert determine_urgency_level("This is urgent", neutral) == UrgencyLevel.HIGH
        assert determine_urgency_level("Important deadline", neutral) == UrgencyLevel.MEDIUM
        assert determine_urgency_level("hello", SentimentScore(negative=0.8, neutral=0.2)) == UrgencyLevel.MEDIUM
        assert determine_urgency_level("hello", neutral) == UrgencyLevel.LOW


class TestProcessMessage:
    """End-to-end processing of one message."""

    async def test_uses_service_answers(self):
        client = ScriptedCompletionClient(
            rules=[("Extract entities", ENTITIES), ("Analyze the sentiment", SENTIMENT), ("Classify the topic", TOPICS)]
        )
        processor = MessageProcessor(client)

        processed = await processor.process_message(make_message("Stripe's valuation looks strong"))

        assert processed.extracted_entities[0].value == "Stripe"
        assert processed.extracted_entities[0].start_index == 0
        assert processed.sentiment.overall == 0.5
        assert processed.dominant_topic().category == "investment_analysis"
        assert processed.urgency_level == UrgencyLevel.LOW
        assert len(client.analyze_calls) == 3

    async def test_falls_back_when_service_fails(self, scripted_client):
        processor = MessageProcessor(scripted_client)

        processed = await processor.process_message(make_message("Urgent: Acme Inc funding round closes"))

        assert processed.extracted_entities[0].value == "Acme Inc"
        assert processed.topic_classification[0].category == "investment_analysis"
        assert processed.urgency_level == UrgencyLevel.HIGH

    async def test_falls_back_on_unparseable_answers(self):
        client = ScriptedCompletionClient(default="I cannot help with that")
        processor = MessageProcessor(client)

        processed = await processor.process_message(make_message("Did you see the game?"))

        assert processed.extracted_entities == []
        assert processed.sentiment == SentimentScore()
        assert processed.topic_classification[0].category == "off_topic"

    async def test_authentication_error_propagates(self):
        processor = MessageProcessor(ScriptedCompletionClient(default=AuthenticationError("bad key")))
        with pytest.raises(AuthenticationError):
            await processor.process_message(make_message("hello"))

    async def test_processed_message_exposes_original_fields(self, scripted_client):
        message = make_message("hello there", user_id="bob")
        processed = await MessageProcessor(scripted_client).process_message(message)
        assert processed.content == "hello there"
        assert processed.user_id == "bob"
        assert processed.timestamp == message.timestamp


class TestPausesAndHistory:
    """Pause detection and context bootstrapping."""

    async def test_no_pause_before_any_message(self, scripted_client, fake_clock):
        processor = MessageProcessor(scripted_client, clock=fake_clock)
        assert processor.detect_conversation_pauses() is False

    async def test_pause_after_threshold(self, scripted_client, fake_clock):
        processor = MessageProcessor(scripted_client, clock=fake_clock)
        await processor.process_message(make_message("hello", timestamp=fake_clock()))

        fake_clock.advance(seconds=5)
        assert processor.detect_conversation_pauses() is False
        fake_clock.advance(seconds=6)
        assert processor.detect_conversation_pauses() is True

    def test_maintain_conversation_history(self, scripted_client):
        processor = MessageProcessor(scripted_client)
        messages = [
            make_message("Let's discuss the market", user_id="alice"),
            make_message("Agreed", user_id="bob"),
            make_message("The market is big", user_id="alice"),
        ]

        context = processor.maintain_conversation_history(messages)

        assert [p.id for p in context.participants] == ["alice", "bob"]
        assert context.current_topic == "Market Analysis"
        assert context.session_id.startswith("session_")

    def test_maintain_conversation_history_empty(self, scripted_client):
        context = MessageProcessor(scripted_client).maintain_conversation_history([])
        assert context.current_topic == "No topic identified"
        assert context.participants == []


class TestServiceOutage:
    async def test_answers_cached_for_another_message_are_not_reused(self):
        base = ScriptedCompletionClient(default=ENTITIES)
        processor = MessageProcessor(resilient(base))
        await processor.process_message(make_message("Stripe is raising again", message_id="m1"))

        base.outage = True
        text = "Did anyone watch the game last night?"
        processed = await processor.process_message(make_message(text, message_id="m2"))

        assert processed.topic_classification == classify_basic_topics(text)
        assert processed.extracted_entities == extract_basic_entities(text)
        assert processed.sentiment == calculate_basic_sentiment(text)
