"""
Tests for sentiment analysis: validation gate, fallbacks, usage, batching.
"""
import asyncio
import pytest
from app.core.exceptions import AuthError, RateLimitError, UpstreamError, UpstreamTimeoutError, ValidationError
from app.models.entry import JournalEntry
from app.models.usage import UsageRecord
from app.services.sentiment_service import (
    SentimentAnalyzer,
    SentimentFallback,
    SentimentOk,
    parse_sentiment,
    strip_code_fence,
)
from app.services.usage_service import RateLimiter, RateLimitRule, UsageTracker
from app.tests.conftest import HAPPY_SENTIMENT, SAD_SENTIMENT, FakeLLMClient, make_entry


def run(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------
# Parsing and validation
# ---------------------------------------------------------------------

def test_parse_valid_response():
    result = parse_sentiment(HAPPY_SENTIMENT)
    assert result.score == 0.8
    assert result.magnitude == 0.7
    assert result.primary_emotion == "happy"
    assert result.confidence == 0.9


def test_parse_strips_code_fence():
    fenced = "```json\n" + SAD_SENTIMENT + "\n```"
    assert strip_code_fence(fenced) == SAD_SENTIMENT
    assert parse_sentiment(fenced).primary_emotion == "sad"


def test_parse_normalizes_emotion_case():
    text = '{"score": 0.1, "magnitude": 0.2, "primaryEmotion": " Calm ", "confidence": 0.5}'
    assert parse_sentiment(text).primary_emotion == "calm"


@pytest.mark.parametrize("text", [
    "not json at all",
    "[1, 2, 3]",
    '{"score": 1.5, "magnitude": 0.5, "primaryEmotion": "happy", "confidence": 0.5}',
    '{"score": -1.1, "magnitude": 0.5, "primaryEmotion": "happy", "confidence": 0.5}',
    '{"score": 0.5, "magnitude": 1.2, "primaryEmotion": "happy", "confidence": 0.5}',
    '{"score": 0.5, "magnitude": -0.1, "primaryEmotion": "happy", "confidence": 0.5}',
    '{"score": 0.5, "magnitude": 0.5, "primaryEmotion": "ecstatic-ish", "confidence": 0.5}',
    '{"score": 0.5, "magnitude": 0.5, "primaryEmotion": "happy"}',
    '{"magnitude": 0.5, "primaryEmotion": "happy", "confidence": 0.5}',
    '{"score": "very", "magnitude": 0.5, "primaryEmotion": "happy", "confidence": 0.5}',
    '{"score": true, "magnitude": 0.5, "primaryEmotion": "happy", "confidence": 0.5}',
    '{"score": 0.5, "magnitude": "0.5", "primaryEmotion": "happy", "confidence": 0.5}',
    '{"score": 0.5, "magnitude": 0.5, "primaryEmotion": 7, "confidence": 0.5}',
])
def test_parse_rejects_invalid_output(text):
    with pytest.raises(ValidationError):
        parse_sentiment(text)


def test_parse_accepts_integer_numbers():
    text = '{"score": 0, "magnitude": 1, "primaryEmotion": "neutral", "confidence": 1}'
    result = parse_sentiment(text)
    assert result.score == 0.0
    assert result.magnitude == 1.0


# ---------------------------------------------------------------------
# analyze / analyze_detailed
# ---------------------------------------------------------------------

def test_analyze_success_records_usage(db):
    llm = FakeLLMClient([HAPPY_SENTIMENT])
    outcome = run(SentimentAnalyzer(db, llm).analyze_detailed("user-1", "What a lovely day"))

    assert isinstance(outcome, SentimentOk)
    assert outcome.value.primary_emotion == "happy"
    usage = db.query(UsageRecord).one()
    assert usage.operation_type == "sentiment"
    assert usage.tokens_used == 60
    assert usage.model == "gpt-4o-mini"


@pytest.mark.parametrize("response", [
    '{"score": 3, "magnitude": 0.5, "primaryEmotion": "happy", "confidence": 0.5}',
    '{"score": true, "magnitude": "0.5", "primaryEmotion": "happy", "confidence": 1}',
    "I think the user is happy!",
])
def test_invalid_output_falls_back_to_neutral(db, response):
    analyzer = SentimentAnalyzer(db, FakeLLMClient([response]))

    outcome = run(analyzer.analyze_detailed("user-1", "text"))
    assert outcome == SentimentFallback("invalid_response")

    result = run(SentimentAnalyzer(db, FakeLLMClient([response])).analyze("user-1", "text"))
    assert result.score == 0
    assert result.magnitude == 0
    assert result.primary_emotion == "neutral"
    assert result.confidence == 0


@pytest.mark.parametrize("error, reason", [
    (UpstreamError("boom"), "upstream"),
    (UpstreamTimeoutError("slow"), "timeout"),
    (RateLimitError("throttled"), "rate_limited"),
    (AuthError("bad key"), "auth"),
])
def test_upstream_failures_fall_back(db, error, reason):
    outcome = run(SentimentAnalyzer(db, FakeLLMClient([error])).analyze_detailed("user-1", "text"))
    assert outcome == SentimentFallback(reason)
    assert outcome.value.primary_emotion == "neutral"
    assert db.query(UsageRecord).count() == 0


def test_unavailable_client_is_not_called(db):
    llm = FakeLLMClient(available=False)
    outcome = run(SentimentAnalyzer(db, llm).analyze_detailed("user-1", "text"))
    assert outcome == SentimentFallback("unavailable")
    assert llm.calls == []


def test_rate_limit_checked_before_model_call(db):
    tracker = UsageTracker(db)
    for _ in range(2):
        tracker.track_usage("user-1", "sentiment", "gpt-4o-mini", 10)
    limiter = RateLimiter(db, rules=[RateLimitRule(2, 60, "sentiment")])
    llm = FakeLLMClient([HAPPY_SENTIMENT])

    outcome = run(SentimentAnalyzer(db, llm, rate_limiter=limiter).analyze_detailed("user-1", "text"))

    assert outcome == SentimentFallback("rate_limited")
    assert llm.calls == []


def test_blank_content_returns_none(db):
    llm = FakeLLMClient([HAPPY_SENTIMENT])
    assert run(SentimentAnalyzer(db, llm).analyze("user-1", "   ")) is None
    assert llm.calls == []


def test_long_content_is_truncated_before_prompting(db):
    llm = FakeLLMClient([HAPPY_SENTIMENT])
    content = "a" * 2000 + "TAIL-MARKER"
    run(SentimentAnalyzer(db, llm).analyze("user-1", content))

    prompt = llm.calls[0][-1]["content"]
    assert "a" * 2000 in prompt
    assert "TAIL-MARKER" not in prompt


# ---------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------

def test_analyze_entry_writes_sentiment_fields(db):
    entry = make_entry(db, "user-1", "Amazing day at the beach with friends")
    updated_at = entry.updated_at

    outcome = run(SentimentAnalyzer(db, FakeLLMClient([HAPPY_SENTIMENT])).analyze_entry("user-1", entry.id))

    assert isinstance(outcome, SentimentOk)
    db.expire_all()
    stored = db.get(JournalEntry, entry.id)
    assert stored.sentiment_score == 0.8
    assert stored.sentiment_magnitude == 0.7
    assert stored.primary_emotion == "happy"
    assert stored.sentiment_analyzed_at is not None
    assert stored.updated_at == updated_at


def test_analyze_entry_failure_leaves_fields_null(db):
    entry = make_entry(db, "user-1", "Some text")

    outcome = run(SentimentAnalyzer(db, FakeLLMClient([UpstreamError("down")])).analyze_entry("user-1", entry.id))

    assert isinstance(outcome, SentimentFallback)
    db.expire_all()
    stored = db.get(JournalEntry, entry.id)
    assert stored.sentiment_score is None
    assert stored.primary_emotion is None
    assert stored.sentiment_analyzed_at is None


def test_analyze_entry_is_scoped_to_owner(db):
    entry = make_entry(db, "user-1", "Private thoughts")
    llm = FakeLLMClient([HAPPY_SENTIMENT])

    assert run(SentimentAnalyzer(db, llm).analyze_entry("user-2", entry.id)) is None
    assert llm.calls == []


# ---------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------

def test_batch_groups_with_delay_and_isolates_failures(db):
    entries = [make_entry(db, "user-1", f"Entry number {i}") for i in range(7)]
    responses = [HAPPY_SENTIMENT] * 7
    responses[2] = UpstreamError("one bad call")
    llm = FakeLLMClient(responses)
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    results = run(SentimentAnalyzer(db, llm, sleep=fake_sleep).analyze_batch("user-1", entries))

    assert len(results) == 7
    assert len(llm.calls) == 7
    # Two groups (5 + 2) separated by one pause of at least a second
    assert sleeps == [1.0]
    assert results[entries[2].id].primary_emotion == "neutral"
    assert results[entries[0].id].primary_emotion == "happy"

    db.expire_all()
    analyzed = db.query(JournalEntry).filter(JournalEntry.sentiment_analyzed_at.isnot(None)).count()
    assert analyzed == 6
