"""
Sentiment analysis for journal entries using the language model.

Sentiment is an enhancement, never a critical path: every failure collapses
to a neutral result at the public boundary. Internally each analysis yields
either `SentimentOk` or `SentimentFallback(reason)` so callers and tests can
tell "genuinely neutral" apart from "analysis failed".
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Union
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.exceptions import (
    AuthError, RateLimitError, UpstreamError, UpstreamTimeoutError, ValidationError
)
from app.core.utils import utcnow
from app.models.entry import JournalEntry
from app.schemas.sentiment import EMOTIONS, SentimentPayload, SentimentResult
from app.services import entry_service
from app.services.llm_client import LanguageModelClient
from app.services.usage_service import OPERATION_SENTIMENT, RateLimiter, UsageTracker

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a sentiment analysis engine for a private journaling app. "
    "You respond with a single JSON object and nothing else."
)

USER_PROMPT = """Analyze the emotional tone of the journal entry below.

Respond with ONLY a JSON object with exactly these fields:
- "score": number from -1 (very negative) to 1 (very positive)
- "magnitude": number from 0 (flat) to 1 (very intense), independent of polarity
- "primaryEmotion": one of: {emotions}
- "confidence": number from 0 to 1

No explanation, no markdown formatting, no code blocks.

Journal entry:
\"\"\"
{content}
\"\"\""""

FALLBACK_UNAVAILABLE = "unavailable"
FALLBACK_RATE_LIMITED = "rate_limited"
FALLBACK_AUTH = "auth"
FALLBACK_UPSTREAM = "upstream"
FALLBACK_TIMEOUT = "timeout"
FALLBACK_INVALID = "invalid_response"


@dataclass(frozen=True)
class SentimentOk:
    result: SentimentResult

    @property
    def value(self) -> SentimentResult:
        return self.result


@dataclass(frozen=True)
class SentimentFallback:
    reason: str

    @property
    def value(self) -> SentimentResult:
        return SentimentResult.neutral()


SentimentOutcome = Union[SentimentOk, SentimentFallback]


def strip_code_fence(text: str) -> str:
    """Remove a markdown code fence the model may wrap around JSON."""
    content = (text or "").strip()
    if content.startswith("```json"):
        content = content[7:]
    elif content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


def parse_sentiment(text: str) -> SentimentResult:
    """
    Parse and validate raw model output.

    Raises:
        ValidationError: Not JSON, wrong shape, missing field, out-of-range
            value, or an emotion outside the vocabulary
    """
    content = strip_code_fence(text)
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Sentiment response is not JSON: {content[:100]}") from e
    if not isinstance(data, dict):
        raise ValidationError("Sentiment response is not a JSON object")

    try:
        payload = SentimentPayload.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Sentiment response failed validation: {e.error_count()} error(s)") from e

    return SentimentResult(
        score=payload.score,
        magnitude=payload.magnitude,
        primary_emotion=payload.primary_emotion,
        confidence=payload.confidence
    )


class SentimentAnalyzer:
    """Scores entry text; records usage; never raises on analysis failure."""

    def __init__(
        self,
        db: Session,
        client: LanguageModelClient,
        rate_limiter: Optional[RateLimiter] = None,
        usage_tracker: Optional[UsageTracker] = None,
        sleep: Callable = asyncio.sleep
    ):
        self.db = db
        self.client = client
        self.rate_limiter = rate_limiter or RateLimiter(db)
        self.usage_tracker = usage_tracker or UsageTracker(db)
        self._sleep = sleep

    async def analyze_detailed(self, user_id: str, content: str) -> SentimentOutcome:
        """Run one analysis and report how it ended."""
        if not self.client.is_available():
            return SentimentFallback(FALLBACK_UNAVAILABLE)

        if not self.rate_limiter.check_rate_limit(user_id, OPERATION_SENTIMENT):
            logger.info(f"Sentiment rate limit reached for user {user_id}; using neutral fallback")
            return SentimentFallback(FALLBACK_RATE_LIMITED)

        prompt = USER_PROMPT.format(
            emotions=", ".join(EMOTIONS),
            content=content[:settings.SENTIMENT_MAX_CHARS]
        )

        try:
            completion = await self.client.complete(
                [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt}
                ],
                temperature=settings.SENTIMENT_TEMPERATURE,
                max_tokens=settings.SENTIMENT_MAX_TOKENS
            )
        except AuthError as e:
            logger.warning(f"Sentiment analysis disabled: {e}")
            return SentimentFallback(FALLBACK_AUTH)
        except RateLimitError as e:
            logger.warning(f"Sentiment analysis throttled upstream: {e}")
            return SentimentFallback(FALLBACK_RATE_LIMITED)
        except UpstreamTimeoutError as e:
            logger.warning(f"Sentiment analysis timed out: {e}")
            return SentimentFallback(FALLBACK_TIMEOUT)
        except UpstreamError as e:
            logger.warning(f"Sentiment analysis failed upstream: {e}")
            return SentimentFallback(FALLBACK_UPSTREAM)

        # The call was made and billed whether or not the answer is usable
        self.usage_tracker.track_usage(user_id, OPERATION_SENTIMENT, completion.model, completion.total_tokens)

        try:
            result = parse_sentiment(completion.text)
        except ValidationError as e:
            logger.warning(f"Discarding sentiment response: {e}")
            return SentimentFallback(FALLBACK_INVALID)

        logger.debug(f"Sentiment for user {user_id}: {result.primary_emotion} ({result.score:+.2f})")
        return SentimentOk(result)

    async def analyze(self, user_id: str, content: str) -> Optional[SentimentResult]:
        """
        Analyze one text.

        Returns:
            None for blank content, otherwise a SentimentResult (neutral if
            the analysis failed for any reason)
        """
        if not content or not content.strip():
            return None
        outcome = await self.analyze_detailed(user_id, content)
        return outcome.value

    async def analyze_entry(self, user_id: str, entry_id: int) -> Optional[SentimentOutcome]:
        """
        Analyze a stored entry and write its sentiment columns.

        Fallbacks are not persisted, so a failed entry stays unanalyzed and
        can be picked up by a later batch run.
        """
        entry = entry_service.get_entry(user_id, entry_id, self.db)
        if entry is None or not entry.content.strip():
            return None

        outcome = await self.analyze_detailed(user_id, entry.content)
        if isinstance(outcome, SentimentOk):
            entry_service.update_sentiment(user_id, entry_id, outcome.result, self.db, analyzed_at=utcnow())
        return outcome

    async def analyze_batch(
        self,
        user_id: str,
        entries: Iterable[JournalEntry]
    ) -> Dict[int, SentimentResult]:
        """
        Analyze entries in groups, pausing between groups.

        Entries within a group run concurrently; one failure never aborts the
        others. Successful results are persisted.
        """
        entries = list(entries)
        batch_size = settings.SENTIMENT_BATCH_SIZE
        results: Dict[int, SentimentResult] = {}

        for start in range(0, len(entries), batch_size):
            if start > 0:
                await self._sleep(settings.SENTIMENT_BATCH_DELAY_SECONDS)

            group = entries[start:start + batch_size]
            outcomes = await asyncio.gather(
                *(self.analyze_detailed(user_id, entry.content) for entry in group),
                return_exceptions=True
            )

            for entry, outcome in zip(group, outcomes):
                if isinstance(outcome, Exception):
                    logger.error(f"Sentiment analysis crashed for entry {entry.id}: {outcome}")
                    outcome = SentimentFallback(FALLBACK_UPSTREAM)
                if isinstance(outcome, SentimentOk):
                    entry_service.update_sentiment(user_id, entry.id, outcome.result, self.db, analyzed_at=utcnow())
                results[entry.id] = outcome.value

        logger.info(f"Batch sentiment for user {user_id}: {len(results)} entries processed")
        return results
