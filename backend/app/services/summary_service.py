"""
Daily and weekly summary generation.

Daily summaries read the day's entries; weekly summaries read the stored
daily summaries of the trailing seven days, so weekly prompt size does not
grow with entry volume. Results are cached per (user, type, range) and
written with an upsert, which makes generation idempotent per range.
"""
import asyncio
import json
import logging
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Tuple
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.exceptions import AuthError, UpstreamTimeoutError, ValidationError
from app.core.utils import day_bounds, utcnow
from app.models.entry import JournalEntry
from app.models.summary import Summary, SummaryType
from app.schemas.summary import SummaryPayload
from app.services import entry_service
from app.services.llm_client import Completion, LanguageModelClient
from app.services.sentiment_service import strip_code_fence
from app.services.usage_service import OPERATION_SUMMARY, RateLimiter, UsageTracker

logger = logging.getLogger(__name__)

WEEK_DAYS = 7

SYSTEM_PROMPT = (
    "You are a warm, thoughtful journaling companion. You reflect the writer's "
    "own words back to them, never diagnose, and respond with a single JSON object."
)

DAILY_PROMPT = """Summarize this person's journal entries from {day}.

Entries:
{entries}

Respond with ONLY a JSON object with these fields:
- "summary": a short narrative of the day (2-4 sentences, second person)
- "keyThemes": 2 to 4 short themes
- "overallMood": one or two words describing the overall mood
- "insights": 1 to 3 gentle, practical observations
- "entryCount": {count}

No explanation, no markdown formatting, no code blocks."""

WEEKLY_PROMPT = """Summarize this person's week from {start} to {end} using their daily summaries.

Daily summaries:
{summaries}

Respond with ONLY a JSON object with these fields:
- "summary": a short narrative of the week (3-5 sentences, second person)
- "keyThemes": 2 to 4 recurring themes
- "overallMood": one or two words describing the week's overall mood
- "insights": 1 to 3 gentle, practical observations about patterns
- "entryCount": {count}

No explanation, no markdown formatting, no code blocks."""


def format_entry(entry: JournalEntry, max_chars: int) -> str:
    """One prompt line: time, optional mood, then the text."""
    stamp = entry.created_at.strftime("%H:%M")
    mood = f" (mood: {entry.mood.value})" if entry.mood else ""
    content = entry.content.strip()
    if len(content) > max_chars:
        content = content[:max_chars] + "..."
    return f"[{stamp}]{mood} {content}"


def format_daily_summary(summary: Summary) -> str:
    """One prompt block per day for the weekly prompt."""
    mood = (summary.meta or {}).get("overall_mood")
    label = summary.start_date.strftime("%A %Y-%m-%d")
    header = f"{label} (mood: {mood})" if mood else label
    return f"{header}\n{summary.content}"


def parse_summary(text: str) -> SummaryPayload:
    """
    Parse and validate raw model output.

    Raises:
        ValidationError: Not JSON or wrong shape
    """
    content = strip_code_fence(text)
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Summary response is not JSON: {content[:100]}") from e
    if not isinstance(data, dict):
        raise ValidationError("Summary response is not a JSON object")

    try:
        return SummaryPayload.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Summary response failed validation: {e.error_count()} error(s)") from e


def week_range(day: date) -> Tuple[date, date]:
    """The seven days ending on (and including) `day`."""
    return day - timedelta(days=WEEK_DAYS - 1), day


class SummaryGenerator:
    """Generates, caches and lists narrative summaries."""

    def __init__(
        self,
        db: Session,
        client: LanguageModelClient,
        rate_limiter: Optional[RateLimiter] = None,
        usage_tracker: Optional[UsageTracker] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.db = db
        self.client = client
        self.clock = clock
        self.rate_limiter = rate_limiter or RateLimiter(db, clock=clock)
        self.usage_tracker = usage_tracker or UsageTracker(db, clock=clock)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_summary(
        self,
        user_id: str,
        summary_type: SummaryType,
        start_date: date,
        end_date: date
    ) -> Optional[Summary]:
        return self.db.query(Summary).filter(
            Summary.user_id == user_id,
            Summary.type == summary_type,
            Summary.start_date == start_date,
            Summary.end_date == end_date
        ).first()

    def get_summaries(
        self,
        user_id: str,
        summary_type: Optional[SummaryType] = None,
        limit: int = 10
    ) -> List[Summary]:
        """A user's summaries, newest period first."""
        query = self.db.query(Summary).filter(Summary.user_id == user_id)
        if summary_type is not None:
            query = query.filter(Summary.type == summary_type)
        return query.order_by(Summary.start_date.desc(), Summary.id.desc()).limit(limit).all()

    def _daily_summaries_in(self, user_id: str, start: date, end: date) -> List[Summary]:
        return self.db.query(Summary).filter(
            Summary.user_id == user_id,
            Summary.type == SummaryType.DAILY,
            Summary.start_date >= start,
            Summary.start_date <= end
        ).order_by(Summary.start_date.asc()).all()

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_daily(self, user_id: str, day: date, force: bool = False) -> Optional[Summary]:
        """
        Summarize one day's entries.

        Returns:
            The stored (or still-fresh cached) summary, or None when the user
            wrote nothing that day

        Raises:
            RateLimitError, AuthError, UpstreamError, ValidationError
        """
        entries = entry_service.get_entries_for_day(user_id, day, self.db)
        if not entries:
            logger.debug(f"No entries for user {user_id} on {day}; nothing to summarize")
            return None

        cached = self.get_summary(user_id, SummaryType.DAILY, day, day)
        if cached and not force:
            start, end = day_bounds(day)
            last_change = self.db.query(func.max(JournalEntry.updated_at)).filter(
                JournalEntry.user_id == user_id,
                JournalEntry.created_at >= start,
                JournalEntry.created_at <= end
            ).scalar()
            if (
                cached.entry_count == len(entries)
                and last_change is not None
                and last_change <= cached.generated_at
            ):
                logger.debug(f"Daily summary cache hit for user {user_id} on {day}")
                return cached

        max_chars = settings.SUMMARY_MAX_ENTRY_CHARS
        prompt = DAILY_PROMPT.format(
            day=day.strftime("%A, %B %d, %Y"),
            entries="\n\n".join(format_entry(e, max_chars) for e in entries),
            count=len(entries)
        )
        return await self._generate(user_id, SummaryType.DAILY, day, day, len(entries), prompt)

    async def generate_weekly(self, user_id: str, day: date, force: bool = False) -> Optional[Summary]:
        """
        Summarize the week ending on `day` from its daily summaries.

        Returns None when no daily summaries exist in the week.
        """
        start, end = week_range(day)
        dailies = self._daily_summaries_in(user_id, start, end)
        if not dailies:
            logger.debug(f"No daily summaries for user {user_id} in {start}..{end}")
            return None

        entry_count = sum(d.entry_count for d in dailies)

        cached = self.get_summary(user_id, SummaryType.WEEKLY, start, end)
        if cached and not force:
            newest_daily = max(d.generated_at for d in dailies)
            if cached.entry_count == entry_count and newest_daily <= cached.generated_at:
                logger.debug(f"Weekly summary cache hit for user {user_id} ({start}..{end})")
                return cached

        prompt = WEEKLY_PROMPT.format(
            start=start.isoformat(),
            end=end.isoformat(),
            summaries="\n\n".join(format_daily_summary(d) for d in dailies),
            count=entry_count
        )
        return await self._generate(user_id, SummaryType.WEEKLY, start, end, entry_count, prompt)

    async def _generate(
        self,
        user_id: str,
        summary_type: SummaryType,
        start: date,
        end: date,
        entry_count: int,
        prompt: str
    ) -> Summary:
        if not self.client.is_available():
            raise AuthError("AI summaries are not configured")

        # Quota is checked before spending anything upstream
        self.rate_limiter.enforce(user_id, OPERATION_SUMMARY)

        try:
            completion: Completion = await asyncio.wait_for(
                self.client.complete(
                    [
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": prompt}
                    ],
                    temperature=settings.SUMMARY_TEMPERATURE,
                    max_tokens=settings.SUMMARY_MAX_TOKENS
                ),
                timeout=settings.SUMMARY_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError as e:
            logger.error(f"{summary_type.value} summary for user {user_id} timed out")
            raise UpstreamTimeoutError("Summary generation timed out") from e

        self.usage_tracker.track_usage(user_id, OPERATION_SUMMARY, completion.model, completion.total_tokens)

        payload = parse_summary(completion.text)
        meta = {
            "word_count": len(payload.summary.split()),
            "themes": payload.key_themes,
            "overall_mood": payload.overall_mood,
            "insights": payload.insights,
            "model": completion.model,
        }

        summary = self._upsert(user_id, summary_type, start, end, {
            "content": payload.summary,
            "entry_count": entry_count,
            "generated_at": self.clock(),
            "meta": meta,
        })
        logger.info(f"Generated {summary_type.value} summary {summary.id} for user {user_id} ({start}..{end})")
        return summary

    def _upsert(
        self,
        user_id: str,
        summary_type: SummaryType,
        start: date,
        end: date,
        fields: dict
    ) -> Summary:
        """Insert or overwrite the summary for this range in one commit."""
        for attempt in range(2):
            summary = self.get_summary(user_id, summary_type, start, end)
            if summary is None:
                summary = Summary(
                    user_id=user_id,
                    type=summary_type,
                    start_date=start,
                    end_date=end,
                    **fields
                )
                self.db.add(summary)
            else:
                for key, value in fields.items():
                    setattr(summary, key, value)
            try:
                self.db.commit()
            except IntegrityError:
                # A concurrent request inserted the same range first; overwrite it
                self.db.rollback()
                if attempt:
                    raise
                continue
            self.db.refresh(summary)
            return summary
