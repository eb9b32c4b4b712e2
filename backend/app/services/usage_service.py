"""
AI usage accounting and per-user rate limiting.

Both read and write the durable ai_usage table, so quotas hold across
restarts and across server instances. The clock is injectable for tests.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.exceptions import RateLimitError
from app.core.utils import utcnow
from app.models.usage import UsageRecord

logger = logging.getLogger(__name__)

OPERATION_SENTIMENT = "sentiment"
OPERATION_SUMMARY = "summary"
OPERATION_TYPES = (OPERATION_SENTIMENT, OPERATION_SUMMARY)

# USD per 1K tokens, blended prompt/completion rate
MODEL_PRICING: Dict[str, Decimal] = {
    "gpt-4o-mini": Decimal("0.0004"),
    "gpt-4o": Decimal("0.0075"),
    "gpt-4-turbo": Decimal("0.02"),
    "gpt-4": Decimal("0.045"),
    "gpt-3.5-turbo": Decimal("0.0015"),
}
DEFAULT_PRICE_PER_1K = Decimal("0.002")


def get_price_per_1k(model: str) -> Decimal:
    """
    Look up the token price for a model.

    Dated variants (e.g. "gpt-4o-mini-2024-07-18") resolve to the longest
    matching prefix; unknown models use the default rate.
    """
    name = (model or "").lower()
    matches = [key for key in MODEL_PRICING if name.startswith(key)]
    if not matches:
        return DEFAULT_PRICE_PER_1K
    return MODEL_PRICING[max(matches, key=len)]


def calculate_cost(model: str, tokens_used: int) -> Decimal:
    """Cost in USD for a number of tokens."""
    tokens = max(0, int(tokens_used or 0))
    cost = Decimal(tokens) / Decimal(1000) * get_price_per_1k(model)
    return cost.quantize(Decimal("0.000001"))


class UsageTracker:
    """Appends usage rows and aggregates them for display."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    def track_usage(
        self,
        user_id: str,
        operation_type: str,
        model: str,
        tokens_used: int
    ) -> Optional[UsageRecord]:
        """
        Record one model call. Never raises: a lost accounting row is
        logged and the caller carries on.
        """
        try:
            record = UsageRecord(
                user_id=user_id,
                operation_type=operation_type,
                model=model,
                tokens_used=max(0, int(tokens_used or 0)),
                cost_usd=calculate_cost(model, tokens_used),
                created_at=self.clock()
            )
            self.db.add(record)
            self.db.commit()
            return record
        except Exception as e:
            logger.error(f"Failed to track AI usage for user {user_id} ({operation_type}): {e}", exc_info=True)
            self.db.rollback()
            return None

    def get_user_usage(self, user_id: str, days: int = 30) -> dict:
        """Total tokens, total cost and per-operation call counts over the last `days`."""
        since = self.clock() - timedelta(days=days)

        totals = self.db.query(
            func.coalesce(func.sum(UsageRecord.tokens_used), 0),
            func.coalesce(func.sum(UsageRecord.cost_usd), 0)
        ).filter(
            UsageRecord.user_id == user_id,
            UsageRecord.created_at > since
        ).one()

        counts = self.db.query(
            UsageRecord.operation_type,
            func.count(UsageRecord.id)
        ).filter(
            UsageRecord.user_id == user_id,
            UsageRecord.created_at > since
        ).group_by(UsageRecord.operation_type).all()

        operation_counts = {op: 0 for op in OPERATION_TYPES}
        for op, count in counts:
            operation_counts[op] = count

        return {
            "total_tokens": int(totals[0] or 0),
            "total_cost": Decimal(str(totals[1] or 0)).quantize(Decimal("0.000001")),
            "operation_counts": operation_counts,
        }


@dataclass(frozen=True)
class RateLimitRule:
    """At most `max_requests` calls per trailing `window_seconds`.

    `operation_type=None` applies the rule to every AI operation combined.
    """
    max_requests: int
    window_seconds: int
    operation_type: Optional[str] = None

    def applies_to(self, operation_type: str) -> bool:
        return self.operation_type is None or self.operation_type == operation_type


def default_rules() -> List[RateLimitRule]:
    """Rules built from settings."""
    return [
        RateLimitRule(settings.RATE_LIMIT_AI_MAX, settings.RATE_LIMIT_AI_WINDOW_SECONDS),
        RateLimitRule(
            settings.RATE_LIMIT_SENTIMENT_MAX,
            settings.RATE_LIMIT_SENTIMENT_WINDOW_SECONDS,
            OPERATION_SENTIMENT
        ),
        RateLimitRule(
            settings.RATE_LIMIT_SUMMARY_MAX,
            settings.RATE_LIMIT_SUMMARY_WINDOW_SECONDS,
            OPERATION_SUMMARY
        ),
    ]


class RateLimiter:
    """Sliding-window limiter counted from usage records."""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        rules: Optional[List[RateLimitRule]] = None
    ):
        self.db = db
        self.clock = clock
        self.rules = rules if rules is not None else default_rules()

    def _window_query(self, user_id: str, rule: RateLimitRule, now: datetime):
        query = self.db.query(UsageRecord).filter(
            UsageRecord.user_id == user_id,
            UsageRecord.created_at > now - timedelta(seconds=rule.window_seconds)
        )
        if rule.operation_type is not None:
            query = query.filter(UsageRecord.operation_type == rule.operation_type)
        return query

    def _violated_rule(self, user_id: str, operation_type: str, now: datetime):
        for rule in self.rules:
            if not rule.applies_to(operation_type):
                continue
            count = self._window_query(user_id, rule, now).count()
            if count >= rule.max_requests:
                return rule, count
        return None, 0

    def check_rate_limit(self, user_id: str, operation_type: str) -> bool:
        """True while the user is below every applicable ceiling."""
        rule, _ = self._violated_rule(user_id, operation_type, self.clock())
        return rule is None

    def enforce(self, user_id: str, operation_type: str) -> None:
        """
        Raise RateLimitError if the user is over quota.

        Must run before the model call; the retry hint is the time until
        enough calls leave the window.
        """
        now = self.clock()
        rule, count = self._violated_rule(user_id, operation_type, now)
        if rule is None:
            return

        # The call that must expire before one more fits under the ceiling
        blocking = self._window_query(user_id, rule, now).order_by(
            UsageRecord.created_at.asc()
        ).offset(count - rule.max_requests).first()
        retry_after = None
        if blocking is not None:
            expires = blocking.created_at + timedelta(seconds=rule.window_seconds)
            retry_after = max(1, math.ceil((expires - now).total_seconds()))

        logger.info(
            f"Rate limit hit for user {user_id} ({operation_type}): "
            f"{count}/{rule.max_requests} in {rule.window_seconds}s"
        )
        raise RateLimitError(
            f"Too many {operation_type} requests, try again later",
            retry_after=retry_after
        )
