"""
Entry service: the narrow slice of entry persistence the insight pipeline uses.
"""
from sqlalchemy.orm import Session
from datetime import date, datetime
from app.core.utils import day_bounds
from app.models.entry import JournalEntry, MoodType
from app.schemas.sentiment import SentimentResult
from typing import List, Optional


def create_entry(
    user_id: str,
    content: str,
    mood: Optional[MoodType] = None,
    db: Session = None
) -> JournalEntry:
    """Create a new journal entry with empty sentiment fields."""
    entry = JournalEntry(
        user_id=user_id,
        content=content,
        mood=mood
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)

    return entry


def get_entry(user_id: str, entry_id: int, db: Session) -> Optional[JournalEntry]:
    """Get one entry, scoped to its owner."""
    return db.query(JournalEntry).filter(
        JournalEntry.id == entry_id,
        JournalEntry.user_id == user_id
    ).first()


def get_entries_for_day(user_id: str, day: date, db: Session) -> List[JournalEntry]:
    """All entries a user wrote on a calendar day, oldest first."""
    start, end = day_bounds(day)
    return db.query(JournalEntry).filter(
        JournalEntry.user_id == user_id,
        JournalEntry.created_at >= start,
        JournalEntry.created_at <= end
    ).order_by(JournalEntry.created_at.asc(), JournalEntry.id.asc()).all()


def list_unanalyzed(user_id: str, limit: int, db: Session) -> List[JournalEntry]:
    """Most recent entries that have no sentiment yet."""
    return db.query(JournalEntry).filter(
        JournalEntry.user_id == user_id,
        JournalEntry.sentiment_analyzed_at.is_(None)
    ).order_by(JournalEntry.created_at.desc(), JournalEntry.id.desc()).limit(limit).all()


def update_sentiment(
    user_id: str,
    entry_id: int,
    result: SentimentResult,
    db: Session,
    analyzed_at: datetime
) -> bool:
    """
    Write the sentiment columns in a single UPDATE scoped by id and owner.

    Returns False if the entry no longer exists (e.g. deleted while the
    analysis was running).
    """
    updated = db.query(JournalEntry).filter(
        JournalEntry.id == entry_id,
        JournalEntry.user_id == user_id
    ).update(
        {
            JournalEntry.sentiment_score: result.score,
            JournalEntry.sentiment_magnitude: result.magnitude,
            JournalEntry.primary_emotion: result.primary_emotion,
            JournalEntry.sentiment_analyzed_at: analyzed_at,
            # Sentiment is derived data; keep updated_at tracking user edits only
            JournalEntry.updated_at: JournalEntry.updated_at,
        },
        synchronize_session="fetch"
    )
    db.commit()

    return updated > 0
