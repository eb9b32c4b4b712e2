"""
Journal entry model.

Entries are owned by the CRUD side of the app; the insight pipeline only
writes the sentiment columns.
"""
from sqlalchemy import Column, String, Text, Float, DateTime, Enum as SQLEnum, Index, DDL, event
from app.db.base import BaseModel
import enum


class MoodType(str, enum.Enum):
    """Self-reported mood enumeration."""
    HAPPY = "happy"
    SAD = "sad"
    ANXIOUS = "anxious"
    CALM = "calm"
    STRESSED = "stressed"
    NEUTRAL = "neutral"


class JournalEntry(BaseModel):
    """A single journal entry with optional mood and AI sentiment fields."""
    __tablename__ = "entries"

    user_id = Column(String(64), nullable=False, index=True)
    content = Column(Text, nullable=False)
    mood = Column(
        SQLEnum(MoodType, name="mood_type", values_callable=lambda e: [m.value for m in e]),
        nullable=True,
        index=True
    )

    # Sentiment (all null until analyzed)
    sentiment_score = Column(Float, nullable=True)  # -1..1
    sentiment_magnitude = Column(Float, nullable=True)  # 0..1
    primary_emotion = Column(String(32), nullable=True)
    sentiment_analyzed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_entries_user_created", "user_id", "created_at"),
    )


# Full-text index per dialect; other dialects (SQLite in tests) fall back to LIKE matching
event.listen(
    JournalEntry.__table__,
    "after_create",
    DDL("CREATE FULLTEXT INDEX ix_entries_content_fts ON entries (content)").execute_if(dialect="mysql")
)
event.listen(
    JournalEntry.__table__,
    "after_create",
    DDL(
        "CREATE INDEX IF NOT EXISTS ix_entries_content_fts "
        "ON entries USING GIN (to_tsvector('english', content))"
    ).execute_if(dialect="postgresql")
)
