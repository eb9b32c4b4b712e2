"""
Pydantic schemas for JournalEntry entity.
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from app.models.entry import MoodType

MAX_CONTENT_LENGTH = 100_000


class EntryBase(BaseModel):
    """Base entry schema."""
    content: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)
    mood: Optional[MoodType] = None


class EntryCreate(EntryBase):
    """Schema for entry creation."""
    pass


class EntryResponse(EntryBase):
    """Schema for entry response."""
    id: int
    user_id: str
    sentiment_score: Optional[float] = None
    sentiment_magnitude: Optional[float] = None
    primary_emotion: Optional[str] = None
    sentiment_analyzed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
