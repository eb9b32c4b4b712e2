"""Models package - Import all models for SQLAlchemy registration."""
from app.models.entry import JournalEntry, MoodType
from app.models.summary import Summary, SummaryType
from app.models.usage import UsageRecord
from app.models.recent_search import RecentSearch

__all__ = [
    "JournalEntry",
    "MoodType",
    "Summary",
    "SummaryType",
    "UsageRecord",
    "RecentSearch",
]
