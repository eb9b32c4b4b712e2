"""
AI-generated summary model.
"""
from sqlalchemy import Column, String, Date, DateTime, Integer, Text, JSON, Enum as SQLEnum, UniqueConstraint
from app.db.base import BaseModel
from app.core.utils import utcnow
import enum


class SummaryType(str, enum.Enum):
    """Summary period enumeration."""
    DAILY = "daily"
    WEEKLY = "weekly"


class Summary(BaseModel):
    """Narrative summary for one user over one date range."""
    __tablename__ = "summaries"

    user_id = Column(String(64), nullable=False, index=True)
    type = Column(
        SQLEnum(SummaryType, name="summary_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False
    )
    content = Column(Text, nullable=False)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False)
    entry_count = Column(Integer, nullable=False, default=0)
    generated_at = Column(DateTime, nullable=False, default=utcnow)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=True)

    # One summary per user per period
    __table_args__ = (
        UniqueConstraint("user_id", "type", "start_date", "end_date", name="uq_summary_user_type_range"),
    )
