"""
Recent search history model.
"""
from sqlalchemy import Column, String, UniqueConstraint
from app.db.base import BaseModel


class RecentSearch(BaseModel):
    """One remembered search query per user."""
    __tablename__ = "recent_searches"

    user_id = Column(String(64), nullable=False, index=True)
    query = Column(String(500), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "query", name="uq_recent_search_user_query"),
    )
