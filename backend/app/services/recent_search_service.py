"""
Per-user recent search history: deduplicated and capped.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.utils import utcnow
from app.models.recent_search import RecentSearch

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 500


class RecentSearchStore:
    """Recent searches backed by the recent_searches table."""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        max_entries: Optional[int] = None
    ):
        self.db = db
        self.clock = clock
        self.max_entries = max_entries or settings.RECENT_SEARCH_LIMIT

    def _find(self, user_id: str, query: str) -> Optional[RecentSearch]:
        return self.db.query(RecentSearch).filter(
            RecentSearch.user_id == user_id,
            RecentSearch.query == query
        ).first()

    def save(self, user_id: str, query: str) -> Optional[RecentSearch]:
        """
        Remember a query, refreshing it if already present, then trim the
        user's history to the newest `max_entries`. Blank queries are ignored.
        """
        query = (query or "").strip()[:MAX_QUERY_LENGTH]
        if not query:
            return None

        now = self.clock()
        recent = self._find(user_id, query)
        if recent is None:
            recent = RecentSearch(user_id=user_id, query=query, created_at=now)
            self.db.add(recent)
            try:
                self.db.flush()
            except IntegrityError:
                # Same query saved concurrently; refresh that row instead
                self.db.rollback()
                recent = self._find(user_id, query)
                recent.created_at = now
        else:
            recent.created_at = now

        self.db.flush()
        self._trim(user_id)
        self.db.commit()
        self.db.refresh(recent)
        return recent

    def _trim(self, user_id: str) -> None:
        stale = self.db.query(RecentSearch).filter(
            RecentSearch.user_id == user_id
        ).order_by(
            RecentSearch.created_at.desc(),
            RecentSearch.id.desc()
        ).offset(self.max_entries).all()

        for row in stale:
            self.db.delete(row)
        if stale:
            logger.debug(f"Evicted {len(stale)} recent searches for user {user_id}")

    def list(self, user_id: str, limit: int = 10) -> List[RecentSearch]:
        """Newest first."""
        return self.db.query(RecentSearch).filter(
            RecentSearch.user_id == user_id
        ).order_by(
            RecentSearch.created_at.desc(),
            RecentSearch.id.desc()
        ).limit(limit).all()

    def delete(self, user_id: str, search_id: int) -> bool:
        """Delete one row; deleting a missing row is not an error."""
        deleted = self.db.query(RecentSearch).filter(
            RecentSearch.id == search_id,
            RecentSearch.user_id == user_id
        ).delete(synchronize_session=False)
        self.db.commit()
        return deleted > 0

    def clear(self, user_id: str) -> int:
        """Delete the user's whole history."""
        deleted = self.db.query(RecentSearch).filter(
            RecentSearch.user_id == user_id
        ).delete(synchronize_session=False)
        self.db.commit()
        return deleted
