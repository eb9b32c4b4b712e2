"""
Search routes: full-text entry search and recent search history.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
import logging
from app.db.session import get_db
from app.core.utils import format_error
from app.models.entry import MoodType
from app.schemas.entry import EntryResponse
from app.schemas.search import RecentSearchResponse, SearchResponse, SearchResultResponse
from app.api.dependencies import get_current_user_id
from app.services.recent_search_service import RecentSearchStore
from app.services.search_service import SORT_RECENT, SearchEngine
from app.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["search"])


@router.get("", response_model=SearchResponse)
async def search_entries(
    q: str = "",
    mood: Optional[MoodType] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=settings.SEARCH_MAX_PAGE_SIZE),
    sort: str = Query(SORT_RECENT, pattern="^(recent|relevance)$"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Search entries; an empty query browses with filters only."""
    if start_date and end_date and start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start_date must not be after end_date"
        )

    try:
        result_page = SearchEngine(db).search(
            user_id,
            q,
            mood=mood,
            start_date=start_date,
            end_date=end_date,
            page=page,
            limit=limit,
            sort=sort
        )
    except OperationalError as e:
        logger.error(f"Search query failed: {e}")
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=format_error("Search is temporarily unavailable", code="SEARCH_UNAVAILABLE", retryable=True)
        )

    RecentSearchStore(db).save(user_id, q)

    return SearchResponse(
        results=[
            SearchResultResponse(
                entry=EntryResponse.model_validate(r.entry),
                rank=r.rank,
                highlights=r.highlights,
                snippets=r.snippets
            )
            for r in result_page.results
        ],
        total=result_page.total,
        page=result_page.page,
        limit=result_page.limit,
        has_more=result_page.has_more
    )


@router.get("/recent", response_model=List[RecentSearchResponse])
async def list_recent_searches(
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Recent searches, newest first."""
    return RecentSearchStore(db).list(user_id, limit)


@router.delete("/recent/{search_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recent_search(
    search_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Remove one recent search (no error if already gone)."""
    RecentSearchStore(db).delete(user_id, search_id)


@router.delete("/recent", status_code=status.HTTP_204_NO_CONTENT)
async def clear_recent_searches(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Clear the user's search history."""
    RecentSearchStore(db).clear(user_id)
