"""
Entry routes: creation (with background sentiment) and sentiment analysis.
"""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Callable
from app.db.session import get_db, get_session_factory
from app.core.exceptions import NotFoundError
from app.schemas.entry import EntryCreate, EntryResponse
from app.schemas.sentiment import BatchSentimentResponse, SentimentResult
from app.api.dependencies import get_current_user_id
from app.api.errors import to_http_exception
from app.services import entry_service
from app.services.llm_client import LanguageModelClient, get_llm_client
from app.services.sentiment_service import SentimentAnalyzer
from app.services.tasks import dispatch_batch_sentiment_analysis, dispatch_sentiment_analysis

router = APIRouter(prefix="/entries", tags=["entries"])


@router.post("", response_model=EntryResponse, status_code=status.HTTP_201_CREATED)
async def create_entry(
    entry_data: EntryCreate,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    client: LanguageModelClient = Depends(get_llm_client)
):
    """Create an entry; sentiment is analyzed after the response is sent."""
    entry = entry_service.create_entry(user_id, entry_data.content, entry_data.mood, db)
    dispatch_sentiment_analysis(background_tasks, session_factory, client, user_id, entry.id)
    return entry


# Batch route must come before /{entry_id} routes
@router.post("/sentiment/batch", response_model=BatchSentimentResponse, status_code=status.HTTP_202_ACCEPTED)
async def analyze_unanalyzed_entries(
    background_tasks: BackgroundTasks,
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    client: LanguageModelClient = Depends(get_llm_client)
):
    """Queue sentiment analysis for the user's most recent unanalyzed entries."""
    entry_ids = [e.id for e in entry_service.list_unanalyzed(user_id, limit, db)]
    queued = dispatch_batch_sentiment_analysis(background_tasks, session_factory, client, user_id, entry_ids)
    return BatchSentimentResponse(queued=len(entry_ids) if queued else 0, entry_ids=entry_ids if queued else [])


@router.get("/{entry_id}", response_model=EntryResponse)
async def get_entry(
    entry_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Get one entry."""
    entry = entry_service.get_entry(user_id, entry_id, db)
    if not entry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Entry not found"
        )
    return entry


@router.post("/{entry_id}/sentiment", response_model=SentimentResult)
async def analyze_entry_sentiment(
    entry_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    client: LanguageModelClient = Depends(get_llm_client)
):
    """Analyze an entry now and store the result.

    Failed analyses answer with the neutral fallback and leave the entry's
    sentiment fields untouched.
    """
    outcome = await SentimentAnalyzer(db, client).analyze_entry(user_id, entry_id)
    if outcome is None:
        raise to_http_exception(NotFoundError("Entry not found"))
    return outcome.value
