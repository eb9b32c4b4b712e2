"""
Summary routes for daily and weekly AI reflections.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from app.db.session import get_db
from app.core.exceptions import MindFlowError
from app.models.summary import SummaryType
from app.schemas.summary import SummaryRequest, SummaryResponse
from app.api.dependencies import get_current_user_id
from app.api.errors import to_http_exception
from app.services.llm_client import LanguageModelClient, get_llm_client
from app.services.summary_service import SummaryGenerator

router = APIRouter(prefix="/summaries", tags=["summaries"])


@router.post("/daily", response_model=Optional[SummaryResponse])
async def generate_daily_summary(
    request: SummaryRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    client: LanguageModelClient = Depends(get_llm_client)
):
    """Generate (or return the cached) summary of one day.

    Answers null when there are no entries that day.
    """
    try:
        return await SummaryGenerator(db, client).generate_daily(user_id, request.date, force=request.force)
    except MindFlowError as e:
        raise to_http_exception(e)


@router.post("/weekly", response_model=Optional[SummaryResponse])
async def generate_weekly_summary(
    request: SummaryRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    client: LanguageModelClient = Depends(get_llm_client)
):
    """Generate (or return the cached) summary of the seven days ending on `date`.

    Built from daily summaries; answers null when the week has none.
    """
    try:
        return await SummaryGenerator(db, client).generate_weekly(user_id, request.date, force=request.force)
    except MindFlowError as e:
        raise to_http_exception(e)


@router.get("", response_model=List[SummaryResponse])
async def list_summaries(
    type: Optional[SummaryType] = None,
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    client: LanguageModelClient = Depends(get_llm_client)
):
    """List summaries, newest period first."""
    return SummaryGenerator(db, client).get_summaries(user_id, type, limit)
