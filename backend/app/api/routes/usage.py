"""
AI usage reporting routes.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.schemas.usage import UsageSummaryResponse
from app.api.dependencies import get_current_user_id
from app.services.usage_service import UsageTracker

router = APIRouter(prefix="/ai", tags=["ai"])


@router.get("/usage", response_model=UsageSummaryResponse)
async def get_usage(
    days: int = Query(30, ge=1, le=365),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Token and cost totals for the caller over the last `days` days."""
    usage = UsageTracker(db).get_user_usage(user_id, days)
    return UsageSummaryResponse(days=days, **usage)
