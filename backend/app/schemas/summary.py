"""
Pydantic schemas for Summary entity.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional
from datetime import date, datetime
from app.models.summary import SummaryType


class SummaryPayload(BaseModel):
    """Strict shape of the model's summary answer."""
    summary: str = Field(..., min_length=1)
    key_themes: List[str] = Field(..., alias="keyThemes", min_length=1)
    overall_mood: str = Field(..., alias="overallMood", min_length=1)
    insights: List[str] = Field(default_factory=list)

    @field_validator("summary", "overall_mood")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("key_themes")
    @classmethod
    def cap_themes(cls, v: List[str]) -> List[str]:
        themes = [t.strip() for t in v if t.strip()]
        if not themes:
            raise ValueError("at least one theme required")
        return themes[:4]

    @field_validator("insights")
    @classmethod
    def cap_insights(cls, v: List[str]) -> List[str]:
        return [i.strip() for i in v if i.strip()][:3]

    class Config:
        strict = True


class SummaryRequest(BaseModel):
    """Schema for a summary generation request."""
    date: date
    force: bool = False


class SummaryResponse(BaseModel):
    """Schema for summary response."""
    id: int
    user_id: str
    type: SummaryType
    content: str
    start_date: date
    end_date: date
    entry_count: int
    generated_at: datetime
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="meta")

    class Config:
        from_attributes = True
