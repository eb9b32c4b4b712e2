"""
Pydantic schemas for search and recent searches.
"""
from pydantic import BaseModel
from typing import Dict, List
from datetime import datetime
from app.schemas.entry import EntryResponse


class SearchResultResponse(BaseModel):
    """Schema for one ranked search hit."""
    entry: EntryResponse
    rank: int
    highlights: Dict[str, str] = {}
    snippets: List[str] = []


class SearchResponse(BaseModel):
    """Schema for a page of search results."""
    results: List[SearchResultResponse]
    total: int
    page: int
    limit: int
    has_more: bool


class RecentSearchResponse(BaseModel):
    """Schema for recent search response."""
    id: int
    query: str
    created_at: datetime

    class Config:
        from_attributes = True
